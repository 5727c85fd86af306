"""
Domain layer for configrepo.

Contains pure domain objects with no I/O or side effects:
- App: An application's configuration (version, env, image, formation)
- Release: A published snapshot of an App
- Image: Container image reference
- TreeEntry / ContentEntry: Files written to and listed from the Git API
"""

from .app import App, Release, AppsQuery, ReleasesQuery
from .image import Image
from .tree import TreeEntry, ContentEntry

__all__ = [
    'App',
    'Release',
    'AppsQuery',
    'ReleasesQuery',
    'Image',
    'TreeEntry',
    'ContentEntry',
]
