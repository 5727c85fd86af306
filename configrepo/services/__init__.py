"""
Service layer for configrepo.

Services orchestrate the GitHub client and the codec:
- ReleaseService: Publish releases, read release history, roll back
- AppService: List applications and load their configuration
"""

from .release_service import ReleaseService
from .app_service import AppService

__all__ = [
    'ReleaseService',
    'AppService',
]
