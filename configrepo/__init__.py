"""
configrepo - Versioned application configuration stored in a GitHub repository.

Each application is a directory of files in a Git repository, and each
release is a commit merged into a target branch. The commit history of an
app's VERSION file doubles as its release history.

Quick Start:
    import configrepo
    from configrepo import App, AppsQuery, ReleasesQuery

    store = configrepo.create(owner="acme", repo="config", ref="main")

    # Publish a release
    app = App(name="web", environment={"FOO": "bar"})
    release = store.releases_create(app, "Set FOO")   # app.version is now 1

    # Read it back
    web = store.apps_find(AppsQuery(name="web"))
    for release in store.releases(ReleasesQuery(app=web)):
        print(release.version, release.description, release.created_at)

Stored layout, per app:
    <base_path>/<name>/VERSION        "v<version>"
    <base_path>/<name>/app.env        environment variables
    <base_path>/<name>/image.txt      container image reference
    <base_path>/<name>/services.json  process formation
"""

__version__ = "0.3.0"

# High-level API
from .api import ConfigStore, create

# Domain objects
from .domain import (
    App,
    Release,
    AppsQuery,
    ReleasesQuery,
    Image,
    TreeEntry,
)

# Infrastructure and services (for advanced use)
from .infra import GitHubClient, RefContentFetcher
from .services import ReleaseService, AppService

# Configuration
from .config import StoreSettings, load_config

# Errors
from .exit_codes import (
    CommandError,
    APIError,
    RemoteNotFoundError,
    MergeConflictError,
    RefMovedError,
    DecodeError,
    FileMissingError,
    EncodeError,
    NotFoundError,
    OperationNotImplementedError,
    ConfigError,
)

from .paths import path_join

__all__ = [
    # Version
    "__version__",
    # High-level API
    "ConfigStore",
    "create",
    # Domain objects
    "App",
    "Release",
    "AppsQuery",
    "ReleasesQuery",
    "Image",
    "TreeEntry",
    # Infrastructure and services
    "GitHubClient",
    "RefContentFetcher",
    "ReleaseService",
    "AppService",
    # Configuration
    "StoreSettings",
    "load_config",
    # Errors
    "CommandError",
    "APIError",
    "RemoteNotFoundError",
    "MergeConflictError",
    "RefMovedError",
    "DecodeError",
    "FileMissingError",
    "EncodeError",
    "NotFoundError",
    "OperationNotImplementedError",
    "ConfigError",
    # Paths
    "path_join",
]
