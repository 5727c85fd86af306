"""
High-level Python API for configrepo.

ConfigStore is the storage backend a control plane talks to: it publishes
releases, reads release history and lists applications, all backed by a
GitHub repository.

Example:
    import configrepo

    # Create instance (uses config file and environment)
    store = configrepo.create()

    # Or with explicit settings
    store = configrepo.ConfigStore(
        configrepo.StoreSettings(owner="acme", repo="config", ref="main"),
        configrepo.GitHubClient(token="ghp_..."),
    )

    # Publish a release
    app = store.apps_find(AppsQuery(name="web"))
    app.environment = {**(app.environment or {}), "FOO": "bar"}
    release = store.releases_create(app, "Set FOO")

    # Read history, newest first
    for release in store.releases(ReleasesQuery(app=app)):
        print(release.version, release.description)
"""

from typing import Any, Dict, List, Optional
import logging

from .config import StoreSettings, load_config
from .domain import App, AppsQuery, Release, ReleasesQuery
from .exit_codes import ConfigError, OperationNotImplementedError
from .infra import GitHubClient
from .paths import path_join
from .services import AppService, ReleaseService

logger = logging.getLogger(__name__)


class ConfigStore:
    """
    Application configuration store backed by the GitHub Git API.

    Each app is a directory under ``settings.base_path``; each release is a
    commit merged into ``settings.ref``.
    """

    def __init__(self, settings: StoreSettings, client: Optional[GitHubClient] = None):
        """
        Initialize ConfigStore.

        Args:
            settings: Validated store settings
            client: GitHub client (creates one from GITHUB_TOKEN if None)
        """
        self.settings = settings
        self.client = client or GitHubClient()
        self.release_service = ReleaseService(settings, self.client)
        self.app_service = AppService(settings, self.client)

    def path(self, *elem: str) -> str:
        """Full repository path for ``elem`` below the base path."""
        return path_join(self.settings.base_path, *elem)

    # Releases

    def releases_create(self, app: App, description: str) -> Release:
        """Publish a new release of ``app``, incrementing its version."""
        return self.release_service.create(app, description)

    def releases(self, query: ReleasesQuery) -> List[Release]:
        """Release history of ``query.app``, most recent first."""
        return self.release_service.history(query)

    def releases_find(self, query: ReleasesQuery) -> Release:
        """
        Find a single release by version.

        Raises:
            OperationNotImplementedError: ``query.version`` is not set
            NotFoundError: No release has that version
        """
        if query.version is None:
            raise OperationNotImplementedError("ReleasesFind not implemented")
        return self.release_service.find(query.app, query.version)

    def releases_rollback(self, app: App, version: int, description: Optional[str] = None) -> Release:
        """Publish a new release restoring the configuration of ``version``."""
        return self.release_service.rollback(app, version, description)

    # Apps

    def apps(self, query: Optional[AppsQuery] = None) -> List[App]:
        """All apps matching ``query``, with only names populated."""
        return self.app_service.list(query)

    def apps_find(self, query: AppsQuery) -> App:
        """The first app matching ``query``, fully loaded."""
        return self.app_service.find(query)

    def apps_destroy(self, app: App) -> None:
        raise OperationNotImplementedError("AppsDestroy not implemented")

    # Maintenance

    def reset(self) -> None:
        raise OperationNotImplementedError("refusing to reset GitHub storage backend")

    def is_healthy(self) -> bool:
        """
        Check that the configured ref can be resolved.

        Raises:
            APIError: GitHub is unreachable or the ref does not exist
        """
        self.app_service.tip()
        return True


def create(config: Optional[Dict[str, Any]] = None, **kwargs) -> ConfigStore:
    """
    Create a ConfigStore from configuration.

    Args:
        config: Loaded config dict (loads from file/environment if None)
        **kwargs: Overrides for the ``store`` section (owner, repo, ref, ...)

    Returns:
        Configured ConfigStore instance

    Raises:
        ConfigError: Required settings are missing or invalid
    """
    if config is None:
        config = load_config()

    if kwargs:
        config = dict(config)
        config['store'] = {**config.get('store', {}), **kwargs}

    settings = StoreSettings.from_config(config)
    github = config.get('github', {})
    # Values from CONFIGREPO_GITHUB_TIMEOUT_SECONDS arrive as strings.
    try:
        timeout = float(github.get('timeout_seconds', 30))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"github.timeout_seconds must be a number: {e}") from e
    if timeout <= 0:
        raise ConfigError("github.timeout_seconds must be > 0")

    client = GitHubClient(
        token=github.get('token') or None,
        base_url=github.get('api_url') or 'https://api.github.com',
        timeout=timeout,
    )
    return ConfigStore(settings, client)
