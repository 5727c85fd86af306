"""
App service for configrepo.

Every directory directly under the store base path is an application.
"""

import logging
from typing import List, Optional
from urllib.parse import unquote_plus

from .. import codec
from ..config import StoreSettings
from ..domain import App, AppsQuery
from ..exit_codes import NotFoundError, RemoteNotFoundError
from ..infra import GitHubClient, RefContentFetcher

logger = logging.getLogger(__name__)


class AppService:
    """
    Service for listing and loading applications.

    Example:
        service = AppService(settings, client)
        for app in service.list():
            print(app.name)
        web = service.find(AppsQuery(name="web"))
    """

    def __init__(self, settings: StoreSettings, client: GitHubClient):
        self.settings = settings
        self.client = client

    def fetcher(self, ref: Optional[str] = None) -> RefContentFetcher:
        """Content fetcher pinned to ``ref`` (the configured ref by default)."""
        s = self.settings
        return RefContentFetcher(self.client, s.owner, s.repo, s.base_path, ref or s.ref)

    def tip(self) -> str:
        """Commit sha the configured ref currently points at."""
        s = self.settings
        return self.client.get_ref(s.owner, s.repo, s.ref)['object']['sha']

    def list(self, query: Optional[AppsQuery] = None, ref: Optional[str] = None) -> List[App]:
        """
        List apps, with only ``name`` populated.

        Args:
            query: Optional exact-name filter
            ref: Ref or commit sha to list at (configured ref if None)
        """
        try:
            entries = self.fetcher(ref).list_dir()
        except RemoteNotFoundError:
            # The base directory appears with the first release.
            logger.debug(f"{self.settings.base_path} does not exist at {ref or self.settings.ref}")
            return []
        # Directory names are escaped app names.
        apps = [App(name=unquote_plus(entry.name)) for entry in entries if entry.is_dir]
        return filter_apps(apps, query or AppsQuery())

    def find(self, query: AppsQuery) -> App:
        """
        Find the first app matching ``query`` and load its configuration.

        The ref is resolved to a commit sha once, so the listing and every
        file read see the same snapshot.

        Raises:
            NotFoundError: No app matches
        """
        sha = self.tip()
        apps = self.list(query, ref=sha)
        if not apps:
            raise NotFoundError(f"app {query.name!r} not found" if query.name else "app not found")
        if len(apps) > 1:
            logger.debug(f"{len(apps)} apps match {query}; using {apps[0].name}")

        return codec.load_app(self.fetcher(sha), apps[0].name)


def filter_apps(apps: List[App], query: AppsQuery) -> List[App]:
    """Apply ``query`` to a list of apps."""
    if query.name is not None:
        apps = [app for app in apps if app.name == query.name]
    return apps
