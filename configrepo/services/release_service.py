"""
Release service for configrepo.

Publishes releases as commits merged into the target ref, and reads the
release history back from the commit log of each app's VERSION file.
"""

import logging
import math
import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import List, Optional

from .. import codec
from ..config import StoreSettings
from ..domain import App, Release, ReleasesQuery, TreeEntry
from ..exit_codes import MergeConflictError, NotFoundError, RefMovedError, RemoteNotFoundError
from ..infra import GitHubClient, RefContentFetcher, branch_name
from ..paths import path_join

logger = logging.getLogger(__name__)

# GitHub caps per_page at 100 for the commits API.
MAX_PER_PAGE = 100


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a GitHub ISO-8601 timestamp ("2024-05-01T12:00:00Z")."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        logger.warning(f"Unparseable commit timestamp {value!r}")
        return None


class ReleaseService:
    """
    Service for publishing and reading releases.

    Publishing a release is roughly equivalent to:

        > git checkout -b changes
        > write VERSION app.env image.txt services.json
        > git rm the files of cleared fields
        > git commit -m "Description of the changes"
        > git checkout <ref>
        > git merge --no-ff changes

    Example:
        service = ReleaseService(settings, client)
        release = service.create(app, "Set FOO")
        for release in service.history(ReleasesQuery(app=app)):
            print(release.version, release.description)
    """

    def __init__(self, settings: StoreSettings, client: GitHubClient):
        self.settings = settings
        self.client = client

    def fetcher(self, ref: str) -> RefContentFetcher:
        """Content fetcher pinned to ``ref``."""
        s = self.settings
        return RefContentFetcher(self.client, s.owner, s.repo, s.base_path, ref)

    def create(self, app: App, description: str) -> Release:
        """
        Publish a new release of ``app``.

        ``app.version`` is incremented before anything is sent. If the
        release fails, the increment is undone so a retry publishes the
        same version again.

        Raises:
            EncodeError: The app cannot be serialized (nothing was sent)
            APIError: A GitHub call failed
        """
        original_version = app.version
        attempt = 0
        while True:
            app.version = original_version + 1
            try:
                return self._publish(app, description)
            except (RefMovedError, MergeConflictError) as e:
                app.version = original_version
                if attempt >= self.settings.max_retries:
                    raise
                delay = min(self.settings.base_delay * (2 ** attempt), self.settings.max_delay)
                logger.info(f"{e}; retrying release of {app.name} in {delay}s (attempt {attempt + 1})")
                time.sleep(delay)
                attempt += 1
            except Exception:
                app.version = original_version
                raise

    def _publish(self, app: App, description: str) -> Release:
        s = self.settings
        owner, repo = s.owner, s.repo

        entries = codec.tree_entries(app, s.base_path)

        ref = self.client.get_ref(owner, repo, s.ref)
        tip = ref['object']['sha']
        logger.debug(f"{s.ref} is at {tip}")

        last_commit = self.client.get_commit(owner, repo, tip)
        base_tree = last_commit['tree']['sha']

        entries = entries + self._removals(app, tip)

        tree = self.client.create_tree(owner, repo, base_tree, entries)
        commit = self.client.create_commit(owner, repo, description, tree['sha'], [tip])
        logger.debug(f"Created commit {commit['sha']} with tree {tree['sha']}")

        if s.verify_ref:
            current = self.client.get_ref(owner, repo, s.ref)['object']['sha']
            if current != tip:
                raise RefMovedError(s.ref, tip, current)

        self.client.merge(owner, repo, base=branch_name(s.ref), head=commit['sha'])
        logger.info(f"Released {app.name} v{app.version}: {description}")

        created_at = parse_timestamp((commit.get('committer') or {}).get('date'))
        return Release(
            app=app,
            description=description,
            created_at=created_at or datetime.now(timezone.utc),
        )

    def _removals(self, app: App, tip: str) -> List[TreeEntry]:
        """Deletion entries for files of cleared fields stored at ``tip``."""
        try:
            listing = self.fetcher(tip).list_dir(app.name)
        except RemoteNotFoundError:
            # First release of this app.
            return []
        stored = [entry.name for entry in listing if not entry.is_dir]
        removals = codec.removed_entries(app, self.settings.base_path, stored)
        if removals:
            logger.debug(f"Removing {', '.join(e.path for e in removals)}")
        return removals

    def history(self, query: ReleasesQuery) -> List[Release]:
        """
        Releases of ``query.app``, most recent first.

        Each release is decoded from the tree of the commit that touched the
        app's VERSION file, so it reflects exactly what was published.
        """
        s = self.settings
        name = query.app.name

        per_page = MAX_PER_PAGE
        max_pages = None
        if query.limit is not None:
            if query.limit <= 0:
                return []
            per_page = min(query.limit, MAX_PER_PAGE)
            max_pages = math.ceil(query.limit / per_page)

        commits = self.client.list_commits(
            s.owner,
            s.repo,
            sha=branch_name(s.ref),
            path=path_join(s.base_path, name, codec.FILE_VERSION),
            per_page=per_page,
            max_pages=max_pages,
        )
        if query.limit is not None:
            commits = commits[:query.limit]

        # One decode (four reads) per commit.
        releases = []
        for commit in commits:
            app = codec.load_app(self.fetcher(commit['sha']), name)
            detail = commit.get('commit') or {}
            releases.append(Release(
                app=app,
                description=detail.get('message', ''),
                created_at=parse_timestamp((detail.get('committer') or {}).get('date')),
            ))

        return releases

    def find(self, app: App, version: int) -> Release:
        """
        Find the release of ``app`` with the given version.

        Raises:
            NotFoundError: No release has that version
        """
        for release in self.history(ReleasesQuery(app=app)):
            if release.version == version:
                return release
        raise NotFoundError(f"release v{version} of {app.name} not found")

    def rollback(self, app: App, version: int, description: Optional[str] = None) -> Release:
        """
        Publish a new release restoring the configuration of ``version``.

        The new release gets the next version number after ``app.version``;
        history is never rewritten. ``app`` itself is left untouched.
        """
        target = self.find(app, version)
        restored = replace(
            app,
            environment=target.app.environment,
            image=target.app.image,
            formation=target.app.formation,
        )
        return self.create(restored, description or f"Rollback to v{version}")
