"""
GitHub API client infrastructure for configrepo.

Thin wrapper over the parts of the GitHub REST API the store orchestrates:
- Git data API: refs, commits, trees
- Repositories API: merges, commit listing, contents

Every call is a single blocking request. Nothing is retried here; failures
are raised as APIError (or a subclass) naming the operation.
"""

import logging
import os
import time
from dataclasses import dataclass
from typing import Optional, List, Dict, Any, Iterable, Union
from urllib.parse import quote

import requests

from ..domain.tree import TreeEntry
from ..exit_codes import APIError, RemoteNotFoundError, MergeConflictError

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
USER_AGENT = "configrepo"


@dataclass
class RateLimitStatus:
    """Rate limit headers of the most recent response."""
    remaining: int
    limit: int
    reset_time: int  # epoch seconds
    used: int = 0

    LOW_WATERMARK = 100

    @classmethod
    def from_headers(cls, headers) -> Optional['RateLimitStatus']:
        """None when the response carries no (or unreadable) rate limit headers."""
        try:
            remaining = int(headers['X-RateLimit-Remaining'])
            limit = int(headers['X-RateLimit-Limit'])
            reset_time = int(headers.get('X-RateLimit-Reset', 0))
            used = int(headers.get('X-RateLimit-Used', 0))
        except (KeyError, ValueError, TypeError):
            return None
        return cls(remaining=remaining, limit=limit, reset_time=reset_time, used=used)

    @property
    def minutes_until_reset(self) -> int:
        return max(0, (self.reset_time - int(time.time())) // 60)

    @property
    def is_low(self) -> bool:
        return self.remaining < self.LOW_WATERMARK


def normalize_ref(ref: str) -> str:
    """
    Normalize a ref name to the form the git refs API expects.

    "main", "heads/main" and "refs/heads/main" all become "heads/main".
    """
    if ref.startswith('refs/'):
        ref = ref[len('refs/'):]
    if not ref.startswith(('heads/', 'tags/')):
        ref = f"heads/{ref}"
    return ref


def branch_name(ref: str) -> str:
    """Short branch name for APIs that take one ("refs/heads/main" -> "main")."""
    ref = normalize_ref(ref)
    if ref.startswith('heads/'):
        return ref[len('heads/'):]
    return ref


class GitHubClient:
    """
    GitHub API client.

    Example:
        client = GitHubClient(token="ghp_...")
        sha = client.get_ref("acme", "config", "main")["object"]["sha"]
    """

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: str = GITHUB_API_URL,
        timeout: float = 30,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize GitHubClient.

        Args:
            token: GitHub token (defaults to GITHUB_TOKEN env var)
            base_url: API root, override for GitHub Enterprise
            timeout: Per-request timeout in seconds
            session: Session to reuse (a new one is created if None)
        """
        self.token = token or os.environ.get('GITHUB_TOKEN')
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'Accept': 'application/vnd.github+json',
            'User-Agent': USER_AGENT,
        })
        if self.token:
            self.session.headers['Authorization'] = f'token {self.token}'
        self._rate_limit_status: Optional[RateLimitStatus] = None

    @property
    def rate_limit_status(self) -> Optional[RateLimitStatus]:
        """Rate limit status seen on the last response, if any."""
        return self._rate_limit_status

    def _track_rate_limit(self, headers) -> None:
        status = RateLimitStatus.from_headers(headers)
        if status is None:
            return
        self._rate_limit_status = status
        if status.is_low:
            logger.warning(
                f"GitHub API rate limit low: {status.remaining}/{status.limit} left, "
                f"resets in {status.minutes_until_reset} minutes"
            )

    def _request(
        self,
        method: str,
        endpoint: str,
        operation: str,
        **kwargs
    ) -> requests.Response:
        """
        Perform one API request and map failures to APIError.

        Args:
            method: HTTP method
            endpoint: Path below the API root, or an absolute URL
            operation: Human-readable description used in error messages
        """
        if endpoint.startswith('http'):
            url = endpoint
        else:
            url = f"{self.base_url}/{endpoint.lstrip('/')}"

        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise APIError(f"{operation}: {e}", operation=operation) from e

        self._track_rate_limit(response.headers)

        if response.status_code < 400:
            return response

        message = _error_message(response)
        status = response.status_code
        logger.debug(f"GitHub API {method} {url} -> {status}: {message}")

        if status == 404:
            raise RemoteNotFoundError(f"{operation}: {message}", operation=operation, status=status)
        if status == 409:
            raise MergeConflictError(f"{operation}: {message}", operation=operation, status=status)
        raise APIError(f"{operation}: {status} {message}", operation=operation, status=status)

    def _json(self, response: requests.Response, operation: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise APIError(f"{operation}: invalid JSON in response", operation=operation) from e

    # Git data API

    def get_ref(self, owner: str, repo: str, ref: str) -> Dict[str, Any]:
        """Get a ref. ``result["object"]["sha"]`` is the tip commit."""
        ref = normalize_ref(ref)
        operation = f"get {ref!r} ref"
        response = self._request('GET', f"repos/{owner}/{repo}/git/ref/{ref}", operation)
        return self._json(response, operation)

    def get_commit(self, owner: str, repo: str, sha: str) -> Dict[str, Any]:
        """Get a git commit object (tree, parents, message, committer)."""
        operation = f"get commit {sha!r}"
        response = self._request('GET', f"repos/{owner}/{repo}/git/commits/{sha}", operation)
        return self._json(response, operation)

    def create_tree(
        self,
        owner: str,
        repo: str,
        base_tree: str,
        entries: Iterable[TreeEntry]
    ) -> Dict[str, Any]:
        """Create a tree from ``base_tree`` plus ``entries``."""
        operation = f"create tree on {base_tree!r}"
        payload = {
            'base_tree': base_tree,
            'tree': [entry.to_dict() for entry in entries],
        }
        response = self._request('POST', f"repos/{owner}/{repo}/git/trees", operation, json=payload)
        return self._json(response, operation)

    def create_commit(
        self,
        owner: str,
        repo: str,
        message: str,
        tree_sha: str,
        parents: List[str]
    ) -> Dict[str, Any]:
        """Create a commit object pointing at ``tree_sha``."""
        operation = f"create commit for tree {tree_sha!r}"
        payload = {
            'message': message,
            'tree': tree_sha,
            'parents': parents,
        }
        response = self._request('POST', f"repos/{owner}/{repo}/git/commits", operation, json=payload)
        return self._json(response, operation)

    # Repositories API

    def merge(
        self,
        owner: str,
        repo: str,
        base: str,
        head: str,
        commit_message: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Merge ``head`` into branch ``base``.

        Returns the merge commit, or None when ``base`` already contained
        ``head`` (204 No Content).
        """
        operation = f"merging {head!r} into {base!r}"
        payload: Dict[str, Any] = {'base': base, 'head': head}
        if commit_message:
            payload['commit_message'] = commit_message
        response = self._request('POST', f"repos/{owner}/{repo}/merges", operation, json=payload)
        if response.status_code == 204:
            return None
        return self._json(response, operation)

    def list_commits(
        self,
        owner: str,
        repo: str,
        sha: str,
        path: Optional[str] = None,
        per_page: int = 100,
        max_pages: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        List commits reachable from ``sha``, newest first.

        Follows the Link header until the last page, or ``max_pages``.
        """
        operation = f"list commits for {path or sha!r}"
        params: Dict[str, Any] = {'sha': sha, 'per_page': per_page}
        if path:
            params['path'] = path

        commits: List[Dict[str, Any]] = []
        url: Optional[str] = f"repos/{owner}/{repo}/commits"
        pages = 0
        while url:
            response = self._request('GET', url, operation, params=params)
            data = self._json(response, operation)
            if not isinstance(data, list):
                raise APIError(f"{operation}: expected a list of commits", operation=operation)
            commits.extend(data)

            pages += 1
            if max_pages is not None and pages >= max_pages:
                break

            # The next link already carries the query string.
            url = response.links.get('next', {}).get('url')
            params = None

        return commits

    def get_contents(
        self,
        owner: str,
        repo: str,
        path: str,
        ref: str
    ) -> Union[Dict[str, Any], List[Dict[str, Any]]]:
        """
        Get file or directory contents at ``ref``.

        Returns a dict for a file (base64 ``content``) and a list of
        entries for a directory.
        """
        operation = f"get contents of {path!r} at {ref!r}"
        # Stored names may contain "%2F" escapes; quote again so the API
        # sees them literally.
        response = self._request(
            'GET',
            f"repos/{owner}/{repo}/contents/{quote(path, safe='/')}",
            operation,
            params={'ref': ref},
        )
        return self._json(response, operation)


def _error_message(response: requests.Response) -> str:
    """Extract GitHub's error message from a failed response."""
    try:
        data = response.json()
    except ValueError:
        return response.reason or ''
    if isinstance(data, dict) and data.get('message'):
        return data['message']
    return response.reason or ''
