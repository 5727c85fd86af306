"""
Content fetchers: read stored files at one fixed ref.

A fetcher is bound to a single ref (a branch name or a commit sha) for its
whole life. Decoding an app performs several reads; binding them all to one
commit sha guarantees they see the same snapshot.
"""

import base64
import binascii
import logging
from typing import List, Protocol

from ..domain.tree import ContentEntry
from ..exit_codes import DecodeError, FileMissingError, RemoteNotFoundError
from ..paths import path_join
from .github_client import GitHubClient

logger = logging.getLogger(__name__)


class ContentFetcher(Protocol):
    """Reads files below the store base path at a bound ref."""

    @property
    def ref(self) -> str: ...

    def path(self, *elem: str) -> str: ...

    def read_file(self, *elem: str) -> bytes: ...

    def list_dir(self, *elem: str) -> List[ContentEntry]: ...


class RefContentFetcher:
    """
    ContentFetcher backed by the GitHub contents API.

    Example:
        fetcher = RefContentFetcher(client, "acme", "config", "apps", commit_sha)
        raw = fetcher.read_file("web", "VERSION")
    """

    def __init__(self, client: GitHubClient, owner: str, repo: str, base_path: str, ref: str):
        self.client = client
        self.owner = owner
        self.repo = repo
        self.base_path = base_path
        self._ref = ref

    @property
    def ref(self) -> str:
        return self._ref

    def path(self, *elem: str) -> str:
        return path_join(self.base_path, *elem)

    def read_file(self, *elem: str) -> bytes:
        """
        Read one file as raw bytes.

        Raises:
            FileMissingError: The file does not exist at this ref
            DecodeError: The path is not a file or its content is undecodable
        """
        path = self.path(*elem)
        try:
            data = self.client.get_contents(self.owner, self.repo, path, self._ref)
        except RemoteNotFoundError as e:
            raise FileMissingError(path, f"not found at {self._ref}") from e

        if not isinstance(data, dict) or data.get('type', 'file') != 'file':
            raise DecodeError(path, "not a file")

        encoding = data.get('encoding')
        content = data.get('content') or ''
        if encoding == 'base64':
            try:
                return base64.b64decode(content)
            except (binascii.Error, ValueError) as e:
                raise DecodeError(path, f"invalid base64 content: {e}") from e
        if encoding in (None, '', 'none', 'utf-8'):
            return content.encode('utf-8')
        raise DecodeError(path, f"unsupported encoding {encoding!r}")

    def list_dir(self, *elem: str) -> List[ContentEntry]:
        """
        List a directory below the base path.

        Raises:
            APIError: The listing failed, including a missing directory
            DecodeError: The path is a file, not a directory
        """
        path = self.path(*elem) if elem else self.base_path
        data = self.client.get_contents(self.owner, self.repo, path, self._ref)
        if not isinstance(data, list):
            raise DecodeError(path, "not a directory")
        return [ContentEntry.from_api_response(item) for item in data]
