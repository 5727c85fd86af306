"""
Git tree entry value objects.
"""

from dataclasses import dataclass
from typing import Dict, Any, Optional

from ..paths import BLOB_PERMS


@dataclass(frozen=True)
class TreeEntry:
    """
    One file to write in a commit.

    ``content`` None removes the path from the tree instead.
    """
    path: str
    content: Optional[str]
    mode: str = BLOB_PERMS
    type: str = "blob"

    @classmethod
    def deletion(cls, path: str) -> 'TreeEntry':
        return cls(path=path, content=None)

    @property
    def is_deletion(self) -> bool:
        return self.content is None

    def to_dict(self) -> Dict[str, Any]:
        """Item for the GitHub create-tree payload."""
        item: Dict[str, Any] = {
            'path': self.path,
            'mode': self.mode,
            'type': self.type,
        }
        if self.is_deletion:
            # A null sha deletes the path from base_tree.
            item['sha'] = None
        else:
            item['content'] = self.content
        return item


@dataclass(frozen=True)
class ContentEntry:
    """One item of a directory listing returned by the contents API."""
    name: str
    path: str
    type: str  # "file", "dir", "symlink" or "submodule"
    sha: str = ""

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> 'ContentEntry':
        return cls(
            name=data.get('name', ''),
            path=data.get('path', ''),
            type=data.get('type', ''),
            sha=data.get('sha', ''),
        )

    @property
    def is_dir(self) -> bool:
        return self.type == 'dir'
