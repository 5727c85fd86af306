"""
Container image reference for configrepo.

An image reference has the shape:

    [registry/]repository[:tag][@digest]

e.g. "remind101/acme-inc:latest", "quay.io/remind101/acme-inc@sha256:abc...".
The registry part is only recognised when the first path component looks
like a host (contains "." or ":", or is "localhost"), following the Docker
convention.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Image:
    """
    Immutable container image reference.

    Attributes:
        repository: Repository path (e.g., "remind101/acme-inc")
        registry: Registry host or None for the default registry
        tag: Tag or None
        digest: Content digest (e.g., "sha256:...") or None
    """

    repository: str
    registry: Optional[str] = None
    tag: Optional[str] = None
    digest: Optional[str] = None

    @classmethod
    def parse(cls, text: str) -> 'Image':
        """
        Parse an image reference.

        Raises:
            ValueError: If the reference is empty or malformed
        """
        ref = text.strip()
        if not ref:
            raise ValueError("empty image reference")
        if any(c.isspace() for c in ref):
            raise ValueError(f"invalid image reference {text!r}: contains whitespace")

        digest = None
        if '@' in ref:
            ref, digest = ref.split('@', 1)
            if not digest or ':' not in digest:
                raise ValueError(f"invalid image reference {text!r}: bad digest")

        registry = None
        first, sep, rest = ref.partition('/')
        if sep and ('.' in first or ':' in first or first == 'localhost'):
            registry = first
            ref = rest

        tag = None
        # A ":" after the last "/" separates the tag.
        last_slash = ref.rfind('/')
        colon = ref.rfind(':')
        if colon > last_slash:
            ref, tag = ref[:colon], ref[colon + 1:]
            if not tag:
                raise ValueError(f"invalid image reference {text!r}: empty tag")

        if not ref or ref.startswith('/') or ref.endswith('/') or '//' in ref:
            raise ValueError(f"invalid image reference {text!r}: bad repository")

        return cls(repository=ref, registry=registry, tag=tag, digest=digest)

    def __str__(self) -> str:
        s = self.repository
        if self.registry:
            s = f"{self.registry}/{s}"
        if self.tag:
            s = f"{s}:{self.tag}"
        if self.digest:
            s = f"{s}@{self.digest}"
        return s
