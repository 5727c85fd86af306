"""
Application and release domain objects for configrepo.

An App is the configuration of one application as the control plane sees
it. A Release is a snapshot of an App taken when a commit carrying that
configuration was merged into the target ref.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, Any

from .image import Image


@dataclass
class App:
    """
    Configuration for a single application.

    The store only persists and reconstructs this object. ``version`` is
    bumped by exactly one for each published release.

    Attributes:
        name: Unique application name, also its directory name
        version: Release counter, starts at 0
        environment: Environment variables, or None when unset
        image: Container image, or None when unset
        formation: Process type -> scaling/sizing parameters, or None
    """

    name: str
    version: int = 0
    environment: Optional[Dict[str, str]] = None
    image: Optional[Image] = None
    formation: Optional[Dict[str, Dict[str, Any]]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'version': self.version,
            'environment': self.environment,
            'image': str(self.image) if self.image else None,
            'formation': self.formation,
        }


@dataclass(frozen=True)
class Release:
    """
    Immutable snapshot of an App at publish time.

    A release has no identifier of its own; it is identified by its
    position in the commit history of the app's VERSION file.
    """

    app: App
    description: str
    created_at: Optional[datetime] = None

    @property
    def version(self) -> int:
        return self.app.version

    def to_dict(self) -> Dict[str, Any]:
        """Heroku-style release representation."""
        data: Dict[str, Any] = {
            'app': self.app.name,
            'version': self.app.version,
            'description': self.description,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'slug': None,
        }
        if self.app.image is not None:
            data['slug'] = {'id': str(self.app.image)}
        return data


@dataclass(frozen=True)
class AppsQuery:
    """Filter for listing apps. ``name`` is an exact match."""
    name: Optional[str] = None


@dataclass(frozen=True)
class ReleasesQuery:
    """
    Query for an app's releases.

    Attributes:
        app: App whose releases to read (only ``name`` is used)
        version: Select a single release by version
        limit: Only decode the most recent ``limit`` releases
    """
    app: App
    version: Optional[int] = None
    limit: Optional[int] = None
