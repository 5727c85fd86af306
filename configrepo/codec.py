"""
Mapping between an App and the files stored for it.

Each app lives in its own directory under the store base path:

    <base>/<name>/VERSION        "v<version>"
    <base>/<name>/app.env        environment, env-file format
    <base>/<name>/image.txt      canonical image reference
    <base>/<name>/services.json  formation, indented JSON with sorted keys

VERSION is always written and always required. The other three files are
written only when the field is set, and a missing file decodes to None.
Clearing a field removes its file (see removed_entries).
"""

import json
import logging
from typing import Iterable, List

from . import envfile
from .domain import App, Image, TreeEntry
from .exit_codes import DecodeError, EncodeError, FileMissingError
from .infra.contents import ContentFetcher
from .paths import path_join

logger = logging.getLogger(__name__)

FILE_VERSION = "VERSION"
FILE_ENV = "app.env"
FILE_IMAGE = "image.txt"
FILE_SERVICES = "services.json"


def format_version(version: int) -> str:
    return f"v{version}"


def parse_version(text: str) -> int:
    """
    Parse VERSION file content.

    Raises:
        ValueError: If the content is not "v" followed by an integer
    """
    text = text.strip()
    if not text.startswith('v'):
        raise ValueError(f"expected 'v<number>', got {text!r}")
    number = text[1:]
    if not number.isdigit():
        raise ValueError(f"expected 'v<number>', got {text!r}")
    return int(number)


def tree_entries(app: App, base_path: str) -> List[TreeEntry]:
    """
    Build the tree entries describing ``app``.

    Raises:
        EncodeError: If the environment or formation cannot be serialized
    """
    def path(filename: str) -> str:
        return path_join(base_path, app.name, filename)

    try:
        path(FILE_VERSION)
    except ValueError as e:
        raise EncodeError(base_path, f"invalid app name {app.name!r}: {e}") from e

    entries = [TreeEntry(path=path(FILE_VERSION), content=format_version(app.version))]

    if app.environment is not None:
        try:
            content = envfile.dumps(app.environment)
        except ValueError as e:
            raise EncodeError(path(FILE_ENV), str(e)) from e
        entries.append(TreeEntry(path=path(FILE_ENV), content=content))

    if app.image is not None:
        entries.append(TreeEntry(path=path(FILE_IMAGE), content=str(app.image)))

    if app.formation is not None:
        try:
            content = json.dumps(app.formation, indent=2, sort_keys=True)
        except (TypeError, ValueError) as e:
            raise EncodeError(path(FILE_SERVICES), str(e)) from e
        entries.append(TreeEntry(path=path(FILE_SERVICES), content=content))

    return entries


def removed_entries(app: App, base_path: str, stored: Iterable[str]) -> List[TreeEntry]:
    """
    Deletion entries for stored files whose field is now None.

    ``stored`` holds the file names currently in the app's directory. A file
    is only removed when it exists, so the tree never names a missing path.
    """
    stored = set(stored)
    cleared = (
        (FILE_ENV, app.environment),
        (FILE_IMAGE, app.image),
        (FILE_SERVICES, app.formation),
    )
    return [
        TreeEntry.deletion(path_join(base_path, app.name, filename))
        for filename, value in cleared
        if value is None and filename in stored
    ]


def _read_text(fetcher: ContentFetcher, name: str, filename: str) -> str:
    raw = fetcher.read_file(name, filename)
    try:
        return raw.decode('utf-8')
    except UnicodeDecodeError as e:
        raise DecodeError(fetcher.path(name, filename), f"not UTF-8: {e}") from e


def _read_optional(fetcher: ContentFetcher, name: str, filename: str):
    try:
        return _read_text(fetcher, name, filename)
    except FileMissingError:
        logger.debug(f"{name}/{filename} not present at {fetcher.ref}")
        return None


def load_app(fetcher: ContentFetcher, name: str) -> App:
    """
    Decode the app called ``name`` from the files at the fetcher's ref.

    Either every file decodes and a complete App is returned, or a
    DecodeError naming the offending file is raised.

    Raises:
        FileMissingError: VERSION does not exist
        DecodeError: A file exists but cannot be decoded
    """
    version_text = _read_text(fetcher, name, FILE_VERSION)
    try:
        version = parse_version(version_text)
    except ValueError as e:
        raise DecodeError(fetcher.path(name, FILE_VERSION), str(e)) from e

    formation = None
    services_text = _read_optional(fetcher, name, FILE_SERVICES)
    if services_text is not None:
        try:
            formation = json.loads(services_text)
        except ValueError as e:
            raise DecodeError(fetcher.path(name, FILE_SERVICES), f"invalid JSON: {e}") from e
        if formation is not None and not isinstance(formation, dict):
            raise DecodeError(fetcher.path(name, FILE_SERVICES), "expected a JSON object")

    image = None
    image_text = _read_optional(fetcher, name, FILE_IMAGE)
    if image_text is not None:
        try:
            image = Image.parse(image_text)
        except ValueError as e:
            raise DecodeError(fetcher.path(name, FILE_IMAGE), str(e)) from e

    environment = None
    env_text = _read_optional(fetcher, name, FILE_ENV)
    if env_text is not None:
        try:
            environment = envfile.loads(env_text)
        except ValueError as e:
            raise DecodeError(fetcher.path(name, FILE_ENV), str(e)) from e

    return App(
        name=name,
        version=version,
        environment=environment,
        image=image,
        formation=formation,
    )
