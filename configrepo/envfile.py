"""
Reading and writing env files (the app.env format).

Writing produces one KEY=VALUE line per variable in sorted key order.
Values that would not survive an unquoted round trip are written in double
quotes with backslash escapes. Reading goes through python-dotenv's parser
without variable interpolation, so "${FOO}" is kept literally.
"""

import io
import re
from typing import Dict, Mapping

from dotenv.parser import parse_stream

_VALID_KEY = re.compile(r"[^=#\s'\"\\]+")
_SAFE_VALUE = re.compile(r"[A-Za-z0-9_\-./:@%+,=]*")
_ESCAPES = {
    '\\': '\\\\',
    '"': '\\"',
    '\n': '\\n',
    '\r': '\\r',
    '\t': '\\t',
}


def _quote(value: str) -> str:
    if _SAFE_VALUE.fullmatch(value):
        return value
    return '"' + ''.join(_ESCAPES.get(c, c) for c in value) + '"'


def dumps(env: Mapping[str, str]) -> str:
    """
    Serialize environment variables to env-file text.

    Raises:
        ValueError: If a key cannot be represented or a value is not a string
    """
    lines = []
    for key in sorted(env):
        value = env[key]
        if not isinstance(key, str) or not _VALID_KEY.fullmatch(key):
            raise ValueError(f"invalid environment variable name {key!r}")
        if not isinstance(value, str):
            raise ValueError(f"value for {key} must be a string, got {type(value).__name__}")
        lines.append(f"{key}={_quote(value)}\n")
    return ''.join(lines)


def loads(text: str) -> Dict[str, str]:
    """
    Parse env-file text into a dict.

    A bare ``KEY`` line without "=" maps to an empty string.

    Raises:
        ValueError: On a line python-dotenv cannot parse
    """
    env: Dict[str, str] = {}
    for binding in parse_stream(io.StringIO(text)):
        if binding.error:
            line = binding.original.line
            raise ValueError(f"line {line}: cannot parse {binding.original.string.strip()!r}")
        if binding.key is None:
            # Blank line or comment
            continue
        env[binding.key] = binding.value if binding.value is not None else ""
    return env
