"""
Path building for files stored through the GitHub contents and trees APIs.
"""

from urllib.parse import quote_plus

# The GitHub API always uses "/" as the directory separator.
DIRECTORY_SEPARATOR = "/"

# File mode for every blob we write.
# https://docs.github.com/en/rest/git/trees#create-a-tree
BLOB_PERMS = "100644"


def _escape(component: str) -> str:
    if not component:
        raise ValueError("empty path component")
    # "." and ".." survive quote_plus and would be resolved as directory steps.
    if component.strip('.') == '':
        return '%2E' * len(component)
    return quote_plus(component)


def path_join(base: str, *elem: str) -> str:
    """
    Join path components onto base without allowing path traversal.

    Each component is query-escaped on its own, so a "/" inside a component
    becomes "%2F" and can never introduce a new directory level. Components
    made only of dots are escaped too (".." becomes "%2E%2E"), so the result
    is always lexically under base. Escaped components round-trip through
    ``urllib.parse.unquote_plus``.

    Example:
        >>> path_join("apps", "a/../../etc")
        'apps/a%2F..%2F..%2Fetc'

    Raises:
        ValueError: If a component is empty
    """
    return DIRECTORY_SEPARATOR.join([base, *(_escape(e) for e in elem)])
