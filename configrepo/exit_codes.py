"""
Standard exit codes and error types for configrepo.

Every error the store raises derives from CommandError, so the CLI can map
it to an exit code and library callers can tell "not found" apart from a
failed remote call.
"""
from typing import Optional

# Standard POSIX exit codes
SUCCESS = 0              # Successful termination
GENERAL_ERROR = 1        # General errors
USAGE_ERROR = 2          # Misuse of shell command (wrong arguments, etc.)

# Application-specific exit codes (64-113 are typically available)
NOT_FOUND = 64           # No application or release matching the query
API_ERROR = 65           # GitHub API call failed
CONFIG_ERROR = 66        # Configuration file or settings error
DATA_ERROR = 70          # Stored file missing or undecodable
INTERRUPTED = 130        # Terminated by Ctrl+C (SIGINT)

# Exit codes for exceptions that escape without being wrapped
EXCEPTION_EXIT_CODES = {
    'ConnectionError': API_ERROR,
    'Timeout': API_ERROR,
    'HTTPError': API_ERROR,
    'UnicodeDecodeError': DATA_ERROR,
    'JSONDecodeError': DATA_ERROR,
    'KeyboardInterrupt': INTERRUPTED,
}


def get_exit_code_for_exception(exc: Exception) -> int:
    """
    Get the appropriate exit code for an exception.

    Args:
        exc: The exception that occurred

    Returns:
        Appropriate exit code
    """
    if isinstance(exc, CommandError):
        return exc.exit_code
    exc_name = exc.__class__.__name__
    return EXCEPTION_EXIT_CODES.get(exc_name, GENERAL_ERROR)


class CommandError(Exception):
    """
    Base error for configrepo. Carries the exit code the CLI should use.
    """
    def __init__(self, message: str, exit_code: int = GENERAL_ERROR):
        super().__init__(message)
        self.exit_code = exit_code


class APIError(CommandError):
    """Raised when a GitHub API call fails."""
    def __init__(self, message: str, operation: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message, API_ERROR)
        self.operation = operation
        self.status = status


class RemoteNotFoundError(APIError):
    """The GitHub API answered 404 (missing ref, commit, or path)."""


class MergeConflictError(APIError):
    """The merge into the target ref was rejected with a conflict."""


class RefMovedError(APIError):
    """The ref tip changed between reading it and merging into it."""
    def __init__(self, ref: str, expected: str, actual: str):
        super().__init__(
            f"ref {ref!r} moved from {expected[:8]} to {actual[:8]} during release",
            operation="verify ref",
        )
        self.ref = ref
        self.expected = expected
        self.actual = actual


class DecodeError(CommandError):
    """A stored file is missing or could not be decoded."""
    def __init__(self, path: str, reason: str):
        super().__init__(f"decoding {path!r}: {reason}", DATA_ERROR)
        self.path = path
        self.reason = reason


class FileMissingError(DecodeError):
    """A stored file does not exist at the bound ref."""
    def __init__(self, path: str, reason: str = "file not found"):
        super().__init__(path, reason)


class EncodeError(CommandError):
    """Application state could not be serialized into a stored file."""
    def __init__(self, path: str, reason: str):
        super().__init__(f"encoding {path!r}: {reason}", DATA_ERROR)
        self.path = path
        self.reason = reason


class NotFoundError(CommandError):
    """Raised when no application or release matches the query."""
    def __init__(self, message: str = "app not found"):
        super().__init__(message, NOT_FOUND)


class OperationNotImplementedError(CommandError, NotImplementedError):
    """Raised by storage operations the GitHub backend does not support."""
    def __init__(self, message: str):
        super().__init__(message, GENERAL_ERROR)


class ConfigError(CommandError):
    """Raised when there's a configuration error."""
    def __init__(self, message: str):
        super().__init__(message, CONFIG_ERROR)
