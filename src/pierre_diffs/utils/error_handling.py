"""Error types and standardized error logging for pierre-diffs.

Every failure the package raises derives from ``DiffError``. The subclasses
follow how a host is expected to react:

- ``InputError``: bad input (no paths, malformed payload); show a message.
- ``LoadError``: the file could not be read or decoded; abort this cycle only.
- ``LoadCancelledError``: the request was superseded; never shown.
- ``ProcessingError``: building a diff failed; wraps the underlying cause.
- ``RenderError``: the renderer reported a failure through an ``error`` event.
- ``TransportError``: a command could not be delivered to the renderer.

The ``log_*`` helpers keep log lines for each category consistently prefixed.
"""

from __future__ import annotations

from typing import Any, Optional

from .logger import log


class DiffError(Exception):
    """Base class for every pierre-diffs error."""

    pass


class InputError(DiffError):
    """Invalid input supplied by the caller."""

    pass


class NoPathsError(InputError):
    """Raised when a load is requested for an empty set of paths."""

    def __init__(self, message: str = "No file names provided"):
        super().__init__(message)


class DecodingError(InputError):
    """Raised when a tool payload cannot be decoded."""

    pass


class LoadError(DiffError):
    """Base class for file loading failures."""

    def __init__(self, path: str, message: str):
        super().__init__(message)
        self.path = path


class ReadError(LoadError):
    """Raised when a file cannot be opened or read."""

    def __init__(self, path: str, cause: BaseException):
        super().__init__(path, f"Failed to read file at path: {path}, error: {cause}")
        self.cause = cause

    @property
    def is_missing(self) -> bool:
        """True when the underlying cause is a missing file."""
        return isinstance(self.cause, FileNotFoundError)


class InvalidEncodingError(LoadError):
    """Raised when file content is not valid UTF-8."""

    def __init__(self, path: str):
        super().__init__(path, f"Failed to decode UTF-8 content for file at path: {path}")


class LoadCancelledError(DiffError):
    """Raised when a load was cancelled or superseded by a newer one."""

    def __init__(self, message: str = "File loading was cancelled"):
        super().__init__(message)


class ProcessingError(DiffError):
    """Raised when a diff result cannot be produced from a tool payload."""

    pass


class RenderError(DiffError):
    """A failure reported by the external renderer."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TransportError(DiffError):
    """Raised by a bridge transport when a command cannot be delivered."""

    pass


def log_file_error(file_path: str, operation: str, exception: BaseException) -> None:
    """Log file operation errors with consistent formatting.

    Args:
        file_path: Path to the file that caused the error
        operation: Description of the operation (e.g., "reading", "decoding")
        exception: The exception that was raised
    """
    error_type = type(exception).__name__
    log.error(f"[IO] Failed {operation} {file_path}: {error_type}: {exception}")


def log_decode_error(tool: str, exception: BaseException) -> None:
    """Log payload decoding errors with consistent formatting.

    Args:
        tool: Name of the tool whose payload failed to decode
        exception: The exception that was raised
    """
    error_type = type(exception).__name__
    log.error(f"[DECODE] Failed decoding {tool} payload: {error_type}: {exception}")


def log_bridge_error(command: str, exception: BaseException) -> None:
    """Log renderer bridge errors with consistent formatting.

    Args:
        command: The bridge command or event being handled
        exception: The exception that was raised
    """
    error_type = type(exception).__name__
    log.error(f"[BRIDGE] Failed {command}: {error_type}: {exception}")


def log_network_error(host: str, port: int, operation: str, exception: BaseException, prefix: str = "NET") -> None:
    """Log network operation errors with consistent formatting.

    Args:
        host: Hostname or IP address
        port: Port number
        operation: Description of the operation (e.g., "serving", "sending")
        exception: The exception that was raised
        prefix: Log prefix for categorization (default: "NET")
    """
    error_type = type(exception).__name__
    log.error(f"[{prefix}] Failed {operation} {host}:{port}: {error_type}: {exception}")


def log_failed_operation(operation: str, exception: BaseException) -> None:
    """Log a simple failed operation: "Failed to [operation]: [exception]"."""
    log.error(f"Failed to {operation}: {exception}")


def log_error_with_context(message: str, exception: BaseException, context: Optional[dict[str, Any]] = None) -> None:
    """Log an error with additional context information.

    Args:
        message: Main error message
        exception: The exception that was raised
        context: Optional dictionary of context information
    """
    error_type = type(exception).__name__
    base_msg = f"{message}: {error_type}: {exception}"

    if context:
        context_str = ", ".join(f"{k}={v}" for k, v in context.items())
        log.error(f"{base_msg} (Context: {context_str})")
    else:
        log.error(base_msg)
