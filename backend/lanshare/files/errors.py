"""Error types raised by the file storage core.

Each error carries an :class:`ErrorKind` tag plus the HTTP status the router
should answer with, so callers branch on the type instead of message text.
"""
from enum import Enum
from typing import Optional

from ..config import BYTES_PER_MB


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    IO_FAILURE = "io_failure"
    PROTOCOL_FRAMING = "protocol_framing"


class FileStoreError(Exception):
    """Base exception for storage errors."""

    kind: ErrorKind = ErrorKind.IO_FAILURE

    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ValidationError(FileStoreError):
    """Raised when a client request breaks an upload rule."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str):
        super().__init__(message, status_code=400)


def format_limit(limit_bytes: int) -> str:
    """Render a byte ceiling the way users configure it (MB when aligned)."""
    if limit_bytes and limit_bytes % BYTES_PER_MB == 0:
        return f"{limit_bytes // BYTES_PER_MB} MB"
    return f"{limit_bytes} bytes"


class FileTooLargeError(ValidationError):
    """Raised when a part grows past the configured ceiling."""

    def __init__(self, filename: str, limit_bytes: int):
        self.filename = filename
        self.limit_bytes = limit_bytes
        super().__init__(f"File too large (max: {format_limit(limit_bytes)})")


class NotFoundError(FileStoreError):
    """Raised when a requested name is not a stored file."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, filename: str):
        self.filename = filename
        super().__init__("File not found", status_code=404)


class IOFailureError(FileStoreError):
    """Raised when the filesystem refuses a create, write, read or remove."""

    kind = ErrorKind.IO_FAILURE

    def __init__(self, message: str, filename: Optional[str] = None, cause: Optional[BaseException] = None):
        self.filename = filename
        self.cause = cause
        super().__init__(message, status_code=500)


class ProtocolFramingError(FileStoreError):
    """Raised when the request body is not a well-formed multipart stream."""

    kind = ErrorKind.PROTOCOL_FRAMING

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message, status_code=400)
