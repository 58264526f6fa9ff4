"""Shared file storage module for LanShare.

This module handles streaming uploads, listing, downloads and deletion of the
files kept in the storage root.  The directory is flat and carries no sidecar
metadata: every listing is rebuilt from filesystem attributes.
"""

from .errors import (
    ErrorKind,
    FileStoreError,
    FileTooLargeError,
    IOFailureError,
    NotFoundError,
    ProtocolFramingError,
    ValidationError,
)
from .naming import create_unique, resolve_collision, sanitize_filename
from .schemas import FileCategory, FileRecord, StoredUpload
from .service import FileStorageService
from .storage import LocalDirectoryStorage, MemoryStorage, Storage, StoredEntry

__all__ = [
    "ErrorKind",
    "FileStoreError",
    "FileTooLargeError",
    "IOFailureError",
    "NotFoundError",
    "ProtocolFramingError",
    "ValidationError",
    "create_unique",
    "resolve_collision",
    "sanitize_filename",
    "FileCategory",
    "FileRecord",
    "StoredUpload",
    "FileStorageService",
    "LocalDirectoryStorage",
    "MemoryStorage",
    "Storage",
    "StoredEntry",
]
