"""Pydantic schemas for the shared file directory.

This module defines the data models exposed to the presentation layer:
- FileRecord: one stored file as observed at listing time
- FileCategory: coarse grouping derived from the extension
- FileListResponse: payload of the listing endpoints
- ErrorResponse: the ``{"error": ...}`` body of every failed request

Records are never persisted.  They are rebuilt from filesystem metadata on
every listing.
"""
from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, Field

from .naming import split_name

UNKNOWN_KIND = "unknown"


class FileCategory(str, Enum):
    """File categories used to pick an icon or preview.

    Categories are derived from the lower-cased extension:
    - DOCUMENT: pdf, doc, docx, odt, rtf
    - SPREADSHEET: xls, xlsx, ods, csv
    - PRESENTATION: ppt, pptx, odp
    - TEXT: txt, md, log
    - IMAGE / VIDEO / AUDIO / ARCHIVE / EXECUTABLE: the usual suspects
    - OTHER: everything else, including names without an extension
    """
    DOCUMENT = "document"
    SPREADSHEET = "spreadsheet"
    PRESENTATION = "presentation"
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    ARCHIVE = "archive"
    EXECUTABLE = "executable"
    OTHER = "other"


EXTENSION_CATEGORIES: Dict[FileCategory, List[str]] = {
    FileCategory.DOCUMENT: ["pdf", "doc", "docx", "odt", "rtf"],
    FileCategory.SPREADSHEET: ["xls", "xlsx", "ods", "csv"],
    FileCategory.PRESENTATION: ["ppt", "pptx", "odp"],
    FileCategory.TEXT: ["txt", "md", "log"],
    FileCategory.IMAGE: ["jpg", "jpeg", "png", "gif", "bmp", "webp", "svg"],
    FileCategory.VIDEO: ["mp4", "avi", "mkv", "mov", "webm"],
    FileCategory.AUDIO: ["mp3", "wav", "flac", "aac", "ogg", "m4a"],
    FileCategory.ARCHIVE: ["zip", "rar", "7z", "tar", "gz"],
    FileCategory.EXECUTABLE: ["exe", "msi"],
}


def get_file_kind(name: str) -> str:
    """Return the lower-cased extension of *name* without its dot.

    >>> get_file_kind("Report.PDF")
    'pdf'
    >>> get_file_kind("Makefile")
    'unknown'
    """
    _, ext = split_name(name)
    kind = ext[1:].lower()
    return kind or UNKNOWN_KIND


def get_file_category(kind: str) -> FileCategory:
    """Map an extension-derived kind to its FileCategory."""
    for category, extensions in EXTENSION_CATEGORIES.items():
        if kind in extensions:
            return category
    return FileCategory.OTHER


class FileRecord(BaseModel):
    """Metadata for one stored file, derived at listing time."""
    name: str = Field(..., description="Storage name, unique within the root")
    size: int = Field(..., ge=0, description="File size in bytes")
    modified_at: int = Field(..., description="Last write, seconds since epoch")
    kind: str = Field(UNKNOWN_KIND, description="Lower-cased extension")
    category: FileCategory = Field(FileCategory.OTHER, description="Coarse file category")

    @classmethod
    def from_entry(cls, name: str, size: int, modified_at: int) -> "FileRecord":
        kind = get_file_kind(name)
        return cls(
            name=name,
            size=size,
            modified_at=modified_at,
            kind=kind,
            category=get_file_category(kind),
        )


class StoredUpload(BaseModel):
    """One part written by an upload request."""
    name: str = Field(..., description="Final storage name")
    size: int = Field(..., ge=0, description="Bytes written")


class FileListResponse(BaseModel):
    """Listing payload consumed by the presentation layer."""
    files: List[FileRecord] = Field(..., description="Newest first")
    count: int = Field(..., description="Number of files")
    max_file_size: int = Field(..., description="Upload ceiling in bytes")


class ErrorResponse(BaseModel):
    error: str
