"""Storage backends for the shared file directory.

Every backend exposes the same small capability set (``create``,
``open_for_read``, ``list``, ``remove``, ``exists``) so the upload and
listing code never touches ``os`` directly.  All methods are blocking; the
service layer runs them on the default thread-pool executor.

Names passed in are single, already-sanitized path segments.
"""
import asyncio
import errno
import functools
import io
import logging
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO, Callable, Dict, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

# Names that sanitize cleanly but still address something other than a file
# inside the root.
RESERVED_NAMES = frozenset({"", ".", ".."})

# Lookup failures meaning "no such file here" rather than a broken disk.
ABSENT_ERRNOS = frozenset({errno.ENOENT, errno.ENOTDIR, errno.ENAMETOOLONG})


async def run_blocking(func: Callable[..., Any], *args: Any) -> Any:
    """Run a blocking storage call on the default thread-pool executor."""
    return await asyncio.get_event_loop().run_in_executor(
        None, functools.partial(func, *args)
    )


def is_absent_error(exc: OSError) -> bool:
    """Return True if *exc* only says the name cannot exist in the root."""
    return exc.errno in ABSENT_ERRNOS


def is_storable_name(name: str) -> bool:
    """Return True if *name* can address a file directly inside the root."""
    return name not in RESERVED_NAMES and "/" not in name and "\\" not in name


@dataclass(frozen=True)
class StoredEntry:
    """Raw metadata for one stored file."""
    name: str
    size: int
    modified_at: int


class Storage(ABC):
    """Abstract flat file store."""

    @property
    @abstractmethod
    def location(self) -> str:
        """Human-readable description of where files live (for logging)."""

    @abstractmethod
    def ensure_root(self) -> None:
        """Create the storage root if it does not exist yet."""

    @abstractmethod
    def exists(self, name: str) -> bool:
        """Return True if anything is stored under *name*."""

    @abstractmethod
    def create(self, name: str) -> BinaryIO:
        """Open *name* for writing, failing if it already exists.

        Raises:
            FileExistsError: If *name* is taken.
            OSError: On any other filesystem failure.
        """

    @abstractmethod
    def open_for_read(self, name: str) -> BinaryIO:
        """Open the regular file *name* for reading.

        Raises:
            FileNotFoundError: If *name* is not a stored file.
        """

    @abstractmethod
    def list(self) -> List[StoredEntry]:
        """Return every regular file directly inside the root, unordered.

        Entries that cannot be read are skipped.  A missing root yields an
        empty list.
        """

    @abstractmethod
    def remove(self, name: str) -> None:
        """Delete *name*.

        Raises:
            FileNotFoundError: If *name* is not a stored file.
            OSError: On any other filesystem failure.
        """


class LocalDirectoryStorage(Storage):
    """Stores files in one directory on the local filesystem."""

    def __init__(self, root: Union[str, Path]) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def location(self) -> str:
        return str(self._root)

    def _path(self, name: str) -> Path:
        if not is_storable_name(name):
            raise FileNotFoundError(f"Not a storable name: {name!r}")
        return self._root / name

    def ensure_root(self) -> None:
        self._root.mkdir(parents=True, exist_ok=True)

    def exists(self, name: str) -> bool:
        if not is_storable_name(name):
            return False
        try:
            os.lstat(self._path(name))
        except OSError as exc:
            if is_absent_error(exc):
                return False
            raise
        return True

    def create(self, name: str) -> BinaryIO:
        # "xb" is the atomic create-exclusive open: it never clobbers.
        return open(self._path(name), "xb")

    def _is_file(self, name: str) -> bool:
        try:
            return self._path(name).is_file()
        except OSError as exc:
            if is_absent_error(exc):
                return False
            raise

    def open_for_read(self, name: str) -> BinaryIO:
        if not self._is_file(name):
            raise FileNotFoundError(f"No such file: {name}")
        return open(self._path(name), "rb")

    def list(self) -> List[StoredEntry]:
        try:
            scanner = os.scandir(self._root)
        except FileNotFoundError:
            return []
        except OSError as exc:
            logger.warning("Cannot scan storage root %s: %s", self._root, exc)
            return []

        entries: List[StoredEntry] = []
        with scanner:
            for entry in scanner:
                try:
                    if not entry.is_file():
                        continue
                    stat = entry.stat()
                except OSError as exc:
                    logger.debug("Skipping unreadable entry %s: %s", entry.name, exc)
                    continue
                entries.append(
                    StoredEntry(
                        name=entry.name,
                        size=stat.st_size,
                        modified_at=int(stat.st_mtime),
                    )
                )
        return entries

    def remove(self, name: str) -> None:
        path = self._path(name)
        if not self._is_file(name):
            if os.path.isdir(path):
                raise IsADirectoryError(f"Not a file: {name}")
            raise FileNotFoundError(f"No such file: {name}")
        path.unlink()


class _MemoryWriter(io.BytesIO):
    """Write handle that publishes its bytes to the store on every write."""

    def __init__(self, storage: "MemoryStorage", name: str) -> None:
        super().__init__()
        self._storage = storage
        self._name = name

    def write(self, data) -> int:
        written = super().write(data)
        self._storage._put(self._name, self.getvalue())
        return written


class MemoryStorage(Storage):
    """Keeps files in a dict.  Used by tests and throwaway instances."""

    def __init__(self, clock=time.time) -> None:
        self._files: Dict[str, Tuple[bytes, int]] = {}
        self._clock = clock

    @property
    def location(self) -> str:
        return "memory"

    def _put(self, name: str, data: bytes, modified_at: Optional[int] = None) -> None:
        if modified_at is None:
            modified_at = int(self._clock())
        self._files[name] = (data, modified_at)

    def put(self, name: str, data: bytes, modified_at: Optional[int] = None) -> None:
        """Store *data* under *name* directly, replacing any previous file."""
        self._put(name, bytes(data), modified_at)

    def ensure_root(self) -> None:
        pass

    def exists(self, name: str) -> bool:
        return name in self._files

    def create(self, name: str) -> BinaryIO:
        if not is_storable_name(name):
            raise FileNotFoundError(f"Not a storable name: {name!r}")
        if name in self._files:
            raise FileExistsError(name)
        self._put(name, b"")
        return _MemoryWriter(self, name)

    def open_for_read(self, name: str) -> BinaryIO:
        try:
            data, _ = self._files[name]
        except KeyError:
            raise FileNotFoundError(f"No such file: {name}") from None
        return io.BytesIO(data)

    def list(self) -> List[StoredEntry]:
        return [
            StoredEntry(name=name, size=len(data), modified_at=modified_at)
            for name, (data, modified_at) in list(self._files.items())
        ]

    def remove(self, name: str) -> None:
        try:
            del self._files[name]
        except KeyError:
            raise FileNotFoundError(f"No such file: {name}") from None
