"""File storage service for LanShare.

Ties the storage backend, the naming rules and the upload ingestor together.
Every blocking call runs on the default thread-pool executor so a slow disk
never stalls the event loop.

Usage:
    service = FileStorageService(LocalDirectoryStorage("uploads"), max_file_size=50 * 1024 * 1024)
    records = await service.list_files()
"""
import logging
from typing import AsyncIterator, BinaryIO, Iterator, List, Optional, Tuple

from .errors import IOFailureError, NotFoundError
from .ingest import UploadIngestor
from .naming import sanitize_filename
from .schemas import FileRecord, StoredUpload
from .storage import Storage, is_storable_name, run_blocking

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


def iter_chunks(handle: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
    """Yield *handle* in chunks and close it when exhausted or abandoned."""
    try:
        while True:
            chunk = handle.read(chunk_size)
            if not chunk:
                break
            yield chunk
    finally:
        handle.close()


class FileStorageService:
    """Service for listing, storing, serving and deleting shared files."""

    def __init__(
        self,
        storage: Storage,
        max_file_size: int,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._storage = storage
        self._max_file_size = max_file_size
        self._chunk_size = chunk_size

    @property
    def storage(self) -> Storage:
        return self._storage

    @property
    def max_file_size(self) -> int:
        return self._max_file_size

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    async def ensure_root(self) -> None:
        """Create the storage root if needed.

        Raises:
            IOFailureError: If the root cannot be created.
        """
        try:
            await run_blocking(self._storage.ensure_root)
        except OSError as exc:
            raise IOFailureError(
                f"Cannot create storage root {self._storage.location}", cause=exc
            ) from exc

    async def list_files(self) -> List[FileRecord]:
        """List stored files, most recently modified first."""
        entries = await run_blocking(self._storage.list)
        records = [
            FileRecord.from_entry(entry.name, entry.size, entry.modified_at)
            for entry in entries
        ]
        # Name ascending breaks mtime ties, then mtime descending.
        records.sort(key=lambda r: r.name)
        records.sort(key=lambda r: r.modified_at, reverse=True)
        return records

    async def save_uploads(
        self,
        content_type: Optional[str],
        stream: AsyncIterator[bytes],
    ) -> List[StoredUpload]:
        """Stream a multipart body into storage.

        See :meth:`UploadIngestor.ingest` for the error contract.
        """
        await self.ensure_root()
        ingestor = UploadIngestor(self._storage, self._max_file_size)
        return await ingestor.ingest(content_type, stream)

    async def open_download(self, filename: str) -> Tuple[str, Iterator[bytes]]:
        """Open a stored file for streaming.

        Args:
            filename: Client-supplied name; it is sanitized again here.

        Returns:
            ``(sanitized_name, chunk_iterator)``

        Raises:
            NotFoundError: If no stored file matches.
            IOFailureError: If the file exists but cannot be opened.
        """
        safe_name = sanitize_filename(filename)
        if not is_storable_name(safe_name):
            raise NotFoundError(safe_name)
        try:
            handle = await run_blocking(self._storage.open_for_read, safe_name)
        except FileNotFoundError:
            raise NotFoundError(safe_name) from None
        except OSError as exc:
            raise IOFailureError(
                f"Cannot read {safe_name}", filename=safe_name, cause=exc
            ) from exc
        return safe_name, iter_chunks(handle, self._chunk_size)

    async def read_file(self, filename: str) -> bytes:
        """Return the full contents of a stored file."""
        _, chunks = await self.open_download(filename)
        return await run_blocking(b"".join, chunks)

    async def delete_file(self, filename: str) -> str:
        """Remove a stored file.

        Returns:
            The sanitized name that was removed.

        Raises:
            NotFoundError: If no stored file matches.
            IOFailureError: If removal fails for any other reason.
        """
        safe_name = sanitize_filename(filename)
        if not is_storable_name(safe_name):
            raise NotFoundError(safe_name)
        try:
            await run_blocking(self._storage.remove, safe_name)
        except FileNotFoundError:
            raise NotFoundError(safe_name) from None
        except OSError as exc:
            raise IOFailureError(
                f"Cannot delete {safe_name}", filename=safe_name, cause=exc
            ) from exc
        logger.info("File deleted: %s", safe_name)
        return safe_name
