"""Streaming multipart upload ingestion.

The request body is fed chunk by chunk into python-multipart's push parser.
Parser callbacks only queue events; after every chunk the queued events are
replayed here, so all file I/O happens in one place and can be awaited on the
thread pool.  Nothing is spooled: each part goes straight into its final file
and the byte ceiling is checked before every write.
"""
import logging
from typing import AsyncIterator, BinaryIO, Dict, List, Optional, Tuple

import python_multipart
from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import parse_options_header

from .errors import FileTooLargeError, IOFailureError, ProtocolFramingError
from .naming import create_unique, sanitize_filename
from .schemas import StoredUpload
from .storage import Storage, is_storable_name, run_blocking

logger = logging.getLogger(__name__)

PART_BEGIN = "part_begin"
PART_DATA = "part_data"
PART_END = "part_end"
HEADER_FIELD = "header_field"
HEADER_VALUE = "header_value"
HEADER_END = "header_end"
HEADERS_FINISHED = "headers_finished"
END = "end"


def _decode_header(value: bytes) -> str:
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError:
        return value.decode("latin-1")


def parse_boundary(content_type: Optional[str]) -> bytes:
    """Extract the multipart boundary from a Content-Type header value.

    Raises:
        ProtocolFramingError: If the body is not ``multipart/form-data`` or
            carries no boundary.
    """
    if not content_type:
        raise ProtocolFramingError("Missing Content-Type header")
    mime_type, options = parse_options_header(content_type)
    if mime_type != b"multipart/form-data":
        raise ProtocolFramingError("Expected a multipart/form-data body")
    boundary = options.get(b"boundary")
    if not boundary:
        raise ProtocolFramingError("Missing multipart boundary")
    return boundary


def part_filename(headers: Dict[bytes, bytes]) -> Optional[str]:
    """Return the ``filename`` declared in a part's Content-Disposition."""
    disposition = headers.get(b"content-disposition")
    if disposition is None:
        return None
    _, options = parse_options_header(disposition)
    filename = options.get(b"filename")
    if filename is None:
        return None
    return _decode_header(filename)


class UploadSession:
    """One part being written to its destination file."""

    def __init__(self, name: str, handle: BinaryIO) -> None:
        self.name = name
        self.handle = handle
        self.size = 0
        self.closed = False

    async def write(self, data: bytes) -> None:
        try:
            await run_blocking(self.handle.write, data)
        except OSError as exc:
            raise IOFailureError(
                f"Cannot write {self.name}", filename=self.name, cause=exc
            ) from exc

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            await run_blocking(self.handle.close)
        except OSError as exc:
            raise IOFailureError(
                f"Cannot close {self.name}", filename=self.name, cause=exc
            ) from exc


class UploadIngestor:
    """Writes every file part of a multipart body into a storage backend.

    Args:
        storage: Destination backend.
        max_file_size: Per-part ceiling in bytes.
    """

    def __init__(self, storage: Storage, max_file_size: int) -> None:
        self._storage = storage
        self._max_file_size = max_file_size

    async def ingest(
        self,
        content_type: Optional[str],
        stream: AsyncIterator[bytes],
    ) -> List[StoredUpload]:
        """Consume *stream* and store each part that declares a filename.

        Parts without a filename are skipped.  A part that grows past the
        ceiling aborts the whole request; its truncated file stays behind.

        Args:
            content_type: The request's Content-Type header.
            stream: The raw request body.

        Returns:
            The stored parts, in body order.

        Raises:
            ProtocolFramingError: On a malformed or truncated body.
            FileTooLargeError: When a part exceeds the ceiling.
            IOFailureError: When a destination cannot be created or written.
        """
        boundary = parse_boundary(content_type)

        events: List[Tuple[str, bytes]] = []

        def on_data(event: str):
            def callback(data: bytes, start: int, end: int) -> None:
                events.append((event, bytes(data[start:end])))
            return callback

        def on_signal(event: str):
            def callback() -> None:
                events.append((event, b""))
            return callback

        parser = python_multipart.MultipartParser(
            boundary,
            {
                "on_part_begin": on_signal(PART_BEGIN),
                "on_part_data": on_data(PART_DATA),
                "on_part_end": on_signal(PART_END),
                "on_header_field": on_data(HEADER_FIELD),
                "on_header_value": on_data(HEADER_VALUE),
                "on_header_end": on_signal(HEADER_END),
                "on_headers_finished": on_signal(HEADERS_FINISHED),
                "on_end": on_signal(END),
            },
        )

        stored: List[StoredUpload] = []
        session: Optional[UploadSession] = None
        headers: Dict[bytes, bytes] = {}
        header_field = b""
        header_value = b""
        finished = False

        try:
            async for chunk in stream:
                if not chunk:
                    continue
                try:
                    parser.write(chunk)
                except MultipartParseError as exc:
                    raise ProtocolFramingError("Malformed multipart body", cause=exc) from exc

                for event, data in events:
                    if event == PART_BEGIN:
                        headers = {}
                    elif event == HEADER_FIELD:
                        header_field += data
                    elif event == HEADER_VALUE:
                        header_value += data
                    elif event == HEADER_END:
                        headers[header_field.lower()] = header_value
                        header_field = b""
                        header_value = b""
                    elif event == HEADERS_FINISHED:
                        session = await self._open_session(headers)
                    elif event == PART_DATA:
                        if session is not None:
                            await self._write(session, data)
                    elif event == PART_END:
                        if session is not None:
                            await session.close()
                            stored.append(StoredUpload(name=session.name, size=session.size))
                            logger.info("File uploaded: %s (%d bytes)", session.name, session.size)
                            session = None
                    elif event == END:
                        finished = True
                events.clear()

            parser.finalize()
            if not finished:
                raise ProtocolFramingError("Multipart body ended before the closing boundary")
        finally:
            if session is not None and not session.closed:
                await session.close()
                logger.warning("Left partial upload %s (%d bytes)", session.name, session.size)

        return stored

    async def _open_session(self, headers: Dict[bytes, bytes]) -> Optional[UploadSession]:
        filename = part_filename(headers)
        if filename is None:
            return None
        safe_name = sanitize_filename(filename)
        if not is_storable_name(safe_name):
            logger.info("Skipping part with unusable filename %r", filename)
            return None
        final_name, handle = await run_blocking(create_unique, self._storage, safe_name)
        return UploadSession(final_name, handle)

    async def _write(self, session: UploadSession, data: bytes) -> None:
        session.size += len(data)
        if session.size > self._max_file_size:
            raise FileTooLargeError(session.name, self._max_file_size)
        await session.write(data)
