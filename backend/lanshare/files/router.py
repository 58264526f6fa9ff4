"""FastAPI router for the shared file endpoints.

Endpoints:
    GET  /                     : listing (JSON) for the presentation layer
    GET  /files                : same listing
    POST /upload               : streaming multipart upload, redirects to /
    GET  /download/{filename}  : file bytes as an attachment
    POST /delete/{filename}    : remove a file, redirects to /

Errors are returned as ``{"error": "<message>"}``.  Client errors echo the
message; server errors answer with a generic text and log the cause.
"""
import logging
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse, StreamingResponse
from starlette.requests import ClientDisconnect

from .errors import FileStoreError, IOFailureError, NotFoundError, ProtocolFramingError, ValidationError
from .schemas import ErrorResponse, FileListResponse
from .service import FileStorageService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["files"])


def get_file_service(request: Request) -> FileStorageService:
    """Return the service built at startup for this application."""
    return request.app.state.file_service


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _back_to_index() -> RedirectResponse:
    return RedirectResponse(url="/", status_code=302)


def content_disposition(filename: str) -> str:
    """Build an attachment Content-Disposition for *filename*."""
    quoted = quote(filename)
    if quoted != filename:
        return f"attachment; filename*=utf-8''{quoted}"
    return f'attachment; filename="{filename}"'


@router.get("/", response_model=FileListResponse)
@router.get("/files", response_model=FileListResponse)
async def list_files(
    service: FileStorageService = Depends(get_file_service),
) -> FileListResponse:
    """List stored files, newest first.

    Returns:
        FileListResponse with the records and the upload ceiling.
    """
    files = await service.list_files()
    return FileListResponse(
        files=files,
        count=len(files),
        max_file_size=service.max_file_size,
    )


@router.post(
    "/upload",
    status_code=302,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def upload_files(
    request: Request,
    service: FileStorageService = Depends(get_file_service),
):
    """Store every file part of a multipart body.

    The body is streamed straight to disk; nothing is buffered in memory.

    Returns:
        302 redirect to ``/`` on success.

    Errors:
        400: Size ceiling exceeded, or malformed multipart body.
        500: Filesystem failure.
    """
    try:
        stored = await service.save_uploads(
            request.headers.get("content-type"),
            request.stream(),
        )
    except ValidationError as e:
        logger.info("Upload rejected: %s", e.message)
        return _error(e.message, e.status_code)
    except ProtocolFramingError as e:
        logger.info("Upload rejected: %s (%s)", e.message, e.cause)
        return _error(e.message, e.status_code)
    except IOFailureError as e:
        logger.error("Upload failed: %s (%s)", e.message, e.cause)
        return _error("Server error", e.status_code)
    except ClientDisconnect:
        logger.warning("Client disconnected during upload")
        return _error("Client disconnected", 400)

    logger.debug("Upload request stored %d file(s)", len(stored))
    return _back_to_index()


@router.get(
    "/download/{filename}",
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def download_file(
    filename: str,
    service: FileStorageService = Depends(get_file_service),
):
    """Stream a stored file back as an attachment.

    Args:
        filename: Name as shown by the listing; it is sanitized again.

    Errors:
        404: No stored file with that name.
    """
    try:
        safe_name, chunks = await service.open_download(filename)
    except NotFoundError as e:
        return _error(e.message, e.status_code)
    except FileStoreError as e:
        logger.error("Download of %s failed: %s", filename, e.message)
        return _error("Server error", e.status_code)

    return StreamingResponse(
        chunks,
        media_type="application/octet-stream",
        headers={"Content-Disposition": content_disposition(safe_name)},
    )


@router.post(
    "/delete/{filename}",
    status_code=302,
    responses={500: {"model": ErrorResponse}},
)
async def delete_file(
    filename: str,
    service: FileStorageService = Depends(get_file_service),
):
    """Delete a stored file.

    Returns:
        302 redirect to ``/`` on success, 500 on any failure (including a
        missing file).
    """
    try:
        await service.delete_file(filename)
    except FileStoreError as e:
        logger.error("Failed to delete %s: %s", filename, e.message)
        return _error("Failed to delete file", 500)
    return _back_to_index()
