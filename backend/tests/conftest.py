"""Shared test fixtures and configuration for backend tests."""
from typing import AsyncIterator, Iterable, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from lanshare.config import AppConfig, StorageSettings
from lanshare.files.service import FileStorageService
from lanshare.files.storage import LocalDirectoryStorage, MemoryStorage
from lanshare.main import create_app

BOUNDARY = "lanshare-test-boundary"

# (field name, filename or None, payload)
Part = Tuple[str, Optional[str], bytes]


def build_multipart(parts: Iterable[Part], boundary: str = BOUNDARY, close: bool = True) -> bytes:
    """Encode *parts* as a multipart/form-data body."""
    body = b""
    for field, filename, payload in parts:
        disposition = f'form-data; name="{field}"'
        if filename is not None:
            disposition += f'; filename="{filename}"'
        body += f"--{boundary}\r\n".encode()
        body += f"Content-Disposition: {disposition}\r\n".encode("utf-8")
        body += b"Content-Type: application/octet-stream\r\n\r\n"
        body += payload + b"\r\n"
    if close:
        body += f"--{boundary}--\r\n".encode()
    return body


async def stream_bytes(body: bytes, chunk_size: int = 7) -> AsyncIterator[bytes]:
    """Yield *body* in small chunks, the way a slow client would send it."""
    for start in range(0, len(body), chunk_size):
        yield body[start:start + chunk_size]


@pytest.fixture
def multipart():
    """Provide build_multipart() to tests."""
    return build_multipart


@pytest.fixture
def content_type() -> str:
    return f"multipart/form-data; boundary={BOUNDARY}"


@pytest.fixture
def upload_dir(tmp_path):
    """Storage root inside the test's temp directory (not created yet)."""
    return tmp_path / "uploads"


@pytest.fixture
def config(upload_dir) -> AppConfig:
    """Config with a 1 KiB ceiling so size limits are cheap to hit."""
    return AppConfig(
        storage=StorageSettings(upload_dir=str(upload_dir), max_file_size_bytes=1024)
    )


@pytest.fixture
def local_storage(upload_dir) -> LocalDirectoryStorage:
    storage = LocalDirectoryStorage(upload_dir)
    storage.ensure_root()
    return storage


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def local_service(local_storage) -> FileStorageService:
    return FileStorageService(local_storage, max_file_size=1024)


@pytest.fixture
def memory_service(memory_storage) -> FileStorageService:
    return FileStorageService(memory_storage, max_file_size=1024)


@pytest.fixture
def api_client(config):
    """Provide a TestClient for an app bound to the temp upload dir."""
    return TestClient(create_app(config))


@pytest.fixture
def body_stream():
    """Provide stream_bytes() to tests."""
    return stream_bytes
