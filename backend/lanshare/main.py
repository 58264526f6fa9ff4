"""LanShare Backend Application.

Entry point for the LanShare file-sharing service.  Devices on the local
network upload, list, download and delete files kept in one host directory.

Modules:
    - config: YAML + environment settings, loaded once at startup
    - files: streaming uploads, listing, downloads and deletion

Run with ``uvicorn lanshare.main:app`` or the ``lanshare`` console script.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request

from lanshare import __version__
from lanshare.config import AppConfig, load_config
from lanshare.files.errors import IOFailureError, format_limit
from lanshare.files.router import router as files_router
from lanshare.files.service import FileStorageService
from lanshare.files.storage import LocalDirectoryStorage, Storage

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Silence per-request chatter from the multipart parser.
for _noisy in ("python_multipart", "multipart"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
}


def _log_banner(config: AppConfig, service: FileStorageService) -> None:
    server = config.server
    logger.info("LanShare %s", __version__)
    logger.info("  Listening:    http://%s:%s", server.host, server.port)
    logger.info("  Local access: http://localhost:%s", server.port)
    logger.info("  Upload dir:   %s", service.storage.location)
    logger.info("  Max size:     %s per file", format_limit(service.max_file_size))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    config: AppConfig = app.state.config
    service: FileStorageService = app.state.file_service

    # Apply configured log level to root logger so that
    # `logging.level: "debug"` in lanshare.settings.yaml activates DEBUG output.
    configured_level = getattr(logging, config.logging.level.upper(), None)
    if isinstance(configured_level, int):
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    try:
        await service.ensure_root()
    except IOFailureError as exc:
        logger.warning("%s: %s", exc.message, exc.cause)

    _log_banner(config, service)

    yield  # Application runs here

    logger.info("Application shutdown complete")


def create_app(
    config: Optional[AppConfig] = None,
    storage: Optional[Storage] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Settings to use. Loaded from file and environment when omitted.
        storage: Backend to store files in. Defaults to the configured
            upload directory on the local filesystem.

    Returns:
        A ready-to-serve FastAPI application.
    """
    if config is None:
        config = load_config()
    if storage is None:
        storage = LocalDirectoryStorage(config.storage.upload_path)

    app = FastAPI(
        title="LanShare API",
        description="Local-network file sharing",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.file_service = FileStorageService(
        storage,
        max_file_size=config.storage.max_file_size,
        chunk_size=config.storage.chunk_size,
    )

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    app.include_router(files_router)

    @app.get("/health")
    async def health() -> dict:
        """Health check endpoint.

        Returns:
            dict: Status object indicating the server is running.
        """
        return {"status": "ok"}

    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the application with uvicorn."""
    config: AppConfig = app.state.config
    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level=config.logging.level.lower(),
    )


if __name__ == "__main__":
    run()
