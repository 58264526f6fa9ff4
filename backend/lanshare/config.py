"""LanShare application configuration.

Settings come from an optional YAML file (``lanshare.settings.yaml``) and are
then overridden by the environment variables the service has always honoured:

  * ``HOST`` / ``PORT``     : bind address
  * ``LOG_LEVEL``           : root logger level
  * ``UPLOAD_DIR``          : storage root
  * ``MAX_FILE_SIZE``       : upload ceiling in megabytes

The resulting :class:`AppConfig` is frozen.  It is built once at startup and
handed to the application explicitly; nothing re-reads the environment per
request.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("lanshare.settings.yaml")

BYTES_PER_MB = 1024 * 1024

MAX_PORT = 65535


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.debug("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def _env_int(
    env: Mapping[str, str],
    key: str,
    default: int,
    min_value: int = 0,
    max_value: Optional[int] = None,
) -> int:
    raw = env.get(key)
    if raw is None:
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        value = None
    if value is None or value < min_value or (max_value is not None and value > max_value):
        logger.warning("Ignoring invalid %s=%r, using %s", key, raw, default)
        return default
    return value


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    host: str = "0.0.0.0"
    port: int = Field(8080, ge=0, le=MAX_PORT)


class LoggingSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: str = "info"


class StorageSettings(BaseModel):
    """Where uploads live and how large a single part may grow."""
    model_config = ConfigDict(frozen=True)

    upload_dir:          str           = "./uploads"
    max_file_size_mb:    int           = Field(50, ge=0)
    max_file_size_bytes: Optional[int] = Field(None, ge=0)
    chunk_size:          int           = Field(64 * 1024, gt=0)

    @field_validator("upload_dir")
    @classmethod
    def _upload_dir_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("upload_dir must not be empty")
        return value

    @property
    def max_file_size(self) -> int:
        """Upload ceiling in bytes.  An explicit byte value wins over MB."""
        if self.max_file_size_bytes is not None:
            return self.max_file_size_bytes
        return self.max_file_size_mb * BYTES_PER_MB

    @property
    def upload_path(self) -> Path:
        return Path(self.upload_dir)


class AppConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    server:  ServerSettings  = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def _apply_env_overrides(data: Dict[str, Any], env: Mapping[str, str]) -> None:
    server = data["server"] = dict(data.get("server") or {})
    storage = data["storage"] = dict(data.get("storage") or {})
    log_cfg = data["logging"] = dict(data.get("logging") or {})

    if "HOST" in env:
        server["host"] = env["HOST"]
    if "PORT" in env:
        server["port"] = _env_int(
            env, "PORT", server.get("port", ServerSettings().port), max_value=MAX_PORT
        )
    if "LOG_LEVEL" in env:
        log_cfg["level"] = env["LOG_LEVEL"]
    if "UPLOAD_DIR" in env:
        storage["upload_dir"] = env["UPLOAD_DIR"]
    if "MAX_FILE_SIZE" in env:
        storage["max_file_size_mb"] = _env_int(
            env, "MAX_FILE_SIZE", storage.get("max_file_size_mb", 50)
        )


def load_config(
    settings_path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> AppConfig:
    """Load the YAML settings (if any) and apply environment overrides.

    A relative ``storage.upload_dir`` taken from the settings file is resolved
    against the directory holding that file.  Values coming from the
    environment or the defaults stay relative to the working directory.

    Args:
        settings_path: YAML file to read. Defaults to ``lanshare.settings.yaml``
            in the working directory.
        env: Environment mapping. Defaults to ``os.environ``.

    Returns:
        The frozen application configuration.
    """
    path = Path(settings_path) if settings_path is not None else SETTINGS_FILE
    env = os.environ if env is None else env

    data = _load_yaml(path)
    storage = dict(data.get("storage") or {})
    upload_dir = storage.get("upload_dir")
    if upload_dir and not Path(upload_dir).is_absolute():
        storage["upload_dir"] = str(path.resolve().parent / upload_dir)
    data["storage"] = storage

    _apply_env_overrides(data, env)

    config = AppConfig(**data)
    logger.info(
        "Settings loaded (server=%s:%s, upload_dir=%s, max_file_size=%d bytes)",
        config.server.host,
        config.server.port,
        config.storage.upload_dir,
        config.storage.max_file_size,
    )
    return config
