"""Photo gallery application configuration.

Loads settings from a single YAML file:
  * gallery.settings.yaml: server, storage, database and logging settings

The file location can be overridden with the ``GALLERY_SETTINGS`` environment
variable; ``GALLERY_ENV`` overrides ``server.environment``.
"""
from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("gallery.settings.yaml")

MAX_FILE_SIZE_BYTES = 50 * 1024 * 1024


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def _base_dir_for(settings_path: Path) -> Path:
    """Directory that relative paths in the settings file are resolved from.

    A settings file kept in ``<project>/config/`` resolves against the
    project root; anywhere else it resolves against its own directory.
    """
    settings_dir = settings_path.resolve().parent
    if settings_dir.name == "config":
        return settings_dir.parent
    return settings_dir


def _resolve(base_dir: Path, value: str) -> str:
    if not value or value == ":memory:":
        return value
    path = Path(value)
    if path.is_absolute():
        return str(path)
    return str(base_dir / path)


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:        str  = "0.0.0.0"
    port:        int  = 3000
    environment: Literal["development", "production"] = "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


class StorageSettings(BaseModel):
    content_dir:         str = "./content"
    max_file_size_bytes: int = Field(default=MAX_FILE_SIZE_BYTES, gt=0)
    chunk_size:          int = Field(default=64 * 1024, gt=0)


class DatabaseSettings(BaseModel):
    path:      str = "./gallery.duckdb"
    pool_size: int = Field(default=10, ge=1)


class LoggingSettings(BaseModel):
    level: str = "info"
    file:  str = "./logs/app.log"

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        if not isinstance(getattr(logging, value.upper(), None), int):
            raise ValueError(f"Unknown log level: {value}")
        return value.lower()


class AppConfig(BaseModel):
    server:   ServerSettings   = Field(default_factory=ServerSettings)
    storage:  StorageSettings  = Field(default_factory=StorageSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging:  LoggingSettings  = Field(default_factory=LoggingSettings)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_config(settings_path: Optional[Path] = None) -> AppConfig:
    """Load *gallery.settings.yaml* into an :class:`AppConfig`.

    Relative paths (content dir, database file, log file) are made absolute
    so the service behaves the same regardless of the working directory.
    """
    if settings_path is None:
        settings_path = Path(os.environ.get("GALLERY_SETTINGS", SETTINGS_FILE))
    settings_path = Path(settings_path)

    data = _load_yaml(settings_path)
    env_override = os.environ.get("GALLERY_ENV")
    if env_override:
        data.setdefault("server", {})["environment"] = env_override

    config = AppConfig(**data)

    base_dir = _base_dir_for(settings_path)
    config.storage.content_dir = _resolve(base_dir, config.storage.content_dir)
    config.database.path = _resolve(base_dir, config.database.path)
    config.logging.file = _resolve(base_dir, config.logging.file)

    logger.info(
        "Settings loaded (server=%s:%s, environment=%s, content_dir=%s, db=%s)",
        config.server.host,
        config.server.port,
        config.server.environment,
        config.storage.content_dir,
        config.database.path,
    )
    return config


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Return the process-wide configuration, loading it on first use."""
    return load_config()
