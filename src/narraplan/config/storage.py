"""Where narraplan keeps its entity database and HTTP cache."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import optional_env_var

APP_DIR_NAME: Final[str] = "narraplan"
DEFAULT_DB_FILENAME: Final[str] = "narraplan.db"
HTTP_CACHE_FILENAME: Final[str] = "http_cache.db"


def _platform_data_home() -> Path:
    if os.name == "nt":
        local = optional_env_var("LOCALAPPDATA")
        return Path(local) if local else Path.home() / "AppData" / "Local"
    xdg = optional_env_var("XDG_DATA_HOME")
    return Path(xdg) if xdg else Path.home() / ".local" / "share"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """A data directory holding one SQLite file per concern.

    The directory is created the first time a file path inside it is asked for.
    """

    data_dir: Path

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def _file(self, filename: str) -> Path:
        directory = self.resolve_data_dir()
        directory.mkdir(parents=True, exist_ok=True)
        return directory / filename

    def database_uri(self) -> str:
        return f"sqlite+pysqlite:///{self._file(DEFAULT_DB_FILENAME)}"

    def http_cache_path(self) -> Path:
        return self._file(HTTP_CACHE_FILENAME)


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str


def get_storage_config() -> StorageConfig:
    """``NARRAPLAN_DATA_DIR`` or the per-user data directory of the platform."""
    explicit = optional_env_var("NARRAPLAN_DATA_DIR")
    return StorageConfig(data_dir=Path(explicit) if explicit else _platform_data_home() / APP_DIR_NAME)


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    uri = optional_env_var("DATABASE_URI")
    if uri is None:
        uri = (storage or get_storage_config()).database_uri()
    return DatabaseConfig(uri=uri)


def get_http_cache_path() -> Path:
    return get_storage_config().http_cache_path()
