"""Store configuration and the adapter factory."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datagate.persistence.adapter import StoreAdapter

_SQLITE_PREFIX = "sqlite:///"
_POSTGRES_PREFIXES = ("postgresql://", "postgresql+psycopg://", "postgres://")


@dataclass
class DatabaseConfig:
    """Where the store lives, as a sqlite:/// or postgresql:// URL."""

    url: str

    @classmethod
    def from_env(cls, base_path: Path | None = None) -> DatabaseConfig:
        """Read the store URL from the environment.

        DATABASE_URL wins; otherwise DATAGATE_DB_PATH names a SQLite file;
        otherwise the file is data/datagate.db under base_path (or the
        working directory when no base path is given).
        """
        url = os.environ.get("DATABASE_URL")
        if url:
            return cls(url=url)
        db_path = os.environ.get("DATAGATE_DB_PATH")
        if db_path:
            return cls(url=_SQLITE_PREFIX + db_path)
        if base_path:
            return cls(url=_SQLITE_PREFIX + str(base_path / "data" / "datagate.db"))
        return cls(url=_SQLITE_PREFIX + "datagate.db")

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def is_postgresql(self) -> bool:
        return self.url.startswith(_POSTGRES_PREFIXES)

    @property
    def sqlite_path(self) -> str:
        """File path of a SQLite URL; ":memory:" for an empty path."""
        if not self.is_sqlite:
            return ":memory:"
        return self.url[len(_SQLITE_PREFIX):] or ":memory:"

    def ensure_directory(self) -> None:
        """Create the parent directory of a file-backed SQLite store."""
        if self.is_sqlite and self.sqlite_path != ":memory:":
            Path(self.sqlite_path).parent.mkdir(parents=True, exist_ok=True)


def create_adapter(config: DatabaseConfig) -> StoreAdapter:
    """Build the adapter for config's URL scheme. The adapter is not connected.

    Raises:
        ValueError: For unsupported URL schemes
    """
    if config.is_sqlite:
        from datagate.persistence.sqlite import SQLiteAdapter

        return SQLiteAdapter(config.sqlite_path)

    if config.is_postgresql:
        from datagate.persistence.postgresql import PostgreSQLAdapter

        return PostgreSQLAdapter(config.url)

    raise ValueError(f"Unsupported database URL scheme: {config.url}")
