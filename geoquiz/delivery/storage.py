"""
Blob Storage for persisted quiz state.

All persisted state (progress, custom aliases) is a JSON string stored
under a fixed key. Backends:
- JsonFileStorage: one file per key in ~/.geoquiz/ (default)
- SqliteBlobStorage: single key/value table in ~/.geoquiz/state.db
- MemoryStorage: process-local, for tests and embedding
"""

from __future__ import annotations

import os
import sqlite3
import tempfile
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from loguru import logger

if TYPE_CHECKING:
    from geoquiz.config import Settings


class BlobStorage(Protocol):
    """Get/set contract for persisted blobs."""

    def get_blob(self, key: str) -> str | None: ...

    def set_blob(self, key: str, value: str) -> None: ...

    def delete_blob(self, key: str) -> None: ...


# =============================================================================
# Backends
# =============================================================================


class MemoryStorage:
    """Dict-backed storage."""

    def __init__(self, initial: dict[str, str] | None = None):
        self.blobs: dict[str, str] = dict(initial or {})

    def get_blob(self, key: str) -> str | None:
        return self.blobs.get(key)

    def set_blob(self, key: str, value: str) -> None:
        self.blobs[key] = value

    def delete_blob(self, key: str) -> None:
        self.blobs.pop(key, None)


class JsonFileStorage:
    """
    One UTF-8 file per key.

    Writes go through a temporary file in the same directory followed by
    an atomic rename, so a crash never leaves a half-written blob.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get_blob(self, key: str) -> str | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set_blob(self, key: str, value: str) -> None:
        path = self.path_for(key)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_name, path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def delete_blob(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)


class SqliteBlobStorage:
    """Key/value table in a local SQLite database."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn: sqlite3.Connection | None = None
        self._init_schema()

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_schema(self) -> None:
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS blobs (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP
            )
        """)
        self.conn.commit()

    def get_blob(self, key: str) -> str | None:
        row = self.conn.execute("SELECT value FROM blobs WHERE key = ?", (key,)).fetchone()
        return None if row is None else row["value"]

    def set_blob(self, key: str, value: str) -> None:
        self.conn.execute(
            """
            INSERT INTO blobs (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
        """,
            (key, value, datetime.now().isoformat()),
        )
        self.conn.commit()

    def delete_blob(self, key: str) -> None:
        self.conn.execute("DELETE FROM blobs WHERE key = ?", (key,))
        self.conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None


def create_storage(settings: Settings) -> BlobStorage:
    """Build the configured storage backend."""
    backend = settings.storage_backend
    if backend == "memory":
        storage: BlobStorage = MemoryStorage()
    elif backend == "sqlite":
        storage = SqliteBlobStorage(settings.state_dir / "state.db")
    else:
        storage = JsonFileStorage(settings.state_dir)
    logger.info(f"Using {backend} storage in {settings.state_dir}")
    return storage
