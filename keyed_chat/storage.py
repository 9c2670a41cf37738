"""Backends persisting serialised session logs, keyed by session key."""

from __future__ import annotations

import logging
import os
import sqlite3
import tempfile
import threading
from pathlib import Path
from typing import Any

from .config import ChatConfig

logger = logging.getLogger(__name__)


class StorageIOError(RuntimeError):
    """Raised when the backing medium cannot be read or written."""


class LogStorage:
    """Interface for storing one opaque log document per session key.

    Each ``write`` must be atomic with respect to ``read``: a reader observes
    either the previous document or the new one, never a partial write.
    Callers serialise writers per key.
    """

    def exists(self, key: str) -> bool:
        raise NotImplementedError

    def read(self, key: str) -> bytes | None:
        raise NotImplementedError

    def write(self, key: str, data: bytes) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> bool:
        raise NotImplementedError

    def close(self) -> None:
        """Release any handles held by the backend."""

    def __enter__(self) -> "LogStorage":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class FileLogStorage(LogStorage):
    """One ``<key>.json`` file per session inside *directory*."""

    SUFFIX = ".json"

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory).expanduser()
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageIOError(f"Cannot create storage directory {self.directory}: {exc}") from exc
        logger.debug("Using file session storage", extra={"directory": str(self.directory)})

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}{self.SUFFIX}"

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    def read(self, key: str) -> bytes | None:
        try:
            return self._path(key).read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageIOError(f"Cannot read session log: {exc}") from exc

    def write(self, key: str, data: bytes) -> None:
        # Write beside the target then rename so readers never see a torn file.
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=self.SUFFIX)
        except OSError as exc:
            raise StorageIOError(f"Cannot write session log: {exc}") from exc
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self._path(key))
        except OSError as exc:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise StorageIOError(f"Cannot write session log: {exc}") from exc

    def delete(self, key: str) -> bool:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageIOError(f"Cannot delete session log: {exc}") from exc
        return True


class SQLiteLogStorage(LogStorage):
    """Persist session logs as rows of a local SQLite database."""

    DEFAULT_DB_PATH = Path.home() / ".keyed-chat" / "sessions.sqlite"

    def __init__(self, db_path: str | Path | None = None) -> None:
        self.db_path = Path(db_path).expanduser() if db_path else self.DEFAULT_DB_PATH
        self._lock = threading.Lock()
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._init_schema()
        except (OSError, sqlite3.Error) as exc:
            raise StorageIOError(f"Cannot open session database {self.db_path}: {exc}") from exc
        logger.debug("Using SQLite session storage", extra={"db_path": str(self.db_path)})

    def _init_schema(self) -> None:
        with self.conn:
            self.conn.execute(
                """
                CREATE TABLE IF NOT EXISTS session_logs (
                    session_key TEXT PRIMARY KEY,
                    data BLOB NOT NULL,
                    updated_at INTEGER DEFAULT (strftime('%s', 'now'))
                )
                """
            )

    def _execute(self, sql: str, params: tuple) -> tuple[Any, int]:
        """Run *sql* in its own transaction; return ``(first_row, rowcount)``."""

        try:
            with self._lock, self.conn:
                cursor = self.conn.execute(sql, params)
                return cursor.fetchone(), cursor.rowcount
        except sqlite3.Error as exc:
            raise StorageIOError(f"Session database error: {exc}") from exc

    def exists(self, key: str) -> bool:
        row, _ = self._execute("SELECT 1 FROM session_logs WHERE session_key = ?", (key,))
        return row is not None

    def read(self, key: str) -> bytes | None:
        row, _ = self._execute("SELECT data FROM session_logs WHERE session_key = ?", (key,))
        return bytes(row[0]) if row else None

    def write(self, key: str, data: bytes) -> None:
        self._execute(
            """
            INSERT INTO session_logs (session_key, data) VALUES (?, ?)
            ON CONFLICT(session_key) DO UPDATE SET
                data = excluded.data,
                updated_at = strftime('%s', 'now')
            """,
            (key, sqlite3.Binary(data)),
        )

    def delete(self, key: str) -> bool:
        _, rowcount = self._execute("DELETE FROM session_logs WHERE session_key = ?", (key,))
        return rowcount > 0

    def close(self) -> None:
        with self._lock:
            self.conn.close()


def open_storage(config: ChatConfig) -> LogStorage:
    """Build the storage backend named by *config*."""

    if config.backend == "sqlite":
        return SQLiteLogStorage(config.resolved_sqlite_path)
    return FileLogStorage(config.storage_dir)
