"""
Manages the SQLite database that backs every partition of the persistent store.
"""

import asyncio
import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from subtitles_selector.exceptions import StorageError, StorageUnavailableError

from .contracts import (
    Partition,
    record_key,
    resolve_partition,
    validate_field_name,
)

log = logging.getLogger(__name__)

DB_FILE_NAME = "subtitles_selector.sqlite"


class SqliteStore:
    """
    A partitioned key-value store on SQLite. Each partition is a table of
    ``(id, data)`` rows where ``data`` holds the JSON-encoded record.

    Blocking calls run in worker threads behind a semaphore that caps the
    number of simultaneous connections.
    """

    def __init__(self, db_path: Path, pool_size: int = 5):
        self.db_path = Path(db_path)
        self._pool_size = pool_size
        self._connection_semaphore = asyncio.Semaphore(pool_size)
        self._opened = False

    @classmethod
    def in_config_dir(cls, config_dir_path: Path) -> "SqliteStore":
        return cls(config_dir_path / DB_FILE_NAME)

    @property
    def is_open(self) -> bool:
        return self._opened

    def _get_connection(self) -> sqlite3.Connection:
        """Gets a new database connection with optimized PRAGMA settings."""
        conn = sqlite3.connect(self.db_path, timeout=30, check_same_thread=False)
        try:
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            conn.execute("PRAGMA temp_store=MEMORY;")
        except sqlite3.Error:
            conn.close()
            raise
        return conn

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Yields a connection that commits on success and is always closed."""
        conn = self._get_connection()
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _initialize_sync(self) -> None:
        """Creates the database file and one table per partition if missing."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            with self._connection() as conn:
                for partition in Partition:
                    conn.execute(
                        f"CREATE TABLE IF NOT EXISTS {partition.value} ("
                        "id TEXT PRIMARY KEY NOT NULL, "
                        "data TEXT NOT NULL"
                        ");"
                    )
        except (OSError, sqlite3.Error) as e:
            log.error(f"Failed to open subtitle store at '{self.db_path}': {e}")
            raise StorageUnavailableError(
                f"Cannot open the store at '{self.db_path}': {e}"
            ) from e

    async def _run_in_executor(self, func, *args):
        """Runs a synchronous database function within the connection pool semaphore."""
        async with self._connection_semaphore:
            return await asyncio.to_thread(func, *args)

    async def open(self) -> "SqliteStore":
        """Creates all partitions. Safe to call more than once."""
        if not self._opened:
            await self._run_in_executor(self._initialize_sync)
            self._opened = True
            log.debug(f"Opened subtitle store at {self.db_path}")
        return self

    def _require_open(self) -> None:
        if not self._opened:
            raise StorageError("The store has not been opened.")

    async def _execute(self, description: str, func, *args):
        self._require_open()
        try:
            return await self._run_in_executor(func, *args)
        except sqlite3.Error as e:
            raise StorageError(f"{description} failed: {e}") from e

    def _get_sync(self, table: str, key: str) -> dict[str, Any] | None:
        with self._connection() as conn:
            row = conn.execute(
                f"SELECT data FROM {table} WHERE id = ?",  # noqa: S608
                (key,),
            ).fetchone()
        return json.loads(row[0]) if row else None

    async def get(self, partition: Partition | str, key: str) -> dict[str, Any] | None:
        table = resolve_partition(partition).value
        return await self._execute(f"get {table}/{key}", self._get_sync, table, key)

    def _put_sync(self, table: str, key: str, payload: str) -> None:
        with self._connection() as conn:
            conn.execute(
                f"INSERT INTO {table} (id, data) VALUES (?, ?) "  # noqa: S608
                "ON CONFLICT(id) DO UPDATE SET data = excluded.data",
                (key, payload),
            )

    async def put(self, partition: Partition | str, record: dict[str, Any]) -> None:
        """Upserts a record keyed by its own ``id``; returns once committed."""
        table = resolve_partition(partition).value
        key = record_key(record)
        try:
            payload = json.dumps(record)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Record {key} is not serializable: {e}") from e
        await self._execute(f"put {table}/{key}", self._put_sync, table, key, payload)

    def _delete_sync(self, table: str, key: str) -> None:
        with self._connection() as conn:
            conn.execute(f"DELETE FROM {table} WHERE id = ?", (key,))  # noqa: S608

    async def delete(self, partition: Partition | str, key: str) -> None:
        table = resolve_partition(partition).value
        await self._execute(f"delete {table}/{key}", self._delete_sync, table, key)

    def _count_sync(self, table: str) -> int:
        with self._connection() as conn:
            return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]  # noqa: S608

    async def count(self, partition: Partition | str) -> int:
        table = resolve_partition(partition).value
        return await self._execute(f"count {table}", self._count_sync, table)

    def _scan_sync(self, table: str, field: str) -> list[dict[str, Any]]:
        path = f"$.{field}"
        with self._connection() as conn:
            rows = conn.execute(
                f"SELECT data FROM {table} "  # noqa: S608
                "ORDER BY json_extract(data, ?) IS NOT NULL, "
                "json_extract(data, ?), id",
                (path, path),
            ).fetchall()
        return [json.loads(row[0]) for row in rows]

    async def scan_ordered_by(
        self, partition: Partition | str, field: str
    ) -> list[dict[str, Any]]:
        """
        Returns a snapshot of the partition sorted ascending by ``field``.
        Records without the field come first; ties are broken by ``id``.
        """
        table = resolve_partition(partition).value
        validate_field_name(field)
        return await self._execute(
            f"scan {table} by {field}", self._scan_sync, table, field
        )

    def _clear_sync(self, table: str) -> None:
        with self._connection() as conn:
            conn.execute(f"DELETE FROM {table}")  # noqa: S608

    async def clear(self, partition: Partition | str) -> None:
        table = resolve_partition(partition).value
        await self._execute(f"clear {table}", self._clear_sync, table)

    def _vacuum_sync(self) -> None:
        with self._connection() as conn:
            conn.execute("VACUUM;")

    async def vacuum(self) -> bool:
        """Optimizes the database file by rebuilding it."""
        try:
            await self._execute("vacuum", self._vacuum_sync)
            return True
        except StorageError as e:
            log.error(f"Database vacuum failed: {e}")
            return False

    async def close(self) -> None:
        # Connections are per-call; closing only blocks further use.
        self._opened = False
