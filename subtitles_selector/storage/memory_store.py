"""
An in-process store with the same async interface as the SQLite store.
Used for tests and for sessions that must not touch the disk.
"""

import asyncio
import copy
import json
import logging
from typing import Any

from subtitles_selector.exceptions import StorageError, StorageUnavailableError

from .contracts import Partition, record_key, resolve_partition, validate_field_name

log = logging.getLogger(__name__)


def _sqlite_rank(value: Any) -> tuple[int, Any]:
    """Orders values the way SQLite orders ``json_extract`` results:
    missing first, then numbers, then text (objects and arrays as JSON text)."""
    if value is None:
        return (0, 0)
    if isinstance(value, (bool, int, float)):
        return (1, value)
    if isinstance(value, str):
        return (2, value)
    return (2, json.dumps(value, separators=(",", ":")))


class InMemoryStore:
    """Partitioned dictionaries; every call yields to the event loop once."""

    def __init__(self, available: bool = True):
        self._available = available
        self._partitions: dict[Partition, dict[str, dict[str, Any]]] = {}
        self._opened = False

    @property
    def is_open(self) -> bool:
        return self._opened

    async def open(self) -> "InMemoryStore":
        if not self._available:
            raise StorageUnavailableError("In-memory store was configured as unavailable.")
        for partition in Partition:
            self._partitions.setdefault(partition, {})
        self._opened = True
        return self

    async def _table(self, partition: Partition | str) -> dict[str, dict[str, Any]]:
        resolved = resolve_partition(partition)
        await asyncio.sleep(0)
        if not self._opened:
            raise StorageError("The store has not been opened.")
        return self._partitions[resolved]

    async def get(self, partition: Partition | str, key: str) -> dict[str, Any] | None:
        record = (await self._table(partition)).get(key)
        return copy.deepcopy(record) if record is not None else None

    async def put(self, partition: Partition | str, record: dict[str, Any]) -> None:
        key = record_key(record)
        (await self._table(partition))[key] = copy.deepcopy(record)

    async def delete(self, partition: Partition | str, key: str) -> None:
        (await self._table(partition)).pop(key, None)

    async def count(self, partition: Partition | str) -> int:
        return len(await self._table(partition))

    async def scan_ordered_by(
        self, partition: Partition | str, field: str
    ) -> list[dict[str, Any]]:
        validate_field_name(field)
        table = await self._table(partition)

        def sort_key(item: tuple[str, dict[str, Any]]):
            key, record = item
            return (*_sqlite_rank(record.get(field)), key)

        ordered = sorted(table.items(), key=sort_key)
        return [copy.deepcopy(record) for _, record in ordered]

    async def clear(self, partition: Partition | str) -> None:
        (await self._table(partition)).clear()

    async def close(self) -> None:
        self._opened = False
