"""Persistence protocol contracts."""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Protocol

from subtitles_selector.exceptions import InvalidArgumentError

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class Partition(str, Enum):
    """Named partitions ("tables") sharing one physical store."""

    TOKENS = "tokens"
    SUBTITLES = "subtitles"
    SETTINGS = "settings"
    LANGUAGES = "languages"


def resolve_partition(partition: Partition | str) -> Partition:
    try:
        return Partition(partition)
    except ValueError as e:
        raise InvalidArgumentError(f"Unknown partition: {partition!r}") from e


def validate_field_name(field: str) -> str:
    if not isinstance(field, str) or not _FIELD_RE.match(field):
        raise InvalidArgumentError(f"Invalid record field name: {field!r}")
    return field


def record_key(record: dict[str, Any]) -> str:
    key = record.get("id") if isinstance(record, dict) else None
    if key is None or key == "":
        raise InvalidArgumentError("Record must carry a non-empty 'id' field.")
    return str(key)


class KeyValueStore(Protocol):
    """
    Async partitioned record store. ``scan_ordered_by`` sorts like SQLite
    orders ``json_extract`` values: records missing the field first, then
    numbers, then text, with ties broken by ``id``.
    """

    async def open(self) -> KeyValueStore: ...

    async def get(self, partition: Partition | str, key: str) -> dict[str, Any] | None: ...

    async def put(self, partition: Partition | str, record: dict[str, Any]) -> None: ...

    async def delete(self, partition: Partition | str, key: str) -> None: ...

    async def count(self, partition: Partition | str) -> int: ...

    async def scan_ordered_by(
        self, partition: Partition | str, field: str
    ) -> list[dict[str, Any]]: ...

    async def clear(self, partition: Partition | str) -> None: ...

    async def close(self) -> None: ...


__all__ = [
    "KeyValueStore",
    "Partition",
    "record_key",
    "resolve_partition",
    "validate_field_name",
]
