"""
Bounded subtitle cache over the ``subtitles`` partition of the persistent store.

Eviction is oldest-``timestamp``-first. Only writes refresh a record's
timestamp; read hits leave the ordering untouched.
"""

import asyncio
import logging

from pydantic import ValidationError

from subtitles_selector.exceptions import InvalidArgumentError, StorageError
from subtitles_selector.models.records import CacheRecord

from .contracts import KeyValueStore, Partition
from .notifier import CacheStatusNotifier

log = logging.getLogger(__name__)

CACHE_CAPACITY = 20


def _require_id(subtitle_id: str) -> str:
    if not isinstance(subtitle_id, str) or not subtitle_id:
        raise InvalidArgumentError("Subtitle id must be a non-empty string.")
    return subtitle_id


class SubtitleCache:
    """
    Read-through primitives and capacity-bounded writes for cached subtitles.

    Storage failures never escape this class: reads degrade to a miss and
    writes to a logged no-op. A ``store`` of ``None`` means the persistent
    store could not be opened and every call behaves as an empty cache.
    """

    def __init__(
        self,
        store: KeyValueStore | None,
        notifier: CacheStatusNotifier | None = None,
        capacity: int = CACHE_CAPACITY,
    ):
        if capacity < 1:
            raise InvalidArgumentError("Cache capacity must be at least 1.")
        self._store = store
        self.notifier = notifier
        self.capacity = capacity
        self._insert_lock = asyncio.Lock()

    @property
    def available(self) -> bool:
        return self._store is not None

    async def lookup(self, subtitle_id: str) -> CacheRecord | None:
        """Returns the cached record or None. Never contacts the API."""
        _require_id(subtitle_id)
        if self._store is None:
            return None

        try:
            raw = await self._store.get(Partition.SUBTITLES, subtitle_id)
        except StorageError as e:
            log.warning(f"Cache lookup failed for {subtitle_id}: {e}")
            return None

        if raw is None:
            log.debug(f"Cache miss: {subtitle_id}")
            return None

        try:
            record = CacheRecord.model_validate(raw)
        except ValidationError as e:
            log.warning(f"Ignoring malformed cache entry {subtitle_id}: {e}")
            return None
        log.debug(f"Cache hit: {subtitle_id}")
        return record

    async def exists(self, subtitle_id: str) -> bool:
        return await self.lookup(subtitle_id) is not None

    async def insert(self, record: CacheRecord) -> None:
        """
        Stores ``record``, first evicting the oldest entries so the partition
        holds at most ``capacity`` records afterwards.

        The count and eviction run before the upsert even when ``record.id``
        is already cached, so re-storing an existing id at capacity can evict
        one extra (oldest) entry.
        """
        if not isinstance(record, CacheRecord):
            raise InvalidArgumentError("insert() expects a CacheRecord.")
        if self._store is None:
            log.warning(f"Subtitle store unavailable; not caching {record.id}.")
            return

        async with self._insert_lock:
            await self._evict_for_insert()
            try:
                await self._store.put(Partition.SUBTITLES, record.to_store())
            except StorageError as e:
                log.error(f"Failed to cache subtitle {record.id}: {e}")
                return

        log.debug(f"Cached subtitle {record.id} ({len(record.content)} chars)")
        if self.notifier:
            self.notifier.notify(record.id)

    async def _evict_for_insert(self) -> None:
        try:
            count = await self._store.count(Partition.SUBTITLES)
        except StorageError as e:
            log.warning(f"Could not count cached subtitles, skipping eviction: {e}")
            return

        if count < self.capacity:
            return
        to_evict = count - (self.capacity - 1)

        try:
            oldest_first = await self._store.scan_ordered_by(
                Partition.SUBTITLES, "timestamp"
            )
        except StorageError as e:
            log.warning(f"Could not list cached subtitles, skipping eviction: {e}")
            return

        evicted = 0
        for candidate in oldest_first[:to_evict]:
            candidate_id = str(candidate.get("id"))
            try:
                await self._store.delete(Partition.SUBTITLES, candidate_id)
                evicted += 1
            except StorageError as e:
                log.error(f"Failed to evict cached subtitle {candidate_id}: {e}")
        if evicted:
            log.info(f"Evicted {evicted} subtitle(s) from the cache.")

    async def check_in_cache(self, subtitle_id: str) -> CacheRecord | None:
        """UI-facing alias of :meth:`lookup`."""
        return await self.lookup(subtitle_id)

    async def store_in_cache(self, record: CacheRecord) -> None:
        """UI-facing alias of :meth:`insert`."""
        await self.insert(record)

    async def entries(self) -> list[CacheRecord]:
        """All cached records, oldest first."""
        if self._store is None:
            return []
        try:
            raw_records = await self._store.scan_ordered_by(
                Partition.SUBTITLES, "timestamp"
            )
        except StorageError as e:
            log.warning(f"Could not list cached subtitles: {e}")
            return []

        records = []
        for raw in raw_records:
            try:
                records.append(CacheRecord.model_validate(raw))
            except ValidationError:
                log.debug(f"Skipping malformed cache entry {raw.get('id')}")
        return records

    async def clear(self) -> bool:
        """Removes all items from the cache."""
        if self._store is None:
            return False
        log.info("Clearing all cached subtitles...")
        async with self._insert_lock:
            try:
                removed = await self._store.scan_ordered_by(
                    Partition.SUBTITLES, "timestamp"
                )
                await self._store.clear(Partition.SUBTITLES)
            except StorageError as e:
                log.error(f"Failed to clear subtitle cache: {e}")
                return False
        if self.notifier:
            for raw in removed:
                self.notifier.notify(str(raw.get("id")))
        return True
