"""
Repositories for the sibling partitions: the session token, overlay settings,
and the cached language list.
"""

import logging
from typing import Any

from pydantic import ValidationError

from subtitles_selector.exceptions import StorageError
from subtitles_selector.models.records import (
    LanguageListRecord,
    SettingsRecord,
    TokenRecord,
    now_ms,
)

from .contracts import KeyValueStore, Partition

log = logging.getLogger(__name__)

TOKEN_EXPIRY_DAYS = 30
LANGUAGE_LIST_MAX_AGE_DAYS = 7
DAY_MS = 24 * 60 * 60 * 1000

USER_INFO_KEY = "userInfo"


class _PartitionRepository:
    """Shared degraded-mode handling for single-key partitions."""

    partition: Partition

    def __init__(self, store: KeyValueStore | None):
        self._store = store

    async def _get(self, key: str) -> dict[str, Any] | None:
        if self._store is None:
            return None
        try:
            return await self._store.get(self.partition, key)
        except StorageError as e:
            log.warning(f"Reading {self.partition.value}/{key} failed: {e}")
            return None

    async def _put(self, record: dict[str, Any]) -> bool:
        if self._store is None:
            log.warning(f"Store unavailable; {self.partition.value} not saved.")
            return False
        try:
            await self._store.put(self.partition, record)
            return True
        except StorageError as e:
            log.error(f"Writing {self.partition.value}/{record.get('id')} failed: {e}")
            return False

    async def _delete(self, key: str) -> bool:
        if self._store is None:
            return False
        try:
            await self._store.delete(self.partition, key)
            return True
        except StorageError as e:
            log.error(f"Deleting {self.partition.value}/{key} failed: {e}")
            return False


class TokenRepository(_PartitionRepository):
    """Stores the current API token. Presence and local validity gate remote fetches."""

    partition = Partition.TOKENS

    async def save(
        self,
        token: str,
        base_url: str = "api.opensubtitles.com",
        user_data: dict[str, Any] | None = None,
    ) -> TokenRecord:
        record = TokenRecord(token=token, base_url=base_url, user_data=user_data)
        await self._put(record.model_dump())
        return record

    async def load(self) -> TokenRecord | None:
        raw = await self._get("current")
        if raw is None:
            return None
        try:
            return TokenRecord.model_validate(raw)
        except ValidationError as e:
            log.warning(f"Stored token is malformed, ignoring it: {e}")
            return None

    @staticmethod
    def is_locally_valid(record: TokenRecord | None, now: int | None = None) -> bool:
        """True while the token is younger than ``TOKEN_EXPIRY_DAYS``."""
        if record is None or not record.token:
            return False
        now = now_ms() if now is None else now
        return now - record.timestamp < TOKEN_EXPIRY_DAYS * DAY_MS

    async def clear(self) -> bool:
        return await self._delete("current")


class SettingsRepository(_PartitionRepository):
    """Overlay settings and cached account info."""

    partition = Partition.SETTINGS

    async def load(self) -> SettingsRecord:
        """Returns stored settings, or the defaults on a miss or error."""
        raw = await self._get("userSettings")
        if raw is None:
            return SettingsRecord()
        try:
            return SettingsRecord.model_validate(raw)
        except ValidationError as e:
            log.warning(f"Stored settings are invalid, using defaults: {e}")
            return SettingsRecord()

    async def save(self, settings: SettingsRecord) -> bool:
        return await self._put(settings.model_dump())

    async def update(self, **changes: Any) -> SettingsRecord:
        """
        Applies ``changes`` on top of the stored settings and saves the result.

        Raises:
            pydantic.ValidationError: If a change is out of range.
        """
        current = await self.load()
        updated = SettingsRecord.model_validate({**current.model_dump(), **changes})
        await self.save(updated)
        return updated

    async def load_user_info(self) -> dict[str, Any] | None:
        raw = await self._get(USER_INFO_KEY)
        if raw is None:
            return None
        raw.pop("id", None)
        return raw

    async def save_user_info(self, user_data: dict[str, Any]) -> bool:
        return await self._put({**user_data, "id": USER_INFO_KEY})


class LanguageListRepository(_PartitionRepository):
    """Caches the API's language list with a soft expiry."""

    partition = Partition.LANGUAGES

    async def save(self, languages: list[dict[str, Any]]) -> LanguageListRecord:
        record = LanguageListRecord(data=languages)
        await self._put(record.model_dump())
        return record

    async def load(
        self,
        max_age_days: float = LANGUAGE_LIST_MAX_AGE_DAYS,
        now: int | None = None,
    ) -> LanguageListRecord | None:
        """Returns the cached list, or None when it is missing or stale."""
        raw = await self._get("cachedLanguages")
        if raw is None:
            return None
        try:
            record = LanguageListRecord.model_validate(raw)
        except ValidationError as e:
            log.warning(f"Cached language list is malformed: {e}")
            return None
        now = now_ms() if now is None else now
        if now - record.timestamp >= max_age_days * DAY_MS:
            log.debug("Cached language list is stale.")
            return None
        return record
