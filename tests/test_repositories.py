"""Tests for the token, settings and language-list repositories."""

import pytest
import pytest_asyncio
from pydantic import ValidationError

from subtitles_selector.models.records import SettingsRecord, TokenRecord
from subtitles_selector.storage.contracts import Partition
from subtitles_selector.storage.memory_store import InMemoryStore
from subtitles_selector.storage.repositories import (
    DAY_MS,
    TOKEN_EXPIRY_DAYS,
    LanguageListRepository,
    SettingsRepository,
    TokenRepository,
)


@pytest_asyncio.fixture
async def memory_store() -> InMemoryStore:
    return await InMemoryStore().open()


class TestTokenRepository:
    @pytest.mark.asyncio
    async def test_save_and_load(self, store) -> None:
        tokens = TokenRepository(store)
        await tokens.save("tok", base_url="vip-api.opensubtitles.com", user_data={"vip": True})

        loaded = await tokens.load()

        assert loaded.token == "tok"
        assert loaded.base_url == "vip-api.opensubtitles.com"
        assert loaded.user_data == {"vip": True}
        assert (await store.get(Partition.TOKENS, "current"))["token"] == "tok"

    @pytest.mark.asyncio
    async def test_missing_token(self, store) -> None:
        assert await TokenRepository(store).load() is None

    @pytest.mark.asyncio
    async def test_clear(self, store) -> None:
        tokens = TokenRepository(store)
        await tokens.save("tok")
        await tokens.clear()
        assert await tokens.load() is None

    def test_local_validity_window(self) -> None:
        record = TokenRecord(token="tok", timestamp=0)
        limit = TOKEN_EXPIRY_DAYS * DAY_MS

        assert TokenRepository.is_locally_valid(record, now=limit - 1) is True
        assert TokenRepository.is_locally_valid(record, now=limit) is False
        assert TokenRepository.is_locally_valid(None) is False

    @pytest.mark.asyncio
    async def test_degraded_store(self) -> None:
        tokens = TokenRepository(None)
        await tokens.save("tok")
        assert await tokens.load() is None
        assert await tokens.clear() is False


class TestSettingsRepository:
    @pytest.mark.asyncio
    async def test_defaults_when_missing(self, store) -> None:
        settings = await SettingsRepository(store).load()
        assert settings == SettingsRecord()
        assert settings.font_size == 16
        assert settings.bg_opacity == 0.5

    @pytest.mark.asyncio
    async def test_update_merges_and_persists(self, store) -> None:
        repo = SettingsRepository(store)
        await repo.update(sync_offset=1.25)
        await repo.update(font_color="#ff0000")

        loaded = await repo.load()
        assert loaded.sync_offset == 1.25
        assert loaded.font_color == "#FF0000"

    @pytest.mark.asyncio
    async def test_invalid_update_is_rejected(self, memory_store) -> None:
        repo = SettingsRepository(memory_store)
        with pytest.raises(ValidationError):
            await repo.update(bg_opacity=3.0)
        assert (await repo.load()).bg_opacity == 0.5

    @pytest.mark.asyncio
    async def test_corrupt_settings_fall_back_to_defaults(self, memory_store) -> None:
        await memory_store.put(Partition.SETTINGS, {"id": "userSettings", "font_size": "huge"})
        assert await SettingsRepository(memory_store).load() == SettingsRecord()

    @pytest.mark.asyncio
    async def test_user_info_round_trip(self, memory_store) -> None:
        repo = SettingsRepository(memory_store)
        await repo.save_user_info({"level": "Sub leecher", "remaining_downloads": 19})

        assert await repo.load_user_info() == {
            "level": "Sub leecher",
            "remaining_downloads": 19,
        }
        assert (await repo.load()) == SettingsRecord()


class TestLanguageListRepository:
    @pytest.mark.asyncio
    async def test_fresh_list_is_returned(self, store) -> None:
        repo = LanguageListRepository(store)
        saved = await repo.save([{"language_code": "en", "language_name": "English"}])

        loaded = await repo.load(now=saved.timestamp + 1000)
        assert loaded.data[0]["language_code"] == "en"

    @pytest.mark.asyncio
    async def test_stale_list_is_ignored(self, store) -> None:
        repo = LanguageListRepository(store)
        saved = await repo.save([{"language_code": "en"}])

        assert await repo.load(max_age_days=1, now=saved.timestamp + DAY_MS) is None

    @pytest.mark.asyncio
    async def test_missing_list(self, memory_store) -> None:
        assert await LanguageListRepository(memory_store).load() is None
