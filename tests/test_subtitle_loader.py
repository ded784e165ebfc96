"""Tests for the read-through SubtitleLoader."""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from subtitles_selector.api.client import RawSubtitlePayload
from subtitles_selector.core.subtitle_loader import SubtitleLoader
from subtitles_selector.exceptions import (
    AuthRequiredError,
    NetworkError,
    SubtitleNotFoundError,
)
from subtitles_selector.models.records import CacheRecord, TokenRecord
from subtitles_selector.models.session import SessionState
from subtitles_selector.storage.contracts import Partition
from subtitles_selector.storage.notifier import CacheStatusNotifier
from subtitles_selector.storage.subtitle_cache import SubtitleCache

from .conftest import make_record

TOKEN = TokenRecord(token="tok", base_url="api.opensubtitles.com")


def payload(file_id: str) -> RawSubtitlePayload:
    return RawSubtitlePayload(
        file_id=file_id,
        content=f"1\n00:00:01,000 --> 00:00:02,000\nremote {file_id}\n",
        file_name=f"Movie.{file_id}.srt",
        remaining_downloads=10,
    )


def make_loader(cache: SubtitleCache, gateway: MagicMock | None = None) -> SubtitleLoader:
    if gateway is None:
        gateway = MagicMock()
        gateway.fetch_remote = AsyncMock(side_effect=lambda _token, fid: payload(fid))
    auth = MagicMock()
    auth.ensure_valid_token = AsyncMock(return_value=TOKEN)
    return SubtitleLoader(cache, gateway, auth)


def session_with(file_id: str, title: str, language: str = "en") -> SessionState:
    return SessionState(
        current_results=[
            {
                "id": "9000",
                "attributes": {
                    "language": language,
                    "release": "Some.Release.1080p",
                    "feature_details": {"title": title},
                    "files": [{"file_id": int(file_id), "file_name": "x.srt"}],
                },
            }
        ]
    )


class TestLoad:
    @pytest.mark.asyncio
    async def test_hit_skips_remote_without_notifying(self, store) -> None:
        notifier = CacheStatusNotifier()
        cache = SubtitleCache(store, notifier)
        cached = make_record("123", timestamp=1)
        await cache.insert(cached)
        seen: list[str] = []
        notifier.subscribe(seen.append)
        loader = make_loader(cache)

        result = await loader.load("123")

        assert result == cached
        loader.gateway.fetch_remote.assert_not_awaited()
        loader.auth.ensure_valid_token.assert_not_awaited()
        assert seen == []

    @pytest.mark.asyncio
    async def test_miss_fetches_and_stores(self, store) -> None:
        cache = SubtitleCache(store)
        loader = make_loader(cache)

        result = await loader.load("456")

        loader.gateway.fetch_remote.assert_awaited_once_with(TOKEN, "456")
        assert result.content.endswith("remote 456\n")
        assert result.title == "Movie.456.srt"
        assert result.timestamp > 0
        assert await cache.lookup("456") == result

    @pytest.mark.asyncio
    async def test_explicit_title_wins(self, store) -> None:
        loader = make_loader(SubtitleCache(store))
        result = await loader.load("1", title="The Film", session=session_with("1", "Other"))
        assert result.title == "The Film"

    @pytest.mark.asyncio
    async def test_title_and_language_from_session(self, store) -> None:
        loader = make_loader(SubtitleCache(store))

        result = await loader.load("77", session=session_with("77", "Heat", language="fr"))

        assert result.title == "Heat"
        assert result.language == "fr"

    @pytest.mark.asyncio
    async def test_auth_failure_propagates_without_insert(self, store) -> None:
        cache = SubtitleCache(store)
        loader = make_loader(cache)
        loader.auth.ensure_valid_token = AsyncMock(side_effect=AuthRequiredError("no token"))

        with pytest.raises(AuthRequiredError):
            await loader.load("5")

        loader.gateway.fetch_remote.assert_not_awaited()
        assert await store.count(Partition.SUBTITLES) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [NetworkError("offline"), SubtitleNotFoundError("gone")])
    async def test_gateway_failure_leaves_cache_untouched(self, store, error) -> None:
        cache = SubtitleCache(store)
        await cache.insert(make_record("old", timestamp=1))
        gateway = MagicMock()
        gateway.fetch_remote = AsyncMock(side_effect=error)
        loader = make_loader(cache, gateway)

        with pytest.raises(type(error)):
            await loader.load("5")

        assert [r.id for r in await cache.entries()] == ["old"]

    @pytest.mark.asyncio
    async def test_cancelled_fetch_does_not_insert(self, store) -> None:
        cache = SubtitleCache(store)
        started = asyncio.Event()

        async def slow_fetch(_token, _file_id):
            started.set()
            await asyncio.sleep(3600)

        gateway = MagicMock()
        gateway.fetch_remote = AsyncMock(side_effect=slow_fetch)
        loader = make_loader(cache, gateway)

        task = asyncio.create_task(loader.load("5"))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert await store.count(Partition.SUBTITLES) == 0

    @pytest.mark.asyncio
    async def test_degraded_cache_still_serves_remote(self) -> None:
        cache = SubtitleCache(None)
        loader = make_loader(cache)

        first = await loader.load("8")
        second = await loader.load("8")

        assert first.content == second.content
        assert loader.gateway.fetch_remote.await_count == 2


class TestApply:
    @pytest.mark.asyncio
    async def test_apply_releases_guard(self, store) -> None:
        loader = make_loader(SubtitleCache(store))
        session = session_with("3", "Alien")

        record = await loader.apply("3", session)

        assert record.title == "Alien"
        assert session.application_in_progress is False

    @pytest.mark.asyncio
    async def test_apply_passes_explicit_title(self, store) -> None:
        loader = make_loader(SubtitleCache(store))

        record = await loader.apply("3", session_with("3", "Alien"), title="Aliens")

        assert record.title == "Aliens"

    @pytest.mark.asyncio
    async def test_apply_is_refused_while_in_progress(self, store) -> None:
        loader = make_loader(SubtitleCache(store))
        session = SessionState(application_in_progress=True)

        assert await loader.apply("3", session) is None
        loader.gateway.fetch_remote.assert_not_awaited()
        assert session.application_in_progress is True

    @pytest.mark.asyncio
    async def test_apply_releases_guard_on_failure(self, store) -> None:
        gateway = MagicMock()
        gateway.fetch_remote = AsyncMock(side_effect=NetworkError("offline"))
        loader = make_loader(SubtitleCache(store), gateway)
        session = SessionState()

        with pytest.raises(NetworkError):
            await loader.apply("3", session)
        assert session.application_in_progress is False


class TestPrefetch:
    @pytest.mark.asyncio
    async def test_prefetch_maps_failures_to_none(self, store) -> None:
        def fetch(_token, file_id):
            if file_id == "bad":
                raise SubtitleNotFoundError("bad id")
            return payload(file_id)

        gateway = MagicMock()
        gateway.fetch_remote = AsyncMock(side_effect=fetch)
        loader = make_loader(SubtitleCache(store), gateway)

        results = await loader.prefetch(["1", "bad", "2", "1"])

        assert list(results) == ["1", "bad", "2"]
        assert results["bad"] is None
        assert isinstance(results["1"], CacheRecord)
        assert gateway.fetch_remote.await_count == 3

    @pytest.mark.asyncio
    async def test_prefetch_takes_titles_from_session(self, store) -> None:
        loader = make_loader(SubtitleCache(store))
        session = session_with("4", "Heat", language="fr")

        results = await loader.prefetch(["4", "5"], session)

        assert results["4"].title == "Heat"
        assert results["4"].language == "fr"
        assert results["5"].title != "Heat"

    @pytest.mark.asyncio
    async def test_prefetch_empty(self, store) -> None:
        assert await make_loader(SubtitleCache(store)).prefetch([]) == {}


class TestSaveToFile:
    @pytest.mark.asyncio
    async def test_writes_content_with_srt_extension(self, tmp_path: Path) -> None:
        record = CacheRecord(
            id="42",
            content="1\n00:00:01,000 --> 00:00:02,000\nHi\n",
            file_name="Bad:Name?",
            title="Bad",
            timestamp=1,
        )

        destination = await SubtitleLoader.save_to_file(record, tmp_path / "out")

        assert destination.parent == tmp_path / "out"
        assert destination.suffix == ".srt"
        assert ":" not in destination.name
        assert destination.read_text(encoding="utf-8") == record.content

    @pytest.mark.asyncio
    async def test_keeps_existing_extension(self, tmp_path: Path) -> None:
        record = make_record("9", timestamp=1)
        destination = await SubtitleLoader.save_to_file(record, tmp_path)
        assert destination.name == "9.srt"
