from pathlib import Path

import pytest
import pytest_asyncio

from subtitles_selector.models.records import CacheRecord
from subtitles_selector.storage.memory_store import InMemoryStore
from subtitles_selector.storage.store import SqliteStore


def make_record(subtitle_id: str, timestamp: int, content: str | None = None) -> CacheRecord:
    return CacheRecord(
        id=subtitle_id,
        content=content or f"1\n00:00:01,000 --> 00:00:02,000\n{subtitle_id}\n",
        file_name=f"{subtitle_id}.srt",
        title=f"Title {subtitle_id}",
        timestamp=timestamp,
    )


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def store(request: pytest.FixtureRequest, tmp_path: Path):
    """An opened store; every cache test runs against both engines."""
    if request.param == "memory":
        backend = InMemoryStore()
    else:
        backend = SqliteStore(tmp_path / "cache.sqlite")
    await backend.open()
    yield backend
    await backend.close()
