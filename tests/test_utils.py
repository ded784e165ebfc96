"""Tests for small helpers: session state, formatting and file names."""

import pytest

from subtitles_selector.models.records import CacheRecord
from subtitles_selector.models.session import SessionState
from subtitles_selector.utils.formatting import format_age, format_size
from subtitles_selector.utils.path import subtitle_file_name


class TestSessionState:
    def test_application_guard(self) -> None:
        session = SessionState()
        assert session.begin_application() is True
        assert session.begin_application() is False
        session.end_application()
        assert session.begin_application() is True

    def test_find_result_for_file(self) -> None:
        result = {"attributes": {"files": [{"file_id": 10}, {"file_id": 11}]}}
        session = SessionState(current_results=[{"attributes": {}}, result])

        assert session.find_result_for_file("11") is result
        assert session.find_result_for_file("12") is None


class TestCacheRecord:
    def test_integer_id_and_alias(self) -> None:
        record = CacheRecord.model_validate(
            {"id": 42, "content": "x", "fileName": "a.srt", "timestamp": 1}
        )
        assert record.id == "42"
        assert record.to_store()["fileName"] == "a.srt"
        assert "language" not in record.to_store()

    def test_display_title_fallbacks(self) -> None:
        assert CacheRecord(id="1", content="", timestamp=0).display_title == "Subtitle 1"
        assert (
            CacheRecord(id="1", content="", file_name="f.srt", timestamp=0).display_title
            == "f.srt"
        )


@pytest.mark.parametrize(
    "ms,expected",
    [
        (5_000, "5s ago"),
        (300_000, "5m ago"),
        (7_500_000, "2h 5m ago"),
        (3 * 86_400_000 + 3_600_000, "3d 1h ago"),
    ],
)
def test_format_age(ms: int, expected: str) -> None:
    assert format_age(0, now=ms) == expected


def test_format_size() -> None:
    assert format_size(0) == "0 B"
    assert format_size(512) == "512 B"
    assert format_size(2048) == "2.0 KB"


@pytest.mark.parametrize(
    "name,expected",
    [
        ("Movie.srt", "Movie.srt"),
        ("Movie.VTT", "Movie.VTT"),
        ("Movie", "Movie.srt"),
        ("", "77.srt"),
        ("Bad:Name?", "BadName.srt"),
        ("a/b.srt", "ab.srt"),
    ],
)
def test_subtitle_file_name(name: str, expected: str) -> None:
    assert subtitle_file_name(name, "77") == expected
