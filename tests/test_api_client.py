"""Tests for the OpenSubtitles gateway's error mapping and download flow."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from subtitles_selector.api.client import OpenSubtitlesClient
from subtitles_selector.exceptions import (
    AuthRequiredError,
    SubtitleNotFoundError,
    UpstreamError,
)
from subtitles_selector.models.records import TokenRecord
from subtitles_selector.utils.circuit_breaker import CircuitState


def fake_response(status: int, body: str = "") -> MagicMock:
    response = MagicMock()
    response.status = status
    response.text = AsyncMock(return_value=body)
    return response


@pytest.fixture
def client() -> OpenSubtitlesClient:
    return OpenSubtitlesClient(api_key="abc123")


class TestStatusMapping:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,error",
        [
            (401, AuthRequiredError),
            (403, AuthRequiredError),
            (404, SubtitleNotFoundError),
            (406, UpstreamError),
            (500, UpstreamError),
        ],
    )
    async def test_error_statuses(self, status, error) -> None:
        with pytest.raises(error):
            await OpenSubtitlesClient._raise_for_status(fake_response(status, "nope"), "download")

    @pytest.mark.asyncio
    async def test_success_passes(self) -> None:
        await OpenSubtitlesClient._raise_for_status(fake_response(200), "download")


class TestFetchRemote:
    @pytest.mark.asyncio
    async def test_downloads_through_link(self, client) -> None:
        client.api_call = AsyncMock(
            return_value={"link": "https://dl/x", "file_name": "Heat.srt", "remaining": 4}
        )
        client._download_text = AsyncMock(return_value="1\n00:00:01,000 --> 00:00:02,000\nHi\n")
        token = TokenRecord(token="tok", base_url="vip-api.opensubtitles.com")

        result = await client.fetch_remote(token, "123")

        client.api_call.assert_awaited_once_with(
            "POST",
            "download",
            token="tok",
            host="vip-api.opensubtitles.com",
            payload={"file_id": 123},
        )
        client._download_text.assert_awaited_once_with("https://dl/x")
        assert result.file_id == "123"
        assert result.file_name == "Heat.srt"
        assert result.remaining_downloads == 4
        assert result.content.endswith("Hi\n")

    @pytest.mark.asyncio
    async def test_missing_file_name_defaults_to_id(self, client) -> None:
        client.api_call = AsyncMock(return_value={"link": "https://dl/x"})
        client._download_text = AsyncMock(return_value="body")

        result = await client.fetch_remote(TokenRecord(token="tok"), "9")

        assert result.file_name == "9.srt"

    @pytest.mark.asyncio
    async def test_missing_link_is_upstream_error(self, client) -> None:
        client.api_call = AsyncMock(return_value={"message": "quota exceeded"})
        client._download_text = AsyncMock()

        with pytest.raises(UpstreamError, match="quota exceeded"):
            await client.fetch_remote(TokenRecord(token="tok"), "9")
        client._download_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_token_requires_auth(self, client) -> None:
        client.api_call = AsyncMock()
        with pytest.raises(AuthRequiredError):
            await client.fetch_remote(TokenRecord.model_construct(token=""), "9")
        client.api_call.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_non_numeric_id_is_not_found(self, client) -> None:
        client.api_call = AsyncMock()
        with pytest.raises(SubtitleNotFoundError):
            await client.fetch_remote(TokenRecord(token="tok"), "abc")
        client.api_call.assert_not_awaited()


class TestCircuitBreakerIntegration:
    @pytest.mark.asyncio
    async def test_open_circuit_surfaces_as_upstream_error(self, client) -> None:
        client._circuit_breaker._trip()
        client._initialize_session = AsyncMock()

        with pytest.raises(UpstreamError, match="circuit is open"):
            await client.api_call("GET", "infos/user", token="tok")

    def test_client_errors_do_not_trip_the_breaker(self, client) -> None:
        ignored = client._circuit_breaker.ignored_exceptions
        assert AuthRequiredError in ignored
        assert SubtitleNotFoundError in ignored
        assert client._circuit_breaker.state == CircuitState.CLOSED


class TestAccountCalls:
    @pytest.mark.asyncio
    async def test_login_without_token_fails(self, client) -> None:
        client.api_call = AsyncMock(return_value={"status": 200})
        with pytest.raises(AuthRequiredError):
            await client.login("user", "pass")

    @pytest.mark.asyncio
    async def test_validate_token_returns_user_data(self, client) -> None:
        client.api_call = AsyncMock(return_value={"data": {"level": "VIP"}})

        assert await client.validate_token("tok") == {"level": "VIP"}
        client.api_call.assert_awaited_once_with("GET", "infos/user", token="tok", host=None)
