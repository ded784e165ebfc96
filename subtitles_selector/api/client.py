"""
Async client for the OpenSubtitles REST API (v1), with circuit breaker protection.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import aiohttp

from subtitles_selector.exceptions import (
    AuthRequiredError,
    NetworkError,
    SubtitleNotFoundError,
    UpstreamError,
)
from subtitles_selector.models.config import (
    DEFAULT_USER_AGENT,
    PUBLIC_API_HOST,
    api_endpoint_for,
)
from subtitles_selector.models.records import TokenRecord
from subtitles_selector.utils.circuit_breaker import CircuitBreaker, CircuitBreakerError

from .rate_limiter import AdaptiveRateLimiter

log = logging.getLogger(__name__)


@dataclass
class RawSubtitlePayload:
    """What the gateway returns for one downloaded subtitle file."""

    file_id: str
    content: str
    file_name: str
    remaining_downloads: Optional[int] = None


class OpenSubtitlesClient:
    """
    Thin async gateway to the OpenSubtitles API.

    Features:
    - Per-token endpoint selection (public or VIP host)
    - Circuit breaker for API resilience
    - Adaptive rate limiting
    - Errors mapped onto the application's RemoteFetchError family
    """

    def __init__(
        self,
        api_key: str,
        user_agent: str = DEFAULT_USER_AGENT,
        base_url: str = PUBLIC_API_HOST,
        max_connections: int = 8,
    ):
        """
        Initializes the API client.

        Args:
            api_key: Consumer API key registered with OpenSubtitles.
            user_agent: Descriptive agent string; the API rejects generic ones.
            base_url: Host used when no token-specific host is known.
            max_connections: Upper bound for the connection pool.
        """
        self.api_key = api_key
        self.user_agent = user_agent
        self.base_url = base_url
        self.max_connections = max_connections

        self._session: Optional[aiohttp.ClientSession] = None
        self._rate_limiter = AdaptiveRateLimiter()
        self._circuit_breaker = CircuitBreaker(
            name="opensubtitles",
            failure_threshold=5,
            recovery_timeout=60,
            success_threshold=2,
            ignored_exceptions=(AuthRequiredError, SubtitleNotFoundError),
        )

    async def __aenter__(self) -> "OpenSubtitlesClient":
        await self._initialize_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _initialize_session(self) -> None:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=self.max_connections,
                ttl_dns_cache=300,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers={
                    "Api-Key": self.api_key,
                    "User-Agent": self.user_agent,
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                },
                timeout=aiohttp.ClientTimeout(total=30, connect=10, sock_read=20),
            )

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    @staticmethod
    async def _raise_for_status(response: aiohttp.ClientResponse, endpoint: str) -> None:
        """Maps an unsuccessful HTTP status onto a RemoteFetchError."""
        status = response.status
        if 200 <= status < 300:
            return

        try:
            detail = (await response.text())[:200]
        except (aiohttp.ClientError, UnicodeDecodeError):
            detail = ""

        if status in (401, 403):
            raise AuthRequiredError(
                f"The API rejected the token for {endpoint} ({status}). {detail}".strip()
            )
        if status == 404:
            raise SubtitleNotFoundError(f"{endpoint} returned 404. {detail}".strip())
        raise UpstreamError(f"{endpoint} returned HTTP {status}. {detail}".strip())

    async def api_call(
        self,
        method: str,
        endpoint: str,
        *,
        token: Optional[str] = None,
        host: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Makes an API call with rate limiting and circuit breaker protection.

        Raises:
            AuthRequiredError, SubtitleNotFoundError, NetworkError, UpstreamError
        """
        await self._initialize_session()
        url = f"{api_endpoint_for(host or self.base_url)}/{endpoint.lstrip('/')}"
        headers = {"Authorization": f"Bearer {token}"} if token else None

        try:
            async with self._circuit_breaker:
                await self._rate_limiter.acquire()
                async with self._session.request(
                    method, url, params=params, json=payload, headers=headers
                ) as r:
                    if r.status == 429:
                        retry_after = r.headers.get("Retry-After")
                        await self._rate_limiter.on_429(
                            float(retry_after) if retry_after and retry_after.isdigit() else None
                        )
                        raise UpstreamError(f"Rate limited on {endpoint}.")

                    await self._raise_for_status(r, endpoint)
                    try:
                        return await r.json()
                    except (aiohttp.ContentTypeError, ValueError) as e:
                        raise UpstreamError(
                            f"{endpoint} returned a non-JSON body."
                        ) from e

        except CircuitBreakerError as e:
            log.error(f"[red]Circuit breaker is open for API calls: {e}[/red]")
            raise UpstreamError(str(e)) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.debug(f"API call to {endpoint} failed: {e}")
            raise NetworkError(f"Could not reach the API ({endpoint}): {e}") from e

    async def _download_text(self, link: str) -> str:
        """Downloads the subtitle body from the temporary link."""
        await self._initialize_session()
        try:
            async with self._session.get(link, headers={"Accept": "*/*"}) as r:
                await self._raise_for_status(r, "download link")
                raw = await r.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(f"Could not download the subtitle file: {e}") from e
        return raw.decode("utf-8-sig", errors="replace")

    async def fetch_remote(self, token: TokenRecord, file_id: str) -> RawSubtitlePayload:
        """
        Resolves a download link for ``file_id`` and fetches the file content.

        Args:
            token: The stored session token; its host picks the endpoint.
            file_id: OpenSubtitles file id.
        """
        if not token or not token.token:
            raise AuthRequiredError("A login token is required to download subtitles.")
        try:
            numeric_id = int(file_id)
        except (TypeError, ValueError) as e:
            raise SubtitleNotFoundError(f"'{file_id}' is not a valid file id.") from e

        response = await self.api_call(
            "POST",
            "download",
            token=token.token,
            host=token.base_url,
            payload={"file_id": numeric_id},
        )
        link = response.get("link")
        if not link:
            raise UpstreamError(
                response.get("message") or f"No download link returned for {file_id}."
            )

        content = await self._download_text(link)
        log.debug(
            f"Downloaded subtitle {file_id} ({len(content)} chars, "
            f"{response.get('remaining', '?')} downloads remaining)"
        )
        return RawSubtitlePayload(
            file_id=str(file_id),
            content=content,
            file_name=response.get("file_name") or f"{file_id}.srt",
            remaining_downloads=response.get("remaining"),
        )

    async def validate_token(self, token: str, host: Optional[str] = None) -> Dict[str, Any]:
        """Returns the account info for ``token``; raises AuthRequiredError if rejected."""
        response = await self.api_call("GET", "infos/user", token=token, host=host)
        return response.get("data", {})

    async def login(self, username: str, password: str) -> Dict[str, Any]:
        """Exchanges credentials for a token and the host to use with it."""
        response = await self.api_call(
            "POST", "login", payload={"username": username, "password": password}
        )
        if not response.get("token"):
            raise AuthRequiredError("Login did not return a token.")
        return response

    async def search_subtitles(self, **params: Any) -> Dict[str, Any]:
        return await self.api_call("GET", "subtitles", params=params)

    async def fetch_languages(self) -> List[Dict[str, Any]]:
        response = await self.api_call("GET", "infos/languages")
        return response.get("data", [])
