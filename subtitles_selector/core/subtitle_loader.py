"""
The read-through flow around the subtitle cache: serve hits locally, fetch misses
from the API, store what was fetched, and tell the UI which id changed.
"""

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Iterable, Optional, Protocol

import aiofiles

from subtitles_selector.exceptions import InvalidArgumentError, RemoteFetchError
from subtitles_selector.models.records import CacheRecord, TokenRecord, now_ms
from subtitles_selector.models.session import SessionState
from subtitles_selector.storage.subtitle_cache import SubtitleCache
from subtitles_selector.utils.path import create_dir, subtitle_file_name

if TYPE_CHECKING:
    from subtitles_selector.api.client import RawSubtitlePayload

log = logging.getLogger(__name__)


class RemoteGateway(Protocol):
    async def fetch_remote(
        self, token: TokenRecord, file_id: str
    ) -> "RawSubtitlePayload": ...


class TokenProvider(Protocol):
    async def ensure_valid_token(self) -> TokenRecord: ...


class SubtitleLoader:
    """Coordinates the cache, the token and the remote gateway for one subtitle id."""

    def __init__(
        self,
        cache: SubtitleCache,
        gateway: RemoteGateway,
        auth: TokenProvider,
        max_concurrent: int = 4,
    ):
        self.cache = cache
        self.gateway = gateway
        self.auth = auth
        self.semaphore = asyncio.Semaphore(max_concurrent)

    async def load(
        self,
        subtitle_id: str,
        title: Optional[str] = None,
        session: Optional[SessionState] = None,
    ) -> CacheRecord:
        """
        Returns the subtitle from the cache, fetching and caching it on a miss.

        Args:
            subtitle_id: OpenSubtitles file id.
            title: Display title; looked up in ``session`` results when omitted.
            session: The UI's session state, if any.

        Raises:
            InvalidArgumentError: If ``subtitle_id`` is empty.
            RemoteFetchError: If the fetch fails; the cache is left untouched.
        """
        cached = await self.cache.lookup(subtitle_id)
        if cached is not None:
            log.debug(f"Serving subtitle {subtitle_id} from cache.")
            return cached

        log.debug(f"Subtitle {subtitle_id} not cached, fetching from the API.")
        token = await self.auth.ensure_valid_token()
        payload = await self.gateway.fetch_remote(token, subtitle_id)

        record = CacheRecord(
            id=subtitle_id,
            content=payload.content,
            file_name=payload.file_name,
            title=title or self._title_from_session(session, subtitle_id) or payload.file_name,
            language=self._language_from_session(session, subtitle_id),
            timestamp=now_ms(),
        )
        await self.cache.insert(record)
        return record

    async def apply(
        self, subtitle_id: str, session: SessionState, title: Optional[str] = None
    ) -> Optional[CacheRecord]:
        """
        Loads a subtitle for display, refusing to start while another
        application is still running in the same session.

        Returns:
            The record, or None if an application was already in progress.
        """
        if not session.begin_application():
            log.info("A subtitle is already being applied; ignoring request.")
            return None
        try:
            return await self.load(subtitle_id, title=title, session=session)
        finally:
            session.end_application()

    async def prefetch(
        self,
        subtitle_ids: Iterable[str],
        session: Optional[SessionState] = None,
    ) -> Dict[str, Optional[CacheRecord]]:
        """
        Loads several subtitles concurrently, at most ``max_concurrent`` at once.
        Titles and languages come from ``session`` results when given.

        Returns:
            Dictionary mapping subtitle id -> record (or None if it failed).
        """
        unique_ids = list(dict.fromkeys(subtitle_ids))
        if not unique_ids:
            return {}

        log.debug(f"Prefetching {len(unique_ids)} subtitles...")

        async def fetch_single(subtitle_id: str) -> tuple[str, Optional[CacheRecord]]:
            async with self.semaphore:
                try:
                    return subtitle_id, await self.load(subtitle_id, session=session)
                except (RemoteFetchError, InvalidArgumentError) as e:
                    log.warning(f"Failed to prefetch subtitle {subtitle_id}: {e}")
                    return subtitle_id, None

        results = await asyncio.gather(*(fetch_single(sid) for sid in unique_ids))
        return dict(results)

    @staticmethod
    async def save_to_file(record: CacheRecord, directory: Path) -> Path:
        """Writes the subtitle content to ``directory`` under its suggested name."""
        create_dir(directory)
        destination = directory / subtitle_file_name(record.file_name, record.id)
        async with aiofiles.open(destination, "w", encoding="utf-8") as f:
            await f.write(record.content)
        log.info(f"Saved subtitle {record.id} to {destination}")
        return destination

    @staticmethod
    def _title_from_session(session: Optional[SessionState], subtitle_id: str) -> str:
        if session is None:
            return ""
        result = session.find_result_for_file(subtitle_id)
        if not result:
            return ""
        attributes = result.get("attributes", {})
        details = attributes.get("feature_details", {})
        return details.get("title") or attributes.get("release") or ""

    @staticmethod
    def _language_from_session(
        session: Optional[SessionState], subtitle_id: str
    ) -> Optional[str]:
        if session is None:
            return None
        result = session.find_result_for_file(subtitle_id)
        return result.get("attributes", {}).get("language") if result else None
