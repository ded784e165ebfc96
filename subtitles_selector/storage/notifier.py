"""
Broadcasts which subtitle id changed so displayed cache badges can refresh.
Delivery is best-effort: a missed notification only leaves a badge stale until
the next render, because ``SubtitleCache.exists`` is always authoritative.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .subtitle_cache import SubtitleCache

log = logging.getLogger(__name__)

CACHED_LABEL = "Cached"
NOT_CACHED_LABEL = "Not cached"

StatusCallback = Callable[[str], None] | Callable[[str], Awaitable[None]]


class CacheStatusNotifier:
    """Fire-and-forget fan-out of changed subtitle ids to subscribers."""

    def __init__(self):
        self._subscribers: list[StatusCallback] = []
        self._pending: set[asyncio.Task] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, callback: StatusCallback) -> Callable[[], None]:
        """
        Registers a callback receiving the changed id.

        Returns:
            A function that removes the subscription; calling it twice is harmless.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def notify(self, subtitle_id: str) -> None:
        """Informs every subscriber about ``subtitle_id``. Never raises."""
        for callback in list(self._subscribers):
            try:
                result = callback(subtitle_id)
            except Exception as e:
                log.warning(f"Cache status subscriber failed for {subtitle_id}: {e}")
                continue
            if inspect.isawaitable(result):
                self._schedule(subtitle_id, result)

    def _schedule(self, subtitle_id: str, awaitable: Awaitable[None]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No running loop; drop the notification.
            log.debug(f"No event loop to deliver cache status for {subtitle_id}.")
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return
        task = asyncio.ensure_future(awaitable, loop=loop)
        self._pending.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        if (exc := task.exception()) is not None:
            log.warning(f"Async cache status subscriber failed: {exc}")

    async def drain(self) -> None:
        """Waits for scheduled async deliveries. Mainly useful at shutdown."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


async def badge(cache: "SubtitleCache", subtitle_id: str) -> str:
    """Returns the badge text for an id by re-querying the cache."""
    return CACHED_LABEL if await cache.exists(subtitle_id) else NOT_CACHED_LABEL
