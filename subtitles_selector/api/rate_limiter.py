"""
Spaces out API requests and backs off when the API answers 429.
"""

import asyncio
import logging
import time

log = logging.getLogger(__name__)

# OpenSubtitles allows 5 requests per second per client.
DEFAULT_CALLS_PER_SECOND = 4.0
MAX_CALLS_PER_SECOND = 5.0
RECOVERY_QUIET_SECONDS = 120


class AdaptiveRateLimiter:
    """
    Enforces a minimum interval between calls. Each 429 halves the rate;
    after a quiet period the rate creeps back toward the maximum.
    """

    def __init__(
        self,
        calls_per_second: float = DEFAULT_CALLS_PER_SECOND,
        max_calls_per_second: float = MAX_CALLS_PER_SECOND,
    ):
        self._rate = calls_per_second
        self._max_rate = max_calls_per_second
        self._last_call = 0.0
        self._last_throttled = 0.0
        self._lock = asyncio.Lock()

    @property
    def rate(self) -> float:
        return self._rate

    async def on_429(self, retry_after: float | None = None) -> None:
        """Halves the rate (floor 0.5 calls/s) and honours ``Retry-After``."""
        async with self._lock:
            self._rate = max(0.5, self._rate / 2)
            self._last_throttled = time.monotonic()
            log.warning(
                f"[yellow]Rate limited by the API. New rate: {self._rate:.1f} calls/s"
                "[/yellow]"
            )
            if retry_after:
                # Push the next slot out so acquire() waits it off.
                self._last_call = time.monotonic() + retry_after

    async def acquire(self) -> None:
        """Waits until the next call is allowed."""
        async with self._lock:
            now = time.monotonic()
            if now - self._last_throttled > RECOVERY_QUIET_SECONDS:
                self._rate = min(self._max_rate, self._rate * 1.05)

            wait = self._last_call + 1.0 / self._rate - now
            if wait > 0:
                await asyncio.sleep(wait)
            self._last_call = time.monotonic()
