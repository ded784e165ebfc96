"""
Circuit breaker guarding calls to the OpenSubtitles API.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Optional

log = logging.getLogger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"  # Calls pass through
    OPEN = "open"  # Calls rejected until the cool-down elapses
    HALF_OPEN = "half_open"  # Probing whether the API recovered


class CircuitBreakerError(Exception):
    """Raised when a call is rejected because the circuit is open."""


class CircuitBreaker:
    """
    Opens after ``failure_threshold`` consecutive failures and rejects calls for
    ``recovery_timeout`` seconds, then lets trial calls through until
    ``success_threshold`` of them succeed.

    Exceptions listed in ``ignored_exceptions`` describe a bad request rather
    than an unhealthy service (an unknown file id, a rejected token), so they
    pass through without counting as failures.
    """

    def __init__(
        self,
        name: str = "api",
        failure_threshold: int = 5,
        recovery_timeout: float = 60,
        success_threshold: int = 2,
        ignored_exceptions: tuple[type[BaseException], ...] = (),
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.success_threshold = success_threshold
        self.ignored_exceptions = ignored_exceptions

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at: Optional[float] = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    def reset(self) -> None:
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at = None

    def _maybe_half_open(self) -> None:
        if self._state != CircuitState.OPEN or self._opened_at is None:
            return
        waited = time.monotonic() - self._opened_at
        if waited >= self.recovery_timeout:
            log.info(
                f"[yellow]{self.name}: probing the API again after {waited:.0f}s."
                "[/yellow]"
            )
            self._state = CircuitState.HALF_OPEN
            self._success_count = 0

    async def _record_success(self) -> None:
        async with self._lock:
            self._failure_count = 0
            if self._state != CircuitState.HALF_OPEN:
                return
            self._success_count += 1
            if self._success_count >= self.success_threshold:
                log.info(f"[green]✓ {self.name}: API recovered, circuit closed.[/green]")
                self.reset()

    async def _record_failure(self) -> None:
        async with self._lock:
            self._failure_count += 1
            if self._state == CircuitState.HALF_OPEN:
                log.warning(f"[yellow]{self.name}: trial call failed, reopening.[/yellow]")
                self._trip()
            elif (
                self._state == CircuitState.CLOSED
                and self._failure_count >= self.failure_threshold
            ):
                log.error(
                    f"[red]✗ {self.name}: {self._failure_count} consecutive failures. "
                    f"Rejecting calls for {self.recovery_timeout:.0f}s.[/red]"
                )
                self._trip()

    def _trip(self) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = time.monotonic()
        self._failure_count = 0
        self._success_count = 0

    async def __aenter__(self):
        async with self._lock:
            self._maybe_half_open()
            if self._state == CircuitState.OPEN:
                raise CircuitBreakerError(
                    f"{self.name} circuit is open; retry after "
                    f"{self.recovery_timeout:.0f} seconds."
                )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            await self._record_success()
        elif issubclass(exc_type, self.ignored_exceptions):
            await self._record_success()
        elif not issubclass(exc_type, asyncio.CancelledError):
            await self._record_failure()
        return False
