"""Client-side admission gate keeping call starts under a per-minute budget.

The limiter tracks call-start timestamps over a trailing 60-second window.
Admission decisions are serialized by a lock, so exactly one caller mutates
the window at a time; admitted operations then run concurrently. The limiter
bounds the rate of starts, not the number of calls in flight.
"""

from __future__ import annotations

import asyncio
from collections import deque
import logging
import time
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from colloquy.config import RateLimitConfig

T = TypeVar("T")

logger = logging.getLogger(__name__)

WINDOW_S = 60.0


class RateLimiter:
    """Sliding-window limiter over requests (and optionally tokens) per minute."""

    def __init__(
        self,
        config: RateLimitConfig,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self._config = config
        self._clock = clock
        self._sleep = sleep or asyncio.sleep
        self._window: deque[tuple[float, int]] = deque()
        self._lock = asyncio.Lock()

    @property
    def config(self) -> RateLimitConfig:
        return self._config

    @property
    def window_size(self) -> int:
        """Number of call starts currently retained in the window."""
        return len(self._window)

    def usage(self) -> tuple[int, int]:
        """Return ``(requests, tokens)`` recorded in the trailing window."""
        self._prune(self._clock())
        return len(self._window), sum(tokens for _, tokens in self._window)

    async def execute(
        self, operation: Callable[[], Awaitable[T]], *, tokens: int = 0
    ) -> T:
        """Run *operation* once admitted.

        Args:
            operation: Zero-argument callable returning an awaitable.
            tokens: Estimated tokens for token-per-minute accounting.
        """
        if not self._config.enable_backoff:
            return await operation()
        await self.admit(tokens=tokens)
        return await operation()

    async def admit(self, *, tokens: int = 0) -> float:
        """Wait for a free slot and record the call start.

        Returns:
            Seconds spent waiting.
        """
        if not self._config.enable_backoff:
            return 0.0

        async with self._lock:
            waited = 0.0
            now = self._clock()
            while True:
                self._prune(now)
                wait = self._wait_needed(now, tokens)
                if wait <= 0:
                    break
                logger.debug(
                    "Rate limit reached (%d in window); waiting %.2fs",
                    len(self._window),
                    wait,
                )
                await self._sleep(wait)
                waited += wait
                now = max(self._clock(), now + wait)
            self._window.append((now, max(0, tokens)))
            return waited

    def _prune(self, now: float) -> None:
        cutoff = now - WINDOW_S
        while self._window and self._window[0][0] <= cutoff:
            self._window.popleft()

    def _wait_needed(self, now: float, tokens: int) -> float:
        waits = [0.0]

        if len(self._window) >= self._config.requests_per_minute:
            waits.append(self._window[0][0] + WINDOW_S - now)

        tpm = self._config.tokens_per_minute
        if tpm and tokens > 0 and self._window:
            remaining = sum(t for _, t in self._window)
            if remaining + tokens > tpm:
                for at, t in self._window:
                    remaining -= t
                    if remaining + tokens <= tpm:
                        waits.append(at + WINDOW_S - now)
                        break
                else:
                    # The call alone exceeds the budget: admit once the window is empty.
                    waits.append(self._window[-1][0] + WINDOW_S - now)

        return max(waits)
