"""Token-bucket throttle for completion API calls."""

import asyncio
import logging
import time
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Token bucket with lazy refill.

    Tokens refill continuously at ``refill_rate_per_sec`` up to ``max_tokens``;
    the refill is computed from elapsed clock time on each ``acquire()``, so
    there is no background timer. One instance is constructed per process
    (or per test) and injected into every component that calls the model.

    ``acquire()`` holds an asyncio lock while it waits, so concurrent callers
    are served in arrival order and the bucket never goes negative.
    """

    def __init__(
        self,
        max_tokens: float,
        refill_rate_per_sec: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_tokens < 1:
            raise ValueError(f"max_tokens must be >= 1, got {max_tokens}")
        if refill_rate_per_sec <= 0:
            raise ValueError(
                f"refill_rate_per_sec must be positive, got {refill_rate_per_sec}"
            )
        self.max_tokens = float(max_tokens)
        self.refill_rate_per_sec = float(refill_rate_per_sec)
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(max_tokens)
        self._last_refill = clock()
        self._lock = asyncio.Lock()

    @classmethod
    def unlimited(cls) -> "RateLimiter":
        """A limiter that never waits in practice (tests, dry runs)."""
        return cls(max_tokens=1_000_000, refill_rate_per_sec=1_000_000)

    @property
    def available_tokens(self) -> float:
        self._refill()
        return self._tokens

    async def acquire(self) -> None:
        """Wait until a token is available, then consume it."""
        async with self._lock:
            self._refill()
            if self._tokens < 1:
                wait = (1 - self._tokens) / self.refill_rate_per_sec
                logger.debug(f"Rate limit reached, waiting {wait:.3f}s for a token")
                await self._sleep(wait)
                self._refill()
                # Sleep granularity can leave us a hair short of a full token
                self._tokens = max(self._tokens, 1.0)
            self._tokens -= 1

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(self.max_tokens, self._tokens + elapsed * self.refill_rate_per_sec)
        self._last_refill = now
