"""
Async Utilities for Upstream Source Calls.

Provides:
- Rate limiting with token bucket (injected clock for tests)
- Circuit breaker for sources that keep failing

Both are plain components owned by whoever makes upstream calls. Nothing here
is a module-level singleton.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from .exceptions import SourceError

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]


# =============================================================================
# Rate Limiter (Token Bucket Algorithm)
# =============================================================================

@dataclass
class RateLimiter:
    """
    Token bucket rate limiter for upstream calls.

    Example:
        limiter = RateLimiter(rate=5, per=1.0)
        async with limiter:
            await make_api_call()

    Tests pass a fake ``clock`` and ``sleep`` so no real time passes.
    """
    rate: float = 5.0  # requests per period
    per: float = 1.0   # period in seconds
    clock: Clock = time.monotonic
    sleep: Sleeper = asyncio.sleep
    _tokens: float = field(init=False)
    _last_update: float = field(init=False)
    _lock: asyncio.Lock = field(init=False, default_factory=asyncio.Lock)

    def __post_init__(self) -> None:
        if self.rate <= 0 or self.per <= 0:
            raise ValueError("rate and per must be positive")
        self._tokens = self.rate
        self._last_update = self.clock()

    @property
    def tokens(self) -> float:
        return self._tokens

    async def acquire(self) -> float:
        """Acquire a token, waiting if necessary. Returns the time waited."""
        async with self._lock:
            now = self.clock()
            elapsed = now - self._last_update
            self._tokens = min(self.rate, self._tokens + elapsed * (self.rate / self.per))
            self._last_update = now

            if self._tokens < 1:
                wait_time = (1 - self._tokens) * (self.per / self.rate)
                logger.debug(f"Rate limit: waiting {wait_time:.2f}s")
                await self.sleep(wait_time)
                self._tokens = 0
                self._last_update = self.clock()
                return wait_time

            self._tokens -= 1
            return 0.0

    async def __aenter__(self) -> RateLimiter:
        await self.acquire()
        return self

    async def __aexit__(self, *args: Any) -> None:
        pass


# =============================================================================
# Circuit Breaker Pattern
# =============================================================================

@dataclass
class CircuitBreaker:
    """
    Circuit breaker for a single upstream source.

    States:
    - CLOSED: Normal operation
    - OPEN: Failing, reject requests immediately
    - HALF_OPEN: Testing if the source recovered

    Example:
        breaker = CircuitBreaker(name="site_a", failure_threshold=5)

        async with breaker:
            result = await risky_api_call()
    """
    name: str = "source"
    failure_threshold: int = 5
    recovery_timeout: float = 30.0
    half_open_max_calls: int = 3
    clock: Clock = time.monotonic

    _failure_count: int = field(init=False, default=0)
    _last_failure_time: float | None = field(init=False, default=None)
    _state: str = field(init=False, default="closed")
    _half_open_calls: int = field(init=False, default=0)
    _lock: asyncio.Lock = field(init=False, default_factory=asyncio.Lock)

    @property
    def state(self) -> str:
        return self._state

    @property
    def is_open(self) -> bool:
        """Check if circuit is open (rejecting requests)."""
        if self._state == "open":
            if self._last_failure_time is not None:
                if self.clock() - self._last_failure_time > self.recovery_timeout:
                    return False  # Move to half-open
            return True
        return False

    async def __aenter__(self) -> CircuitBreaker:
        async with self._lock:
            if self.is_open:
                raise SourceError(
                    f"{self.name}: circuit breaker is open",
                    source_key=self.name,
                    retryable=False,
                )

            if self._state == "open":
                self._state = "half_open"
                self._half_open_calls = 0

            if self._state == "half_open":
                if self._half_open_calls >= self.half_open_max_calls:
                    raise SourceError(
                        f"{self.name}: circuit breaker is half-open (max calls reached)",
                        source_key=self.name,
                        retryable=False,
                    )
                self._half_open_calls += 1
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        async with self._lock:
            if exc_val is not None and not isinstance(exc_val, asyncio.CancelledError):
                self._failure_count += 1
                self._last_failure_time = self.clock()

                if self._state == "half_open" or self._failure_count >= self.failure_threshold:
                    self._state = "open"
                    logger.warning(
                        f"Circuit breaker for {self.name} opened after {self._failure_count} failures"
                    )
            elif exc_val is None:
                if self._state == "half_open":
                    self._state = "closed"
                    self._failure_count = 0
                    logger.info(f"Circuit breaker for {self.name} closed (recovered)")
                elif self._state == "closed":
                    self._failure_count = max(0, self._failure_count - 1)
