"""
Circuit breaker for payment provider calls.

Each provider client owns its own breaker instance:
1. CLOSED: requests pass through
2. OPEN: after failure_threshold consecutive failures, calls fail fast
3. HALF_OPEN: after timeout_seconds, a few probe calls decide recovery

Usage:
    breaker = CircuitBreaker(CircuitBreakerConfig(name="mtn_momo"))

    async with breaker.call():
        response = await client.get(...)
"""

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from enum import Enum
from typing import AsyncGenerator, Iterable

from shared.config.logging import get_logger

logger = get_logger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    """Configuration for a circuit breaker instance."""
    name: str
    failure_threshold: int = 5       # Failures before opening
    success_threshold: int = 2       # Successes in half-open before closing
    timeout_seconds: float = 30.0    # Time before trying half-open
    half_open_max_calls: int = 2     # Max concurrent calls in half-open


@dataclass
class CircuitBreakerStats:
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0
    state_changes: int = 0
    last_failure_time: float | None = None
    last_success_time: float | None = None


class CircuitBreakerError(Exception):
    """Raised when the circuit is open and the call is rejected."""

    def __init__(self, breaker_name: str, retry_after: float):
        self.breaker_name = breaker_name
        self.retry_after = retry_after
        super().__init__(f"Circuit breaker '{breaker_name}' is open. Retry after {retry_after:.1f}s")


class CircuitBreaker:
    """
    Async circuit breaker guarded by an asyncio lock.

    `clock` is injectable so tests can move time forward.
    """

    def __init__(self, config: CircuitBreakerConfig, clock=time.monotonic):
        self.config = config
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at: float | None = None
        self._half_open_calls = 0
        self._lock = asyncio.Lock()
        self._stats = CircuitBreakerStats()

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def stats(self) -> CircuitBreakerStats:
        return self._stats

    def _transition_to(self, new_state: CircuitState) -> None:
        old_state = self._state
        self._state = new_state
        self._stats.state_changes += 1

        logger.info(
            "Circuit breaker state change",
            breaker=self.name,
            old_state=old_state.value,
            new_state=new_state.value,
            failure_count=self._failure_count,
        )

        if new_state == CircuitState.CLOSED:
            self._failure_count = 0
            self._success_count = 0
            self._opened_at = None
        elif new_state == CircuitState.OPEN:
            self._opened_at = self._clock()
        elif new_state == CircuitState.HALF_OPEN:
            self._success_count = 0
            self._half_open_calls = 0

    async def _acquire(self) -> tuple[bool, float]:
        """Returns (allowed, retry_after_seconds)."""
        async with self._lock:
            if self._state == CircuitState.OPEN:
                elapsed = self._clock() - (self._opened_at or 0.0)
                if elapsed < self.config.timeout_seconds:
                    return False, self.config.timeout_seconds - elapsed
                self._transition_to(CircuitState.HALF_OPEN)

            if self._state == CircuitState.HALF_OPEN:
                if self._half_open_calls >= self.config.half_open_max_calls:
                    return False, 1.0
                self._half_open_calls += 1

            return True, 0.0

    async def record_success(self) -> None:
        async with self._lock:
            self._stats.total_calls += 1
            self._stats.successful_calls += 1
            self._stats.last_success_time = time.time()

            if self._state == CircuitState.HALF_OPEN:
                self._success_count += 1
                self._half_open_calls = max(0, self._half_open_calls - 1)
                if self._success_count >= self.config.success_threshold:
                    self._transition_to(CircuitState.CLOSED)
            else:
                self._failure_count = 0

    async def record_failure(self, error: Exception | None = None) -> None:
        async with self._lock:
            self._stats.total_calls += 1
            self._stats.failed_calls += 1
            self._stats.last_failure_time = time.time()
            self._failure_count += 1

            logger.warning(
                "Circuit breaker recorded failure",
                breaker=self.name,
                error=str(error) if error else None,
                failure_count=self._failure_count,
                threshold=self.config.failure_threshold,
            )

            if self._state == CircuitState.HALF_OPEN:
                self._half_open_calls = max(0, self._half_open_calls - 1)
                self._transition_to(CircuitState.OPEN)
            elif (
                self._state == CircuitState.CLOSED
                and self._failure_count >= self.config.failure_threshold
            ):
                self._transition_to(CircuitState.OPEN)

    @asynccontextmanager
    async def call(self) -> AsyncGenerator[None, None]:
        """
        Guard one outbound call.

        Raises:
            CircuitBreakerError: if the circuit is open
        """
        allowed, retry_after = await self._acquire()
        if not allowed:
            self._stats.rejected_calls += 1
            raise CircuitBreakerError(self.name, retry_after)

        try:
            yield
        except Exception as e:
            await self.record_failure(e)
            raise
        await self.record_success()

    async def reset(self) -> None:
        """Force the breaker back to CLOSED."""
        async with self._lock:
            self._transition_to(CircuitState.CLOSED)
            self._half_open_calls = 0
            logger.info("Circuit breaker manually reset", breaker=self.name)

    def snapshot(self) -> dict:
        data = asdict(self._stats)
        data["state"] = self._state.value
        return data


def breaker_stats(breakers: Iterable[CircuitBreaker]) -> dict[str, dict]:
    """Per-breaker state and counters, for health endpoints."""
    return {breaker.name: breaker.snapshot() for breaker in breakers}
