"""
Tests for the provider circuit breaker.
"""

import pytest

from rest_api.services.payments import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerError,
    CircuitState,
    breaker_stats,
)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


async def _fail(breaker):
    with pytest.raises(RuntimeError):
        async with breaker.call():
            raise RuntimeError("provider down")


async def _succeed(breaker):
    async with breaker.call():
        pass


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def breaker(clock):
    config = CircuitBreakerConfig(
        name="mtn_momo", failure_threshold=3, success_threshold=2, timeout_seconds=30.0
    )
    return CircuitBreaker(config, clock=clock)


class TestCircuitBreaker:
    @pytest.mark.asyncio
    async def test_opens_after_threshold(self, breaker):
        for _ in range(3):
            await _fail(breaker)

        assert breaker.state == CircuitState.OPEN
        with pytest.raises(CircuitBreakerError) as exc:
            await _succeed(breaker)
        assert exc.value.retry_after == pytest.approx(30.0)
        assert breaker.stats.rejected_calls == 1

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self, breaker):
        await _fail(breaker)
        await _fail(breaker)
        await _succeed(breaker)
        await _fail(breaker)

        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_half_open_then_closed(self, breaker, clock):
        for _ in range(3):
            await _fail(breaker)

        clock.now += 31
        await _succeed(breaker)
        assert breaker.state == CircuitState.HALF_OPEN

        await _succeed(breaker)
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_half_open_failure_reopens(self, breaker, clock):
        for _ in range(3):
            await _fail(breaker)

        clock.now += 31
        await _fail(breaker)

        assert breaker.state == CircuitState.OPEN
        with pytest.raises(CircuitBreakerError):
            await _succeed(breaker)

    @pytest.mark.asyncio
    async def test_reset(self, breaker):
        for _ in range(3):
            await _fail(breaker)

        await breaker.reset()

        assert breaker.state == CircuitState.CLOSED
        await _succeed(breaker)

    @pytest.mark.asyncio
    async def test_breaker_stats(self, breaker):
        await _succeed(breaker)
        await _fail(breaker)

        stats = breaker_stats([breaker])

        assert list(stats) == ["mtn_momo"]
        assert stats["mtn_momo"]["state"] == "closed"
        assert stats["mtn_momo"]["total_calls"] == 2
        assert stats["mtn_momo"]["failed_calls"] == 1
