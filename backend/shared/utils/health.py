"""
Health check helpers.

A check is an async function returning optional details. Wrapping it with
health_check_with_timeout turns it into one that always returns a
HealthCheckResult: errors and timeouts become UNHEALTHY results instead
of exceptions.

Usage:
    @health_check_with_timeout(timeout=3.0, component="database")
    async def check_database():
        db.execute(text("SELECT 1"))

    report = await aggregate_health_checks([check_database()])
    # {"status": "healthy", "components": {"database": {...}}}
"""

from __future__ import annotations

import asyncio
import functools
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from shared.config.logging import get_logger

logger = get_logger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"


@dataclass
class HealthCheckResult:
    status: HealthStatus
    component: str
    latency_ms: Optional[float] = None
    error: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def healthy(self) -> bool:
        return self.status == HealthStatus.HEALTHY

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"status": self.status.value}
        if self.latency_ms is not None:
            data["latency_ms"] = round(self.latency_ms, 2)
        if self.error:
            data["error"] = self.error
        if self.details:
            data["details"] = self.details
        return data


def health_check_with_timeout(timeout: float = 5.0, component: Optional[str] = None):
    """
    Bound a health check by ``timeout`` seconds and report it as a result.

    Args:
        timeout: seconds to wait before reporting the component unhealthy
        component: name in the report (defaults to the function name
            without its ``check_`` prefix)
    """

    def decorator(
        func: Callable[..., Awaitable[Optional[dict[str, Any]]]],
    ) -> Callable[..., Awaitable[HealthCheckResult]]:
        name = component or func.__name__.removeprefix("check_")

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> HealthCheckResult:
            started = time.perf_counter()
            try:
                details = await asyncio.wait_for(func(*args, **kwargs), timeout=timeout)
            except asyncio.TimeoutError:
                elapsed = (time.perf_counter() - started) * 1000
                logger.warning("Health check timed out", component=name, timeout=timeout)
                return HealthCheckResult(
                    HealthStatus.UNHEALTHY, name, elapsed, error=f"timeout after {timeout}s"
                )
            except Exception as e:
                elapsed = (time.perf_counter() - started) * 1000
                logger.warning("Health check failed", component=name, error=str(e))
                return HealthCheckResult(HealthStatus.UNHEALTHY, name, elapsed, error=str(e))

            elapsed = (time.perf_counter() - started) * 1000
            return HealthCheckResult(
                HealthStatus.HEALTHY, name, elapsed, details=details if isinstance(details, dict) else {}
            )

        return wrapper

    return decorator


async def aggregate_health_checks(
    checks: list[Awaitable[HealthCheckResult]],
) -> dict[str, Any]:
    """
    Run checks concurrently. Overall status is DEGRADED when any
    component is not healthy.
    """
    results = await asyncio.gather(*checks)
    return {
        "status": (
            HealthStatus.HEALTHY.value
            if all(r.healthy for r in results)
            else HealthStatus.DEGRADED.value
        ),
        "components": {r.component: r.to_dict() for r in results},
    }
