"""
Health check endpoints.

/api/health answers without touching dependencies (liveness).
/api/health/detailed checks the database and reports the payment
provider circuit breakers; it answers 503 when the database is down.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text

from shared.config.settings import settings
from shared.infrastructure.db import engine, get_db_context
from shared.utils.health import (
    HealthStatus,
    aggregate_health_checks,
    health_check_with_timeout,
)
from rest_api.core.dependencies import get_payment_gateway
from rest_api.services.payments import PaymentGateway, breaker_stats


router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
def health_check():
    return {
        "status": HealthStatus.HEALTHY.value,
        "service": "rest-api",
        "environment": settings.environment,
    }


@health_check_with_timeout(timeout=3.0, component="database")
async def check_database() -> dict:
    with get_db_context() as db:
        db.execute(text("SELECT 1"))
    return {"dialect": engine.dialect.name}


@router.get("/health/detailed")
async def detailed_health_check(gateway: PaymentGateway = Depends(get_payment_gateway)):
    """
    Database connectivity plus provider configuration and breaker state.

    An open breaker does not make the service unhealthy: cart and booking
    queries still work while a provider is down.
    """
    report = await aggregate_health_checks([check_database()])

    body = {
        "service": "rest-api",
        "environment": settings.environment,
        "status": report["status"],
        "dependencies": report["components"],
        "providers": {
            "MTN_MOMO": {"configured": settings.mtn_momo_configured},
            "ORANGE_MONEY": {"configured": settings.orange_money_configured},
        },
        "circuit_breakers": breaker_stats(gateway.breakers),
    }

    if report["status"] != HealthStatus.HEALTHY.value:
        return JSONResponse(content=body, status_code=503)
    return body
