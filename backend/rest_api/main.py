"""
REST API main application.
Entry point for the FastAPI REST server.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError

from shared.config.settings import settings
from shared.config.logging import rest_api_logger as logger
from shared.infrastructure.correlation import CorrelationIdMiddleware
from shared.security.rate_limit import limiter, rate_limit_exceeded_handler
from rest_api.core.cors import configure_cors
from rest_api.core.lifespan import lifespan
from rest_api.core.middlewares import register_middlewares
from rest_api.routers.bookings import router as bookings_router
from rest_api.routers.cart import router as cart_router
from rest_api.routers.payments import router as payments_router
from rest_api.routers.public import health_router


app = FastAPI(
    title="Booking Cart API",
    description="Meal and event ordering with mobile-money payments",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Database errors that escaped a router: 500 without leaking SQL."""
    logger.error(
        "Unhandled database error",
        path=request.url.path,
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Middlewares run in reverse order of registration: correlation id first
register_middlewares(app)
configure_cors(app)
app.add_middleware(CorrelationIdMiddleware)


app.include_router(health_router)
app.include_router(cart_router)
app.include_router(bookings_router)
app.include_router(payments_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "rest_api.main:app",
        host="0.0.0.0",
        port=settings.rest_api_port,
        reload=settings.debug,
    )
