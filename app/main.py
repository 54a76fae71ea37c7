"""
Quick Booking API

FastAPI entry point. Serves the WhatsApp Cloud API webhook and the health
probes; all booking logic lives in app.core.booking.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.api.routes import health, webhook
from app.config import settings
from app.core.booking.availability import get_availability_client, get_booking_client
from app.core.intelligence.language import SUPPORTED_LANGUAGES
from app.infra.claude import ClaudeClient
from app.infra.redis import RedisClient, check_redis_health
from app.infra.whatsapp import get_whatsapp_client

# Requests slower than this are logged at WARNING: Meta redelivers
# webhooks that take too long to answer.
SLOW_REQUEST_SECONDS = 5.0


def setup_logging() -> None:
    """Configure root logging once per process."""
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Per-request noise
    for noisy in ("uvicorn.access", "httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


def _log_webhook_config() -> None:
    if settings.webhook_validation_bypassed:
        logger.warning("Webhook signature validation is DISABLED for this process")
    elif not settings.whatsapp_app_secret:
        logger.warning("WHATSAPP_APP_SECRET not set - all webhook POSTs will be rejected")

    if not settings.whatsapp_verify_token:
        logger.warning("WHATSAPP_VERIFY_TOKEN not set - webhook verification will fail")
    if not settings.whatsapp_access_token:
        logger.warning("WHATSAPP_ACCESS_TOKEN not set - replies cannot be delivered")


async def _close_http_clients() -> None:
    clients = [get_whatsapp_client(), get_availability_client(), get_booking_client()]
    if ClaudeClient._instance is not None:
        clients.append(ClaudeClient._instance)

    for client in clients:
        try:
            await client.close()
        except Exception as e:
            logger.warning(f"Error closing {type(client).__name__}: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup checks, then orderly release of connections on shutdown."""
    setup_logging()
    logger.info(f"Starting {settings.app_name} ({settings.app_env})")
    health.set_start_time()
    _log_webhook_config()

    # Sessions and dedup need Redis; without it every tap restarts the flow
    if await check_redis_health():
        logger.info("Redis reachable")
    else:
        logger.warning("Redis unreachable - sessions and dedup are degraded")

    yield

    logger.info("Shutting down...")
    await RedisClient.close()
    await _close_http_clients()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Quick Booking API",
    description="""
    WhatsApp zero-typing appointment booking for salons.

    Customers tap buttons and list rows instead of typing dates and times.
    Webhook POSTs must carry a valid `X-Hub-Signature-256` header.
    """,
    version=health.VERSION,
    docs_url="/docs" if settings.is_development else None,
    redoc_url=None,
    openapi_url="/openapi.json" if settings.is_development else None,
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed query parameters (the webhook body is parsed by hand)."""
    logger.warning(f"Invalid request to {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"status": "error", "detail": exc.errors()},
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort; the webhook itself never lets exceptions escape."""
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "status": "error",
            "detail": str(exc) if settings.is_development else "Internal server error",
        },
    )


@app.middleware("http")
async def request_timing_middleware(request: Request, call_next):
    """Flag slow requests."""
    started = time.perf_counter()
    try:
        return await call_next(request)
    finally:
        elapsed = time.perf_counter() - started
        if elapsed >= SLOW_REQUEST_SECONDS:
            logger.warning(f"Slow request: {request.method} {request.url.path} took {elapsed:.2f}s")
        else:
            logger.debug(f"{request.method} {request.url.path} took {elapsed:.3f}s")


app.include_router(health.router)
app.include_router(webhook.router)


@app.get("/", tags=["Root"])
async def root() -> dict:
    """Service identity."""
    return {
        "name": settings.app_name,
        "version": health.VERSION,
        "environment": settings.app_env,
        "languages": list(SUPPORTED_LANGUAGES),
        "webhook": "/webhook",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level="debug" if settings.debug else "info",
    )
