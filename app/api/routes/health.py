"""
Health probes.

/health        process is up (no dependency checks)
/health/ready  Redis reachable; breaker states reported, not enforced
/health/live   liveness with uptime
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.config import settings
from app.infra.redis import check_redis_health
from app.infra.resilience import CircuitState, get_circuit_breaker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])

VERSION = "0.1.0"

# Breakers guarding outbound calls, by name
BREAKERS = ("whatsapp", "availability", "booking")

_start_time: Optional[datetime] = None


def set_start_time() -> None:
    """Record process start (called from the lifespan)."""
    global _start_time
    _start_time = datetime.now(timezone.utc)


def get_uptime_seconds() -> Optional[float]:
    if _start_time is None:
        return None
    return (datetime.now(timezone.utc) - _start_time).total_seconds()


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str
    environment: str


class ReadyResponse(BaseModel):
    """Readiness with per-dependency results."""
    status: str
    timestamp: datetime
    checks: dict[str, str]


class LiveResponse(BaseModel):
    status: str
    timestamp: datetime
    uptime_seconds: Optional[float] = None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _breaker_checks() -> dict[str, str]:
    checks = {}
    for name in BREAKERS:
        state = get_circuit_breaker(name).state
        checks[f"circuit:{name}"] = "ok" if state == CircuitState.CLOSED else state.value
    return checks


@router.get("", response_model=HealthResponse, summary="Basic health check")
async def health() -> HealthResponse:
    """200 whenever the process can serve requests."""
    return HealthResponse(
        status="healthy",
        timestamp=_now(),
        version=VERSION,
        environment=settings.app_env,
    )


@router.get(
    "/ready",
    response_model=ReadyResponse,
    summary="Readiness probe",
    responses={503: {"description": "Redis is unavailable"}},
)
async def ready():
    """
    Ready when Redis answers.

    Sessions and dedup records live in Redis, so it gates readiness. An open
    breaker does not: customers still get a "please try again" reply.
    """
    redis_ok = await check_redis_health()
    if not redis_ok:
        logger.warning("Readiness check: Redis unavailable")

    checks = {"redis": "ok" if redis_ok else "failed"}
    checks.update(_breaker_checks())

    response = ReadyResponse(
        status="ready" if redis_ok else "not_ready",
        timestamp=_now(),
        checks=checks,
    )
    if not redis_ok:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(mode="json"),
        )
    return response


@router.get("/live", response_model=LiveResponse, summary="Liveness probe")
async def live() -> LiveResponse:
    return LiveResponse(status="alive", timestamp=_now(), uptime_seconds=get_uptime_seconds())
