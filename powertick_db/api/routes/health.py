"""
Health Check Routes
===================

Two probes with different costs:

1. ``GET /ping``: answers immediately without touching the database. During
   a cold start it schedules a background pool pre-warm, so a host that
   pings a fresh worker gets a warm pool for the first real request.

2. ``GET /health``: probes the database (bypassing the circuit breaker),
   reports pool metrics and checks that the connection settings are present.
   Status codes:
   - 200: healthy
   - 503: degraded (breaker not CLOSED) or unhealthy
"""

from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from powertick_db.api.dependencies import ManagerDep, SettingsDep
from powertick_db.core.config.constants import CircuitState, PoolStatus
from powertick_db.core.logging.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Health"])

HEALTH_STATUS_HEALTHY = "healthy"
HEALTH_STATUS_DEGRADED = "degraded"
HEALTH_STATUS_UNHEALTHY = "unhealthy"

REQUIRED_SETTINGS = ("PGHOST", "PGDATABASE", "PGPORT", "PGUSER")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# ============================================================================
# RESPONSE MODELS
# ============================================================================


class PingResponse(BaseModel):
    success: bool = True
    message: str = "pong"
    timestamp: str
    uptime: float
    cold_start: bool
    pre_warm_scheduled: bool
    environment: str


class HealthResponse(BaseModel):
    """
    Health report.

    ``checks`` holds one entry per component: database, connection_pool and
    configuration, each with its own ``status``.
    """

    status: str
    timestamp: str
    version: str
    environment: str
    uptime: float
    checks: dict


# ============================================================================
# ENDPOINTS
# ============================================================================


@router.get("/ping", response_model=PingResponse)
async def ping(manager: ManagerDep, settings: SettingsDep):
    """Immediate pong; triggers pool pre-warming on cold starts."""
    cold_start = manager.is_cold_start()
    task = manager.pre_warm() if cold_start else None

    return PingResponse(
        timestamp=_now(),
        uptime=round(manager.uptime(), 3),
        cold_start=cold_start,
        pre_warm_scheduled=task is not None,
        environment=settings.app.ENVIRONMENT,
    )


@router.get("/health", response_model=HealthResponse, responses={503: {"model": HealthResponse}})
async def health(manager: ManagerDep, settings: SettingsDep):
    """
    Database probe, pool metrics and configuration check.

    The probe never consults the circuit breaker, so this endpoint keeps
    reporting real connectivity while application traffic is rejected.
    """
    overall = HEALTH_STATUS_HEALTHY

    probe = await manager.health_check()
    database = {
        "status": HEALTH_STATUS_HEALTHY if probe.healthy else HEALTH_STATUS_UNHEALTHY,
        **probe.to_dict(),
    }
    if not probe.healthy:
        overall = HEALTH_STATUS_UNHEALTHY

    metrics = manager.get_metrics()
    pool = {"status": HEALTH_STATUS_HEALTHY, "metrics": metrics}
    if metrics["status"] != PoolStatus.INITIALIZED.value:
        pool["status"] = HEALTH_STATUS_UNHEALTHY
        overall = HEALTH_STATUS_UNHEALTHY
    elif metrics["circuit_breaker_state"] != CircuitState.CLOSED.value:
        pool["status"] = HEALTH_STATUS_DEGRADED
        if overall == HEALTH_STATUS_HEALTHY:
            overall = HEALTH_STATUS_DEGRADED

    missing = [name for name in REQUIRED_SETTINGS if not getattr(settings, name, None)]
    configuration = {
        "status": HEALTH_STATUS_UNHEALTHY if missing else HEALTH_STATUS_HEALTHY,
        "environment": settings.app.ENVIRONMENT,
        "missing_variables": missing,
    }
    if missing:
        overall = HEALTH_STATUS_UNHEALTHY

    if overall != HEALTH_STATUS_HEALTHY:
        logger.warning(
            f"Health check reported {overall}",
            stage="API.HEALTH",
            database=database["status"],
            connection_pool=pool["status"],
            missing_variables=missing,
        )

    body = HealthResponse(
        status=overall,
        timestamp=_now(),
        version=settings.app.APP_VERSION,
        environment=settings.app.ENVIRONMENT,
        uptime=round(manager.uptime(), 3),
        checks={"database": database, "connection_pool": pool, "configuration": configuration},
    )
    status_code = 200 if overall == HEALTH_STATUS_HEALTHY else 503
    return JSONResponse(status_code=status_code, content=body.model_dump())
