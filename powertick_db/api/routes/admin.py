"""
Admin Routes
============

Operational endpoints for the database core:

- ``GET /admin/metrics``: pool occupancy and circuit breaker state
- ``POST /admin/reset-circuit-breaker``: force the breaker CLOSED, then run
  a connectivity test query so the operator sees whether the database is
  actually back

These endpoints are meant for operators and monitoring, not for end users;
the hosting runtime is expected to restrict access to them.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, status
from pydantic import BaseModel

from powertick_db.api.dependencies import ManagerDep
from powertick_db.core.exceptions import PowertickError
from powertick_db.core.logging.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])

RESET_TEST_QUERY = "SELECT NOW() AS current_time, 'Circuit breaker reset successful' AS message"


class PoolMetricsResponse(BaseModel):
    status: str
    total_count: int
    idle_count: int
    waiting_count: int
    in_use_count: int
    max_size: int
    circuit_breaker_state: str
    circuit_breaker_failure_count: int


class ConnectivityCheckResult(BaseModel):
    success: bool
    result: dict | None = None
    error: str | None = None


class CircuitBreakerResetResponse(BaseModel):
    action: str = "circuit-breaker-reset"
    timestamp: str
    metrics_before: PoolMetricsResponse
    metrics_after: PoolMetricsResponse
    test_query: ConnectivityCheckResult


@router.get("/metrics", response_model=PoolMetricsResponse, status_code=status.HTTP_200_OK)
async def get_pool_metrics(manager: ManagerDep):
    """Current pool occupancy and circuit breaker state."""
    return PoolMetricsResponse(**manager.get_metrics())


@router.post(
    "/reset-circuit-breaker",
    response_model=CircuitBreakerResetResponse,
    status_code=status.HTTP_200_OK,
)
async def reset_circuit_breaker(manager: ManagerDep):
    """
    Reset the breaker and test connectivity.

    A failing test query is reported in the body (and re-opens the breaker
    through normal failure accounting); the reset itself still returns 200.
    """
    metrics_before = manager.get_metrics()
    manager.reset_circuit_breaker()

    logger.warning(
        "Circuit breaker reset via admin endpoint",
        stage="API.ADMIN",
        previous_state=metrics_before["circuit_breaker_state"],
        previous_failure_count=metrics_before["circuit_breaker_failure_count"],
    )

    try:
        result = await manager.execute_query(RESET_TEST_QUERY)
        test_query = ConnectivityCheckResult(success=True, result=_jsonable(result.first()))
    except PowertickError as e:
        test_query = ConnectivityCheckResult(success=False, error=e.message)

    return CircuitBreakerResetResponse(
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        metrics_before=PoolMetricsResponse(**metrics_before),
        metrics_after=PoolMetricsResponse(**manager.get_metrics()),
        test_query=test_query,
    )


def _jsonable(row: dict | None) -> dict | None:
    if row is None:
        return None
    return {key: value.isoformat() if isinstance(value, datetime) else value for key, value in row.items()}
