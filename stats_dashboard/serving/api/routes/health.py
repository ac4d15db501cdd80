"""
Health Check Endpoints

Liveness and readiness for orchestration systems, plus the state of the
aggregation service and its cache.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from stats_dashboard.config import get_settings
from stats_dashboard.serving.api.dependencies import get_aggregation_service
from stats_dashboard.serving.dispatcher import AggregationService, ServiceState

settings = get_settings()
router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, Any]


@router.get("/health", response_model=HealthResponse)
async def health_check(
    service: AggregationService = Depends(get_aggregation_service),
) -> HealthResponse:
    """
    Comprehensive health check endpoint.

    Checks:
    - Aggregation service lifecycle state and queue
    - Cache connectivity
    """
    checks: Dict[str, Any] = {"aggregation": service.status()}
    overall_status = "healthy"

    if service.state != ServiceState.RUNNING:
        overall_status = "unhealthy"

    cache_ok = await service.cache.ping()
    checks["cache"] = {
        "status": "healthy" if cache_ok else "unhealthy",
        "backend": type(service.cache).__name__,
    }
    if not cache_ok and overall_status == "healthy":
        overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        version=settings.version,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc),
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """
    Kubernetes liveness probe endpoint.

    Returns 200 if the application is running.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(
    response: Response,
    service: AggregationService = Depends(get_aggregation_service),
) -> Dict[str, str]:
    """
    Kubernetes readiness probe endpoint.

    Returns 200 once the aggregation service accepts requests.
    """
    if service.state != ServiceState.RUNNING:
        response.status_code = 503
        return {"status": "not_ready", "reason": f"aggregation_{service.state.value}"}
    return {"status": "ready"}
