"""Health Check Endpoint"""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse, Response
from typing import Dict, Any

from lynxa.core.config import settings
from lynxa.core.monitoring import get_metrics, get_metrics_content_type
from lynxa.schemas.common import HealthCheck

router = APIRouter(tags=["health"])


async def check_database() -> bool:
    """Check relational store health"""
    from lynxa.core.database import check_database_connection
    return await check_database_connection()


async def check_redis() -> bool:
    """Check Redis connection health"""
    from lynxa.core.database import check_redis_connection
    return await check_redis_connection()


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check() -> JSONResponse:
    """
    Health check endpoint that verifies service dependencies.

    Redis is only checked when it backs the rate limit windows.

    Returns:
        200 OK if all services are healthy
        503 Service Unavailable if any service is unhealthy
    """
    checks = {"database": await check_database()}
    if settings.RATE_LIMIT_BACKEND == "redis":
        checks["redis"] = await check_redis()

    all_healthy = all(checks.values())

    response_data = HealthCheck(
        status="healthy" if all_healthy else "unhealthy",
        version=settings.APP_VERSION,
        services=checks
    )

    return JSONResponse(
        status_code=status.HTTP_200_OK if all_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=response_data.model_dump(mode="json")
    )


@router.get("/metrics")
async def metrics() -> Response:
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format for scraping by Prometheus server.
    """
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )


@router.get("/api/info")
async def api_info() -> Dict[str, Any]:
    """Describe the service, its endpoints and the available plans"""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "default_model": settings.INFERENCE_MODEL,
        "authentication": {
            "type": "Bearer",
            "header": "Authorization: Bearer <key>",
            "key_strategy": settings.API_KEY_STRATEGY,
            "key_lifetime_days": settings.API_KEY_LIFETIME_DAYS,
        },
        "rate_limits": {
            "window_seconds": settings.RATE_LIMIT_WINDOW_SECONDS,
            "plans": settings.PLAN_RATE_LIMITS,
        },
        "endpoints": {
            "issue_key": "POST /api/v1/keys",
            "revoke_key": "DELETE /api/v1/keys/{token}",
            "list_keys": "GET /api/v1/keys?owner=",
            "chat": "POST /api/v1/chat",
            "usage": "GET /api/v1/usage?time_range=&group_by=",
            "rate_limit_status": "GET /api/v1/usage/rate-limit?endpoint=",
            "health": "GET /health",
            "metrics": "GET /metrics",
        },
    }
