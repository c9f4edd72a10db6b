"""Usage and rate limit status endpoints"""

from datetime import timedelta

from fastapi import APIRouter, Depends, Query

from lynxa.api.dependencies import get_rate_limiter, get_usage_recorder, require_api_key
from lynxa.core.exceptions import InvalidUsageQuery
from lynxa.schemas.usage import UsageSummaryResponse, RateLimitStatusResponse
from lynxa.services.key_validator import Principal
from lynxa.services.rate_limiter import RateLimiter
from lynxa.services.usage_recorder import USAGE_GROUP_BY, UsageRecorder
from lynxa.utils.datetime import utcnow


router = APIRouter(prefix="/usage", tags=["Usage"])

TIME_RANGES = {
    "1h": timedelta(hours=1),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
}


@router.get("", response_model=UsageSummaryResponse)
async def get_usage(
    time_range: str = Query("24h", description="Look-back period: 1h, 24h, 7d, 30d or 90d"),
    group_by: str = Query("hour", description="Series bucket size: hour or day"),
    principal: Principal = Depends(require_api_key),
    recorder: UsageRecorder = Depends(get_usage_recorder)
):
    """
    Usage summary for the presented key.

    Counts requests, errors and tokens over ``time_range`` and breaks them
    down into hourly or daily buckets, oldest first. Buckets without
    traffic are omitted.

    Raises:
        InvalidUsageQuery 400: Unknown time_range or group_by
    """
    if time_range not in TIME_RANGES:
        raise InvalidUsageQuery(
            "Invalid time_range parameter",
            details={"allowed": list(TIME_RANGES)}
        )
    if group_by not in USAGE_GROUP_BY:
        raise InvalidUsageQuery(
            "Invalid group_by parameter",
            details={"allowed": list(USAGE_GROUP_BY)}
        )

    until = utcnow()
    summary = await recorder.summarize(
        principal.token_hash,
        since=until - TIME_RANGES[time_range],
        until=until,
        group_by=group_by
    )
    return UsageSummaryResponse(time_range=time_range, **summary.to_dict())


@router.get("/rate-limit", response_model=RateLimitStatusResponse)
async def get_rate_limit_status(
    endpoint: str = Query("/api/v1/chat", description="Endpoint path whose window to report"),
    principal: Principal = Depends(require_api_key),
    limiter: RateLimiter = Depends(get_rate_limiter)
):
    """
    Current window status for the presented key on one endpoint.

    Reading the status does not count against ``endpoint``, though the call
    itself is counted against ``/api/v1/usage/rate-limit``.
    """
    result = await limiter.get_rate_limit_status(
        principal.token_hash,
        principal.rate_limit,
        endpoint
    )
    return RateLimitStatusResponse(
        endpoint=endpoint,
        limit=result.limit,
        remaining=result.remaining,
        requests_count=result.requests_count,
        reset_at=result.reset_at,
        retry_after_seconds=result.retry_after
    )
