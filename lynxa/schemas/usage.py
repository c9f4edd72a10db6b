"""Pydantic schemas for usage and rate limit status"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class UsageBucketResponse(BaseModel):
    time_bucket: datetime
    request_count: int
    error_count: int
    total_tokens: int
    avg_response_time_ms: float


class UsageSummaryResponse(BaseModel):
    period_start: datetime
    period_end: datetime
    time_range: str
    group_by: Optional[str] = None
    total_requests: int
    error_requests: int
    error_rate: float
    input_tokens: int
    output_tokens: int
    total_tokens: int
    avg_response_time_ms: float
    series: List[UsageBucketResponse] = Field(default_factory=list)


class RateLimitStatusResponse(BaseModel):
    """Current window for one key and endpoint; remaining is -1 when unlimited"""
    endpoint: str
    limit: int
    remaining: int
    requests_count: Optional[int] = None
    reset_at: datetime
    retry_after_seconds: Optional[int] = None
