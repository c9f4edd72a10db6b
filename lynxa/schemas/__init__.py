"""Pydantic schemas for API request/response validation"""

from lynxa.schemas.api_key import (
    KeyIssueRequest,
    KeyIssueResponse,
    ApiKeySummary,
    KeyListResponse,
    KeyRevokeResponse
)
from lynxa.schemas.chat import (
    ChatMessage,
    ChatRequest,
    ChatResponse,
    ChatUsage
)
from lynxa.schemas.usage import (
    UsageBucketResponse,
    UsageSummaryResponse,
    RateLimitStatusResponse
)
from lynxa.schemas.common import (
    ErrorResponse,
    HealthCheck
)

__all__ = [
    "KeyIssueRequest",
    "KeyIssueResponse",
    "ApiKeySummary",
    "KeyListResponse",
    "KeyRevokeResponse",
    "ChatMessage",
    "ChatRequest",
    "ChatResponse",
    "ChatUsage",
    "UsageBucketResponse",
    "UsageSummaryResponse",
    "RateLimitStatusResponse",
    "ErrorResponse",
    "HealthCheck",
]
