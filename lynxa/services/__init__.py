"""Business logic services"""

from lynxa.services.key_store import KeyStore
from lynxa.services.key_service import KeyService
from lynxa.services.key_validator import KeyValidator, Principal
from lynxa.services.rate_limiter import RateLimiter, RateLimitResult
from lynxa.services.usage_recorder import UsageRecorder, UsageSummary

__all__ = [
    "KeyStore",
    "KeyService",
    "KeyValidator",
    "Principal",
    "RateLimiter",
    "RateLimitResult",
    "UsageRecorder",
    "UsageSummary",
]
