"""Common API dependencies for key authentication and rate limiting"""

from typing import Optional
from fastapi import Depends, Header, Request
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from lynxa.core.config import settings
from lynxa.core.database import get_db, get_redis
from lynxa.services.key_service import KeyService
from lynxa.services.key_store import KeyStore
from lynxa.services.key_validator import KeyValidator, Principal, extract_bearer_token
from lynxa.services.rate_limiter import RateLimiter, build_rate_window_backend
from lynxa.services.usage_recorder import UsageRecorder


async def get_key_store(db: AsyncSession = Depends(get_db)) -> KeyStore:
    """Dependency to get KeyStore instance"""
    return KeyStore(db_session=db)


async def get_key_service(store: KeyStore = Depends(get_key_store)) -> KeyService:
    """Dependency to get KeyService instance"""
    return KeyService(store=store)


async def get_key_validator(store: KeyStore = Depends(get_key_store)) -> KeyValidator:
    """Dependency to get KeyValidator instance"""
    return KeyValidator(store=store)


async def get_rate_limiter(
    db: AsyncSession = Depends(get_db),
    redis: Optional[Redis] = Depends(get_redis)
) -> RateLimiter:
    """Dependency to get RateLimiter instance backed by the configured window store"""
    return RateLimiter(backend=build_rate_window_backend(db, redis))


async def get_usage_recorder(db: AsyncSession = Depends(get_db)) -> UsageRecorder:
    """Dependency to get UsageRecorder instance"""
    return UsageRecorder(db_session=db)


async def require_api_key(
    request: Request,
    authorization: Optional[str] = Header(None),
    validator: KeyValidator = Depends(get_key_validator),
    limiter: RateLimiter = Depends(get_rate_limiter)
) -> Principal:
    """
    Authenticate the bearer key and admit the request against its rate limit.

    Runs before the endpoint body, so a denied request never reaches the
    handler. On success the principal is attached to ``request.state`` for
    the usage statistics middleware.

    Raises:
        AuthenticationError subclasses: 401 for missing, invalid, revoked or expired keys
        AuthBackendUnavailable: 503 when the key store cannot be reached
        RateLimitExceeded: 429 when the key's window is exhausted
    """
    token = extract_bearer_token(authorization)
    principal = await validator.validate(token)

    if settings.RATE_LIMIT_ENABLED:
        result = await limiter.enforce(
            token_hash=principal.token_hash,
            rate_limit=principal.rate_limit,
            endpoint=request.url.path
        )
        request.state.rate_limit = result

    request.state.principal = principal
    request.state.token_hash = principal.token_hash
    return principal
