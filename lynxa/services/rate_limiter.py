"""Rate Limiter Service - fixed-window request accounting per API key"""

import asyncio
import math
import time
import uuid
from datetime import datetime
from typing import Callable, Optional

from redis.asyncio import Redis
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lynxa.core.config import settings
from lynxa.core.exceptions import RateLimitExceeded, StoreUnavailable
from lynxa.core.logging_config import get_logger
from lynxa.core.monitoring import rate_limit_decisions_total
from lynxa.models.api_key import UNLIMITED
from lynxa.models.rate_window import RateWindowModel
from lynxa.utils.datetime import from_timestamp, utcnow

logger = get_logger(__name__)


def is_unlimited(rate_limit: int) -> bool:
    """Any negative limit (conventionally UNLIMITED) disables counting"""
    return rate_limit < 0


class RateLimitResult:
    """Result of rate limit check"""
    def __init__(
        self,
        allowed: bool,
        limit: int,
        remaining: int,
        reset_at: datetime,
        requests_count: Optional[int] = None,
        retry_after: Optional[int] = None
    ):
        self.allowed = allowed
        self.limit = limit
        self.remaining = remaining  # UNLIMITED when the key has no ceiling
        self.reset_at = reset_at
        self.requests_count = requests_count
        self.retry_after = retry_after  # Seconds until the window resets


# ============================================================================
# Window storage backends
# ============================================================================

class RateWindowBackend:
    """
    Storage for window counters.

    ``increment`` must be a single atomic increment-and-read; a separate
    read followed by a write would lose updates under concurrent requests.
    """

    async def increment(
        self,
        token_hash: str,
        endpoint: str,
        window_start: int,
        window_size: int,
        limit: int
    ) -> int:
        raise NotImplementedError

    async def current(self, token_hash: str, endpoint: str, window_start: int) -> int:
        raise NotImplementedError


class DatabaseRateWindowBackend(RateWindowBackend):
    """
    Counters in the ``rate_limits`` table.

    Uses ``INSERT .. ON CONFLICT DO UPDATE .. RETURNING`` so the increment
    and the read of the new value happen in one statement.
    """

    def __init__(self, db_session: AsyncSession, timeout: Optional[float] = None):
        self.db = db_session
        self.timeout = timeout if timeout is not None else settings.STORE_TIMEOUT_SECONDS

    def _insert(self):
        dialect = self.db.bind.dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            raise StoreUnavailable(f"Atomic upsert not supported on {dialect}")
        return insert(RateWindowModel)

    async def increment(
        self,
        token_hash: str,
        endpoint: str,
        window_start: int,
        window_size: int,
        limit: int
    ) -> int:
        now = utcnow()
        stmt = self._insert().values(
            id=str(uuid.uuid4()),
            token_hash=token_hash,
            endpoint=endpoint,
            window_start=from_timestamp(window_start),
            window_size=window_size,
            requests_count=1,
            limit_exceeded=1 > limit,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["token_hash", "endpoint", "window_start"],
            set_={
                "requests_count": RateWindowModel.requests_count + 1,
                "limit_exceeded": RateWindowModel.requests_count + 1 > limit,
                "updated_at": now,
            }
        ).returning(RateWindowModel.requests_count)

        async def _execute() -> int:
            result = await self.db.execute(stmt)
            count = result.scalar_one()
            await self.db.commit()
            return count

        try:
            return await asyncio.wait_for(_execute(), timeout=self.timeout)
        except asyncio.TimeoutError:
            # The cancelled statement leaves the request session mid-transaction
            await self._rollback()
            raise StoreUnavailable("Rate window increment timed out")
        except SQLAlchemyError as e:
            await self._rollback()
            raise StoreUnavailable(details={"error_type": type(e).__name__})

    async def _rollback(self) -> None:
        try:
            await self.db.rollback()
        except SQLAlchemyError as e:
            logger.warning("rate_window_rollback_failed", error_type=type(e).__name__, error=str(e))

    async def current(self, token_hash: str, endpoint: str, window_start: int) -> int:
        stmt = select(RateWindowModel.requests_count).where(
            RateWindowModel.token_hash == token_hash,
            RateWindowModel.endpoint == endpoint,
            RateWindowModel.window_start == from_timestamp(window_start),
        )
        try:
            result = await asyncio.wait_for(self.db.execute(stmt), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise StoreUnavailable("Rate window read timed out")
        except SQLAlchemyError as e:
            raise StoreUnavailable(details={"error_type": type(e).__name__})
        return result.scalar_one_or_none() or 0


class RedisRateWindowBackend(RateWindowBackend):
    """
    Counters in Redis: ``INCR`` plus ``EXPIRE`` inside one MULTI/EXEC.

    Keys expire one minute after their window closes.
    """

    def __init__(self, redis: Redis):
        self.redis = redis

    @staticmethod
    def _get_rate_limit_key(token_hash: str, endpoint: str, window_start: int) -> str:
        return f"ratelimit:{token_hash}:{endpoint}:{window_start}"

    async def increment(
        self,
        token_hash: str,
        endpoint: str,
        window_start: int,
        window_size: int,
        limit: int
    ) -> int:
        key = self._get_rate_limit_key(token_hash, endpoint, window_start)
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.incr(key)
                pipe.expire(key, window_size + 60)
                count, _ = await pipe.execute()
        except Exception as e:
            raise StoreUnavailable(details={"error_type": type(e).__name__})
        return int(count)

    async def current(self, token_hash: str, endpoint: str, window_start: int) -> int:
        key = self._get_rate_limit_key(token_hash, endpoint, window_start)
        try:
            value = await self.redis.get(key)
        except Exception as e:
            raise StoreUnavailable(details={"error_type": type(e).__name__})
        return int(value) if value else 0


# ============================================================================
# Rate limiter
# ============================================================================

class RateLimiter:
    """
    Fixed-window rate limiter.

    Windows are aligned to wall-clock multiples of ``window_size``, so a
    burst straddling a boundary can admit up to twice the limit across the
    seam. A negative limit means unlimited and skips counting entirely.
    """

    def __init__(
        self,
        backend: RateWindowBackend,
        window_size: Optional[int] = None,
        clock: Callable[[], float] = time.time
    ):
        """
        Args:
            backend: Window counter storage
            window_size: Window length in seconds
            clock: Returns the current POSIX time
        """
        self.backend = backend
        self.window_size = window_size or settings.RATE_LIMIT_WINDOW_SECONDS
        self.clock = clock

    def window_bounds(self, now: float) -> tuple[int, int]:
        """Return (window_start, window_end) as POSIX seconds"""
        window_start = int(math.floor(now / self.window_size)) * self.window_size
        return window_start, window_start + self.window_size

    async def check_rate_limit(
        self,
        token_hash: str,
        rate_limit: int,
        endpoint: str
    ) -> RateLimitResult:
        """
        Count one request against the current window and decide admission.

        When the window store fails the request is admitted and the failure
        is logged.
        """
        now = self.clock()
        window_start, window_end = self.window_bounds(now)
        reset_at = from_timestamp(window_end)

        if is_unlimited(rate_limit):
            rate_limit_decisions_total.labels(decision="unlimited").inc()
            return RateLimitResult(allowed=True, limit=rate_limit, remaining=UNLIMITED, reset_at=reset_at)

        try:
            count = await self.backend.increment(
                token_hash, endpoint, window_start, self.window_size, rate_limit
            )
        except StoreUnavailable as e:
            logger.error(
                "rate_limit_check_failed",
                token_hash=token_hash,
                endpoint=endpoint,
                error_details=e.details,
            )
            rate_limit_decisions_total.labels(decision="error").inc()
            return RateLimitResult(allowed=True, limit=rate_limit, remaining=0, reset_at=reset_at)

        if count > rate_limit:
            retry_after = max(1, math.ceil(window_end - now))
            logger.info(
                "rate_limit_exceeded",
                token_hash=token_hash,
                endpoint=endpoint,
                limit=rate_limit,
                count=count,
                retry_after=retry_after
            )
            rate_limit_decisions_total.labels(decision="denied").inc()
            return RateLimitResult(
                allowed=False,
                limit=rate_limit,
                remaining=0,
                reset_at=reset_at,
                requests_count=count,
                retry_after=retry_after
            )

        rate_limit_decisions_total.labels(decision="admitted").inc()
        return RateLimitResult(
            allowed=True,
            limit=rate_limit,
            remaining=rate_limit - count,
            reset_at=reset_at,
            requests_count=count
        )

    async def enforce(self, token_hash: str, rate_limit: int, endpoint: str) -> RateLimitResult:
        """
        Like ``check_rate_limit`` but raises on denial.

        Raises:
            RateLimitExceeded: With the seconds left in the current window
        """
        result = await self.check_rate_limit(token_hash, rate_limit, endpoint)
        if not result.allowed:
            raise RateLimitExceeded(
                retry_after_seconds=result.retry_after,
                limit=rate_limit,
                endpoint=endpoint
            )
        return result

    async def get_rate_limit_status(
        self,
        token_hash: str,
        rate_limit: int,
        endpoint: str
    ) -> RateLimitResult:
        """Read the current window without counting a request"""
        now = self.clock()
        window_start, window_end = self.window_bounds(now)
        reset_at = from_timestamp(window_end)

        if is_unlimited(rate_limit):
            return RateLimitResult(allowed=True, limit=rate_limit, remaining=UNLIMITED, reset_at=reset_at)

        count = await self.backend.current(token_hash, endpoint, window_start)
        return RateLimitResult(
            allowed=count < rate_limit,
            limit=rate_limit,
            remaining=max(0, rate_limit - count),
            reset_at=reset_at,
            requests_count=count,
            retry_after=None if count < rate_limit else max(1, math.ceil(window_end - now))
        )


def build_rate_window_backend(
    db_session: AsyncSession,
    redis: Optional[Redis] = None
) -> RateWindowBackend:
    """Pick the configured window backend"""
    if settings.RATE_LIMIT_BACKEND == "redis":
        if redis is None:
            raise RuntimeError("RATE_LIMIT_BACKEND is 'redis' but Redis is not initialized")
        return RedisRateWindowBackend(redis)
    return DatabaseRateWindowBackend(db_session)
