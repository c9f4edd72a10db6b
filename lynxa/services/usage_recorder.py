"""Usage Recorder - best-effort append of per-request usage events"""

import asyncio
from dataclasses import dataclass, asdict, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func, literal_column, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lynxa.core.config import settings
from lynxa.core.exceptions import StoreUnavailable
from lynxa.core.logging_config import get_logger
from lynxa.core.monitoring import usage_events_total
from lynxa.models.usage_event import UsageEventModel
from lynxa.utils.datetime import utcnow

logger = get_logger(__name__)

USAGE_GROUP_BY = ("hour", "day")

SQLITE_BUCKET_FORMATS = {
    "hour": "%Y-%m-%d %H:00:00",
    "day": "%Y-%m-%d 00:00:00",
}


@dataclass
class UsageBucket:
    """Usage within one hour or day"""
    time_bucket: datetime
    request_count: int
    error_count: int
    total_tokens: int
    avg_response_time_ms: float


@dataclass
class UsageSummary:
    """Aggregated usage for one key over a period"""
    period_start: datetime
    period_end: datetime
    total_requests: int
    error_requests: int
    input_tokens: int
    output_tokens: int
    total_tokens: int
    avg_response_time_ms: float
    group_by: Optional[str] = None
    series: List[UsageBucket] = field(default_factory=list)

    @property
    def error_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.error_requests / self.total_requests

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["error_rate"] = self.error_rate
        return data


class UsageRecorder:
    """
    Appends one ``UsageEvent`` per request that reached a handler.

    Recording is observability, not correctness: ``record`` never raises.
    Failures are logged at warning level and the caller's response is left
    untouched.
    """

    def __init__(self, db_session: AsyncSession, timeout: Optional[float] = None):
        self.db = db_session
        self.timeout = timeout if timeout is not None else settings.STORE_TIMEOUT_SECONDS

    async def record(
        self,
        token_hash: str,
        endpoint: str,
        method: str,
        status_code: int,
        input_tokens: int = 0,
        output_tokens: int = 0,
        response_time_ms: int = 0,
        request_id: Optional[str] = None,
        error_message: Optional[str] = None
    ) -> bool:
        """
        Append a usage event.

        Returns:
            True if the event was stored, False if recording failed
        """
        event = UsageEventModel(
            token_hash=token_hash,
            endpoint=endpoint,
            method=method,
            status_code=status_code,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
            response_time_ms=response_time_ms,
            request_id=request_id,
            error_message=error_message,
            timestamp=utcnow(),
        )

        async def _append() -> None:
            self.db.add(event)
            await self.db.commit()

        try:
            await asyncio.wait_for(_append(), timeout=self.timeout)
        except Exception as e:
            logger.warning(
                "usage_recording_failed",
                token_hash=token_hash,
                endpoint=endpoint,
                error_type=type(e).__name__,
                error_message=str(e),
            )
            usage_events_total.labels(result="failed").inc()
            try:
                await self.db.rollback()
            except Exception:
                logger.debug("usage_recording_rollback_failed", token_hash=token_hash)
            return False

        usage_events_total.labels(result="recorded").inc()
        return True

    def _bucket_expression(self, group_by: str):
        """Truncate event timestamps to the start of their hour or day"""
        if self.db.bind.dialect.name == "sqlite":
            fmt = SQLITE_BUCKET_FORMATS[group_by]
            return func.strftime(literal_column(f"'{fmt}'"), UsageEventModel.timestamp)
        return func.date_trunc(literal_column(f"'{group_by}'"), UsageEventModel.timestamp)

    @staticmethod
    def _as_datetime(value) -> datetime:
        # strftime buckets come back from SQLite as text
        if isinstance(value, str):
            return datetime.strptime(value, "%Y-%m-%d %H:%M:%S")
        return value

    async def summarize(
        self,
        token_hash: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        group_by: Optional[str] = None
    ) -> UsageSummary:
        """
        Aggregate usage for a key.

        Args:
            token_hash: Key whose events to aggregate
            since: Period start (default: 24 hours before ``until``)
            until: Period end (default: now)
            group_by: ``hour`` or ``day`` to add a bucketed series, oldest first

        Raises:
            StoreUnavailable: The usage store failed or timed out
        """
        until = until or utcnow()
        since = since or until - timedelta(hours=24)
        if group_by is not None and group_by not in USAGE_GROUP_BY:
            raise ValueError(f"group_by must be one of {USAGE_GROUP_BY}, got {group_by!r}")

        in_period = (
            UsageEventModel.token_hash == token_hash,
            UsageEventModel.timestamp >= since,
            UsageEventModel.timestamp <= until,
        )
        error_count = func.coalesce(func.sum(case((UsageEventModel.status_code >= 400, 1), else_=0)), 0)

        totals_stmt = select(
            func.count(UsageEventModel.id),
            error_count,
            func.coalesce(func.sum(UsageEventModel.input_tokens), 0),
            func.coalesce(func.sum(UsageEventModel.output_tokens), 0),
            func.coalesce(func.sum(UsageEventModel.total_tokens), 0),
            func.coalesce(func.avg(UsageEventModel.response_time_ms), 0),
        ).where(*in_period)

        async def _aggregate():
            totals = (await self.db.execute(totals_stmt)).one()
            if group_by is None:
                return totals, []

            bucket = self._bucket_expression(group_by).label("time_bucket")
            series_stmt = (
                select(
                    bucket,
                    func.count(UsageEventModel.id),
                    error_count,
                    func.coalesce(func.sum(UsageEventModel.total_tokens), 0),
                    func.coalesce(func.avg(UsageEventModel.response_time_ms), 0),
                )
                .where(*in_period)
                .group_by(bucket)
                .order_by(bucket)
            )
            return totals, (await self.db.execute(series_stmt)).all()

        try:
            totals, rows = await asyncio.wait_for(_aggregate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error("usage_summary_timeout", token_hash=token_hash, timeout=self.timeout)
            raise StoreUnavailable("Usage store timed out", context="usage_recorder.summarize")
        except SQLAlchemyError as e:
            logger.error(
                "usage_summary_failed",
                token_hash=token_hash,
                error_type=type(e).__name__,
                error_message=str(e),
            )
            raise StoreUnavailable(
                context="usage_recorder.summarize",
                details={"error_type": type(e).__name__}
            )

        total, errors, input_tokens, output_tokens, total_tokens, avg_ms = totals
        return UsageSummary(
            period_start=since,
            period_end=until,
            total_requests=int(total),
            error_requests=int(errors),
            input_tokens=int(input_tokens),
            output_tokens=int(output_tokens),
            total_tokens=int(total_tokens),
            avg_response_time_ms=round(float(avg_ms), 2),
            group_by=group_by,
            series=[
                UsageBucket(
                    time_bucket=self._as_datetime(time_bucket),
                    request_count=int(count),
                    error_count=int(bucket_errors),
                    total_tokens=int(bucket_tokens),
                    avg_response_time_ms=round(float(bucket_ms), 2),
                )
                for time_bucket, count, bucket_errors, bucket_tokens, bucket_ms in rows
            ],
        )
