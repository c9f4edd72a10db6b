"""API Middleware for request processing"""

import asyncio
import time
import re
from typing import Callable, Optional
from uuid import uuid4
import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from lynxa.core.database import get_async_session
from lynxa.core.config import settings
from lynxa.core.logging_config import get_logger, scrub_key_values
from lynxa.core.monitoring import http_requests_total, http_request_duration_seconds
from lynxa.schemas.common import ErrorResponse
from lynxa.services.usage_recorder import UsageRecorder


logger = get_logger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Tag each request with an ID.

    An incoming ``X-Request-ID`` is reused so callers can correlate their own
    logs; otherwise a UUID4 is minted. The ID lands on ``request.state``, in
    the structlog context for every entry logged while serving the request,
    and in the response headers.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid4())
        request.state.request_id = request_id
        structlog.contextvars.bind_contextvars(request_id=request_id)

        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        response.headers["X-Request-ID"] = request_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Access log plus HTTP metrics.

    Keys travel in the Authorization header and, for revocation, in the URL
    path, so paths, query strings and error text are scrubbed before they
    are logged. Metric labels use the route template for the same reason.
    """

    FIELD_PATTERNS = [
        (re.compile(r'"(token|api_key|secret|authorization)"\s*:\s*"[^"]*"', re.IGNORECASE), r'"\1": "[REDACTED]"'),
        (re.compile(r'Bearer\s+[A-Za-z0-9\-._~+/]+=*', re.IGNORECASE), 'Bearer [REDACTED]'),
    ]

    QUIET_PATHS = {"/health", "/metrics", "/favicon.ico"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        quiet = request.url.path in self.QUIET_PATHS and not settings.LOG_HEALTH_CHECKS
        path = self._redact_sensitive_data(request.url.path)
        start_time = time.time()

        if not quiet or settings.DEBUG:
            logger.info(
                "request_started",
                method=request.method,
                path=path,
                query_params=self._redact_sensitive_data(str(request.query_params)),
                client_host=request.client.host if request.client else None,
            )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                method=request.method,
                path=path,
                error_type=type(e).__name__,
                error_message=self._redact_sensitive_data(str(e)),
                response_time_ms=int((time.time() - start_time) * 1000),
                exc_info=True
            )
            raise

        elapsed = time.time() - start_time
        endpoint = self._metric_endpoint(request)
        http_requests_total.labels(
            method=request.method,
            endpoint=endpoint,
            status=str(response.status_code)
        ).inc()
        http_request_duration_seconds.labels(method=request.method, endpoint=endpoint).observe(elapsed)

        if not quiet or settings.DEBUG or response.status_code >= 400:
            principal = getattr(request.state, "principal", None)
            logger.info(
                "request_completed",
                method=request.method,
                path=path,
                status_code=response.status_code,
                response_time_ms=int(elapsed * 1000),
                owner=principal.owner if principal else None,
                plan=principal.plan if principal else None,
            )

        return response

    @staticmethod
    def _metric_endpoint(request: Request) -> str:
        route = request.scope.get("route")
        return getattr(route, "path", None) or "unmatched"

    @classmethod
    def _redact_sensitive_data(cls, text: str) -> str:
        """Strip bearer values, secret JSON fields and key-shaped strings"""
        for pattern, replacement in cls.FIELD_PATTERNS:
            text = pattern.sub(replacement, text)
        return scrub_key_values(text)


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Last-resort 500 for exceptions that escaped the registered handlers"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            request_id = getattr(request.state, "request_id", None)
            logger.error(
                "unhandled_exception",
                error_type=type(e).__name__,
                error_message=scrub_key_values(str(e)),
                exc_info=True
            )

            body = ErrorResponse(detail="Internal server error", type="internal_server_error")
            content = body.model_dump(mode="json", exclude_none=True)
            content["request_id"] = request_id
            return JSONResponse(status_code=500, content=content)


class UsageStatisticsMiddleware(BaseHTTPMiddleware):
    """
    Middleware to record one usage event per authenticated request.

    A request is recorded only when the key dependency admitted it, which
    it marks by setting ``request.state.token_hash``. Token counters are
    read from ``request.state.input_tokens`` / ``output_tokens`` when the
    handler set them. Recording runs in the background after the response
    is built and never affects it.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        response = await call_next(request)

        token_hash = getattr(request.state, "token_hash", None)
        if token_hash is not None:
            response_time_ms = int((time.time() - start_time) * 1000)
            request.app.state.background_tasks.add(
                self._record_usage(
                    token_hash=token_hash,
                    endpoint=request.url.path,
                    method=request.method,
                    status_code=response.status_code,
                    input_tokens=getattr(request.state, "input_tokens", 0),
                    output_tokens=getattr(request.state, "output_tokens", 0),
                    response_time_ms=response_time_ms,
                    request_id=getattr(request.state, "request_id", None),
                    error_message=getattr(request.state, "error_message", None),
                )
            )

        return response

    async def _record_usage(
        self,
        token_hash: str,
        endpoint: str,
        method: str,
        status_code: int,
        input_tokens: int,
        output_tokens: int,
        response_time_ms: int,
        request_id: Optional[str] = None,
        error_message: Optional[str] = None
    ) -> None:
        """Write the usage event on its own session"""
        try:
            async for db in get_async_session():
                await UsageRecorder(db).record(
                    token_hash=token_hash,
                    endpoint=endpoint,
                    method=method,
                    status_code=status_code,
                    input_tokens=input_tokens,
                    output_tokens=output_tokens,
                    response_time_ms=response_time_ms,
                    request_id=request_id,
                    error_message=error_message,
                )
                break
        except Exception as e:
            logger.warning("usage_recording_session_failed", error_type=type(e).__name__, error=str(e))


class BackgroundTaskManager:
    """
    Simple background task manager for non-blocking operations.

    Holds a reference to each task until it finishes so it is not garbage
    collected mid-flight.
    """

    def __init__(self):
        self.tasks = set()

    def add(self, coro):
        """Add a coroutine to be executed in the background"""
        task = asyncio.create_task(coro)
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)
        return task

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for pending tasks, e.g. at shutdown"""
        if not self.tasks:
            return
        await asyncio.wait(set(self.tasks), timeout=timeout)
