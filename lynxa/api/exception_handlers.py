"""Custom exception handlers for FastAPI application"""

from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from typing import Union

from lynxa.core.exceptions import (
    LynxaError,
    AuthenticationError,
    StoreUnavailable,
    RateLimitExceeded
)
from lynxa.core.logging_config import get_logger, scrub_key_values
from lynxa.schemas.common import ErrorResponse


logger = get_logger(__name__)


async def lynxa_exception_handler(
    request: Request,
    exc: LynxaError
) -> JSONResponse:
    """
    Handle domain errors.

    The response body is ``exc.get_api_response()``. Internal details such as
    the reason a token failed parsing go to the log only.
    """
    log_fields = dict(
        request_path=request.url.path,
        request_method=request.method,
        request_id=getattr(request.state, "request_id", None),
        **exc.to_dict()
    )

    headers = {}
    if isinstance(exc, AuthenticationError):
        headers["WWW-Authenticate"] = "Bearer"
        logger.info("authentication_error_handled", **log_fields)
    elif isinstance(exc, RateLimitExceeded):
        # Denials are expected traffic, not faults
        headers["Retry-After"] = str(exc.retry_after_seconds)
        logger.info("rate_limit_error_handled", limit=exc.limit, endpoint=exc.endpoint, **log_fields)
    elif isinstance(exc, StoreUnavailable):
        logger.error("store_unavailable_handled", **log_fields)
    elif exc.status_code >= 500:
        logger.error("domain_error_handled", **log_fields)
    else:
        logger.warning("domain_error_handled", **log_fields)

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.get_api_response(),
        headers=headers or None
    )


async def validation_exception_handler(
    request: Request,
    exc: Union[RequestValidationError, ValidationError]
) -> JSONResponse:
    """422 with one entry per failing field; the body/query prefix is dropped from field paths"""
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"] if loc not in ("body", "query", "path", "header")),
            "message": error["msg"],
            "type": error["type"]
        }
        for error in exc.errors()
    ]

    logger.warning(
        "validation_error_handled",
        request_path=scrub_key_values(request.url.path),
        request_method=request.method,
        errors=errors
    )

    return JSONResponse(
        status_code=422,
        content={
            "detail": "Validation error",
            "type": "validation_error",
            "errors": errors
        }
    )


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException]
) -> JSONResponse:
    """Routing-level errors (unknown path, wrong method) in the standard error shape"""
    logger.warning(
        "http_exception_handled",
        request_path=scrub_key_values(request.url.path),
        request_method=request.method,
        status_code=exc.status_code,
        detail=str(exc.detail)
    )

    error_type = {
        401: "authentication_required",
        404: "not_found",
        405: "method_not_allowed"
    }.get(exc.status_code, "http_error")
    content = ErrorResponse(detail=str(exc.detail), type=error_type).model_dump(mode="json", exclude_none=True)

    headers = getattr(exc, "headers", None)

    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=headers
    )


async def general_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """Anything else is a 500 whose body reveals nothing about the failure"""
    logger.error(
        "unexpected_exception_handled",
        request_path=scrub_key_values(request.url.path),
        request_method=request.method,
        error_type=type(exc).__name__,
        error_message=scrub_key_values(str(exc)),
        exc_info=True
    )

    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            detail="Internal server error",
            type="internal_server_error"
        ).model_dump(mode="json", exclude_none=True)
    )


def register_exception_handlers(app):
    app.add_exception_handler(LynxaError, lynxa_exception_handler)

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)

    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    app.add_exception_handler(Exception, general_exception_handler)

    logger.debug("exception_handlers_registered")
