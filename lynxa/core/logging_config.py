"""Structured logging for Lynxa (structlog on top of stdlib logging)"""

import logging
import re
import sys
from typing import Any, Dict
import structlog
from structlog.types import EventDict, Processor
from lynxa.core.config import settings


REDACTED = "***REDACTED***"

# Field names that always hold secrets
SENSITIVE_KEYS = {
    'token', 'api_key', 'secret', 'authorization', 'bearer',
    'jwt', 'password', 'redis_password', 'inference_api_key'
}

# Contain a sensitive word but carry nothing replayable
ALLOWED_KEYS = {'token_suffix', 'masked_token', 'input_tokens', 'output_tokens', 'total_tokens'}

# Issued key shapes, scrubbed from free-text values such as paths and messages
KEY_VALUE_PATTERNS = (
    re.compile(r'\b[a-z]+_[0-9a-f]{64}\b'),
    re.compile(r'\beyJ[\w-]+\.[\w-]+\.[\w-]+'),
)


def _is_allowed(key: str) -> bool:
    return key in ALLOWED_KEYS or key.endswith("_hash")


def _is_sensitive(key: str) -> bool:
    return any(word in key for word in SENSITIVE_KEYS)


def scrub_key_values(text: str) -> str:
    """Replace anything shaped like an issued API key"""
    for pattern in KEY_VALUE_PATTERNS:
        text = pattern.sub(REDACTED, text)
    return text


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Stamp every entry with service name, version and environment"""
    event_dict.setdefault("service", settings.APP_NAME)
    event_dict["version"] = settings.APP_VERSION
    event_dict["environment"] = settings.ENVIRONMENT
    return event_dict


def censor_sensitive_data(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Remove credentials from a log entry.

    Values under sensitive field names are replaced outright. String values
    elsewhere are scanned for key-shaped substrings, which catches keys that
    leak through URLs (``DELETE /api/v1/keys/<token>``) or error messages.
    Token hashes and token counts pass through untouched.
    """

    def censor(value: Any) -> Any:
        if isinstance(value, dict):
            return censor_dict(value)
        if isinstance(value, (list, tuple)):
            return [censor(item) for item in value]
        if isinstance(value, str):
            return scrub_key_values(value)
        return value

    def censor_dict(d: Dict[str, Any]) -> Dict[str, Any]:
        result = {}
        for key, value in d.items():
            key_lower = str(key).lower()
            if _is_allowed(key_lower):
                result[key] = value
            elif _is_sensitive(key_lower):
                result[key] = REDACTED
            else:
                result[key] = censor(value)
        return result

    return censor_dict(event_dict)


def _renderer() -> Processor:
    if settings.DEBUG or settings.ENVIRONMENT == "development" or settings.LOG_FORMAT == "text":
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def configure_structlog() -> None:
    """
    Route structlog through stdlib logging at ``LOG_LEVEL``.

    Request-scoped fields bound with ``structlog.contextvars`` (the request
    id, see ``RequestIDMiddleware``) are merged into every entry.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            add_app_context,
            censor_sensitive_data,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _renderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


configure_structlog()


__all__ = [
    'configure_structlog',
    'censor_sensitive_data',
    'scrub_key_values',
    'get_logger',
]
