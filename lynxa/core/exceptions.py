"""Custom exceptions for the Lynxa backend"""

from typing import Optional, Dict, Any
from datetime import datetime

from lynxa.utils.datetime import utcnow


class LynxaError(Exception):
    """
    Base class for all domain errors.

    Subclasses set ``status_code`` and ``error_code``. ``error_code`` is the
    stable machine-readable value clients see in the ``type`` field of the
    response body.
    """

    status_code: int = 500
    error_code: str = "internal_error"
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        context: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message or self.default_message
        self.context = context
        self.details = details or {}
        self.timestamp: datetime = utcnow()

        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for logging.

        Returns:
            Dictionary representation of the error
        """
        return {
            "error_type": type(self).__name__,
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
            "details": self.details,
            "timestamp": self.timestamp.isoformat()
        }

    def get_api_response(self) -> Dict[str, Any]:
        """
        Get API-friendly error response.

        Returns:
            Dictionary suitable for HTTP error responses
        """
        return {
            "detail": self.message,
            "type": self.error_code,
            "timestamp": self.timestamp.isoformat()
        }


# ============================================================================
# Credential errors (HTTP 401, terminal for the request)
# ============================================================================

class AuthenticationError(LynxaError):
    """
    Raised when a presented credential is rejected.

    These errors are terminal: the client must not retry with the same key.
    """

    status_code = 401
    error_code = "authentication_failed"
    default_message = "Authentication failed"


class MissingCredential(AuthenticationError):
    """No bearer token was presented"""

    error_code = "missing_credential"
    default_message = "API key required: Authorization: Bearer <key>"


class InvalidCredential(AuthenticationError):
    """The token is unknown to the key store or failed signature checks"""

    error_code = "invalid_credential"
    default_message = "Invalid API key"


class MalformedToken(InvalidCredential):
    """
    The token does not match the expected shape.

    Reported to clients exactly like ``InvalidCredential`` so responses do
    not reveal whether a token failed parsing or was never issued.
    """

    internal_code = "malformed_token"

    def __init__(self, message: Optional[str] = None, **kwargs):
        super().__init__(InvalidCredential.default_message, **kwargs)
        self.reason = message

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["internal_code"] = self.internal_code
        result["reason"] = self.reason
        return result


class SignatureInvalid(MalformedToken):
    """A signed token failed verification against the shared secret"""

    internal_code = "signature_invalid"


class CredentialRevoked(AuthenticationError):
    """The key was revoked"""

    error_code = "credential_revoked"
    default_message = "API key has been revoked"


class CredentialExpired(AuthenticationError):
    """The key is past its expiry"""

    error_code = "credential_expired"
    default_message = "API key has expired"


class TokenExpired(CredentialExpired):
    """Expiry detected from a signed token's own claims"""


# ============================================================================
# Backend errors (HTTP 503, retryable)
# ============================================================================

class StoreUnavailable(LynxaError):
    """The persistent store failed or timed out"""

    status_code = 503
    error_code = "store_unavailable"
    default_message = "Storage backend unavailable, try again later"


class AuthBackendUnavailable(StoreUnavailable):
    """
    Credential validation could not reach the key store.

    Distinct from credential errors so clients can tell "try again" from
    "your key is bad".
    """

    error_code = "auth_backend_unavailable"
    default_message = "Authentication backend unavailable, try again later"


# ============================================================================
# Admission and key management errors
# ============================================================================

class RateLimitExceeded(LynxaError):
    """The key's request ceiling for the current window was reached"""

    status_code = 429
    error_code = "rate_limit_exceeded"
    default_message = "Rate limit exceeded"

    def __init__(
        self,
        retry_after_seconds: int,
        limit: Optional[int] = None,
        endpoint: Optional[str] = None,
        **kwargs
    ):
        self.retry_after_seconds = retry_after_seconds
        self.limit = limit
        self.endpoint = endpoint
        super().__init__(**kwargs)

    def get_api_response(self) -> Dict[str, Any]:
        result = super().get_api_response()
        result["retry_after_seconds"] = self.retry_after_seconds
        result["limit"] = self.limit
        return result


class DuplicateToken(LynxaError):
    """An issued token collided with an existing one"""

    status_code = 409
    error_code = "duplicate_token"
    default_message = "API key already exists"


class KeyNotFound(LynxaError):
    """No key record matches the given token"""

    status_code = 404
    error_code = "key_not_found"
    default_message = "API key not found"


class OwnerNotAllowed(LynxaError):
    """Issuance was requested for an owner outside the allowed domains"""

    status_code = 400
    error_code = "owner_not_allowed"
    default_message = "Valid Gmail address required"


class UnknownPlan(LynxaError):
    """Issuance named a plan that has no rate limit configured"""

    status_code = 400
    error_code = "unknown_plan"
    default_message = "Unknown plan"


class KeyAccessDenied(LynxaError):
    """The presented key belongs to a different owner than the one requested"""

    status_code = 403
    error_code = "key_access_denied"
    default_message = "Keys can only be listed by their owner"


class InvalidUsageQuery(LynxaError):
    """Usage was requested with an unsupported time range or grouping"""

    status_code = 400
    error_code = "invalid_usage_query"
    default_message = "Invalid usage query"


class InferenceProviderError(LynxaError):
    """The upstream chat completion provider failed"""

    status_code = 502
    error_code = "inference_provider_error"
    default_message = "Failed to get response from AI"

    def __init__(self, message: Optional[str] = None, upstream_status: Optional[int] = None, **kwargs):
        self.upstream_status = upstream_status
        super().__init__(message, **kwargs)
