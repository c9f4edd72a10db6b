"""Key Validator - admission gate for every protected operation"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from lynxa.core.exceptions import (
    AuthBackendUnavailable,
    CredentialExpired,
    CredentialRevoked,
    InvalidCredential,
    KeyNotFound,
    MalformedToken,
    MissingCredential,
    StoreUnavailable,
)
from lynxa.core.logging_config import get_logger
from lynxa.core.monitoring import key_validations_total
from lynxa.core.security import KeyCodec, get_key_codec
from lynxa.services.key_store import KeyStore
from lynxa.utils.datetime import utcnow

logger = get_logger(__name__)


@dataclass(frozen=True)
class Principal:
    """Identity resolved from a valid API key"""
    owner: str
    key_id: str
    token_hash: str
    rate_limit: int
    plan: str
    expires_at: datetime
    organization_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Caller-facing view; the token hash and key id stay internal"""
        return {
            "owner": self.owner,
            "plan": self.plan,
            "rate_limit": self.rate_limit,
            "organization_id": self.organization_id,
            "expires_at": self.expires_at.isoformat(),
        }


class KeyValidator:
    """
    Validates presented bearer tokens against the codec and the key store.

    Checks run in a fixed order: presence, shape/signature, existence,
    revocation, expiry. Revocation is reported ahead of expiry so a revoked
    key always reads as revoked. Usability is evaluated fresh on every call.
    """

    def __init__(
        self,
        store: KeyStore,
        codec: Optional[KeyCodec] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        """
        Args:
            store: Key store used for lookup
            codec: Token codec (defaults to the configured strategy)
            clock: Returns the current naive UTC time
        """
        self.store = store
        self.codec = codec or get_key_codec(clock=clock)
        self.clock = clock

    async def validate(self, presented_token: Optional[str]) -> Principal:
        """
        Resolve a presented token to its principal.

        Raises:
            MissingCredential: No token presented
            MalformedToken: Token fails structural or signature checks
            InvalidCredential: Token is not in the store
            CredentialRevoked: Key was revoked
            CredentialExpired: Key is past expiry
            AuthBackendUnavailable: The store failed or timed out
        """
        try:
            principal = await self._validate(presented_token)
        except (MissingCredential, InvalidCredential, CredentialRevoked, CredentialExpired) as e:
            outcome = getattr(e, "internal_code", e.error_code)
            key_validations_total.labels(outcome=outcome).inc()
            logger.info("api_key_rejected", outcome=outcome)
            raise
        except AuthBackendUnavailable:
            key_validations_total.labels(outcome="backend_unavailable").inc()
            raise

        key_validations_total.labels(outcome="valid").inc()
        return principal

    async def _validate(self, presented_token: Optional[str]) -> Principal:
        if not presented_token or not presented_token.strip():
            raise MissingCredential()

        token = presented_token.strip()

        # Expiry is decided from the store row below so revocation wins
        self.codec.parse(token, verify_expiry=False)

        try:
            api_key = await self.store.find_by_token(token)
        except KeyNotFound:
            raise InvalidCredential(context="key_validator")
        except StoreUnavailable as e:
            logger.error("key_validation_backend_unavailable", context=e.context)
            raise AuthBackendUnavailable(context="key_validator")

        if api_key.revoked:
            raise CredentialRevoked()

        if api_key.is_expired(self.clock()):
            raise CredentialExpired()

        return Principal(
            owner=api_key.owner,
            key_id=api_key.id,
            token_hash=api_key.token_hash,
            rate_limit=api_key.rate_limit,
            plan=api_key.plan,
            expires_at=api_key.expires_at,
            organization_id=api_key.organization_id,
        )


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """
    Pull the token out of an ``Authorization: Bearer <token>`` header.

    Returns None when the header is absent or uses another scheme.
    """
    if not authorization:
        return None
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return credentials.strip() or None
