"""API Key Service - issuance, revocation and listing"""

from typing import List, Optional, Tuple

from lynxa.core.config import settings
from lynxa.core.exceptions import OwnerNotAllowed, UnknownPlan
from lynxa.core.logging_config import get_logger
from lynxa.core.monitoring import api_keys_issued_total
from lynxa.core.security import IssuedToken, KeyCodec, get_key_codec
from lynxa.models.api_key import ApiKeyModel
from lynxa.services.key_store import KeyStore

logger = get_logger(__name__)


class KeyService:
    """
    Key lifecycle operations exposed through the ``/keys`` endpoints.

    Issuance mints exactly one token per call. Owners are checked against
    the allowed email domains before anything is written.
    """

    def __init__(
        self,
        store: KeyStore,
        codec: Optional[KeyCodec] = None,
        allowed_domains: Optional[List[str]] = None
    ):
        self.store = store
        self.codec = codec or get_key_codec()
        self.allowed_domains = [
            d.lower() for d in (allowed_domains if allowed_domains is not None else settings.ALLOWED_OWNER_DOMAINS)
        ]

    def check_owner(self, owner: str) -> str:
        """
        Normalize and validate an owner address.

        Raises:
            OwnerNotAllowed: If the address is malformed or outside the allowed domains
        """
        normalized = (owner or "").strip().lower()
        local, sep, domain = normalized.rpartition("@")
        if not sep or not local or not domain:
            raise OwnerNotAllowed(context="key_service.issue")
        if self.allowed_domains and domain not in self.allowed_domains:
            raise OwnerNotAllowed(
                context="key_service.issue",
                details={"allowed_domains": self.allowed_domains}
            )
        return normalized

    async def issue(
        self,
        owner: str,
        plan: Optional[str] = None,
        organization_id: Optional[str] = None
    ) -> Tuple[IssuedToken, ApiKeyModel]:
        """
        Issue a new key for an owner.

        ``plan`` defaults to ``DEFAULT_PLAN``. The HTTP endpoint never passes
        one; choosing a plan is an operator action (``scripts/manage_keys.py``).

        Raises:
            OwnerNotAllowed: Owner outside the allowed domains
            UnknownPlan: Plan has no configured rate limit

        Returns:
            The issued token (plaintext, shown once) and the stored record
        """
        owner = self.check_owner(owner)
        plan = (plan or settings.DEFAULT_PLAN).lower()
        if plan not in settings.PLAN_RATE_LIMITS:
            raise UnknownPlan(
                f"Unknown plan '{plan}'",
                context="key_service.issue",
                details={"plans": sorted(settings.PLAN_RATE_LIMITS)}
            )
        rate_limit = settings.PLAN_RATE_LIMITS[plan]

        issued = self.codec.issue(owner)
        api_key = await self.store.insert(
            owner=owner,
            token=issued.token,
            expires_at=issued.expires_at,
            strategy=self.codec.name,
            rate_limit=rate_limit,
            plan=plan,
            organization_id=organization_id,
            created_at=issued.issued_at,
        )

        api_keys_issued_total.labels(strategy=self.codec.name, plan=plan).inc()
        logger.info(
            "api_key_issued",
            owner=owner,
            plan=plan,
            strategy=self.codec.name,
            expires_at=issued.expires_at.isoformat(),
            token_hash=api_key.token_hash,
        )
        return issued, api_key

    async def revoke(self, token: str) -> ApiKeyModel:
        """Revoke a key; idempotent. Raises KeyNotFound for unknown tokens."""
        return await self.store.revoke(token)

    async def list_keys(self, owner: str) -> List[ApiKeyModel]:
        """List an owner's keys, newest first"""
        return await self.store.list_by_owner((owner or "").strip().lower())
