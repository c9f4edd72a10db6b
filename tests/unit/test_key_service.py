"""Unit tests for the key service"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from lynxa.core.exceptions import KeyNotFound, OwnerNotAllowed, UnknownPlan
from lynxa.core.security import OpaqueKeyCodec
from lynxa.services.key_service import KeyService


class TestOwnerCheck:
    """Owners outside the allowed domains never reach the store"""

    def setup_method(self):
        self.store = MagicMock()
        self.store.insert = AsyncMock()
        self.service = KeyService(self.store, codec=OpaqueKeyCodec(), allowed_domains=["gmail.com"])

    @pytest.mark.asyncio
    @pytest.mark.parametrize("owner", [
        "user@example.com",
        "user@gmail.com.evil.org",
        "not-an-email",
        "@gmail.com",
        "",
    ])
    async def test_rejected_before_write(self, owner):
        with pytest.raises(OwnerNotAllowed) as exc_info:
            await self.service.issue(owner)

        assert exc_info.value.status_code == 400
        self.store.insert.assert_not_called()

    def test_owner_normalized(self):
        assert self.service.check_owner("  User@Gmail.COM ") == "user@gmail.com"

    def test_no_domain_restriction(self):
        service = KeyService(self.store, codec=OpaqueKeyCodec(), allowed_domains=[])
        assert service.check_owner("user@example.com") == "user@example.com"


class TestIssue:
    """Test issuance against the real store"""

    @pytest.mark.asyncio
    async def test_issue_persists_key(self, key_store):
        service = KeyService(key_store, codec=OpaqueKeyCodec(), allowed_domains=["gmail.com"])

        issued, api_key = await service.issue("Dev@Gmail.com", plan="pro")

        assert api_key.owner == "dev@gmail.com"
        assert api_key.plan == "pro"
        assert api_key.rate_limit == 10000
        assert api_key.strategy == "opaque"
        assert api_key.expires_at == issued.expires_at
        assert (await key_store.find_by_token(issued.token)).id == api_key.id

    @pytest.mark.asyncio
    async def test_enterprise_is_unlimited(self, key_store):
        service = KeyService(key_store, codec=OpaqueKeyCodec(), allowed_domains=["gmail.com"])

        _, api_key = await service.issue("dev@gmail.com", plan="enterprise")

        assert api_key.rate_limit == -1
        assert api_key.is_unlimited

    @pytest.mark.asyncio
    async def test_default_plan(self, key_store):
        service = KeyService(key_store, codec=OpaqueKeyCodec(), allowed_domains=["gmail.com"])

        _, api_key = await service.issue("dev@gmail.com")

        assert api_key.plan == "free"
        assert api_key.rate_limit == 1000
        assert not api_key.is_unlimited

    @pytest.mark.asyncio
    async def test_unknown_plan_rejected_before_write(self):
        store = MagicMock()
        store.insert = AsyncMock()
        service = KeyService(store, codec=OpaqueKeyCodec(), allowed_domains=["gmail.com"])

        with pytest.raises(UnknownPlan) as exc_info:
            await service.issue("dev@gmail.com", plan="platinum")

        assert exc_info.value.status_code == 400
        store.insert.assert_not_called()

    @pytest.mark.asyncio
    async def test_list_and_revoke(self, key_store):
        service = KeyService(key_store, codec=OpaqueKeyCodec(), allowed_domains=["gmail.com"])
        issued, _ = await service.issue("dev@gmail.com")

        keys = await service.list_keys("DEV@gmail.com")
        assert len(keys) == 1

        revoked = await service.revoke(issued.token)
        assert revoked.revoked is True

    @pytest.mark.asyncio
    async def test_revoke_nonexistent(self, key_store):
        service = KeyService(key_store, codec=OpaqueKeyCodec())

        with pytest.raises(KeyNotFound):
            await service.revoke("lynxa_" + "1" * 64)
