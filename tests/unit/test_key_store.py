"""Unit tests for the key store"""

import asyncio
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from lynxa.core.exceptions import DuplicateToken, KeyNotFound, StoreUnavailable
from lynxa.core.security import hash_api_key
from lynxa.services.key_store import KeyStore


EXPIRES = datetime(2030, 1, 1)


async def insert_key(store, token, owner="dev@gmail.com", created_at=None):
    return await store.insert(
        owner=owner,
        token=token,
        expires_at=EXPIRES,
        strategy="opaque",
        rate_limit=1000,
        plan="free",
        created_at=created_at
    )


class TestKeyStoreInsert:
    """Test persisting issued keys"""

    @pytest.mark.asyncio
    async def test_insert_stores_hash_not_token(self, key_store):
        token = "lynxa_" + "a" * 64
        api_key = await insert_key(key_store, token)

        assert api_key.token_hash == hash_api_key(token)
        assert api_key.token_suffix == "aaaa"
        assert api_key.revoked is False
        assert api_key.revoked_at is None
        assert token not in (api_key.token_hash, api_key.token_suffix)

    @pytest.mark.asyncio
    async def test_duplicate_token_rejected(self, key_store):
        token = "lynxa_" + "b" * 64
        await insert_key(key_store, token)

        with pytest.raises(DuplicateToken):
            await insert_key(key_store, token)

    @pytest.mark.asyncio
    async def test_find_by_token(self, key_store):
        token = "lynxa_" + "c" * 64
        await insert_key(key_store, token, owner="someone@gmail.com")

        found = await key_store.find_by_token(token)
        assert found.owner == "someone@gmail.com"

    @pytest.mark.asyncio
    async def test_find_unknown_token(self, key_store):
        with pytest.raises(KeyNotFound):
            await key_store.find_by_token("lynxa_" + "d" * 64)


class TestKeyStoreRevoke:
    """Test revocation"""

    @pytest.mark.asyncio
    async def test_revoke_sets_flag_and_time(self, key_store):
        token = "lynxa_" + "e" * 64
        await insert_key(key_store, token)

        revoked_at = datetime(2026, 5, 1, 10, 0, 0)
        api_key = await key_store.revoke(token, now=revoked_at)

        assert api_key.revoked is True
        assert api_key.revoked_at == revoked_at

    @pytest.mark.asyncio
    async def test_revoke_is_idempotent(self, key_store):
        """Second revoke succeeds and keeps the first revocation time"""
        token = "lynxa_" + "f" * 64
        await insert_key(key_store, token)

        first = await key_store.revoke(token, now=datetime(2026, 5, 1))
        second = await key_store.revoke(token, now=datetime(2026, 6, 1))

        assert second.revoked is True
        assert second.revoked_at == first.revoked_at == datetime(2026, 5, 1)

    @pytest.mark.asyncio
    async def test_revoke_unknown(self, key_store):
        with pytest.raises(KeyNotFound):
            await key_store.revoke("lynxa_" + "0" * 64)


class TestKeyStoreList:
    """Test listing by owner"""

    @pytest.mark.asyncio
    async def test_newest_first(self, key_store):
        base = datetime(2026, 1, 1)
        for i in range(3):
            await insert_key(key_store, f"lynxa_{i:064x}", created_at=base + timedelta(hours=i))
        await insert_key(key_store, "lynxa_" + "9" * 64, owner="other@gmail.com")

        keys = await key_store.list_by_owner("dev@gmail.com")

        assert [k.created_at for k in keys] == [
            base + timedelta(hours=2),
            base + timedelta(hours=1),
            base,
        ]

    @pytest.mark.asyncio
    async def test_empty(self, key_store):
        assert await key_store.list_by_owner("nobody@gmail.com") == []


class TestKeyStoreFailures:
    """Database failures surface as StoreUnavailable"""

    @pytest.mark.asyncio
    async def test_database_error(self):
        session = MagicMock()
        session.execute = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("down")))
        store = KeyStore(session, timeout=1.0)

        with pytest.raises(StoreUnavailable):
            await store.find_by_token("lynxa_" + "a" * 64)

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def slow_execute(*args, **kwargs):
            await asyncio.sleep(1)

        session = MagicMock()
        session.execute = slow_execute
        store = KeyStore(session, timeout=0.05)

        with pytest.raises(StoreUnavailable):
            await store.list_by_owner("dev@gmail.com")
