"""Key Store - persistence boundary for API key records"""

import asyncio
from datetime import datetime
from typing import Awaitable, List, Optional, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lynxa.core.config import settings
from lynxa.core.exceptions import DuplicateToken, KeyNotFound, StoreUnavailable
from lynxa.core.logging_config import get_logger
from lynxa.core.monitoring import api_keys_revoked_total
from lynxa.core.security import hash_api_key
from lynxa.models.api_key import ApiKeyModel
from lynxa.utils.datetime import utcnow

logger = get_logger(__name__)

T = TypeVar("T")


class KeyStore:
    """
    Reads and writes API key rows.

    Tokens are addressed by their SHA-256 hash; the plaintext never reaches
    the database. Every call is bounded by ``timeout`` seconds and any
    database failure surfaces as ``StoreUnavailable``.
    """

    def __init__(self, db_session: AsyncSession, timeout: Optional[float] = None):
        """
        Args:
            db_session: Database session
            timeout: Per-operation timeout in seconds
        """
        self.db = db_session
        self.timeout = timeout if timeout is not None else settings.STORE_TIMEOUT_SECONDS

    async def _bounded(self, operation: str, coro: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error("key_store_timeout", operation=operation, timeout=self.timeout)
            raise StoreUnavailable(f"Key store timed out during {operation}", context=operation)
        except SQLAlchemyError as e:
            logger.error(
                "key_store_error",
                operation=operation,
                error_type=type(e).__name__,
                error_message=str(e),
            )
            raise StoreUnavailable(context=operation, details={"error_type": type(e).__name__})

    async def insert(
        self,
        owner: str,
        token: str,
        expires_at: datetime,
        strategy: str,
        rate_limit: int,
        plan: str,
        organization_id: Optional[str] = None,
        created_at: Optional[datetime] = None
    ) -> ApiKeyModel:
        """
        Persist a newly issued key.

        Raises:
            DuplicateToken: If the token hash already exists
            StoreUnavailable: On any other database failure
        """
        now = created_at or utcnow()
        api_key = ApiKeyModel(
            token_hash=hash_api_key(token),
            token_suffix=token[-4:],
            strategy=strategy,
            owner=owner,
            plan=plan,
            organization_id=organization_id,
            rate_limit=rate_limit,
            expires_at=expires_at,
            revoked=False,
            created_at=now,
            updated_at=now,
        )

        async def _insert() -> ApiKeyModel:
            self.db.add(api_key)
            try:
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                raise DuplicateToken(context="key_store.insert")
            await self.db.refresh(api_key)
            return api_key

        return await self._bounded("insert", _insert())

    async def find_by_token(self, token: str) -> ApiKeyModel:
        """
        Look up a key by its plaintext token.

        Raises:
            KeyNotFound: If no row matches
        """
        return await self.find_by_hash(hash_api_key(token))

    async def find_by_hash(self, token_hash: str) -> ApiKeyModel:
        """Look up a key by its stored hash"""

        async def _find() -> Optional[ApiKeyModel]:
            stmt = select(ApiKeyModel).where(ApiKeyModel.token_hash == token_hash)
            result = await self.db.execute(stmt)
            return result.scalar_one_or_none()

        api_key = await self._bounded("find_by_token", _find())
        if api_key is None:
            raise KeyNotFound()
        return api_key

    async def revoke(self, token: str, now: Optional[datetime] = None) -> ApiKeyModel:
        """
        Revoke a key. Revoking an already revoked key is a no-op.

        Raises:
            KeyNotFound: If no row matches
        """
        api_key = await self.find_by_token(token)

        if api_key.revoked:
            return api_key

        async def _revoke() -> ApiKeyModel:
            api_key.revoked = True
            api_key.revoked_at = now or utcnow()
            await self.db.commit()
            return api_key

        await self._bounded("revoke", _revoke())
        api_keys_revoked_total.inc()
        logger.info("api_key_revoked", token_hash=api_key.token_hash, owner=api_key.owner)
        return api_key

    async def list_by_owner(self, owner: str) -> List[ApiKeyModel]:
        """Return all keys for an owner, newest first"""

        async def _list() -> List[ApiKeyModel]:
            stmt = (
                select(ApiKeyModel)
                .where(ApiKeyModel.owner == owner)
                .order_by(ApiKeyModel.created_at.desc(), ApiKeyModel.id.desc())
            )
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

        return await self._bounded("list_by_owner", _list())
