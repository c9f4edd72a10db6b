"""Relational store and Redis connection management"""

import asyncio
from typing import AsyncGenerator, Optional
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, AsyncEngine
from sqlalchemy.orm import sessionmaker
from redis.asyncio import Redis, ConnectionPool
from lynxa.core.config import settings
from lynxa.core.logging_config import get_logger

# Registers api_keys, api_usage and rate_limits on Base.metadata
from lynxa.models import Base

logger = get_logger(__name__)

db_engine: Optional[AsyncEngine] = None
async_session_factory: Optional[sessionmaker] = None

# Only set when rate windows live in Redis
redis_client: Optional[Redis] = None
redis_pool: Optional[ConnectionPool] = None

REDIS_CONNECT_ATTEMPTS = 3


def _engine_options(url: str) -> dict:
    options = {"echo": settings.DEBUG}
    if url.startswith("sqlite"):
        # SQLite has no server-side pool to tune
        return options
    options.update(
        pool_size=10,
        max_overflow=20,
        pool_timeout=settings.STORE_TIMEOUT_SECONDS,
        pool_recycle=3600,
        pool_pre_ping=True,
    )
    return options


async def init_database(database_url: Optional[str] = None) -> None:
    """Create the engine and session factory for ``DATABASE_URL``"""
    global db_engine, async_session_factory

    url = database_url or settings.DATABASE_URL
    db_engine = create_async_engine(url, **_engine_options(url))
    async_session_factory = sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    logger.info("database_initialized", dialect=db_engine.dialect.name)


async def create_tables() -> None:
    """Create the schema directly, bypassing Alembic (local setups and tests)"""
    if db_engine is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_database() -> None:
    global db_engine, async_session_factory
    if db_engine is not None:
        await db_engine.dispose()
        logger.info("database_closed")
    db_engine = None
    async_session_factory = None


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session dependency.

    Commits when the handler returns and rolls back when it raises, so a
    key issued by a request that later fails is never persisted.
    """
    if async_session_factory is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")

    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Session for work outside a request (usage recording, scripts).

    The caller commits. Usage:
        async for session in get_async_session():
            ...
    """
    if async_session_factory is None:
        await init_database()

    async with async_session_factory() as session:
        yield session


async def check_database_connection() -> bool:
    """``SELECT 1`` within the store timeout"""
    if db_engine is None:
        return False

    async def ping() -> None:
        async with db_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    try:
        await asyncio.wait_for(ping(), timeout=settings.STORE_TIMEOUT_SECONDS)
        return True
    except Exception as e:
        logger.warning("database_health_check_failed", error_type=type(e).__name__, error=str(e))
        return False


def get_redis_url() -> str:
    auth = f":{settings.REDIS_PASSWORD}@" if settings.REDIS_PASSWORD else ""
    return f"redis://{auth}{settings.REDIS_HOST}:{settings.REDIS_PORT}/{settings.REDIS_DB}"


async def init_redis() -> None:
    """
    Connect the Redis window store.

    Retries the first ping with a linear backoff and gives up with a
    RuntimeError, which aborts startup.
    """
    global redis_client, redis_pool

    redis_pool = ConnectionPool.from_url(
        get_redis_url(),
        max_connections=50,
        decode_responses=True,
        socket_connect_timeout=settings.STORE_TIMEOUT_SECONDS,
        socket_timeout=settings.STORE_TIMEOUT_SECONDS,
        health_check_interval=30,
    )
    redis_client = Redis(connection_pool=redis_pool)

    for attempt in range(1, REDIS_CONNECT_ATTEMPTS + 1):
        try:
            await redis_client.ping()
            logger.info("redis_initialized", host=settings.REDIS_HOST, db=settings.REDIS_DB)
            return
        except Exception as e:
            logger.warning("redis_connect_failed", attempt=attempt, error=str(e))
            if attempt == REDIS_CONNECT_ATTEMPTS:
                raise RuntimeError(
                    f"Failed to connect to Redis after {REDIS_CONNECT_ATTEMPTS} attempts: {e}"
                ) from e
            await asyncio.sleep(attempt)


async def close_redis() -> None:
    global redis_client, redis_pool
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None
    if redis_pool is not None:
        await redis_pool.disconnect()
        redis_pool = None


def get_redis() -> Optional[Redis]:
    """Redis client, or None when rate windows are kept in the relational store"""
    return redis_client


async def check_redis_connection() -> bool:
    if redis_client is None:
        return False
    try:
        await redis_client.ping()
        return True
    except Exception as e:
        logger.warning("redis_health_check_failed", error_type=type(e).__name__, error=str(e))
        return False
