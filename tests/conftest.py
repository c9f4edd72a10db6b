"""Shared test fixtures for all tests"""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool, StaticPool
from redis.asyncio import Redis

from lynxa.models.base import Base
from lynxa.core.security import OpaqueKeyCodec, SignedKeyCodec
from lynxa.services.key_store import KeyStore


TEST_SECRET = "test-secret-key-for-signing-api-keys-0123456789"


def make_session_factory(engine) -> sessionmaker:
    return sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def db_engine():
    """Create test database engine (in-memory SQLite, one shared connection)"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False}
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def file_db_engine(tmp_path):
    """
    Create a file-backed SQLite engine.

    Each session gets its own connection, so concurrent sessions really
    contend the way separate requests do.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'lynxa_test.db'}",
        echo=False,
        poolclass=NullPool
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    """Create test database session"""
    async with make_session_factory(db_engine)() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def redis_client():
    """Create test Redis client"""
    try:
        redis = Redis(
            host="localhost",
            port=6379,
            db=15,
            decode_responses=True,
            socket_connect_timeout=2
        )

        await redis.ping()
        await redis.flushdb()

        yield redis

        await redis.flushdb()
        await redis.aclose()
    except Exception as e:
        pytest.skip(f"Redis not available: {e}")


# ============================================================================
# Service Fixtures
# ============================================================================

@pytest.fixture
def signed_codec():
    return SignedKeyCodec(secret_key=TEST_SECRET, algorithm="HS256")


@pytest.fixture
def opaque_codec():
    return OpaqueKeyCodec(prefix="lynxa")


@pytest_asyncio.fixture
async def key_store(db_session):
    return KeyStore(db_session, timeout=5.0)


@pytest_asyncio.fixture
async def app_session_factory(file_db_engine, monkeypatch):
    """
    Point the application's session factory at the test database.

    Background usage recording opens its own sessions through it.
    """
    from lynxa.core import database

    factory = make_session_factory(file_db_engine)
    monkeypatch.setattr(database, "async_session_factory", factory)
    return factory


@pytest_asyncio.fixture
async def client(app_session_factory, monkeypatch):
    """Create test HTTP client for API integration tests"""
    from httpx import ASGITransport, AsyncClient
    from lynxa.main import app
    from lynxa.core.config import settings
    from lynxa.core.database import get_db, get_redis

    monkeypatch.setattr(settings, "SECRET_KEY", TEST_SECRET)
    monkeypatch.setattr(settings, "API_KEY_STRATEGY", "signed")
    monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", True)
    monkeypatch.setattr(settings, "RATE_LIMIT_BACKEND", "database")

    async def override_get_db():
        async with app_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    def override_get_redis():
        return None

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    await app.state.background_tasks.drain(timeout=5)
    app.dependency_overrides.clear()


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers",
        "asyncio: mark test as async"
    )
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test"
    )
    config.addinivalue_line(
        "markers",
        "property: mark test as property-based test"
    )
