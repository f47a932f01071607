"""
Pytest configuration and fixtures for SealDrop tests.

Every test runs against a fresh in-memory SQLite database and a fake clock
so quota windows and retention can be crossed without sleeping.
"""
import os

# Must be set before sealdrop.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["PURGE_ON_STARTUP"] = "false"

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from sealdrop.api.dependencies import get_blob_store
from sealdrop.database import init_db
from sealdrop.main import app
from sealdrop.storage import BlobStore, QuotaTracker, StorageConfig

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

START_TIME = datetime(2026, 10, 17, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = START_TIME) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


# ============================================
# Test Fixtures
# ============================================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage_config() -> StorageConfig:
    """Reference policy: 1 MiB, 7 days, 5 entries per 2 hours."""
    return StorageConfig()


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory database shared across sessions through StaticPool."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_db(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def quota(storage_config: StorageConfig, clock: FakeClock) -> QuotaTracker:
    return QuotaTracker(storage_config, clock=clock)


@pytest.fixture
def store(session_factory, storage_config: StorageConfig, clock: FakeClock) -> BlobStore:
    return BlobStore(session_factory, storage_config, clock=clock)


@pytest_asyncio.fixture
async def test_client(store: BlobStore) -> AsyncGenerator[AsyncClient, None]:
    """Async client for the app, wired to the test store.

    Requests arrive from 127.0.0.1 unless an X-Forwarded-For header is sent.
    """
    app.dependency_overrides[get_blob_store] = lambda: store

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ============================================
# Pytest Configuration
# ============================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "fast: Fast unit tests (no network, in-memory database)"
    )
    config.addinivalue_line(
        "markers", "integration: API tests through the ASGI app"
    )
