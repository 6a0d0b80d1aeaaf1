"""Shared pytest fixtures for service and API tests."""

import os

# Configure before anything imports snaplink settings
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DATABASE_SCHEMA"] = ""
os.environ["REDIS_URL"] = ""
os.environ["SECRET_KEY"] = "test-secret"
os.environ["ANALYTICS_TIMEZONE"] = "UTC"

from collections.abc import AsyncGenerator
from datetime import datetime
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from snaplink.aggregators import AnalyticsAggregator, get_analytics_aggregator
from snaplink.core.database import Base, build_engine, build_session_factory, get_async_session
from snaplink.core.security import create_access_token
from snaplink.main import app
from snaplink.services import (
    MappingRegistry,
    SlugAllocator,
    VisitRecorder,
    get_mapping_registry,
    get_visit_recorder,
)

OWNER = "owner-1"
OTHER_OWNER = "owner-2"

CHROME_WINDOWS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
SAFARI_IPHONE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_1 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.1 Mobile/15E148 Safari/604.1"
)
FIREFOX_LINUX = "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0"


class FrozenClock:
    """Callable clock returning a settable naive UTC time."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 10, 19, 12, 0, 0))


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    # File-backed so concurrent sessions get their own connections
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'snaplink.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def allocator() -> SlugAllocator:
    return SlugAllocator()


@pytest.fixture
def registry(allocator: SlugAllocator) -> MappingRegistry:
    return MappingRegistry(allocator=allocator)


@pytest.fixture
def recorder(
    session_factory: async_sessionmaker[AsyncSession],
    clock: FrozenClock,
) -> VisitRecorder:
    return VisitRecorder(session_factory=session_factory, timezone_name="UTC", clock=clock)


@pytest.fixture
def aggregator(registry: MappingRegistry, clock: FrozenClock) -> AnalyticsAggregator:
    return AnalyticsAggregator(registry=registry, timezone_name="UTC", clock=clock)


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    registry: MappingRegistry,
    recorder: VisitRecorder,
    aggregator: AnalyticsAggregator,
) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_async_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_async_session] = override_get_async_session
    app.dependency_overrides[get_mapping_registry] = lambda: registry
    app.dependency_overrides[get_visit_recorder] = lambda: recorder
    app.dependency_overrides[get_analytics_aggregator] = lambda: aggregator

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await recorder.drain()
    app.dependency_overrides.clear()


def auth_headers(owner_id: str = OWNER) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(owner_id)}"}
