"""Test configuration and fixtures."""

import os

# Set test environment variables BEFORE importing app modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["API_TOKEN"] = "test-api-token"
os.environ["DISCORD_BOT_TOKEN"] = ""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from duck_racing.api.helpers import get_dispatcher, get_services
from duck_racing.database import Base
from duck_racing.main import app
from duck_racing.rate_limit import limiter
from duck_racing.services import RetiredHolders, build_services
from duck_racing.services.dispatcher import CommandDispatcher

API_TOKEN = "test-api-token"
RETIRED_HOLDER = "retired-1"


class FakeDisplayNames:
    """Display-name resolver backed by a dict."""

    def __init__(self, names: dict[str, str] | None = None) -> None:
        self.names = names or {}

    async def display_name(self, holder_id: str) -> str:
        return self.names.get(holder_id, "Unknown")


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
async def async_engine(tmp_path):
    # File-backed so concurrent sessions get their own connections
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(async_engine):
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def services(session_maker):
    race_services = build_services(
        session_maker,
        eligibility=RetiredHolders([RETIRED_HOLDER]),
        claim_queue_timeout=10.0,
        store_timeout=10.0,
    )
    yield race_services
    race_services.close()


@pytest.fixture
def display_names():
    return FakeDisplayNames({"alice": "Alice", "bob": "Bob", "carol": "Carol"})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def dispatcher(services, display_names, clock):
    return CommandDispatcher(services, display_names, wipe_ttl=60.0, clock=clock)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter state between tests to avoid cross-test pollution."""
    limiter.reset()
    yield


@pytest.fixture
async def client(services, dispatcher):
    """HTTP client authenticated with the API token, wired to the test services."""
    app.dependency_overrides[get_services] = lambda: services
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"Authorization": f"Bearer {API_TOKEN}"},
    ) as test_client:
        yield test_client
    app.dependency_overrides.clear()
