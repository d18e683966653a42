"""Pytest configuration and shared fixtures."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from dealhub.dependencies import get_admin_password
from dealhub.locators import LocationSearchClient, NationwideLocationSearch
from dealhub.locators.utils.rate_limiter import DomainRateLimiter
from dealhub.main import app
from dealhub.models import Base, Deal
from dealhub.services.cache_service import NullCache

ADMIN_PASSWORD = "s3cret"


@pytest.fixture
def anyio_backend():
    """Use asyncio as the async backend for tests."""
    return "asyncio"


@pytest_asyncio.fixture
async def session_factory():
    """In-memory SQLite database shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def test_db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def fast_limiter():
    """Rate limiter that never makes a test wait."""

    class _Unlimited(DomainRateLimiter):
        async def acquire(self, domain: str, tokens: float = 1.0) -> None:
            return None

    return _Unlimited()


def make_deal(**overrides) -> Deal:
    """Build an unsaved, active Deal near midtown Manhattan."""
    fields = dict(
        store_name="Blue Bottle",
        category="coffee",
        title="20% off lattes",
        description="",
        image="https://example.com/latte.jpg",
        discount=20,
        original_price=Decimal("5.00"),
        discounted_price=Decimal("4.00"),
        latitude=40.7589,
        longitude=-73.9851,
        address="1 Times Sq",
        city="New York",
        state="NY",
        zip_code="10036",
        expires_at=datetime.now(timezone.utc) + timedelta(days=3),
        views=0,
        clicks=0,
        items=[],
    )
    fields.update(overrides)
    return Deal(**fields)


@pytest_asyncio.fixture
async def client(session_factory, fast_limiter):
    """HTTP client against the app with test state and auth enforced.

    Lifespan is not run; the shared clients it would build are set on
    ``app.state`` directly. Location upstreams answer 503 unless a test
    swaps in its own locator.
    """
    upstream = httpx.AsyncClient(
        transport=httpx.MockTransport(lambda request: httpx.Response(503)),
    )

    app.state.session_factory = session_factory
    app.state.cache = NullCache()
    app.state.location_client = LocationSearchClient(
        upstream, fast_limiter, base_url="https://nominatim.test"
    )
    app.state.nationwide_search = NationwideLocationSearch(
        upstream, fast_limiter, endpoints=["https://overpass.test/api/interpreter"]
    )
    app.dependency_overrides[get_admin_password] = lambda: ADMIN_PASSWORD

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()
    await upstream.aclose()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {ADMIN_PASSWORD}"}
