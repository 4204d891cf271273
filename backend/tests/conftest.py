"""
Pytest fixtures for test database, service container, client, and authentication.

Uses an in-memory SQLite database (created and dropped per test) and the
in-process lock store and seat channel, so no PostgreSQL or Redis server is
needed. The lock store runs on a fake clock so hold expiry can be tested
without sleeping.
"""

import json
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

import seat_engine.models  # noqa: F401 - register tables on Base.metadata
from seat_engine.main import app
from seat_engine.db.base import Base
from seat_engine.db.session import get_db
from seat_engine.core.config import Settings, get_settings
from seat_engine.core.errors import CatalogUnavailable
from seat_engine.core.security import create_access_token
from seat_engine.infrastructure.payment_providers import sign_payload
from seat_engine.services.container import ServiceContainer, build_container
from seat_engine.services.interfaces import (
    InMemorySeatEventChannel,
    InMemorySeatLockStore,
    PaymentStatusClient,
    PricingCatalog,
    ProviderStatus,
)

TEST_DATABASE_URL = "sqlite+aiosqlite://"

SHOWTIME_ID = "showtime-1"
BASE_PRICE = Decimal("80000")

TEST_PROVIDER_SECRETS = {
    "momo": "momo-test-secret",
    "vnpay": "vnpay-test-secret",
    "zalopay": "zalopay-test-secret",
}


class FakeClock:
    """Monotonic clock the lock store reads; tests move it forward by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingChannel(InMemorySeatEventChannel):
    """In-memory channel that also keeps every published message."""

    def __init__(self):
        super().__init__()
        self.published: list[str] = []
        self.fail = False

    async def publish(self, message: str) -> None:
        if self.fail:
            raise ConnectionError("channel down")
        self.published.append(message)
        await super().publish(message)

    @property
    def events(self) -> list[dict]:
        return [json.loads(message) for message in self.published]

    def statuses(self, seat_id: str) -> list[str]:
        return [event["status"] for event in self.events if event["seatId"] == seat_id]


class FakeCatalog(PricingCatalog):
    def __init__(self):
        self.base_prices: dict[str, Decimal] = {}
        self.seat_extras: dict[str, Decimal] = {"VIP1": Decimal("20000")}
        self.item_prices: dict[str, Decimal] = {"popcorn": Decimal("45000"), "cola": Decimal("30000")}
        self.available = True

    async def showtime_price(self, showtime_id: str) -> Decimal:
        if not self.available:
            raise CatalogUnavailable("catalog down")
        return self.base_prices.get(showtime_id, BASE_PRICE)

    async def seat_extra_price(self, showtime_id: str, seat_id: str) -> Decimal:
        if not self.available:
            raise CatalogUnavailable("catalog down")
        return self.seat_extras.get(seat_id, Decimal("0"))

    async def item_price(self, item_id: str) -> Decimal:
        if not self.available:
            raise CatalogUnavailable("catalog down")
        return self.item_prices[item_id]


class FakeStatusClient(PaymentStatusClient):
    """Answers status queries from a script; an exception in the script is raised."""

    def __init__(self):
        self.script: list = []
        self.calls = 0

    async def query_status(self, provider: str, booking_id: int) -> ProviderStatus:
        self.calls += 1
        answer = self.script.pop(0) if self.script else ProviderStatus.PENDING
        if isinstance(answer, Exception):
            raise answer
        return answer


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def lock_store(clock: FakeClock) -> InMemorySeatLockStore:
    return InMemorySeatLockStore(clock=clock)


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def status_client() -> FakeStatusClient:
    return FakeStatusClient()


@pytest.fixture
def settings() -> Settings:
    """Default settings plus HMAC secrets for every provider."""
    return get_settings().model_copy(update={"PAYMENT_PROVIDER_SECRETS": TEST_PROVIDER_SECRETS})


@pytest.fixture
def container(settings, lock_store, channel, catalog, status_client) -> ServiceContainer:
    return build_container(settings, lock_store, channel, catalog=catalog, status_client=status_client)


@pytest.fixture
def lock_manager(container: ServiceContainer):
    return container.lock_manager


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test: create tables, yield session, drop and dispose."""
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, container: ServiceContainer) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client wired to the test session and the test container."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    # ASGITransport does not run the lifespan, so install the container directly
    app.state.container = container

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    del app.state.container


def make_headers(user_id: str, role: str = "user") -> dict:
    token = create_access_token(data={"sub": user_id, "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers() -> dict:
    return make_headers("user-1")


@pytest.fixture
def other_headers() -> dict:
    return make_headers("user-2")


@pytest.fixture
def operator_headers() -> dict:
    return make_headers("operator-1", role="operator")


@pytest.fixture
def signed(settings: Settings):
    """Signs a callback payload the way the named provider would."""

    def sign(payload: dict, provider: str = "momo") -> dict:
        secret = settings.PAYMENT_PROVIDER_SECRETS[provider]
        return {**payload, "signature": sign_payload(payload, secret)}

    return sign
