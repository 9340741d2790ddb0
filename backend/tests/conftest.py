"""Shared test configuration and fixtures.

Uses a transactional rollback strategy per test for full isolation:
- Each test runs inside one outer transaction on a single connection that is
  rolled back afterwards.
- Sessions opened by the services (and by each API request) join that
  connection through SAVEPOINTs, so their commits and rollbacks behave as in
  production without leaking between tests.

``TEST_DATABASE_URL`` selects the database; by default a throwaway SQLite
file is used through aiosqlite.
"""

import os
import uuid
from collections.abc import AsyncGenerator
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from ridebook.auth.dependencies import _bearer_scheme, get_current_user
from ridebook.auth.jwt import create_token_pair
from ridebook.auth.passwords import hash_password
from ridebook.database import Base, get_db, get_session_factory
from ridebook.errors import OrderNotFound
from ridebook.main import app
from ridebook.maps.distance import Route, get_distance_provider
from ridebook.models import User, Vehicle
from ridebook.notifications.notifier import get_notifier
from ridebook.payments.gateway import ProviderOrder, ProviderRefund, to_minor_units
from ridebook.payments.razorpay_client import get_payment_gateway
from ridebook.payments.signature import compute_signature, verify_signature
from ridebook.services.order_service import initiate_order
from ridebook.services.verification_service import verify_payment

TEST_GATEWAY_SECRET = "test_razorpay_secret"


# ---------------------------------------------------------------------------
# Engines
# ---------------------------------------------------------------------------


def make_engine(url: str, *, immediate: bool = False) -> AsyncEngine:
    """Create an engine; SQLite gets explicit BEGIN so SAVEPOINTs work.

    ``immediate`` makes every SQLite transaction take the write lock up front,
    which is how concurrent writers serialize on a file database.
    """
    engine = create_async_engine(url, echo=False)
    if engine.dialect.name == "sqlite":

        @event.listens_for(engine.sync_engine, "connect")
        def _disable_pysqlite_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine.sync_engine, "begin")
        def _emit_begin(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE" if immediate else "BEGIN")

    return engine


# ---------------------------------------------------------------------------
# Session-scoped: create / drop all tables once per test session
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def test_engine(tmp_path_factory) -> AsyncGenerator[AsyncEngine, None]:
    url = os.environ.get("TEST_DATABASE_URL") or (
        f"sqlite+aiosqlite:///{tmp_path_factory.mktemp('db') / 'ridebook_test.sqlite'}"
    )
    engine = make_engine(url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def committing_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """A private SQLite file whose transactions really commit, for concurrency tests."""
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'concurrency.sqlite'}", immediate=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


# ---------------------------------------------------------------------------
# Per-test: transactional rollback for isolation
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def db_connection(test_engine: AsyncEngine) -> AsyncGenerator[AsyncConnection, None]:
    async with test_engine.connect() as connection:
        transaction = await connection.begin()
        try:
            yield connection
        finally:
            await transaction.rollback()


@pytest_asyncio.fixture
async def db_session(db_connection: AsyncConnection) -> AsyncGenerator[AsyncSession, None]:
    """Session for arranging and inspecting data; it never commits."""
    session = AsyncSession(bind=db_connection, expire_on_commit=False)
    try:
        yield session
    finally:
        await session.close()


@pytest.fixture
def session_factory(db_connection: AsyncConnection) -> async_sessionmaker[AsyncSession]:
    """Factory for the sessions the services open; each transaction is a SAVEPOINT."""
    return async_sessionmaker(
        bind=db_connection,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )


# ---------------------------------------------------------------------------
# Provider fakes
# ---------------------------------------------------------------------------


class FakeGateway:
    """In-memory payment provider that signs like Razorpay."""

    name = "razorpay"
    key_id = "rzp_test_key"

    def __init__(self, secret: str = TEST_GATEWAY_SECRET) -> None:
        self.secret = secret
        self.orders: dict[str, ProviderOrder] = {}
        self.refunds: list[ProviderRefund] = []
        self.refund_calls = 0
        self.refund_error: Exception | None = None
        self.refund_status = "processed"

    async def create_order(self, amount, currency, receipt, notes) -> ProviderOrder:
        order = ProviderOrder(
            id=f"order_{uuid.uuid4().hex[:14]}",
            amount=to_minor_units(amount),
            currency=currency,
            receipt=receipt,
            status="created",
            notes=dict(notes),
        )
        self.orders[order.id] = order
        return order

    async def fetch_order(self, order_id: str) -> ProviderOrder:
        if order_id not in self.orders:
            raise OrderNotFound()
        return self.orders[order_id]

    async def refund(self, payment_id, amount, notes) -> ProviderRefund:
        self.refund_calls += 1
        if self.refund_error is not None:
            raise self.refund_error
        refund = ProviderRefund(
            id=f"rfnd_{uuid.uuid4().hex[:14]}",
            payment_id=payment_id,
            amount=to_minor_units(amount),
            status=self.refund_status,
        )
        self.refunds.append(refund)
        return refund

    async def list_refunds(self, payment_id: str) -> list[ProviderRefund]:
        return [refund for refund in self.refunds if refund.payment_id == payment_id]

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        return verify_signature(self.secret, order_id, payment_id, signature)

    def sign(self, order_id: str, payment_id: str) -> str:
        return compute_signature(self.secret, order_id, payment_id)


class FakeNotifier:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str, dict]] = []

    async def send(self, to: str, template: str, data: dict) -> bool:
        self.sent.append((to, template, data))
        return True

    @property
    def templates(self) -> list[str]:
        return [template for _, template, _ in self.sent]


class FakeDistance:
    def __init__(self, km: str = "25.00") -> None:
        self.route = Route(
            km=Decimal(km),
            meters=int(Decimal(km) * 1000),
            text=f"{km} km",
            duration_seconds=2700,
            duration_text="45 mins",
        )
        self.calls: list[tuple[str, str]] = []

    async def distance(self, origin: str, destination: str) -> Route:
        self.calls.append((origin, destination))
        return self.route


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def distance() -> FakeDistance:
    return FakeDistance()


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    gateway: FakeGateway,
    notifier: FakeNotifier,
    distance: FakeDistance,
) -> AsyncGenerator[AsyncClient, None]:
    """httpx AsyncClient wired to the test connection and the provider fakes."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def override_get_current_user(
        credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
    ) -> User:
        # Resolve the user in its own short-lived session so the request-scoped
        # session's SAVEPOINT does not enclose (and roll back) service transactions
        # on the shared test connection; in production they use separate connections.
        async with session_factory() as session:
            return await get_current_user(credentials, session)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_distance_provider] = lambda: distance

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Convenience fixtures: users and vehicles
# ---------------------------------------------------------------------------


async def create_user(db: AsyncSession, *, role: str = "customer", name: str = "Test Rider") -> User:
    unique = uuid.uuid4().hex[:8]
    user = User(
        email=f"{role}-{unique}@test.com",
        hashed_password=hash_password("testpass123"),
        name=name,
        is_active=True,
        role=role,
    )
    db.add(user)
    await db.flush()
    return user


async def create_vehicle(db: AsyncSession, **overrides) -> Vehicle:
    unique = uuid.uuid4().hex[:6].upper()
    values = {
        "name": "Swift Dzire",
        "brand": "Maruti Suzuki",
        "vehicle_type": "sedan",
        "seats": 4,
        "license_plate": f"TEST{unique}",
        "base_location": "Pune",
        "features": ["ac"],
        "price_per_km": Decimal("10.00"),
        "price_per_hour": Decimal("150.00"),
    }
    values.update(overrides)
    vehicle = Vehicle(**values)
    db.add(vehicle)
    await db.flush()
    return vehicle


def bearer(user: User) -> dict[str, str]:
    tokens = create_token_pair(str(user.id))
    return {"Authorization": f"Bearer {tokens['access_token']}"}


@pytest.fixture
def make_user(db_session: AsyncSession):
    async def _make(**kwargs) -> User:
        return await create_user(db_session, **kwargs)

    return _make


@pytest.fixture
def make_vehicle(db_session: AsyncSession):
    async def _make(**overrides) -> Vehicle:
        return await create_vehicle(db_session, **overrides)

    return _make


@pytest.fixture
def headers_for():
    return bearer


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    return await create_user(db_session)


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, name="Other Rider")


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, role="admin", name="Fleet Admin")


@pytest_asyncio.fixture
async def test_vehicle(db_session: AsyncSession) -> Vehicle:
    return await create_vehicle(db_session)


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict[str, str]:
    return bearer(test_user)


@pytest_asyncio.fixture
async def admin_headers(admin_user: User) -> dict[str, str]:
    return bearer(admin_user)


# ---------------------------------------------------------------------------
# Booking helper: initiate an order and verify its payment
# ---------------------------------------------------------------------------


@pytest.fixture
def book(session_factory, gateway: FakeGateway, notifier: FakeNotifier):
    """Run the full checkout for ``user`` on ``vehicle`` and return the verification result."""
    async def _book(user: User, vehicle: Vehicle, *, amount="250.00", start_date=None, end_date=None, now=None):
        async with session_factory() as db:
            initiation = await initiate_order(
                db,
                gateway,
                user=user,
                vehicle_id=str(vehicle.id),
                amount=amount,
                origin="Pune Station",
                destination="Pune Airport",
                start_date=start_date,
                end_date=end_date,
                now=now,
            )
        payment_id = f"pay_{uuid.uuid4().hex[:14]}"
        return await verify_payment(
            session_factory,
            gateway,
            notifier,
            user=user,
            payment_id=payment_id,
            order_id=initiation.provider_order_id,
            signature=gateway.sign(initiation.provider_order_id, payment_id),
            now=now,
        )

    return _book
