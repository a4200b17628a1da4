"""
Test configuration and fixtures

Tests run against a throwaway SQLite file so the application's own engine,
session factory and DatabaseManager are exercised unchanged.
"""

import os
import tempfile
from datetime import timedelta
from decimal import Decimal
from typing import AsyncGenerator
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# Set test environment before the application reads its settings
_db_dir = tempfile.mkdtemp(prefix="busline-tests-")
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = os.environ.get(
    "TEST_DATABASE_URL", f"sqlite+aiosqlite:///{os.path.join(_db_dir, 'test.db')}"
)
os.environ["JWT_SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["PAYMENT_GATEWAY_LATENCY_SECONDS"] = "0"
os.environ["SEAT_LOCK_SWEEP_ENABLED"] = "false"
os.environ["PROMETHEUS_ENABLED"] = "false"
os.environ["RECEIPT_STORAGE_DIR"] = os.path.join(_db_dir, "receipts")

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import Base, engine, async_session, db_manager
from app.core.cache import list_cache, MemoryCacheBackend
from app.core.security import CurrentUser, create_access_token, ROLE_ADMIN, ROLE_USER
from app.models import Bus, BusStatus, Route, Trip, TripStatus
from app.models.base import utcnow
from app.services.payment_gateway import ChargeResult, PaymentGateway
from app.services.receipt_storage import LocalReceiptStorage
from app.services.trip_service import trip_service


class FakeGateway(PaymentGateway):
    """Deterministic gateway: succeeds unless told otherwise"""

    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.charges = []

    async def attempt_charge(self, amount, method):
        self.charges.append((amount, method))
        if self.succeed:
            return ChargeResult(success=True, transaction_id=f"TXN-TEST{len(self.charges):04d}")
        return ChargeResult(success=False, message="Card declined")


@pytest_asyncio.fixture
async def database():
    """Fresh schema and an empty list cache"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    list_cache.backend = MemoryCacheBackend()
    yield
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(database) -> AsyncGenerator[AsyncSession, None]:
    async with async_session() as session:
        try:
            yield session
        finally:
            if session.in_transaction():
                await session.rollback()


@pytest.fixture
def user() -> CurrentUser:
    return CurrentUser(id=uuid4(), role=ROLE_USER)


@pytest.fixture
def other_user() -> CurrentUser:
    return CurrentUser(id=uuid4(), role=ROLE_USER)


@pytest.fixture
def admin() -> CurrentUser:
    return CurrentUser(id=uuid4(), role=ROLE_ADMIN)


def auth_headers(principal: CurrentUser) -> dict:
    token = create_access_token(principal.id, role=principal.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_headers(user):
    return auth_headers(user)


@pytest.fixture
def other_user_headers(other_user):
    return auth_headers(other_user)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest_asyncio.fixture
async def bus(db_session) -> Bus:
    bus = Bus(plate_number=f"BUS-{uuid4().hex[:6]}", model="Volvo 9700", capacity=4, status=BusStatus.ACTIVE)
    db_session.add(bus)
    await db_session.commit()
    return bus


@pytest_asyncio.fixture
async def route(db_session) -> Route:
    route = Route(departure_city="Lisbon", arrival_city="Porto", distance_km=313)
    db_session.add(route)
    await db_session.commit()
    return route


async def make_trip(session, route, bus, price=Decimal("100.00"), days_ahead=2) -> Trip:
    departure = utcnow() + timedelta(days=days_ahead)
    return await trip_service.create_trip(
        session,
        route_id=route.id,
        bus_id=bus.id,
        departure_time=departure,
        arrival_time=departure + timedelta(hours=3),
        last_booking_time=departure - timedelta(hours=1),
        price=price
    )


@pytest_asyncio.fixture
async def trip(db_session, route, bus) -> Trip:
    """Scheduled trip priced 100.00 with seats A1-A4, detached from the session"""
    trip = await make_trip(db_session, route, bus)
    db_session.expunge(trip)
    return trip


async def _set_trip_status(session, trip_id, status: TripStatus):
    async with db_manager.transaction(session):
        trip = await session.get(Trip, trip_id, populate_existing=True)
        trip.status = status


@pytest.fixture
def set_trip_status(db_session):
    """Force a trip status, bypassing the admin API"""
    async def setter(trip_id, status: TripStatus):
        await _set_trip_status(db_session, trip_id, status)
    return setter


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def storage(tmp_path) -> LocalReceiptStorage:
    return LocalReceiptStorage(directory=str(tmp_path / "receipts"), base_url="/media/receipts")


@pytest_asyncio.fixture
async def client(database, gateway, storage) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app with a deterministic gateway"""
    from app.main import app
    from app.services.payment_gateway import get_payment_gateway
    from app.services.receipt_storage import get_receipt_storage

    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_receipt_storage] = lambda: storage
    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()
