"""
Pytest fixtures for test database, client, and authentication.

Each test gets its own database file (SQLite via aiosqlite, or the database
named by TEST_DATABASE_URL) with all tables created up front. The HTTP
client opens a fresh session per request, committing or rolling back the
way the real get_db dependency does, so tests observe committed state only.
"""

import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="ticketbay-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TMP_DIR}/app.db")
os.environ["REDIS_ENABLED"] = "False"
os.environ["HOLD_SWEEP_INTERVAL_SECONDS"] = "0"
os.environ["CONSISTENCY_STRATEGY"] = "compensating"
os.environ["PAYMENT_GATEWAY_SECRET"] = "test_gateway_secret"
os.environ["PAYMENT_GATEWAY_MOCK"] = "False"

from datetime import timedelta
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ticketbay.core.clock import utcnow
from ticketbay.core.security import create_access_token
from ticketbay.db.base import Base
from ticketbay.db.session import get_db
from ticketbay.main import app
from ticketbay.models.catalog import CatalogItem, ItemType, SeatLayout
from ticketbay.schemas.catalog import CatalogItemCreate
from ticketbay.services import notification_service, strategy_factory, wallet_service
from ticketbay.services.catalog_service import publish_item
from ticketbay.services.notification_service import NotificationDispatcher
from ticketbay.services.strategy_factory import get_consistency_strategy

USER_ID = 101
OTHER_USER_ID = 202
ADMIN_ID = 1


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    """Create tables, yield engine, then drop tables for isolation."""
    url = os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    kwargs = {"connect_args": {"timeout": 30}} if url.startswith("sqlite") else {}
    test_engine = create_async_engine(url, echo=False, **kwargs)

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def dispatcher(monkeypatch) -> NotificationDispatcher:
    """A fresh notification queue per test."""
    fresh = NotificationDispatcher(maxsize=100)
    monkeypatch.setattr(notification_service, "dispatcher", fresh)
    return fresh


@pytest_asyncio.fixture(scope="function")
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB dependency with the test database."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def bearer(user_id: int, role: str = "user") -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': str(user_id), 'role': role})}"}


@pytest.fixture
def auth_headers() -> dict:
    """Authorization headers with Bearer token."""
    return bearer(USER_ID)


@pytest.fixture
def other_headers() -> dict:
    return bearer(OTHER_USER_ID)


@pytest.fixture
def admin_headers() -> dict:
    return bearer(ADMIN_ID, role="admin")


@pytest.fixture
def make_item(session_factory):
    """Publish a catalog item in its own session and return it detached."""

    async def _make(
        item_type: ItemType,
        total_units: int = 20,
        unit_price: str = "200.00",
        hours_ahead: float = 240,
        layout: Optional[SeatLayout] = None,
        title: str = "Test Show",
    ) -> CatalogItem:
        async with session_factory() as session:
            item = await publish_item(
                session,
                CatalogItemCreate(
                    item_type=item_type,
                    title=title,
                    venue="Test Venue",
                    event_date=utcnow() + timedelta(hours=hours_ahead),
                    unit_price=Decimal(unit_price),
                    total_units=total_units,
                    layout=layout,
                ),
            )
            await session.commit()
            return item

    return _make


@pytest.fixture
def fund_wallet(session_factory):
    """Credit a user's wallet in its own committed session."""

    async def _fund(user_id: int, amount: str) -> None:
        async with session_factory() as session:
            await wallet_service.credit(session, user_id, Decimal(amount), "Test funding")
            await session.commit()

    return _fund


@pytest_asyncio.fixture
async def movie(make_item) -> CatalogItem:
    """A movie show with 20 seats, two per row (A1..J2): A-B vip (300), C-D premium (240), E-J regular (200)."""
    return await make_item(ItemType.MOVIE, total_units=20, unit_price="200.00", title="Test Movie")


@pytest_asyncio.fixture
async def concert(make_item) -> CatalogItem:
    """A capacity-based event with 5 tickets at 500."""
    return await make_item(ItemType.EVENT, total_units=5, unit_price="500.00", title="Test Concert")


@pytest.fixture(params=["atomic", "compensating"])
def strategy(request, monkeypatch):
    """Run the test once per consistency strategy."""
    chosen = get_consistency_strategy(request.param)
    monkeypatch.setattr(strategy_factory, "_strategy", chosen)
    return chosen


async def hold(client: AsyncClient, headers: dict, item: CatalogItem, unit_numbers: list[str]):
    return await client.post(
        f"/api/v1/inventory/{item.item_type}/{item.id}/holds",
        json={"unit_numbers": unit_numbers},
        headers=headers,
    )


async def seat_statuses(client: AsyncClient, headers: dict, item: CatalogItem) -> dict:
    response = await client.get(f"/api/v1/inventory/{item.item_type}/{item.id}/seats", headers=headers)
    return {seat["unit_number"]: seat["status"] for seat in response.json()["seats"]}


async def wallet_balance(client: AsyncClient, headers: dict) -> Decimal:
    response = await client.get("/api/v1/wallet/", headers=headers)
    return Decimal(str(response.json()["balance"]))
