"""Pytest configuration and fixtures for RollTrack tests.

Every test gets its own SQLite database file under ``tmp_path`` (via
aiosqlite), so tests never share state and need no running Postgres.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rolltrack.database import Base, build_engine, get_db
from rolltrack.main import app
from rolltrack.models import (
    BaseFabric,
    Customer,
    CustomerOrder,
    FinishedFabric,
    ProductionOrder,
)


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Create a throwaway SQLite database with the full schema."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'rolltrack_test.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests."""
    async with session_factory() as session:
        yield session

        await session.rollback()


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Create test client whose requests each get a fresh committed session."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Test Data Fixtures ───────────────────────────────────────────

@pytest_asyncio.fixture
async def base_fabric(db_session: AsyncSession) -> BaseFabric:
    fabric = BaseFabric(name="HDPE Woven 120gsm", gsm=120, width_meters=2.0)
    db_session.add(fabric)
    await db_session.commit()
    return fabric


@pytest_asyncio.fixture
async def finished_fabric(db_session: AsyncSession, base_fabric: BaseFabric) -> FinishedFabric:
    fabric = FinishedFabric(
        name="HDPE Laminated 150gsm",
        base_fabric_id=base_fabric.id,
        coating_type="LDPE lamination",
        color="Natural",
        gsm=150,
        width_meters=2.0,
    )
    db_session.add(fabric)
    await db_session.commit()
    return fabric


@pytest_asyncio.fixture
async def customer(db_session: AsyncSession) -> Customer:
    cust = Customer(name="Acme Tarpaulins", contact_email="orders@acme.test")
    db_session.add(cust)
    await db_session.commit()
    return cust


@pytest_asyncio.fixture
async def customer_order(
    db_session: AsyncSession, customer: Customer, finished_fabric: FinishedFabric
) -> CustomerOrder:
    order = CustomerOrder(
        internal_order_number="CO-2026-0042",
        customer_id=customer.id,
        finished_fabric_id=finished_fabric.id,
        color="Olive Green",
        quantity_ordered=130.0,
    )
    db_session.add(order)
    await db_session.commit()
    return order


@pytest_asyncio.fixture
async def weaving_order(db_session: AsyncSession, base_fabric: BaseFabric) -> ProductionOrder:
    """Stock-building weaving order for 130 m of base fabric."""
    order = ProductionOrder(
        internal_order_number="PO-W-0001",
        production_type="weaving",
        base_fabric_id=base_fabric.id,
        quantity_required=130.0,
    )
    db_session.add(order)
    await db_session.commit()
    return order


@pytest_asyncio.fixture
async def coating_order(
    db_session: AsyncSession,
    base_fabric: BaseFabric,
    finished_fabric: FinishedFabric,
    customer_order: CustomerOrder,
) -> ProductionOrder:
    """Coating order for 130 m of finished fabric bound to ``customer_order``."""
    order = ProductionOrder(
        internal_order_number="PO-C-0001",
        production_type="coating",
        base_fabric_id=base_fabric.id,
        finished_fabric_id=finished_fabric.id,
        customer_order_id=customer_order.id,
        quantity_required=130.0,
    )
    db_session.add(order)
    await db_session.commit()
    return order


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "api: HTTP API tests")
    config.addinivalue_line("markers", "integration: Integration tests")
