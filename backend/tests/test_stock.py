"""Tests for atomic stock counters and the derived roll aggregate."""

import asyncio
import logging

import pytest
from sqlalchemy import select

from rolltrack.middleware.exceptions import InvalidInputError, ResourceNotFoundError
from rolltrack.models import BaseFabric, ProductionOrder, StockMovement
from rolltrack.services.batch_manager import complete_production, create_batch
from rolltrack.services.roll_state import allocate_roll, confirm_dispatch, mark_damaged
from rolltrack.services.stock import (
    apply_stock_delta,
    derived_stock_quantity,
    reconcile_batch_completion,
)


@pytest.mark.integration
@pytest.mark.asyncio
class TestApplyStockDelta:

    async def test_increment_and_ledger(self, db_session, base_fabric):
        total = await apply_stock_delta(
            db_session, "base_fabric", base_fabric.id, 75.5,
            reference_id="batch-1", reference_type="production_batch",
        )
        total = await apply_stock_delta(db_session, "base_fabric", base_fabric.id, -25.5)

        assert total == 50.0
        assert base_fabric.stock_quantity == 50.0

        movements = (
            await db_session.execute(
                select(StockMovement)
                .where(StockMovement.fabric_id == base_fabric.id)
                .order_by(StockMovement.recorded_at)
            )
        ).scalars().all()
        assert [m.quantity for m in movements] == [75.5, -25.5]
        assert movements[0].reference_type == "production_batch"

    async def test_unknown_fabric(self, db_session):
        with pytest.raises(ResourceNotFoundError):
            await apply_stock_delta(db_session, "finished_fabric", "missing", 10)

    async def test_unknown_fabric_type(self, db_session, base_fabric):
        with pytest.raises(InvalidInputError):
            await apply_stock_delta(db_session, "yarn", base_fabric.id, 10)

    async def test_concurrent_increments_are_not_lost(self, session_factory, base_fabric):
        async def book(quantity):
            async with session_factory() as session:
                await apply_stock_delta(session, "base_fabric", base_fabric.id, quantity)
                await session.commit()

        await asyncio.gather(*(book(10) for _ in range(8)))

        async with session_factory() as session:
            fabric = await session.get(BaseFabric, base_fabric.id)
            assert fabric.stock_quantity == 80.0


@pytest.mark.integration
@pytest.mark.asyncio
class TestReconcile:

    async def test_order_without_fabric_is_skipped(self, db_session, caplog):
        order = ProductionOrder(
            internal_order_number="PO-C-0404",
            production_type="coating",
            quantity_required=60,
        )
        db_session.add(order)
        await db_session.flush()
        batch = await create_batch(db_session, order.id, "coating", 60)
        batch.accepted_quantity = 60

        with caplog.at_level(logging.WARNING, logger="rolltrack.services.stock"):
            assert await reconcile_batch_completion(db_session, batch, order) is None

        assert "stock not updated" in caplog.text


@pytest.mark.integration
@pytest.mark.asyncio
class TestDerivedStock:

    async def test_only_active_unarchived_rolls_count(
        self, db_session, coating_order, finished_fabric, customer_order
    ):
        rolls = (await complete_production(db_session, coating_order.id)).rolls
        assert await derived_stock_quantity(db_session, "finished_fabric", finished_fabric.id) == 130.0

        await allocate_roll(db_session, rolls[0].id, customer_order.id)
        assert await derived_stock_quantity(db_session, "finished_fabric", finished_fabric.id) == 80.0
        assert finished_fabric.stock_quantity == 80.0

        await confirm_dispatch(db_session, rolls[0].id)
        await mark_damaged(db_session, rolls[2].id)

        assert await derived_stock_quantity(db_session, "finished_fabric", finished_fabric.id) == 50.0


@pytest.mark.integration
@pytest.mark.asyncio
class TestAllocationMovements:

    async def test_allocation_books_stock_out(
        self, db_session, coating_order, finished_fabric, customer_order
    ):
        rolls = (await complete_production(db_session, coating_order.id)).rolls
        assert finished_fabric.stock_quantity == 130.0

        await allocate_roll(db_session, rolls[0].id, customer_order.id, length=20)
        await allocate_roll(db_session, rolls[1].id, customer_order.id)

        assert finished_fabric.stock_quantity == 60.0
        assert await derived_stock_quantity(db_session, "finished_fabric", finished_fabric.id) == 60.0

        movements = (
            await db_session.execute(
                select(StockMovement)
                .where(
                    StockMovement.fabric_id == finished_fabric.id,
                    StockMovement.movement_type == "allocation",
                )
                .order_by(StockMovement.recorded_at)
            )
        ).scalars().all()
        assert [m.quantity for m in movements] == [-20.0, -50.0]
        assert all(m.reference_id == customer_order.id for m in movements)
        assert all(m.reference_type == "customer_order" for m in movements)

    async def test_counter_refreshed_after_update(self, db_session, base_fabric):
        # Loaded instance must reflect the row without a lazy load
        fabric = await db_session.get(BaseFabric, base_fabric.id)
        await apply_stock_delta(db_session, "base_fabric", base_fabric.id, 12.5)

        assert fabric.stock_quantity == 12.5
        assert "stock_quantity" in fabric.__dict__
