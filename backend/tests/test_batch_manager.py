"""Tests for batch creation, completion and production order completion."""

import logging

import pytest
from sqlalchemy import func, select

from rolltrack.middleware.exceptions import InvalidInputError, ResourceNotFoundError
from rolltrack.models import ProductionBatch, StockMovement, WastageRecord
from rolltrack.services import batch_manager
from rolltrack.services.batch_manager import (
    WastageReason,
    complete_batch,
    complete_production,
    create_batch,
    get_batch_details,
    start_coating,
)
from rolltrack.services.stock import derived_stock_quantity
from rolltrack.utils.numbering import validate_batch_number


async def _batch_count(db_session) -> int:
    return (await db_session.execute(select(func.count(ProductionBatch.id)))).scalar_one()


@pytest.mark.integration
@pytest.mark.asyncio
class TestCreateBatch:

    async def test_opens_in_progress_batch(self, db_session, weaving_order):
        batch = await create_batch(db_session, weaving_order.id, "weaving", 200, notes="Loom 4")

        assert validate_batch_number(batch.batch_number)
        assert batch.batch_number.startswith("WEAVING-")
        assert batch.status == "in_progress"
        assert batch.accepted_quantity is None
        assert batch.completed_at is None
        assert weaving_order.production_status == "weaving"
        assert weaving_order.actual_start_date is not None

    async def test_accepted_quantity_completes_immediately(
        self, db_session, weaving_order, base_fabric
    ):
        batch = await create_batch(
            db_session, weaving_order.id, "weaving", 200, accepted_quantity=180
        )

        assert batch.status == "completed"
        assert batch.accepted_quantity == 180
        assert batch.wastage_quantity == 20.0
        assert batch.wastage_percentage == 10.0
        assert batch.completed_at is not None
        assert base_fabric.stock_quantity == 180.0

    @pytest.mark.parametrize(
        "production_type, planned",
        [("knitting", 100), ("weaving", 0), ("weaving", -10)],
    )
    async def test_invalid_input_writes_nothing(
        self, db_session, weaving_order, production_type, planned
    ):
        with pytest.raises(InvalidInputError):
            await create_batch(db_session, weaving_order.id, production_type, planned)

        assert await _batch_count(db_session) == 0

    async def test_unknown_order(self, db_session):
        with pytest.raises(ResourceNotFoundError):
            await create_batch(db_session, "missing", "weaving", 100)

        assert await _batch_count(db_session) == 0


@pytest.mark.integration
@pytest.mark.asyncio
class TestCompleteBatch:

    async def test_completion_sets_wastage_and_stock(
        self, db_session, weaving_order, base_fabric
    ):
        batch = await create_batch(db_session, weaving_order.id, "weaving", 200)

        done = await complete_batch(
            db_session,
            batch.id,
            180,
            wastage_reasons=[
                WastageReason("production", 12, reason="Broken warp"),
                WastageReason("cutting", 8),
            ],
            recorded_by="shift-a",
        )

        assert done.status == "completed"
        assert done.accepted_quantity == 180
        assert done.wastage_quantity == 20.0
        assert done.wastage_percentage == 10.0
        assert done.completed_at is not None
        assert base_fabric.stock_quantity == 180.0

        details = await get_batch_details(db_session, batch.id)
        assert len(details.wastage_records) == 2
        assert {w.recorded_by for w in details.wastage_records} == {"shift-a"}

    async def test_already_completed_rejected(self, db_session, weaving_order):
        batch = await create_batch(db_session, weaving_order.id, "weaving", 200)
        await complete_batch(db_session, batch.id, 190)

        with pytest.raises(InvalidInputError):
            await complete_batch(db_session, batch.id, 150)
        assert batch.accepted_quantity == 190

    async def test_invalid_reason_rejected_before_mutation(self, db_session, weaving_order):
        batch = await create_batch(db_session, weaving_order.id, "weaving", 200)

        with pytest.raises(InvalidInputError):
            await complete_batch(
                db_session, batch.id, 180, wastage_reasons=[WastageReason("theft", 20)]
            )
        with pytest.raises(InvalidInputError):
            await complete_batch(db_session, batch.id, -1)

        assert batch.status == "in_progress"

    async def test_unknown_batch(self, db_session):
        with pytest.raises(ResourceNotFoundError):
            await complete_batch(db_session, "missing", 100)

    async def test_failed_wastage_record_does_not_undo_completion(
        self, db_session, weaving_order, monkeypatch, caplog
    ):
        real_record = batch_manager.WastageRecord

        def flaky_record(**kwargs):
            if kwargs["wastage_type"] == "cutting":
                kwargs["recorded_by"] = None  # violates NOT NULL
            return real_record(**kwargs)

        monkeypatch.setattr(batch_manager, "WastageRecord", flaky_record)
        batch = await create_batch(db_session, weaving_order.id, "weaving", 200)

        with caplog.at_level(logging.ERROR, logger="rolltrack.services.batch_manager"):
            done = await complete_batch(
                db_session,
                batch.id,
                180,
                wastage_reasons=[WastageReason("cutting", 5), WastageReason("quality", 15)],
            )

        assert done.status == "completed"
        assert "Failed to record cutting wastage" in caplog.text

        records = (
            await db_session.execute(
                select(WastageRecord).where(WastageRecord.batch_id == batch.id)
            )
        ).scalars().all()
        assert [r.wastage_type for r in records] == ["quality"]


@pytest.mark.integration
@pytest.mark.asyncio
class TestCompleteProduction:

    async def test_weaving_completion(self, db_session, weaving_order, base_fabric):
        result = await complete_production(db_session, weaving_order.id)

        assert [r.roll_length for r in result.rolls] == [50.0, 50.0, 30.0]
        assert {r.fabric_type for r in result.rolls} == {"base_fabric"}
        assert result.batch.status == "completed"
        assert result.batch.wastage_quantity == 0.0
        assert weaving_order.production_status == "completed"
        assert weaving_order.quantity_produced == 130.0
        assert weaving_order.actual_end_date is not None
        assert base_fabric.stock_quantity == 130.0
        assert await derived_stock_quantity(db_session, "base_fabric", base_fabric.id) == 130.0

        details = await get_batch_details(db_session, result.batch.id)
        assert details.roll_count == 3
        assert details.total_roll_length == 130.0
        assert details.production_order.id == weaving_order.id

    async def test_coating_completion_with_shortfall(
        self, db_session, coating_order, finished_fabric, customer_order
    ):
        result = await complete_production(
            db_session, coating_order.id, actual_quantity=100, quality_notes="Edge curl"
        )

        assert [r.roll_length for r in result.rolls] == [50.0, 50.0]
        assert result.batch.planned_quantity == 130.0
        assert result.batch.wastage_quantity == 30.0
        assert result.batch.wastage_percentage == 23.08
        assert result.batch.notes == "Edge curl"
        assert finished_fabric.stock_quantity == 100.0
        for roll in result.rolls:
            assert roll.fabric_type == "finished_fabric"
            assert roll.customer_order_id == customer_order.id
            assert roll.customer_color == "Olive Green"
            payload = roll.traceability_payload
            assert payload["customer_order_number"] == "CO-2026-0042"
            assert payload["production_order_number"] == "PO-C-0001"
            assert payload["customer_name"] == "Acme Tarpaulins"

    async def test_already_completed_order_rejected(self, db_session, weaving_order):
        await complete_production(db_session, weaving_order.id)

        with pytest.raises(InvalidInputError):
            await complete_production(db_session, weaving_order.id)

    async def test_unknown_order(self, db_session):
        with pytest.raises(ResourceNotFoundError):
            await complete_production(db_session, "missing")


@pytest.mark.integration
@pytest.mark.asyncio
class TestStartCoating:

    async def test_archives_woven_rolls_without_status_change(
        self, db_session, weaving_order, coating_order, base_fabric
    ):
        woven = await complete_production(db_session, weaving_order.id)

        archived = await start_coating(db_session, coating_order.id, woven.batch.id)

        assert archived == 3
        assert all(r.archived for r in woven.rolls)
        assert {r.status for r in woven.rolls} == {"available"}
        assert coating_order.production_status == "coating"
        assert await derived_stock_quantity(db_session, "base_fabric", base_fabric.id) == 0.0
        assert base_fabric.stock_quantity == 0.0

        movement = (
            await db_session.execute(
                select(StockMovement).where(StockMovement.movement_type == "production_allocation")
            )
        ).scalar_one()
        assert movement.quantity == -130.0
        assert movement.fabric_id == base_fabric.id
        assert movement.reference_id == coating_order.id

        # Nothing left to archive the second time
        assert await start_coating(db_session, coating_order.id, woven.batch.id) == 0
        assert base_fabric.stock_quantity == 0.0

    async def test_weaving_order_rejected(self, db_session, weaving_order):
        woven = await complete_production(db_session, weaving_order.id)
        status = weaving_order.production_status

        with pytest.raises(InvalidInputError):
            await start_coating(db_session, weaving_order.id, woven.batch.id)

        assert weaving_order.production_status == status
        assert not any(r.archived for r in woven.rolls)

    async def test_coating_batch_rejected(self, db_session, coating_order):
        batch = await create_batch(db_session, coating_order.id, "coating", 100)
        status = coating_order.production_status

        with pytest.raises(InvalidInputError):
            await start_coating(db_session, coating_order.id, batch.id)

        assert coating_order.production_status == status

    async def test_unknown_batch(self, db_session, coating_order):
        with pytest.raises(ResourceNotFoundError):
            await start_coating(db_session, coating_order.id, "missing")
