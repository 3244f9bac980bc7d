"""Tests for splitting produced quantities into rolls."""

import pytest
from sqlalchemy import func, select

from rolltrack.config import settings
from rolltrack.middleware.exceptions import InvalidInputError, PartialFailureError
from rolltrack.models import FabricRoll
from rolltrack.services.batch_manager import create_batch
from rolltrack.services.roll_generator import RollContext, generate_rolls, plan_roll_lengths


@pytest.mark.unit
class TestPlanRollLengths:

    @pytest.mark.parametrize(
        "total, unit, expected",
        [
            (130, 50, [50, 50, 30]),
            (100, 50, [50, 50]),
            (30, 50, [30]),
            (50, 50, [50]),
            (100.5, 25, [25, 25, 25, 25, 0.5]),
        ],
    )
    def test_lengths(self, total, unit, expected):
        assert plan_roll_lengths(total, unit) == expected

    def test_lengths_sum_exactly(self):
        lengths = plan_roll_lengths(1000.3, 33.1)
        assert len(lengths) == 31
        assert all(length == 33.1 for length in lengths[:-1])
        assert round(sum(lengths), 6) == 1000.3

    @pytest.mark.parametrize("total, unit", [(0, 50), (-5, 50), (100, 0), (100, -1)])
    def test_non_positive_rejected(self, total, unit):
        with pytest.raises(InvalidInputError):
            plan_roll_lengths(total, unit)


@pytest.mark.integration
@pytest.mark.asyncio
class TestGenerateRolls:

    async def test_generates_numbered_available_rolls(self, db_session, weaving_order, base_fabric):
        batch = await create_batch(db_session, weaving_order.id, "weaving", 130)

        rolls = await generate_rolls(db_session, batch, "base_fabric", base_fabric.id, 130)

        assert [r.roll_number for r in rolls] == [
            f"{batch.batch_number}-R001",
            f"{batch.batch_number}-R002",
            f"{batch.batch_number}-R003",
        ]
        assert [r.roll_length for r in rolls] == [50.0, 50.0, 30.0]
        for roll in rolls:
            assert roll.status == "available"
            assert roll.remaining_length == roll.roll_length
            assert roll.quality_grade == "A"
            assert roll.archived is False
            assert roll.location == settings.default_location
            assert roll.customer_order_id is None
            assert roll.traceability_payload["roll_id"] == roll.id
            assert roll.traceability_payload["roll_number"] == roll.roll_number
            assert roll.traceability_payload["production_purpose"] == "stock_building"

    async def test_customer_context_snapshots_color(
        self, db_session, coating_order, finished_fabric, customer_order
    ):
        batch = await create_batch(db_session, coating_order.id, "coating", 100)
        context = RollContext(
            customer_order_id=customer_order.id,
            customer_order_number=customer_order.internal_order_number,
            customer_name="Acme Tarpaulins",
            production_order_id=coating_order.id,
            production_order_number=coating_order.internal_order_number,
            color=customer_order.color,
        )

        rolls = await generate_rolls(
            db_session, batch, "finished_fabric", finished_fabric.id, 100,
            unit_length=40, context=context,
        )

        assert [r.roll_length for r in rolls] == [40.0, 40.0, 20.0]
        for roll in rolls:
            assert roll.customer_order_id == customer_order.id
            assert roll.customer_color == "Olive Green"
            assert roll.traceability_payload["customer_name"] == "Acme Tarpaulins"
            assert roll.traceability_payload["production_purpose"] == "customer_order"

    async def test_unknown_fabric_type_rejected(self, db_session, weaving_order, base_fabric):
        batch = await create_batch(db_session, weaving_order.id, "weaving", 130)

        with pytest.raises(InvalidInputError):
            await generate_rolls(db_session, batch, "yarn", base_fabric.id, 130)

    async def test_unknown_quality_grade_rejected(self, db_session, weaving_order, base_fabric):
        batch = await create_batch(db_session, weaving_order.id, "weaving", 130)

        with pytest.raises(InvalidInputError):
            await generate_rolls(
                db_session, batch, "base_fabric", base_fabric.id, 130, quality_grade="Z"
            )

    async def test_insert_failure_leaves_no_partial_roll_set(
        self, db_session, weaving_order, base_fabric
    ):
        other = await create_batch(db_session, weaving_order.id, "weaving", 50)
        batch = await create_batch(db_session, weaving_order.id, "weaving", 130)

        # Squat on the number the second roll of ``batch`` will need
        db_session.add(FabricRoll(
            roll_number=f"{batch.batch_number}-R002",
            batch_id=other.id,
            fabric_type="base_fabric",
            fabric_id=base_fabric.id,
            roll_length=50,
            remaining_length=50,
        ))
        await db_session.flush()

        with pytest.raises(PartialFailureError) as exc_info:
            await generate_rolls(db_session, batch, "base_fabric", base_fabric.id, 130)

        assert exc_info.value.failed_item == batch.batch_number
        assert exc_info.value.completed_items == []

        count = (
            await db_session.execute(
                select(func.count(FabricRoll.id)).where(FabricRoll.batch_id == batch.id)
            )
        ).scalar_one()
        assert count == 0
