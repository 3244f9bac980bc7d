"""Production batch lifecycle.

Handles the batch side of a production run:
  - Opening a batch against a production order (batch number from the
    serialized sequence, never a random fallback)
  - Closing it with the accepted quantity: wastage figures, stock booking,
    and one WastageRecord per reported cause
  - End-to-end production completion: batch + rolls + order status
  - The coating-start event, which archives the woven rolls going into
    the coater and books their length out of base-fabric stock

All validation happens before the first write, so a rejected request
leaves no trace.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from rolltrack.database import utcnow
from rolltrack.middleware.exceptions import InvalidInputError, ResourceNotFoundError
from rolltrack.models.batch import BatchStatus, ProductionBatch, ProductionType
from rolltrack.models.order import CustomerOrder, ProductionOrder, ProductionOrderStatus
from rolltrack.models.roll import FabricRoll, FabricType
from rolltrack.models.stock_movement import MovementType
from rolltrack.models.wastage import WastageRecord, WastageType
from rolltrack.services.roll_generator import RollContext, generate_rolls
from rolltrack.services.stock import (
    ACTIVE_ROLL_STATUSES,
    apply_stock_delta,
    reconcile_batch_completion,
)
from rolltrack.services.wastage import calculate_wastage
from rolltrack.utils.numbering import generate_batch_number

logger = logging.getLogger(__name__)


@dataclass
class WastageReason:
    """One reported cause of wastage, recorded at batch completion."""
    wastage_type: str
    quantity: float
    reason: str | None = None
    notes: str | None = None


@dataclass
class BatchDetails:
    batch: ProductionBatch
    production_order: ProductionOrder | None
    rolls: list[FabricRoll] = field(default_factory=list)
    wastage_records: list[WastageRecord] = field(default_factory=list)

    @property
    def roll_count(self) -> int:
        return len(self.rolls)

    @property
    def total_roll_length(self) -> float:
        return round(sum(r.roll_length for r in self.rolls), 2)


@dataclass
class ProductionCompletion:
    production_order: ProductionOrder
    batch: ProductionBatch
    rolls: list[FabricRoll]


def _production_type(value: str) -> ProductionType:
    try:
        return ProductionType(value)
    except ValueError:
        raise InvalidInputError(f"Unknown production type: {value}", field="production_type")


async def _get_production_order(db: AsyncSession, production_order_id: str) -> ProductionOrder:
    order = (
        await db.execute(
            select(ProductionOrder)
            .where(ProductionOrder.id == production_order_id)
            .options(
                selectinload(ProductionOrder.customer_order).selectinload(CustomerOrder.customer),
                selectinload(ProductionOrder.finished_fabric),
            )
        )
    ).scalar_one_or_none()
    if not order:
        raise ResourceNotFoundError("Production order", production_order_id)
    return order


async def _get_batch(db: AsyncSession, batch_id: str) -> ProductionBatch:
    batch = (
        await db.execute(
            select(ProductionBatch)
            .where(ProductionBatch.id == batch_id)
            .options(selectinload(ProductionBatch.production_order))
        )
    ).scalar_one_or_none()
    if not batch:
        raise ResourceNotFoundError("Batch", batch_id)
    return batch


async def create_batch(
    db: AsyncSession,
    production_order_id: str,
    production_type: str,
    planned_quantity: float,
    accepted_quantity: float | None = None,
    notes: str | None = None,
) -> ProductionBatch:
    """Open a batch; closed immediately if ``accepted_quantity`` is given."""
    ptype = _production_type(production_type)
    if planned_quantity is None or planned_quantity <= 0:
        raise InvalidInputError(
            f"Planned quantity must be positive, got {planned_quantity}", field="planned_quantity"
        )
    if accepted_quantity is not None and accepted_quantity < 0:
        raise InvalidInputError(
            f"Accepted quantity cannot be negative, got {accepted_quantity}", field="accepted_quantity"
        )

    order = await _get_production_order(db, production_order_id)

    batch_number = await generate_batch_number(db, ptype.value)
    batch = ProductionBatch(
        batch_number=batch_number,
        production_order_id=order.id,
        production_type=ptype.value,
        planned_quantity=planned_quantity,
        status=BatchStatus.IN_PROGRESS.value,
        notes=notes,
    )
    if accepted_quantity is not None:
        wastage = calculate_wastage(planned_quantity, accepted_quantity)
        batch.accepted_quantity = accepted_quantity
        batch.wastage_quantity = wastage.wastage_quantity
        batch.wastage_percentage = wastage.wastage_percentage
        batch.status = BatchStatus.COMPLETED.value
        batch.completed_at = utcnow()

    db.add(batch)

    if order.production_status == ProductionOrderStatus.PENDING.value:
        order.production_status = ptype.value
        order.actual_start_date = order.actual_start_date or utcnow()
    await db.flush()

    if batch.status == BatchStatus.COMPLETED.value:
        await reconcile_batch_completion(db, batch, order)

    logger.info(
        f"Batch {batch_number} opened for order {order.internal_order_number}",
        extra={"batch_id": batch.id, "status": batch.status},
    )
    return batch


async def complete_batch(
    db: AsyncSession,
    batch_id: str,
    accepted_quantity: float,
    wastage_reasons: Iterable[WastageReason] = (),
    recorded_by: str = "production_team",
) -> ProductionBatch:
    """Close a batch with its accepted (A-grade) quantity.

    Wastage records are best-effort: each is written in its own SAVEPOINT
    and a failed one is logged and skipped without undoing the completion.
    """
    reasons = list(wastage_reasons)
    if accepted_quantity is None or accepted_quantity < 0:
        raise InvalidInputError(
            f"Accepted quantity cannot be negative, got {accepted_quantity}", field="accepted_quantity"
        )
    for r in reasons:
        try:
            WastageType(r.wastage_type)
        except ValueError:
            raise InvalidInputError(f"Unknown wastage type: {r.wastage_type}", field="wastage_type")
        if r.quantity is None or r.quantity < 0:
            raise InvalidInputError(
                f"Wastage quantity cannot be negative, got {r.quantity}", field="wastage_quantity"
            )

    batch = await _get_batch(db, batch_id)
    if batch.status != BatchStatus.IN_PROGRESS.value:
        raise InvalidInputError(
            f"Batch {batch.batch_number} is already {batch.status}", field="batch_id"
        )

    wastage = calculate_wastage(batch.planned_quantity, accepted_quantity)
    batch.accepted_quantity = accepted_quantity
    batch.wastage_quantity = wastage.wastage_quantity
    batch.wastage_percentage = wastage.wastage_percentage
    batch.status = BatchStatus.COMPLETED.value
    batch.completed_at = utcnow()
    await db.flush()

    await reconcile_batch_completion(db, batch, batch.production_order)

    recorded = 0
    for r in reasons:
        try:
            async with db.begin_nested():
                db.add(WastageRecord(
                    batch_id=batch.id,
                    wastage_type=r.wastage_type,
                    wastage_quantity=r.quantity,
                    wastage_reason=r.reason,
                    notes=r.notes,
                    recorded_by=recorded_by,
                ))
                await db.flush()
            recorded += 1
        except SQLAlchemyError:
            logger.exception(
                f"Failed to record {r.wastage_type} wastage for batch {batch.batch_number}"
            )

    logger.info(
        f"Batch {batch.batch_number} completed: accepted={accepted_quantity} "
        f"wastage={wastage.wastage_quantity} ({wastage.wastage_percentage}%)",
        extra={"batch_id": batch.id, "wastage_records": recorded},
    )
    return batch


async def get_batch_details(db: AsyncSession, batch_id: str) -> BatchDetails:
    """Batch with its production order, rolls and wastage records."""
    batch = (
        await db.execute(
            select(ProductionBatch)
            .where(ProductionBatch.id == batch_id)
            .options(
                selectinload(ProductionBatch.production_order),
                selectinload(ProductionBatch.rolls),
                selectinload(ProductionBatch.wastage_records),
            )
        )
    ).scalar_one_or_none()
    if not batch:
        raise ResourceNotFoundError("Batch", batch_id)

    return BatchDetails(
        batch=batch,
        production_order=batch.production_order,
        rolls=list(batch.rolls),
        wastage_records=list(batch.wastage_records),
    )


async def complete_production(
    db: AsyncSession,
    production_order_id: str,
    actual_quantity: float | None = None,
    quality_notes: str | None = None,
    unit_length: float | None = None,
) -> ProductionCompletion:
    """Finish a production order: batch, stock, rolls and order status in one go.

    Weaving yields base-fabric rolls, coating yields finished-fabric rolls.
    ``actual_quantity`` defaults to the order's required quantity.
    """
    order = await _get_production_order(db, production_order_id)
    if order.production_status == ProductionOrderStatus.COMPLETED.value:
        raise InvalidInputError(
            f"Production order {order.internal_order_number} is already completed",
            field="production_order_id",
        )

    ptype = _production_type(order.production_type)
    quantity = actual_quantity if actual_quantity is not None else order.quantity_required
    if quantity is None or quantity <= 0:
        raise InvalidInputError(
            f"Produced quantity must be positive, got {quantity}", field="actual_quantity"
        )
    if unit_length is not None and unit_length <= 0:
        raise InvalidInputError(
            f"Standard roll length must be positive, got {unit_length}", field="unit_length"
        )

    if ptype == ProductionType.WEAVING:
        fabric_type, fabric_id = FabricType.BASE_FABRIC.value, order.base_fabric_id
    else:
        fabric_type, fabric_id = FabricType.FINISHED_FABRIC.value, order.finished_fabric_id
    if not fabric_id:
        raise InvalidInputError(
            f"Production order {order.internal_order_number} has no {fabric_type}",
            field="production_order_id",
        )

    batch = await create_batch(
        db, order.id, ptype.value, order.quantity_required, notes=quality_notes
    )
    batch = await complete_batch(db, batch.id, quantity)

    customer_order = order.customer_order
    color = None
    if customer_order:
        color = customer_order.color
    if not color and order.finished_fabric and ptype == ProductionType.COATING:
        color = order.finished_fabric.color

    context = RollContext(
        customer_order_id=customer_order.id if customer_order else None,
        customer_order_number=customer_order.internal_order_number if customer_order else None,
        customer_name=customer_order.customer.name if customer_order and customer_order.customer else None,
        production_order_id=order.id,
        production_order_number=order.internal_order_number,
        color=color,
    )
    rolls = await generate_rolls(
        db, batch, fabric_type, fabric_id, quantity, unit_length=unit_length, context=context
    )

    order.production_status = ProductionOrderStatus.COMPLETED.value
    order.quantity_produced = quantity
    order.actual_end_date = utcnow()
    await db.flush()

    logger.info(
        f"Production order {order.internal_order_number} completed: "
        f"{len(rolls)} rolls from batch {batch.batch_number}",
        extra={"production_order_id": order.id, "batch_id": batch.id},
    )
    return ProductionCompletion(production_order=order, batch=batch, rolls=rolls)


async def start_coating(db: AsyncSession, production_order_id: str, batch_id: str) -> int:
    """Archive a woven batch's base-fabric rolls as they go into the coater.

    Roll status is left untouched.  The unallocated length of the rolls
    still in stock is booked out of base-fabric stock against the coating
    order.  Returns the number of rolls archived.
    """
    order = await _get_production_order(db, production_order_id)
    if order.production_type != ProductionType.COATING.value:
        raise InvalidInputError(
            f"Production order {order.internal_order_number} is a "
            f"{order.production_type} order, not coating",
            field="production_order_id",
        )
    if order.production_status == ProductionOrderStatus.COMPLETED.value:
        raise InvalidInputError(
            f"Production order {order.internal_order_number} is already completed",
            field="production_order_id",
        )
    batch = await _get_batch(db, batch_id)
    if batch.production_type != ProductionType.WEAVING.value:
        raise InvalidInputError(
            f"Batch {batch.batch_number} is a {batch.production_type} batch, not weaving",
            field="batch_id",
        )

    rolls = (
        await db.execute(
            select(FabricRoll).where(
                FabricRoll.batch_id == batch.id,
                FabricRoll.fabric_type == FabricType.BASE_FABRIC.value,
                FabricRoll.archived == False,  # noqa: E712
            )
        )
    ).scalars().all()

    consumed: dict[str, Decimal] = {}
    if rolls:
        await db.execute(
            update(FabricRoll)
            .where(FabricRoll.id.in_([r.id for r in rolls]))
            .values(archived=True, updated_at=utcnow())
        )
        for roll in rolls:
            if roll.status in ACTIVE_ROLL_STATUSES and roll.remaining_length > 0:
                consumed[roll.fabric_id] = (
                    consumed.get(roll.fabric_id, Decimal("0"))
                    + Decimal(str(roll.remaining_length))
                )

    order.production_status = ProductionOrderStatus.COATING.value
    order.actual_start_date = order.actual_start_date or utcnow()
    await db.flush()

    for fabric_id, quantity in consumed.items():
        await apply_stock_delta(
            db,
            FabricType.BASE_FABRIC.value,
            fabric_id,
            -float(quantity),
            reference_id=order.id,
            reference_type="production_order",
            notes=f"Batch {batch.batch_number} rolls allocated to coating",
            movement_type=MovementType.PRODUCTION_ALLOCATION.value,
        )

    logger.info(
        f"Coating started for order {order.internal_order_number}: "
        f"{len(rolls)} rolls from batch {batch.batch_number} archived"
    )
    return len(rolls)
