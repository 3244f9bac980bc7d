"""Fabric stock counters.

``stock_quantity`` on BaseFabric / FinishedFabric is only ever changed with
a single ``UPDATE … SET stock_quantity = stock_quantity + :delta``; two
batch completions against the same fabric can never lose an update.  Each
delta is also written to the ``stock_movements`` ledger.

``derived_stock_quantity`` recomputes the same figure from the unallocated
remaining length of the active rolls, for reconciliation against the counter.
"""

import logging

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from rolltrack.middleware.exceptions import InvalidInputError, ResourceNotFoundError
from rolltrack.models.batch import ProductionBatch, ProductionType
from rolltrack.models.fabric import BaseFabric, FinishedFabric
from rolltrack.models.order import ProductionOrder
from rolltrack.models.roll import FabricRoll, FabricType, RollStatus
from rolltrack.models.stock_movement import MovementType, StockMovement

logger = logging.getLogger(__name__)

_STOCK_MODELS = {
    FabricType.BASE_FABRIC.value: BaseFabric,
    FabricType.FINISHED_FABRIC.value: FinishedFabric,
}

ACTIVE_ROLL_STATUSES = (
    RollStatus.AVAILABLE.value,
    RollStatus.ALLOCATED.value,
    RollStatus.PARTIALLY_ALLOCATED.value,
)


def _stock_model(fabric_type: str):
    model = _STOCK_MODELS.get(fabric_type)
    if model is None:
        raise InvalidInputError(f"Unknown fabric type: {fabric_type}", field="fabric_type")
    return model


async def apply_stock_delta(
    db: AsyncSession,
    fabric_type: str,
    fabric_id: str,
    delta: float,
    reference_id: str | None = None,
    reference_type: str | None = None,
    notes: str | None = None,
    movement_type: str = MovementType.ADJUSTMENT.value,
) -> float:
    """Atomically add ``delta`` to the fabric's stock; return the new total."""
    model = _stock_model(fabric_type)

    result = await db.execute(
        update(model)
        .where(model.id == fabric_id)
        .values(stock_quantity=model.stock_quantity + delta)
        .returning(model.stock_quantity)
        .execution_options(synchronize_session=False)
    )
    new_quantity = result.scalar_one_or_none()
    if new_quantity is None:
        raise ResourceNotFoundError(fabric_type.replace("_", " ").title(), fabric_id)

    # Bring an already-loaded fabric in line with the row; never lazy-load later
    fabric = await db.get(model, fabric_id)
    await db.refresh(fabric, attribute_names=["stock_quantity"])

    db.add(StockMovement(
        fabric_type=fabric_type,
        fabric_id=fabric_id,
        movement_type=movement_type,
        quantity=delta,
        reference_type=reference_type,
        reference_id=reference_id,
        notes=notes,
    ))
    await db.flush()

    logger.info(
        f"Stock {fabric_type} {fabric_id} {delta:+.2f} → {new_quantity:.2f}",
        extra={"reference_type": reference_type, "reference_id": reference_id},
    )
    return new_quantity


async def reconcile_batch_completion(
    db: AsyncSession,
    batch: ProductionBatch,
    production_order: ProductionOrder,
) -> float | None:
    """Book a completed batch's accepted quantity into stock.

    Weaving adds to the base fabric, coating to the finished fabric.
    Returns the new stock figure, or None when nothing was booked.
    """
    accepted = batch.accepted_quantity or 0.0
    if accepted <= 0:
        return None

    if batch.production_type == ProductionType.WEAVING.value:
        fabric_type, fabric_id = FabricType.BASE_FABRIC.value, production_order.base_fabric_id
    else:
        fabric_type, fabric_id = FabricType.FINISHED_FABRIC.value, production_order.finished_fabric_id

    if not fabric_id:
        logger.warning(
            f"Production order {production_order.internal_order_number} has no "
            f"{fabric_type}; stock not updated for batch {batch.batch_number}"
        )
        return None

    return await apply_stock_delta(
        db,
        fabric_type,
        fabric_id,
        accepted,
        reference_id=batch.id,
        reference_type="production_batch",
        notes=f"Batch {batch.batch_number} completed",
        movement_type=MovementType.PRODUCTION_IN.value,
    )


async def derived_stock_quantity(db: AsyncSession, fabric_type: str, fabric_id: str) -> float:
    """Sum of unallocated remaining length over the fabric's active, unarchived rolls."""
    _stock_model(fabric_type)
    result = await db.execute(
        select(func.coalesce(func.sum(FabricRoll.remaining_length), 0.0)).where(
            FabricRoll.fabric_type == fabric_type,
            FabricRoll.fabric_id == fabric_id,
            FabricRoll.archived == False,  # noqa: E712
            FabricRoll.status.in_(ACTIVE_ROLL_STATUSES),
        )
    )
    return float(result.scalar_one())
