"""Roll generator: split a produced quantity into individually tracked rolls.

Q metres at a standard length L become ceil(Q / L) rolls.  Every roll but
the last is L long; the last takes the remainder, or a full L when Q is an
exact multiple (never a zero-length roll).

    130 @ 50  → [50, 50, 30]
    100 @ 50  → [50, 50]
     30 @ 50  → [30]

All rolls of one run are inserted in a single flush inside a SAVEPOINT, so
a batch either gets its complete roll set or none of it.
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rolltrack.config import settings
from rolltrack.middleware.exceptions import InvalidInputError, PartialFailureError
from rolltrack.models.batch import ProductionBatch
from rolltrack.models.roll import FabricRoll, FabricType, QualityGrade, RollStatus
from rolltrack.utils.numbering import roll_number
from rolltrack.utils.traceability import build_payload

logger = logging.getLogger(__name__)


@dataclass
class RollContext:
    """Order context copied onto every roll's traceability payload."""
    customer_order_id: str | None = None
    customer_order_number: str | None = None
    customer_name: str | None = None
    production_order_id: str | None = None
    production_order_number: str | None = None
    color: str | None = None


def plan_roll_lengths(total: float, unit: float) -> list[float]:
    """Return the ordered roll lengths for ``total`` metres at ``unit`` per roll."""
    if total is None or total <= 0:
        raise InvalidInputError(
            f"Total quantity must be positive, got {total}", field="total_quantity"
        )
    if unit is None or unit <= 0:
        raise InvalidInputError(
            f"Standard roll length must be positive, got {unit}", field="unit_length"
        )

    total_d = Decimal(str(total))
    unit_d = Decimal(str(unit))
    whole, remainder = divmod(total_d, unit_d)
    count = int(whole) + (1 if remainder else 0)
    last = remainder if remainder else unit_d

    return [float(unit_d)] * (count - 1) + [float(last)]


async def generate_rolls(
    db: AsyncSession,
    batch: ProductionBatch,
    fabric_type: str,
    fabric_id: str,
    total_quantity: float,
    unit_length: float | None = None,
    context: RollContext | None = None,
    quality_grade: str = QualityGrade.A.value,
) -> list[FabricRoll]:
    """Create and persist the roll set for ``batch``.

    Raises:
        InvalidInputError: bad quantity, length, fabric type or grade (nothing written).
        PartialFailureError: the insert failed; the savepoint is rolled back
            so no roll of this run remains.
    """
    try:
        fabric_type = FabricType(fabric_type).value
    except ValueError:
        raise InvalidInputError(f"Unknown fabric type: {fabric_type}", field="fabric_type")
    if not fabric_id:
        raise InvalidInputError("Fabric ID is required", field="fabric_id")
    try:
        quality_grade = QualityGrade(quality_grade).value
    except ValueError:
        raise InvalidInputError(f"Unknown quality grade: {quality_grade}", field="quality_grade")

    unit = unit_length if unit_length is not None else settings.standard_roll_length
    lengths = plan_roll_lengths(total_quantity, unit)
    ctx = context or RollContext()

    rolls: list[FabricRoll] = []
    for ordinal, length in enumerate(lengths, start=1):
        roll_id = str(uuid.uuid4())
        number = roll_number(batch.batch_number, ordinal)
        payload = build_payload(
            roll_id=roll_id,
            roll_number=number,
            batch_id=batch.id,
            fabric_type=fabric_type,
            fabric_id=fabric_id,
            roll_length=length,
            customer_order_id=ctx.customer_order_id,
            customer_order_number=ctx.customer_order_number,
            customer_name=ctx.customer_name,
            production_order_id=ctx.production_order_id,
            production_order_number=ctx.production_order_number,
            color=ctx.color,
        )
        rolls.append(FabricRoll(
            id=roll_id,
            roll_number=number,
            batch_id=batch.id,
            fabric_type=fabric_type,
            fabric_id=fabric_id,
            roll_length=length,
            remaining_length=length,
            status=RollStatus.AVAILABLE.value,
            quality_grade=quality_grade,
            archived=False,
            location=settings.default_location,
            customer_order_id=ctx.customer_order_id,
            customer_color=ctx.color if ctx.customer_order_id else None,
            traceability_payload=payload.model_dump(mode="json"),
        ))

    try:
        async with db.begin_nested():
            db.add_all(rolls)
            await db.flush()
    except SQLAlchemyError as exc:
        logger.error(
            f"Roll generation failed for batch {batch.batch_number}: {exc}",
            extra={"batch_id": batch.id, "roll_count": len(rolls)},
        )
        raise PartialFailureError(
            "roll generation", batch.batch_number, str(exc), completed_items=[]
        ) from exc

    logger.info(
        f"Generated {len(rolls)} rolls for batch {batch.batch_number}",
        extra={"batch_id": batch.id, "total_quantity": total_quantity},
    )
    return rolls
