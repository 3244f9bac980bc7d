"""Roll state machine.

Every status change a roll ever makes goes through ``apply_event``, which
looks the (current status, event) pair up in ``TRANSITIONS``.  Pairs that
are not in the table are rejected with InvalidTransitionError, including
repeating an event that has already been applied (``issue`` on an
allocated roll) and ``shipped → allocated``.

    available ──issue/allocate──▶ allocated ──ship/dispatch──▶ shipped ──deliver──▶ delivered
        │  ▲                          │  ▲
        │  └──────receive─────────────┘  │
        └──partial_allocate──▶ partially_allocated
                         consume ──▶ used
    damage: from any live state, used or shipped ──▶ damaged

``move``, ``audit`` and ``quality_check`` are explicit self-transitions
from every status: they are recorded in the scan history but never change
status.

``remaining_length`` is the unallocated part of a roll.  Every allocation
subtracts the allocated length and books it out of fabric stock; a
``receive`` scan unbinds the roll from its order, restores the full length
and books the released metres back in.

The write itself is conditional (``WHERE status = <status read>``), so two
callers racing on the same roll cannot both succeed.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from rolltrack.database import utcnow
from rolltrack.middleware.exceptions import (
    InvalidInputError,
    InvalidTransitionError,
    ResourceNotFoundError,
)
from rolltrack.models.batch import ProductionBatch
from rolltrack.models.fabric import BaseFabric, FinishedFabric
from rolltrack.models.order import CustomerOrder, OrderStatus, ProductionOrder
from rolltrack.models.roll import FabricRoll, FabricType, QualityGrade, RollStatus
from rolltrack.models.scan import RollScan, ScanType
from rolltrack.models.stock_movement import MovementType
from rolltrack.services.stock import apply_stock_delta
from rolltrack.utils.traceability import allocation_label, decode_tag

logger = logging.getLogger(__name__)


class RollEvent(str, enum.Enum):
    # Scan events
    ISSUE = "issue"
    RECEIVE = "receive"
    MOVE = "move"
    AUDIT = "audit"
    QUALITY_CHECK = "quality_check"
    # Fulfilment events
    ALLOCATE = "allocate"
    PARTIAL_ALLOCATE = "partial_allocate"
    CONSUME = "consume"
    SHIP = "ship"
    DISPATCH = "dispatch"
    DELIVER = "deliver"
    DAMAGE = "damage"


_S = RollStatus
_E = RollEvent

TRANSITIONS: dict[tuple[RollStatus, RollEvent], RollStatus] = {
    (_S.AVAILABLE, _E.ISSUE): _S.ALLOCATED,
    (_S.PARTIALLY_ALLOCATED, _E.ISSUE): _S.ALLOCATED,
    (_S.ALLOCATED, _E.RECEIVE): _S.AVAILABLE,
    (_S.PARTIALLY_ALLOCATED, _E.RECEIVE): _S.AVAILABLE,

    (_S.AVAILABLE, _E.ALLOCATE): _S.ALLOCATED,
    (_S.PARTIALLY_ALLOCATED, _E.ALLOCATE): _S.ALLOCATED,
    (_S.AVAILABLE, _E.PARTIAL_ALLOCATE): _S.PARTIALLY_ALLOCATED,
    (_S.PARTIALLY_ALLOCATED, _E.PARTIAL_ALLOCATE): _S.PARTIALLY_ALLOCATED,
    (_S.ALLOCATED, _E.CONSUME): _S.USED,
    (_S.PARTIALLY_ALLOCATED, _E.CONSUME): _S.USED,

    (_S.ALLOCATED, _E.SHIP): _S.SHIPPED,
    (_S.AVAILABLE, _E.DISPATCH): _S.SHIPPED,
    (_S.ALLOCATED, _E.DISPATCH): _S.SHIPPED,
    (_S.PARTIALLY_ALLOCATED, _E.DISPATCH): _S.SHIPPED,
    (_S.SHIPPED, _E.DELIVER): _S.DELIVERED,

    (_S.AVAILABLE, _E.DAMAGE): _S.DAMAGED,
    (_S.ALLOCATED, _E.DAMAGE): _S.DAMAGED,
    (_S.PARTIALLY_ALLOCATED, _E.DAMAGE): _S.DAMAGED,
    (_S.USED, _E.DAMAGE): _S.DAMAGED,
    (_S.SHIPPED, _E.DAMAGE): _S.DAMAGED,
}

# History-only events
for _status in RollStatus:
    TRANSITIONS[(_status, _E.MOVE)] = _status
    TRANSITIONS[(_status, _E.AUDIT)] = _status
    TRANSITIONS[(_status, _E.QUALITY_CHECK)] = _status

# Events that also take the roll out of active inventory
ARCHIVING_EVENTS = frozenset({_E.SHIP, _E.DISPATCH})


def next_status(current: str, event: str, roll_ref: str = "?") -> RollStatus:
    """Pure lookup: the status ``event`` moves a ``current`` roll to."""
    try:
        current_status = RollStatus(current)
    except ValueError:
        raise InvalidInputError(f"Unknown roll status: {current}", field="status")
    try:
        roll_event = RollEvent(event)
    except ValueError:
        raise InvalidInputError(f"Unknown roll event: {event}", field="event")

    target = TRANSITIONS.get((current_status, roll_event))
    if target is None:
        raise InvalidTransitionError(roll_ref, current_status.value, roll_event.value)
    return target


async def apply_event(
    db: AsyncSession,
    roll: FabricRoll,
    event: str,
    **changes,
) -> FabricRoll:
    """Move ``roll`` through ``event`` and persist it with any extra column ``changes``.

    Raises InvalidTransitionError if the pair is not allowed or the roll's
    status changed since it was read.
    """
    previous = roll.status
    target = next_status(previous, event, roll.roll_number)
    roll_event = RollEvent(event)

    values = dict(changes)
    values["status"] = target.value
    if roll_event in ARCHIVING_EVENTS:
        values["archived"] = True
    if roll_event == RollEvent.CONSUME:
        values.setdefault("remaining_length", 0.0)
    if roll_event == RollEvent.RECEIVE:
        values.setdefault("customer_order_id", None)
        values.setdefault("customer_color", None)
        values.setdefault("remaining_length", roll.roll_length)

    remaining = values.get("remaining_length", roll.remaining_length)
    if remaining < 0 or remaining > roll.roll_length:
        raise InvalidInputError(
            f"Remaining length {remaining} outside 0..{roll.roll_length} for roll {roll.roll_number}",
            field="remaining_length",
        )
    values["updated_at"] = utcnow()

    result = await db.execute(
        update(FabricRoll)
        .where(FabricRoll.id == roll.id, FabricRoll.status == previous)
        .values(**values)
    )
    if result.rowcount == 0:
        logger.warning(
            f"Roll {roll.roll_number} changed concurrently during '{roll_event.value}'"
        )
        raise InvalidTransitionError(
            roll.roll_number, previous, roll_event.value, "roll was modified concurrently"
        )

    logger.info(
        f"Roll {roll.roll_number}: {previous} → {target.value} ({roll_event.value})",
        extra={"roll_id": roll.id},
    )
    return roll


# ── Lookups ──────────────────────────────────────────────────


async def get_roll(db: AsyncSession, roll_id: str) -> FabricRoll:
    roll = (
        await db.execute(select(FabricRoll).where(FabricRoll.id == roll_id))
    ).scalar_one_or_none()
    if not roll:
        raise ResourceNotFoundError("Roll", roll_id)
    return roll


async def get_roll_by_number(db: AsyncSession, roll_number: str) -> FabricRoll:
    roll = (
        await db.execute(select(FabricRoll).where(FabricRoll.roll_number == roll_number))
    ).scalar_one_or_none()
    if not roll:
        raise ResourceNotFoundError("Roll", roll_number)
    return roll


# ── Scans ────────────────────────────────────────────────────


@dataclass
class ScanResult:
    scan: RollScan
    roll: FabricRoll
    previous_status: str
    new_status: str


async def process_scan(
    db: AsyncSession,
    raw_tag: str,
    scan_type: str,
    scanned_by: str,
    scan_location: str | None = None,
    reference_id: str | None = None,
    reference_type: str | None = None,
    notes: str | None = None,
) -> ScanResult:
    """Resolve a scanned tag, apply the scan event and record it."""
    try:
        scan = ScanType(scan_type)
    except ValueError:
        raise InvalidInputError(f"Unknown scan type: {scan_type}", field="scan_type")
    if not scanned_by:
        raise InvalidInputError("scanned_by is required", field="scanned_by")

    decoded = decode_tag(raw_tag)
    if decoded.is_direct:
        roll = await get_roll(db, decoded.roll_id)
    else:
        payload = decoded.payload
        if payload.type != "fabric_roll":
            raise InvalidInputError(
                f"Tag identifies a {payload.type}, not a fabric roll", field="tag"
            )
        roll = await get_roll_by_number(db, payload.roll_number)
        if payload.batch_id != roll.batch_id:
            raise InvalidInputError(
                f"Tag batch does not match roll {roll.roll_number}", field="tag"
            )

    previous = roll.status
    previous_remaining = roll.remaining_length
    previous_order_id = roll.customer_order_id
    await apply_event(db, roll, scan.value)

    if scan == ScanType.RECEIVE:
        await _release_allocation(
            db, roll, roll.remaining_length - previous_remaining, previous_order_id
        )

    scan_row = RollScan(
        roll_id=roll.id,
        scan_type=scan.value,
        tag_data=raw_tag,
        scanned_by=scanned_by,
        scan_location=scan_location,
        reference_id=reference_id,
        reference_type=reference_type,
        previous_status=previous,
        new_status=roll.status,
        notes=notes,
    )
    db.add(scan_row)
    await db.flush()

    return ScanResult(
        scan=scan_row, roll=roll, previous_status=previous, new_status=roll.status
    )


async def get_scan_history(db: AsyncSession, roll_id: str) -> list[RollScan]:
    """All scans for a roll, newest first."""
    await get_roll(db, roll_id)
    result = await db.execute(
        select(RollScan)
        .where(RollScan.roll_id == roll_id)
        .order_by(RollScan.scanned_at.desc())
    )
    return list(result.scalars().all())


# ── Fulfilment ───────────────────────────────────────────────


async def allocate_roll(
    db: AsyncSession,
    roll_id: str,
    customer_order_id: str,
    length: float | None = None,
) -> FabricRoll:
    """Bind a roll (or ``length`` metres of it) to a customer order.

    The allocated length comes off ``remaining_length`` and off the
    fabric's stock.  Allocating everything that remains leaves the roll
    ``allocated`` with nothing remaining; less leaves it
    ``partially_allocated``.  The order colour is snapshotted onto the
    roll the first time it is bound and never overwritten afterwards.
    """
    roll = await get_roll(db, roll_id)
    order = await db.get(CustomerOrder, customer_order_id)
    if not order:
        raise ResourceNotFoundError("Customer order", customer_order_id)

    next_status(roll.status, RollEvent.ALLOCATE.value, roll.roll_number)
    if roll.customer_order_id and roll.customer_order_id != order.id:
        raise InvalidTransitionError(
            roll.roll_number, roll.status, RollEvent.ALLOCATE.value,
            "roll is bound to a different order",
        )

    if length is None:
        length = roll.remaining_length
    if length <= 0:
        raise InvalidInputError(f"Allocation length must be positive, got {length}", field="length")
    if length > roll.remaining_length:
        raise InvalidInputError(
            f"Cannot allocate {length} from roll {roll.roll_number}; "
            f"only {roll.remaining_length} remaining",
            field="length",
        )

    remaining = Decimal(str(roll.remaining_length)) - Decimal(str(length))
    event = RollEvent.ALLOCATE if remaining == 0 else RollEvent.PARTIAL_ALLOCATE

    changes: dict = {"customer_order_id": order.id, "remaining_length": float(remaining)}
    if roll.customer_color is None and order.color:
        changes["customer_color"] = order.color

    await apply_event(db, roll, event.value, **changes)

    order.quantity_allocated = float(
        Decimal(str(order.quantity_allocated or 0.0)) + Decimal(str(length))
    )
    if (
        order.order_status == OrderStatus.PENDING.value
        and order.quantity_allocated >= (order.quantity_ordered or 0.0)
    ):
        order.order_status = OrderStatus.ALLOCATED.value
    await db.flush()

    await apply_stock_delta(
        db,
        roll.fabric_type,
        roll.fabric_id,
        -length,
        reference_id=order.id,
        reference_type="customer_order",
        notes=f"Roll {roll.roll_number} allocated to {order.internal_order_number}",
        movement_type=MovementType.ALLOCATION.value,
    )
    return roll


async def _release_allocation(
    db: AsyncSession,
    roll: FabricRoll,
    released: float,
    customer_order_id: str | None,
) -> None:
    """Book metres freed by a ``receive`` back into stock and off the order."""
    if released <= 0:
        return

    if customer_order_id:
        order = await db.get(CustomerOrder, customer_order_id)
        if order:
            order.quantity_allocated = max(
                0.0,
                float(Decimal(str(order.quantity_allocated or 0.0)) - Decimal(str(released))),
            )
            await db.flush()

    await apply_stock_delta(
        db,
        roll.fabric_type,
        roll.fabric_id,
        released,
        reference_id=customer_order_id,
        reference_type="customer_order" if customer_order_id else None,
        notes=f"Roll {roll.roll_number} received back into stock",
        movement_type=MovementType.RETURN.value,
    )


@dataclass
class AutoAllocation:
    customer_order: CustomerOrder
    rolls: list[FabricRoll]
    allocated_quantity: float


async def auto_allocate_rolls(db: AsyncSession, customer_order_id: str) -> AutoAllocation:
    """Top a customer order up to its ordered quantity from A-grade stock.

    Candidates are available, unarchived A-grade rolls of the order's
    finished fabric in the order's colour, either already bound to the
    order or unbound.  Rolls bound to the order go first, then oldest
    first.  The last roll taken may be partially allocated.
    """
    order = await db.get(CustomerOrder, customer_order_id)
    if not order:
        raise ResourceNotFoundError("Customer order", customer_order_id)
    if not order.finished_fabric_id:
        raise InvalidInputError(
            f"Customer order {order.internal_order_number} has no finished fabric",
            field="customer_order_id",
        )

    required = Decimal(str(order.quantity_ordered or 0.0)) - Decimal(
        str(order.quantity_allocated or 0.0)
    )
    if required <= 0:
        return AutoAllocation(customer_order=order, rolls=[], allocated_quantity=0.0)

    target_color = order.color or "Natural"
    roll_color = func.coalesce(
        FabricRoll.customer_color, FabricRoll.traceability_payload["color"].as_string()
    )
    candidates = (
        await db.execute(
            select(FabricRoll)
            .where(
                FabricRoll.fabric_type == FabricType.FINISHED_FABRIC.value,
                FabricRoll.fabric_id == order.finished_fabric_id,
                FabricRoll.quality_grade == QualityGrade.A.value,
                FabricRoll.status == RollStatus.AVAILABLE.value,
                FabricRoll.archived == False,  # noqa: E712
                or_(
                    FabricRoll.customer_order_id.is_(None),
                    FabricRoll.customer_order_id == order.id,
                ),
                roll_color == target_color,
            )
            .order_by(
                case((FabricRoll.customer_order_id == order.id, 0), else_=1),
                FabricRoll.created_at,
                FabricRoll.roll_number,
            )
        )
    ).scalars().all()

    allocated: list[FabricRoll] = []
    to_allocate = required
    for roll in candidates:
        if to_allocate <= 0:
            break
        quantity = min(Decimal(str(roll.remaining_length)), to_allocate)
        await allocate_roll(db, roll.id, order.id, length=float(quantity))
        allocated.append(roll)
        to_allocate -= quantity

    total = float(required - max(to_allocate, Decimal("0")))
    logger.info(
        f"Auto-allocated {total} of {float(required)} to order {order.internal_order_number} "
        f"from {len(allocated)} A-grade rolls ({target_color})",
        extra={"customer_order_id": order.id},
    )
    return AutoAllocation(customer_order=order, rolls=allocated, allocated_quantity=total)


async def consume_roll(db: AsyncSession, roll_id: str) -> FabricRoll:
    roll = await get_roll(db, roll_id)
    return await apply_event(db, roll, RollEvent.CONSUME.value)


async def mark_damaged(db: AsyncSession, roll_id: str) -> FabricRoll:
    roll = await get_roll(db, roll_id)
    return await apply_event(db, roll, RollEvent.DAMAGE.value)


# ── Direct dispatch ──────────────────────────────────────────


@dataclass
class RollDetail:
    roll_id: str
    roll_number: str
    status: str
    archived: bool
    fabric_type: str
    fabric_id: str
    fabric_name: str | None
    color: str
    roll_length: float
    remaining_length: float
    quality_grade: str | None
    location: str | None
    batch_id: str
    batch_number: str | None
    production_type: str | None
    production_order_number: str | None
    customer_order_number: str | None
    customer_name: str | None
    allocation_status: str
    generated_at: datetime | None
    created_at: datetime | None


async def lookup_roll(db: AsyncSession, roll_id: str) -> RollDetail:
    """Everything known about a roll, resolved by join.  Never mutates."""
    roll = (
        await db.execute(
            select(FabricRoll)
            .where(FabricRoll.id == roll_id)
            .options(
                selectinload(FabricRoll.batch)
                .selectinload(ProductionBatch.production_order)
                .selectinload(ProductionOrder.customer_order)
                .selectinload(CustomerOrder.customer),
                selectinload(FabricRoll.customer_order).selectinload(CustomerOrder.customer),
            )
        )
    ).scalar_one_or_none()
    if not roll:
        raise ResourceNotFoundError("Roll", roll_id)

    fabric_model = BaseFabric if roll.fabric_type == FabricType.BASE_FABRIC.value else FinishedFabric
    fabric = await db.get(fabric_model, roll.fabric_id)

    batch = roll.batch
    production_order = batch.production_order if batch else None
    customer_order = roll.customer_order or (
        production_order.customer_order if production_order else None
    )
    customer_name = customer_order.customer.name if customer_order and customer_order.customer else None

    payload = roll.traceability_payload or {}
    color = (
        roll.customer_color
        or (customer_order.color if customer_order else None)
        or getattr(fabric, "color", None)
        or payload.get("color")
        or "Natural"
    )
    generated_at = payload.get("generated_at")

    return RollDetail(
        roll_id=roll.id,
        roll_number=roll.roll_number,
        status=roll.status,
        archived=roll.archived,
        fabric_type=roll.fabric_type,
        fabric_id=roll.fabric_id,
        fabric_name=fabric.name if fabric else None,
        color=color,
        roll_length=roll.roll_length,
        remaining_length=roll.remaining_length,
        quality_grade=roll.quality_grade,
        location=roll.location,
        batch_id=roll.batch_id,
        batch_number=batch.batch_number if batch else None,
        production_type=batch.production_type if batch else None,
        production_order_number=production_order.internal_order_number if production_order else None,
        customer_order_number=customer_order.internal_order_number if customer_order else None,
        customer_name=customer_name,
        allocation_status=allocation_label(roll.status, customer_name),
        generated_at=datetime.fromisoformat(generated_at) if generated_at else None,
        created_at=roll.created_at,
    )


async def confirm_dispatch(db: AsyncSession, roll_id: str) -> FabricRoll:
    """Explicit dispatch of a looked-up roll: shipped and archived."""
    roll = await get_roll(db, roll_id)
    return await apply_event(db, roll, RollEvent.DISPATCH.value)
