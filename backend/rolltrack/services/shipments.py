"""Shipment orchestration: dispatch and delivery of a customer order.

Dispatch
  1. Load the order's shippable rolls (allocated, finished fabric, bound to
     the order).  None → NoShippableInventoryError, nothing written.
  2. Shipment number from the sequence (random suffix fallback).
  3. Shipment + one ShipmentItem per roll (quantity = roll length now).
  4. ``ship`` each roll: shipped + archived.
  5. Order → dispatched.

Delivery
  Oldest shipment of the order still in transit, so repeated calls work
  through several shipments in dispatch order.  With none left in transit
  the call is a successful no-op reporting zero rolls; no shipment at all
  is NotFound.

A roll that fails to transition stops the run with PartialFailureError
naming that roll and the ones already done.
"""

import logging
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rolltrack.config import settings
from rolltrack.database import utcnow
from rolltrack.middleware.exceptions import (
    InvalidInputError,
    InvalidTransitionError,
    NoShippableInventoryError,
    PartialFailureError,
    ResourceNotFoundError,
)
from rolltrack.models.order import CustomerOrder, OrderStatus
from rolltrack.models.roll import FabricRoll, FabricType, RollStatus
from rolltrack.models.shipment import Shipment, ShipmentItem, ShipmentStatus
from rolltrack.services.roll_state import RollEvent, apply_event
from rolltrack.utils.numbering import generate_shipment_number

logger = logging.getLogger(__name__)


@dataclass
class DispatchInfo:
    invoice_number: str
    gate_pass: str
    notes: str | None = None


@dataclass
class DeliveryInfo:
    notes: str | None = None
    delivery_date: date | None = None


@dataclass
class ShipmentResult:
    shipment: Shipment
    rolls: list[FabricRoll] = field(default_factory=list)

    @property
    def total_quantity(self) -> float:
        return round(sum(r.roll_length for r in self.rolls), 2)


@dataclass
class DeliveryResult:
    shipment: Shipment
    updated_rolls: int
    already_delivered: bool = False


async def _get_order(db: AsyncSession, order_id: str) -> CustomerOrder:
    order = await db.get(CustomerOrder, order_id)
    if not order:
        raise ResourceNotFoundError("Customer order", order_id)
    return order


async def create_shipment(
    db: AsyncSession,
    order_id: str,
    dispatch: DispatchInfo,
) -> ShipmentResult:
    """Dispatch every allocated finished-fabric roll bound to the order."""
    if not dispatch.invoice_number or not dispatch.gate_pass:
        raise InvalidInputError("Invoice number and gate pass are required", field="dispatch")

    order = await _get_order(db, order_id)

    rolls = list((
        await db.execute(
            select(FabricRoll)
            .where(
                FabricRoll.customer_order_id == order.id,
                FabricRoll.status == RollStatus.ALLOCATED.value,
                FabricRoll.fabric_type == FabricType.FINISHED_FABRIC.value,
            )
            .order_by(FabricRoll.roll_number)
            .with_for_update()
        )
    ).scalars().all())
    if not rolls:
        logger.warning(f"Shipment requested for order {order.internal_order_number} with no allocated rolls")
        raise NoShippableInventoryError(order.id)

    shipment_number = await generate_shipment_number(db)
    shipment = Shipment(
        shipment_number=shipment_number,
        customer_order_id=order.id,
        status=ShipmentStatus.SHIPPED.value,
        tracking_number=dispatch.gate_pass,
        shipped_date=utcnow().date(),
        notes=(
            f"Dispatched with Invoice: {dispatch.invoice_number}, "
            f"Gate Pass: {dispatch.gate_pass}. Notes: {dispatch.notes or 'None'}"
        ),
    )
    db.add(shipment)
    await db.flush()

    db.add_all([
        ShipmentItem(
            shipment_id=shipment.id,
            fabric_roll_id=roll.id,
            quantity_shipped=roll.roll_length,
        )
        for roll in rolls
    ])
    await db.flush()

    shipped: list[str] = []
    for roll in rolls:
        try:
            await apply_event(db, roll, RollEvent.SHIP.value)
        except (InvalidTransitionError, SQLAlchemyError) as exc:
            logger.error(
                f"Shipment {shipment_number} stopped at roll {roll.roll_number}: {exc}",
                extra={"shipped": shipped},
            )
            raise PartialFailureError(
                "shipment", roll.roll_number, str(exc), completed_items=shipped
            ) from exc
        shipped.append(roll.roll_number)

    order.order_status = OrderStatus.DISPATCHED.value
    await db.flush()

    logger.info(
        f"Shipment {shipment_number} created for order {order.internal_order_number}: "
        f"{len(rolls)} rolls",
        extra={"shipment_id": shipment.id},
    )
    return ShipmentResult(shipment=shipment, rolls=rolls)


async def confirm_delivery(
    db: AsyncSession,
    order_id: str,
    delivery: DeliveryInfo | None = None,
) -> DeliveryResult:
    """Mark the order's shipment and its rolls delivered.  Safe to repeat."""
    delivery = delivery or DeliveryInfo()
    order = await _get_order(db, order_id)

    # Oldest shipment still in transit; the latest delivered one otherwise
    shipment = (
        await db.execute(
            select(Shipment)
            .where(
                Shipment.customer_order_id == order.id,
                Shipment.status == ShipmentStatus.SHIPPED.value,
            )
            .order_by(Shipment.created_at, Shipment.shipment_number)
            .limit(1)
        )
    ).scalar_one_or_none()
    if not shipment:
        shipment = (
            await db.execute(
                select(Shipment)
                .where(
                    Shipment.customer_order_id == order.id,
                    Shipment.status == ShipmentStatus.DELIVERED.value,
                )
                .order_by(Shipment.created_at.desc(), Shipment.shipment_number.desc())
                .limit(1)
            )
        ).scalar_one_or_none()
    if not shipment:
        raise ResourceNotFoundError("Shipment for order", order.id)

    if shipment.status == ShipmentStatus.DELIVERED.value:
        logger.info(f"Shipment {shipment.shipment_number} already delivered")
        return DeliveryResult(shipment=shipment, updated_rolls=0, already_delivered=True)

    delivered_on = delivery.delivery_date or utcnow().date()
    shipment.status = ShipmentStatus.DELIVERED.value
    shipment.delivery_date = delivered_on
    shipment.delivered_at = utcnow()
    shipment.notes = (
        f"{shipment.notes or ''}\nDelivered on {delivered_on.isoformat()}. "
        f"Notes: {delivery.notes or 'None'}"
    )
    await db.flush()

    rolls = list((
        await db.execute(
            select(FabricRoll)
            .join(ShipmentItem, ShipmentItem.fabric_roll_id == FabricRoll.id)
            .where(
                ShipmentItem.shipment_id == shipment.id,
                FabricRoll.status == RollStatus.SHIPPED.value,
            )
            .order_by(FabricRoll.roll_number)
        )
    ).scalars().all())

    delivered: list[str] = []
    for roll in rolls:
        try:
            await apply_event(
                db, roll, RollEvent.DELIVER.value, location=settings.delivered_location
            )
        except (InvalidTransitionError, SQLAlchemyError) as exc:
            logger.error(
                f"Delivery of {shipment.shipment_number} stopped at roll {roll.roll_number}: {exc}"
            )
            raise PartialFailureError(
                "delivery", roll.roll_number, str(exc), completed_items=delivered
            ) from exc
        delivered.append(roll.roll_number)

    in_transit = (
        await db.execute(
            select(func.count(Shipment.id)).where(
                Shipment.customer_order_id == order.id,
                Shipment.status == ShipmentStatus.SHIPPED.value,
            )
        )
    ).scalar_one()
    if not in_transit:
        order.order_status = OrderStatus.DELIVERED.value
    await db.flush()

    logger.info(
        f"Shipment {shipment.shipment_number} delivered: {len(delivered)} rolls",
        extra={"shipment_id": shipment.id, "order_id": order.id},
    )
    return DeliveryResult(shipment=shipment, updated_rolls=len(delivered))
