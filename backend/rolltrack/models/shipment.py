"""Shipment / ShipmentItem: dispatch of allocated rolls to a customer.

A Shipment and its items are written together when an order is dispatched;
afterwards only the delivery confirmation touches them.

Lifecycle:  shipped → delivered
"""

import enum
import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rolltrack.database import Base, utcnow


class ShipmentStatus(str, enum.Enum):
    SHIPPED = "shipped"
    DELIVERED = "delivered"


class Shipment(Base):
    __tablename__ = "shipments"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    shipment_number: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False, index=True
    )
    customer_order_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("customer_orders.id"), nullable=False, index=True
    )

    # shipped | delivered
    status: Mapped[str] = mapped_column(
        String(20), default=ShipmentStatus.SHIPPED.value, index=True
    )
    # Gate pass number doubles as the tracking reference
    tracking_number: Mapped[str | None] = mapped_column(String(100))
    shipped_date: Mapped[date | None] = mapped_column(Date)
    delivery_date: Mapped[date | None] = mapped_column(Date)
    notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    customer_order = relationship("CustomerOrder")
    items = relationship("ShipmentItem", back_populates="shipment")


class ShipmentItem(Base):
    __tablename__ = "shipment_items"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    shipment_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("shipments.id"), nullable=False, index=True
    )
    fabric_roll_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("fabric_rolls.id"), nullable=False, index=True
    )
    # Roll length at the moment of dispatch
    quantity_shipped: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    shipment = relationship("Shipment", back_populates="items")
    roll = relationship("FabricRoll")
