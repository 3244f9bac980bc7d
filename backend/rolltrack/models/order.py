"""Orders the lifecycle engine reads and updates.

Customer / CustomerOrder / ProductionOrder are owned by the order-entry
side of the mill.  The engine only joins against them (roll lookups,
payload context) and moves their status when production completes or a
shipment is dispatched / delivered.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rolltrack.database import Base, utcnow


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    ALLOCATED = "allocated"
    IN_PRODUCTION = "in_production"
    DISPATCHED = "dispatched"
    DELIVERED = "delivered"


class ProductionOrderStatus(str, enum.Enum):
    PENDING = "pending"
    WEAVING = "weaving"
    COATING = "coating"
    COMPLETED = "completed"


class Customer(Base):
    __tablename__ = "customers"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_email: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class CustomerOrder(Base):
    __tablename__ = "customer_orders"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    internal_order_number: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False, index=True
    )
    customer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("customers.id"), nullable=False, index=True
    )
    finished_fabric_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("finished_fabrics.id")
    )
    color: Mapped[str | None] = mapped_column(String(50))
    quantity_ordered: Mapped[float] = mapped_column(Float, default=0.0)
    # Metres bound to the order through roll allocation
    quantity_allocated: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    # pending | allocated | in_production | dispatched | delivered
    order_status: Mapped[str] = mapped_column(
        String(30), default=OrderStatus.PENDING.value, index=True
    )
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    customer = relationship("Customer")
    finished_fabric = relationship("FinishedFabric")


class ProductionOrder(Base):
    __tablename__ = "production_orders"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    internal_order_number: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False, index=True
    )
    # weaving | coating
    production_type: Mapped[str] = mapped_column(String(20), nullable=False)

    base_fabric_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("base_fabrics.id")
    )
    finished_fabric_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("finished_fabrics.id")
    )
    # Set when production is for a customer rather than stock building
    customer_order_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("customer_orders.id"), index=True
    )

    quantity_required: Mapped[float] = mapped_column(Float, nullable=False)
    quantity_produced: Mapped[float | None] = mapped_column(Float)

    # pending | weaving | coating | completed
    production_status: Mapped[str] = mapped_column(
        String(30), default=ProductionOrderStatus.PENDING.value, index=True
    )
    actual_start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    actual_end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    base_fabric = relationship("BaseFabric")
    finished_fabric = relationship("FinishedFabric")
    customer_order = relationship("CustomerOrder")
    batches = relationship("ProductionBatch", back_populates="production_order")
