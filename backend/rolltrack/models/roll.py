"""FabricRoll: an individually tracked roll cut from a batch.

Rolls are created in one go by the roll generator (``{batch}-R001`` …) and
afterwards only move through ``services.roll_state``.  Each roll embeds its
traceability payload as JSON so a scanned tag can be resolved without a
separate table.

Lifecycle:  available → allocated → (partially_allocated) → used / shipped
            → delivered, with ``damaged`` reachable from any live state.
``archived`` is orthogonal to status: archived rolls drop out of active
inventory but stay resolvable by id and roll number.
``remaining_length`` is the unallocated part of the roll: every allocation
subtracts from it and a ``receive`` scan restores it to ``roll_length``.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean, CheckConstraint, DateTime, Float, ForeignKey, Index, JSON, String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rolltrack.database import Base, utcnow


class FabricType(str, enum.Enum):
    BASE_FABRIC = "base_fabric"
    FINISHED_FABRIC = "finished_fabric"


class QualityGrade(str, enum.Enum):
    A = "A"
    B = "B"


class RollStatus(str, enum.Enum):
    AVAILABLE = "available"
    ALLOCATED = "allocated"
    PARTIALLY_ALLOCATED = "partially_allocated"
    USED = "used"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    DAMAGED = "damaged"


class FabricRoll(Base):
    __tablename__ = "fabric_rolls"
    __table_args__ = (
        CheckConstraint(
            "remaining_length >= 0 AND remaining_length <= roll_length",
            name="ck_fabric_rolls_remaining_length",
        ),
        Index(
            "ix_fabric_rolls_auto_allocation",
            "fabric_type", "fabric_id", "quality_grade", "status",
        ),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    roll_number: Mapped[str] = mapped_column(
        String(60), unique=True, nullable=False, index=True
    )

    # ── Traceability links ───────────────────────────────────
    batch_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("production_batches.id"), nullable=False, index=True
    )
    # base_fabric | finished_fabric; fabric_id points into the matching table
    fabric_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    fabric_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    # ── Length (metres) ──────────────────────────────────────
    roll_length: Mapped[float] = mapped_column(Float, nullable=False)
    remaining_length: Mapped[float] = mapped_column(Float, nullable=False)

    # ── Status ───────────────────────────────────────────────
    status: Mapped[str] = mapped_column(
        String(30), default=RollStatus.AVAILABLE.value, index=True
    )
    # A for accepted output; B for shortfall rolls
    quality_grade: Mapped[str | None] = mapped_column(String(5))
    archived: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    location: Mapped[str | None] = mapped_column(String(255))

    # ── Customer binding ─────────────────────────────────────
    customer_order_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("customer_orders.id"), index=True
    )
    # Snapshot of the order colour, written once at allocation
    customer_color: Mapped[str | None] = mapped_column(String(50))

    # JSON: see utils.traceability.TraceabilityPayload
    traceability_payload: Mapped[dict | None] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    # ── Relationships ────────────────────────────────────────
    batch = relationship("ProductionBatch", back_populates="rolls")
    customer_order = relationship("CustomerOrder")
    scans = relationship(
        "RollScan", back_populates="roll", order_by="RollScan.scanned_at.desc()"
    )
