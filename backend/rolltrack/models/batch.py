"""ProductionBatch: one weaving or coating run.

A batch is opened against a production order with a planned quantity and
closed with the accepted (A-grade) quantity.  Closing it fixes the wastage
figures; the rolls cut from the batch trace back to it by ``batch_id``.

Lifecycle:  in_progress → completed → quality_check → approved
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rolltrack.database import Base, utcnow


class ProductionType(str, enum.Enum):
    WEAVING = "weaving"
    COATING = "coating"


class BatchStatus(str, enum.Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    QUALITY_CHECK = "quality_check"
    APPROVED = "approved"


class ProductionBatch(Base):
    __tablename__ = "production_batches"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    # WEAVING-20260301-004; unique, allocated from number_sequences
    batch_number: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False, index=True
    )
    production_order_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("production_orders.id"), nullable=False, index=True
    )
    # weaving | coating
    production_type: Mapped[str] = mapped_column(String(20), nullable=False)

    # ── Quantities (metres) ──────────────────────────────────
    planned_quantity: Mapped[float] = mapped_column(Float, nullable=False)
    # NULL while in_progress
    accepted_quantity: Mapped[float | None] = mapped_column(Float)
    wastage_quantity: Mapped[float] = mapped_column(Float, default=0.0)
    wastage_percentage: Mapped[float] = mapped_column(Float, default=0.0)

    # ── Status ───────────────────────────────────────────────
    # in_progress | completed | quality_check | approved
    status: Mapped[str] = mapped_column(
        String(30), default=BatchStatus.IN_PROGRESS.value, index=True
    )

    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # ── Relationships ────────────────────────────────────────
    # lazy="select": use selectinload() where the rolls are needed;
    # a coating batch can carry hundreds of rolls.
    production_order = relationship("ProductionOrder", back_populates="batches")
    rolls = relationship(
        "FabricRoll", back_populates="batch", order_by="FabricRoll.roll_number"
    )
    wastage_records = relationship(
        "WastageRecord", back_populates="batch", order_by="WastageRecord.recorded_at"
    )
