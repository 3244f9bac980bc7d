"""WastageRecord: append-only breakdown of a batch's wastage by cause.

Written once at batch completion (one row per reported cause) and never
updated.  The batch row itself holds the authoritative totals.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rolltrack.database import Base, utcnow


class WastageType(str, enum.Enum):
    PRODUCTION = "production"
    CUTTING = "cutting"
    QUALITY = "quality"
    HANDLING = "handling"


class WastageRecord(Base):
    __tablename__ = "wastage_records"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    batch_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("production_batches.id"), nullable=False, index=True
    )
    # production | cutting | quality | handling
    wastage_type: Mapped[str] = mapped_column(String(30), nullable=False)
    wastage_quantity: Mapped[float] = mapped_column(Float, nullable=False)
    wastage_reason: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)

    recorded_by: Mapped[str] = mapped_column(String(100), nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    batch = relationship("ProductionBatch", back_populates="wastage_records")
