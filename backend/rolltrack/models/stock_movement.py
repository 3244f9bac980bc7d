"""StockMovement: audit ledger for fabric stock changes.

One row per delta applied to ``base_fabrics.stock_quantity`` or
``finished_fabrics.stock_quantity``.  Positive for stock in, negative for
stock out.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from rolltrack.database import Base, utcnow


class MovementType(str, enum.Enum):
    PRODUCTION_IN = "production_in"
    ALLOCATION = "allocation"
    PRODUCTION_ALLOCATION = "production_allocation"
    RETURN = "return"
    ADJUSTMENT = "adjustment"


class StockMovement(Base):
    __tablename__ = "stock_movements"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    # base_fabric | finished_fabric
    fabric_type: Mapped[str] = mapped_column(String(20), nullable=False)
    fabric_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    # production_in | allocation | production_allocation | return | adjustment
    movement_type: Mapped[str] = mapped_column(String(30), nullable=False)
    quantity: Mapped[float] = mapped_column(Float, nullable=False)

    # Optional reference to the batch / production order behind the change
    reference_type: Mapped[str | None] = mapped_column(String(30))
    reference_id: Mapped[str | None] = mapped_column(String(36))

    notes: Mapped[str | None] = mapped_column(Text)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )
