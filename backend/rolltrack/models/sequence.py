"""NumberSequence: store-serialized counters for identifier allocation.

One row per (scope, period), e.g. ("batch:WEAVING", "20260301").  The row
is bumped with a single ``UPDATE … SET last_value = last_value + 1``, so
concurrent callers are serialized by the database and never see the same
value.
"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from rolltrack.database import Base, utcnow


class NumberSequence(Base):
    __tablename__ = "number_sequences"
    __table_args__ = (
        UniqueConstraint("scope", "period", name="uq_number_sequences_scope_period"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    scope: Mapped[str] = mapped_column(String(50), nullable=False)
    period: Mapped[str] = mapped_column(String(20), nullable=False)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )
