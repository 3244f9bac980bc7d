"""RollScan: immutable history of tag scans against a roll.

Every accepted scan is recorded, including the ones that do not change the
roll's status (move / audit / quality_check), so a roll's physical journey
can be replayed from this table.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rolltrack.database import Base, utcnow


class ScanType(str, enum.Enum):
    ISSUE = "issue"
    RECEIVE = "receive"
    MOVE = "move"
    AUDIT = "audit"
    QUALITY_CHECK = "quality_check"


class RollScan(Base):
    __tablename__ = "roll_scans"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    roll_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("fabric_rolls.id"), nullable=False, index=True
    )
    # issue | receive | move | audit | quality_check
    scan_type: Mapped[str] = mapped_column(String(30), nullable=False)
    # Raw scanned tag (URL or legacy JSON) as received
    tag_data: Mapped[str] = mapped_column(Text, nullable=False)

    scanned_by: Mapped[str] = mapped_column(String(100), nullable=False)
    scan_location: Mapped[str | None] = mapped_column(String(255))
    # Optional link to the document that triggered the scan
    reference_id: Mapped[str | None] = mapped_column(String(36))
    reference_type: Mapped[str | None] = mapped_column(String(50))

    previous_status: Mapped[str] = mapped_column(String(30), nullable=False)
    new_status: Mapped[str] = mapped_column(String(30), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    scanned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )

    roll = relationship("FabricRoll", back_populates="scans")
