"""Fabric master data: the stock-bearing side of production.

BaseFabric is woven greige cloth; FinishedFabric is a base fabric after
coating.  Both carry an aggregate ``stock_quantity`` (metres) which is only
ever changed through ``services.stock.apply_stock_delta`` (atomic increment,
never read-modify-write).
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rolltrack.database import Base, utcnow


class BaseFabric(Base):
    __tablename__ = "base_fabrics"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    gsm: Mapped[float | None] = mapped_column(Float)
    width_meters: Mapped[float | None] = mapped_column(Float)
    stock_quantity: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class FinishedFabric(Base):
    __tablename__ = "finished_fabrics"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    base_fabric_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("base_fabrics.id")
    )
    coating_type: Mapped[str | None] = mapped_column(String(100))
    color: Mapped[str | None] = mapped_column(String(50))
    gsm: Mapped[float | None] = mapped_column(Float)
    width_meters: Mapped[float | None] = mapped_column(Float)
    stock_quantity: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    base_fabric = relationship("BaseFabric")
