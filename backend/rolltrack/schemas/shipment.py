"""Pydantic schemas for shipment dispatch and delivery."""

from datetime import date, datetime

from pydantic import BaseModel, Field

from rolltrack.schemas.roll import RollSummary


class DispatchRequest(BaseModel):
    order_id: str
    invoice_number: str = Field(..., min_length=1)
    gate_pass: str = Field(..., min_length=1)
    notes: str | None = None


class DeliveryRequest(BaseModel):
    order_id: str
    notes: str | None = None
    delivery_date: date | None = None


class ShipmentOut(BaseModel):
    id: str
    shipment_number: str
    customer_order_id: str
    status: str
    tracking_number: str | None
    shipped_date: date | None
    delivery_date: date | None
    notes: str | None
    created_at: datetime
    delivered_at: datetime | None

    model_config = {"from_attributes": True}


class ShipmentCreateOut(BaseModel):
    shipment: ShipmentOut
    rolls: list[RollSummary]
    total_quantity: float


class DeliveryOut(BaseModel):
    shipment: ShipmentOut
    updated_rolls: int
    already_delivered: bool
