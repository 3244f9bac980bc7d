"""Pydantic schemas for production batches and production completion."""

from datetime import datetime

from pydantic import BaseModel, Field

from rolltrack.schemas.roll import RollSummary


# ── Requests ─────────────────────────────────────────────────

class BatchCreate(BaseModel):
    production_order_id: str
    production_type: str
    planned_quantity: float = Field(..., gt=0)
    # Closes the batch immediately when given
    accepted_quantity: float | None = Field(None, ge=0)
    notes: str | None = None


class WastageReasonIn(BaseModel):
    wastage_type: str
    quantity: float = Field(..., ge=0)
    reason: str | None = None
    notes: str | None = None


class BatchComplete(BaseModel):
    accepted_quantity: float = Field(..., ge=0)
    wastage_reasons: list[WastageReasonIn] = []
    recorded_by: str = "production_team"


class ProductionComplete(BaseModel):
    """Payload for POST /api/production/orders/{id}/complete.

    ``actual_quantity`` defaults to the order's required quantity and
    ``unit_length`` to the configured standard roll length.
    """
    actual_quantity: float | None = Field(None, gt=0)
    quality_notes: str | None = None
    unit_length: float | None = Field(None, gt=0)


class CoatingStart(BaseModel):
    production_order_id: str
    batch_id: str


# ── Responses ────────────────────────────────────────────────

class WastageRecordOut(BaseModel):
    id: str
    wastage_type: str
    wastage_quantity: float
    wastage_reason: str | None
    notes: str | None
    recorded_by: str
    recorded_at: datetime

    model_config = {"from_attributes": True}


class BatchOut(BaseModel):
    id: str
    batch_number: str
    production_order_id: str
    production_type: str
    planned_quantity: float
    accepted_quantity: float | None
    wastage_quantity: float
    wastage_percentage: float
    status: str
    notes: str | None
    created_at: datetime
    completed_at: datetime | None

    model_config = {"from_attributes": True}


class BatchDetailOut(BaseModel):
    batch: BatchOut
    production_order_number: str | None
    roll_count: int
    total_roll_length: float
    rolls: list[RollSummary]
    wastage_records: list[WastageRecordOut]


class ProductionCompleteOut(BaseModel):
    production_order_id: str
    production_status: str
    quantity_produced: float
    batch: BatchOut
    rolls: list[RollSummary]


class CoatingStartOut(BaseModel):
    production_order_id: str
    batch_id: str
    archived_rolls: int
