"""Pydantic schemas for fabric rolls, scans and roll lookups."""

from datetime import datetime

from pydantic import BaseModel, Field


# ── Requests ─────────────────────────────────────────────────

class ScanRequest(BaseModel):
    """Payload for POST /api/rolls/scan.

    ``tag`` is the raw QR content: a direct lookup URL or legacy JSON.
    """
    tag: str = Field(..., min_length=1)
    scan_type: str
    scanned_by: str = Field(..., min_length=1)
    scan_location: str | None = None
    reference_id: str | None = None
    reference_type: str | None = None
    notes: str | None = None


class AllocateRequest(BaseModel):
    customer_order_id: str
    # Omit for a full-roll allocation
    length: float | None = Field(None, gt=0)


class AutoAllocateRequest(BaseModel):
    customer_order_id: str


# ── Responses ────────────────────────────────────────────────

class RollSummary(BaseModel):
    id: str
    roll_number: str
    fabric_type: str
    fabric_id: str
    roll_length: float
    remaining_length: float
    status: str
    archived: bool
    location: str | None
    customer_order_id: str | None

    model_config = {"from_attributes": True}


class AutoAllocateOut(BaseModel):
    customer_order_id: str
    allocated_quantity: float
    quantity_allocated: float
    quantity_ordered: float
    rolls: list[RollSummary]


class RollOut(RollSummary):
    batch_id: str
    quality_grade: str | None
    customer_color: str | None
    traceability_payload: dict | None
    created_at: datetime
    updated_at: datetime


class ScanOut(BaseModel):
    id: str
    roll_id: str
    scan_type: str
    scanned_by: str
    scan_location: str | None
    reference_id: str | None
    reference_type: str | None
    previous_status: str
    new_status: str
    notes: str | None
    scanned_at: datetime

    model_config = {"from_attributes": True}


class ScanResultOut(BaseModel):
    scan: ScanOut
    roll: RollSummary
    previous_status: str
    new_status: str


class RollDetailOut(BaseModel):
    """Read-only roll lookup, as shown after scanning a direct-lookup tag."""
    roll_id: str
    roll_number: str
    status: str
    archived: bool
    fabric_type: str
    fabric_id: str
    fabric_name: str | None
    color: str
    roll_length: float
    remaining_length: float
    quality_grade: str | None
    location: str | None
    batch_id: str
    batch_number: str | None
    production_type: str | None
    production_order_number: str | None
    customer_order_number: str | None
    customer_name: str | None
    allocation_status: str
    generated_at: datetime | None
    created_at: datetime | None

    model_config = {"from_attributes": True}
