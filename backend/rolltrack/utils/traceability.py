"""Traceability tags printed on every roll.

A tag is the string encoded in the roll's QR code.  Two forms exist:

  direct   → ``{qr_base_url}/api/rolls/{roll_id}/lookup``
             an opaque reference; everything else is fetched live
  legacy   → compact self-describing JSON of the TraceabilityPayload
             (rolls printed before direct lookup existed)

The full payload is always stored on the roll row, whichever form the
tag uses.  ``decode_tag`` accepts both forms, and legacy JSON in either
snake_case or the older camelCase keys.  Tags printed by the web app are
also read: ``{"type": "api_roll", "rollId": ...}`` JSON and bare
``.../roll/{roll_id}`` page URLs both resolve as direct references.
"""

import io
import json
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

import segno
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from rolltrack.config import settings
from rolltrack.database import utcnow
from rolltrack.middleware.exceptions import InvalidInputError
from rolltrack.models.roll import RollStatus

_UUID = (
    r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-"
    r"[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"
)
DIRECT_TAG_RE = re.compile(
    rf"/(?:api/rolls|roll)/(?P<roll_id>{_UUID})(?:/lookup)?/?$"
)
ROLL_ID_RE = re.compile(rf"^{_UUID}$")

# Web-app tag type carrying only the roll id
API_ROLL_TYPE = "api_roll"


class TraceabilityPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: Literal["fabric_roll", "batch", "order"] = "fabric_roll"
    roll_number: str | None = None
    batch_id: str | None = None
    fabric_type: Literal["base_fabric", "finished_fabric"] | None = None
    fabric_id: str | None = None
    roll_length: float | None = None
    generated_at: datetime = Field(alias="qrGeneratedAt")

    # ── Order context ────────────────────────────────────────
    production_purpose: Literal["stock_building", "customer_order"] = "stock_building"
    customer_order_id: str | None = None
    customer_order_number: str | None = None
    customer_name: str | None = None
    production_order_id: str | None = None
    production_order_number: str | None = None

    # ── Labels ───────────────────────────────────────────────
    color: str = "Natural"
    allocation_status: str = "Available"

    # Direct lookup reference; None for legacy-only tags
    roll_id: str | None = None


@dataclass
class DecodedTag:
    """Result of decoding a scanned tag: exactly one field is set."""
    roll_id: str | None = None
    payload: TraceabilityPayload | None = None

    @property
    def is_direct(self) -> bool:
        return self.roll_id is not None


def allocation_label(status: str, customer_name: str | None = None) -> str:
    """Human-readable allocation status shown on tags and roll lookups."""
    if status == RollStatus.ALLOCATED:
        return f"Allocated to {customer_name}" if customer_name else "Allocated to customer order"
    if status == RollStatus.PARTIALLY_ALLOCATED:
        return "Partially allocated"
    if status == RollStatus.USED:
        return "Used in fulfillment"
    if status == RollStatus.SHIPPED:
        return "Shipped to customer"
    if status == RollStatus.DELIVERED:
        return "Delivered to customer"
    if status == RollStatus.DAMAGED:
        return "Damaged"
    return f"Available for {customer_name}" if customer_name else "Available for stock building"


def build_payload(
    *,
    roll_number: str,
    batch_id: str,
    fabric_type: str,
    fabric_id: str,
    roll_length: float,
    roll_id: str | None = None,
    customer_order_id: str | None = None,
    customer_order_number: str | None = None,
    customer_name: str | None = None,
    production_order_id: str | None = None,
    production_order_number: str | None = None,
    color: str | None = None,
    allocation_status: str | None = None,
) -> TraceabilityPayload:
    """Assemble the payload for a freshly cut roll."""
    return TraceabilityPayload(
        roll_number=roll_number,
        batch_id=batch_id,
        fabric_type=fabric_type,
        fabric_id=fabric_id,
        roll_length=roll_length,
        generated_at=utcnow(),
        production_purpose="customer_order" if customer_order_id else "stock_building",
        customer_order_id=customer_order_id,
        customer_order_number=customer_order_number,
        customer_name=customer_name,
        production_order_id=production_order_id,
        production_order_number=production_order_number,
        color=color or "Natural",
        allocation_status=allocation_status or allocation_label(
            RollStatus.AVAILABLE, customer_name
        ),
        roll_id=roll_id,
    )


def direct_lookup_url(roll_id: str) -> str:
    return f"{settings.qr_base_url.rstrip('/')}/api/rolls/{roll_id}/lookup"


def encode_payload(payload: TraceabilityPayload) -> str:
    """Return the string to print in the QR code."""
    if payload.roll_id:
        return direct_lookup_url(payload.roll_id)
    data = payload.model_dump(mode="json", by_alias=True, exclude_none=True)
    return json.dumps(data, separators=(",", ":"))


def validate_payload(payload: TraceabilityPayload) -> list[str]:
    """Return the list of problems with a decoded legacy payload."""
    errors: list[str] = []
    if payload.type == "fabric_roll":
        if not payload.roll_number:
            errors.append("Roll number is required for fabric roll tags")
        if not payload.batch_id:
            errors.append("Batch ID is required for fabric roll tags")
        if not payload.fabric_type:
            errors.append("Fabric type is required for fabric roll tags")
        if not payload.fabric_id:
            errors.append("Fabric ID is required for fabric roll tags")
    return errors


def decode_tag(raw: str) -> DecodedTag:
    """Parse a scanned tag into a roll reference or a legacy payload.

    Raises InvalidInputError for anything that is neither form.
    """
    if not raw or not raw.strip():
        raise InvalidInputError("Tag data is empty", field="tag")
    raw = raw.strip()

    if not raw.startswith("{"):
        match = DIRECT_TAG_RE.search(raw)
        if not match:
            raise InvalidInputError("Unrecognised tag format", field="tag")
        return DecodedTag(roll_id=match.group("roll_id").lower())

    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        raise InvalidInputError("Invalid tag format: not valid JSON", field="tag")
    if not isinstance(data, dict) or "type" not in data:
        raise InvalidInputError("Invalid tag data: missing type", field="tag")

    if data["type"] == API_ROLL_TYPE:
        return _decode_api_roll(data)

    try:
        payload = TraceabilityPayload.model_validate(data)
    except ValidationError as exc:
        fields = ", ".join(
            ".".join(str(part) for part in err["loc"]) for err in exc.errors()
        )
        raise InvalidInputError(f"Invalid tag data: {fields}", field="tag")

    errors = validate_payload(payload)
    if errors:
        raise InvalidInputError("; ".join(errors), field="tag")
    return DecodedTag(payload=payload)


def _decode_api_roll(data: dict) -> DecodedTag:
    roll_id = data.get("rollId") or data.get("roll_id")
    if not roll_id and data.get("apiUrl"):
        match = DIRECT_TAG_RE.search(str(data["apiUrl"]))
        roll_id = match.group("roll_id") if match else None
    if not roll_id or not ROLL_ID_RE.match(str(roll_id)):
        raise InvalidInputError("Invalid tag data: rollId", field="tag")
    return DecodedTag(roll_id=str(roll_id).lower())


def render_qr_svg(data: str, scale: int = 4) -> bytes:
    """Render tag data as an SVG QR code."""
    qr = segno.make(data, error="m")
    buf = io.BytesIO()
    qr.save(buf, kind="svg", scale=scale, dark="#1e3a8a")
    return buf.getvalue()
