"""Roll router: scanning, lookup, allocation and dispatch.

Endpoints:
    POST   /api/rolls/scan                 Apply a tag scan (issue/receive/move/audit/quality_check)
    GET    /api/rolls/{roll_id}/lookup     Read-only roll detail (direct-lookup tag target)
    POST   /api/rolls/{roll_id}/dispatch   Confirm dispatch after a lookup
    POST   /api/rolls/auto-allocate        Top an order up from A-grade stock
    POST   /api/rolls/{roll_id}/allocate   Bind the roll (or part of it) to an order
    POST   /api/rolls/{roll_id}/damage     Mark the roll damaged
    GET    /api/rolls/{roll_id}/scans      Scan history, newest first
    GET    /api/rolls/{roll_id}/qr         QR code SVG of the roll's tag
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from rolltrack.database import get_db
from rolltrack.schemas.roll import (
    AllocateRequest,
    AutoAllocateOut,
    AutoAllocateRequest,
    RollDetailOut,
    RollOut,
    RollSummary,
    ScanOut,
    ScanRequest,
    ScanResultOut,
)
from rolltrack.services.roll_state import (
    allocate_roll,
    auto_allocate_rolls,
    confirm_dispatch,
    get_roll,
    get_scan_history,
    lookup_roll,
    mark_damaged,
    process_scan,
)
from rolltrack.utils.traceability import (
    TraceabilityPayload,
    direct_lookup_url,
    encode_payload,
    render_qr_svg,
)

router = APIRouter()


@router.post("/scan", response_model=ScanResultOut)
async def scan_roll(body: ScanRequest, db: AsyncSession = Depends(get_db)):
    result = await process_scan(
        db,
        body.tag,
        body.scan_type,
        body.scanned_by,
        scan_location=body.scan_location,
        reference_id=body.reference_id,
        reference_type=body.reference_type,
        notes=body.notes,
    )
    return ScanResultOut(
        scan=ScanOut.model_validate(result.scan),
        roll=RollSummary.model_validate(result.roll),
        previous_status=result.previous_status,
        new_status=result.new_status,
    )


@router.post("/auto-allocate", response_model=AutoAllocateOut)
async def auto_allocate(body: AutoAllocateRequest, db: AsyncSession = Depends(get_db)):
    result = await auto_allocate_rolls(db, body.customer_order_id)
    order = result.customer_order
    return AutoAllocateOut(
        customer_order_id=order.id,
        allocated_quantity=result.allocated_quantity,
        quantity_allocated=order.quantity_allocated,
        quantity_ordered=order.quantity_ordered,
        rolls=[RollSummary.model_validate(r) for r in result.rolls],
    )


@router.get("/{roll_id}/lookup", response_model=RollDetailOut)
async def lookup(roll_id: str, db: AsyncSession = Depends(get_db)):
    detail = await lookup_roll(db, roll_id)
    return RollDetailOut(**asdict(detail))


@router.post("/{roll_id}/dispatch", response_model=RollOut)
async def dispatch(roll_id: str, db: AsyncSession = Depends(get_db)):
    roll = await confirm_dispatch(db, roll_id)
    return RollOut.model_validate(roll)


@router.post("/{roll_id}/allocate", response_model=RollOut)
async def allocate(
    roll_id: str,
    body: AllocateRequest,
    db: AsyncSession = Depends(get_db),
):
    roll = await allocate_roll(db, roll_id, body.customer_order_id, length=body.length)
    return RollOut.model_validate(roll)


@router.post("/{roll_id}/damage", response_model=RollOut)
async def damage(roll_id: str, db: AsyncSession = Depends(get_db)):
    roll = await mark_damaged(db, roll_id)
    return RollOut.model_validate(roll)


@router.get("/{roll_id}/scans", response_model=list[ScanOut])
async def scan_history(roll_id: str, db: AsyncSession = Depends(get_db)):
    scans = await get_scan_history(db, roll_id)
    return [ScanOut.model_validate(s) for s in scans]


@router.get("/{roll_id}/qr")
async def roll_qr(roll_id: str, db: AsyncSession = Depends(get_db)):
    """Return an SVG QR code of the tag printed on the roll."""
    roll = await get_roll(db, roll_id)
    if roll.traceability_payload:
        data = encode_payload(TraceabilityPayload.model_validate(roll.traceability_payload))
    else:
        data = direct_lookup_url(roll.id)
    return Response(content=render_qr_svg(data), media_type="image/svg+xml")
