"""Production router: batches and production order completion.

Endpoints:
    POST   /api/production/batches                     Open a batch
    POST   /api/production/batches/{batch_id}/complete Close a batch with wastage
    GET    /api/production/batches/{batch_id}          Batch with rolls and wastage
    POST   /api/production/orders/{order_id}/complete  Batch + rolls + order status
    POST   /api/production/coating-start               Archive woven rolls going to coating
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from rolltrack.database import get_db
from rolltrack.schemas.batch import (
    BatchComplete,
    BatchCreate,
    BatchDetailOut,
    BatchOut,
    CoatingStart,
    CoatingStartOut,
    ProductionComplete,
    ProductionCompleteOut,
    WastageRecordOut,
)
from rolltrack.schemas.roll import RollSummary
from rolltrack.services.batch_manager import (
    WastageReason,
    complete_batch,
    complete_production,
    create_batch,
    get_batch_details,
    start_coating,
)

router = APIRouter()


# ── Batches ──────────────────────────────────────────────────

@router.post("/batches", response_model=BatchOut, status_code=status.HTTP_201_CREATED)
async def open_batch(body: BatchCreate, db: AsyncSession = Depends(get_db)):
    batch = await create_batch(
        db,
        body.production_order_id,
        body.production_type,
        body.planned_quantity,
        accepted_quantity=body.accepted_quantity,
        notes=body.notes,
    )
    return BatchOut.model_validate(batch)


@router.post("/batches/{batch_id}/complete", response_model=BatchOut)
async def close_batch(
    batch_id: str,
    body: BatchComplete,
    db: AsyncSession = Depends(get_db),
):
    batch = await complete_batch(
        db,
        batch_id,
        body.accepted_quantity,
        wastage_reasons=[
            WastageReason(
                wastage_type=r.wastage_type,
                quantity=r.quantity,
                reason=r.reason,
                notes=r.notes,
            )
            for r in body.wastage_reasons
        ],
        recorded_by=body.recorded_by,
    )
    return BatchOut.model_validate(batch)


@router.get("/batches/{batch_id}", response_model=BatchDetailOut)
async def get_batch(batch_id: str, db: AsyncSession = Depends(get_db)):
    details = await get_batch_details(db, batch_id)
    return BatchDetailOut(
        batch=BatchOut.model_validate(details.batch),
        production_order_number=(
            details.production_order.internal_order_number
            if details.production_order else None
        ),
        roll_count=details.roll_count,
        total_roll_length=details.total_roll_length,
        rolls=[RollSummary.model_validate(r) for r in details.rolls],
        wastage_records=[WastageRecordOut.model_validate(w) for w in details.wastage_records],
    )


# ── Production orders ────────────────────────────────────────

@router.post("/orders/{order_id}/complete", response_model=ProductionCompleteOut)
async def finish_production(
    order_id: str,
    body: ProductionComplete,
    db: AsyncSession = Depends(get_db),
):
    result = await complete_production(
        db,
        order_id,
        actual_quantity=body.actual_quantity,
        quality_notes=body.quality_notes,
        unit_length=body.unit_length,
    )
    order = result.production_order
    return ProductionCompleteOut(
        production_order_id=order.id,
        production_status=order.production_status,
        quantity_produced=order.quantity_produced,
        batch=BatchOut.model_validate(result.batch),
        rolls=[RollSummary.model_validate(r) for r in result.rolls],
    )


@router.post("/coating-start", response_model=CoatingStartOut)
async def coating_start(body: CoatingStart, db: AsyncSession = Depends(get_db)):
    archived = await start_coating(db, body.production_order_id, body.batch_id)
    return CoatingStartOut(
        production_order_id=body.production_order_id,
        batch_id=body.batch_id,
        archived_rolls=archived,
    )
