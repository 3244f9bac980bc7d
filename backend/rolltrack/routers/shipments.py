"""Shipment router: order dispatch and delivery confirmation.

Endpoints:
    POST   /api/shipments           Ship all allocated rolls of an order
    POST   /api/shipments/deliver   Confirm delivery (repeat calls are no-ops)
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from rolltrack.database import get_db
from rolltrack.schemas.roll import RollSummary
from rolltrack.schemas.shipment import (
    DeliveryOut,
    DeliveryRequest,
    DispatchRequest,
    ShipmentCreateOut,
    ShipmentOut,
)
from rolltrack.services.shipments import (
    DeliveryInfo,
    DispatchInfo,
    confirm_delivery,
    create_shipment,
)

router = APIRouter()


@router.post("", response_model=ShipmentCreateOut, status_code=status.HTTP_201_CREATED)
async def dispatch_order(body: DispatchRequest, db: AsyncSession = Depends(get_db)):
    result = await create_shipment(
        db,
        body.order_id,
        DispatchInfo(
            invoice_number=body.invoice_number,
            gate_pass=body.gate_pass,
            notes=body.notes,
        ),
    )
    return ShipmentCreateOut(
        shipment=ShipmentOut.model_validate(result.shipment),
        rolls=[RollSummary.model_validate(r) for r in result.rolls],
        total_quantity=result.total_quantity,
    )


@router.post("/deliver", response_model=DeliveryOut)
async def deliver_order(body: DeliveryRequest, db: AsyncSession = Depends(get_db)):
    result = await confirm_delivery(
        db,
        body.order_id,
        DeliveryInfo(notes=body.notes, delivery_date=body.delivery_date),
    )
    return DeliveryOut(
        shipment=ShipmentOut.model_validate(result.shipment),
        updated_rolls=result.updated_rolls,
        already_delivered=result.already_delivered,
    )
