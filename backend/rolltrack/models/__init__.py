"""Aggregate model imports for Alembic auto-detection and mapper setup."""

# Master data / orders
from rolltrack.models.fabric import BaseFabric, FinishedFabric
from rolltrack.models.order import (
    Customer, CustomerOrder, OrderStatus, ProductionOrder, ProductionOrderStatus,
)

# Core lifecycle
from rolltrack.models.batch import BatchStatus, ProductionBatch, ProductionType
from rolltrack.models.wastage import WastageRecord, WastageType
from rolltrack.models.roll import FabricRoll, FabricType, QualityGrade, RollStatus
from rolltrack.models.scan import RollScan, ScanType
from rolltrack.models.shipment import Shipment, ShipmentItem, ShipmentStatus

# Bookkeeping
from rolltrack.models.stock_movement import MovementType, StockMovement
from rolltrack.models.sequence import NumberSequence

__all__ = [
    # Master data / orders
    "BaseFabric", "FinishedFabric",
    "Customer", "CustomerOrder", "OrderStatus",
    "ProductionOrder", "ProductionOrderStatus",
    # Core lifecycle
    "ProductionBatch", "ProductionType", "BatchStatus",
    "WastageRecord", "WastageType",
    "FabricRoll", "FabricType", "QualityGrade", "RollStatus",
    "RollScan", "ScanType",
    "Shipment", "ShipmentItem", "ShipmentStatus",
    # Bookkeeping
    "StockMovement", "MovementType", "NumberSequence",
]
