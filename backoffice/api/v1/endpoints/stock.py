"""API endpoints for stock levels and the movement ledger."""
from typing import List
from uuid import UUID

from fastapi import APIRouter, Query

from backoffice.api.deps import DB, CurrentUserId
from backoffice.models.stock import MovementReason, StockItemType
from backoffice.schemas.stock import RawMaterialAdjust, RawMaterialStockResponse, StockMovementResponse
from backoffice.services.stock_ledger import StockLedger


router = APIRouter()


@router.post("/raw-materials/adjust", response_model=RawMaterialStockResponse)
async def adjust_raw_material(data: RawMaterialAdjust, db: DB, user_id: CurrentUserId):
    """
    Manual raw material correction.

    Rejected with 422 when the result would go below zero.
    """
    reason = data.reason
    if reason is None:
        reason = MovementReason.MANUAL_ADD if data.delta > 0 else MovementReason.MANUAL_REMOVE
    ledger = StockLedger(db, user_id)
    return await ledger.adjust_raw_material(
        data.raw_material_id,
        data.delta,
        reason,
        reference_type="manual",
        notes=data.notes,
    )


@router.get("/raw-materials/low-stock", response_model=List[RawMaterialStockResponse])
async def get_low_stock_materials(db: DB):
    """Raw materials at or below their reorder level."""
    return await StockLedger(db).low_stock_materials()


@router.get("/movements/{item_type}/{item_id}", response_model=List[StockMovementResponse])
async def get_stock_movements(
    item_type: StockItemType,
    item_id: UUID,
    db: DB,
    limit: int = Query(100, ge=1, le=1000),
):
    return await StockLedger(db).movements(item_type, item_id, limit=limit)
