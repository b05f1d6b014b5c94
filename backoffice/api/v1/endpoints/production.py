"""API endpoints for production orders and suggestions."""
from typing import Optional, List
from uuid import UUID

from fastapi import APIRouter, Query, status

from backoffice.api.deps import DB, CurrentUserId
from backoffice.models.production import ProductionStatus
from backoffice.schemas.production import (
    ProductionOrderCreate, ProductionComplete,
    ProductionOrderResponse, ProductionOrderCreateResponse, ProductionSuggestion,
)
from backoffice.services.production_service import ProductionService


router = APIRouter()


@router.get("/suggestions", response_model=List[ProductionSuggestion])
async def get_production_suggestions(db: DB):
    """What to produce for submitted and approved orders, and what stock allows."""
    return await ProductionService(db).suggestions()


@router.get("", response_model=List[ProductionOrderResponse])
async def list_production_orders(
    db: DB,
    status: Optional[ProductionStatus] = Query(None),
    product_id: Optional[UUID] = Query(None),
):
    return await ProductionService(db).list(status=status.value if status else None, product_id=product_id)


@router.get("/{production_order_id}", response_model=ProductionOrderResponse)
async def get_production_order(production_order_id: UUID, db: DB):
    return await ProductionService(db).get(production_order_id)


@router.post("", response_model=ProductionOrderCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_production_order(data: ProductionOrderCreate, db: DB, user_id: CurrentUserId):
    service = ProductionService(db, user_id)
    production_order, warnings = await service.create(
        data.product_id,
        data.quantity_to_produce,
        source_order_id=data.source_order_id,
        notes=data.notes,
    )
    return {"production_order": production_order, "warnings": warnings}


# ==================== Lifecycle ====================

@router.post("/{production_order_id}/start", response_model=ProductionOrderResponse)
async def start_production(production_order_id: UUID, db: DB, user_id: CurrentUserId):
    """Blocks with 422 when raw material stock cannot cover the planned quantity."""
    return await ProductionService(db, user_id).start(production_order_id)


@router.post("/{production_order_id}/complete", response_model=ProductionOrderResponse)
async def complete_production(
    production_order_id: UUID,
    db: DB,
    user_id: CurrentUserId,
    data: Optional[ProductionComplete] = None,
):
    """
    Record the actual yield.

    Materials are charged for the quantity actually produced and one
    batch is created for it.
    """
    data = data or ProductionComplete()
    service = ProductionService(db, user_id)
    return await service.complete(
        production_order_id,
        quantity_produced=data.quantity_produced,
        production_date=data.production_date,
    )


@router.post("/{production_order_id}/cancel", response_model=ProductionOrderResponse)
async def cancel_production(production_order_id: UUID, db: DB, user_id: CurrentUserId):
    return await ProductionService(db, user_id).cancel(production_order_id)
