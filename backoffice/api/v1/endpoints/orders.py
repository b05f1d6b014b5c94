"""API endpoints for sales orders."""
from typing import Optional, List
from uuid import UUID

from fastapi import APIRouter, Query, status

from backoffice.api.deps import DB, CurrentUserId
from backoffice.models.order import OrderStatus
from backoffice.schemas.order import OrderCreate, OrderUpdate, OrderResponse, OrderApprovalResponse
from backoffice.services.document_sequence_service import DocumentSequenceService
from backoffice.services.order_service import OrderService


router = APIRouter()


@router.get("/next-number")
async def get_next_order_number(db: DB):
    """Preview the next order number without consuming it."""
    next_number = await DocumentSequenceService(db).preview_next_number("ORD")
    return {"next_number": next_number}


@router.get("", response_model=List[OrderResponse])
async def list_orders(
    db: DB,
    status: Optional[OrderStatus] = Query(None),
    store_id: Optional[UUID] = Query(None),
):
    service = OrderService(db)
    return await service.list(status=status.value if status else None, store_id=store_id)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: UUID, db: DB):
    return await OrderService(db).get(order_id)


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(data: OrderCreate, db: DB, user_id: CurrentUserId):
    """Create a draft order. MRP is snapshotted per line."""
    service = OrderService(db, user_id)
    return await service.create(data.store_id, data.items, data.notes)


@router.put("/{order_id}", response_model=OrderResponse)
async def update_order(order_id: UUID, data: OrderUpdate, db: DB, user_id: CurrentUserId):
    service = OrderService(db, user_id)
    return await service.update(order_id, items=data.items, notes=data.notes)


# ==================== Lifecycle ====================

@router.post("/{order_id}/submit", response_model=OrderResponse)
async def submit_order(order_id: UUID, db: DB, user_id: CurrentUserId):
    return await OrderService(db, user_id).submit(order_id)


@router.post("/{order_id}/approve", response_model=OrderApprovalResponse)
async def approve_order(order_id: UUID, db: DB, user_id: CurrentUserId):
    """
    Approve a submitted order.

    Stock shortages come back as warnings; they never block approval.
    """
    return await OrderService(db, user_id).approve(order_id)


@router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(order_id: UUID, db: DB, user_id: CurrentUserId):
    return await OrderService(db, user_id).cancel(order_id)


@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_order(order_id: UUID, db: DB, user_id: CurrentUserId):
    """Permanently delete a draft or cancelled order."""
    await OrderService(db, user_id).delete(order_id)
