"""API endpoints for finished-goods batches."""
from typing import Optional, List
from uuid import UUID

from fastapi import APIRouter, Query

from backoffice.api.deps import DB, CurrentUserId
from backoffice.models.production import BatchStatus
from backoffice.schemas.production import BatchResponse, BatchStatusUpdate
from backoffice.services.batch_service import BatchService


router = APIRouter()


@router.get("", response_model=List[BatchResponse])
async def list_batches(
    db: DB,
    status: Optional[BatchStatus] = Query(None),
    product_id: Optional[UUID] = Query(None),
):
    """
    Batches in FIFO order.

    Without a status, the available batches (what dispatch draws from).
    """
    service = BatchService(db)
    if status:
        return await service.list_by_status(status.value, product_id=product_id)
    return await service.list_available(product_id=product_id)


@router.get("/product/{product_id}", response_model=List[BatchResponse])
async def list_product_batches(product_id: UUID, db: DB, status: Optional[BatchStatus] = Query(None)):
    return await BatchService(db).list_by_product(product_id, status=status.value if status else None)


@router.get("/{batch_id}", response_model=BatchResponse)
async def get_batch(batch_id: UUID, db: DB):
    return await BatchService(db).get(batch_id)


@router.put("/{batch_id}/status", response_model=BatchResponse)
async def update_batch_status(batch_id: UUID, data: BatchStatusUpdate, db: DB, user_id: CurrentUserId):
    """Expire or recall a batch; its remaining quantity leaves stock. Irreversible."""
    return await BatchService(db, user_id).set_status(batch_id, data.status.value, notes=data.notes)
