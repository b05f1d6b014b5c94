"""API endpoints for dispatches: the only path by which finished goods leave stock."""
from typing import Optional, List
from uuid import UUID

from fastapi import APIRouter, Query

from backoffice.api.deps import DB, CurrentUserId
from backoffice.models.dispatch import DispatchStatus
from backoffice.schemas.dispatch import DispatchResponse, DispatchTransit
from backoffice.services.dispatch_service import DispatchService


router = APIRouter()


@router.get("", response_model=List[DispatchResponse])
async def list_dispatches(
    db: DB,
    status: Optional[DispatchStatus] = Query(None),
    invoice_id: Optional[UUID] = Query(None),
):
    return await DispatchService(db).list(status=status.value if status else None, invoice_id=invoice_id)


@router.get("/{dispatch_id}", response_model=DispatchResponse)
async def get_dispatch(dispatch_id: UUID, db: DB):
    return await DispatchService(db).get(dispatch_id)


@router.post("/{dispatch_id}/allocate", response_model=DispatchResponse)
async def allocate_dispatch(dispatch_id: UUID, db: DB, user_id: CurrentUserId):
    """Draw batches FIFO and take the goods out of stock. 422 when stock is short."""
    return await DispatchService(db, user_id).allocate(dispatch_id)


@router.post("/{dispatch_id}/in-transit", response_model=DispatchResponse)
async def mark_in_transit(
    dispatch_id: UUID,
    db: DB,
    user_id: CurrentUserId,
    data: Optional[DispatchTransit] = None,
):
    vehicle_number = data.vehicle_number if data else None
    return await DispatchService(db, user_id).mark_in_transit(dispatch_id, vehicle_number=vehicle_number)


@router.post("/{dispatch_id}/deliver", response_model=DispatchResponse)
async def mark_delivered(dispatch_id: UUID, db: DB, user_id: CurrentUserId):
    return await DispatchService(db, user_id).mark_delivered(dispatch_id)


@router.post("/{dispatch_id}/cancel", response_model=DispatchResponse)
async def cancel_dispatch(dispatch_id: UUID, db: DB, user_id: CurrentUserId):
    """A ready dispatch gives its batch allocations back to stock."""
    return await DispatchService(db, user_id).cancel(dispatch_id)
