from typing import Optional, List
from datetime import datetime
import uuid

from backoffice.schemas.base import BaseResponseSchema, BaseCreateSchema


class DispatchTransit(BaseCreateSchema):
    vehicle_number: Optional[str] = None


class BatchAllocationResponse(BaseResponseSchema):
    id: uuid.UUID
    batch_id: uuid.UUID
    quantity: int


class DispatchItemResponse(BaseResponseSchema):
    id: uuid.UUID
    product_id: uuid.UUID
    quantity: int
    allocations: List[BatchAllocationResponse] = []


class DispatchResponse(BaseResponseSchema):
    id: uuid.UUID
    dispatch_number: str
    invoice_id: uuid.UUID
    store_id: uuid.UUID
    status: str
    vehicle_number: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    allocated_at: Optional[datetime] = None
    dispatched_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    items: List[DispatchItemResponse] = []
