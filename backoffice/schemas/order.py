from pydantic import Field
from typing import Optional, List, Literal
from datetime import datetime
from decimal import Decimal
import uuid

from backoffice.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


# ==================== ORDER ITEM SCHEMAS ====================

class OrderItemCreate(BaseCreateSchema):
    """Order line as entered by the sales rep."""
    product_id: uuid.UUID
    quantity: int
    stock_qty: Optional[int] = Field(None, description="Store's on-hand count when ordering")


class OrderItemResponse(BaseResponseSchema):
    id: uuid.UUID
    product_id: uuid.UUID
    quantity: int
    stock_qty: Optional[int] = None
    mrp: Decimal


# ==================== ORDER SCHEMAS ====================

class OrderCreate(BaseCreateSchema):
    store_id: uuid.UUID
    items: List[OrderItemCreate]
    notes: Optional[str] = None


class OrderUpdate(BaseUpdateSchema):
    """Replace items and/or notes. Omitted fields are left unchanged."""
    items: Optional[List[OrderItemCreate]] = None
    notes: Optional[str] = None


class OrderResponse(BaseResponseSchema):
    id: uuid.UUID
    order_number: str
    store_id: uuid.UUID
    status: str
    notes: Optional[str] = None
    created_by: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    invoiced_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []


class StockWarning(BaseResponseSchema):
    """Advisory shortage returned by approval; never blocks it."""
    product_id: uuid.UUID
    product_name: str
    required: int
    available: int
    kind: Literal["out_of_stock", "low_stock"]


class OrderApprovalResponse(BaseResponseSchema):
    order: OrderResponse
    warnings: List[StockWarning] = []
