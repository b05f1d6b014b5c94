from pydantic import Field
from typing import Optional, List
from datetime import datetime, date
from decimal import Decimal
import uuid

from backoffice.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


# ==================== PURCHASE REQUEST SCHEMAS ====================

class PurchaseRequestItemCreate(BaseCreateSchema):
    raw_material_id: uuid.UUID
    quantity: Decimal = Field(..., description="Quantity ordered in the material's unit")
    unit_price: Decimal


class PurchaseRequestCreate(BaseCreateSchema):
    vendor_id: uuid.UUID
    items: List[PurchaseRequestItemCreate]
    expected_date: Optional[date] = None
    notes: Optional[str] = None


class PurchaseRequestUpdate(BaseUpdateSchema):
    items: Optional[List[PurchaseRequestItemCreate]] = None
    expected_date: Optional[date] = None
    notes: Optional[str] = None


class PurchaseRequestItemResponse(BaseResponseSchema):
    id: uuid.UUID
    raw_material_id: uuid.UUID
    quantity_ordered: Decimal
    quantity_received: Decimal
    quantity_outstanding: Decimal
    unit_price: Decimal


class PurchaseRequestResponse(BaseResponseSchema):
    id: uuid.UUID
    request_number: str
    vendor_id: uuid.UUID
    status: str
    expected_date: Optional[date] = None
    notes: Optional[str] = None
    total_amount: Decimal
    created_by: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime
    items: List[PurchaseRequestItemResponse] = []


# ==================== RECEIPT SCHEMAS ====================

class ReceiptLine(BaseCreateSchema):
    """Goods received against one request line."""
    item_id: uuid.UUID
    quantity_received: Decimal


class ReceiptCreate(BaseCreateSchema):
    lines: List[ReceiptLine]
    receipt_date: Optional[date] = None
    notes: Optional[str] = None


class DirectReceiptItem(BaseCreateSchema):
    raw_material_id: uuid.UUID
    quantity_received: Decimal
    unit_price: Decimal


class DirectReceiptCreate(BaseCreateSchema):
    vendor_id: uuid.UUID
    items: List[DirectReceiptItem]
    receipt_date: Optional[date] = None
    notes: Optional[str] = None


class BillPayment(BaseCreateSchema):
    payment_date: Optional[date] = None
    payment_reference: Optional[str] = Field(None, max_length=100)


class PurchaseReceiptItemResponse(BaseResponseSchema):
    id: uuid.UUID
    request_item_id: Optional[uuid.UUID] = None
    raw_material_id: uuid.UUID
    quantity_received: Decimal
    unit_price: Decimal
    line_total: Decimal


class PurchaseReceiptResponse(BaseResponseSchema):
    id: uuid.UUID
    receipt_number: str
    vendor_id: uuid.UUID
    purchase_request_id: Optional[uuid.UUID] = None
    receipt_date: date
    due_date: date
    total_amount: Decimal
    payment_status: str
    payment_date: Optional[date] = None
    payment_reference: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    items: List[PurchaseReceiptItemResponse] = []


class BillBrief(BaseResponseSchema):
    id: uuid.UUID
    receipt_number: str
    vendor_id: uuid.UUID
    receipt_date: date
    due_date: date
    total_amount: Decimal
    payment_status: str


class PaymentReminders(BaseResponseSchema):
    """Vendor bills needing attention as of a date."""
    as_of: date
    overdue_count: int
    overdue_total: Decimal
    due_soon_count: int
    due_soon_total: Decimal
    overdue: List[BillBrief] = []
    due_soon: List[BillBrief] = []
