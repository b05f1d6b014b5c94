from pydantic import Field
from typing import Optional, List
from datetime import datetime, date
from decimal import Decimal
import uuid

from backoffice.models.billing import BillingStatus, PaymentStatus, PaymentMethod
from backoffice.schemas.base import BaseResponseSchema, BaseCreateSchema


# ==================== INVOICE SCHEMAS ====================

class InvoiceItemInput(BaseCreateSchema):
    """
    Line to invoice.

    margin_percentage falls back to the store's remembered margin for the
    product, then to 0.
    """
    product_id: uuid.UUID
    quantity: int
    margin_percentage: Optional[Decimal] = None


class InvoiceFromOrderCreate(BaseCreateSchema):
    order_id: uuid.UUID
    items: List[InvoiceItemInput]
    is_igst: bool = False
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None


class InvoiceAdHocCreate(BaseCreateSchema):
    store_id: uuid.UUID
    items: List[InvoiceItemInput]
    is_igst: bool = False
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None


class BillingStatusUpdate(BaseCreateSchema):
    billing_status: BillingStatus


class PaymentStatusUpdate(BaseCreateSchema):
    """Setting `paid` records the amount through the payment ledger."""
    payment_status: PaymentStatus
    amount: Optional[Decimal] = None
    method: Optional[PaymentMethod] = None
    payment_date: Optional[date] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None


class InvoiceItemResponse(BaseResponseSchema):
    id: uuid.UUID
    product_id: uuid.UUID
    product_name: str
    hsn_code: Optional[str] = None
    quantity: int
    quantity_ordered: Optional[int] = None
    mrp: Decimal
    margin_percentage: Decimal
    unit_price: Decimal
    gst_rate: Decimal
    line_total: Decimal
    cgst_amount: Decimal
    sgst_amount: Decimal
    igst_amount: Decimal


class InvoiceResponse(BaseResponseSchema):
    id: uuid.UUID
    invoice_number: str
    store_id: uuid.UUID
    order_id: Optional[uuid.UUID] = None
    status: str
    billing_status: str
    payment_status: str
    is_igst: bool
    subtotal: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    round_off: Decimal
    total_amount: Decimal
    total_paid: Decimal
    balance: Decimal
    invoice_date: date
    due_date: Optional[date] = None
    notes: Optional[str] = None
    created_by: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime
    cancelled_at: Optional[datetime] = None
    items: List[InvoiceItemResponse] = []


class InvoiceBrief(BaseResponseSchema):
    """Invoice without lines, for lists and outstanding reports."""
    id: uuid.UUID
    invoice_number: str
    store_id: uuid.UUID
    order_id: Optional[uuid.UUID] = None
    status: str
    billing_status: str
    payment_status: str
    total_amount: Decimal
    total_paid: Decimal
    balance: Decimal
    invoice_date: date
    due_date: Optional[date] = None


class HSNSummaryLine(BaseResponseSchema):
    hsn_code: Optional[str] = None
    gst_rate: Decimal
    quantity: int
    taxable_value: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    total_tax: Decimal


# ==================== PAYMENT SCHEMAS ====================

class PaymentCreate(BaseCreateSchema):
    invoice_id: uuid.UUID
    amount: Decimal
    method: PaymentMethod
    payment_date: Optional[date] = None
    reference_number: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class PaymentResponse(BaseResponseSchema):
    id: uuid.UUID
    invoice_id: uuid.UUID
    amount: Decimal
    method: str
    payment_date: date
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    collected_by: Optional[uuid.UUID] = None
    created_at: datetime


class PaymentRecordResponse(BaseResponseSchema):
    payment: PaymentResponse
    total_paid: Decimal
    balance: Decimal
    payment_status: str
    overpaid: bool
