"""API endpoints for tax invoices."""
from typing import Optional, List
from uuid import UUID

from fastapi import APIRouter, Query, status

from backoffice.api.deps import DB, CurrentUserId
from backoffice.models.billing import InvoiceStatus, BillingStatus, PaymentStatus
from backoffice.schemas.billing import (
    InvoiceFromOrderCreate, InvoiceAdHocCreate,
    BillingStatusUpdate, PaymentStatusUpdate,
    InvoiceResponse, InvoiceBrief, HSNSummaryLine,
)
from backoffice.services.document_sequence_service import DocumentSequenceService
from backoffice.services.invoice_service import InvoiceService
from backoffice.services.payment_service import PaymentService


router = APIRouter()


@router.get("/next-number")
async def get_next_invoice_number(db: DB):
    next_number = await DocumentSequenceService(db).preview_next_number("INV")
    return {"next_number": next_number}


@router.get("", response_model=List[InvoiceBrief])
async def list_invoices(
    db: DB,
    status: Optional[InvoiceStatus] = Query(None),
    billing_status: Optional[BillingStatus] = Query(None),
    payment_status: Optional[PaymentStatus] = Query(None),
    store_id: Optional[UUID] = Query(None),
):
    return await InvoiceService(db).list(
        status=status.value if status else None,
        billing_status=billing_status.value if billing_status else None,
        payment_status=payment_status.value if payment_status else None,
        store_id=store_id,
    )


@router.get("/outstanding", response_model=List[InvoiceBrief])
async def list_outstanding_invoices(db: DB, store_id: Optional[UUID] = Query(None)):
    """Active invoices not fully paid, earliest due first."""
    return await PaymentService(db).outstanding(store_id=store_id)


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(invoice_id: UUID, db: DB):
    return await InvoiceService(db).get(invoice_id)


@router.get("/{invoice_id}/hsn-summary", response_model=List[HSNSummaryLine])
async def get_hsn_summary(invoice_id: UUID, db: DB):
    """Taxable value and tax grouped by HSN code and rate."""
    return await InvoiceService(db).hsn_breakdown(invoice_id)


# ==================== Generation ====================

@router.post("/from-order", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice_from_order(data: InvoiceFromOrderCreate, db: DB, user_id: CurrentUserId):
    """
    Invoice an approved order.

    Quantities below the ordered quantity short-close the remainder; the
    order moves to invoiced either way.
    """
    service = InvoiceService(db, user_id)
    return await service.create_from_order(
        data.order_id,
        data.items,
        is_igst=data.is_igst,
        invoice_date=data.invoice_date,
        due_date=data.due_date,
        notes=data.notes,
    )


@router.post("", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_ad_hoc_invoice(data: InvoiceAdHocCreate, db: DB, user_id: CurrentUserId):
    service = InvoiceService(db, user_id)
    return await service.create_ad_hoc(
        data.store_id,
        data.items,
        is_igst=data.is_igst,
        invoice_date=data.invoice_date,
        due_date=data.due_date,
        notes=data.notes,
    )


# ==================== Status ====================

@router.post("/{invoice_id}/cancel", response_model=InvoiceResponse)
async def cancel_invoice(invoice_id: UUID, db: DB, user_id: CurrentUserId):
    return await InvoiceService(db, user_id).cancel(invoice_id)


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_invoice(invoice_id: UUID, db: DB, user_id: CurrentUserId):
    """Only cancelled invoices without payments can be deleted."""
    await InvoiceService(db, user_id).delete(invoice_id)


@router.put("/{invoice_id}/billing-status", response_model=InvoiceResponse)
async def update_billing_status(invoice_id: UUID, data: BillingStatusUpdate, db: DB, user_id: CurrentUserId):
    return await InvoiceService(db, user_id).update_billing_status(invoice_id, data.billing_status.value)


@router.put("/{invoice_id}/payment-status", response_model=InvoiceResponse)
async def update_payment_status(invoice_id: UUID, data: PaymentStatusUpdate, db: DB, user_id: CurrentUserId):
    service = InvoiceService(db, user_id)
    return await service.update_payment_status(
        invoice_id,
        data.payment_status.value,
        amount=data.amount,
        method=data.method.value if data.method else None,
        payment_date=data.payment_date,
        reference_number=data.reference_number,
        notes=data.notes,
    )
