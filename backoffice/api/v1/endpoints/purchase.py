"""API endpoints for purchase requests, receipts and vendor bills."""
from typing import Optional, List
from uuid import UUID
from datetime import date

from fastapi import APIRouter, Query, status

from backoffice.api.deps import DB, CurrentUserId
from backoffice.models.purchase import PurchaseRequestStatus, BillPaymentStatus
from backoffice.schemas.purchase import (
    PurchaseRequestCreate, PurchaseRequestUpdate, PurchaseRequestResponse,
    ReceiptCreate, DirectReceiptCreate, BillPayment,
    PurchaseReceiptResponse, BillBrief, PaymentReminders,
)
from backoffice.services.purchase_service import PurchaseService


router = APIRouter()


# ==================== Purchase Requests ====================

@router.get("/requests", response_model=List[PurchaseRequestResponse])
async def list_purchase_requests(
    db: DB,
    status: Optional[PurchaseRequestStatus] = Query(None),
    vendor_id: Optional[UUID] = Query(None),
):
    return await PurchaseService(db).list(status=status.value if status else None, vendor_id=vendor_id)


@router.get("/requests/{request_id}", response_model=PurchaseRequestResponse)
async def get_purchase_request(request_id: UUID, db: DB):
    return await PurchaseService(db).get(request_id)


@router.post("/requests", response_model=PurchaseRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_purchase_request(data: PurchaseRequestCreate, db: DB, user_id: CurrentUserId):
    service = PurchaseService(db, user_id)
    return await service.create(data.vendor_id, data.items, expected_date=data.expected_date, notes=data.notes)


@router.put("/requests/{request_id}", response_model=PurchaseRequestResponse)
async def update_purchase_request(request_id: UUID, data: PurchaseRequestUpdate, db: DB, user_id: CurrentUserId):
    """Draft requests only."""
    service = PurchaseService(db, user_id)
    return await service.update(request_id, items=data.items, expected_date=data.expected_date, notes=data.notes)


@router.post("/requests/{request_id}/submit", response_model=PurchaseRequestResponse)
async def submit_purchase_request(request_id: UUID, db: DB, user_id: CurrentUserId):
    return await PurchaseService(db, user_id).submit(request_id)


@router.post("/requests/{request_id}/cancel", response_model=PurchaseRequestResponse)
async def cancel_purchase_request(request_id: UUID, db: DB, user_id: CurrentUserId):
    return await PurchaseService(db, user_id).cancel(request_id)


@router.post("/requests/{request_id}/close", response_model=PurchaseRequestResponse)
async def close_purchase_request(request_id: UUID, db: DB, user_id: CurrentUserId):
    """Short-close a partially received request."""
    return await PurchaseService(db, user_id).close(request_id)


# ==================== Receipts ====================

@router.post(
    "/requests/{request_id}/receipts",
    response_model=PurchaseReceiptResponse,
    status_code=status.HTTP_201_CREATED,
)
async def receive_goods(request_id: UUID, data: ReceiptCreate, db: DB, user_id: CurrentUserId):
    """Receive goods against a request; raw material stock goes up and a bill is raised."""
    service = PurchaseService(db, user_id)
    return await service.record_receipt(request_id, data.lines, receipt_date=data.receipt_date, notes=data.notes)


@router.post("/receipts", response_model=PurchaseReceiptResponse, status_code=status.HTTP_201_CREATED)
async def receive_direct(data: DirectReceiptCreate, db: DB, user_id: CurrentUserId):
    service = PurchaseService(db, user_id)
    return await service.record_direct_receipt(
        data.vendor_id, data.items, receipt_date=data.receipt_date, notes=data.notes
    )


@router.get("/receipts", response_model=List[PurchaseReceiptResponse])
async def list_receipts(
    db: DB,
    vendor_id: Optional[UUID] = Query(None),
    payment_status: Optional[BillPaymentStatus] = Query(None),
):
    return await PurchaseService(db).list_receipts(
        vendor_id=vendor_id,
        payment_status=payment_status.value if payment_status else None,
    )


@router.get("/receipts/{receipt_id}", response_model=PurchaseReceiptResponse)
async def get_receipt(receipt_id: UUID, db: DB):
    return await PurchaseService(db).get_receipt(receipt_id)


# ==================== Vendor Bills ====================

@router.post("/receipts/{receipt_id}/pay", response_model=PurchaseReceiptResponse)
async def pay_bill(receipt_id: UUID, data: BillPayment, db: DB, user_id: CurrentUserId):
    service = PurchaseService(db, user_id)
    return await service.mark_bill_paid(
        receipt_id, payment_date=data.payment_date, payment_reference=data.payment_reference
    )


@router.get("/bills/overdue", response_model=List[BillBrief])
async def get_overdue_bills(db: DB, as_of: Optional[date] = Query(None)):
    return await PurchaseService(db).overdue_bills(as_of)


@router.get("/bills/due-soon", response_model=List[BillBrief])
async def get_due_soon_bills(db: DB, as_of: Optional[date] = Query(None)):
    return await PurchaseService(db).due_soon_bills(as_of)


@router.get("/bills/reminders", response_model=PaymentReminders)
async def get_payment_reminders(db: DB, as_of: Optional[date] = Query(None)):
    return await PurchaseService(db).payment_reminders(as_of)
