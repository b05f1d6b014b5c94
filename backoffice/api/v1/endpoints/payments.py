"""API endpoints for the payment ledger."""
from typing import List
from uuid import UUID

from fastapi import APIRouter, status

from backoffice.api.deps import DB, CurrentUserId
from backoffice.schemas.billing import PaymentCreate, PaymentResponse, PaymentRecordResponse
from backoffice.services.payment_service import PaymentService


router = APIRouter()


@router.post("", response_model=PaymentRecordResponse, status_code=status.HTTP_201_CREATED)
async def record_payment(data: PaymentCreate, db: DB, user_id: CurrentUserId):
    """Append a payment; the invoice's paid amount and status are re-derived."""
    service = PaymentService(db, user_id)
    return await service.record(
        data.invoice_id,
        data.amount,
        data.method,
        payment_date=data.payment_date,
        reference_number=data.reference_number,
        notes=data.notes,
    )


@router.get("/invoice/{invoice_id}", response_model=List[PaymentResponse])
async def get_payment_history(invoice_id: UUID, db: DB):
    return await PaymentService(db).history(invoice_id)
