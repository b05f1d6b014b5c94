"""
Payment Ledger.

Append-only payments against invoices:
- record() adds a Payment and re-derives the invoice's total_paid and payment_status
- total_paid is always recomputed from the payment rows, never incremented
- overpayment is accepted and flagged, not rejected
"""

import logging
import uuid
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Dict, Any, List, Union

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.config import settings
from backoffice.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from backoffice.models.billing import Invoice, InvoiceStatus, Payment, PaymentMethod, PaymentStatus

logger = logging.getLogger(__name__)


def derive_payment_status(
    total_paid: Decimal,
    total_amount: Decimal,
    tolerance: Optional[Decimal] = None,
) -> PaymentStatus:
    """
    paid when total_paid covers the total within the tolerance,
    partial when something was paid, pending otherwise.
    """
    tolerance = settings.PAYMENT_TOLERANCE if tolerance is None else tolerance
    if total_paid > 0 and total_paid >= total_amount - tolerance:
        return PaymentStatus.PAID
    if total_paid > 0:
        return PaymentStatus.PARTIAL
    return PaymentStatus.PENDING


class PaymentService:
    """Records and reports invoice payments."""

    def __init__(self, db: AsyncSession, user_id: Optional[uuid.UUID] = None):
        self.db = db
        self.user_id = user_id

    async def _lock_invoice(self, invoice_id: uuid.UUID) -> Invoice:
        result = await self.db.execute(
            select(Invoice).where(Invoice.id == invoice_id).with_for_update()
        )
        invoice = result.scalar_one_or_none()
        if not invoice:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    async def _sum_payments(self, invoice_id: uuid.UUID) -> Decimal:
        result = await self.db.execute(
            select(func.coalesce(func.sum(Payment.amount), 0)).where(Payment.invoice_id == invoice_id)
        )
        # SQLite sums Numeric as float
        return Decimal(str(result.scalar_one())).quantize(settings.CURRENCY_MINOR_UNIT, rounding=ROUND_HALF_UP)

    async def record(
        self,
        invoice_id: uuid.UUID,
        amount: Union[Decimal, str, int],
        method: Union[PaymentMethod, str],
        payment_date: Optional[date] = None,
        reference_number: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Append a payment and refresh the invoice's payment status.

        Returns:
            {payment, total_paid, balance, payment_status, overpaid}

        Raises:
            ValidationError: amount not positive or unknown method
            InvalidStateError: invoice is cancelled
        """
        amount = Decimal(str(amount))
        if amount <= 0:
            raise ValidationError("Payment amount must be greater than zero")
        try:
            method = PaymentMethod(method).value
        except ValueError:
            raise ValidationError(f"Unknown payment method '{method}'") from None

        invoice = await self._lock_invoice(invoice_id)
        if invoice.status == InvoiceStatus.CANCELLED.value:
            raise InvalidStateError(f"Cannot record a payment against cancelled invoice {invoice.invoice_number}")

        payment = Payment(
            invoice_id=invoice.id,
            amount=amount,
            method=method,
            payment_date=payment_date or date.today(),
            reference_number=reference_number,
            notes=notes,
            collected_by=self.user_id,
        )
        self.db.add(payment)
        await self.db.flush()

        summary = await self.refresh_invoice(invoice)
        logger.info(
            f"Payment of {amount} ({method}) recorded on invoice {invoice.invoice_number}; "
            f"paid {summary['total_paid']} of {invoice.total_amount}, status {summary['payment_status']}"
        )
        return {"payment": payment, **summary}

    async def refresh_invoice(self, invoice: Invoice) -> Dict[str, Any]:
        """Recompute total_paid and payment_status from the ledger."""
        total_paid = await self._sum_payments(invoice.id)
        status = derive_payment_status(total_paid, invoice.total_amount)
        overpaid = total_paid > invoice.total_amount + settings.PAYMENT_TOLERANCE

        invoice.total_paid = total_paid
        invoice.payment_status = status.value
        await self.db.flush()

        if overpaid:
            logger.warning(
                f"Invoice {invoice.invoice_number} overpaid: {total_paid} received against {invoice.total_amount}"
            )
        return {
            "total_paid": total_paid,
            "balance": invoice.total_amount - total_paid,
            "payment_status": status.value,
            "overpaid": overpaid,
        }

    async def history(self, invoice_id: uuid.UUID) -> List[Payment]:
        """Payments oldest first (payment date, then entry time)."""
        if not await self.db.get(Invoice, invoice_id):
            raise NotFoundError("Invoice", invoice_id)
        result = await self.db.execute(
            select(Payment)
            .where(Payment.invoice_id == invoice_id)
            .order_by(Payment.payment_date.asc(), Payment.created_at.asc())
        )
        return list(result.scalars().all())

    async def outstanding(self, store_id: Optional[uuid.UUID] = None) -> List[Invoice]:
        """Active invoices that are not fully paid, earliest due first."""
        query = select(Invoice).where(
            Invoice.status == InvoiceStatus.ACTIVE.value,
            Invoice.payment_status != PaymentStatus.PAID.value,
        )
        if store_id:
            query = query.where(Invoice.store_id == store_id)
        result = await self.db.execute(query.order_by(Invoice.due_date.asc(), Invoice.invoice_date.asc()))
        return list(result.scalars().all())
