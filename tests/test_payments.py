import uuid
from datetime import date
from decimal import Decimal

import pytest

from backoffice.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from backoffice.schemas.billing import InvoiceItemInput
from backoffice.services.invoice_service import InvoiceService
from backoffice.services.payment_service import PaymentService, derive_payment_status


@pytest.fixture
async def invoice(db, seed):
    """Ad-hoc invoice for 1416.00."""
    store = await seed.store()
    product = await seed.product(mrp="100", gst_rate="18")
    return await InvoiceService(db).create_ad_hoc(
        store.id,
        [InvoiceItemInput(product_id=product.id, quantity=10, margin_percentage=Decimal("20"))],
        invoice_date=date(2025, 10, 1),
    )


class TestDerivePaymentStatus:
    @pytest.mark.parametrize("paid, expected", [
        ("0", "pending"),
        ("0.01", "partial"),
        ("1415.98", "partial"),
        ("1415.99", "paid"),
        ("1416", "paid"),
        ("2000", "paid"),
    ])
    def test_thresholds(self, paid, expected):
        status = derive_payment_status(Decimal(paid), Decimal("1416"), tolerance=Decimal("0.01"))
        assert status.value == expected


class TestRecord:
    async def test_partial_then_paid(self, db, invoice):
        service = PaymentService(db)

        first = await service.record(invoice.id, "1000", "cash", payment_date=date(2025, 10, 5))
        assert first["payment_status"] == "partial"
        assert first["total_paid"] == Decimal("1000")
        assert first["balance"] == Decimal("416")
        assert invoice.payment_status == "partial"

        second = await service.record(invoice.id, "416", "upi", payment_date=date(2025, 10, 9),
                                      reference_number="UPI-7781")
        assert second["payment_status"] == "paid"
        assert second["balance"] == 0
        assert second["overpaid"] is False
        assert invoice.total_paid == Decimal("1416")

    async def test_overpayment_is_accepted_and_flagged(self, db, invoice):
        result = await PaymentService(db).record(invoice.id, "1500", "cheque")
        assert result["payment_status"] == "paid"
        assert result["overpaid"] is True
        assert result["balance"] == Decimal("-84")

    @pytest.mark.parametrize("amount", ["0", "-10"])
    async def test_amount_must_be_positive(self, db, invoice, amount):
        with pytest.raises(ValidationError):
            await PaymentService(db).record(invoice.id, amount, "cash")

    async def test_unknown_method(self, db, invoice):
        with pytest.raises(ValidationError):
            await PaymentService(db).record(invoice.id, "10", "barter")

    async def test_cancelled_invoice(self, db, invoice):
        await InvoiceService(db).cancel(invoice.id)
        with pytest.raises(InvalidStateError):
            await PaymentService(db).record(invoice.id, "10", "cash")


class TestQueries:
    async def test_history_is_oldest_first(self, db, invoice):
        service = PaymentService(db)
        await service.record(invoice.id, "300", "cash", payment_date=date(2025, 10, 9))
        await service.record(invoice.id, "200", "cash", payment_date=date(2025, 10, 3))

        history = await service.history(invoice.id)
        assert [p.amount for p in history] == [Decimal("200"), Decimal("300")]

    async def test_history_of_unknown_invoice(self, db):
        with pytest.raises(NotFoundError):
            await PaymentService(db).history(uuid.uuid4())

    async def test_outstanding_excludes_paid_and_cancelled(self, db, seed, invoice):
        service = PaymentService(db)
        store = await seed.store(name="Second")
        product = await seed.product(name="Second product")
        invoices = InvoiceService(db)
        paid = await invoices.create_ad_hoc(store.id, [InvoiceItemInput(product_id=product.id, quantity=1)])
        cancelled = await invoices.create_ad_hoc(store.id, [InvoiceItemInput(product_id=product.id, quantity=1)])
        await service.record(paid.id, str(paid.total_amount), "cash")
        await invoices.cancel(cancelled.id)

        assert [i.id for i in await service.outstanding()] == [invoice.id]
