from datetime import date
from decimal import Decimal

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from backoffice.jobs.overdue_sweep import aging_bucket, register_overdue_sweep, run_overdue_sweep
from backoffice.schemas.billing import InvoiceItemInput
from backoffice.schemas.purchase import DirectReceiptItem
from backoffice.services.invoice_service import InvoiceService
from backoffice.services.payment_service import PaymentService
from backoffice.services.purchase_service import PurchaseService


async def make_invoice(db, store, product, invoice_date, due_date=None):
    return await InvoiceService(db).create_ad_hoc(
        store.id,
        [InvoiceItemInput(product_id=product.id, quantity=1)],
        invoice_date=invoice_date,
        due_date=due_date,
    )


class TestAgingBuckets:
    def test_boundaries(self):
        assert aging_bucket(1) == "1-30 days"
        assert aging_bucket(60) == "31-60 days"
        assert aging_bucket(61) == "61-90 days"
        assert aging_bucket(91) == "90+ days"
        assert aging_bucket(-3) is None


class TestOverdueSweep:
    async def test_marks_unpaid_past_due(self, db, seed):
        store = await seed.store()
        product = await seed.product(mrp="100", gst_rate="0")
        late = await make_invoice(db, store, product, date(2025, 8, 1), due_date=date(2025, 9, 1))
        settled = await make_invoice(db, store, product, date(2025, 8, 1), due_date=date(2025, 9, 1))
        current = await make_invoice(db, store, product, date(2025, 10, 1), due_date=date(2025, 10, 31))
        cancelled = await make_invoice(db, store, product, date(2025, 8, 1), due_date=date(2025, 9, 1))
        await PaymentService(db).record(late.id, "40", "cash")
        await PaymentService(db).record(settled.id, "100", "cash")
        await InvoiceService(db).cancel(cancelled.id)

        results = await run_overdue_sweep(db, as_of=date(2025, 10, 15))

        assert results["errors"] == []
        assert results["marked_overdue"] == 1
        assert late.billing_status == "overdue"
        assert settled.billing_status == "pending"
        assert current.billing_status == "pending"
        assert cancelled.billing_status == "pending"
        bucket = results["receivables_aging"]["31-60 days"]
        assert bucket["count"] == 1
        assert bucket["total_amount"] == Decimal("60")

    async def test_second_run_marks_nothing_new(self, db, seed):
        store = await seed.store()
        product = await seed.product()
        await make_invoice(db, store, product, date(2025, 8, 1), due_date=date(2025, 9, 1))

        await run_overdue_sweep(db, as_of=date(2025, 10, 15))
        results = await run_overdue_sweep(db, as_of=date(2025, 10, 15))

        assert results["marked_overdue"] == 0
        assert results["overdue_invoices"] == 1

    async def test_reports_overdue_vendor_bills(self, db, seed):
        vendor = await seed.vendor(payment_days=10)
        material = await seed.raw_material()
        await PurchaseService(db).record_direct_receipt(
            vendor.id,
            [DirectReceiptItem(raw_material_id=material.id, quantity_received=Decimal("4"),
                               unit_price=Decimal("25"))],
            receipt_date=date(2025, 6, 1),
        )

        results = await run_overdue_sweep(db, as_of=date(2025, 10, 15))

        assert results["overdue_bills"] == 1
        assert results["payables_aging"]["90+ days"]["count"] == 1
        assert results["payables_aging"]["90+ days"]["total_amount"] == Decimal("100")


class TestRegistration:
    def test_interval_job(self):
        scheduler = AsyncIOScheduler()
        register_overdue_sweep(scheduler, interval_minutes=15)

        [job] = scheduler.get_jobs()
        assert job.id == "overdue_sweep"
        assert "0:15:00" in str(job.trigger)
