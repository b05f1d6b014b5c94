"""
Overdue Sweep Job.

Marks active, unpaid invoices past their due date as overdue and reports
receivables and vendor payables by aging bucket:
- 1-30 days overdue
- 31-60 days overdue
- 61-90 days overdue
- 90+ days overdue

Triggers:
- Interval job (via APScheduler), OVERDUE_SWEEP_INTERVAL_MINUTES
"""
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict, Any, List, Optional

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.models.billing import Invoice, InvoiceStatus, BillingStatus, PaymentStatus
from backoffice.models.purchase import PurchaseReceipt, BillPaymentStatus

logger = logging.getLogger(__name__)

AGING_BUCKETS = [
    {"label": "1-30 days", "min_days": 1, "max_days": 30},
    {"label": "31-60 days", "min_days": 31, "max_days": 60},
    {"label": "61-90 days", "min_days": 61, "max_days": 90},
    {"label": "90+ days", "min_days": 91, "max_days": 99999},
]


def aging_bucket(days_overdue: int) -> Optional[str]:
    """
    >>> aging_bucket(30), aging_bucket(31), aging_bucket(120), aging_bucket(0)
    ('1-30 days', '31-60 days', '90+ days', None)
    """
    for bucket in AGING_BUCKETS:
        if bucket["min_days"] <= days_overdue <= bucket["max_days"]:
            return bucket["label"]
    return None


def _summarize(rows: List[tuple], as_of: date) -> Dict[str, Dict[str, Any]]:
    """rows: (due_date, amount) pairs."""
    summary = {b["label"]: {"count": 0, "total_amount": Decimal("0")} for b in AGING_BUCKETS}
    for due_date, amount in rows:
        label = aging_bucket((as_of - due_date).days)
        if label is None:
            continue
        summary[label]["count"] += 1
        summary[label]["total_amount"] += amount
    return summary


async def run_overdue_sweep(db: AsyncSession, as_of: Optional[date] = None) -> Dict[str, Any]:
    """
    Flag overdue invoices and build the aging summary.

    Returns:
        {marked_overdue, overdue_invoices, receivables_aging, overdue_bills,
        payables_aging, errors, started_at, completed_at}
    """
    as_of = as_of or date.today()
    logger.info(f"Starting overdue sweep as of {as_of}")

    results: Dict[str, Any] = {
        "started_at": datetime.now(timezone.utc).isoformat(),
        "as_of": as_of.isoformat(),
        "marked_overdue": 0,
        "overdue_invoices": 0,
        "receivables_aging": {},
        "overdue_bills": 0,
        "payables_aging": {},
        "errors": [],
    }

    try:
        result = await db.execute(
            select(Invoice).where(
                and_(
                    Invoice.status == InvoiceStatus.ACTIVE.value,
                    Invoice.payment_status != PaymentStatus.PAID.value,
                    Invoice.due_date < as_of,
                )
            )
        )
        overdue_invoices = list(result.scalars().all())
        results["overdue_invoices"] = len(overdue_invoices)

        for invoice in overdue_invoices:
            if invoice.billing_status != BillingStatus.OVERDUE.value:
                invoice.billing_status = BillingStatus.OVERDUE.value
                results["marked_overdue"] += 1
        await db.flush()

        results["receivables_aging"] = _summarize(
            [(inv.due_date, inv.total_amount - inv.total_paid) for inv in overdue_invoices], as_of
        )

        bills_result = await db.execute(
            select(PurchaseReceipt.due_date, PurchaseReceipt.total_amount).where(
                and_(
                    PurchaseReceipt.payment_status == BillPaymentStatus.PENDING.value,
                    PurchaseReceipt.due_date < as_of,
                )
            )
        )
        bills = [tuple(row) for row in bills_result.all()]
        results["overdue_bills"] = len(bills)
        results["payables_aging"] = _summarize(bills, as_of)

    except Exception as e:
        error_msg = f"Overdue sweep failed: {e}"
        logger.error(error_msg)
        results["errors"].append(error_msg)
        await db.rollback()

    results["completed_at"] = datetime.now(timezone.utc).isoformat()
    logger.info(
        f"Overdue sweep completed: {results['marked_overdue']} invoice(s) newly overdue, "
        f"{results['overdue_invoices']} overdue in total, {results['overdue_bills']} vendor bill(s) overdue"
    )
    return results


def register_overdue_sweep(scheduler, interval_minutes: int) -> None:
    """Register the sweep with APScheduler as an interval job."""
    from backoffice.database import get_db_session

    async def job_wrapper():
        try:
            async with get_db_session() as db:
                await run_overdue_sweep(db)
        except Exception as e:
            logger.error(f"Overdue sweep job failed: {e}")

    scheduler.add_job(
        job_wrapper,
        'interval',
        minutes=interval_minutes,
        id='overdue_sweep',
        name='Overdue Invoice Sweep',
        replace_existing=True,
    )
