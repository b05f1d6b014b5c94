"""
Invoice Generator.

Turns an approved order (or ad-hoc lines) into an immutable tax invoice:
1. Resolve the margin per line (explicit, then remembered for the store, then 0)
2. Price and tax every line through the pricing engine
3. Persist Invoice + InvoiceItems with billing/payment status pending
4. Move the order to invoiced and open a pending dispatch

All in the caller's transaction, so the order never ends up invoiced
without its invoice or the other way round.
"""
import uuid
import logging
from collections import OrderedDict
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional, Dict, List, Any, Sequence

from sqlalchemy import select, func
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.config import settings
from backoffice.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from backoffice.models.billing import (
    Invoice, InvoiceItem, InvoiceStatus, BillingStatus, PaymentStatus, Payment,
)
from backoffice.models.catalog import Product, Store, StoreProductMargin
from backoffice.models.order import Order, OrderStatus
from backoffice.schemas.billing import InvoiceItemInput
from backoffice.services import order_state_machine
from backoffice.services.dispatch_service import DispatchService
from backoffice.services.document_sequence_service import DocumentSequenceService
from backoffice.services.payment_service import PaymentService, derive_payment_status
from backoffice.services.pricing_engine import PricingLine, calculate_invoice


logger = logging.getLogger(__name__)


class InvoiceService:
    """Service for invoice generation and status management."""

    def __init__(self, db: AsyncSession, user_id: Optional[uuid.UUID] = None):
        self.db = db
        self.user_id = user_id

    async def _load(self, invoice_id: uuid.UUID, lock: bool = False) -> Invoice:
        query = (
            select(Invoice)
            .options(selectinload(Invoice.items), selectinload(Invoice.payments))
            .where(Invoice.id == invoice_id)
        )
        if lock:
            query = query.with_for_update()
        result = await self.db.execute(query)
        invoice = result.scalar_one_or_none()
        if not invoice:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    async def get(self, invoice_id: uuid.UUID) -> Invoice:
        return await self._load(invoice_id)

    async def list(
        self,
        status: Optional[str] = None,
        billing_status: Optional[str] = None,
        payment_status: Optional[str] = None,
        store_id: Optional[uuid.UUID] = None,
    ) -> List[Invoice]:
        query = select(Invoice)
        if status:
            query = query.where(Invoice.status == status)
        if billing_status:
            query = query.where(Invoice.billing_status == billing_status)
        if payment_status:
            query = query.where(Invoice.payment_status == payment_status)
        if store_id:
            query = query.where(Invoice.store_id == store_id)
        result = await self.db.execute(query.order_by(Invoice.invoice_date.desc(), Invoice.created_at.desc()))
        return list(result.scalars().all())

    # ==================== Margins ====================

    async def resolve_margin(
        self,
        store_id: uuid.UUID,
        product_id: uuid.UUID,
        explicit: Optional[Decimal],
    ) -> Decimal:
        """
        Margin for a line: an explicit value is used and remembered for the
        store; otherwise the remembered margin; otherwise 0.
        """
        result = await self.db.execute(
            select(StoreProductMargin).where(
                StoreProductMargin.store_id == store_id,
                StoreProductMargin.product_id == product_id,
            )
        )
        remembered = result.scalar_one_or_none()

        if explicit is not None:
            explicit = Decimal(str(explicit))
            if remembered:
                remembered.margin_percentage = explicit
            else:
                self.db.add(StoreProductMargin(
                    store_id=store_id,
                    product_id=product_id,
                    margin_percentage=explicit,
                ))
            return explicit

        if remembered:
            return remembered.margin_percentage
        return Decimal("0")

    # ==================== Generation ====================

    async def _build_invoice(
        self,
        store: Store,
        lines: List[Dict[str, Any]],
        is_igst: bool,
        order: Optional[Order],
        invoice_date: Optional[date],
        due_date: Optional[date],
        notes: Optional[str],
    ) -> Invoice:
        """
        Price the lines and persist the invoice.

        Each line: {product, quantity, mrp, margin_percentage, quantity_ordered}.
        """
        totals = calculate_invoice(
            [
                PricingLine(
                    mrp=line["mrp"],
                    margin_percentage=line["margin_percentage"],
                    quantity=line["quantity"],
                    gst_rate=line["product"].gst_rate,
                )
                for line in lines
            ],
            is_igst=is_igst,
        )

        invoice_date = invoice_date or date.today()
        if due_date is None:
            due_date = invoice_date + timedelta(days=settings.INVOICE_DUE_DAYS)
        elif due_date < invoice_date:
            raise ValidationError("Due date cannot be before the invoice date")

        invoice_number = await DocumentSequenceService(self.db).get_next_number("INV", on=invoice_date)

        items = []
        for line, priced in zip(lines, totals.lines):
            product = line["product"]
            items.append(InvoiceItem(
                product_id=product.id,
                product_name=product.name,
                hsn_code=product.hsn_code,
                quantity=priced.quantity,
                quantity_ordered=line.get("quantity_ordered"),
                mrp=priced.mrp,
                margin_percentage=priced.margin_percentage,
                unit_price=priced.unit_price,
                gst_rate=priced.gst_rate,
                line_total=priced.line_total,
                cgst_amount=priced.cgst_amount,
                sgst_amount=priced.sgst_amount,
                igst_amount=priced.igst_amount,
            ))

        invoice = Invoice(
            invoice_number=invoice_number,
            store_id=store.id,
            order_id=order.id if order else None,
            status=InvoiceStatus.ACTIVE.value,
            billing_status=BillingStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            is_igst=is_igst,
            subtotal=totals.subtotal,
            cgst=totals.cgst,
            sgst=totals.sgst,
            igst=totals.igst,
            round_off=totals.round_off,
            total_amount=totals.total_amount,
            total_paid=Decimal("0"),
            invoice_date=invoice_date,
            due_date=due_date,
            notes=notes,
            created_by=self.user_id,
            items=items,
            payments=[],
        )
        self.db.add(invoice)
        await self.db.flush()

        await DispatchService(self.db, self.user_id).create_for_invoice(invoice)
        return invoice

    async def create_from_order(
        self,
        order_id: uuid.UUID,
        items: Sequence[InvoiceItemInput],
        is_igst: bool = False,
        invoice_date: Optional[date] = None,
        due_date: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> Invoice:
        """
        Invoice an approved order and move it to invoiced.

        Quantities may be below the ordered quantity; the remainder is
        short-closed. Lines with quantity 0 are skipped.

        Raises:
            InvalidStateError: order is not approved
            ValidationError: unknown product, product not on the order,
                quantity above the ordered quantity, or nothing to invoice
        """
        result = await self.db.execute(
            select(Order)
            .options(selectinload(Order.items), selectinload(Order.store))
            .where(Order.id == order_id)
            .with_for_update()
        )
        order = result.scalar_one_or_none()
        if not order:
            raise NotFoundError("Order", order_id)
        if not order_state_machine.can_invoice(order.status):
            raise InvalidStateError(
                f"Order {order.order_number} is '{order.status}'; only approved orders can be invoiced"
            )

        ordered: Dict[uuid.UUID, int] = {}
        order_mrp: Dict[uuid.UUID, Decimal] = {}
        for order_item in order.items:
            ordered[order_item.product_id] = ordered.get(order_item.product_id, 0) + order_item.quantity
            order_mrp.setdefault(order_item.product_id, order_item.mrp)

        requested: "OrderedDict[uuid.UUID, Dict[str, Any]]" = OrderedDict()
        for item in items:
            if item.quantity is None or item.quantity < 0:
                raise ValidationError(f"Quantity cannot be negative for product {item.product_id}")
            if item.product_id not in ordered:
                raise ValidationError(f"Product {item.product_id} is not on order {order.order_number}")
            if item.quantity == 0:
                continue
            entry = requested.setdefault(item.product_id, {"quantity": 0, "margin": None})
            entry["quantity"] += item.quantity
            if item.margin_percentage is not None:
                entry["margin"] = item.margin_percentage

        if not requested:
            raise ValidationError("Nothing to invoice: every line has quantity 0")

        products = await self._get_products(requested.keys(), require_active=False)

        lines = []
        for product_id, entry in requested.items():
            if entry["quantity"] > ordered[product_id]:
                raise ValidationError(
                    f"Cannot invoice {entry['quantity']} of {products[product_id].name}; "
                    f"only {ordered[product_id]} ordered"
                )
            lines.append({
                "product": products[product_id],
                "quantity": entry["quantity"],
                "mrp": order_mrp[product_id],
                "margin_percentage": await self.resolve_margin(order.store_id, product_id, entry["margin"]),
                "quantity_ordered": ordered[product_id],
            })

        invoice = await self._build_invoice(
            order.store, lines, is_igst, order, invoice_date, due_date, notes
        )
        order_state_machine.transition_order(order, OrderStatus.INVOICED.value)
        await self.db.flush()

        short = {pid: ordered[pid] - requested.get(pid, {"quantity": 0})["quantity"] for pid in ordered}
        short = {pid: qty for pid, qty in short.items() if qty > 0}
        if short:
            logger.info(
                f"Order {order.order_number} partially invoiced; {sum(short.values())} unit(s) short-closed"
            )
        logger.info(
            f"Invoice {invoice.invoice_number} created from order {order.order_number}: "
            f"total {invoice.total_amount}"
        )
        return invoice

    async def create_ad_hoc(
        self,
        store_id: uuid.UUID,
        items: Sequence[InvoiceItemInput],
        is_igst: bool = False,
        invoice_date: Optional[date] = None,
        due_date: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> Invoice:
        """Invoice without a backing order."""
        store = await self.db.get(Store, store_id)
        if not store or not store.is_active:
            raise ValidationError(f"Store {store_id} does not exist or is inactive")
        if not items:
            raise ValidationError("An invoice needs at least one item")

        for item in items:
            if item.quantity is None or item.quantity <= 0:
                raise ValidationError(f"Quantity must be greater than zero for product {item.product_id}")

        products = await self._get_products({item.product_id for item in items}, require_active=True)
        lines = []
        for item in items:
            product = products[item.product_id]
            lines.append({
                "product": product,
                "quantity": item.quantity,
                "mrp": product.mrp,
                "margin_percentage": await self.resolve_margin(store_id, product.id, item.margin_percentage),
            })

        invoice = await self._build_invoice(store, lines, is_igst, None, invoice_date, due_date, notes)
        logger.info(f"Ad-hoc invoice {invoice.invoice_number} created for {store.name}: total {invoice.total_amount}")
        return invoice

    async def _get_products(self, product_ids, require_active: bool) -> Dict[uuid.UUID, Product]:
        ids = set(product_ids)
        result = await self.db.execute(select(Product).where(Product.id.in_(ids)))
        products = {p.id: p for p in result.scalars().all()}
        for product_id in ids:
            product = products.get(product_id)
            if not product or (require_active and not product.is_active):
                raise ValidationError(f"Product {product_id} does not exist or is inactive")
        return products

    # ==================== Cancellation ====================

    async def cancel(self, invoice_id: uuid.UUID) -> Invoice:
        """
        active -> cancelled.

        The source order keeps its invoiced status and link. Dispatches
        that have not left are cancelled with the invoice.
        """
        invoice = await self._load(invoice_id, lock=True)
        if invoice.status == InvoiceStatus.CANCELLED.value:
            raise InvalidStateError(f"Invoice {invoice.invoice_number} is already cancelled")

        if invoice.total_paid > 0:
            if not settings.ALLOW_CANCEL_PAID_INVOICES:
                raise InvalidStateError(
                    f"Invoice {invoice.invoice_number} has payments of {invoice.total_paid} and cannot be cancelled"
                )
            logger.warning(
                f"Cancelling invoice {invoice.invoice_number} with {invoice.total_paid} already paid"
            )

        await DispatchService(self.db, self.user_id).cancel_for_invoice(invoice.id)

        invoice.status = InvoiceStatus.CANCELLED.value
        invoice.cancelled_at = datetime.now(timezone.utc)
        await self.db.flush()

        logger.info(f"Invoice {invoice.invoice_number} cancelled")
        return invoice

    async def delete(self, invoice_id: uuid.UUID) -> None:
        """Permanently delete a cancelled invoice that has no payments."""
        invoice = await self._load(invoice_id, lock=True)
        if invoice.status != InvoiceStatus.CANCELLED.value:
            raise InvalidStateError(
                f"Invoice {invoice.invoice_number} must be cancelled before it can be deleted"
            )

        result = await self.db.execute(
            select(func.count(Payment.id)).where(Payment.invoice_id == invoice.id)
        )
        if result.scalar_one() > 0:
            raise InvalidStateError(
                f"Invoice {invoice.invoice_number} has recorded payments and cannot be deleted"
            )

        await DispatchService(self.db, self.user_id).delete_for_invoice(invoice.id)
        await self.db.delete(invoice)
        await self.db.flush()
        logger.info(f"Invoice {invoice.invoice_number} deleted")

    # ==================== Status updates ====================

    async def update_billing_status(self, invoice_id: uuid.UUID, billing_status: str) -> Invoice:
        try:
            billing_status = BillingStatus(billing_status).value
        except ValueError:
            raise ValidationError(f"Unknown billing status '{billing_status}'") from None

        invoice = await self._load(invoice_id, lock=True)
        if invoice.status == InvoiceStatus.CANCELLED.value:
            raise InvalidStateError(f"Invoice {invoice.invoice_number} is cancelled")

        invoice.billing_status = billing_status
        await self.db.flush()
        logger.info(f"Invoice {invoice.invoice_number} billing status set to {billing_status}")
        return invoice

    async def update_payment_status(
        self,
        invoice_id: uuid.UUID,
        payment_status: str,
        amount: Optional[Decimal] = None,
        method: Optional[str] = None,
        payment_date: Optional[date] = None,
        reference_number: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Invoice:
        """
        Manual reconciliation.

        `paid` goes through the payment ledger: the amount must settle the
        balance, and nothing new is recorded when the ledger already
        settles the invoice. `pending`/`partial` are plain overrides.
        """
        try:
            payment_status = PaymentStatus(payment_status).value
        except ValueError:
            raise ValidationError(f"Unknown payment status '{payment_status}'") from None

        invoice = await self._load(invoice_id, lock=True)
        if invoice.status == InvoiceStatus.CANCELLED.value:
            raise InvalidStateError(f"Invoice {invoice.invoice_number} is cancelled")

        payments = PaymentService(self.db, self.user_id)

        if payment_status == PaymentStatus.PAID.value:
            balance = invoice.total_amount - invoice.total_paid
            if balance <= settings.PAYMENT_TOLERANCE:
                logger.info(f"Invoice {invoice.invoice_number} already settled by the ledger")
                await payments.refresh_invoice(invoice)
                return invoice

            if amount is None or method is None or payment_date is None:
                raise ValidationError("Marking an invoice paid requires amount, method and payment_date")
            amount = Decimal(str(amount))
            if amount < balance - settings.PAYMENT_TOLERANCE:
                raise ValidationError(
                    f"Amount {amount} does not settle the balance of {balance} on {invoice.invoice_number}"
                )
            await payments.record(
                invoice.id, amount, method,
                payment_date=payment_date,
                reference_number=reference_number,
                notes=notes,
            )
            return invoice

        derived = derive_payment_status(invoice.total_paid, invoice.total_amount).value
        if derived != payment_status:
            logger.warning(
                f"Invoice {invoice.invoice_number} payment status manually set to {payment_status}; "
                f"ledger says {derived} ({invoice.total_paid} of {invoice.total_amount})"
            )
        invoice.payment_status = payment_status
        await self.db.flush()
        return invoice

    # ==================== Reports ====================

    async def hsn_breakdown(self, invoice_id: uuid.UUID) -> List[Dict[str, Any]]:
        """Taxable value and tax per HSN code and rate."""
        invoice = await self._load(invoice_id)
        summary: "OrderedDict[tuple, Dict[str, Any]]" = OrderedDict()
        for item in sorted(invoice.items, key=lambda i: (i.hsn_code or "", i.gst_rate)):
            key = (item.hsn_code, item.gst_rate)
            row = summary.setdefault(key, {
                "hsn_code": item.hsn_code,
                "gst_rate": item.gst_rate,
                "quantity": 0,
                "taxable_value": Decimal("0"),
                "cgst": Decimal("0"),
                "sgst": Decimal("0"),
                "igst": Decimal("0"),
            })
            row["quantity"] += item.quantity
            row["taxable_value"] += item.line_total
            row["cgst"] += item.cgst_amount
            row["sgst"] += item.sgst_amount
            row["igst"] += item.igst_amount

        for row in summary.values():
            row["total_tax"] = row["cgst"] + row["sgst"] + row["igst"]
        return list(summary.values())
