"""
Purchasing: vendor requests and raw-material receipts.

Mirror of the sales flow on the buy side. A receipt adds raw-material
stock through the Stock Ledger and doubles as the vendor's bill, due
`payment_days` after the receipt date.
"""
import uuid
import logging
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, List, Dict, Any, Sequence

from sqlalchemy import select
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.config import settings
from backoffice.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from backoffice.models.catalog import RawMaterial, Vendor
from backoffice.models.purchase import (
    PurchaseRequest, PurchaseRequestItem, PurchaseRequestStatus,
    PurchaseReceipt, PurchaseReceiptItem, BillPaymentStatus,
)
from backoffice.models.stock import MovementReason
from backoffice.schemas.purchase import PurchaseRequestItemCreate, ReceiptLine, DirectReceiptItem
from backoffice.services import purchase_state_machine
from backoffice.services.document_sequence_service import DocumentSequenceService
from backoffice.services.stock_ledger import StockLedger


logger = logging.getLogger(__name__)


def _line_total(quantity: Decimal, unit_price: Decimal) -> Decimal:
    return (quantity * unit_price).quantize(settings.CURRENCY_MINOR_UNIT, rounding=ROUND_HALF_UP)


class PurchaseService:
    """Service for purchase requests, receipts and vendor bills."""

    def __init__(self, db: AsyncSession, user_id: Optional[uuid.UUID] = None):
        self.db = db
        self.user_id = user_id
        self.ledger = StockLedger(db, user_id)

    async def _load(self, request_id: uuid.UUID, lock: bool = False) -> PurchaseRequest:
        query = (
            select(PurchaseRequest)
            .options(selectinload(PurchaseRequest.items), selectinload(PurchaseRequest.vendor))
            .where(PurchaseRequest.id == request_id)
        )
        if lock:
            query = query.with_for_update()
        result = await self.db.execute(query)
        request = result.scalar_one_or_none()
        if not request:
            raise NotFoundError("PurchaseRequest", request_id)
        return request

    async def get(self, request_id: uuid.UUID) -> PurchaseRequest:
        return await self._load(request_id)

    async def list(
        self,
        status: Optional[str] = None,
        vendor_id: Optional[uuid.UUID] = None,
    ) -> List[PurchaseRequest]:
        query = select(PurchaseRequest).options(selectinload(PurchaseRequest.items))
        if status:
            query = query.where(PurchaseRequest.status == status)
        if vendor_id:
            query = query.where(PurchaseRequest.vendor_id == vendor_id)
        result = await self.db.execute(query.order_by(PurchaseRequest.created_at.desc()))
        return list(result.scalars().all())

    async def _get_vendor(self, vendor_id: uuid.UUID) -> Vendor:
        vendor = await self.db.get(Vendor, vendor_id)
        if not vendor or not vendor.is_active:
            raise ValidationError(f"Vendor {vendor_id} does not exist or is inactive")
        return vendor

    async def _check_materials(self, material_ids) -> Dict[uuid.UUID, RawMaterial]:
        ids = set(material_ids)
        result = await self.db.execute(select(RawMaterial).where(RawMaterial.id.in_(ids)))
        materials = {m.id: m for m in result.scalars().all()}
        for material_id in ids:
            material = materials.get(material_id)
            if not material or not material.is_active:
                raise ValidationError(f"Raw material {material_id} does not exist or is inactive")
        return materials

    async def _build_items(self, items: Sequence[PurchaseRequestItemCreate]) -> List[PurchaseRequestItem]:
        if not items:
            raise ValidationError("A purchase request needs at least one item")
        await self._check_materials(item.raw_material_id for item in items)

        request_items = []
        for item in items:
            if item.quantity is None or item.quantity <= 0:
                raise ValidationError(f"Quantity must be greater than zero for material {item.raw_material_id}")
            if item.unit_price is None or item.unit_price < 0:
                raise ValidationError(f"Unit price cannot be negative for material {item.raw_material_id}")
            request_items.append(PurchaseRequestItem(
                raw_material_id=item.raw_material_id,
                quantity_ordered=item.quantity,
                quantity_received=Decimal("0"),
                unit_price=item.unit_price,
            ))
        return request_items

    # ==================== Requests ====================

    async def create(
        self,
        vendor_id: uuid.UUID,
        items: Sequence[PurchaseRequestItemCreate],
        expected_date: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> PurchaseRequest:
        vendor = await self._get_vendor(vendor_id)
        request_items = await self._build_items(items)
        request_number = await DocumentSequenceService(self.db).get_next_number("PR")

        request = PurchaseRequest(
            request_number=request_number,
            vendor=vendor,
            vendor_id=vendor.id,
            status=PurchaseRequestStatus.DRAFT.value,
            expected_date=expected_date,
            notes=notes,
            created_by=self.user_id,
            items=request_items,
        )
        self.db.add(request)
        await self.db.flush()

        logger.info(f"Purchase request {request_number} created for {vendor.name}")
        return request

    async def update(
        self,
        request_id: uuid.UUID,
        items: Optional[Sequence[PurchaseRequestItemCreate]] = None,
        expected_date: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> PurchaseRequest:
        request = await self._load(request_id, lock=True)
        if not purchase_state_machine.can_edit(request.status):
            raise InvalidStateError(
                f"Purchase request {request.request_number} cannot be edited in '{request.status}' status"
            )
        if items is not None:
            request.items = await self._build_items(items)
        if expected_date is not None:
            request.expected_date = expected_date
        if notes is not None:
            request.notes = notes
        await self.db.flush()
        logger.info(f"Purchase request {request.request_number} updated")
        return request

    async def _transition(self, request_id: uuid.UUID, new_status: str) -> PurchaseRequest:
        request = await self._load(request_id, lock=True)
        purchase_state_machine.validate_transition(request.status, new_status)
        request.status = new_status
        await self.db.flush()
        logger.info(f"Purchase request {request.request_number} -> {new_status}")
        return request

    async def submit(self, request_id: uuid.UUID) -> PurchaseRequest:
        return await self._transition(request_id, PurchaseRequestStatus.SUBMITTED.value)

    async def cancel(self, request_id: uuid.UUID) -> PurchaseRequest:
        return await self._transition(request_id, PurchaseRequestStatus.CANCELLED.value)

    async def close(self, request_id: uuid.UUID) -> PurchaseRequest:
        """Short-close a partially received request."""
        return await self._transition(request_id, PurchaseRequestStatus.CLOSED.value)

    # ==================== Receipts ====================

    async def _new_receipt(
        self,
        vendor: Vendor,
        receipt_items: List[PurchaseReceiptItem],
        receipt_date: Optional[date],
        request: Optional[PurchaseRequest] = None,
        notes: Optional[str] = None,
    ) -> PurchaseReceipt:
        receipt_date = receipt_date or date.today()
        payment_days = vendor.payment_days
        if payment_days is None:
            payment_days = settings.DEFAULT_VENDOR_PAYMENT_DAYS

        receipt_number = await DocumentSequenceService(self.db).get_next_number("RMR", on=receipt_date)
        receipt = PurchaseReceipt(
            receipt_number=receipt_number,
            vendor_id=vendor.id,
            purchase_request_id=request.id if request else None,
            receipt_date=receipt_date,
            due_date=receipt_date + timedelta(days=payment_days),
            total_amount=sum((item.line_total for item in receipt_items), Decimal("0")),
            payment_status=BillPaymentStatus.PENDING.value,
            notes=notes,
            created_by=self.user_id,
            items=receipt_items,
        )
        self.db.add(receipt)
        await self.db.flush()
        return receipt

    async def record_receipt(
        self,
        request_id: uuid.UUID,
        lines: Sequence[ReceiptLine],
        receipt_date: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> PurchaseReceipt:
        """
        Receive goods against a submitted or partial request.

        Raw-material stock goes up by each received quantity and the
        request moves to partial, or received once nothing is outstanding.

        Raises:
            InvalidStateError: request not open for receiving
            ValidationError: unknown line, non-positive quantity, or more
                than the outstanding quantity
        """
        request = await self._load(request_id, lock=True)
        if not purchase_state_machine.can_receive_goods(request.status):
            raise InvalidStateError(
                f"Purchase request {request.request_number} cannot receive goods in '{request.status}' status"
            )
        if not lines:
            raise ValidationError("A receipt needs at least one line")

        request_items = {item.id: item for item in request.items}
        seen = set()
        for line in lines:
            if line.item_id in seen:
                raise ValidationError(f"Line {line.item_id} appears more than once")
            seen.add(line.item_id)
            item = request_items.get(line.item_id)
            if item is None:
                raise ValidationError(f"Line {line.item_id} is not on request {request.request_number}")
            if line.quantity_received is None or line.quantity_received <= 0:
                raise ValidationError(f"Received quantity must be greater than zero for line {line.item_id}")
            if line.quantity_received > item.quantity_outstanding:
                raise ValidationError(
                    f"Cannot receive {line.quantity_received} on line {line.item_id}; "
                    f"only {item.quantity_outstanding} outstanding"
                )

        materials = await self.ledger.lock_raw_materials(request_items[line.item_id].raw_material_id for line in lines)

        receipt_items = []
        for line in lines:
            item = request_items[line.item_id]
            item.quantity_received = item.quantity_received + line.quantity_received
            receipt_items.append(PurchaseReceiptItem(
                request_item_id=item.id,
                raw_material_id=item.raw_material_id,
                quantity_received=line.quantity_received,
                unit_price=item.unit_price,
                line_total=_line_total(line.quantity_received, item.unit_price),
            ))

        receipt = await self._new_receipt(request.vendor, receipt_items, receipt_date, request, notes)

        for receipt_item in receipt_items:
            await self.ledger.adjust_raw_material(
                receipt_item.raw_material_id,
                receipt_item.quantity_received,
                MovementReason.PURCHASE_RECEIPT,
                reference_type="purchase_receipt",
                reference_id=receipt.id,
                material=materials[receipt_item.raw_material_id],
            )

        if all(item.quantity_outstanding <= 0 for item in request.items):
            new_status = PurchaseRequestStatus.RECEIVED.value
        else:
            new_status = PurchaseRequestStatus.PARTIAL.value
        purchase_state_machine.validate_transition(request.status, new_status)
        request.status = new_status
        await self.db.flush()

        logger.info(
            f"Receipt {receipt.receipt_number} recorded against {request.request_number} "
            f"({receipt.total_amount}, due {receipt.due_date}); request is {new_status}"
        )
        return receipt

    async def record_direct_receipt(
        self,
        vendor_id: uuid.UUID,
        items: Sequence[DirectReceiptItem],
        receipt_date: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> PurchaseReceipt:
        """Receipt without a request. Also refreshes each material's cost per unit."""
        vendor = await self._get_vendor(vendor_id)
        if not items:
            raise ValidationError("A receipt needs at least one item")
        for item in items:
            if item.quantity_received is None or item.quantity_received <= 0:
                raise ValidationError(f"Received quantity must be greater than zero for material {item.raw_material_id}")
            if item.unit_price is None or item.unit_price < 0:
                raise ValidationError(f"Unit price cannot be negative for material {item.raw_material_id}")

        await self._check_materials(item.raw_material_id for item in items)
        materials = await self.ledger.lock_raw_materials(item.raw_material_id for item in items)

        receipt_items = [
            PurchaseReceiptItem(
                raw_material_id=item.raw_material_id,
                quantity_received=item.quantity_received,
                unit_price=item.unit_price,
                line_total=_line_total(item.quantity_received, item.unit_price),
            )
            for item in items
        ]
        receipt = await self._new_receipt(vendor, receipt_items, receipt_date, notes=notes)

        for receipt_item in receipt_items:
            material = materials[receipt_item.raw_material_id]
            await self.ledger.adjust_raw_material(
                material.id,
                receipt_item.quantity_received,
                MovementReason.PURCHASE_RECEIPT,
                reference_type="purchase_receipt",
                reference_id=receipt.id,
                material=material,
            )
            material.cost_per_unit = receipt_item.unit_price
        await self.db.flush()

        logger.info(f"Direct receipt {receipt.receipt_number} from {vendor.name}: {receipt.total_amount}")
        return receipt

    async def get_receipt(self, receipt_id: uuid.UUID) -> PurchaseReceipt:
        result = await self.db.execute(
            select(PurchaseReceipt)
            .options(selectinload(PurchaseReceipt.items))
            .where(PurchaseReceipt.id == receipt_id)
        )
        receipt = result.scalar_one_or_none()
        if not receipt:
            raise NotFoundError("PurchaseReceipt", receipt_id)
        return receipt

    async def list_receipts(
        self,
        vendor_id: Optional[uuid.UUID] = None,
        payment_status: Optional[str] = None,
    ) -> List[PurchaseReceipt]:
        query = select(PurchaseReceipt).options(selectinload(PurchaseReceipt.items))
        if vendor_id:
            query = query.where(PurchaseReceipt.vendor_id == vendor_id)
        if payment_status:
            query = query.where(PurchaseReceipt.payment_status == payment_status)
        result = await self.db.execute(query.order_by(PurchaseReceipt.receipt_date.desc()))
        return list(result.scalars().all())

    # ==================== Vendor bills ====================

    async def mark_bill_paid(
        self,
        receipt_id: uuid.UUID,
        payment_date: Optional[date] = None,
        payment_reference: Optional[str] = None,
    ) -> PurchaseReceipt:
        result = await self.db.execute(
            select(PurchaseReceipt)
            .options(selectinload(PurchaseReceipt.items))
            .where(PurchaseReceipt.id == receipt_id)
            .with_for_update()
        )
        receipt = result.scalar_one_or_none()
        if not receipt:
            raise NotFoundError("PurchaseReceipt", receipt_id)
        if receipt.payment_status == BillPaymentStatus.PAID.value:
            raise InvalidStateError(f"Bill {receipt.receipt_number} is already paid")

        receipt.payment_status = BillPaymentStatus.PAID.value
        receipt.payment_date = payment_date or date.today()
        receipt.payment_reference = payment_reference
        await self.db.flush()

        logger.info(f"Bill {receipt.receipt_number} marked paid on {receipt.payment_date}")
        return receipt

    async def overdue_bills(self, as_of: Optional[date] = None) -> List[PurchaseReceipt]:
        """Pending bills whose due date is before `as_of`."""
        as_of = as_of or date.today()
        result = await self.db.execute(
            select(PurchaseReceipt)
            .where(
                PurchaseReceipt.payment_status == BillPaymentStatus.PENDING.value,
                PurchaseReceipt.due_date < as_of,
            )
            .order_by(PurchaseReceipt.due_date.asc())
        )
        return list(result.scalars().all())

    async def due_soon_bills(self, as_of: Optional[date] = None) -> List[PurchaseReceipt]:
        """Pending bills due between `as_of` and `as_of + DUE_SOON_DAYS`, inclusive."""
        as_of = as_of or date.today()
        result = await self.db.execute(
            select(PurchaseReceipt)
            .where(
                PurchaseReceipt.payment_status == BillPaymentStatus.PENDING.value,
                PurchaseReceipt.due_date >= as_of,
                PurchaseReceipt.due_date <= as_of + timedelta(days=settings.DUE_SOON_DAYS),
            )
            .order_by(PurchaseReceipt.due_date.asc())
        )
        return list(result.scalars().all())

    async def payment_reminders(self, as_of: Optional[date] = None) -> Dict[str, Any]:
        as_of = as_of or date.today()
        overdue = await self.overdue_bills(as_of)
        due_soon = await self.due_soon_bills(as_of)
        return {
            "as_of": as_of,
            "overdue_count": len(overdue),
            "overdue_total": sum((bill.total_amount for bill in overdue), Decimal("0")),
            "due_soon_count": len(due_soon),
            "due_soon_total": sum((bill.total_amount for bill in due_soon), Decimal("0")),
            "overdue": overdue,
            "due_soon": due_soon,
        }
