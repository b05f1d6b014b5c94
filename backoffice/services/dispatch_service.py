"""
Dispatch service.

Invoicing never touches finished-goods stock. Each invoice gets a
pending dispatch; allocate() draws batches FIFO and decrements product
stock, cancel() of a ready dispatch gives the allocation back.
"""
import uuid
import logging
from collections import defaultdict
from typing import Optional, List, Dict

from sqlalchemy import select, delete
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.exceptions import InvalidStateError, NotFoundError
from backoffice.models.billing import Invoice
from backoffice.models.dispatch import Dispatch, DispatchItem, DispatchBatchAllocation, DispatchStatus
from backoffice.services.batch_service import BatchService
from backoffice.services.dispatch_state_machine import transition_dispatch, validate_transition, can_cancel
from backoffice.services.document_sequence_service import DocumentSequenceService
from backoffice.services.stock_ledger import StockLedger


logger = logging.getLogger(__name__)


class DispatchService:
    """Moves invoiced goods out of stock."""

    def __init__(self, db: AsyncSession, user_id: Optional[uuid.UUID] = None):
        self.db = db
        self.user_id = user_id
        self.batches = BatchService(db, user_id)
        self.ledger = StockLedger(db, user_id)

    async def _load(self, dispatch_id: uuid.UUID, lock: bool = False) -> Dispatch:
        query = (
            select(Dispatch)
            .options(selectinload(Dispatch.items).selectinload(DispatchItem.allocations))
            .where(Dispatch.id == dispatch_id)
        )
        if lock:
            query = query.with_for_update()
        result = await self.db.execute(query)
        dispatch = result.scalar_one_or_none()
        if not dispatch:
            raise NotFoundError("Dispatch", dispatch_id)
        return dispatch

    async def get(self, dispatch_id: uuid.UUID) -> Dispatch:
        return await self._load(dispatch_id)

    async def list(
        self,
        status: Optional[str] = None,
        invoice_id: Optional[uuid.UUID] = None,
    ) -> List[Dispatch]:
        query = select(Dispatch).options(
            selectinload(Dispatch.items).selectinload(DispatchItem.allocations)
        )
        if status:
            query = query.where(Dispatch.status == status)
        if invoice_id:
            query = query.where(Dispatch.invoice_id == invoice_id)
        result = await self.db.execute(query.order_by(Dispatch.created_at.desc()))
        return list(result.scalars().all())

    async def create_for_invoice(self, invoice: Invoice) -> Dispatch:
        """Pending dispatch carrying the invoice's quantities, one line per product."""
        quantities: Dict[uuid.UUID, int] = defaultdict(int)
        for item in invoice.items:
            quantities[item.product_id] += item.quantity

        dispatch_number = await DocumentSequenceService(self.db).get_next_number("DSP")
        dispatch = Dispatch(
            dispatch_number=dispatch_number,
            invoice_id=invoice.id,
            store_id=invoice.store_id,
            status=DispatchStatus.PENDING.value,
            items=[
                DispatchItem(product_id=product_id, quantity=quantity, allocations=[])
                for product_id, quantity in quantities.items()
            ],
        )
        self.db.add(dispatch)
        await self.db.flush()

        logger.info(f"Dispatch {dispatch_number} created for invoice {invoice.invoice_number}")
        return dispatch

    # ==================== Lifecycle ====================

    async def allocate(self, dispatch_id: uuid.UUID) -> Dispatch:
        """
        pending -> ready: allocate batches FIFO and take the goods out of stock.

        Raises:
            NegativeStockError: a line cannot be covered; nothing is applied
        """
        dispatch = await self._load(dispatch_id, lock=True)
        validate_transition(dispatch.status, DispatchStatus.READY.value)

        products = await self.ledger.lock_products(item.product_id for item in dispatch.items)
        for item in sorted(dispatch.items, key=lambda i: i.product_id):
            allocations = await self.batches.consume_fifo(
                item.product_id,
                item.quantity,
                item,
                product=products[item.product_id],
            )
            item.allocations.extend(allocations)

        transition_dispatch(dispatch, DispatchStatus.READY.value)
        await self.db.flush()

        logger.info(f"Dispatch {dispatch.dispatch_number} allocated and ready")
        return dispatch

    async def mark_in_transit(self, dispatch_id: uuid.UUID, vehicle_number: Optional[str] = None) -> Dispatch:
        dispatch = await self._load(dispatch_id, lock=True)
        transition_dispatch(dispatch, DispatchStatus.IN_TRANSIT.value)
        if vehicle_number:
            dispatch.vehicle_number = vehicle_number
        await self.db.flush()
        logger.info(f"Dispatch {dispatch.dispatch_number} in transit")
        return dispatch

    async def mark_delivered(self, dispatch_id: uuid.UUID) -> Dispatch:
        dispatch = await self._load(dispatch_id, lock=True)
        transition_dispatch(dispatch, DispatchStatus.DELIVERED.value)
        await self.db.flush()
        logger.info(f"Dispatch {dispatch.dispatch_number} delivered")
        return dispatch

    async def cancel(self, dispatch_id: uuid.UUID) -> Dispatch:
        """pending | ready -> cancelled. A ready dispatch returns its batches to stock."""
        dispatch = await self._load(dispatch_id, lock=True)
        validate_transition(dispatch.status, DispatchStatus.CANCELLED.value)
        await self._cancel(dispatch)
        return dispatch

    async def _cancel(self, dispatch: Dispatch) -> None:
        if dispatch.status == DispatchStatus.READY.value:
            products = await self.ledger.lock_products(item.product_id for item in dispatch.items)
            for item in dispatch.items:
                for allocation in list(item.allocations):
                    await self.batches.release(allocation, product=products[item.product_id])
                    item.allocations.remove(allocation)

        dispatch.status = DispatchStatus.CANCELLED.value
        await self.db.flush()
        logger.info(f"Dispatch {dispatch.dispatch_number} cancelled")

    async def cancel_for_invoice(self, invoice_id: uuid.UUID) -> int:
        """Cancel the invoice's dispatches that have not left. Returns how many were cancelled."""
        result = await self.db.execute(
            select(Dispatch.id).where(Dispatch.invoice_id == invoice_id).order_by(Dispatch.id)
        )
        cancelled = 0
        for dispatch_id in result.scalars().all():
            dispatch = await self._load(dispatch_id, lock=True)
            if not can_cancel(dispatch.status):
                if dispatch.status != DispatchStatus.CANCELLED.value:
                    logger.warning(
                        f"Dispatch {dispatch.dispatch_number} is {dispatch.status}; goods already left"
                    )
                continue
            await self._cancel(dispatch)
            cancelled += 1
        return cancelled

    async def delete_for_invoice(self, invoice_id: uuid.UUID) -> None:
        """Remove the dispatches of a deleted invoice. They must all be cancelled."""
        result = await self.db.execute(select(Dispatch).where(Dispatch.invoice_id == invoice_id))
        dispatches = result.scalars().all()
        for dispatch in dispatches:
            if dispatch.status != DispatchStatus.CANCELLED.value:
                raise InvalidStateError(
                    f"Dispatch {dispatch.dispatch_number} is {dispatch.status}; cancel it first"
                )
        ids = [d.id for d in dispatches]
        if not ids:
            return
        item_ids = select(DispatchItem.id).where(DispatchItem.dispatch_id.in_(ids))
        await self.db.execute(
            delete(DispatchBatchAllocation).where(DispatchBatchAllocation.dispatch_item_id.in_(item_ids))
        )
        await self.db.execute(delete(DispatchItem).where(DispatchItem.dispatch_id.in_(ids)))
        await self.db.execute(delete(Dispatch).where(Dispatch.id.in_(ids)))
