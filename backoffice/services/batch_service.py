"""
Batch Engine.

Batches give finished goods traceability, expiry and recall status.
Product stock is kept equal to the sum of quantity_remaining over the
product's available batches: every batch quantity change here goes
through StockLedger.adjust_product in the same transaction.
"""
import uuid
import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.exceptions import NegativeStockError, NotFoundError, ValidationError, InvalidStateError
from backoffice.models.catalog import Product
from backoffice.models.production import ProductBatch, BatchStatus, ProductionOrder
from backoffice.models.dispatch import DispatchItem, DispatchBatchAllocation
from backoffice.models.stock import MovementReason
from backoffice.services.document_sequence_service import DocumentSequenceService
from backoffice.services.stock_ledger import StockLedger


logger = logging.getLogger(__name__)

# Terminal quality statuses a batch can be moved to
WRITE_OFF_REASONS = {
    BatchStatus.EXPIRED.value: MovementReason.BATCH_EXPIRED,
    BatchStatus.RECALLED.value: MovementReason.BATCH_RECALLED,
}


def _status_value(status) -> str:
    try:
        return BatchStatus(status).value
    except ValueError:
        raise ValidationError(f"Unknown batch status '{status}'") from None


def fifo_order():
    """Oldest production date first, ties by creation time."""
    return (ProductBatch.production_date.asc(), ProductBatch.created_at.asc(), ProductBatch.id.asc())


class BatchService:
    """Create, consume and list production batches."""

    def __init__(self, db: AsyncSession, user_id: Optional[uuid.UUID] = None):
        self.db = db
        self.user_id = user_id
        self.ledger = StockLedger(db, user_id)

    async def get(self, batch_id: uuid.UUID) -> ProductBatch:
        batch = await self.db.get(ProductBatch, batch_id)
        if not batch:
            raise NotFoundError("Batch", batch_id)
        return batch

    # ==================== Creation ====================

    async def create_for_production(
        self,
        production_order: ProductionOrder,
        quantity_produced: int,
        production_date: Optional[date] = None,
        product: Optional[Product] = None,
    ) -> ProductBatch:
        """Create one available batch and add its quantity to product stock."""
        batch = await self._create(
            production_order.product_id,
            quantity_produced,
            production_date,
            production_order_id=production_order.id,
            product=product,
        )
        logger.info(
            f"Batch {batch.batch_number} created: {quantity_produced} units from {production_order.order_number}"
        )
        return batch

    async def create_opening(
        self,
        product_id: uuid.UUID,
        quantity: int,
        production_date: Optional[date] = None,
    ) -> ProductBatch:
        """Batch for stock that existed before it was tracked here."""
        batch = await self._create(product_id, quantity, production_date, notes="Opening stock")
        logger.info(f"Opening batch {batch.batch_number} created: {quantity} units")
        return batch

    async def _create(
        self,
        product_id: uuid.UUID,
        quantity: int,
        production_date: Optional[date],
        production_order_id: Optional[uuid.UUID] = None,
        product: Optional[Product] = None,
        notes: Optional[str] = None,
    ) -> ProductBatch:
        if quantity <= 0:
            raise ValidationError("Batch quantity must be greater than zero")

        production_date = production_date or date.today()
        batch_number = await DocumentSequenceService(self.db).get_next_number("BATCH", on=production_date)

        batch = ProductBatch(
            batch_number=batch_number,
            product_id=product_id,
            production_order_id=production_order_id,
            quantity_produced=quantity,
            quantity_remaining=quantity,
            status=BatchStatus.AVAILABLE.value,
            production_date=production_date,
        )
        self.db.add(batch)
        await self.db.flush()

        await self.ledger.adjust_product(
            product_id,
            quantity,
            MovementReason.PRODUCTION_OUTPUT,
            reference_type="batch",
            reference_id=batch.id,
            notes=notes,
            product=product,
        )
        return batch

    # ==================== Consumption ====================

    async def consume_fifo(
        self,
        product_id: uuid.UUID,
        quantity: int,
        dispatch_item: DispatchItem,
        product: Optional[Product] = None,
    ) -> List[DispatchBatchAllocation]:
        """
        Draw `quantity` units from available batches, oldest first.

        Raises:
            NegativeStockError: available batches cannot cover the quantity
        """
        if quantity <= 0:
            raise ValidationError("Quantity must be greater than zero")

        if product is None:
            product = (await self.ledger.lock_products([product_id]))[product_id]

        # Earlier allocations in this transaction must be visible to the batch query
        await self.db.flush()
        batches = [
            b for b in await self.list_available(product_id, lock=True)
            if b.status == BatchStatus.AVAILABLE.value and b.quantity_remaining > 0
        ]
        available = sum(b.quantity_remaining for b in batches)
        if available < quantity:
            logger.warning(
                f"FIFO allocation short for {product.name}: need {quantity}, batches hold {available}"
            )
            raise NegativeStockError(product.name, available=available, requested=quantity)

        allocations = []
        remaining = quantity
        for batch in batches:
            if remaining == 0:
                break
            take = min(batch.quantity_remaining, remaining)
            batch.quantity_remaining -= take
            if batch.quantity_remaining == 0:
                batch.status = BatchStatus.DEPLETED.value
            remaining -= take

            allocation = DispatchBatchAllocation(
                dispatch_item_id=dispatch_item.id,
                batch_id=batch.id,
                quantity=take,
            )
            self.db.add(allocation)
            allocations.append(allocation)

        await self.ledger.adjust_product(
            product_id,
            -quantity,
            MovementReason.DISPATCH,
            reference_type="dispatch",
            reference_id=dispatch_item.dispatch_id,
            product=product,
        )
        return allocations

    async def release(self, allocation: DispatchBatchAllocation, product: Optional[Product] = None) -> ProductBatch:
        """
        Return an allocated quantity to its batch.

        A depleted batch becomes available again. Quantity returned to an
        expired or recalled batch does not come back into stock.
        """
        result = await self.db.execute(
            select(ProductBatch).where(ProductBatch.id == allocation.batch_id).with_for_update()
        )
        batch = result.scalar_one()

        batch.quantity_remaining += allocation.quantity
        if batch.status in (BatchStatus.AVAILABLE.value, BatchStatus.DEPLETED.value):
            batch.status = BatchStatus.AVAILABLE.value
            await self.ledger.adjust_product(
                batch.product_id,
                allocation.quantity,
                MovementReason.DISPATCH_RELEASE,
                reference_type="batch",
                reference_id=batch.id,
                product=product,
            )
        else:
            logger.warning(
                f"Returned {allocation.quantity} units to {batch.status} batch {batch.batch_number}; not restocked"
            )
        return batch

    # ==================== Quality status ====================

    async def set_status(self, batch_id: uuid.UUID, status: str, notes: Optional[str] = None) -> ProductBatch:
        """
        Mark a batch expired or recalled. Irreversible.

        Only available batches qualify, so a depleted batch keeps its status
        and status == depleted stays equivalent to quantity_remaining == 0.
        The remaining quantity leaves product stock.
        """
        status = _status_value(status)
        if status not in WRITE_OFF_REASONS:
            raise ValidationError(
                f"Batch status can only be set to {', '.join(WRITE_OFF_REASONS)}; "
                f"available/depleted follow the remaining quantity"
            )

        result = await self.db.execute(
            select(ProductBatch).where(ProductBatch.id == batch_id).with_for_update()
        )
        batch = result.scalar_one_or_none()
        if not batch:
            raise NotFoundError("Batch", batch_id)
        if batch.status != BatchStatus.AVAILABLE.value:
            raise InvalidStateError(
                f"Batch {batch.batch_number} is {batch.status}; only available batches can be marked {status}"
            )

        batch.status = status
        if batch.quantity_remaining > 0:
            await self.ledger.adjust_product(
                batch.product_id,
                -batch.quantity_remaining,
                WRITE_OFF_REASONS[status],
                reference_type="batch",
                reference_id=batch.id,
                notes=notes,
            )

        logger.info(f"Batch {batch.batch_number} marked {status} ({batch.quantity_remaining} units remaining)")
        return batch

    # ==================== Queries ====================

    async def list_available(self, product_id: Optional[uuid.UUID] = None, lock: bool = False) -> List[ProductBatch]:
        """Available batches in FIFO order."""
        query = select(ProductBatch).where(
            ProductBatch.status == BatchStatus.AVAILABLE.value,
            ProductBatch.quantity_remaining > 0,
        )
        if product_id:
            query = query.where(ProductBatch.product_id == product_id)
        query = query.order_by(*fifo_order())
        if lock:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_by_product(self, product_id: uuid.UUID, status: Optional[str] = None) -> List[ProductBatch]:
        query = select(ProductBatch).where(ProductBatch.product_id == product_id)
        if status:
            query = query.where(ProductBatch.status == _status_value(status))
        result = await self.db.execute(query.order_by(*fifo_order()))
        return list(result.scalars().all())

    async def list_by_status(self, status: str, product_id: Optional[uuid.UUID] = None) -> List[ProductBatch]:
        query = select(ProductBatch).where(ProductBatch.status == _status_value(status))
        if product_id:
            query = query.where(ProductBatch.product_id == product_id)
        result = await self.db.execute(query.order_by(*fifo_order()))
        return list(result.scalars().all())
