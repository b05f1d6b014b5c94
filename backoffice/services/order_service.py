"""Sales order service: create, edit and move orders through their lifecycle."""
import uuid
import logging
from typing import Optional, List, Dict, Any, Sequence

from sqlalchemy import select
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from backoffice.models.catalog import Product, Store
from backoffice.models.order import Order, OrderItem, OrderStatus
from backoffice.schemas.order import OrderItemCreate
from backoffice.services import order_state_machine
from backoffice.services.document_sequence_service import DocumentSequenceService


logger = logging.getLogger(__name__)


class OrderService:
    """Service for sales order operations."""

    def __init__(self, db: AsyncSession, user_id: Optional[uuid.UUID] = None):
        self.db = db
        self.user_id = user_id

    async def _load(self, order_id: uuid.UUID, lock: bool = False) -> Order:
        query = (
            select(Order)
            .options(selectinload(Order.items), selectinload(Order.store))
            .where(Order.id == order_id)
        )
        if lock:
            query = query.with_for_update()
        result = await self.db.execute(query)
        order = result.scalar_one_or_none()
        if not order:
            raise NotFoundError("Order", order_id)
        return order

    async def get(self, order_id: uuid.UUID) -> Order:
        return await self._load(order_id)

    async def list(
        self,
        status: Optional[str] = None,
        store_id: Optional[uuid.UUID] = None,
    ) -> List[Order]:
        query = select(Order).options(selectinload(Order.items), selectinload(Order.store))
        if status:
            query = query.where(Order.status == status)
        if store_id:
            query = query.where(Order.store_id == store_id)
        result = await self.db.execute(query.order_by(Order.created_at.desc()))
        return list(result.scalars().all())

    async def _build_items(self, items: Sequence[OrderItemCreate]) -> List[OrderItem]:
        """Validate lines against active products and snapshot their MRP."""
        if not items:
            raise ValidationError("An order needs at least one item")

        product_ids = {item.product_id for item in items}
        result = await self.db.execute(select(Product).where(Product.id.in_(product_ids)))
        products: Dict[uuid.UUID, Product] = {p.id: p for p in result.scalars().all()}

        order_items = []
        for item in items:
            if item.quantity is None or item.quantity <= 0:
                raise ValidationError(f"Quantity must be greater than zero for product {item.product_id}")
            product = products.get(item.product_id)
            if not product or not product.is_active:
                raise ValidationError(f"Product {item.product_id} does not exist or is inactive")
            order_items.append(OrderItem(
                product_id=product.id,
                quantity=item.quantity,
                stock_qty=item.stock_qty,
                mrp=product.mrp,
            ))
        return order_items

    # ==================== Lifecycle ====================

    async def create(
        self,
        store_id: uuid.UUID,
        items: Sequence[OrderItemCreate],
        notes: Optional[str] = None,
    ) -> Order:
        """Create a draft order."""
        store = await self.db.get(Store, store_id)
        if not store or not store.is_active:
            raise ValidationError(f"Store {store_id} does not exist or is inactive")

        order_items = await self._build_items(items)
        order_number = await DocumentSequenceService(self.db).get_next_number("ORD")

        order = Order(
            order_number=order_number,
            store=store,
            store_id=store_id,
            status=OrderStatus.DRAFT.value,
            notes=notes,
            created_by=self.user_id,
            items=order_items,
        )
        self.db.add(order)
        await self.db.flush()

        logger.info(f"Order {order_number} created for {store.name} with {len(order_items)} item(s)")
        return order

    async def update(
        self,
        order_id: uuid.UUID,
        items: Optional[Sequence[OrderItemCreate]] = None,
        notes: Optional[str] = None,
    ) -> Order:
        """Replace items and/or notes. Only draft and submitted orders; status is unchanged."""
        order = await self._load(order_id, lock=True)
        if not order_state_machine.can_edit(order.status):
            raise InvalidStateError(f"Order {order.order_number} cannot be edited in '{order.status}' status")

        if items is not None:
            order.items = await self._build_items(items)
        if notes is not None:
            order.notes = notes
        await self.db.flush()

        logger.info(f"Order {order.order_number} updated")
        return order

    async def submit(self, order_id: uuid.UUID) -> Order:
        order = await self._load(order_id, lock=True)
        order_state_machine.transition_order(order, OrderStatus.SUBMITTED.value)
        await self.db.flush()
        logger.info(f"Order {order.order_number} submitted")
        return order

    async def approve(self, order_id: uuid.UUID) -> Dict[str, Any]:
        """
        submitted -> approved.

        Stock is checked per line but never blocks approval; shortages
        come back as warnings to drive production.
        """
        order = await self._load(order_id, lock=True)
        order_state_machine.transition_order(order, OrderStatus.APPROVED.value)

        product_ids = {item.product_id for item in order.items}
        result = await self.db.execute(select(Product).where(Product.id.in_(product_ids)))
        products = {p.id: p for p in result.scalars().all()}

        warnings = []
        for item in order.items:
            product = products[item.product_id]
            available = product.stock_quantity or 0
            if available >= item.quantity:
                continue
            warnings.append({
                "product_id": product.id,
                "product_name": product.name,
                "required": item.quantity,
                "available": available,
                "kind": "out_of_stock" if available <= 0 else "low_stock",
            })

        await self.db.flush()

        if warnings:
            logger.warning(
                f"Order {order.order_number} approved with stock shortages: "
                + ", ".join(f"{w['product_name']} ({w['available']}/{w['required']})" for w in warnings)
            )
        else:
            logger.info(f"Order {order.order_number} approved")
        return {"order": order, "warnings": warnings}

    async def cancel(self, order_id: uuid.UUID) -> Order:
        """Allowed from draft, submitted or approved; an invoiced order is cancelled through its invoice."""
        order = await self._load(order_id, lock=True)
        order_state_machine.transition_order(order, OrderStatus.CANCELLED.value)
        await self.db.flush()
        logger.info(f"Order {order.order_number} cancelled")
        return order

    async def delete(self, order_id: uuid.UUID) -> None:
        """Permanently remove a draft or cancelled order with its items."""
        order = await self._load(order_id, lock=True)
        if not order_state_machine.can_delete(order.status):
            raise InvalidStateError(
                f"Order {order.order_number} in '{order.status}' status cannot be deleted. "
                f"Only draft or cancelled orders can be deleted."
            )
        await self.db.delete(order)
        await self.db.flush()
        logger.info(f"Order {order.order_number} deleted")
