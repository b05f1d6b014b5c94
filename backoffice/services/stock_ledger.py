"""
Stock Ledger.

The only code path that mutates RawMaterial.stock_quantity and
Product.stock_quantity. Every mutation:
1. Locks the stock row (SELECT ... FOR UPDATE)
2. Rejects results below zero with NegativeStockError
3. Appends a StockMovement row with the balance after the change
"""
import uuid
import logging
from decimal import Decimal
from typing import Optional, List, Dict, Iterable, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.exceptions import NegativeStockError, NotFoundError, ValidationError
from backoffice.models.catalog import Product, RawMaterial
from backoffice.models.stock import StockMovement, StockItemType, MovementReason


logger = logging.getLogger(__name__)


class StockLedger:
    """Atomic increment/decrement of on-hand quantities."""

    def __init__(self, db: AsyncSession, user_id: Optional[uuid.UUID] = None):
        self.db = db
        self.user_id = user_id

    # ==================== Locking ====================

    async def lock_raw_materials(self, material_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, RawMaterial]:
        """
        Lock raw material rows in ascending id order.

        Raises:
            NotFoundError: if any id does not exist
        """
        ids = sorted(set(material_ids))
        if not ids:
            return {}
        result = await self.db.execute(
            select(RawMaterial)
            .where(RawMaterial.id.in_(ids))
            .order_by(RawMaterial.id)
            .with_for_update()
        )
        materials = {m.id: m for m in result.scalars().all()}
        for material_id in ids:
            if material_id not in materials:
                raise NotFoundError("Raw material", material_id)
        return materials

    async def lock_products(self, product_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, Product]:
        """Lock product rows in ascending id order."""
        ids = sorted(set(product_ids))
        if not ids:
            return {}
        result = await self.db.execute(
            select(Product)
            .where(Product.id.in_(ids))
            .order_by(Product.id)
            .with_for_update()
        )
        products = {p.id: p for p in result.scalars().all()}
        for product_id in ids:
            if product_id not in products:
                raise NotFoundError("Product", product_id)
        return products

    # ==================== Mutations ====================

    async def adjust_raw_material(
        self,
        material_id: uuid.UUID,
        delta: Union[Decimal, int, str],
        reason: MovementReason,
        reference_type: Optional[str] = None,
        reference_id: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
        material: Optional[RawMaterial] = None,
    ) -> RawMaterial:
        """
        Add (positive delta) or remove (negative delta) raw material stock.

        Pass an already locked `material` to skip the lock query.

        Raises:
            ValidationError: zero delta
            NegativeStockError: resulting stock would be below zero
        """
        delta = Decimal(str(delta))
        if delta == 0:
            raise ValidationError("Stock adjustment quantity cannot be zero")

        if material is None:
            material = (await self.lock_raw_materials([material_id]))[material_id]

        current = material.stock_quantity or Decimal("0")
        new_balance = current + delta
        if new_balance < 0:
            raise NegativeStockError(material.name, available=current, requested=-delta)

        material.stock_quantity = new_balance
        self._record(StockItemType.RAW_MATERIAL, material.id, delta, new_balance,
                     reason, reference_type, reference_id, notes)

        logger.info(
            f"Raw material {material.name}: {current} -> {new_balance} {material.unit} ({MovementReason(reason).value})"
        )
        return material

    async def adjust_product(
        self,
        product_id: uuid.UUID,
        delta: int,
        reason: MovementReason,
        reference_type: Optional[str] = None,
        reference_id: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
        product: Optional[Product] = None,
    ) -> Product:
        """
        Change finished-goods stock.

        Called by the batch engine only, together with the matching batch
        change, so stock stays equal to the sum of available batches.
        """
        if delta != int(delta):
            raise ValidationError(f"Finished-goods quantity must be whole units, got {delta}")
        delta = int(delta)
        if delta == 0:
            raise ValidationError("Stock adjustment quantity cannot be zero")

        if product is None:
            product = (await self.lock_products([product_id]))[product_id]

        current = product.stock_quantity or 0
        new_balance = current + delta
        if new_balance < 0:
            raise NegativeStockError(product.name, available=Decimal(current), requested=Decimal(-delta))

        product.stock_quantity = new_balance
        self._record(StockItemType.PRODUCT, product.id, Decimal(delta), Decimal(new_balance),
                     reason, reference_type, reference_id, notes)

        logger.info(f"Product {product.name}: {current} -> {new_balance} ({MovementReason(reason).value})")
        return product

    def _record(
        self,
        item_type: StockItemType,
        item_id: uuid.UUID,
        delta: Decimal,
        balance_after: Decimal,
        reason: MovementReason,
        reference_type: Optional[str],
        reference_id: Optional[uuid.UUID],
        notes: Optional[str],
    ) -> None:
        self.db.add(StockMovement(
            item_type=item_type.value,
            item_id=item_id,
            delta=delta,
            balance_after=balance_after,
            reason=MovementReason(reason).value,
            reference_type=reference_type,
            reference_id=reference_id,
            notes=notes,
            created_by=self.user_id,
        ))

    # ==================== Queries ====================

    async def low_stock_materials(self) -> List[RawMaterial]:
        """Active raw materials at or below their reorder level."""
        result = await self.db.execute(
            select(RawMaterial)
            .where(
                RawMaterial.is_active == True,
                RawMaterial.stock_quantity <= RawMaterial.reorder_level,
            )
            .order_by(RawMaterial.name)
        )
        return list(result.scalars().all())

    async def movements(
        self,
        item_type: StockItemType,
        item_id: uuid.UUID,
        limit: int = 100,
    ) -> List[StockMovement]:
        """Movement history, newest first."""
        result = await self.db.execute(
            select(StockMovement)
            .where(
                StockMovement.item_type == StockItemType(item_type).value,
                StockMovement.item_id == item_id,
            )
            .order_by(StockMovement.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
