"""
Production orders: pending -> in_progress -> completed | cancelled.

start is blocking on raw material stock (InsufficientMaterialError).
Materials are not reserved at start; complete deducts them under row
locks in proportion to the actual yield and creates one batch, all in
the caller's transaction.
"""
import uuid
import logging
from collections import defaultdict
from datetime import date
from typing import Optional, List, Dict, Any, Tuple

from sqlalchemy import select, func
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.config import settings
from backoffice.core.exceptions import (
    InsufficientMaterialError,
    NoRecipeError,
    NotFoundError,
    ValidationError,
)
from backoffice.models.catalog import Product
from backoffice.models.order import Order, OrderItem
from backoffice.services import order_state_machine
from backoffice.models.production import (
    ProductionOrder,
    ProductionMaterial,
    ProductionStatus,
    ProductRecipe,
)
from backoffice.models.stock import MovementReason
from backoffice.services.batch_service import BatchService
from backoffice.services.document_sequence_service import DocumentSequenceService
from backoffice.services.production_state_machine import transition_production, validate_transition
from backoffice.services.recipe_service import RecipeService, max_producible_from
from backoffice.services.stock_ledger import StockLedger


logger = logging.getLogger(__name__)


class ProductionService:
    """Service for the production order lifecycle."""

    def __init__(self, db: AsyncSession, user_id: Optional[uuid.UUID] = None):
        self.db = db
        self.user_id = user_id
        self.recipes = RecipeService(db)
        self.batches = BatchService(db, user_id)
        self.ledger = StockLedger(db, user_id)

    async def _load(self, production_order_id: uuid.UUID, lock: bool = False) -> ProductionOrder:
        query = (
            select(ProductionOrder)
            .options(
                selectinload(ProductionOrder.materials),
                selectinload(ProductionOrder.product),
                selectinload(ProductionOrder.batches),
            )
            .where(ProductionOrder.id == production_order_id)
        )
        if lock:
            query = query.with_for_update()
        result = await self.db.execute(query)
        production_order = result.scalar_one_or_none()
        if not production_order:
            raise NotFoundError("Production order", production_order_id)
        return production_order

    async def get(self, production_order_id: uuid.UUID) -> ProductionOrder:
        return await self._load(production_order_id)

    async def list(
        self,
        status: Optional[str] = None,
        product_id: Optional[uuid.UUID] = None,
    ) -> List[ProductionOrder]:
        query = select(ProductionOrder).options(
            selectinload(ProductionOrder.materials),
            selectinload(ProductionOrder.product),
            selectinload(ProductionOrder.batches),
        )
        if status:
            query = query.where(ProductionOrder.status == status)
        if product_id:
            query = query.where(ProductionOrder.product_id == product_id)
        result = await self.db.execute(query.order_by(ProductionOrder.created_at.desc()))
        return list(result.scalars().all())

    # ==================== Lifecycle ====================

    async def create(
        self,
        product_id: uuid.UUID,
        quantity_to_produce: int,
        source_order_id: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
    ) -> Tuple[ProductionOrder, List[str]]:
        """
        Create a pending production order.

        Returns the order and a list of warnings (a missing recipe when
        REQUIRE_RECIPE_ON_CREATE is off).
        """
        if quantity_to_produce is None or int(quantity_to_produce) != quantity_to_produce or quantity_to_produce <= 0:
            raise ValidationError("quantity_to_produce must be a positive whole number")

        product = await self.db.get(Product, product_id)
        if not product or not product.is_active:
            raise ValidationError(f"Product {product_id} does not exist or is inactive")

        if source_order_id and not await self.db.get(Order, source_order_id):
            raise ValidationError(f"Order {source_order_id} does not exist")

        warnings: List[str] = []
        if not await self.recipes.has_recipe(product_id):
            if settings.REQUIRE_RECIPE_ON_CREATE:
                raise NoRecipeError(product.name)
            message = f"Product '{product.name}' has no recipe; it must be defined before production starts"
            logger.warning(message)
            warnings.append(message)

        order_number = await DocumentSequenceService(self.db).get_next_number("PROD")
        production_order = ProductionOrder(
            order_number=order_number,
            product=product,
            product_id=product_id,
            source_order_id=source_order_id,
            quantity_to_produce=int(quantity_to_produce),
            quantity_produced=0,
            status=ProductionStatus.PENDING.value,
            notes=notes,
            created_by=self.user_id,
        )
        self.db.add(production_order)
        await self.db.flush()

        logger.info(f"Production order {order_number} created: {quantity_to_produce} x {product.name}")
        return await self._load(production_order.id), warnings

    async def start(self, production_order_id: uuid.UUID) -> ProductionOrder:
        """
        pending -> in_progress.

        Raises:
            NoRecipeError: the product has no recipe lines
            InsufficientMaterialError: any raw material cannot cover the planned quantity
        """
        production_order = await self._load(production_order_id, lock=True)
        validate_transition(production_order.status, ProductionStatus.IN_PROGRESS.value)

        requirements = await self.recipes.requirements(
            production_order.product_id, production_order.quantity_to_produce
        )
        if not requirements:
            raise NoRecipeError(production_order.product.name)

        shortages = [r.as_dict() for r in requirements if not r.sufficient]
        if shortages:
            names = ", ".join(s["raw_material_name"] for s in shortages)
            raise InsufficientMaterialError(
                f"Insufficient raw materials to start {production_order.order_number}: {names}",
                shortages=shortages,
            )

        for requirement in requirements:
            production_order.materials.append(ProductionMaterial(
                raw_material_id=requirement.raw_material_id,
                quantity_per_unit=requirement.quantity_per_unit,
                quantity_required=requirement.required,
            ))

        transition_production(production_order, ProductionStatus.IN_PROGRESS.value)
        await self.db.flush()

        logger.info(f"Production order {production_order.order_number} started")
        return await self._load(production_order.id)

    async def complete(
        self,
        production_order_id: uuid.UUID,
        quantity_produced: Optional[int] = None,
        production_date: Optional[date] = None,
    ) -> ProductionOrder:
        """
        in_progress -> completed.

        Materials are charged for the actual output:
        consumption = quantity_per_unit x quantity_produced.

        Raises:
            NegativeStockError: raw material stock fell since start
        """
        production_order = await self._load(production_order_id, lock=True)
        validate_transition(production_order.status, ProductionStatus.COMPLETED.value)

        if quantity_produced is None:
            quantity_produced = production_order.quantity_to_produce
        if int(quantity_produced) != quantity_produced or quantity_produced <= 0:
            raise ValidationError("quantity_produced must be a positive whole number")
        quantity_produced = int(quantity_produced)

        materials = await self.ledger.lock_raw_materials(
            m.raw_material_id for m in production_order.materials
        )
        for line in sorted(production_order.materials, key=lambda m: m.raw_material_id):
            consumption = line.quantity_per_unit * quantity_produced
            await self.ledger.adjust_raw_material(
                line.raw_material_id,
                -consumption,
                MovementReason.PRODUCTION_CONSUMPTION,
                reference_type="production_order",
                reference_id=production_order.id,
                material=materials[line.raw_material_id],
            )
            line.quantity_used = consumption

        batch = await self.batches.create_for_production(
            production_order,
            quantity_produced,
            production_date=production_date,
        )
        production_order.batches.append(batch)

        production_order.quantity_produced = quantity_produced
        transition_production(production_order, ProductionStatus.COMPLETED.value)
        await self.db.flush()

        if quantity_produced != production_order.quantity_to_produce:
            logger.info(
                f"Production order {production_order.order_number} yield {quantity_produced} "
                f"of planned {production_order.quantity_to_produce}"
            )
        logger.info(f"Production order {production_order.order_number} completed")
        return await self._load(production_order.id)

    async def cancel(self, production_order_id: uuid.UUID) -> ProductionOrder:
        """pending | in_progress -> cancelled. Nothing was reserved, so nothing is released."""
        production_order = await self._load(production_order_id, lock=True)
        transition_production(production_order, ProductionStatus.CANCELLED.value)
        await self.db.flush()

        logger.info(f"Production order {production_order.order_number} cancelled")
        return production_order

    # ==================== Suggestions ====================

    async def suggestions(self) -> List[Dict[str, Any]]:
        """
        Suggested production per product with outstanding demand.

        total_required sums submitted and approved order quantities;
        production_needed = max(0, total_required - stock); can_produce is
        what current raw material stock allows.
        """
        demand_result = await self.db.execute(
            select(OrderItem.product_id, func.sum(OrderItem.quantity))
            .join(Order, Order.id == OrderItem.order_id)
            .where(Order.status.in_(order_state_machine.OUTSTANDING_STATUSES))
            .group_by(OrderItem.product_id)
        )
        demand = {product_id: int(total or 0) for product_id, total in demand_result.all()}
        if not demand:
            return []

        products_result = await self.db.execute(
            select(Product).where(Product.id.in_(list(demand.keys()))).order_by(Product.name)
        )
        products = products_result.scalars().all()

        recipe_result = await self.db.execute(
            select(ProductRecipe)
            .options(selectinload(ProductRecipe.raw_material))
            .where(ProductRecipe.product_id.in_(list(demand.keys())))
        )
        recipes: Dict[uuid.UUID, List[ProductRecipe]] = defaultdict(list)
        for line in recipe_result.scalars().all():
            recipes[line.product_id].append(line)

        suggestions = []
        for product in products:
            total_required = demand[product.id]
            current_stock = product.stock_quantity or 0
            production_needed = max(0, total_required - current_stock)
            lines = recipes.get(product.id, [])

            materials = []
            for line in lines:
                required = line.quantity_required * production_needed
                available = line.raw_material.stock_quantity
                materials.append({
                    "raw_material_id": line.raw_material_id,
                    "raw_material_name": line.raw_material.name,
                    "unit": line.raw_material.unit,
                    "quantity_per_unit": line.quantity_required,
                    "required": required,
                    "available": available,
                    "sufficient": available >= required,
                })

            suggestions.append({
                "product_id": product.id,
                "product_name": product.name,
                "total_required": total_required,
                "current_stock": current_stock,
                "production_needed": production_needed,
                "can_produce": max_producible_from(lines),
                "has_recipe": bool(lines),
                "materials": materials,
            })

        suggestions.sort(key=lambda s: s["production_needed"], reverse=True)
        return suggestions
