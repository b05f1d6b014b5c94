"""
Recipe Engine.

A product's recipe is its set of (raw material, quantity per unit) lines.
Zero lines means "no recipe defined", which is different from a line
that consumes nothing (not allowed: quantity_required must be > 0).
"""
import uuid
import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR
from typing import List, Optional, Sequence

from sqlalchemy import select, delete
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.exceptions import NotFoundError, ValidationError
from backoffice.models.catalog import Product, RawMaterial
from backoffice.models.production import ProductRecipe


logger = logging.getLogger(__name__)


@dataclass
class MaterialRequirement:
    """Requirement for one recipe line at a given production quantity."""
    raw_material_id: uuid.UUID
    raw_material_name: str
    unit: str
    quantity_per_unit: Decimal
    required: Decimal
    available: Decimal

    @property
    def sufficient(self) -> bool:
        return self.available >= self.required

    @property
    def shortage(self) -> Decimal:
        return max(self.required - self.available, Decimal("0"))

    def as_dict(self) -> dict:
        return {
            "raw_material_id": str(self.raw_material_id),
            "raw_material_name": self.raw_material_name,
            "unit": self.unit,
            "quantity_per_unit": str(self.quantity_per_unit),
            "required": str(self.required),
            "available": str(self.available),
            "shortage": str(self.shortage),
            "sufficient": self.sufficient,
        }


def max_producible_from(lines: Sequence[ProductRecipe]) -> int:
    """min over lines of floor(stock / quantity_required); 0 without a recipe."""
    if not lines:
        return 0
    return min(
        int((line.raw_material.stock_quantity / line.quantity_required).to_integral_value(rounding=ROUND_FLOOR))
        for line in lines
    )


class RecipeService:
    """Read and replace product recipes."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_product(self, product_id: uuid.UUID) -> Product:
        product = await self.db.get(Product, product_id)
        if not product:
            raise NotFoundError("Product", product_id)
        return product

    async def get(self, product_id: uuid.UUID) -> List[ProductRecipe]:
        """Recipe lines with their raw materials loaded."""
        result = await self.db.execute(
            select(ProductRecipe)
            .options(selectinload(ProductRecipe.raw_material))
            .where(ProductRecipe.product_id == product_id)
            .order_by(ProductRecipe.id)
        )
        return list(result.scalars().all())

    async def has_recipe(self, product_id: uuid.UUID) -> bool:
        result = await self.db.execute(
            select(ProductRecipe.id).where(ProductRecipe.product_id == product_id).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def set(self, product_id: uuid.UUID, lines: Sequence[dict]) -> List[ProductRecipe]:
        """
        Replace all recipe lines of a product.

        Each line is {"raw_material_id", "quantity_required"}. An empty
        list clears the recipe.

        Raises:
            ValidationError: duplicate material, non-positive quantity or unknown material
        """
        product = await self._get_product(product_id)

        seen = set()
        for line in lines:
            material_id = line["raw_material_id"]
            if material_id in seen:
                raise ValidationError(f"Raw material {material_id} appears more than once in the recipe")
            seen.add(material_id)
            if Decimal(str(line["quantity_required"])) <= 0:
                raise ValidationError("Recipe quantity_required must be greater than zero")

        if seen:
            result = await self.db.execute(select(RawMaterial.id).where(RawMaterial.id.in_(seen)))
            found = set(result.scalars().all())
            missing = seen - found
            if missing:
                raise ValidationError(
                    f"Unknown raw material(s): {', '.join(str(m) for m in sorted(missing))}"
                )

        await self.db.execute(delete(ProductRecipe).where(ProductRecipe.product_id == product_id))
        for line in lines:
            self.db.add(ProductRecipe(
                product_id=product_id,
                raw_material_id=line["raw_material_id"],
                quantity_required=Decimal(str(line["quantity_required"])),
            ))
        await self.db.flush()

        logger.info(f"Recipe for {product.name} set with {len(lines)} line(s)")
        return await self.get(product_id)

    async def requirements(self, product_id: uuid.UUID, quantity: int) -> List[MaterialRequirement]:
        """Raw materials needed to produce `quantity` units, against current stock."""
        if quantity <= 0:
            raise ValidationError("Quantity must be greater than zero")
        lines = await self.get(product_id)
        return [
            MaterialRequirement(
                raw_material_id=line.raw_material_id,
                raw_material_name=line.raw_material.name,
                unit=line.raw_material.unit,
                quantity_per_unit=line.quantity_required,
                required=line.quantity_required * quantity,
                available=line.raw_material.stock_quantity,
            )
            for line in lines
        ]

    async def max_producible(self, product_id: uuid.UUID, lines: Optional[List[ProductRecipe]] = None) -> int:
        """Largest quantity the current raw-material stock can produce."""
        if lines is None:
            lines = await self.get(product_id)
        return max_producible_from(lines)
