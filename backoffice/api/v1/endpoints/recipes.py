"""API endpoints for product recipes."""
from typing import List
from uuid import UUID

from fastapi import APIRouter, Query

from backoffice.api.deps import DB
from backoffice.models.production import ProductRecipe
from backoffice.schemas.production import RecipeSet, RecipeLineResponse, RecipeRequirementsResponse
from backoffice.services.recipe_service import RecipeService


router = APIRouter()


def _line_response(line: ProductRecipe) -> RecipeLineResponse:
    return RecipeLineResponse(
        id=line.id,
        product_id=line.product_id,
        raw_material_id=line.raw_material_id,
        raw_material_name=line.raw_material.name,
        unit=line.raw_material.unit,
        quantity_required=line.quantity_required,
        available_stock=line.raw_material.stock_quantity,
    )


@router.get("/{product_id}", response_model=List[RecipeLineResponse])
async def get_recipe(product_id: UUID, db: DB):
    lines = await RecipeService(db).get(product_id)
    return [_line_response(line) for line in lines]


@router.put("/{product_id}", response_model=List[RecipeLineResponse])
async def set_recipe(product_id: UUID, data: RecipeSet, db: DB):
    """Replace the whole recipe. An empty list clears it."""
    lines = await RecipeService(db).set(product_id, [line.model_dump() for line in data.lines])
    return [_line_response(line) for line in lines]


@router.get("/{product_id}/requirements", response_model=RecipeRequirementsResponse)
async def get_requirements(product_id: UUID, db: DB, quantity: int = Query(..., gt=0)):
    service = RecipeService(db)
    lines = await service.get(product_id)
    requirements = await service.requirements(product_id, quantity)
    return {
        "product_id": product_id,
        "quantity": quantity,
        "max_producible": await service.max_producible(product_id, lines=lines),
        "materials": [
            {
                "raw_material_id": r.raw_material_id,
                "raw_material_name": r.raw_material_name,
                "unit": r.unit,
                "quantity_per_unit": r.quantity_per_unit,
                "required": r.required,
                "available": r.available,
                "shortage": r.shortage,
                "sufficient": r.sufficient,
            }
            for r in requirements
        ],
    }
