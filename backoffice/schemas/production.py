from pydantic import Field
from typing import Optional, List
from datetime import datetime, date
from decimal import Decimal
import uuid

from backoffice.models.production import BatchStatus
from backoffice.schemas.base import BaseResponseSchema, BaseCreateSchema


# ==================== RECIPE SCHEMAS ====================

class RecipeLineInput(BaseCreateSchema):
    raw_material_id: uuid.UUID
    quantity_required: Decimal = Field(..., description="Per one unit of product")


class RecipeSet(BaseCreateSchema):
    """Full replacement; an empty list clears the recipe."""
    lines: List[RecipeLineInput] = []


class RecipeLineResponse(BaseResponseSchema):
    id: uuid.UUID
    product_id: uuid.UUID
    raw_material_id: uuid.UUID
    raw_material_name: str
    unit: str
    quantity_required: Decimal
    available_stock: Decimal


class MaterialRequirementResponse(BaseResponseSchema):
    raw_material_id: uuid.UUID
    raw_material_name: str
    unit: str
    quantity_per_unit: Decimal
    required: Decimal
    available: Decimal
    shortage: Decimal
    sufficient: bool


class RecipeRequirementsResponse(BaseResponseSchema):
    product_id: uuid.UUID
    quantity: int
    max_producible: int
    materials: List[MaterialRequirementResponse] = []


# ==================== PRODUCTION ORDER SCHEMAS ====================

class ProductionOrderCreate(BaseCreateSchema):
    product_id: uuid.UUID
    quantity_to_produce: int
    source_order_id: Optional[uuid.UUID] = None
    notes: Optional[str] = None


class ProductionComplete(BaseCreateSchema):
    quantity_produced: Optional[int] = Field(None, description="Defaults to the planned quantity")
    production_date: Optional[date] = None


class ProductionMaterialResponse(BaseResponseSchema):
    id: uuid.UUID
    raw_material_id: uuid.UUID
    quantity_per_unit: Decimal
    quantity_required: Decimal
    quantity_used: Optional[Decimal] = None


class BatchResponse(BaseResponseSchema):
    id: uuid.UUID
    batch_number: str
    product_id: uuid.UUID
    production_order_id: Optional[uuid.UUID] = None
    quantity_produced: int
    quantity_remaining: int
    status: str
    production_date: date
    created_at: datetime


class ProductionOrderResponse(BaseResponseSchema):
    id: uuid.UUID
    order_number: str
    product_id: uuid.UUID
    source_order_id: Optional[uuid.UUID] = None
    quantity_to_produce: int
    quantity_produced: int
    status: str
    notes: Optional[str] = None
    created_by: Optional[uuid.UUID] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    materials: List[ProductionMaterialResponse] = []
    batches: List[BatchResponse] = []


class ProductionOrderCreateResponse(BaseResponseSchema):
    production_order: ProductionOrderResponse
    warnings: List[str] = []


class SuggestionMaterial(BaseResponseSchema):
    raw_material_id: uuid.UUID
    raw_material_name: str
    unit: str
    quantity_per_unit: Decimal
    required: Decimal
    available: Decimal
    sufficient: bool


class ProductionSuggestion(BaseResponseSchema):
    product_id: uuid.UUID
    product_name: str
    total_required: int
    current_stock: int
    production_needed: int
    can_produce: int
    has_recipe: bool
    materials: List[SuggestionMaterial] = []


# ==================== BATCH SCHEMAS ====================

class BatchStatusUpdate(BaseCreateSchema):
    status: BatchStatus
    notes: Optional[str] = None
