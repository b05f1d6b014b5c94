from pydantic import Field
from typing import Optional
from datetime import datetime
from decimal import Decimal
import uuid

from backoffice.models.stock import MovementReason
from backoffice.schemas.base import BaseResponseSchema, BaseCreateSchema


class RawMaterialAdjust(BaseCreateSchema):
    """Manual stock correction. Positive adds, negative removes."""
    raw_material_id: uuid.UUID
    delta: Decimal
    reason: Optional[MovementReason] = Field(
        None, description="Defaults to manual_add / manual_remove by the sign of delta"
    )
    notes: Optional[str] = None


class RawMaterialStockResponse(BaseResponseSchema):
    id: uuid.UUID
    name: str
    unit: str
    stock_quantity: Decimal
    reorder_level: Decimal
    cost_per_unit: Decimal


class ProductStockResponse(BaseResponseSchema):
    id: uuid.UUID
    name: str
    stock_quantity: int


class StockMovementResponse(BaseResponseSchema):
    id: uuid.UUID
    item_type: str
    item_id: uuid.UUID
    delta: Decimal
    balance_after: Decimal
    reason: str
    reference_type: Optional[str] = None
    reference_id: Optional[uuid.UUID] = None
    notes: Optional[str] = None
    created_by: Optional[uuid.UUID] = None
    created_at: datetime
