from pydantic import Field
from typing import Optional
from datetime import datetime, date
from decimal import Decimal
import uuid

from backoffice.schemas.base import BaseResponseSchema, BaseCreateSchema


# ==================== STORE / VENDOR ====================

class StoreCreate(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=200)
    city: Optional[str] = None
    state: Optional[str] = None
    gst_number: Optional[str] = Field(None, max_length=20)


class StoreResponse(BaseResponseSchema):
    id: uuid.UUID
    name: str
    city: Optional[str] = None
    state: Optional[str] = None
    gst_number: Optional[str] = None
    is_active: bool
    created_at: datetime


class VendorCreate(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=200)
    gst_number: Optional[str] = Field(None, max_length=20)
    phone: Optional[str] = Field(None, max_length=20)
    payment_days: Optional[int] = Field(None, ge=0)


class VendorResponse(BaseResponseSchema):
    id: uuid.UUID
    name: str
    gst_number: Optional[str] = None
    phone: Optional[str] = None
    payment_days: Optional[int] = None
    is_active: bool
    created_at: datetime


# ==================== PRODUCT / RAW MATERIAL ====================

class ProductCreate(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=200)
    hsn_code: Optional[str] = Field(None, max_length=8)
    mrp: Decimal = Field(..., ge=0)
    gst_rate: Decimal = Field(Decimal("0"), ge=0)
    weight: Optional[Decimal] = None
    weight_unit: Optional[str] = None
    opening_stock: int = Field(0, ge=0, description="Booked as an opening batch")
    opening_date: Optional[date] = None


class ProductResponse(BaseResponseSchema):
    id: uuid.UUID
    name: str
    hsn_code: Optional[str] = None
    mrp: Decimal
    gst_rate: Decimal
    weight: Optional[Decimal] = None
    weight_unit: Optional[str] = None
    stock_quantity: int
    is_active: bool
    created_at: datetime


class RawMaterialCreate(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=200)
    hsn_code: Optional[str] = Field(None, max_length=8)
    unit: str = "kg"
    reorder_level: Decimal = Field(Decimal("0"), ge=0)
    cost_per_unit: Decimal = Field(Decimal("0"), ge=0)
    vendor_id: Optional[uuid.UUID] = None
    opening_stock: Decimal = Field(Decimal("0"), ge=0)


class RawMaterialResponse(BaseResponseSchema):
    id: uuid.UUID
    name: str
    hsn_code: Optional[str] = None
    unit: str
    stock_quantity: Decimal
    reorder_level: Decimal
    cost_per_unit: Decimal
    vendor_id: Optional[uuid.UUID] = None
    is_active: bool
    created_at: datetime


# ==================== MARGINS ====================

class MarginSet(BaseCreateSchema):
    store_id: uuid.UUID
    product_id: uuid.UUID
    margin_percentage: Decimal = Field(..., max_digits=6, decimal_places=2)


class MarginResponse(BaseResponseSchema):
    id: uuid.UUID
    store_id: uuid.UUID
    product_id: uuid.UUID
    margin_percentage: Decimal
