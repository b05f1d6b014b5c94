"""
Master data seeding.

Stores, vendors, products, raw materials and margins are owned by the
catalog system; these POST-only endpoints exist so the workflow engine
can be run and tested on its own.
"""

from fastapi import APIRouter, status
from sqlalchemy import select

from backoffice.api.deps import DB, CurrentUserId
from backoffice.core.exceptions import ValidationError
from backoffice.models.catalog import Store, Vendor, Product, RawMaterial, StoreProductMargin
from backoffice.models.stock import MovementReason
from backoffice.schemas.master import (
    StoreCreate, StoreResponse,
    VendorCreate, VendorResponse,
    ProductCreate, ProductResponse,
    RawMaterialCreate, RawMaterialResponse,
    MarginSet, MarginResponse,
)
from backoffice.services.batch_service import BatchService
from backoffice.services.stock_ledger import StockLedger


router = APIRouter()


@router.post("/stores", response_model=StoreResponse, status_code=status.HTTP_201_CREATED)
async def create_store(data: StoreCreate, db: DB):
    store = Store(**data.model_dump())
    db.add(store)
    await db.flush()
    return store


@router.post("/vendors", response_model=VendorResponse, status_code=status.HTTP_201_CREATED)
async def create_vendor(data: VendorCreate, db: DB):
    vendor = Vendor(**data.model_dump())
    db.add(vendor)
    await db.flush()
    return vendor


@router.post("/products", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(data: ProductCreate, db: DB, user_id: CurrentUserId):
    """Opening stock is booked as a batch so stock always matches the batches."""
    product = Product(
        **data.model_dump(exclude={"opening_stock", "opening_date"}),
        stock_quantity=0,
    )
    db.add(product)
    await db.flush()

    if data.opening_stock:
        await BatchService(db, user_id).create_opening(product.id, data.opening_stock, data.opening_date)
    return product


@router.post("/raw-materials", response_model=RawMaterialResponse, status_code=status.HTTP_201_CREATED)
async def create_raw_material(data: RawMaterialCreate, db: DB, user_id: CurrentUserId):
    if data.vendor_id and not await db.get(Vendor, data.vendor_id):
        raise ValidationError(f"Vendor {data.vendor_id} does not exist")

    material = RawMaterial(**data.model_dump(exclude={"opening_stock"}))
    db.add(material)
    await db.flush()

    if data.opening_stock:
        await StockLedger(db, user_id).adjust_raw_material(
            material.id,
            data.opening_stock,
            MovementReason.MANUAL_ADD,
            reference_type="opening",
            notes="Opening stock",
        )
    return material


@router.post("/margins", response_model=MarginResponse)
async def set_margin(data: MarginSet, db: DB):
    """Set the remembered margin for a product at a store."""
    if not await db.get(Store, data.store_id):
        raise ValidationError(f"Store {data.store_id} does not exist")
    if not await db.get(Product, data.product_id):
        raise ValidationError(f"Product {data.product_id} does not exist")

    result = await db.execute(
        select(StoreProductMargin).where(
            StoreProductMargin.store_id == data.store_id,
            StoreProductMargin.product_id == data.product_id,
        )
    )
    margin = result.scalar_one_or_none()
    if margin:
        margin.margin_percentage = data.margin_percentage
    else:
        margin = StoreProductMargin(**data.model_dump())
        db.add(margin)
    await db.flush()
    return margin
