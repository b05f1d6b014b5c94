"""
Master data consumed by the workflow engine.

Stores, vendors, products and raw materials are maintained by the
master-data subsystem; only the attributes the engine reads are modelled.
Stock columns are mutated exclusively through StockLedger.
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Integer, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from backoffice.database import Base
from backoffice.db_types import UUIDType, MoneyType, PercentType, QuantityType


class Store(Base):
    """Retail store buying finished goods."""
    __tablename__ = "stores"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    gst_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )


class Vendor(Base):
    """Raw material supplier."""
    __tablename__ = "vendors"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    gst_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    payment_days: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Credit period; bills fall due receipt_date + payment_days"
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )


class Product(Base):
    """
    Finished product.

    stock_quantity always equals the sum of quantity_remaining over the
    product's available batches.
    """
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_product_stock_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    hsn_code: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    mrp: Mapped[Decimal] = mapped_column(MoneyType, nullable=False, comment="Maximum Retail Price")
    gst_rate: Mapped[Decimal] = mapped_column(PercentType, default=Decimal("0"), nullable=False)
    weight: Mapped[Optional[Decimal]] = mapped_column(QuantityType, nullable=True)
    weight_unit: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    stock_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )


class RawMaterial(Base):
    """Raw material held in stock and consumed by recipes."""
    __tablename__ = "raw_materials"
    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_raw_material_stock_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    hsn_code: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    unit: Mapped[str] = mapped_column(String(10), default="kg", nullable=False)
    stock_quantity: Mapped[Decimal] = mapped_column(QuantityType, default=Decimal("0"), nullable=False)
    reorder_level: Mapped[Decimal] = mapped_column(QuantityType, default=Decimal("0"), nullable=False)
    cost_per_unit: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"), nullable=False)
    vendor_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("vendors.id", ondelete="SET NULL"),
        nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )


class StoreProductMargin(Base):
    """Last margin used for a product at a store; default for the next invoice."""
    __tablename__ = "store_product_margins"
    __table_args__ = (
        UniqueConstraint("store_id", "product_id", name="uq_store_product_margin"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    store_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("stores.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False
    )
    margin_percentage: Mapped[Decimal] = mapped_column(PercentType, nullable=False)
