import uuid
from datetime import datetime, timezone, date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import (
    String, DateTime, Date, ForeignKey, Integer, Text, Index,
    UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.database import Base
from backoffice.db_types import UUIDType, QuantityType

if TYPE_CHECKING:
    from backoffice.models.catalog import Product, RawMaterial


class ProductionStatus(str, Enum):
    """Production order lifecycle."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"     # terminal
    CANCELLED = "cancelled"     # terminal


class BatchStatus(str, Enum):
    AVAILABLE = "available"
    DEPLETED = "depleted"       # quantity_remaining == 0
    EXPIRED = "expired"
    RECALLED = "recalled"


class ProductRecipe(Base):
    """One recipe line: raw material consumed per unit of product."""
    __tablename__ = "product_recipes"
    __table_args__ = (
        UniqueConstraint("product_id", "raw_material_id", name="uq_recipe_product_material"),
        CheckConstraint("quantity_required > 0", name="ck_recipe_quantity_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    raw_material_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("raw_materials.id", ondelete="RESTRICT"),
        nullable=False
    )
    quantity_required: Mapped[Decimal] = mapped_column(
        QuantityType,
        nullable=False,
        comment="Per one unit of product"
    )

    raw_material: Mapped["RawMaterial"] = relationship("RawMaterial", lazy="raise")


class ProductionOrder(Base):
    """Instruction to produce a quantity of one product."""
    __tablename__ = "production_orders"
    __table_args__ = (
        Index('ix_production_status_created', 'status', 'created_at'),
        CheckConstraint("quantity_to_produce > 0", name="ck_production_quantity_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    order_number: Mapped[str] = mapped_column(String(30), unique=True, nullable=False, index=True)

    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    source_order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("orders.id", ondelete="SET NULL"),
        nullable=True,
        comment="Sales order that triggered this production"
    )

    quantity_to_produce: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_produced: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=ProductionStatus.PENDING.value,
        nullable=False,
        index=True,
        comment="pending, in_progress, completed, cancelled"
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)
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
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    product: Mapped["Product"] = relationship("Product", lazy="raise")
    materials: Mapped[List["ProductionMaterial"]] = relationship(
        "ProductionMaterial",
        back_populates="production_order",
        cascade="all, delete-orphan",
        lazy="raise",
    )
    batches: Mapped[List["ProductBatch"]] = relationship(
        "ProductBatch",
        back_populates="production_order",
        lazy="raise",
    )


class ProductionMaterial(Base):
    """Recipe snapshot taken when production starts, with actual usage at completion."""
    __tablename__ = "production_materials"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    production_order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("production_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    raw_material_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("raw_materials.id", ondelete="RESTRICT"),
        nullable=False
    )
    quantity_per_unit: Mapped[Decimal] = mapped_column(QuantityType, nullable=False)
    quantity_required: Mapped[Decimal] = mapped_column(
        QuantityType,
        nullable=False,
        comment="quantity_per_unit x quantity_to_produce"
    )
    quantity_used: Mapped[Optional[Decimal]] = mapped_column(
        QuantityType,
        nullable=True,
        comment="quantity_per_unit x quantity_produced, set on completion"
    )

    production_order: Mapped["ProductionOrder"] = relationship(
        "ProductionOrder", back_populates="materials"
    )
    raw_material: Mapped["RawMaterial"] = relationship("RawMaterial", lazy="raise")


class ProductBatch(Base):
    """
    Finished-goods batch created by one production completion.

    0 <= quantity_remaining <= quantity_produced; status is depleted
    exactly when quantity_remaining is 0.
    """
    __tablename__ = "product_batches"
    __table_args__ = (
        Index('ix_batch_product_status_date', 'product_id', 'status', 'production_date'),
        CheckConstraint(
            "quantity_remaining >= 0 AND quantity_remaining <= quantity_produced",
            name="ck_batch_remaining_bounds"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    batch_number: Mapped[str] = mapped_column(String(30), unique=True, nullable=False, index=True)

    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False
    )
    production_order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("production_orders.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    quantity_produced: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_remaining: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=BatchStatus.AVAILABLE.value,
        nullable=False,
        comment="available, depleted, expired, recalled"
    )
    production_date: Mapped[date] = mapped_column(Date, nullable=False)

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

    production_order: Mapped[Optional["ProductionOrder"]] = relationship(
        "ProductionOrder", back_populates="batches"
    )
