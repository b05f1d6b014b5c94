"""
Dispatch of invoiced goods.

Finished-goods stock leaves the warehouse here, not at invoicing:
allocating a dispatch draws batches FIFO and decrements product stock.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, DateTime, ForeignKey, Integer, Text, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.database import Base
from backoffice.db_types import UUIDType

if TYPE_CHECKING:
    from backoffice.models.production import ProductBatch


class DispatchStatus(str, Enum):
    PENDING = "pending"         # created with the invoice, nothing allocated
    READY = "ready"             # batches allocated, stock decremented
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"     # terminal
    CANCELLED = "cancelled"     # terminal


class Dispatch(Base):
    __tablename__ = "dispatches"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    dispatch_number: Mapped[str] = mapped_column(
        String(30),
        unique=True,
        nullable=False,
        index=True,
        comment="DSP-2025-26/1"
    )
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    store_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("stores.id", ondelete="RESTRICT"),
        nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=DispatchStatus.PENDING.value,
        nullable=False,
        index=True,
        comment="pending, ready, in_transit, delivered, cancelled"
    )
    vehicle_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

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
    allocated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    dispatched_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    items: Mapped[List["DispatchItem"]] = relationship(
        "DispatchItem",
        back_populates="dispatch",
        cascade="all, delete-orphan",
        lazy="raise",
    )


class DispatchItem(Base):
    __tablename__ = "dispatch_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_dispatch_item_quantity_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    dispatch_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("dispatches.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    dispatch: Mapped["Dispatch"] = relationship("Dispatch", back_populates="items")
    allocations: Mapped[List["DispatchBatchAllocation"]] = relationship(
        "DispatchBatchAllocation",
        back_populates="dispatch_item",
        cascade="all, delete-orphan",
        lazy="raise",
    )


class DispatchBatchAllocation(Base):
    """Quantity of one batch drawn for one dispatch line."""
    __tablename__ = "dispatch_batch_allocations"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_allocation_quantity_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    dispatch_item_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("dispatch_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    batch_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("product_batches.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    dispatch_item: Mapped["DispatchItem"] = relationship(
        "DispatchItem", back_populates="allocations"
    )
    batch: Mapped["ProductBatch"] = relationship("ProductBatch", lazy="raise")
