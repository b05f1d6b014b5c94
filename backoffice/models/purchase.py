"""
Buy side: purchase requests to vendors and raw-material receipts.

A receipt is also the vendor's payable bill (due_date = receipt_date +
vendor payment days). Receipts without a request are direct receipts.
"""
import uuid
from datetime import datetime, timezone, date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, DateTime, Date, ForeignKey, Text, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.database import Base
from backoffice.db_types import UUIDType, MoneyType, QuantityType

if TYPE_CHECKING:
    from backoffice.models.catalog import Vendor, RawMaterial


class PurchaseRequestStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    PARTIAL = "partial"
    RECEIVED = "received"       # terminal
    CLOSED = "closed"           # terminal, short-closed
    CANCELLED = "cancelled"     # terminal


class BillPaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


class PurchaseRequest(Base):
    """Request for raw materials sent to a vendor."""
    __tablename__ = "purchase_requests"
    __table_args__ = (
        Index('ix_purchase_requests_vendor_status', 'vendor_id', 'status'),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    request_number: Mapped[str] = mapped_column(
        String(30),
        unique=True,
        nullable=False,
        index=True,
        comment="PR-2025-26/1"
    )
    vendor_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("vendors.id", ondelete="RESTRICT"),
        nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=PurchaseRequestStatus.DRAFT.value,
        nullable=False,
        comment="draft, submitted, partial, received, closed, cancelled"
    )
    expected_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
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

    vendor: Mapped["Vendor"] = relationship("Vendor", lazy="raise")
    items: Mapped[List["PurchaseRequestItem"]] = relationship(
        "PurchaseRequestItem",
        back_populates="purchase_request",
        cascade="all, delete-orphan",
        lazy="raise",
    )

    @property
    def total_amount(self) -> Decimal:
        return sum((item.quantity_ordered * item.unit_price for item in self.items), Decimal("0"))


class PurchaseRequestItem(Base):
    __tablename__ = "purchase_request_items"
    __table_args__ = (
        CheckConstraint("quantity_ordered > 0", name="ck_pr_item_quantity_positive"),
        CheckConstraint(
            "quantity_received >= 0 AND quantity_received <= quantity_ordered",
            name="ck_pr_item_received_bounds"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    purchase_request_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("purchase_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    raw_material_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("raw_materials.id", ondelete="RESTRICT"),
        nullable=False
    )
    quantity_ordered: Mapped[Decimal] = mapped_column(QuantityType, nullable=False)
    quantity_received: Mapped[Decimal] = mapped_column(
        QuantityType,
        default=Decimal("0"),
        nullable=False,
        comment="Never decreases"
    )
    unit_price: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    purchase_request: Mapped["PurchaseRequest"] = relationship(
        "PurchaseRequest", back_populates="items"
    )
    raw_material: Mapped["RawMaterial"] = relationship("RawMaterial", lazy="raise")

    @property
    def quantity_outstanding(self) -> Decimal:
        return self.quantity_ordered - self.quantity_received


class PurchaseReceipt(Base):
    """Goods receipt and vendor bill."""
    __tablename__ = "purchase_receipts"
    __table_args__ = (
        Index('ix_purchase_receipts_due', 'payment_status', 'due_date'),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    receipt_number: Mapped[str] = mapped_column(
        String(30),
        unique=True,
        nullable=False,
        index=True,
        comment="RMR-2025-26/1"
    )
    vendor_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("vendors.id", ondelete="RESTRICT"),
        nullable=False
    )
    purchase_request_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("purchase_requests.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Null for direct receipts"
    )

    receipt_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    payment_status: Mapped[str] = mapped_column(
        String(20),
        default=BillPaymentStatus.PENDING.value,
        nullable=False,
        comment="pending, paid"
    )
    payment_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    payment_reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    vendor: Mapped["Vendor"] = relationship("Vendor", lazy="raise")
    items: Mapped[List["PurchaseReceiptItem"]] = relationship(
        "PurchaseReceiptItem",
        back_populates="receipt",
        cascade="all, delete-orphan",
        lazy="raise",
    )


class PurchaseReceiptItem(Base):
    __tablename__ = "purchase_receipt_items"
    __table_args__ = (
        CheckConstraint("quantity_received > 0", name="ck_receipt_item_quantity_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    receipt_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("purchase_receipts.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    request_item_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("purchase_request_items.id", ondelete="SET NULL"),
        nullable=True
    )
    raw_material_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("raw_materials.id", ondelete="RESTRICT"),
        nullable=False
    )
    quantity_received: Mapped[Decimal] = mapped_column(QuantityType, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    line_total: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    receipt: Mapped["PurchaseReceipt"] = relationship("PurchaseReceipt", back_populates="items")
