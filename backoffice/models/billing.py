"""
Invoice and payment models.

An invoice is immutable once created: only its status fields change.
Payments are append-only; total_paid is recomputed from them.
"""
import uuid
from datetime import datetime, timezone, date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import (
    String, DateTime, Date, ForeignKey, Integer, Text, Boolean, Index, CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.database import Base
from backoffice.db_types import UUIDType, MoneyType, TaxAmountType, UnitPriceType, PercentType

if TYPE_CHECKING:
    from backoffice.models.catalog import Store, Product
    from backoffice.models.order import Order


class InvoiceStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"


class BillingStatus(str, Enum):
    PENDING = "pending"
    BILLED = "billed"
    OVERDUE = "overdue"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


class PaymentMethod(str, Enum):
    CASH = "cash"
    UPI = "upi"
    BANK_TRANSFER = "bank_transfer"
    CHEQUE = "cheque"
    CARD = "card"
    OTHER = "other"


class Invoice(Base):
    """Tax invoice issued to a store."""
    __tablename__ = "invoices"
    __table_args__ = (
        Index('ix_invoices_store_status', 'store_id', 'status'),
        Index('ix_invoices_due', 'status', 'payment_status', 'due_date'),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    invoice_number: Mapped[str] = mapped_column(
        String(30),
        unique=True,
        nullable=False,
        index=True,
        comment="2025-26/1"
    )

    store_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("stores.id", ondelete="RESTRICT"),
        nullable=False
    )
    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("orders.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Null for ad-hoc invoices"
    )

    status: Mapped[str] = mapped_column(
        String(20), default=InvoiceStatus.ACTIVE.value, nullable=False, index=True
    )
    billing_status: Mapped[str] = mapped_column(
        String(20), default=BillingStatus.PENDING.value, nullable=False,
        comment="pending, billed, overdue"
    )
    payment_status: Mapped[str] = mapped_column(
        String(20), default=PaymentStatus.PENDING.value, nullable=False,
        comment="pending, partial, paid"
    )

    is_igst: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Amounts
    subtotal: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    cgst: Mapped[Decimal] = mapped_column(TaxAmountType, default=Decimal("0"), nullable=False)
    sgst: Mapped[Decimal] = mapped_column(TaxAmountType, default=Decimal("0"), nullable=False)
    igst: Mapped[Decimal] = mapped_column(TaxAmountType, default=Decimal("0"), nullable=False)
    round_off: Mapped[Decimal] = mapped_column(TaxAmountType, default=Decimal("0"), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    total_paid: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"), nullable=False)

    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
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
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    store: Mapped["Store"] = relationship("Store", lazy="raise")
    order: Mapped[Optional["Order"]] = relationship("Order", lazy="raise")
    items: Mapped[List["InvoiceItem"]] = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="raise",
    )
    payments: Mapped[List["Payment"]] = relationship(
        "Payment",
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="raise",
    )

    @property
    def balance(self) -> Decimal:
        return self.total_amount - self.total_paid

    def __repr__(self) -> str:
        return f"<Invoice(number='{self.invoice_number}', total={self.total_amount})>"


class InvoiceItem(Base):
    """Invoice line with its price and tax snapshot."""
    __tablename__ = "invoice_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_invoice_item_quantity_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False
    )

    product_name: Mapped[str] = mapped_column(String(200), nullable=False)
    hsn_code: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_ordered: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Ordered quantity on the source order line"
    )
    mrp: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    margin_percentage: Mapped[Decimal] = mapped_column(PercentType, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(UnitPriceType, nullable=False)
    gst_rate: Mapped[Decimal] = mapped_column(PercentType, nullable=False)
    line_total: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    cgst_amount: Mapped[Decimal] = mapped_column(TaxAmountType, default=Decimal("0"), nullable=False)
    sgst_amount: Mapped[Decimal] = mapped_column(TaxAmountType, default=Decimal("0"), nullable=False)
    igst_amount: Mapped[Decimal] = mapped_column(TaxAmountType, default=Decimal("0"), nullable=False)

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="items")
    product: Mapped["Product"] = relationship("Product", lazy="raise")


class Payment(Base):
    """Payment received against an invoice. Append-only."""
    __tablename__ = "payments"
    __table_args__ = (
        Index('ix_payments_invoice_date', 'invoice_id', 'payment_date'),
        CheckConstraint("amount > 0", name="ck_payment_amount_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False
    )

    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    method: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    reference_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    collected_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="payments")
