import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import String, DateTime, Text, Index
from sqlalchemy.orm import Mapped, mapped_column

from backoffice.database import Base
from backoffice.db_types import UUIDType, QuantityType


class StockItemType(str, Enum):
    RAW_MATERIAL = "raw_material"
    PRODUCT = "product"


class MovementReason(str, Enum):
    """Why an on-hand quantity changed."""
    MANUAL_ADD = "manual_add"
    MANUAL_REMOVE = "manual_remove"
    PURCHASE_RECEIPT = "purchase_receipt"
    PRODUCTION_CONSUMPTION = "production_consumption"
    PRODUCTION_OUTPUT = "production_output"
    DISPATCH = "dispatch"
    DISPATCH_RELEASE = "dispatch_release"
    BATCH_EXPIRED = "batch_expired"
    BATCH_RECALLED = "batch_recalled"


class StockMovement(Base):
    """
    Append-only stock ledger.

    One row per mutation of RawMaterial.stock_quantity or
    Product.stock_quantity, with the balance after the change.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        Index('ix_stock_movement_item', 'item_type', 'item_id', 'created_at'),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    item_type: Mapped[str] = mapped_column(String(20), nullable=False, comment="raw_material, product")
    item_id: Mapped[uuid.UUID] = mapped_column(UUIDType, nullable=False)

    delta: Mapped[Decimal] = mapped_column(QuantityType, nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(QuantityType, nullable=False)
    reason: Mapped[str] = mapped_column(String(30), nullable=False)

    # Source document
    reference_type: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    reference_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
