"""
Document Sequence Model for Atomic Number Generation

DOCUMENT FORMATS:
━━━━━━━━━━━━━━━━
• ORD:   ORD-2025-26/1        (Sales Order)
• PROD:  PROD-2025-26/1       (Production Order)
• INV:   2025-26/1            (Invoice)
• PR:    PR-2025-26/1         (Purchase Request)
• RMR:   RMR-2025-26/1        (Raw Material Receipt / vendor bill)
• DSP:   DSP-2025-26/1        (Dispatch)
• BATCH: BATCH-20251018-001   (Production batch, daily sequence)

The sequence row for (document_type, period) is locked with
SELECT ... FOR UPDATE while the counter is incremented.
"""

import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import String, Integer, DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from backoffice.database import Base
from backoffice.db_types import UUIDType


class DocumentSequence(Base):
    """
    One counter per document type and numbering period.

    Example:
        document_type = "ORD"
        period = "2025-26"
        current_number = 42
        → Next order number: ORD-2025-26/43
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        UniqueConstraint(
            "document_type", "period",
            name="uq_document_type_period"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    document_type: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        index=True,
        comment="ORD, PROD, INV, PR, RMR, DSP, BATCH"
    )
    period: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        comment="Financial year (2025-26) or day (20251018) for daily sequences"
    )
    current_number: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Last used sequence number"
    )

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

    @staticmethod
    def get_financial_year(on: Optional[date] = None) -> str:
        """
        Financial year string for a date.

        Indian financial year: April to March
        - Jan 2026 → 2025-26
        - Apr 2026 → 2026-27
        """
        on = on or datetime.now(timezone.utc).date()
        fy_start = on.year if on.month >= 4 else on.year - 1
        return f"{fy_start}-{(fy_start + 1) % 100:02d}"

    def __repr__(self) -> str:
        return f"<DocumentSequence({self.document_type}/{self.period}: {self.current_number})>"
