from datetime import date

import pytest

from backoffice.core.exceptions import ValidationError
from backoffice.models.document_sequence import DocumentSequence
from backoffice.services.document_sequence_service import (
    DocumentSequenceService,
    format_document_number,
    get_period,
)


class TestFinancialYear:
    @pytest.mark.parametrize("on, expected", [
        (date(2026, 1, 15), "2025-26"),
        (date(2026, 3, 31), "2025-26"),
        (date(2026, 4, 1), "2026-27"),
        (date(2099, 12, 31), "2099-00"),
    ])
    def test_april_to_march(self, on, expected):
        assert DocumentSequence.get_financial_year(on) == expected

    def test_batch_period_is_the_day(self):
        assert get_period("BATCH", date(2025, 10, 18)) == "20251018"


class TestFormatting:
    def test_invoice_has_no_prefix(self):
        assert format_document_number("INV", "2025-26", 12) == "2025-26/12"

    def test_prefixed_documents(self):
        assert format_document_number("PR", "2025-26", 3) == "PR-2025-26/3"
        assert format_document_number("DSP", "2025-26", 1) == "DSP-2025-26/1"

    def test_batch_is_zero_padded(self):
        assert format_document_number("BATCH", "20251018", 42) == "BATCH-20251018-042"


class TestDocumentSequenceService:
    async def test_numbers_increase_without_gaps(self, db):
        service = DocumentSequenceService(db)
        on = date(2025, 10, 18)
        numbers = [await service.get_next_number("ORD", on=on) for _ in range(3)]
        assert numbers == ["ORD-2025-26/1", "ORD-2025-26/2", "ORD-2025-26/3"]

    async def test_each_type_has_its_own_counter(self, db):
        service = DocumentSequenceService(db)
        on = date(2025, 10, 18)
        assert await service.get_next_number("ORD", on=on) == "ORD-2025-26/1"
        assert await service.get_next_number("INV", on=on) == "2025-26/1"
        assert await service.get_next_number("ord", on=on) == "ORD-2025-26/2"

    async def test_new_financial_year_restarts(self, db):
        service = DocumentSequenceService(db)
        assert await service.get_next_number("INV", on=date(2026, 3, 31)) == "2025-26/1"
        assert await service.get_next_number("INV", on=date(2026, 4, 1)) == "2026-27/1"

    async def test_batches_restart_daily(self, db):
        service = DocumentSequenceService(db)
        assert await service.get_next_number("BATCH", on=date(2025, 10, 18)) == "BATCH-20251018-001"
        assert await service.get_next_number("BATCH", on=date(2025, 10, 18)) == "BATCH-20251018-002"
        assert await service.get_next_number("BATCH", on=date(2025, 10, 19)) == "BATCH-20251019-001"

    async def test_preview_does_not_consume(self, db):
        service = DocumentSequenceService(db)
        on = date(2025, 10, 18)
        assert await service.preview_next_number("PROD", on=on) == "PROD-2025-26/1"
        assert await service.preview_next_number("PROD", on=on) == "PROD-2025-26/1"
        assert await service.get_next_number("PROD", on=on) == "PROD-2025-26/1"
        assert await service.preview_next_number("PROD", on=on) == "PROD-2025-26/2"

    async def test_unknown_type(self, db):
        with pytest.raises(ValidationError):
            await DocumentSequenceService(db).get_next_number("XYZ")
