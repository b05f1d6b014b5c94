import uuid
from decimal import Decimal

import pytest

from backoffice.core.exceptions import NegativeStockError, NotFoundError, ValidationError
from backoffice.models.stock import MovementReason, StockItemType
from backoffice.services.stock_ledger import StockLedger


class TestRawMaterialAdjustments:
    async def test_add_and_remove_record_movements(self, db, seed):
        material = await seed.raw_material(stock="10")
        ledger = StockLedger(db)

        await ledger.adjust_raw_material(material.id, "5.5", MovementReason.MANUAL_ADD)
        await ledger.adjust_raw_material(material.id, "-3", MovementReason.MANUAL_REMOVE)
        await db.flush()

        assert material.stock_quantity == Decimal("12.5")
        movements = await ledger.movements(StockItemType.RAW_MATERIAL, material.id)
        assert len(movements) == 2
        assert {m.reason for m in movements} == {"manual_add", "manual_remove"}
        assert sorted(m.balance_after for m in movements) == [Decimal("12.5"), Decimal("15.5")]

    async def test_cannot_go_negative(self, db, seed):
        material = await seed.raw_material(stock="2")
        with pytest.raises(NegativeStockError) as exc:
            await StockLedger(db).adjust_raw_material(material.id, "-2.001", MovementReason.MANUAL_REMOVE)
        assert exc.value.available == Decimal("2")
        assert material.stock_quantity == Decimal("2")

    async def test_zero_delta_is_rejected(self, db, seed):
        material = await seed.raw_material(stock="2")
        with pytest.raises(ValidationError):
            await StockLedger(db).adjust_raw_material(material.id, 0, MovementReason.MANUAL_ADD)

    async def test_unknown_material(self, db):
        with pytest.raises(NotFoundError):
            await StockLedger(db).adjust_raw_material(uuid.uuid4(), 1, MovementReason.MANUAL_ADD)


class TestProductAdjustments:
    async def test_whole_units_only(self, db, seed):
        product = await seed.product()
        with pytest.raises(ValidationError):
            await StockLedger(db).adjust_product(product.id, Decimal("1.5"), MovementReason.MANUAL_ADD)

    async def test_cannot_go_negative(self, db, seed):
        product = await seed.product(stock=3)
        with pytest.raises(NegativeStockError):
            await StockLedger(db).adjust_product(product.id, -4, MovementReason.DISPATCH)
        assert product.stock_quantity == 3


class TestLowStock:
    async def test_at_or_below_reorder_level(self, db, seed):
        low = await seed.raw_material(name="Fragrance", stock="5", reorder_level="5")
        await seed.raw_material(name="Water", stock="500", reorder_level="50")

        result = await StockLedger(db).low_stock_materials()
        assert [m.id for m in result] == [low.id]
