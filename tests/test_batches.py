import uuid
from datetime import date

import pytest

from backoffice.core.exceptions import InvalidStateError, NegativeStockError, ValidationError
from backoffice.models.dispatch import Dispatch, DispatchItem
from backoffice.models.stock import MovementReason, StockItemType
from backoffice.services.batch_service import BatchService
from backoffice.services.stock_ledger import StockLedger


async def make_dispatch_item(db, store, product, quantity):
    dispatch = Dispatch(
        dispatch_number=f"DSP-TEST/{quantity}",
        invoice_id=uuid.uuid4(),
        store_id=store.id,
        status="pending",
        items=[DispatchItem(product_id=product.id, quantity=quantity, allocations=[])],
    )
    db.add(dispatch)
    await db.flush()
    return dispatch.items[0]


async def available_total(db, product_id):
    await db.flush()
    batches = await BatchService(db).list_available(product_id)
    return sum(b.quantity_remaining for b in batches)


class TestCreation:
    async def test_opening_stock_creates_batch(self, db, seed):
        product = await seed.product(stock=25)

        batches = await BatchService(db).list_by_product(product.id)
        assert len(batches) == 1
        assert batches[0].quantity_produced == 25
        assert batches[0].quantity_remaining == 25
        assert batches[0].status == "available"
        assert batches[0].batch_number.startswith("BATCH-")
        assert product.stock_quantity == 25

    async def test_zero_quantity_is_rejected(self, db, seed):
        product = await seed.product()
        with pytest.raises(ValidationError):
            await BatchService(db).create_opening(product.id, 0)


class TestFifo:
    async def test_oldest_batch_first(self, db, seed):
        store = await seed.store()
        product = await seed.product()
        service = BatchService(db)
        newer = await service.create_opening(product.id, 10, date(2025, 10, 2))
        older = await service.create_opening(product.id, 10, date(2025, 10, 1))

        item = await make_dispatch_item(db, store, product, 15)
        allocations = await service.consume_fifo(product.id, 15, item)

        assert [(a.batch_id, a.quantity) for a in allocations] == [(older.id, 10), (newer.id, 5)]
        assert older.status == "depleted"
        assert older.quantity_remaining == 0
        assert newer.quantity_remaining == 5
        assert product.stock_quantity == 5
        assert await available_total(db, product.id) == product.stock_quantity

    async def test_short_allocation_changes_nothing(self, db, seed):
        store = await seed.store()
        product = await seed.product(stock=4)
        item = await make_dispatch_item(db, store, product, 5)

        with pytest.raises(NegativeStockError):
            await BatchService(db).consume_fifo(product.id, 5, item)
        assert product.stock_quantity == 4
        assert await available_total(db, product.id) == 4

    async def test_release_reopens_depleted_batch(self, db, seed):
        store = await seed.store()
        product = await seed.product(stock=6)
        service = BatchService(db)
        item = await make_dispatch_item(db, store, product, 6)
        [allocation] = await service.consume_fifo(product.id, 6, item)
        assert product.stock_quantity == 0

        batch = await service.release(allocation)
        await db.flush()
        assert batch.status == "available"
        assert batch.quantity_remaining == 6
        assert product.stock_quantity == 6

        movements = await StockLedger(db).movements(StockItemType.PRODUCT, product.id)
        assert MovementReason.DISPATCH_RELEASE.value in {m.reason for m in movements}


class TestQualityStatus:
    async def test_recall_removes_remaining_from_stock(self, db, seed):
        product = await seed.product()
        service = BatchService(db)
        keep = await service.create_opening(product.id, 10)
        recalled = await service.create_opening(product.id, 7)

        await service.set_status(recalled.id, "recalled", notes="Contaminated lot")
        await db.flush()

        assert recalled.status == "recalled"
        assert recalled.quantity_remaining == 7
        assert product.stock_quantity == 10
        assert [b.id for b in await service.list_available(product.id)] == [keep.id]
        assert [b.id for b in await service.list_by_status("recalled")] == [recalled.id]

    async def test_status_change_is_irreversible(self, db, seed):
        product = await seed.product()
        service = BatchService(db)
        batch = await service.create_opening(product.id, 5)
        await service.set_status(batch.id, "expired")

        with pytest.raises(InvalidStateError):
            await service.set_status(batch.id, "recalled")

    async def test_depleted_batch_cannot_be_recalled(self, db, seed):
        store = await seed.store()
        product = await seed.product()
        service = BatchService(db)
        batch = await service.create_opening(product.id, 5)
        item = await make_dispatch_item(db, store, product, 5)
        await service.consume_fifo(product.id, 5, item)
        assert batch.status == "depleted"

        with pytest.raises(InvalidStateError):
            await service.set_status(batch.id, "recalled")
        assert batch.status == "depleted"
        assert batch.quantity_remaining == 0
        assert (batch.status == "depleted") == (batch.quantity_remaining == 0)

    async def test_cannot_set_available_by_hand(self, db, seed):
        product = await seed.product()
        service = BatchService(db)
        batch = await service.create_opening(product.id, 5)
        with pytest.raises(ValidationError):
            await service.set_status(batch.id, "available")

    async def test_unknown_status(self, db, seed):
        product = await seed.product()
        service = BatchService(db)
        batch = await service.create_opening(product.id, 5)
        with pytest.raises(ValidationError):
            await service.set_status(batch.id, "lost")
