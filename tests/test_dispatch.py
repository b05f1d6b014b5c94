import pytest

from backoffice.core.exceptions import InvalidStateError, NegativeStockError
from backoffice.schemas.billing import InvoiceItemInput
from backoffice.services.batch_service import BatchService
from backoffice.services.dispatch_service import DispatchService
from backoffice.services.invoice_service import InvoiceService


async def invoice_with_dispatch(db, seed, stock=10, quantity=6):
    store = await seed.store()
    product = await seed.product(stock=stock)
    invoice = await InvoiceService(db).create_ad_hoc(
        store.id, [InvoiceItemInput(product_id=product.id, quantity=quantity)]
    )
    [dispatch] = await DispatchService(db).list(invoice_id=invoice.id)
    return invoice, dispatch, product


class TestDispatchLifecycle:
    async def test_allocation_takes_stock(self, db, seed):
        invoice, dispatch, product = await invoice_with_dispatch(db, seed)
        assert dispatch.dispatch_number.startswith("DSP-")
        assert product.stock_quantity == 10

        dispatch = await DispatchService(db).allocate(dispatch.id)

        assert dispatch.status == "ready"
        assert dispatch.allocated_at is not None
        assert product.stock_quantity == 4
        assert sum(a.quantity for a in dispatch.items[0].allocations) == 6

    async def test_through_to_delivery(self, db, seed):
        _, dispatch, _ = await invoice_with_dispatch(db, seed)
        service = DispatchService(db)
        await service.allocate(dispatch.id)
        dispatch = await service.mark_in_transit(dispatch.id, vehicle_number="MH12AB1234")
        assert dispatch.vehicle_number == "MH12AB1234"

        dispatch = await service.mark_delivered(dispatch.id)
        assert dispatch.status == "delivered"
        with pytest.raises(InvalidStateError):
            await service.cancel(dispatch.id)

    async def test_cannot_skip_allocation(self, db, seed):
        _, dispatch, _ = await invoice_with_dispatch(db, seed)
        with pytest.raises(InvalidStateError):
            await DispatchService(db).mark_in_transit(dispatch.id)

    async def test_short_stock_leaves_dispatch_pending(self, db, seed):
        _, dispatch, product = await invoice_with_dispatch(db, seed, stock=3, quantity=5)
        with pytest.raises(NegativeStockError):
            await DispatchService(db).allocate(dispatch.id)
        assert dispatch.status == "pending"
        assert product.stock_quantity == 3

    async def test_cancel_ready_returns_stock(self, db, seed):
        _, dispatch, product = await invoice_with_dispatch(db, seed)
        service = DispatchService(db)
        await service.allocate(dispatch.id)

        dispatch = await service.cancel(dispatch.id)

        assert dispatch.status == "cancelled"
        assert product.stock_quantity == 10
        assert dispatch.items[0].allocations == []
        await db.flush()
        batches = await BatchService(db).list_available(product.id)
        assert sum(b.quantity_remaining for b in batches) == 10


class TestInvoiceCancellation:
    async def test_returns_allocated_stock(self, db, seed):
        invoice, dispatch, product = await invoice_with_dispatch(db, seed)
        await DispatchService(db).allocate(dispatch.id)

        await InvoiceService(db).cancel(invoice.id)

        assert dispatch.status == "cancelled"
        assert product.stock_quantity == 10

    async def test_goods_on_the_road_are_left_alone(self, db, seed):
        invoice, dispatch, product = await invoice_with_dispatch(db, seed)
        service = DispatchService(db)
        await service.allocate(dispatch.id)
        await service.mark_in_transit(dispatch.id)

        invoice = await InvoiceService(db).cancel(invoice.id)

        assert invoice.status == "cancelled"
        assert dispatch.status == "in_transit"
        assert product.stock_quantity == 4
