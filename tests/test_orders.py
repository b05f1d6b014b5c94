import uuid
from decimal import Decimal

import pytest

from backoffice.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from backoffice.schemas.order import OrderItemCreate
from backoffice.services.order_service import OrderService


def items(*lines):
    return [OrderItemCreate(product_id=product.id, quantity=qty) for product, qty in lines]


class TestCreate:
    async def test_draft_with_mrp_snapshot(self, db, seed):
        store = await seed.store()
        product = await seed.product(mrp="99.50")
        order = await OrderService(db).create(store.id, items((product, 4)), notes="Diwali stock")

        assert order.status == "draft"
        assert order.order_number.startswith("ORD-")
        assert order.items[0].mrp == Decimal("99.50")
        assert order.notes == "Diwali stock"

    async def test_mrp_snapshot_survives_price_change(self, db, seed):
        store = await seed.store()
        product = await seed.product(mrp="100")
        service = OrderService(db)
        order = await service.create(store.id, items((product, 1)))

        product.mrp = Decimal("120")
        await db.flush()
        reloaded = await service.get(order.id)
        assert reloaded.items[0].mrp == Decimal("100")

    async def test_requires_items(self, db, seed):
        store = await seed.store()
        with pytest.raises(ValidationError):
            await OrderService(db).create(store.id, [])

    async def test_rejects_non_positive_quantity(self, db, seed):
        store = await seed.store()
        product = await seed.product()
        with pytest.raises(ValidationError):
            await OrderService(db).create(store.id, items((product, 0)))

    async def test_rejects_inactive_product(self, db, seed):
        store = await seed.store()
        product = await seed.product()
        product.is_active = False
        with pytest.raises(ValidationError):
            await OrderService(db).create(store.id, items((product, 1)))

    async def test_rejects_unknown_store(self, db, seed):
        product = await seed.product()
        with pytest.raises(ValidationError):
            await OrderService(db).create(uuid.uuid4(), items((product, 1)))


class TestLifecycle:
    async def test_submit_and_approve(self, db, seed):
        store = await seed.store()
        product = await seed.product(stock=10)
        service = OrderService(db)
        order = await service.create(store.id, items((product, 5)))

        await service.submit(order.id)
        result = await service.approve(order.id)

        assert result["order"].status == "approved"
        assert result["warnings"] == []

    async def test_approval_is_not_blocked_by_stock(self, db, seed):
        store = await seed.store()
        low = await seed.product(name="Low", stock=3)
        out = await seed.product(name="Out")
        service = OrderService(db)
        order = await service.create(store.id, items((low, 5), (out, 2)))
        await service.submit(order.id)

        result = await service.approve(order.id)

        assert result["order"].status == "approved"
        kinds = {w["product_name"]: w["kind"] for w in result["warnings"]}
        assert kinds == {"Low": "low_stock", "Out": "out_of_stock"}

    async def test_submit_twice_is_rejected(self, db, seed):
        store = await seed.store()
        product = await seed.product()
        service = OrderService(db)
        order = await service.create(store.id, items((product, 1)))
        await service.submit(order.id)

        with pytest.raises(InvalidStateError):
            await service.submit(order.id)

    async def test_approve_twice_is_rejected(self, db, seed):
        store = await seed.store()
        product = await seed.product(stock=3)
        service = OrderService(db)
        order = await service.create(store.id, items((product, 2)))
        await service.submit(order.id)
        await service.approve(order.id)
        approved_at = order.approved_at

        with pytest.raises(InvalidStateError):
            await service.approve(order.id)
        assert order.status == "approved"
        assert order.approved_at == approved_at
        assert product.stock_quantity == 3

    async def test_cancel_approved(self, db, seed):
        store = await seed.store()
        product = await seed.product()
        service = OrderService(db)
        order = await service.create(store.id, items((product, 1)))
        await service.submit(order.id)
        await service.approve(order.id)

        order = await service.cancel(order.id)
        assert order.status == "cancelled"
        assert order.cancelled_at is not None


class TestEditAndDelete:
    async def test_update_replaces_items_until_approval(self, db, seed):
        store = await seed.store()
        a = await seed.product(name="A")
        b = await seed.product(name="B")
        service = OrderService(db)
        order = await service.create(store.id, items((a, 1)))
        await service.submit(order.id)

        order = await service.update(order.id, items=items((b, 3)), notes="switched")
        assert order.status == "submitted"
        assert [(i.product_id, i.quantity) for i in order.items] == [(b.id, 3)]

        await service.approve(order.id)
        with pytest.raises(InvalidStateError):
            await service.update(order.id, notes="too late")

    async def test_delete_draft(self, db, seed):
        store = await seed.store()
        product = await seed.product()
        service = OrderService(db)
        order = await service.create(store.id, items((product, 1)))

        await service.delete(order.id)
        with pytest.raises(NotFoundError):
            await service.get(order.id)

    async def test_cannot_delete_submitted(self, db, seed):
        store = await seed.store()
        product = await seed.product()
        service = OrderService(db)
        order = await service.create(store.id, items((product, 1)))
        await service.submit(order.id)

        with pytest.raises(InvalidStateError):
            await service.delete(order.id)

    async def test_list_filters(self, db, seed):
        store = await seed.store()
        other = await seed.store(name="Other")
        product = await seed.product()
        service = OrderService(db)
        mine = await service.create(store.id, items((product, 1)))
        await service.create(other.id, items((product, 1)))
        await service.submit(mine.id)
        await db.flush()

        assert [o.id for o in await service.list(store_id=store.id)] == [mine.id]
        assert mine.id not in [o.id for o in await service.list(status="draft")]
        assert [o.id for o in await service.list(status="submitted")] == [mine.id]
