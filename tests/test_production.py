import uuid
from datetime import date
from decimal import Decimal

import pytest

from backoffice.config import settings
from backoffice.core.exceptions import (
    InsufficientMaterialError,
    InvalidStateError,
    NoRecipeError,
    ValidationError,
)
from backoffice.models.stock import StockItemType
from backoffice.schemas.order import OrderItemCreate
from backoffice.services.batch_service import BatchService
from backoffice.services.order_service import OrderService
from backoffice.services.production_service import ProductionService
from backoffice.services.recipe_service import RecipeService
from backoffice.services.stock_ledger import StockLedger


@pytest.fixture
async def cleaner(seed):
    """Product using 2 kg of surfactant per unit, 200 kg on hand."""
    product = await seed.product()
    surfactant = await seed.raw_material(stock="200")
    await seed.recipe(product, [(surfactant, "2")])
    return product, surfactant


class TestRecipes:
    async def test_set_replaces_lines(self, db, seed):
        product = await seed.product()
        a = await seed.raw_material(name="A", stock="10")
        b = await seed.raw_material(name="B", stock="10")
        await seed.recipe(product, [(a, "1"), (b, "2")])

        lines = await seed.recipe(product, [(b, "3")])
        assert [(line.raw_material_id, line.quantity_required) for line in lines] == [(b.id, Decimal("3"))]

    async def test_rejects_duplicate_material(self, db, seed):
        product = await seed.product()
        a = await seed.raw_material(stock="10")
        with pytest.raises(ValidationError):
            await seed.recipe(product, [(a, "1"), (a, "2")])

    async def test_rejects_zero_quantity(self, db, seed):
        product = await seed.product()
        a = await seed.raw_material(stock="10")
        with pytest.raises(ValidationError):
            await seed.recipe(product, [(a, "0")])

    async def test_rejects_unknown_material(self, db, seed):
        product = await seed.product()
        with pytest.raises(ValidationError):
            await RecipeService(db).set(
                product.id, [{"raw_material_id": uuid.uuid4(), "quantity_required": 1}]
            )

    async def test_max_producible_is_limited_by_scarcest_material(self, db, seed):
        product = await seed.product()
        a = await seed.raw_material(name="A", stock="10")
        b = await seed.raw_material(name="B", stock="7.5")
        await seed.recipe(product, [(a, "1"), (b, "2.5")])

        assert await RecipeService(db).max_producible(product.id) == 3

    async def test_requirements(self, db, cleaner):
        product, surfactant = cleaner
        [requirement] = await RecipeService(db).requirements(product.id, 150)
        assert requirement.required == Decimal("300")
        assert requirement.shortage == Decimal("100")
        assert not requirement.sufficient


class TestLifecycle:
    async def test_yield_below_plan(self, db, cleaner):
        product, surfactant = cleaner
        service = ProductionService(db)

        po, warnings = await service.create(product.id, 100)
        assert warnings == []
        assert po.status == "pending"
        assert po.order_number.startswith("PROD-")

        po = await service.start(po.id)
        assert po.status == "in_progress"
        assert [m.quantity_required for m in po.materials] == [Decimal("200")]
        # Nothing is reserved at start
        assert surfactant.stock_quantity == Decimal("200")

        po = await service.complete(po.id, quantity_produced=90, production_date=date(2025, 10, 18))
        assert po.status == "completed"
        assert po.quantity_produced == 90
        assert po.materials[0].quantity_used == Decimal("180")
        assert surfactant.stock_quantity == Decimal("20")

        [batch] = po.batches
        assert batch.quantity_produced == 90
        assert batch.quantity_remaining == 90
        assert batch.batch_number == "BATCH-20251018-001"
        assert product.stock_quantity == 90

    async def test_full_yield_by_default(self, db, cleaner):
        product, surfactant = cleaner
        service = ProductionService(db)
        po, _ = await service.create(product.id, 40)
        await service.start(po.id)
        po = await service.complete(po.id)

        assert po.quantity_produced == 40
        assert surfactant.stock_quantity == Decimal("120")

    async def test_insufficient_material_blocks_start(self, db, seed):
        product = await seed.product()
        surfactant = await seed.raw_material(stock="150")
        await seed.recipe(product, [(surfactant, "2")])
        service = ProductionService(db)
        po, _ = await service.create(product.id, 100)

        with pytest.raises(InsufficientMaterialError) as exc:
            await service.start(po.id)

        [shortage] = exc.value.shortages
        assert Decimal(shortage["required"]) == 200
        assert Decimal(shortage["available"]) == 150
        assert Decimal(shortage["shortage"]) == 50
        assert po.status == "pending"
        assert surfactant.stock_quantity == Decimal("150")

    async def test_completing_twice_creates_one_batch(self, db, cleaner):
        product, _ = cleaner
        service = ProductionService(db)
        po, _ = await service.create(product.id, 10)
        await service.start(po.id)
        await service.complete(po.id)

        with pytest.raises(InvalidStateError):
            await service.complete(po.id)
        await db.flush()
        assert len(await BatchService(db).list_by_product(product.id)) == 1
        assert product.stock_quantity == 10

    async def test_consumption_is_recorded_in_the_ledger(self, db, cleaner):
        product, surfactant = cleaner
        service = ProductionService(db)
        po, _ = await service.create(product.id, 5)
        await service.start(po.id)
        await service.complete(po.id)

        [movement] = await StockLedger(db).movements(StockItemType.RAW_MATERIAL, surfactant.id)
        assert movement.delta == Decimal("-10")
        assert movement.reason == "production_consumption"
        assert movement.reference_id == po.id

    async def test_cancel_in_progress_releases_nothing(self, db, cleaner):
        product, surfactant = cleaner
        service = ProductionService(db)
        po, _ = await service.create(product.id, 10)
        await service.start(po.id)

        po = await service.cancel(po.id)
        assert po.status == "cancelled"
        assert po.cancelled_at is not None
        assert surfactant.stock_quantity == Decimal("200")
        with pytest.raises(InvalidStateError):
            await service.start(po.id)


class TestCreateValidation:
    async def test_product_without_recipe(self, db, seed):
        product = await seed.product()
        with pytest.raises(NoRecipeError):
            await ProductionService(db).create(product.id, 10)

    async def test_without_recipe_when_allowed(self, db, seed, monkeypatch):
        monkeypatch.setattr(settings, "REQUIRE_RECIPE_ON_CREATE", False)
        product = await seed.product()
        service = ProductionService(db)

        po, warnings = await service.create(product.id, 10)
        assert len(warnings) == 1
        with pytest.raises(NoRecipeError):
            await service.start(po.id)

    @pytest.mark.parametrize("quantity", [0, -5])
    async def test_quantity_must_be_positive(self, db, cleaner, quantity):
        product, _ = cleaner
        with pytest.raises(ValidationError):
            await ProductionService(db).create(product.id, quantity)


class TestSuggestions:
    async def test_outstanding_demand_minus_stock(self, db, seed):
        store = await seed.store()
        product = await seed.product(stock=30)
        surfactant = await seed.raw_material(stock="50")
        await seed.recipe(product, [(surfactant, "2")])
        orders = OrderService(db)

        submitted = await orders.create(store.id, [OrderItemCreate(product_id=product.id, quantity=60)])
        await orders.submit(submitted.id)
        approved = await orders.create(store.id, [OrderItemCreate(product_id=product.id, quantity=20)])
        await orders.submit(approved.id)
        await orders.approve(approved.id)
        # Drafts are not demand yet
        await orders.create(store.id, [OrderItemCreate(product_id=product.id, quantity=500)])
        await db.flush()

        [suggestion] = await ProductionService(db).suggestions()
        assert suggestion["total_required"] == 80
        assert suggestion["current_stock"] == 30
        assert suggestion["production_needed"] == 50
        assert suggestion["can_produce"] == 25
        assert suggestion["has_recipe"] is True
        assert suggestion["materials"][0]["sufficient"] is False

    async def test_cancelled_orders_are_not_demand(self, db, seed):
        store = await seed.store()
        product = await seed.product(stock=5)
        orders = OrderService(db)
        order = await orders.create(store.id, [OrderItemCreate(product_id=product.id, quantity=40)])
        await orders.submit(order.id)
        await orders.cancel(order.id)
        await db.flush()

        assert await ProductionService(db).suggestions() == []

    async def test_no_demand(self, db, seed):
        await seed.product(stock=5)
        assert await ProductionService(db).suggestions() == []
