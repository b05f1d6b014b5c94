import os

# Must be set before backoffice.config is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SCHEDULER_ENABLED"] = "false"

from decimal import Decimal
from typing import Optional, Sequence, Tuple

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from backoffice.database import get_db, init_db
from backoffice.main import app
from backoffice.models.catalog import Store, Vendor, Product, RawMaterial
from backoffice.schemas.order import OrderItemCreate
from backoffice.services.batch_service import BatchService
from backoffice.services.order_service import OrderService
from backoffice.services.recipe_service import RecipeService


@pytest.fixture
async def engine():
    """Fresh in-memory schema per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_db(bind=engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def client(session_factory):
    """HTTP client against the app, one committed session per request."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


class Seeder:
    """Master data for service-level tests."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def store(self, name: str = "Sharma General Store", state: str = "Maharashtra") -> Store:
        store = Store(name=name, state=state)
        self.db.add(store)
        await self.db.flush()
        return store

    async def vendor(self, name: str = "Chemco Suppliers", payment_days: Optional[int] = 30) -> Vendor:
        vendor = Vendor(name=name, payment_days=payment_days)
        self.db.add(vendor)
        await self.db.flush()
        return vendor

    async def product(
        self,
        name: str = "Floor Cleaner 1L",
        mrp: str = "100",
        gst_rate: str = "18",
        hsn_code: str = "3402",
        stock: int = 0,
    ) -> Product:
        product = Product(
            name=name,
            mrp=Decimal(mrp),
            gst_rate=Decimal(gst_rate),
            hsn_code=hsn_code,
            stock_quantity=0,
        )
        self.db.add(product)
        await self.db.flush()
        if stock:
            await BatchService(self.db).create_opening(product.id, stock)
        return product

    async def raw_material(
        self,
        name: str = "Surfactant",
        stock: str = "0",
        unit: str = "kg",
        reorder_level: str = "0",
        cost_per_unit: str = "0",
    ) -> RawMaterial:
        material = RawMaterial(
            name=name,
            unit=unit,
            stock_quantity=Decimal(stock),
            reorder_level=Decimal(reorder_level),
            cost_per_unit=Decimal(cost_per_unit),
        )
        self.db.add(material)
        await self.db.flush()
        return material

    async def recipe(self, product: Product, lines: Sequence[Tuple[RawMaterial, str]]):
        return await RecipeService(self.db).set(
            product.id,
            [{"raw_material_id": m.id, "quantity_required": Decimal(q)} for m, q in lines],
        )

    async def approved_order(self, store: Store, lines: Sequence[Tuple[Product, int]]):
        service = OrderService(self.db)
        order = await service.create(
            store.id, [OrderItemCreate(product_id=p.id, quantity=q) for p, q in lines]
        )
        await service.submit(order.id)
        await service.approve(order.id)
        return order


@pytest.fixture
def seed(db):
    return Seeder(db)
