from fastapi import APIRouter

from backoffice.api.v1.endpoints import (
    # Sales
    orders,
    invoices,
    payments,
    dispatches,
    # Manufacturing
    production,
    recipes,
    batches,
    # Inventory
    stock,
    # Procurement
    purchase,
    # Master data seeding
    master,
)


api_router = APIRouter(prefix="/api/v1")

api_router.include_router(orders.router, prefix="/orders", tags=["Orders"])
api_router.include_router(invoices.router, prefix="/invoices", tags=["Invoices"])
api_router.include_router(payments.router, prefix="/payments", tags=["Payments"])
api_router.include_router(dispatches.router, prefix="/dispatches", tags=["Dispatches"])
api_router.include_router(production.router, prefix="/production", tags=["Production"])
api_router.include_router(recipes.router, prefix="/recipes", tags=["Recipes"])
api_router.include_router(batches.router, prefix="/batches", tags=["Batches"])
api_router.include_router(stock.router, prefix="/stock", tags=["Stock"])
api_router.include_router(purchase.router, prefix="/purchase", tags=["Purchase"])
api_router.include_router(master.router, prefix="/master", tags=["Master Data"])
