# Services module
from backoffice.services.stock_ledger import StockLedger
from backoffice.services.recipe_service import RecipeService
from backoffice.services.batch_service import BatchService
from backoffice.services.production_service import ProductionService
from backoffice.services.order_service import OrderService
from backoffice.services.invoice_service import InvoiceService
from backoffice.services.payment_service import PaymentService
from backoffice.services.dispatch_service import DispatchService
from backoffice.services.purchase_service import PurchaseService
from backoffice.services.document_sequence_service import DocumentSequenceService

__all__ = [
    "StockLedger",
    "RecipeService",
    "BatchService",
    "ProductionService",
    "OrderService",
    "InvoiceService",
    "PaymentService",
    "DispatchService",
    "PurchaseService",
    "DocumentSequenceService",
]
