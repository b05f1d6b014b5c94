# Models module; importing it registers every table on Base.metadata
from backoffice.models.catalog import Store, Vendor, Product, RawMaterial, StoreProductMargin
from backoffice.models.document_sequence import DocumentSequence
from backoffice.models.stock import StockMovement, StockItemType, MovementReason
from backoffice.models.order import Order, OrderItem, OrderStatus
from backoffice.models.production import (
    ProductRecipe,
    ProductionOrder,
    ProductionMaterial,
    ProductBatch,
    ProductionStatus,
    BatchStatus,
)
from backoffice.models.billing import (
    Invoice,
    InvoiceItem,
    Payment,
    InvoiceStatus,
    BillingStatus,
    PaymentStatus,
    PaymentMethod,
)
from backoffice.models.purchase import (
    PurchaseRequest,
    PurchaseRequestItem,
    PurchaseReceipt,
    PurchaseReceiptItem,
    PurchaseRequestStatus,
    BillPaymentStatus,
)
from backoffice.models.dispatch import Dispatch, DispatchItem, DispatchBatchAllocation, DispatchStatus

__all__ = [
    "Store",
    "Vendor",
    "Product",
    "RawMaterial",
    "StoreProductMargin",
    "DocumentSequence",
    "StockMovement",
    "StockItemType",
    "MovementReason",
    "Order",
    "OrderItem",
    "OrderStatus",
    "ProductRecipe",
    "ProductionOrder",
    "ProductionMaterial",
    "ProductBatch",
    "ProductionStatus",
    "BatchStatus",
    "Invoice",
    "InvoiceItem",
    "Payment",
    "InvoiceStatus",
    "BillingStatus",
    "PaymentStatus",
    "PaymentMethod",
    "PurchaseRequest",
    "PurchaseRequestItem",
    "PurchaseReceipt",
    "PurchaseReceiptItem",
    "PurchaseRequestStatus",
    "BillPaymentStatus",
    "Dispatch",
    "DispatchItem",
    "DispatchBatchAllocation",
    "DispatchStatus",
]
