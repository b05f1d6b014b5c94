"""
Workflow error taxonomy.

Services raise these; the API layer maps them to HTTP responses in one
place (see backoffice.main). Every error is raised before the current
transaction commits, so the request session rolls back as a whole.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional


class WorkflowError(Exception):
    """Base class for all business-rule failures."""

    status_code: int = 400

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(WorkflowError):
    """Malformed input: missing references, non-positive quantities, unknown ids."""

    status_code = 400


class InvalidMarginError(ValidationError):
    """A negative margin that would push the unit price below zero."""


class NotFoundError(WorkflowError):
    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class InvalidStateError(WorkflowError):
    """Operation not permitted from the entity's current status."""

    status_code = 409


class InsufficientMaterialError(WorkflowError):
    """Raw material stock cannot cover a production start."""

    status_code = 422

    def __init__(self, message: str, shortages: List[Dict[str, Any]]):
        super().__init__(message, details=shortages)
        self.shortages = shortages


class NegativeStockError(WorkflowError):
    """A stock mutation would drive an on-hand quantity below zero."""

    status_code = 422

    def __init__(self, item: str, available: Decimal, requested: Decimal):
        super().__init__(
            f"Insufficient stock for {item}. Requested: {requested}, Available: {available}",
            details={"item": item, "available": str(available), "requested": str(requested)},
        )
        self.available = available
        self.requested = requested


class NoRecipeError(WorkflowError):
    status_code = 422

    def __init__(self, product_name: str):
        super().__init__(
            f"Product '{product_name}' does not have a recipe defined. "
            f"Please set up the recipe first."
        )
