"""
Sales Order State Machine

Single source of truth for order status transitions:

    draft -> submitted -> approved -> invoiced
    draft | submitted | approved -> cancelled

There is no path back to draft. Repeating a transition is rejected, so
submit/approve/cancel are never applied twice.
"""

from datetime import datetime, timezone
from typing import Dict, List

from backoffice.core.exceptions import InvalidStateError
from backoffice.models.order import OrderStatus


# =============================================================================
# TRANSITION RULES
# =============================================================================

ORDER_TRANSITIONS: Dict[str, List[str]] = {
    OrderStatus.DRAFT.value: [
        OrderStatus.SUBMITTED.value,
        OrderStatus.CANCELLED.value,
    ],
    OrderStatus.SUBMITTED.value: [
        OrderStatus.APPROVED.value,
        OrderStatus.CANCELLED.value,
    ],
    OrderStatus.APPROVED.value: [
        OrderStatus.INVOICED.value,       # Set by the invoice generator only
        OrderStatus.CANCELLED.value,
    ],
    OrderStatus.INVOICED.value: [],       # Terminal; superseded by invoice cancellation
    OrderStatus.CANCELLED.value: [],      # Terminal
}

TRANSITION_ACTIONS: Dict[tuple, str] = {
    (OrderStatus.DRAFT.value, OrderStatus.SUBMITTED.value): "Submit",
    (OrderStatus.DRAFT.value, OrderStatus.CANCELLED.value): "Cancel",
    (OrderStatus.SUBMITTED.value, OrderStatus.APPROVED.value): "Approve",
    (OrderStatus.SUBMITTED.value, OrderStatus.CANCELLED.value): "Cancel",
    (OrderStatus.APPROVED.value, OrderStatus.INVOICED.value): "Invoice",
    (OrderStatus.APPROVED.value, OrderStatus.CANCELLED.value): "Cancel",
}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def can_transition(current_status: str, new_status: str) -> bool:
    return new_status in ORDER_TRANSITIONS.get(current_status, [])


def get_allowed_transitions(current_status: str) -> List[str]:
    return list(ORDER_TRANSITIONS.get(current_status, []))


def get_transition_action(current_status: str, new_status: str) -> str:
    return TRANSITION_ACTIONS.get((current_status, new_status), f"{current_status} -> {new_status}")


def validate_transition(current_status: str, new_status: str) -> None:
    """
    Validate a status transition. Raises InvalidStateError if invalid.

    Unlike a plain status edit, staying in the same status is not a
    no-op here: it means the operation was already applied.
    """
    if can_transition(current_status, new_status):
        return

    allowed = get_allowed_transitions(current_status)
    if not allowed:
        raise InvalidStateError(
            f"Order in '{current_status}' status cannot be modified. This is a terminal state."
        )
    raise InvalidStateError(
        f"Cannot {get_transition_action(current_status, new_status).lower()} order "
        f"in '{current_status}' status. Allowed transitions: {', '.join(allowed)}"
    )


# =============================================================================
# STATUS CHECK HELPERS
# =============================================================================

def can_edit(status: str) -> bool:
    """Items and notes may change until approval."""
    return status in [OrderStatus.DRAFT, OrderStatus.SUBMITTED]


def can_delete(status: str) -> bool:
    """Only orders without financial history can be removed."""
    return status in [OrderStatus.DRAFT, OrderStatus.CANCELLED]


def can_invoice(status: str) -> bool:
    return status == OrderStatus.APPROVED


# Orders whose quantities count towards production demand
OUTSTANDING_STATUSES: List[str] = [OrderStatus.SUBMITTED.value, OrderStatus.APPROVED.value]


def is_outstanding(status: str) -> bool:
    """Counts towards production demand."""
    return status in OUTSTANDING_STATUSES


# =============================================================================
# TRANSITION EXECUTOR
# =============================================================================

def transition_order(order, new_status: str) -> None:
    """Validate and apply a transition, stamping the matching timestamp."""
    validate_transition(order.status, new_status)
    order.status = OrderStatus(new_status).value

    now = datetime.now(timezone.utc)
    if new_status == OrderStatus.SUBMITTED:
        order.submitted_at = now
    elif new_status == OrderStatus.APPROVED:
        order.approved_at = now
    elif new_status == OrderStatus.INVOICED:
        order.invoiced_at = now
    elif new_status == OrderStatus.CANCELLED:
        order.cancelled_at = now
