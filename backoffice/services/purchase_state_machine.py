"""
Purchase Request State Machine

    draft -> submitted -> partial -> received
    draft | submitted -> cancelled
    partial -> closed            (short close)

A request keeps receiving goods while partial; quantity_received never
decreases.
"""

from typing import Dict, List

from backoffice.core.exceptions import InvalidStateError
from backoffice.models.purchase import PurchaseRequestStatus


# Format: current_status -> [list of allowed next statuses]
PURCHASE_TRANSITIONS: Dict[str, List[str]] = {
    PurchaseRequestStatus.DRAFT.value: [
        PurchaseRequestStatus.SUBMITTED.value,
        PurchaseRequestStatus.CANCELLED.value,
    ],
    PurchaseRequestStatus.SUBMITTED.value: [
        PurchaseRequestStatus.PARTIAL.value,     # First receipt, not everything
        PurchaseRequestStatus.RECEIVED.value,    # Everything at once
        PurchaseRequestStatus.CANCELLED.value,
    ],
    PurchaseRequestStatus.PARTIAL.value: [
        PurchaseRequestStatus.PARTIAL.value,     # Receive more goods
        PurchaseRequestStatus.RECEIVED.value,    # All remaining goods received
        PurchaseRequestStatus.CLOSED.value,      # Close with partial receipt
    ],
    PurchaseRequestStatus.RECEIVED.value: [],
    PurchaseRequestStatus.CLOSED.value: [],
    PurchaseRequestStatus.CANCELLED.value: [],
}


def can_transition(current_status: str, new_status: str) -> bool:
    return new_status in PURCHASE_TRANSITIONS.get(current_status, [])


def get_allowed_transitions(current_status: str) -> List[str]:
    return list(PURCHASE_TRANSITIONS.get(current_status, []))


def validate_transition(current_status: str, new_status: str) -> None:
    """Raises InvalidStateError if the transition is not allowed."""
    if can_transition(current_status, new_status):
        return

    allowed = get_allowed_transitions(current_status)
    if not allowed:
        raise InvalidStateError(
            f"Purchase request in '{current_status}' status cannot be modified. This is a terminal state."
        )
    raise InvalidStateError(
        f"Cannot change purchase request from '{current_status}' to '{new_status}'. "
        f"Allowed transitions: {', '.join(allowed)}"
    )


def can_edit(status: str) -> bool:
    return status == PurchaseRequestStatus.DRAFT


def can_receive_goods(status: str) -> bool:
    return status in [PurchaseRequestStatus.SUBMITTED, PurchaseRequestStatus.PARTIAL]
