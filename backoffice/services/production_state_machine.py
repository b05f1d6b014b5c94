"""
Production Order State Machine

    pending -> in_progress -> completed
    pending | in_progress -> cancelled

completed and cancelled are terminal; completing twice never creates a
second batch.
"""

from datetime import datetime, timezone
from typing import Dict, List

from backoffice.core.exceptions import InvalidStateError
from backoffice.models.production import ProductionStatus


PRODUCTION_TRANSITIONS: Dict[str, List[str]] = {
    ProductionStatus.PENDING.value: [
        ProductionStatus.IN_PROGRESS.value,
        ProductionStatus.CANCELLED.value,
    ],
    ProductionStatus.IN_PROGRESS.value: [
        ProductionStatus.COMPLETED.value,
        ProductionStatus.CANCELLED.value,
    ],
    ProductionStatus.COMPLETED.value: [],
    ProductionStatus.CANCELLED.value: [],
}

TRANSITION_ACTIONS: Dict[tuple, str] = {
    (ProductionStatus.PENDING.value, ProductionStatus.IN_PROGRESS.value): "Start",
    (ProductionStatus.PENDING.value, ProductionStatus.CANCELLED.value): "Cancel",
    (ProductionStatus.IN_PROGRESS.value, ProductionStatus.COMPLETED.value): "Complete",
    (ProductionStatus.IN_PROGRESS.value, ProductionStatus.CANCELLED.value): "Cancel",
}


def can_transition(current_status: str, new_status: str) -> bool:
    return new_status in PRODUCTION_TRANSITIONS.get(current_status, [])


def get_allowed_transitions(current_status: str) -> List[str]:
    return list(PRODUCTION_TRANSITIONS.get(current_status, []))


def validate_transition(current_status: str, new_status: str) -> None:
    """Raises InvalidStateError if the transition is not allowed."""
    if can_transition(current_status, new_status):
        return

    action = TRANSITION_ACTIONS.get(
        (ProductionStatus.PENDING.value, new_status),
        TRANSITION_ACTIONS.get((ProductionStatus.IN_PROGRESS.value, new_status), new_status),
    )
    allowed = get_allowed_transitions(current_status)
    if not allowed:
        raise InvalidStateError(
            f"Production order is already {current_status}. This is a terminal state."
        )
    raise InvalidStateError(
        f"Cannot {action.lower()} a production order in '{current_status}' status. "
        f"Allowed transitions: {', '.join(allowed)}"
    )


def is_terminal(status: str) -> bool:
    return status in [ProductionStatus.COMPLETED, ProductionStatus.CANCELLED]


def transition_production(production_order, new_status: str) -> None:
    """Validate and apply a transition, stamping the matching timestamp."""
    validate_transition(production_order.status, new_status)
    production_order.status = ProductionStatus(new_status).value

    now = datetime.now(timezone.utc)
    if new_status == ProductionStatus.IN_PROGRESS:
        production_order.started_at = now
    elif new_status == ProductionStatus.COMPLETED:
        production_order.completed_at = now
    elif new_status == ProductionStatus.CANCELLED:
        production_order.cancelled_at = now
