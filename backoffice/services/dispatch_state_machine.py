"""
Dispatch State Machine

    pending -> ready -> in_transit -> delivered
    pending | ready -> cancelled

Stock is decremented on pending -> ready and returned on ready -> cancelled.
"""

from datetime import datetime, timezone
from typing import Dict, List

from backoffice.core.exceptions import InvalidStateError
from backoffice.models.dispatch import DispatchStatus


DISPATCH_TRANSITIONS: Dict[str, List[str]] = {
    DispatchStatus.PENDING.value: [DispatchStatus.READY.value, DispatchStatus.CANCELLED.value],
    DispatchStatus.READY.value: [DispatchStatus.IN_TRANSIT.value, DispatchStatus.CANCELLED.value],
    DispatchStatus.IN_TRANSIT.value: [DispatchStatus.DELIVERED.value],
    DispatchStatus.DELIVERED.value: [],
    DispatchStatus.CANCELLED.value: [],
}


def can_transition(current_status: str, new_status: str) -> bool:
    return new_status in DISPATCH_TRANSITIONS.get(current_status, [])


def validate_transition(current_status: str, new_status: str) -> None:
    if can_transition(current_status, new_status):
        return
    allowed = DISPATCH_TRANSITIONS.get(current_status, [])
    if not allowed:
        raise InvalidStateError(f"Dispatch is already {current_status}. This is a terminal state.")
    raise InvalidStateError(
        f"Cannot change dispatch from '{current_status}' to '{new_status}'. "
        f"Allowed transitions: {', '.join(allowed)}"
    )


def can_cancel(status: str) -> bool:
    return status in [DispatchStatus.PENDING, DispatchStatus.READY]


def transition_dispatch(dispatch, new_status: str) -> None:
    validate_transition(dispatch.status, new_status)
    dispatch.status = DispatchStatus(new_status).value

    now = datetime.now(timezone.utc)
    if new_status == DispatchStatus.READY:
        dispatch.allocated_at = now
    elif new_status == DispatchStatus.IN_TRANSIT:
        dispatch.dispatched_at = now
    elif new_status == DispatchStatus.DELIVERED:
        dispatch.delivered_at = now
