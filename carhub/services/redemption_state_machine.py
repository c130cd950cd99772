"""
Redemption (payout request) state machine.

pending -> processing -> paid, with failed/cancelled reachable from pending
or processing. paid, failed and cancelled are terminal.
"""

from typing import Dict, List

from carhub.core.exceptions import ConflictError, ValidationError
from carhub.models.payment_request import RedemptionStatus


REDEMPTION_TRANSITIONS: Dict[str, List[str]] = {
    RedemptionStatus.PENDING.value: [
        RedemptionStatus.PROCESSING.value,  # Admin picked it up
        RedemptionStatus.PAID.value,        # Approve
        RedemptionStatus.FAILED.value,      # Reject
        RedemptionStatus.CANCELLED.value,   # Cancel
    ],
    RedemptionStatus.PROCESSING.value: [
        RedemptionStatus.PAID.value,
        RedemptionStatus.FAILED.value,
        RedemptionStatus.CANCELLED.value,
    ],
    RedemptionStatus.PAID.value: [],
    RedemptionStatus.FAILED.value: [],
    RedemptionStatus.CANCELLED.value: [],
}

TRANSITION_ACTIONS: Dict[tuple, str] = {
    (RedemptionStatus.PENDING.value, RedemptionStatus.PROCESSING.value): "Mark Processing",
    (RedemptionStatus.PENDING.value, RedemptionStatus.PAID.value): "Approve",
    (RedemptionStatus.PROCESSING.value, RedemptionStatus.PAID.value): "Approve",
    (RedemptionStatus.PENDING.value, RedemptionStatus.FAILED.value): "Reject",
    (RedemptionStatus.PROCESSING.value, RedemptionStatus.FAILED.value): "Reject",
    (RedemptionStatus.PENDING.value, RedemptionStatus.CANCELLED.value): "Cancel",
    (RedemptionStatus.PROCESSING.value, RedemptionStatus.CANCELLED.value): "Cancel",
}

# Amounts in these states are blocked (pending balance)
OPEN_STATUSES: List[str] = [
    RedemptionStatus.PENDING.value,
    RedemptionStatus.PROCESSING.value,
]


def parse_redemption_status(value: str) -> str:
    try:
        return RedemptionStatus(str(value).lower()).value
    except ValueError:
        raise ValidationError(f"Invalid redemption status '{value}'", field="status")


def is_terminal(status: str) -> bool:
    return not REDEMPTION_TRANSITIONS.get(status)


def can_transition(current: str, new: str) -> bool:
    return new in REDEMPTION_TRANSITIONS.get(current, [])


def get_transition_action(current: str, new: str) -> str:
    return TRANSITION_ACTIONS.get((current, new), f"{current} -> {new}")


def validate_transition(current: str, new: str) -> None:
    """Raise ConflictError if the transition is not allowed. Same-state is not a no-op here."""
    if can_transition(current, new):
        return

    allowed = REDEMPTION_TRANSITIONS.get(current, [])
    if not allowed:
        raise ConflictError(
            f"Payment request is already '{current}'. This is a terminal state.",
            field="status",
        )
    raise ConflictError(
        f"Cannot change payment request from '{current}' to '{new}'. "
        f"Allowed transitions: {', '.join(allowed)}",
        field="status",
    )
