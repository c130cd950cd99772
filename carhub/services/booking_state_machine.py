"""
Booking State Machines

Two orthogonal machines live on one booking row:
- status          pending -> confirmed -> active -> completed (+ cancelled)
- payment_status  pending -> processing -> paid (+ failed, refunded, cancelled)

They are deliberately kept apart: a completed booking can still be refunded.
All status changes go through the validators in this module.
"""

from typing import Dict, List

from carhub.core.exceptions import ConflictError, ValidationError
from carhub.models.booking import BookingStatus, PaymentStatus


# =============================================================================
# BOOKING STATUS
# =============================================================================

BOOKING_TERMINAL: List[str] = [
    BookingStatus.COMPLETED.value,
    BookingStatus.CANCELLED.value,
]

# Lifecycle adjacency. Only enforced for the admin override when
# STRICT_BOOKING_TRANSITIONS is enabled; workflow operations always honour it.
BOOKING_TRANSITIONS: Dict[str, List[str]] = {
    BookingStatus.PENDING.value: [
        BookingStatus.CONFIRMED.value,
        BookingStatus.CANCELLED.value,
    ],
    BookingStatus.CONFIRMED.value: [
        BookingStatus.ACTIVE.value,
        BookingStatus.CANCELLED.value,
    ],
    BookingStatus.ACTIVE.value: [
        BookingStatus.COMPLETED.value,
        BookingStatus.CANCELLED.value,
    ],
    BookingStatus.COMPLETED.value: [],
    BookingStatus.CANCELLED.value: [],
}

# Statuses that occupy the car for overlap purposes
OCCUPYING_STATUSES: List[str] = [
    BookingStatus.CONFIRMED.value,
    BookingStatus.ACTIVE.value,
]


def parse_booking_status(value: str) -> str:
    """Normalise a status string, rejecting unknown values."""
    try:
        return BookingStatus(str(value).lower()).value
    except ValueError:
        raise ValidationError(f"Invalid booking status '{value}'", field="status")


def is_booking_terminal(status: str) -> bool:
    """Is this a terminal (final) booking state?"""
    return status in BOOKING_TERMINAL


def can_cancel_booking(status: str) -> bool:
    return not is_booking_terminal(status)


def validate_admin_status_change(current: str, new: str, strict: bool) -> None:
    """
    Validate an admin status override.

    The default contract is permissive: any status may be set from any status.
    With `strict`, the lifecycle adjacency table applies instead.
    """
    if current == new or not strict:
        return

    allowed = BOOKING_TRANSITIONS.get(current, [])
    if not allowed:
        raise ConflictError(
            f"Booking in '{current}' status cannot be modified. This is a terminal state.",
            field="status",
        )
    if new not in allowed:
        raise ConflictError(
            f"Cannot change booking from '{current}' to '{new}'. "
            f"Allowed transitions: {', '.join(allowed)}",
            field="status",
        )


# =============================================================================
# PAYMENT STATUS
# =============================================================================

PAYMENT_TRANSITIONS: Dict[str, List[str]] = {
    PaymentStatus.PENDING.value: [
        PaymentStatus.PROCESSING.value,
        PaymentStatus.PAID.value,
        PaymentStatus.FAILED.value,
        PaymentStatus.CANCELLED.value,
    ],
    PaymentStatus.PROCESSING.value: [
        PaymentStatus.PAID.value,
        PaymentStatus.FAILED.value,
        PaymentStatus.CANCELLED.value,
    ],
    PaymentStatus.FAILED.value: [
        PaymentStatus.PENDING.value,     # Retry from scratch
        PaymentStatus.PROCESSING.value,  # New intent
        PaymentStatus.CANCELLED.value,   # Renter backed out
    ],
    PaymentStatus.PAID.value: [
        PaymentStatus.REFUNDED.value,
    ],
    PaymentStatus.REFUNDED.value: [],
    PaymentStatus.CANCELLED.value: [],
}

# Payment states that accept a new intent
INTENT_SOURCES: List[str] = [
    PaymentStatus.PENDING.value,
    PaymentStatus.PROCESSING.value,
    PaymentStatus.FAILED.value,
]


def parse_payment_status(value: str) -> str:
    try:
        return PaymentStatus(str(value).lower()).value
    except ValueError:
        raise ValidationError(f"Invalid payment status '{value}'", field="payment_status")


def is_payment_terminal(status: str) -> bool:
    return not PAYMENT_TRANSITIONS.get(status)


def can_transition_payment(current: str, new: str) -> bool:
    return new in PAYMENT_TRANSITIONS.get(current, [])


def validate_payment_transition(current: str, new: str) -> None:
    """Raise ConflictError unless `current -> new` is in the payment table."""
    if current == new:
        return

    if not can_transition_payment(current, new):
        allowed = PAYMENT_TRANSITIONS.get(current, [])
        if not allowed:
            raise ConflictError(
                f"Payment in '{current}' status cannot be modified. This is a terminal state.",
                field="payment_status",
            )
        raise ConflictError(
            f"Cannot change payment from '{current}' to '{new}'. "
            f"Allowed transitions: {', '.join(allowed)}",
            field="payment_status",
        )


def print_state_diagram():
    """Print a text representation of both machines."""
    for title, table in (("Booking", BOOKING_TRANSITIONS), ("Payment", PAYMENT_TRANSITIONS)):
        print(f"\n=== {title} State Machine ===\n")
        for status, transitions in table.items():
            if transitions:
                print(f"{status}: -> {', '.join(transitions)}")
            else:
                print(f"{status}: [TERMINAL STATE]")


if __name__ == "__main__":
    print_state_diagram()
