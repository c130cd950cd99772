import pytest

from carhub.core.exceptions import ConflictError, ValidationError
from carhub.services.booking_state_machine import (
    BOOKING_TRANSITIONS,
    PAYMENT_TRANSITIONS,
    can_cancel_booking,
    can_transition_payment,
    is_booking_terminal,
    is_payment_terminal,
    parse_booking_status,
    parse_payment_status,
    validate_admin_status_change,
    validate_payment_transition,
)
from carhub.services.redemption_state_machine import (
    REDEMPTION_TRANSITIONS,
    can_transition,
    get_transition_action,
    is_terminal,
    parse_redemption_status,
    validate_transition,
)

BOOKING_STATES = list(BOOKING_TRANSITIONS)


class TestBookingStatus:
    def test_terminal_states(self):
        assert is_booking_terminal("completed")
        assert is_booking_terminal("cancelled")
        assert not is_booking_terminal("active")

    def test_cancel_allowed_from_non_terminal_only(self):
        assert can_cancel_booking("pending")
        assert can_cancel_booking("confirmed")
        assert can_cancel_booking("active")
        assert not can_cancel_booking("completed")
        assert not can_cancel_booking("cancelled")

    @pytest.mark.parametrize("current", BOOKING_STATES)
    @pytest.mark.parametrize("new", BOOKING_STATES)
    def test_admin_override_is_total_by_default(self, current, new):
        validate_admin_status_change(current, new, strict=False)

    def test_strict_mode_follows_adjacency(self):
        validate_admin_status_change("pending", "confirmed", strict=True)
        with pytest.raises(ConflictError):
            validate_admin_status_change("pending", "completed", strict=True)
        with pytest.raises(ConflictError) as exc:
            validate_admin_status_change("cancelled", "pending", strict=True)
        assert "terminal" in exc.value.message

    def test_parse_rejects_unknown(self):
        assert parse_booking_status("CONFIRMED") == "confirmed"
        with pytest.raises(ValidationError):
            parse_booking_status("parked")


class TestPaymentStatus:
    def test_happy_path(self):
        assert can_transition_payment("pending", "processing")
        assert can_transition_payment("processing", "paid")
        assert can_transition_payment("paid", "refunded")

    def test_paid_only_moves_to_refunded(self):
        assert PAYMENT_TRANSITIONS["paid"] == ["refunded"]
        with pytest.raises(ConflictError):
            validate_payment_transition("paid", "cancelled")

    @pytest.mark.parametrize("terminal", ["refunded", "cancelled"])
    def test_terminal_rejects_everything(self, terminal):
        assert is_payment_terminal(terminal)
        with pytest.raises(ConflictError):
            validate_payment_transition(terminal, "pending")

    def test_same_status_is_noop(self):
        validate_payment_transition("refunded", "refunded")

    def test_parse_rejects_unknown(self):
        with pytest.raises(ValidationError) as exc:
            parse_payment_status("settled")
        assert exc.value.field == "payment_status"


class TestRedemptionStatus:
    @pytest.mark.parametrize("terminal", ["paid", "failed", "cancelled"])
    def test_terminal_states_accept_nothing(self, terminal):
        assert is_terminal(terminal)
        for target in REDEMPTION_TRANSITIONS:
            with pytest.raises(ConflictError):
                validate_transition(terminal, target)

    def test_processing_only_from_pending(self):
        assert can_transition("pending", "processing")
        assert not can_transition("processing", "processing")

    def test_action_names(self):
        assert get_transition_action("pending", "paid") == "Approve"
        assert get_transition_action("processing", "failed") == "Reject"

    def test_parse(self):
        assert parse_redemption_status("Pending") == "pending"
        with pytest.raises(ValidationError):
            parse_redemption_status("approved")
