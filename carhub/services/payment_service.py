"""
Payment Service

Simulated two-phase gateway over the booking's payment sub-state machine:

1. create_payment_intent  pending|failed -> processing, issues an intent id
2. confirm_payment        processing -> paid, booking pending -> confirmed

No external gateway is called. The split into two calls is kept so a real
provider can be dropped in behind the same contract.
"""

import logging
import secrets
import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from carhub.config import settings
from carhub.core.exceptions import ConflictError, ValidationError
from carhub.core.permissions import ensure_admin, ensure_owner_or_admin
from carhub.models.booking import Booking, BookingStatus, PaymentStatus
from carhub.models.user import User
from carhub.services.booking_service import BookingService, CENT
from carhub.services.booking_state_machine import (
    INTENT_SOURCES,
    can_cancel_booking,
    is_booking_terminal,
    parse_payment_status,
    validate_payment_transition,
)
from carhub.services.catalog_service import CatalogService


logger = logging.getLogger(__name__)


def generate_intent_id() -> str:
    """Opaque intent id in the style of card gateways: pi_ + 24 hex chars."""
    return f"pi_{uuid.uuid4().hex[:24]}"


class PaymentService:
    """Service for the simulated payment gateway and admin payment overrides"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.bookings = BookingService(db)

    async def create_payment_intent(
        self,
        booking_id: uuid.UUID,
        actor: User,
        amount: Optional[Decimal] = None,
    ) -> Dict[str, Any]:
        """
        Open (or re-open) a payment intent for a booking.

        The booking must not be cancelled or completed and its payment must
        not be paid, refunded or cancelled. A supplied amount must equal the
        booking total.
        """
        booking = await self.bookings.get_booking(booking_id)
        ensure_owner_or_admin(actor, booking.renter_id, "pay for this booking")

        if is_booking_terminal(booking.status):
            raise ConflictError(
                f"Cannot pay for a booking that is '{booking.status}'",
                field="status",
            )
        if booking.payment_status not in INTENT_SOURCES:
            raise ConflictError(
                f"Payment is already '{booking.payment_status}'",
                field="payment_status",
            )

        if amount is not None:
            try:
                requested = Decimal(str(amount)).quantize(CENT)
            except InvalidOperation:
                raise ValidationError("Invalid payment amount", field="amount")
            if requested != booking.total_amount:
                raise ValidationError(
                    f"Amount {requested} does not match booking total {booking.total_amount}",
                    field="amount",
                )

        old_payment_status = booking.payment_status
        intent_id = generate_intent_id()
        booking = await self.bookings.compare_and_set(
            booking,
            expected={"status": booking.status, "payment_status": old_payment_status},
            values={
                "payment_status": PaymentStatus.PROCESSING.value,
                "payment_intent_id": intent_id,
            },
        )
        await self.db.commit()

        logger.info(
            f"Payment intent {intent_id} for booking {booking.id}: "
            f"payment {old_payment_status} -> processing by {actor.id}"
        )
        return {
            "booking_id": booking.id,
            "payment_intent_id": intent_id,
            "client_secret": f"{intent_id}_secret_{secrets.token_hex(12)}",
            "amount": booking.total_amount,
            "currency": settings.CURRENCY,
        }

    async def confirm_payment(
        self,
        booking_id: uuid.UUID,
        payment_intent_id: str,
        actor: User,
    ) -> Booking:
        """
        Settle a payment intent.

        Confirming an already-paid booking returns it unchanged, so a repeated
        confirm never moves paid_at or counts the booking twice.
        """
        booking = await self.bookings.get_booking(booking_id)
        ensure_owner_or_admin(actor, booking.renter_id, "confirm this payment")

        if booking.payment_status == PaymentStatus.PAID.value:
            logger.info(f"Booking {booking.id} already paid; confirm is a no-op")
            return booking

        if booking.status == BookingStatus.CANCELLED.value or booking.status == BookingStatus.COMPLETED.value:
            raise ConflictError(
                f"Cannot confirm payment for a booking that is '{booking.status}'",
                field="status",
            )
        if booking.payment_status != PaymentStatus.PROCESSING.value:
            raise ConflictError(
                f"No open payment intent (payment is '{booking.payment_status}')",
                field="payment_status",
            )
        if not booking.payment_intent_id or booking.payment_intent_id != payment_intent_id:
            raise ValidationError("Payment intent does not match this booking", field="payment_intent_id")

        old_status = booking.status
        new_status = BookingStatus.CONFIRMED.value if old_status == BookingStatus.PENDING.value else old_status
        values = {
            "payment_status": PaymentStatus.PAID.value,
            "paid_at": booking.paid_at or datetime.now(timezone.utc),
            "status": new_status,
        }
        await self.bookings.ensure_can_occupy(booking, new_status)

        try:
            booking = await self.bookings.compare_and_set(
                booking,
                expected={
                    "status": old_status,
                    "payment_status": PaymentStatus.PROCESSING.value,
                    "payment_intent_id": payment_intent_id,
                },
                values=values,
            )
        except ConflictError:
            # Lost the race to a concurrent confirm of the same intent
            if booking.payment_status == PaymentStatus.PAID.value:
                return booking
            raise

        if new_status != old_status:
            await CatalogService(self.db).sync_availability(booking.car_id, new_status, booking.id)
        await self.db.commit()

        logger.info(
            f"Booking {booking.id} payment processing -> paid, status {old_status} -> {new_status} "
            f"(intent {payment_intent_id}, by {actor.id})"
        )
        return booking

    async def cancel_payment(self, booking_id: uuid.UUID, actor: User) -> Booking:
        """Renter backs out before paying: payment and booking both cancelled."""
        booking = await self.bookings.get_booking(booking_id)
        ensure_owner_or_admin(actor, booking.renter_id, "cancel this payment")

        if not can_cancel_booking(booking.status):
            raise ConflictError(
                f"Booking is already '{booking.status}' and cannot be cancelled",
                field="status",
            )
        old_payment_status = booking.payment_status
        validate_payment_transition(old_payment_status, PaymentStatus.CANCELLED.value)

        old_status = booking.status
        booking = await self.bookings.compare_and_set(
            booking,
            expected={"status": old_status, "payment_status": old_payment_status},
            values={
                "status": BookingStatus.CANCELLED.value,
                "payment_status": PaymentStatus.CANCELLED.value,
                "cancelled_at": datetime.now(timezone.utc),
            },
        )
        await CatalogService(self.db).sync_availability(booking.car_id, BookingStatus.CANCELLED.value, booking.id)
        await self.db.commit()

        logger.info(
            f"Booking {booking.id} payment {old_payment_status} -> cancelled, "
            f"status {old_status} -> cancelled by {actor.id}"
        )
        return booking

    async def update_payment_status(
        self,
        booking_id: uuid.UUID,
        new_status: str,
        admin: User,
    ) -> Booking:
        """
        Admin override of the payment status, checked against the payment
        adjacency table. Timestamps are only set the first time.
        """
        ensure_admin(admin, "change payment status")
        new_status = parse_payment_status(new_status)
        booking = await self.bookings.get_booking(booking_id)
        old_payment_status = booking.payment_status

        if old_payment_status == new_status:
            return booking
        validate_payment_transition(old_payment_status, new_status)

        now = datetime.now(timezone.utc)
        old_status = booking.status
        values: Dict[str, Any] = {"payment_status": new_status}
        if new_status == PaymentStatus.PAID.value:
            values["paid_at"] = booking.paid_at or now
            if old_status == BookingStatus.PENDING.value:
                values["status"] = BookingStatus.CONFIRMED.value
        elif new_status == PaymentStatus.REFUNDED.value:
            values["refunded_at"] = booking.refunded_at or now
            values["refund_due"] = False
        if "status" in values:
            await self.bookings.ensure_can_occupy(booking, values["status"])

        booking = await self.bookings.compare_and_set(
            booking,
            expected={"status": old_status, "payment_status": old_payment_status},
            values=values,
        )
        if booking.status != old_status:
            await CatalogService(self.db).sync_availability(booking.car_id, booking.status, booking.id)
        await self.db.commit()

        logger.info(
            f"Booking {booking.id} payment {old_payment_status} -> {new_status} by admin {admin.id}"
        )
        return booking
