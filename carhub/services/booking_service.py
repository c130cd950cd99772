"""
Booking Service

The booking ledger: creation, admin status override, cancellation and the
hard-delete path. Every status write is a compare-and-swap against the
state the caller read, so concurrent transitions on one booking cannot
interleave.
"""

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional, List, Tuple

from sqlalchemy import select, update, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from carhub.config import settings
from carhub.core.exceptions import ConflictError, NotFoundError, ValidationError
from carhub.core.permissions import ensure_admin, ensure_owner_or_admin
from carhub.models.booking import Booking, BookingStatus, PaymentStatus
from carhub.models.car import Car
from carhub.models.partner import Partner
from carhub.models.user import User
from carhub.schemas.booking import BookingCreate
from carhub.schemas.base import ensure_utc
from carhub.services.booking_state_machine import (
    OCCUPYING_STATUSES,
    can_cancel_booking,
    parse_booking_status,
    validate_admin_status_change,
)
from carhub.services.catalog_service import CatalogService


logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def compute_total_days(start_date: datetime, end_date: datetime) -> int:
    """Whole days between the dates, rounded up. A partial day counts as one."""
    delta = end_date - start_date
    days = delta.days
    if delta.seconds or delta.microseconds:
        days += 1
    return max(days, 1)


class BookingService:
    """Service for booking ledger operations"""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ========================================================================
    # Lookups
    # ========================================================================

    async def get_booking(self, booking_id: uuid.UUID) -> Booking:
        result = await self.db.execute(select(Booking).where(Booking.id == booking_id))
        booking = result.scalar_one_or_none()
        if not booking:
            raise NotFoundError("Booking not found", field="booking_id")
        return booking

    async def get_booking_for(self, booking_id: uuid.UUID, actor: User) -> Booking:
        """Fetch a booking the actor may see (renter or admin)."""
        booking = await self.get_booking(booking_id)
        ensure_owner_or_admin(actor, booking.renter_id, "view this booking")
        return booking

    async def list_bookings(
        self,
        actor: User,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Booking], int]:
        """Admins see every booking; everyone else sees their own."""
        filters = []
        if not actor.is_admin:
            filters.append(Booking.renter_id == actor.id)
        if status:
            filters.append(Booking.status == parse_booking_status(status))

        query = select(Booking)
        count_query = select(func.count(Booking.id))
        if filters:
            query = query.where(and_(*filters))
            count_query = count_query.where(and_(*filters))

        total = (await self.db.execute(count_query)).scalar() or 0
        result = await self.db.execute(
            query.order_by(Booking.created_at.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all()), total

    async def list_partner_bookings(
        self,
        partner: Partner,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Booking], int]:
        """Bookings made on the partner's cars."""
        car_ids = select(Car.id).where(Car.owner_partner_id == partner.id)

        total = (await self.db.execute(
            select(func.count(Booking.id)).where(Booking.car_id.in_(car_ids))
        )).scalar() or 0
        result = await self.db.execute(
            select(Booking)
            .where(Booking.car_id.in_(car_ids))
            .order_by(Booking.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    # ========================================================================
    # Compare-and-swap write
    # ========================================================================

    async def compare_and_set(
        self,
        booking: Booking,
        expected: Dict[str, Any],
        values: Dict[str, Any],
    ) -> Booking:
        """
        Write `values` only if every column in `expected` still holds the
        expected value, then reload the row.

        Raises ConflictError when another writer got there first.
        """
        conditions = [Booking.id == booking.id]
        conditions.extend(getattr(Booking, column) == value for column, value in expected.items())

        values = dict(values)
        values["updated_at"] = datetime.now(timezone.utc)

        result = await self.db.execute(
            update(Booking)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.db.refresh(booking)

        if result.rowcount != 1:
            logger.warning(
                f"Booking {booking.id} changed concurrently: expected {expected}, "
                f"found status={booking.status}, payment_status={booking.payment_status}"
            )
            raise ConflictError(
                f"Booking was modified by another request (status '{booking.status}', "
                f"payment '{booking.payment_status}'). Re-fetch and retry.",
                field="status",
            )
        return booking

    # ========================================================================
    # Create
    # ========================================================================

    async def create_booking(self, renter: User, data: BookingCreate) -> Booking:
        """
        Create a booking in pending/pending.

        The car must exist and be available. The amount is frozen from the
        car's current daily price. Creation never touches the car's
        availability flag.
        """
        start_date = ensure_utc(data.start_date)
        end_date = ensure_utc(data.end_date)
        if end_date <= start_date:
            raise ValidationError("End date must be after start date", field="end_date")

        result = await self.db.execute(select(Car).where(Car.id == data.car_id))
        car = result.scalar_one_or_none()
        if not car:
            raise ValidationError("Car not found", field="car_id")
        if not car.available:
            raise ValidationError("Car is not available for booking", field="car_id")

        if settings.PREVENT_OVERLAPPING_BOOKINGS:
            await self._ensure_no_overlap(car.id, start_date, end_date)

        total_days = compute_total_days(start_date, end_date)
        total_amount = (car.price_per_day * total_days).quantize(CENT)

        booking = Booking(
            id=uuid.uuid4(),
            renter_id=renter.id,
            car_id=car.id,
            start_date=start_date,
            end_date=end_date,
            total_days=total_days,
            total_amount=total_amount,
            status=BookingStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            pickup_location=data.pickup_location,
            dropoff_location=data.dropoff_location,
            contact_number=data.contact_number,
            special_requests=data.special_requests,
            refund_due=False,
        )
        self.db.add(booking)
        await self.db.commit()
        await self.db.refresh(booking)

        logger.info(
            f"Booking {booking.id} created by {renter.id} for car {car.id}: "
            f"{total_days} days, amount {total_amount}"
        )
        return booking

    async def _ensure_no_overlap(
        self,
        car_id: uuid.UUID,
        start_date: datetime,
        end_date: datetime,
        exclude_booking_id: Optional[uuid.UUID] = None,
    ) -> None:
        # Half-open ranges: a rental ending at T does not clash with one starting at T
        query = select(Booking.id).where(
            Booking.car_id == car_id,
            Booking.status.in_(OCCUPYING_STATUSES),
            Booking.start_date < end_date,
            Booking.end_date > start_date,
        )
        if exclude_booking_id is not None:
            query = query.where(Booking.id != exclude_booking_id)
        result = await self.db.execute(query.limit(1))
        clash = result.scalar_one_or_none()
        if clash:
            logger.warning(f"Booking rejected for car {car_id}: overlaps booking {clash}")
            raise ConflictError(
                "Car is already booked for part of the requested period",
                field="start_date",
                details={"conflicting_booking_id": str(clash)},
            )

    async def ensure_can_occupy(self, booking: Booking, new_status: str) -> None:
        """
        Refuse a move into confirmed/active when another booking already
        holds the car for an overlapping period. Pending bookings may overlap
        freely; the clash is caught when the second one tries to occupy.
        """
        if not settings.PREVENT_OVERLAPPING_BOOKINGS:
            return
        if new_status not in OCCUPYING_STATUSES or booking.status in OCCUPYING_STATUSES:
            return
        await self._ensure_no_overlap(
            booking.car_id,
            booking.start_date,
            booking.end_date,
            exclude_booking_id=booking.id,
        )

    # ========================================================================
    # Status transitions
    # ========================================================================

    def _status_side_effects(self, booking: Booking, new_status: str) -> Dict[str, Any]:
        """Column updates that travel with a move into `new_status`."""
        values: Dict[str, Any] = {"status": new_status}
        if new_status == BookingStatus.CANCELLED.value:
            values["cancelled_at"] = datetime.now(timezone.utc)
            if booking.payment_status == PaymentStatus.PAID.value:
                values["refund_due"] = True
            elif booking.payment_status in (
                PaymentStatus.PENDING.value,
                PaymentStatus.PROCESSING.value,
                PaymentStatus.FAILED.value,
            ):
                values["payment_status"] = PaymentStatus.CANCELLED.value
        return values

    async def set_status(self, booking_id: uuid.UUID, new_status: str, actor: User) -> Booking:
        """
        Admin override of the booking status.

        Any status may be set from any status unless STRICT_BOOKING_TRANSITIONS
        is enabled. Payment status is left alone except for the cancellation
        bookkeeping shared with cancel_booking.
        """
        ensure_admin(actor, "change booking status")
        new_status = parse_booking_status(new_status)
        booking = await self.get_booking(booking_id)
        old_status = booking.status

        if old_status == new_status:
            return booking

        validate_admin_status_change(old_status, new_status, settings.STRICT_BOOKING_TRANSITIONS)
        await self.ensure_can_occupy(booking, new_status)

        values = self._status_side_effects(booking, new_status)
        booking = await self.compare_and_set(
            booking,
            expected={"status": old_status, "payment_status": booking.payment_status},
            values=values,
        )
        await CatalogService(self.db).sync_availability(booking.car_id, new_status, booking.id)
        await self.db.commit()

        logger.info(f"Booking {booking.id} status {old_status} -> {new_status} by admin {actor.id}")
        return booking

    async def cancel_booking(self, booking_id: uuid.UUID, actor: User) -> Booking:
        """
        Cancel a booking (renter of the booking, or an admin).

        A paid booking is flagged `refund_due`; the refund itself is handled
        outside this service. An unpaid payment is cancelled alongside.
        """
        booking = await self.get_booking(booking_id)
        ensure_owner_or_admin(actor, booking.renter_id, "cancel this booking")

        old_status = booking.status
        if not can_cancel_booking(old_status):
            logger.warning(f"Cancel rejected for booking {booking.id}: already {old_status}")
            raise ConflictError(
                f"Booking is already '{old_status}' and cannot be cancelled",
                field="status",
            )

        values = self._status_side_effects(booking, BookingStatus.CANCELLED.value)
        booking = await self.compare_and_set(
            booking,
            expected={"status": old_status, "payment_status": booking.payment_status},
            values=values,
        )
        await CatalogService(self.db).sync_availability(booking.car_id, BookingStatus.CANCELLED.value, booking.id)
        await self.db.commit()

        logger.info(
            f"Booking {booking.id} status {old_status} -> cancelled by {actor.id} "
            f"(payment {booking.payment_status}, refund_due={booking.refund_due})"
        )
        return booking

    async def delete_booking(self, booking_id: uuid.UUID, actor: User) -> None:
        """
        Hard-delete a booking. Paid bookings are settled earnings and stay.
        """
        booking = await self.get_booking(booking_id)
        ensure_owner_or_admin(actor, booking.renter_id, "delete this booking")

        if booking.payment_status == PaymentStatus.PAID.value:
            raise ConflictError(
                "Paid bookings cannot be deleted. Cancel the booking instead.",
                field="payment_status",
            )

        if booking.status in OCCUPYING_STATUSES:
            await CatalogService(self.db).sync_availability(booking.car_id, BookingStatus.CANCELLED.value, booking.id)

        await self.db.delete(booking)
        await self.db.commit()
        logger.info(f"Booking {booking_id} deleted by {actor.id}")
