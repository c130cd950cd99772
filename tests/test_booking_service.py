from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select, func

from carhub.config import settings
from carhub.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from carhub.models.booking import Booking
from carhub.services.booking_service import BookingService, compute_total_days
from carhub.services.catalog_service import CatalogService
from carhub.services.payment_service import PaymentService

from conftest import JAN_1, JAN_4, booking_payload, make_car, make_paid_booking, make_user


@pytest.mark.parametrize(
    "delta, expected",
    [
        (timedelta(days=3), 3),
        (timedelta(days=2, hours=1), 3),
        (timedelta(hours=2), 1),
        (timedelta(days=1), 1),
    ],
)
def test_total_days_rounds_up(delta, expected):
    assert compute_total_days(JAN_1, JAN_1 + delta) == expected


async def test_create_booking_three_days(db, renter):
    car = await make_car(db, price_per_day=Decimal("50"))
    booking = await BookingService(db).create_booking(renter, booking_payload(car))

    assert booking.total_days == 3
    assert booking.total_amount == Decimal("150.00")
    assert booking.status == "pending"
    assert booking.payment_status == "pending"
    # Creation leaves the car's flag alone
    await db.refresh(car)
    assert car.available is True


async def test_end_before_start_rejected(db, renter):
    car = await make_car(db)
    with pytest.raises(ValidationError) as exc:
        await BookingService(db).create_booking(renter, booking_payload(car, start_date=JAN_4, end_date=JAN_1))
    assert exc.value.field == "end_date"

    count = (await db.execute(select(func.count(Booking.id)))).scalar()
    assert count == 0


async def test_unavailable_car_rejected(db, renter):
    car = await make_car(db, available=False)
    with pytest.raises(ValidationError) as exc:
        await BookingService(db).create_booking(renter, booking_payload(car))
    assert exc.value.field == "car_id"


async def test_price_change_does_not_touch_existing_booking(db, renter, admin):
    car = await make_car(db, price_per_day=Decimal("50"))
    booking = await BookingService(db).create_booking(renter, booking_payload(car))

    car.price_per_day = Decimal("80")
    await db.commit()

    await db.refresh(booking)
    assert booking.total_amount == Decimal("150.00")


async def test_overlap_with_confirmed_booking_conflicts(db, renter):
    car = await make_car(db)
    paid = await make_paid_booking(db, renter, car)
    assert paid.status == "confirmed"

    # Car is now flagged unavailable; clear it to reach the interval check
    car.available = True
    await db.commit()

    service = BookingService(db)
    with pytest.raises(ConflictError):
        await service.create_booking(
            renter, booking_payload(car, start_date=JAN_1 + timedelta(days=1), end_date=JAN_4 + timedelta(days=1))
        )

    # Back-to-back is fine
    follow_on = await service.create_booking(
        renter, booking_payload(car, start_date=JAN_4, end_date=JAN_4 + timedelta(days=2))
    )
    assert follow_on.total_days == 2


async def test_overlap_check_can_be_disabled(db, renter, monkeypatch):
    monkeypatch.setattr(settings, "PREVENT_OVERLAPPING_BOOKINGS", False)
    monkeypatch.setattr(settings, "SYNC_CAR_AVAILABILITY", False)
    car = await make_car(db)
    await make_paid_booking(db, renter, car)

    second = await BookingService(db).create_booking(renter, booking_payload(car))
    assert second.status == "pending"


async def test_set_status_requires_admin(db, renter):
    car = await make_car(db)
    booking = await BookingService(db).create_booking(renter, booking_payload(car))
    with pytest.raises(AuthorizationError):
        await BookingService(db).set_status(booking.id, "confirmed", renter)


async def test_admin_set_status_is_permissive(db, renter, admin):
    car = await make_car(db)
    service = BookingService(db)
    booking = await service.create_booking(renter, booking_payload(car))

    booking = await service.set_status(booking.id, "completed", admin)
    assert booking.status == "completed"
    booking = await service.set_status(booking.id, "pending", admin)
    assert booking.status == "pending"


async def test_admin_set_status_strict_mode(db, renter, admin, monkeypatch):
    monkeypatch.setattr(settings, "STRICT_BOOKING_TRANSITIONS", True)
    car = await make_car(db)
    service = BookingService(db)
    booking = await service.create_booking(renter, booking_payload(car))

    with pytest.raises(ConflictError):
        await service.set_status(booking.id, "completed", admin)


async def test_status_changes_sync_car_availability(db, renter, admin):
    car = await make_car(db)
    service = BookingService(db)
    booking = await service.create_booking(renter, booking_payload(car))

    await service.set_status(booking.id, "active", admin)
    await db.refresh(car)
    assert car.available is False

    await service.set_status(booking.id, "completed", admin)
    await db.refresh(car)
    assert car.available is True


async def test_release_keeps_admin_deactivated_car_off(db, renter, admin):
    car = await make_car(db)
    service = BookingService(db)
    booking = await service.create_booking(renter, booking_payload(car))
    await service.set_status(booking.id, "confirmed", admin)
    await CatalogService(db).set_admin_availability(car.id, admin, admin_deactivated=True)

    await service.cancel_booking(booking.id, renter)
    await db.refresh(car)
    assert car.available is False
    assert car.admin_deactivated is True


async def test_cancel_unpaid_booking_cancels_payment(db, renter):
    car = await make_car(db)
    service = BookingService(db)
    booking = await service.create_booking(renter, booking_payload(car))

    booking = await service.cancel_booking(booking.id, renter)
    assert booking.status == "cancelled"
    assert booking.payment_status == "cancelled"
    assert booking.cancelled_at is not None
    assert booking.refund_due is False


async def test_cancel_paid_booking_flags_refund(db, renter):
    car = await make_car(db)
    booking = await make_paid_booking(db, renter, car)

    booking = await BookingService(db).cancel_booking(booking.id, renter)
    assert booking.status == "cancelled"
    assert booking.payment_status == "paid"
    assert booking.refund_due is True


async def test_cancel_by_other_renter_forbidden(db, renter):
    stranger = await make_user(db, name="Stranger")
    car = await make_car(db)
    booking = await BookingService(db).create_booking(renter, booking_payload(car))

    with pytest.raises(AuthorizationError):
        await BookingService(db).cancel_booking(booking.id, stranger)


@pytest.mark.parametrize("terminal", ["completed", "cancelled"])
async def test_cancel_terminal_booking_conflicts(db, renter, admin, terminal):
    car = await make_car(db)
    service = BookingService(db)
    booking = await service.create_booking(renter, booking_payload(car))
    await service.set_status(booking.id, terminal, admin)

    with pytest.raises(ConflictError):
        await service.cancel_booking(booking.id, renter)


async def test_stale_write_is_a_conflict(db, renter, admin):
    car = await make_car(db)
    service = BookingService(db)
    booking = await service.create_booking(renter, booking_payload(car))

    with pytest.raises(ConflictError):
        await service.compare_and_set(
            booking,
            expected={"status": "confirmed"},
            values={"status": "active"},
        )
    await db.refresh(booking)
    assert booking.status == "pending"


async def test_delete_unpaid_booking(db, renter):
    car = await make_car(db)
    service = BookingService(db)
    booking = await service.create_booking(renter, booking_payload(car))

    await service.delete_booking(booking.id, renter)
    with pytest.raises(NotFoundError):
        await service.get_booking(booking.id)


async def test_delete_paid_booking_conflicts(db, renter, admin):
    car = await make_car(db)
    booking = await make_paid_booking(db, renter, car)

    with pytest.raises(ConflictError):
        await BookingService(db).delete_booking(booking.id, admin)


async def test_list_bookings_scoped_to_renter(db, renter, admin):
    other = await make_user(db, name="Other")
    service = BookingService(db)
    await service.create_booking(renter, booking_payload(await make_car(db)))
    await service.create_booking(other, booking_payload(await make_car(db)))

    mine, total = await service.list_bookings(renter)
    assert total == 1
    assert mine[0].renter_id == renter.id

    everything, total = await service.list_bookings(admin)
    assert total == 2


async def test_list_partner_bookings(db, renter, partner, partner_car):
    service = BookingService(db)
    await service.create_booking(renter, booking_payload(partner_car))
    await service.create_booking(renter, booking_payload(await make_car(db)))

    bookings, total = await service.list_partner_bookings(partner)
    assert total == 1
    assert bookings[0].car_id == partner_car.id


async def test_naive_dates_are_treated_as_utc(db, renter):
    car = await make_car(db)
    payload = booking_payload(
        car,
        start_date=datetime(2027, 3, 1),
        end_date=datetime(2027, 3, 2, 12, 0),
    )
    assert payload.start_date.tzinfo == timezone.utc
    booking = await BookingService(db).create_booking(renter, payload)
    assert booking.total_days == 2


async def _pay(db, renter, booking):
    payments = PaymentService(db)
    intent = await payments.create_payment_intent(booking.id, renter)
    return await payments.confirm_payment(booking.id, intent["payment_intent_id"], renter)


async def test_overlapping_pending_bookings_cannot_both_confirm(db, renter, admin):
    car = await make_car(db)
    service = BookingService(db)
    first = await service.create_booking(renter, booking_payload(car))
    second = await service.create_booking(
        renter, booking_payload(car, start_date=JAN_1 + timedelta(days=1), end_date=JAN_4 + timedelta(days=1))
    )

    assert (await _pay(db, renter, first)).status == "confirmed"

    payments = PaymentService(db)
    intent = await payments.create_payment_intent(second.id, renter)
    with pytest.raises(ConflictError) as exc:
        await payments.confirm_payment(second.id, intent["payment_intent_id"], renter)
    assert exc.value.details["conflicting_booking_id"] == str(first.id)

    await db.refresh(second)
    assert second.status == "pending"
    assert second.payment_status == "processing"

    with pytest.raises(ConflictError):
        await payments.update_payment_status(second.id, "paid", admin)
    with pytest.raises(ConflictError):
        await service.set_status(second.id, "active", admin)

    # Once the first rental is cancelled the second may go ahead
    await service.cancel_booking(first.id, renter)
    confirmed = await payments.confirm_payment(second.id, intent["payment_intent_id"], renter)
    assert confirmed.status == "confirmed"


async def test_strict_mode_confirm_checks_overlap(db, renter, admin, monkeypatch):
    monkeypatch.setattr(settings, "STRICT_BOOKING_TRANSITIONS", True)
    car = await make_car(db)
    service = BookingService(db)
    first = await service.create_booking(renter, booking_payload(car))
    second = await service.create_booking(renter, booking_payload(car))

    await service.set_status(first.id, "confirmed", admin)
    with pytest.raises(ConflictError):
        await service.set_status(second.id, "confirmed", admin)


async def test_release_waits_for_other_occupying_bookings(db, renter, admin):
    car = await make_car(db)
    service = BookingService(db)
    first = await service.create_booking(renter, booking_payload(car))
    second = await service.create_booking(
        renter, booking_payload(car, start_date=JAN_1 + timedelta(days=9), end_date=JAN_1 + timedelta(days=11))
    )
    await _pay(db, renter, first)
    await _pay(db, renter, second)

    await service.cancel_booking(second.id, renter)
    await db.refresh(car)
    assert car.available is False

    await service.set_status(first.id, "completed", admin)
    await db.refresh(car)
    assert car.available is True
