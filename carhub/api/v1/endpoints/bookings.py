"""API endpoints for the booking ledger."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, status, Query

from carhub.api.deps import DB, CurrentUser, AdminUser
from carhub.schemas.booking import (
    BookingCreate,
    BookingStatusUpdate,
    PaymentStatusUpdate,
    BookingResponse,
    BookingListResponse,
    BookingActionResponse,
)
from carhub.services.booking_service import BookingService
from carhub.services.payment_service import PaymentService

router = APIRouter()


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(booking_in: BookingCreate, db: DB, current_user: CurrentUser):
    """Book a car for a date range. Starts pending/pending."""
    return await BookingService(db).create_booking(current_user, booking_in)


@router.get("", response_model=BookingListResponse)
async def list_bookings(
    db: DB,
    current_user: CurrentUser,
    status_filter: Optional[str] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
):
    """Admins see all bookings; renters see their own."""
    bookings, total = await BookingService(db).list_bookings(
        current_user, status=status_filter, skip=skip, limit=limit
    )
    return BookingListResponse(
        items=[BookingResponse.model_validate(b) for b in bookings],
        total=total,
    )


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(booking_id: UUID, db: DB, current_user: CurrentUser):
    return await BookingService(db).get_booking_for(booking_id, current_user)


@router.put("/{booking_id}/status", response_model=BookingResponse)
async def set_booking_status(
    booking_id: UUID,
    status_in: BookingStatusUpdate,
    db: DB,
    admin: AdminUser,
):
    """Admin override of the booking status."""
    return await BookingService(db).set_status(booking_id, status_in.status.value, admin)


@router.put("/{booking_id}/payment-status", response_model=BookingResponse)
async def set_payment_status(
    booking_id: UUID,
    status_in: PaymentStatusUpdate,
    db: DB,
    admin: AdminUser,
):
    """Admin override of the payment status."""
    return await PaymentService(db).update_payment_status(
        booking_id, status_in.payment_status.value, admin
    )


@router.post("/{booking_id}/cancel", response_model=BookingActionResponse)
async def cancel_booking(booking_id: UUID, db: DB, current_user: CurrentUser):
    """Cancel a booking (renter's own, or admin)."""
    booking = await BookingService(db).cancel_booking(booking_id, current_user)
    message = "Booking cancelled"
    if booking.refund_due:
        message = "Booking cancelled. A refund is due for the captured payment."
    return BookingActionResponse(
        message=message,
        booking=BookingResponse.model_validate(booking),
    )


@router.delete("/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_booking(booking_id: UUID, db: DB, current_user: CurrentUser):
    """Hard-delete an unpaid booking (renter's own, or admin)."""
    await BookingService(db).delete_booking(booking_id, current_user)
