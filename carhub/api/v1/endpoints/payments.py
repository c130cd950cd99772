"""API endpoints for the simulated payment gateway."""
from fastapi import APIRouter, status

from carhub.api.deps import DB, CurrentUser
from carhub.schemas.booking import (
    PaymentIntentCreate,
    PaymentIntentResponse,
    PaymentConfirm,
    PaymentCancel,
    BookingResponse,
    BookingActionResponse,
)
from carhub.services.payment_service import PaymentService

router = APIRouter()


@router.post("/create-intent", response_model=PaymentIntentResponse, status_code=status.HTTP_201_CREATED)
async def create_payment_intent(intent_in: PaymentIntentCreate, db: DB, current_user: CurrentUser):
    """Open a payment intent for a booking (step 1 of 2)."""
    return await PaymentService(db).create_payment_intent(
        intent_in.booking_id, current_user, amount=intent_in.amount
    )


@router.post("/confirm", response_model=BookingActionResponse)
async def confirm_payment(confirm_in: PaymentConfirm, db: DB, current_user: CurrentUser):
    """Settle a payment intent (step 2 of 2). Repeating it is harmless."""
    booking = await PaymentService(db).confirm_payment(
        confirm_in.booking_id, confirm_in.payment_intent_id, current_user
    )
    return BookingActionResponse(
        message="Payment confirmed",
        booking=BookingResponse.model_validate(booking),
    )


@router.post("/cancel", response_model=BookingActionResponse)
async def cancel_payment(cancel_in: PaymentCancel, db: DB, current_user: CurrentUser):
    """Back out before paying. Cancels both the payment and the booking."""
    booking = await PaymentService(db).cancel_payment(cancel_in.booking_id, current_user)
    return BookingActionResponse(
        message="Payment cancelled",
        booking=BookingResponse.model_validate(booking),
    )
