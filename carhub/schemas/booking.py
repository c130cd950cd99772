"""Pydantic schemas for bookings and the simulated payment gateway."""

from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import Field, field_validator

from carhub.models.booking import BookingStatus, PaymentStatus
from carhub.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema, ensure_utc


class BookingCreate(BaseCreateSchema):
    """Date ordering is checked by BookingService so the error names the field."""
    car_id: UUID
    start_date: datetime
    end_date: datetime
    pickup_location: str = Field(..., min_length=1, max_length=255)
    dropoff_location: str = Field(..., min_length=1, max_length=255)
    contact_number: str = Field(..., min_length=5, max_length=20)
    special_requests: Optional[str] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def normalise_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class BookingStatusUpdate(BaseUpdateSchema):
    status: BookingStatus


class PaymentStatusUpdate(BaseUpdateSchema):
    payment_status: PaymentStatus


class BookingResponse(BaseResponseSchema):
    id: UUID
    renter_id: UUID
    car_id: UUID
    start_date: datetime
    end_date: datetime
    total_days: int
    total_amount: Decimal
    status: str
    payment_status: str
    pickup_location: str
    dropoff_location: str
    contact_number: str
    special_requests: Optional[str] = None
    payment_intent_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    refund_due: bool = False
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class BookingListResponse(BaseResponseSchema):
    items: List[BookingResponse]
    total: int


class BookingActionResponse(BaseResponseSchema):
    success: bool = True
    message: str
    booking: Optional[BookingResponse] = None


# ==================== Simulated gateway ====================

class PaymentIntentCreate(BaseCreateSchema):
    booking_id: UUID
    amount: Optional[Decimal] = Field(None, description="Must equal the booking total when given")


class PaymentIntentResponse(BaseResponseSchema):
    booking_id: UUID
    payment_intent_id: str
    client_secret: str
    amount: Decimal
    currency: str


class PaymentConfirm(BaseCreateSchema):
    booking_id: UUID
    payment_intent_id: str = Field(..., min_length=1)


class PaymentCancel(BaseCreateSchema):
    booking_id: UUID
