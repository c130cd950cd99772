"""Booking ledger: one row per rental, carrying two independent state machines."""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Integer, Text, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from carhub.database import Base
from carhub.db_types import UUIDType, MoneyType

if TYPE_CHECKING:
    from carhub.models.car import Car
    from carhub.models.user import User


# ==================== ENUMS (stored as VARCHAR) ====================

class BookingStatus(str, Enum):
    """Rental lifecycle."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Payment lifecycle, orthogonal to BookingStatus."""
    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


# ==================== MODELS ====================

class Booking(Base):
    """
    A renter's booking of a car for a date range.

    total_days and total_amount are frozen at creation; later price changes on
    the car never touch existing rows.
    """
    __tablename__ = "bookings"
    __table_args__ = (
        Index('ix_bookings_car_status', 'car_id', 'status'),
        Index('ix_bookings_payment_status', 'payment_status'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    renter_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    car_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("cars.id", ondelete="RESTRICT"),
        nullable=False
    )

    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    total_days: Mapped[int] = mapped_column(Integer, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=BookingStatus.PENDING.value,
        nullable=False,
        comment="pending, confirmed, active, completed, cancelled"
    )
    payment_status: Mapped[str] = mapped_column(
        String(20),
        default=PaymentStatus.PENDING.value,
        nullable=False,
        comment="pending, processing, paid, failed, refunded, cancelled"
    )

    pickup_location: Mapped[str] = mapped_column(String(255), nullable=False)
    dropoff_location: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_number: Mapped[str] = mapped_column(String(20), nullable=False)
    special_requests: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Simulated gateway
    payment_intent_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    refunded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    refund_due: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="Paid booking cancelled; refund owed, processed externally"
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    car: Mapped["Car"] = relationship("Car")
    renter: Mapped["User"] = relationship("User")

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, status='{self.status}', "
            f"payment_status='{self.payment_status}', total={self.total_amount})>"
        )
