"""Redemption ledger: partner payout requests against their available balance."""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, DateTime, ForeignKey, Text, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from carhub.database import Base
from carhub.db_types import UUIDType, MoneyType

if TYPE_CHECKING:
    from carhub.models.partner import Partner


class RedemptionStatus(str, Enum):
    """Payout request status."""
    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PayoutMethod(str, Enum):
    """Payout method."""
    BANK_TRANSFER = "bank_transfer"
    UPI = "upi"


class PaymentRequest(Base):
    """
    A partner's request to move available earnings off-platform.

    No balance is stored anywhere: pending/processing amounts count as the
    partner's pending balance and paid amounts as redeemed.
    """
    __tablename__ = "payment_requests"
    __table_args__ = (
        Index('ix_payment_requests_partner_status', 'partner_id', 'status'),
        Index('ix_payment_requests_requested', 'requested_at'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    partner_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("partners.id", ondelete="CASCADE"),
        nullable=False
    )

    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    payment_method: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="bank_transfer, upi"
    )

    # Payout details (snapshot at time of request)
    account_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    account_number: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    bank_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    ifsc_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    upi_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        default=RedemptionStatus.PENDING.value,
        nullable=False,
        comment="pending, processing, paid, failed, cancelled"
    )

    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    processed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    transaction_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    partner: Mapped["Partner"] = relationship("Partner")

    def __repr__(self) -> str:
        return f"<PaymentRequest(id={self.id}, amount={self.amount}, status='{self.status}')>"
