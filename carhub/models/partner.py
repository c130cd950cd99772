"""Partner application and commission terms."""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from carhub.database import Base
from carhub.db_types import UUIDType, MoneyType, RateType

if TYPE_CHECKING:
    from carhub.models.user import User


class PartnerStatus(str, Enum):
    """Partner application status."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Partner(Base):
    """
    A user's application to list cars and earn commission-split payouts.

    `status` and `users.is_partner` are independent fields; the latter is only
    changed by PartnerService.sync_partner_privileges.
    """
    __tablename__ = "partners"
    __table_args__ = (
        Index('ix_partners_status', 'status'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True
    )

    # Address / KYC
    address: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state: Mapped[str] = mapped_column(String(100), nullable=False)
    country: Mapped[str] = mapped_column(String(100), nullable=False)
    zip_code: Mapped[str] = mapped_column(String(20), nullable=False)
    national_id: Mapped[str] = mapped_column(String(50), nullable=False)
    id_proof: Mapped[str] = mapped_column(String(500), nullable=False, comment="Uploaded document path")

    status: Mapped[str] = mapped_column(
        String(20),
        default=PartnerStatus.PENDING.value,
        nullable=False,
        comment="pending, approved, rejected"
    )

    commission_rate: Mapped[Decimal] = mapped_column(
        RateType,
        nullable=False,
        comment="Percentage of each paid booking retained by the platform"
    )
    registration_fee: Mapped[Decimal] = mapped_column(
        MoneyType,
        nullable=False,
        comment="Flat fee charged at application time (informational)"
    )

    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

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

    user: Mapped["User"] = relationship("User", foreign_keys=[user_id])

    @property
    def is_approved(self) -> bool:
        return self.status == PartnerStatus.APPROVED.value

    def __repr__(self) -> str:
        return f"<Partner(id={self.id}, status='{self.status}', rate={self.commission_rate})>"
