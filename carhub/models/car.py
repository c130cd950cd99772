import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Integer, Text, Index
from sqlalchemy.orm import Mapped, mapped_column

from carhub.database import Base
from carhub.db_types import UUIDType, MoneyType


class Car(Base):
    """
    Catalog entry for a rentable car.

    `owner_partner_id` is NULL for platform-owned cars.
    admin_deactivated implies not available.
    """
    __tablename__ = "cars"
    __table_args__ = (
        Index('ix_cars_owner_partner_id', 'owner_partner_id'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    brand: Mapped[str] = mapped_column(String(100), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    seats: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    transmission: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    fuel_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    car_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    price_per_day: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    owner_partner_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("partners.id", ondelete="SET NULL"),
        nullable=True
    )

    available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    admin_deactivated: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="Admin override a partner cannot clear"
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

    def __repr__(self) -> str:
        return f"<Car(name='{self.name}', price={self.price_per_day}, available={self.available})>"
