"""
Catalog Store

Car records, price lookups and the availability flags. Enforces:
- admin_deactivated implies available is False
- only an admin sets or clears admin_deactivated
- a partner may toggle `available` on their own car unless it is admin-deactivated
"""

import logging
import uuid
from typing import Optional, List, Tuple

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from carhub.config import settings
from carhub.core.exceptions import AuthorizationError, ConflictError, NotFoundError
from carhub.core.permissions import ensure_admin
from carhub.models.booking import Booking, BookingStatus
from carhub.models.car import Car
from carhub.models.user import User
from carhub.schemas.car import CarCreate, CarUpdate
from carhub.services.booking_state_machine import OCCUPYING_STATUSES
from carhub.services.partner_service import PartnerService


logger = logging.getLogger(__name__)


class CatalogService:
    """Service for car catalog operations"""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ========================================================================
    # Lookups
    # ========================================================================

    async def get_car(self, car_id: uuid.UUID) -> Car:
        result = await self.db.execute(select(Car).where(Car.id == car_id))
        car = result.scalar_one_or_none()
        if not car:
            raise NotFoundError("Car not found", field="car_id")
        return car

    async def list_cars(
        self,
        available_only: bool = False,
        owner_partner_id: Optional[uuid.UUID] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Car], int]:
        filters = []
        if available_only:
            filters.append(Car.available == True)  # noqa: E712
        if owner_partner_id:
            filters.append(Car.owner_partner_id == owner_partner_id)

        query = select(Car)
        count_query = select(func.count(Car.id))
        if filters:
            query = query.where(and_(*filters))
            count_query = count_query.where(and_(*filters))

        total = (await self.db.execute(count_query)).scalar() or 0
        result = await self.db.execute(
            query.order_by(Car.created_at.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all()), total

    async def partner_car_ids(self, partner_id: uuid.UUID) -> List[uuid.UUID]:
        """Ids of every car owned by the partner."""
        result = await self.db.execute(
            select(Car.id).where(Car.owner_partner_id == partner_id)
        )
        return list(result.scalars().all())

    # ========================================================================
    # Mutations
    # ========================================================================

    async def create_car(self, actor: User, data: CarCreate) -> Car:
        """
        Admins list platform cars (no owner); approved partners list their own.
        """
        owner_partner_id = None
        if not actor.is_admin:
            partner = await PartnerService(self.db).get_partner_for_user(actor.id)
            if not partner or not partner.is_approved:
                raise AuthorizationError("You are not an approved partner")
            owner_partner_id = partner.id

        car = Car(
            id=uuid.uuid4(),
            owner_partner_id=owner_partner_id,
            admin_deactivated=False,
            **data.model_dump(),
        )
        self.db.add(car)
        await self.db.commit()
        await self.db.refresh(car)

        logger.info(f"Car {car.id} listed by {actor.id} (owner partner: {owner_partner_id})")
        return car

    async def _ensure_can_manage(self, car: Car, actor: User) -> None:
        if actor.is_admin:
            return
        partner = await PartnerService(self.db).get_partner_for_user(actor.id)
        if not partner or car.owner_partner_id != partner.id:
            raise AuthorizationError("Not authorized to manage this car")

    async def update_car(self, car_id: uuid.UUID, actor: User, data: CarUpdate) -> Car:
        car = await self.get_car(car_id)
        await self._ensure_can_manage(car, actor)

        update_data = data.model_dump(exclude_unset=True)
        if update_data.get("available") is True and car.admin_deactivated:
            raise AuthorizationError(
                "This car has been deactivated by admin. Please contact support to reactivate.",
                field="available",
            )

        for field, value in update_data.items():
            setattr(car, field, value)

        await self.db.commit()
        await self.db.refresh(car)
        return car

    async def set_admin_availability(
        self,
        car_id: uuid.UUID,
        admin: User,
        available: Optional[bool] = None,
        admin_deactivated: Optional[bool] = None,
    ) -> Car:
        ensure_admin(admin, "change car availability")
        car = await self.get_car(car_id)

        if available is not None:
            car.available = available
        if admin_deactivated is not None:
            car.admin_deactivated = admin_deactivated
        if car.admin_deactivated:
            car.available = False

        await self.db.commit()
        await self.db.refresh(car)

        logger.info(
            f"Car {car.id} availability set by admin {admin.id}: "
            f"available={car.available}, admin_deactivated={car.admin_deactivated}"
        )
        return car

    async def reactivate_car(self, car_id: uuid.UUID, admin: User) -> Car:
        ensure_admin(admin, "reactivate cars")
        car = await self.get_car(car_id)
        car.admin_deactivated = False
        car.available = True
        await self.db.commit()
        await self.db.refresh(car)
        logger.info(f"Car {car.id} reactivated by admin {admin.id}")
        return car

    async def delete_car(self, car_id: uuid.UUID, actor: User) -> None:
        """
        Remove a car. Any booking history blocks deletion; deactivate instead.
        """
        car = await self.get_car(car_id)
        await self._ensure_can_manage(car, actor)

        result = await self.db.execute(
            select(func.count(Booking.id)).where(Booking.car_id == car.id)
        )
        if (result.scalar() or 0) > 0:
            raise ConflictError(
                "Cannot delete a car with booking history. Mark it unavailable instead.",
                field="car_id",
            )

        await self.db.delete(car)
        await self.db.commit()
        logger.info(f"Car {car_id} deleted by {actor.id}")

    # ========================================================================
    # Inventory policy hook (called by booking transitions)
    # ========================================================================

    async def sync_availability(
        self,
        car_id: uuid.UUID,
        booking_status: str,
        booking_id: Optional[uuid.UUID] = None,
    ) -> None:
        """
        Occupy the car while a booking is confirmed/active, release it when the
        booking ends. The car stays off the market while any other booking on it
        is still confirmed/active, and an admin-deactivated car is never
        re-enabled. Does not commit.
        """
        if not settings.SYNC_CAR_AVAILABILITY:
            return

        car = await self.get_car(car_id)
        if booking_status in OCCUPYING_STATUSES:
            car.available = False
        elif booking_status in (BookingStatus.CANCELLED.value, BookingStatus.COMPLETED.value):
            query = select(Booking.id).where(
                Booking.car_id == car.id,
                Booking.status.in_(OCCUPYING_STATUSES),
            )
            if booking_id is not None:
                query = query.where(Booking.id != booking_id)
            still_held = (await self.db.execute(query.limit(1))).scalar_one_or_none()
            if still_held:
                logger.info(f"Car {car.id} kept unavailable: booking {still_held} still holds it")
                car.available = False
            else:
                car.available = not car.admin_deactivated
