"""
Shared fixtures: an in-memory SQLite database, an ASGI client bound to it,
and small factories for users, partners, cars and bookings.
"""
import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from carhub import models  # noqa: F401
from carhub.core.security import create_access_token
from carhub.database import Base, get_db
from carhub.main import app
from carhub.models.car import Car
from carhub.models.partner import Partner, PartnerStatus
from carhub.models.user import User
from carhub.schemas.booking import BookingCreate
from carhub.services.booking_service import BookingService
from carhub.services.payment_service import PaymentService


JAN_1 = datetime(2027, 1, 1, 10, 0, tzinfo=timezone.utc)
JAN_4 = datetime(2027, 1, 4, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        # Sessions share one connection; a checkin must not roll back another session's work
        pool_reset_on_return=None,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ==================== Factories ====================

def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


async def make_user(db: AsyncSession, name: str = "Renter", is_admin: bool = False, **kwargs) -> User:
    user = User(
        id=uuid.uuid4(),
        name=name,
        email=kwargs.pop("email", f"{uuid.uuid4().hex[:8]}@example.com"),
        is_admin=is_admin,
        is_active=kwargs.pop("is_active", True),
        is_partner=kwargs.pop("is_partner", False),
        **kwargs,
    )
    db.add(user)
    await db.commit()
    return user


async def make_partner(
    db: AsyncSession,
    user: User,
    status: str = PartnerStatus.APPROVED.value,
    commission_rate: Decimal = Decimal("10"),
) -> Partner:
    partner = Partner(
        id=uuid.uuid4(),
        user_id=user.id,
        address="12 Harbour Road",
        city="Pune",
        state="MH",
        country="India",
        zip_code="411001",
        national_id="ABCDE1234F",
        id_proof="uploads/id/abc.pdf",
        status=status,
        commission_rate=commission_rate,
        registration_fee=Decimal("10.00"),
    )
    db.add(partner)
    await db.commit()
    return partner


async def make_car(
    db: AsyncSession,
    partner: Partner = None,
    price_per_day: Decimal = Decimal("50.00"),
    available: bool = True,
    admin_deactivated: bool = False,
) -> Car:
    car = Car(
        id=uuid.uuid4(),
        name="Swift Dzire",
        brand="Maruti",
        model="Dzire",
        year=2023,
        seats=5,
        car_type="sedan",
        price_per_day=price_per_day,
        owner_partner_id=partner.id if partner else None,
        available=available,
        admin_deactivated=admin_deactivated,
    )
    db.add(car)
    await db.commit()
    return car


def booking_payload(car: Car, start_date: datetime = JAN_1, end_date: datetime = JAN_4) -> BookingCreate:
    return BookingCreate(
        car_id=car.id,
        start_date=start_date,
        end_date=end_date,
        pickup_location="Airport",
        dropoff_location="Airport",
        contact_number="+15550100",
    )


async def make_paid_booking(db: AsyncSession, renter: User, car: Car, **dates):
    booking = await BookingService(db).create_booking(renter, booking_payload(car, **dates))
    payments = PaymentService(db)
    intent = await payments.create_payment_intent(booking.id, renter)
    return await payments.confirm_payment(booking.id, intent["payment_intent_id"], renter)


# ==================== Common actors ====================

@pytest.fixture
async def admin(db):
    return await make_user(db, name="Admin", is_admin=True)


@pytest.fixture
async def renter(db):
    return await make_user(db, name="Renter")


@pytest.fixture
async def partner_user(db):
    return await make_user(db, name="Partner Owner", is_partner=True)


@pytest.fixture
async def partner(db, partner_user):
    return await make_partner(db, partner_user)


@pytest.fixture
async def partner_car(db, partner):
    return await make_car(db, partner=partner)
