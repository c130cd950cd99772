"""Pydantic schemas for the car catalog."""

from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Literal
from uuid import UUID

from pydantic import Field

from carhub.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


Transmission = Literal["manual", "automatic", "semi-automatic"]
FuelType = Literal["petrol", "diesel", "electric", "hybrid", "cng"]
CarType = Literal["economy", "sedan", "suv", "luxury", "sports", "van", "convertible"]


class CarCreate(BaseCreateSchema):
    """Schema for listing a car (admin: platform car, partner: own car)."""
    name: str = Field(..., min_length=1, max_length=200)
    brand: str = Field(..., min_length=1, max_length=100)
    model: str = Field(..., min_length=1, max_length=100)
    year: Optional[int] = Field(None, ge=1950, le=2100)
    seats: Optional[int] = Field(None, ge=1, le=20)
    transmission: Optional[Transmission] = None
    fuel_type: Optional[FuelType] = None
    car_type: Optional[CarType] = "sedan"
    image_url: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = None
    price_per_day: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    available: bool = True


class CarUpdate(BaseUpdateSchema):
    """Partial update. `admin_deactivated` is intentionally absent."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    brand: Optional[str] = Field(None, min_length=1, max_length=100)
    model: Optional[str] = Field(None, min_length=1, max_length=100)
    year: Optional[int] = Field(None, ge=1950, le=2100)
    seats: Optional[int] = Field(None, ge=1, le=20)
    transmission: Optional[Transmission] = None
    fuel_type: Optional[FuelType] = None
    car_type: Optional[CarType] = None
    image_url: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = None
    price_per_day: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    available: Optional[bool] = None


class CarAvailabilityUpdate(BaseUpdateSchema):
    """Admin availability override."""
    available: Optional[bool] = None
    admin_deactivated: Optional[bool] = None


class CarResponse(BaseResponseSchema):
    id: UUID
    name: str
    brand: str
    model: str
    year: Optional[int] = None
    seats: Optional[int] = None
    transmission: Optional[str] = None
    fuel_type: Optional[str] = None
    car_type: Optional[str] = None
    image_url: Optional[str] = None
    description: Optional[str] = None
    price_per_day: Decimal
    owner_partner_id: Optional[UUID] = None
    available: bool
    admin_deactivated: bool
    created_at: datetime
    updated_at: datetime


class CarListResponse(BaseResponseSchema):
    items: List[CarResponse]
    total: int
