"""API endpoints for the car catalog."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, status, Query

from carhub.api.deps import DB, CurrentUser
from carhub.schemas.car import CarCreate, CarUpdate, CarResponse, CarListResponse
from carhub.services.catalog_service import CatalogService

router = APIRouter()


@router.get("", response_model=CarListResponse)
async def list_cars(
    db: DB,
    available_only: bool = False,
    owner_partner_id: Optional[UUID] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
):
    """List cars. Public."""
    cars, total = await CatalogService(db).list_cars(
        available_only=available_only,
        owner_partner_id=owner_partner_id,
        skip=skip,
        limit=limit,
    )
    return CarListResponse(
        items=[CarResponse.model_validate(c) for c in cars],
        total=total,
    )


@router.get("/{car_id}", response_model=CarResponse)
async def get_car(car_id: UUID, db: DB):
    """Get a car by ID. Public."""
    return await CatalogService(db).get_car(car_id)


@router.post("", response_model=CarResponse, status_code=status.HTTP_201_CREATED)
async def create_car(car_in: CarCreate, db: DB, current_user: CurrentUser):
    """List a car. Admins create platform cars, approved partners their own."""
    return await CatalogService(db).create_car(current_user, car_in)


@router.put("/{car_id}", response_model=CarResponse)
async def update_car(car_id: UUID, car_in: CarUpdate, db: DB, current_user: CurrentUser):
    """Update a car (owning partner or admin)."""
    return await CatalogService(db).update_car(car_id, current_user, car_in)


@router.delete("/{car_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_car(car_id: UUID, db: DB, current_user: CurrentUser):
    """Delete a car with no booking history (owning partner or admin)."""
    await CatalogService(db).delete_car(car_id, current_user)
