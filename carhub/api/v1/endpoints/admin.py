"""Admin console endpoints: car moderation, partner moderation, earnings audit."""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Query

from carhub.api.deps import DB, AdminUser
from carhub.models.partner import Partner
from carhub.schemas.car import CarAvailabilityUpdate, CarResponse
from carhub.schemas.earnings import PartnerBalance, PartnerEarningsBreakdown, PartnerEarningsSummary
from carhub.schemas.partner import (
    PartnerStatusUpdate,
    CommissionRateUpdate,
    PartnerResponse,
    PartnerAdminItem,
    PartnerAdminList,
    PrivilegeSyncResponse,
)
from carhub.services.catalog_service import CatalogService
from carhub.services.earnings_service import EarningsService
from carhub.services.partner_service import PartnerService

router = APIRouter()


def _partner_admin_item(partner: Partner) -> PartnerAdminItem:
    data = PartnerResponse.model_validate(partner).model_dump()
    return PartnerAdminItem(
        **data,
        user_name=partner.user.name,
        user_email=partner.user.email,
        user_is_partner=partner.user.is_partner,
    )


# ==================== Cars ====================

@router.put("/cars/{car_id}/availability", response_model=CarResponse)
async def set_car_availability(
    car_id: UUID,
    availability_in: CarAvailabilityUpdate,
    db: DB,
    admin: AdminUser,
):
    """Set `available` and/or `admin_deactivated`. Deactivation forces unavailable."""
    return await CatalogService(db).set_admin_availability(
        car_id,
        admin,
        available=availability_in.available,
        admin_deactivated=availability_in.admin_deactivated,
    )


@router.put("/cars/{car_id}/reactivate", response_model=CarResponse)
async def reactivate_car(car_id: UUID, db: DB, admin: AdminUser):
    return await CatalogService(db).reactivate_car(car_id, admin)


# ==================== Partners ====================

@router.get("/partners", response_model=PartnerAdminList)
async def list_partners(
    db: DB,
    admin: AdminUser,
    status_filter: Optional[str] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
):
    """Partner applications with the applicant's directory fields."""
    partners, total = await PartnerService(db).list_partners(status=status_filter, skip=skip, limit=limit)
    return PartnerAdminList(
        items=[_partner_admin_item(p) for p in partners],
        total=total,
    )


@router.put("/partners/{partner_id}/status", response_model=PartnerResponse)
async def set_partner_status(
    partner_id: UUID,
    status_in: PartnerStatusUpdate,
    db: DB,
    admin: AdminUser,
):
    """Approve or reject an application. Privileges change only on sync."""
    return await PartnerService(db).set_partner_status(partner_id, status_in.status.value, admin)


@router.post("/partners/{partner_id}/sync-privileges", response_model=PrivilegeSyncResponse)
async def sync_partner_privileges(partner_id: UUID, db: DB, admin: AdminUser):
    """Align the user's partner flag with the application status."""
    partner, user = await PartnerService(db).sync_partner_privileges(partner_id, admin)
    return PrivilegeSyncResponse(
        partner_id=partner.id,
        user_id=user.id,
        partner_status=partner.status,
        is_partner=user.is_partner,
        partner_since=user.partner_since,
    )


@router.put("/partners/{partner_id}/commission-rate", response_model=PartnerResponse)
async def set_commission_rate(
    partner_id: UUID,
    rate_in: CommissionRateUpdate,
    db: DB,
    admin: AdminUser,
):
    return await PartnerService(db).set_commission_rate(partner_id, rate_in.commission_rate, admin)


@router.get("/partners/{partner_id}/balance", response_model=PartnerBalance)
async def get_partner_balance(partner_id: UUID, db: DB, admin: AdminUser):
    return await EarningsService(db).get_balance(partner_id)


# ==================== Earnings audit ====================

@router.get("/partner-earnings", response_model=List[PartnerEarningsSummary])
async def list_partner_earnings(db: DB, admin: AdminUser):
    """Earnings summary for every approved partner, highest first."""
    return await EarningsService(db).admin_partner_earnings()


@router.get("/partner-earnings/{partner_id}/details", response_model=PartnerEarningsBreakdown)
async def get_partner_earnings_details(partner_id: UUID, db: DB, admin: AdminUser):
    """Per-booking partner/platform split for one partner."""
    return await EarningsService(db).partner_earnings_breakdown(partner_id)
