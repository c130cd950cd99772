"""API endpoints for partner self-service: application, balance, redemptions."""
from typing import List

from fastapi import APIRouter, status, Query

from carhub.api.deps import DB, CurrentUser, CurrentPartner
from carhub.schemas.booking import BookingResponse, BookingListResponse
from carhub.schemas.earnings import PartnerBalance
from carhub.schemas.partner import PartnerApply, PartnerResponse
from carhub.schemas.redemption import RedemptionCreate, PaymentRequestResponse
from carhub.services.booking_service import BookingService
from carhub.services.earnings_service import EarningsService
from carhub.services.partner_service import PartnerService
from carhub.services.redemption_service import RedemptionService

router = APIRouter()


# ==================== Application ====================

@router.post("/apply", response_model=PartnerResponse, status_code=status.HTTP_201_CREATED)
async def apply_for_partnership(apply_in: PartnerApply, db: DB, current_user: CurrentUser):
    """Submit a partner application. Reviewed by an admin."""
    return await PartnerService(db).apply(current_user, apply_in)


@router.get("/me", response_model=PartnerResponse)
async def get_my_partner(db: DB, current_user: CurrentUser):
    """Current user's partner application, whatever its status."""
    return await PartnerService(db).get_my_partner(current_user)


# ==================== Earnings ====================

@router.get("/me/balance", response_model=PartnerBalance)
async def get_my_balance(db: DB, partner: CurrentPartner):
    """Earnings, redeemed, pending and available balance, computed now."""
    return await EarningsService(db).compute_balance(partner)


@router.get("/me/bookings", response_model=BookingListResponse)
async def get_my_car_bookings(
    db: DB,
    partner: CurrentPartner,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
):
    """Bookings made on the partner's cars."""
    bookings, total = await BookingService(db).list_partner_bookings(partner, skip=skip, limit=limit)
    return BookingListResponse(
        items=[BookingResponse.model_validate(b) for b in bookings],
        total=total,
    )


# ==================== Redemptions ====================

@router.get("/me/payment-history", response_model=List[PaymentRequestResponse])
async def get_payment_history(db: DB, partner: CurrentPartner):
    """Last 50 redemption requests, newest first."""
    return await RedemptionService(db).payment_history(partner)


@router.post("/me/redemptions", response_model=PaymentRequestResponse, status_code=status.HTTP_201_CREATED)
async def request_redemption(redemption_in: RedemptionCreate, db: DB, current_user: CurrentUser):
    """Request a payout of part of the available balance."""
    return await RedemptionService(db).request_redemption(current_user, redemption_in)
