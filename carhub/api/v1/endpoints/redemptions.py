"""Admin endpoints for the redemption (payout request) queue."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query

from carhub.api.deps import DB, AdminUser
from carhub.schemas.redemption import (
    RedemptionApprove,
    RedemptionReject,
    RedemptionCancel,
    PaymentRequestResponse,
    PaymentRequestList,
    RedemptionStats,
)
from carhub.services.redemption_service import RedemptionService

router = APIRouter()


@router.get("", response_model=PaymentRequestList)
async def list_payment_requests(
    db: DB,
    admin: AdminUser,
    status_filter: Optional[str] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
):
    requests, total = await RedemptionService(db).list_requests(status=status_filter, skip=skip, limit=limit)
    return PaymentRequestList(
        items=[PaymentRequestResponse.model_validate(r) for r in requests],
        total=total,
    )


@router.get("/stats", response_model=RedemptionStats)
async def get_payment_stats(db: DB, admin: AdminUser):
    """Counts and amounts per status."""
    return await RedemptionService(db).payment_stats()


@router.put("/{request_id}/processing", response_model=PaymentRequestResponse)
async def mark_processing(request_id: UUID, db: DB, admin: AdminUser):
    return await RedemptionService(db).mark_processing(request_id, admin)


@router.put("/{request_id}/approve", response_model=PaymentRequestResponse)
async def approve_request(
    request_id: UUID,
    approve_in: RedemptionApprove,
    db: DB,
    admin: AdminUser,
):
    """Mark paid. The partner balance is re-checked at this point."""
    return await RedemptionService(db).approve(request_id, admin, transaction_id=approve_in.transaction_id)


@router.put("/{request_id}/reject", response_model=PaymentRequestResponse)
async def reject_request(
    request_id: UUID,
    reject_in: RedemptionReject,
    db: DB,
    admin: AdminUser,
):
    """Mark failed. The amount returns to the available balance."""
    return await RedemptionService(db).reject(request_id, admin, reason=reject_in.reason)


@router.put("/{request_id}/cancel", response_model=PaymentRequestResponse)
async def cancel_request(
    request_id: UUID,
    cancel_in: RedemptionCancel,
    db: DB,
    admin: AdminUser,
):
    return await RedemptionService(db).cancel(request_id, admin, reason=cancel_in.reason)
