"""Pydantic schemas for partner redemption (payout) requests."""

from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Dict
from uuid import UUID

from pydantic import BaseModel, Field

from carhub.models.payment_request import PayoutMethod
from carhub.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


class PayoutDetails(BaseModel):
    """Bank fields for bank_transfer, upi_id for upi. Checked per method by the service."""
    account_name: Optional[str] = None
    account_number: Optional[str] = None
    bank_name: Optional[str] = None
    ifsc_code: Optional[str] = None
    upi_id: Optional[str] = None


class RedemptionCreate(BaseCreateSchema):
    # Range checks live in RedemptionService so they surface as ValidationError
    amount: Decimal = Field(..., max_digits=12, decimal_places=2)
    payment_method: PayoutMethod
    payout_details: PayoutDetails = Field(default_factory=PayoutDetails)


class RedemptionApprove(BaseUpdateSchema):
    transaction_id: Optional[str] = Field(None, max_length=100)


class RedemptionReject(BaseUpdateSchema):
    reason: Optional[str] = None


class RedemptionCancel(BaseUpdateSchema):
    reason: Optional[str] = None


class PaymentRequestResponse(BaseResponseSchema):
    id: UUID
    partner_id: UUID
    amount: Decimal
    payment_method: str
    account_name: Optional[str] = None
    account_number: Optional[str] = None
    bank_name: Optional[str] = None
    ifsc_code: Optional[str] = None
    upi_id: Optional[str] = None
    status: str
    requested_at: datetime
    processed_at: Optional[datetime] = None
    processed_by: Optional[UUID] = None
    transaction_id: Optional[str] = None
    notes: Optional[str] = None


class PaymentRequestList(BaseResponseSchema):
    items: List[PaymentRequestResponse]
    total: int


class RedemptionStats(BaseResponseSchema):
    total_requests: int
    counts: Dict[str, int]
    amounts: Dict[str, Decimal]
    total_amount_paid: Decimal
