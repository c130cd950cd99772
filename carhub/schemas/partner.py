"""Pydantic schemas for partner applications and moderation."""

from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import Field

from carhub.models.partner import PartnerStatus
from carhub.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


class PartnerApply(BaseCreateSchema):
    address: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    country: str = Field(..., min_length=1, max_length=100)
    zip_code: str = Field(..., min_length=1, max_length=20)
    national_id: str = Field(..., min_length=1, max_length=50)
    id_proof: str = Field(..., min_length=1, max_length=500, description="Path of the uploaded ID document")


class PartnerStatusUpdate(BaseUpdateSchema):
    status: PartnerStatus


class CommissionRateUpdate(BaseUpdateSchema):
    commission_rate: Decimal = Field(..., ge=0, le=100, description="Commission % (0-100)")


class PartnerResponse(BaseResponseSchema):
    id: UUID
    user_id: UUID
    address: str
    city: str
    state: str
    country: str
    zip_code: str
    national_id: str
    id_proof: str
    status: str
    commission_rate: Decimal
    registration_fee: Decimal
    approved_at: Optional[datetime] = None
    approved_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime


class PartnerAdminItem(PartnerResponse):
    """Partner row with the owning user's directory fields, for the admin queue."""
    user_name: str
    user_email: str
    user_is_partner: bool


class PartnerAdminList(BaseResponseSchema):
    items: List[PartnerAdminItem]
    total: int


class PrivilegeSyncResponse(BaseResponseSchema):
    partner_id: UUID
    user_id: UUID
    partner_status: str
    is_partner: bool
    partner_since: Optional[datetime] = None
