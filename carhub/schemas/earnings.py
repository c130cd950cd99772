"""
Read-side schemas produced by the earnings aggregator.

None of these are persisted; they are recomputed from bookings and payment
requests on every read.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from carhub.schemas.base import BaseResponseSchema


class PartnerBalance(BaseResponseSchema):
    partner_id: UUID
    commission_rate: Decimal
    total_bookings: int
    total_revenue: Decimal
    partner_earnings: Decimal
    platform_earnings: Decimal
    total_redeemed: Decimal
    pending_balance: Decimal
    available_balance: Decimal


class EarningsLine(BaseResponseSchema):
    """One paid booking split into partner and platform shares."""
    booking_id: UUID
    car_id: UUID
    car_name: str
    start_date: datetime
    end_date: datetime
    total_amount: Decimal
    partner_share: Decimal
    platform_share: Decimal
    paid_at: Optional[datetime] = None


class PartnerEarningsBreakdown(BaseResponseSchema):
    partner_id: UUID
    commission_rate: Decimal
    lines: List[EarningsLine]
    partner_earnings: Decimal
    platform_earnings: Decimal


class PartnerEarningsSummary(BaseResponseSchema):
    partner_id: UUID
    user_id: UUID
    user_name: str
    user_email: str
    commission_rate: Decimal
    total_bookings: int
    total_revenue: Decimal
    partner_earnings: Decimal
    platform_earnings: Decimal
