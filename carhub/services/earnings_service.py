"""
Earnings Aggregator

Read-side only. A partner's balance is recomputed from the booking ledger
and the redemption ledger on every call; nothing derived is ever stored.

    partner_earnings  = sum(partner_share) over paid bookings on the partner's cars
    platform_earnings = sum(platform_share) over the same bookings
    total_redeemed    = sum(amount) of paid redemptions
    pending_balance   = sum(amount) of pending/processing redemptions
    available_balance = max(0, partner_earnings - total_redeemed - pending_balance)

Sums are done on Decimal values in Python; SQLite has no exact decimal SUM.
"""

import logging
import uuid
from collections import defaultdict
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from carhub.models.booking import Booking, PaymentStatus
from carhub.models.car import Car
from carhub.models.partner import Partner, PartnerStatus
from carhub.models.payment_request import PaymentRequest, RedemptionStatus
from carhub.services.partner_service import PartnerService
from carhub.services.redemption_state_machine import OPEN_STATUSES


logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def split_amount(total_amount: Decimal, commission_rate: Decimal) -> Tuple[Decimal, Decimal]:
    """
    Split one booking total into (partner_share, platform_share).

    The platform share is rounded half-up to the cent and the partner gets the
    remainder, so the two always add back to the total exactly.
    """
    total = Decimal(total_amount)
    platform_share = (total * Decimal(commission_rate) / Decimal("100")).quantize(CENT, rounding=ROUND_HALF_UP)
    return total - platform_share, platform_share


class EarningsService:
    """Pure read-side computation over bookings, cars and redemptions"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _paid_bookings(self, partner_id: Optional[uuid.UUID] = None) -> List[Tuple[Booking, Car]]:
        query = (
            select(Booking, Car)
            .join(Car, Booking.car_id == Car.id)
            .where(
                Booking.payment_status == PaymentStatus.PAID.value,
                Car.owner_partner_id.is_not(None),
            )
            .order_by(Booking.paid_at.desc(), Booking.created_at.desc())
        )
        if partner_id:
            query = query.where(Car.owner_partner_id == partner_id)
        result = await self.db.execute(query)
        return [(row[0], row[1]) for row in result.all()]

    async def _redemption_totals(self, partner_id: uuid.UUID) -> Tuple[Decimal, Decimal]:
        """(total_redeemed, pending_balance) for a partner."""
        result = await self.db.execute(
            select(PaymentRequest.status, PaymentRequest.amount).where(
                PaymentRequest.partner_id == partner_id
            )
        )
        redeemed = ZERO
        pending = ZERO
        for status, amount in result.all():
            if status == RedemptionStatus.PAID.value:
                redeemed += Decimal(amount)
            elif status in OPEN_STATUSES:
                pending += Decimal(amount)
        return redeemed, pending

    async def compute_balance(self, partner: Partner) -> Dict[str, Any]:
        """Balance for an already-loaded partner row."""
        rate = Decimal(partner.commission_rate)
        partner_earnings = ZERO
        platform_earnings = ZERO
        total_revenue = ZERO
        bookings = await self._paid_bookings(partner.id)

        for booking, _car in bookings:
            partner_share, platform_share = split_amount(booking.total_amount, rate)
            partner_earnings += partner_share
            platform_earnings += platform_share
            total_revenue += Decimal(booking.total_amount)

        total_redeemed, pending_balance = await self._redemption_totals(partner.id)
        available_balance = max(ZERO, partner_earnings - total_redeemed - pending_balance)

        return {
            "partner_id": partner.id,
            "commission_rate": rate,
            "total_bookings": len(bookings),
            "total_revenue": total_revenue,
            "partner_earnings": partner_earnings,
            "platform_earnings": platform_earnings,
            "total_redeemed": total_redeemed,
            "pending_balance": pending_balance,
            "available_balance": available_balance,
        }

    async def get_balance(self, partner_id: uuid.UUID) -> Dict[str, Any]:
        partner = await PartnerService(self.db).get_partner(partner_id)
        return await self.compute_balance(partner)

    async def partner_earnings_breakdown(self, partner_id: uuid.UUID) -> Dict[str, Any]:
        """Per-booking audit of the commission split for one partner."""
        partner = await PartnerService(self.db).get_partner(partner_id)
        rate = Decimal(partner.commission_rate)

        lines = []
        partner_earnings = ZERO
        platform_earnings = ZERO
        for booking, car in await self._paid_bookings(partner.id):
            partner_share, platform_share = split_amount(booking.total_amount, rate)
            partner_earnings += partner_share
            platform_earnings += platform_share
            lines.append({
                "booking_id": booking.id,
                "car_id": car.id,
                "car_name": car.name,
                "start_date": booking.start_date,
                "end_date": booking.end_date,
                "total_amount": booking.total_amount,
                "partner_share": partner_share,
                "platform_share": platform_share,
                "paid_at": booking.paid_at,
            })

        return {
            "partner_id": partner.id,
            "commission_rate": rate,
            "lines": lines,
            "partner_earnings": partner_earnings,
            "platform_earnings": platform_earnings,
        }

    async def admin_partner_earnings(self) -> List[Dict[str, Any]]:
        """One earnings summary per approved partner."""
        partners, _total = await PartnerService(self.db).list_partners(
            status=PartnerStatus.APPROVED.value, limit=10_000
        )

        totals: Dict[uuid.UUID, List[Decimal]] = defaultdict(list)
        for booking, car in await self._paid_bookings():
            totals[car.owner_partner_id].append(Decimal(booking.total_amount))

        summaries = []
        for partner in partners:
            rate = Decimal(partner.commission_rate)
            amounts = totals.get(partner.id, [])
            partner_earnings = ZERO
            platform_earnings = ZERO
            for amount in amounts:
                partner_share, platform_share = split_amount(amount, rate)
                partner_earnings += partner_share
                platform_earnings += platform_share

            summaries.append({
                "partner_id": partner.id,
                "user_id": partner.user_id,
                "user_name": partner.user.name,
                "user_email": partner.user.email,
                "commission_rate": rate,
                "total_bookings": len(amounts),
                "total_revenue": sum(amounts, ZERO),
                "partner_earnings": partner_earnings,
                "platform_earnings": platform_earnings,
            })

        summaries.sort(key=lambda s: s["partner_earnings"], reverse=True)
        return summaries
