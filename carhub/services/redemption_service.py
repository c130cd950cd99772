"""
Redemption Service

Partner payout requests against the computed available balance.

Flow:
1. Partner requests an amount (checked against a fresh balance)
2. Admin marks it processing (optional)
3. Admin approves (balance re-checked) or rejects / cancels

Requests and approvals for one partner are serialised by a per-partner
asyncio lock plus a row lock on the partner, and both recompute the balance
inside that critical section.
"""

import asyncio
import logging
import random
import string
import uuid
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from carhub.config import settings
from carhub.core.exceptions import ConflictError, NotFoundError, ValidationError
from carhub.core.permissions import ensure_admin
from carhub.models.partner import Partner
from carhub.models.payment_request import PaymentRequest, PayoutMethod, RedemptionStatus
from carhub.models.user import User
from carhub.schemas.redemption import RedemptionCreate
from carhub.services.earnings_service import EarningsService, ZERO
from carhub.services.partner_service import PartnerService
from carhub.services.redemption_state_machine import (
    OPEN_STATUSES,
    get_transition_action,
    parse_redemption_status,
    validate_transition,
)


logger = logging.getLogger(__name__)

_partner_locks: Dict[uuid.UUID, asyncio.Lock] = defaultdict(asyncio.Lock)

BANK_FIELDS = ("account_name", "account_number", "bank_name", "ifsc_code")
UPI_FIELDS = ("upi_id",)


@asynccontextmanager
async def partner_lock(partner_id: uuid.UUID):
    """Serialise balance-changing redemption operations for one partner."""
    async with _partner_locks[partner_id]:
        yield


def generate_transaction_id() -> str:
    """ADMIN + epoch milliseconds + 5 random uppercase alphanumerics."""
    epoch_ms = int(datetime.now(timezone.utc).timestamp() * 1000)
    suffix = ''.join(random.choices(string.ascii_uppercase + string.digits, k=5))
    return f"ADMIN{epoch_ms}{suffix}"


def validate_payout_details(method: str, details: Dict[str, Optional[str]]) -> Dict[str, Optional[str]]:
    """
    Check the payout fields required by `method` and return only those.

    bank_transfer: account name (2+), account number (5+), bank name (2+), IFSC (8+)
    upi:           UPI id containing '@' (5+)
    """
    cleaned = {key: (details.get(key) or "").strip() for key in BANK_FIELDS + UPI_FIELDS}

    if method == PayoutMethod.BANK_TRANSFER.value:
        minimums = {"account_name": 2, "account_number": 5, "bank_name": 2, "ifsc_code": 8}
        for key, minimum in minimums.items():
            if len(cleaned[key]) < minimum:
                label = key.replace("_", " ")
                raise ValidationError(
                    f"Valid {label} is required for bank transfer (at least {minimum} characters)",
                    field=f"payout_details.{key}",
                )
        result = {key: cleaned[key] for key in BANK_FIELDS}
        result["upi_id"] = None
        return result

    if method == PayoutMethod.UPI.value:
        upi_id = cleaned["upi_id"]
        if "@" not in upi_id or len(upi_id) < 5:
            raise ValidationError("Valid UPI ID is required (e.g. name@bank)", field="payout_details.upi_id")
        result = {key: None for key in BANK_FIELDS}
        result["upi_id"] = upi_id
        return result

    raise ValidationError(f"Invalid payment method '{method}'", field="payment_method")


class RedemptionService:
    """Service for the redemption workflow"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.earnings = EarningsService(db)

    # ========================================================================
    # Lookups
    # ========================================================================

    async def get_request(self, request_id: uuid.UUID, for_update: bool = False) -> PaymentRequest:
        query = select(PaymentRequest).where(PaymentRequest.id == request_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        request = result.scalar_one_or_none()
        if not request:
            raise NotFoundError("Payment request not found", field="request_id")
        return request

    async def _lock_partner(self, partner_id: uuid.UUID) -> Partner:
        result = await self.db.execute(
            select(Partner)
            .where(Partner.id == partner_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        partner = result.scalar_one_or_none()
        if not partner:
            raise NotFoundError("Partner not found", field="partner_id")
        return partner

    async def list_requests(
        self,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[PaymentRequest], int]:
        query = select(PaymentRequest)
        count_query = select(func.count(PaymentRequest.id))
        if status:
            status = parse_redemption_status(status)
            query = query.where(PaymentRequest.status == status)
            count_query = count_query.where(PaymentRequest.status == status)

        total = (await self.db.execute(count_query)).scalar() or 0
        result = await self.db.execute(
            query.order_by(PaymentRequest.requested_at.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all()), total

    async def payment_history(self, partner: Partner, limit: int = 50) -> List[PaymentRequest]:
        result = await self.db.execute(
            select(PaymentRequest)
            .where(PaymentRequest.partner_id == partner.id)
            .order_by(PaymentRequest.requested_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def payment_stats(self) -> Dict[str, Any]:
        counts = {status.value: 0 for status in RedemptionStatus}
        amounts = {status.value: ZERO for status in RedemptionStatus}

        result = await self.db.execute(select(PaymentRequest.status, PaymentRequest.amount))
        total_requests = 0
        for status, amount in result.all():
            total_requests += 1
            counts[status] = counts.get(status, 0) + 1
            amounts[status] = amounts.get(status, ZERO) + Decimal(amount)

        return {
            "total_requests": total_requests,
            "counts": counts,
            "amounts": amounts,
            "total_amount_paid": amounts[RedemptionStatus.PAID.value],
        }

    # ========================================================================
    # Partner request
    # ========================================================================

    async def request_redemption(self, user: User, data: RedemptionCreate) -> PaymentRequest:
        """
        Create a pending payout request.

        Rejected with ValidationError before any write if the amount is out of
        range, exceeds the available balance, or the payout details do not
        fit the method.
        """
        partner = await PartnerService(self.db).get_approved_partner(user)

        try:
            amount = Decimal(str(data.amount))
        except InvalidOperation:
            raise ValidationError("Invalid amount", field="amount")
        if amount <= 0:
            raise ValidationError("Amount must be greater than zero", field="amount")
        if amount < settings.MIN_REDEMPTION_AMOUNT:
            raise ValidationError(
                f"Minimum redemption amount is {settings.MIN_REDEMPTION_AMOUNT}",
                field="amount",
            )
        if amount > settings.MAX_REDEMPTION_AMOUNT:
            raise ValidationError(
                f"Maximum redemption amount is {settings.MAX_REDEMPTION_AMOUNT}",
                field="amount",
            )

        method = PayoutMethod(data.payment_method).value
        details = validate_payout_details(method, data.payout_details.model_dump())

        async with partner_lock(partner.id):
            partner = await self._lock_partner(partner.id)

            if settings.SINGLE_OPEN_REDEMPTION:
                open_request = (await self.db.execute(
                    select(PaymentRequest.id).where(
                        PaymentRequest.partner_id == partner.id,
                        PaymentRequest.status.in_(OPEN_STATUSES),
                    ).limit(1)
                )).scalar_one_or_none()
                if open_request:
                    raise ConflictError(
                        "You already have a pending payment request. Please wait for it to be processed.",
                        field="amount",
                        details={"open_request_id": str(open_request)},
                    )

            balance = await self.earnings.compute_balance(partner)
            if amount > balance["available_balance"]:
                logger.warning(
                    f"Redemption of {amount} rejected for partner {partner.id}: "
                    f"available {balance['available_balance']}"
                )
                raise ValidationError(
                    f"Insufficient balance. Available: {balance['available_balance']}",
                    field="amount",
                    details={"available_balance": str(balance["available_balance"])},
                )

            request = PaymentRequest(
                id=uuid.uuid4(),
                partner_id=partner.id,
                amount=amount,
                payment_method=method,
                status=RedemptionStatus.PENDING.value,
                **details,
            )
            self.db.add(request)
            await self.db.commit()
            await self.db.refresh(request)

        logger.info(f"Redemption {request.id} of {amount} via {method} requested by partner {partner.id}")
        return request

    # ========================================================================
    # Admin transitions
    # ========================================================================

    async def _transition(
        self,
        request: PaymentRequest,
        new_status: str,
        values: Dict[str, Any],
        admin: User,
    ) -> PaymentRequest:
        old_status = request.status
        validate_transition(old_status, new_status)

        values = dict(values)
        values["status"] = new_status
        values["updated_at"] = datetime.now(timezone.utc)

        result = await self.db.execute(
            update(PaymentRequest)
            .where(PaymentRequest.id == request.id, PaymentRequest.status == old_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.db.refresh(request)
        if result.rowcount != 1:
            logger.warning(f"Redemption {request.id} changed concurrently: now {request.status}")
            raise ConflictError(
                f"Payment request was modified by another request (now '{request.status}')",
                field="status",
            )

        await self.db.commit()
        logger.info(
            f"Redemption {request.id} {old_status} -> {new_status} "
            f"({get_transition_action(old_status, new_status)}) by admin {admin.id}"
        )
        return request

    async def mark_processing(self, request_id: uuid.UUID, admin: User) -> PaymentRequest:
        ensure_admin(admin, "process payment requests")
        request = await self.get_request(request_id, for_update=True)
        return await self._transition(
            request,
            RedemptionStatus.PROCESSING.value,
            {"processed_by": admin.id},
            admin,
        )

    async def approve(
        self,
        request_id: uuid.UUID,
        admin: User,
        transaction_id: Optional[str] = None,
    ) -> PaymentRequest:
        """
        Mark a request paid.

        The partner's balance is recomputed here rather than trusting the
        amount accepted at request time: the approval is a ConflictError if
        earnings minus paid redemptions minus the other open requests no
        longer cover it (for example after a refund).
        """
        ensure_admin(admin, "approve payment requests")
        request = await self.get_request(request_id)
        validate_transition(request.status, RedemptionStatus.PAID.value)

        async with partner_lock(request.partner_id):
            partner = await self._lock_partner(request.partner_id)
            request = await self.get_request(request_id, for_update=True)
            validate_transition(request.status, RedemptionStatus.PAID.value)

            balance = await self.earnings.compute_balance(partner)
            other_open = balance["pending_balance"] - Decimal(request.amount)
            headroom = balance["partner_earnings"] - balance["total_redeemed"] - other_open
            if Decimal(request.amount) > headroom:
                logger.warning(
                    f"Approval of redemption {request.id} rejected: amount {request.amount} "
                    f"exceeds headroom {headroom} for partner {partner.id}"
                )
                raise ConflictError(
                    f"Partner balance no longer covers this request. Available: {max(ZERO, headroom)}",
                    field="amount",
                    details={"headroom": str(headroom)},
                )

            return await self._transition(
                request,
                RedemptionStatus.PAID.value,
                {
                    "processed_at": datetime.now(timezone.utc),
                    "processed_by": admin.id,
                    "transaction_id": transaction_id or generate_transaction_id(),
                },
                admin,
            )

    async def reject(
        self,
        request_id: uuid.UUID,
        admin: User,
        reason: Optional[str] = None,
    ) -> PaymentRequest:
        ensure_admin(admin, "reject payment requests")
        request = await self.get_request(request_id, for_update=True)
        return await self._transition(
            request,
            RedemptionStatus.FAILED.value,
            {
                "processed_at": datetime.now(timezone.utc),
                "processed_by": admin.id,
                "notes": reason or "Rejected by admin",
            },
            admin,
        )

    async def cancel(
        self,
        request_id: uuid.UUID,
        admin: User,
        reason: Optional[str] = None,
    ) -> PaymentRequest:
        ensure_admin(admin, "cancel payment requests")
        request = await self.get_request(request_id, for_update=True)
        return await self._transition(
            request,
            RedemptionStatus.CANCELLED.value,
            {
                "processed_at": datetime.now(timezone.utc),
                "processed_by": admin.id,
                "notes": reason or "Cancelled by admin",
            },
            admin,
        )
