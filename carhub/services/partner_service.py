"""
Partner Service

Partner applications and moderation:
- Application (one per user)
- Approval / rejection by admin
- Explicit privilege sync between partner status and users.is_partner
- Commission rate changes
"""

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List, Tuple

from sqlalchemy import select, func
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from carhub.config import settings
from carhub.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from carhub.core.permissions import ensure_admin
from carhub.models.partner import Partner, PartnerStatus
from carhub.models.user import User
from carhub.schemas.partner import PartnerApply


logger = logging.getLogger(__name__)


class PartnerService:
    """Service for partner program operations"""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ========================================================================
    # Lookups
    # ========================================================================

    async def get_partner(self, partner_id: uuid.UUID) -> Partner:
        result = await self.db.execute(
            select(Partner)
            .options(selectinload(Partner.user))
            .where(Partner.id == partner_id)
        )
        partner = result.scalar_one_or_none()
        if not partner:
            raise NotFoundError("Partner not found", field="partner_id")
        return partner

    async def get_partner_for_user(self, user_id: uuid.UUID) -> Optional[Partner]:
        result = await self.db.execute(
            select(Partner).where(Partner.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_my_partner(self, user: User) -> Partner:
        partner = await self.get_partner_for_user(user.id)
        if not partner:
            raise NotFoundError("No partner application found for this user", field="user_id")
        return partner

    async def get_approved_partner(self, user: User) -> Partner:
        """The caller's partner record, which must be approved."""
        partner = await self.get_partner_for_user(user.id)
        if not partner or not partner.is_approved:
            raise AuthorizationError("You are not an approved partner")
        return partner

    async def list_partners(
        self,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Partner], int]:
        query = select(Partner).options(selectinload(Partner.user))
        count_query = select(func.count(Partner.id))

        if status:
            status = self._parse_status(status)
            query = query.where(Partner.status == status)
            count_query = count_query.where(Partner.status == status)

        total = (await self.db.execute(count_query)).scalar() or 0
        result = await self.db.execute(
            query.order_by(Partner.created_at.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all()), total

    @staticmethod
    def _parse_status(value: str) -> str:
        try:
            return PartnerStatus(str(value).lower()).value
        except ValueError:
            raise ValidationError(f"Invalid partner status '{value}'", field="status")

    # ========================================================================
    # Application
    # ========================================================================

    async def apply(self, user: User, data: PartnerApply) -> Partner:
        """
        Submit a partner application.

        Starts in `pending` with the configured commission rate and
        registration fee. Does not grant partner privileges.
        """
        if await self.get_partner_for_user(user.id):
            raise ConflictError("Partner application already exists for this user", field="user_id")

        partner = Partner(
            id=uuid.uuid4(),
            user_id=user.id,
            status=PartnerStatus.PENDING.value,
            commission_rate=Decimal(settings.DEFAULT_COMMISSION_RATE),
            registration_fee=Decimal(settings.PARTNER_REGISTRATION_FEE),
            **data.model_dump(),
        )
        self.db.add(partner)
        await self.db.commit()
        await self.db.refresh(partner)

        logger.info(f"Partner application {partner.id} submitted by user {user.id}")
        return partner

    # ========================================================================
    # Moderation
    # ========================================================================

    async def set_partner_status(
        self,
        partner_id: uuid.UUID,
        status: str,
        admin: User,
    ) -> Partner:
        ensure_admin(admin, "review partner applications")
        new_status = self._parse_status(status)
        partner = await self.get_partner(partner_id)
        old_status = partner.status

        partner.status = new_status
        if new_status == PartnerStatus.APPROVED.value:
            partner.approved_at = datetime.now(timezone.utc)
            partner.approved_by = admin.id
        else:
            partner.approved_at = None
            partner.approved_by = None

        if settings.AUTO_SYNC_PARTNER_PRIVILEGES:
            self._apply_privileges(partner, partner.user)

        await self.db.commit()
        await self.db.refresh(partner)

        logger.info(
            f"Partner {partner.id} status {old_status} -> {new_status} by admin {admin.id}"
        )
        return partner

    @staticmethod
    def _apply_privileges(partner: Partner, user: User) -> None:
        granted = partner.status == PartnerStatus.APPROVED.value
        if granted and not user.is_partner:
            user.partner_since = datetime.now(timezone.utc)
        elif not granted:
            user.partner_since = None
        user.is_partner = granted

    async def sync_partner_privileges(self, partner_id: uuid.UUID, admin: User) -> Tuple[Partner, User]:
        """
        Align users.is_partner with the partner status.

        Approved grants the privilege (partner_since set on first grant);
        any other status revokes it.
        """
        ensure_admin(admin, "sync partner privileges")
        partner = await self.get_partner(partner_id)
        user = partner.user
        was_partner = user.is_partner

        self._apply_privileges(partner, user)
        await self.db.commit()
        await self.db.refresh(user)

        logger.info(
            f"Partner {partner.id} privileges synced for user {user.id}: "
            f"is_partner {was_partner} -> {user.is_partner}"
        )
        return partner, user

    async def set_commission_rate(
        self,
        partner_id: uuid.UUID,
        rate: Decimal,
        admin: User,
    ) -> Partner:
        ensure_admin(admin, "change commission rates")
        rate = Decimal(str(rate))
        if rate < 0 or rate > 100:
            raise ValidationError("Commission rate must be between 0 and 100", field="commission_rate")

        partner = await self.get_partner(partner_id)
        old_rate = partner.commission_rate
        partner.commission_rate = rate
        await self.db.commit()
        await self.db.refresh(partner)

        logger.info(f"Partner {partner.id} commission rate {old_rate} -> {rate} by admin {admin.id}")
        return partner
