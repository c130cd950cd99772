from typing import Annotated
import uuid
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from carhub.database import get_db
from carhub.core.exceptions import AuthorizationError
from carhub.core.permissions import PermissionChecker
from carhub.core.security import verify_access_token
from carhub.models.partner import Partner
from carhub.models.user import User
from carhub.services.partner_service import PartnerService


logger = logging.getLogger(__name__)

# HTTP Bearer security scheme
security = HTTPBearer()


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Dependency to get the current authenticated user.

    Tokens come from the external issuer; this only verifies them and looks
    the subject up in the users table.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    user_id = verify_access_token(credentials.credentials)
    if user_id is None:
        logger.warning("Token verification failed - invalid or expired token")
        raise credentials_exception

    try:
        user_uuid = uuid.UUID(user_id)
    except ValueError:
        logger.warning(f"Invalid user_id in token: {user_id}")
        raise credentials_exception

    result = await db.execute(select(User).where(User.id == user_uuid))
    user = result.scalar_one_or_none()

    if user is None:
        logger.warning(f"User {user_id} not found")
        raise credentials_exception
    if not user.is_active:
        logger.warning(f"User {user_id} is deactivated")
        raise credentials_exception

    return user


async def require_admin(
    user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Current user, who must have admin capability."""
    if not PermissionChecker(user).is_admin():
        raise AuthorizationError("Admin access required")
    return user


async def require_partner(
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Partner:
    """The current user's approved partner record."""
    return await PartnerService(db).get_approved_partner(user)


# Type aliases for cleaner dependency injection
CurrentUser = Annotated[User, Depends(get_current_user)]
AdminUser = Annotated[User, Depends(require_admin)]
CurrentPartner = Annotated[Partner, Depends(require_partner)]
DB = Annotated[AsyncSession, Depends(get_db)]
