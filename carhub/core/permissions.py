"""
Access policy for the booking engine.

Answers "is this actor an admin" and "does this actor own the record". Every
check raises AuthorizationError; nothing is silently downgraded to a no-op.
"""
from typing import Optional
import uuid

from carhub.core.exceptions import AuthorizationError
from carhub.models.user import User


class PermissionChecker:
    """Capability checks for a single actor."""

    def __init__(self, user: User):
        self.user = user

    def is_admin(self) -> bool:
        return bool(self.user.is_admin)

    def is_owner(self, owner_id: Optional[uuid.UUID]) -> bool:
        return owner_id is not None and owner_id == self.user.id

    def can_act_on(self, owner_id: Optional[uuid.UUID]) -> bool:
        """Owner of the record, or an admin."""
        return self.is_admin() or self.is_owner(owner_id)


def ensure_admin(actor: User, action: str = "perform this action") -> None:
    """Raise unless the actor has admin capability."""
    if not PermissionChecker(actor).is_admin():
        raise AuthorizationError(f"Admin access required to {action}")


def ensure_owner_or_admin(
    actor: User,
    owner_id: Optional[uuid.UUID],
    action: str = "modify this record",
) -> None:
    """Raise unless the actor owns the record or is an admin."""
    if not PermissionChecker(actor).can_act_on(owner_id):
        raise AuthorizationError(f"Not authorized to {action}")
