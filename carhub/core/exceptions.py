"""
Domain errors raised by the booking, payment, earnings and redemption services.

Services never return error codes; they raise one of these and the HTTP layer
maps the class to a status code (see carhub.main).
"""

from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base class for all business-rule failures."""

    status_code = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.field = field
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(DomainError):
    """Malformed input: bad dates, missing payout fields, non-positive amount."""
    status_code = 400


class NotFoundError(DomainError):
    """Referenced car, booking, partner or request does not exist."""
    status_code = 404


class ConflictError(DomainError):
    """Transition from or to an invalid state. Caller must re-fetch before retrying."""
    status_code = 409


class AuthorizationError(DomainError):
    """Actor lacks the capability for the requested mutation."""
    status_code = 403
