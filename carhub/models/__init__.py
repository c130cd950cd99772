# Models module
from carhub.models.user import User
from carhub.models.partner import Partner, PartnerStatus
from carhub.models.car import Car
from carhub.models.booking import Booking, BookingStatus, PaymentStatus
from carhub.models.payment_request import PaymentRequest, RedemptionStatus, PayoutMethod

__all__ = [
    "User",
    "Partner",
    "PartnerStatus",
    "Car",
    "Booking",
    "BookingStatus",
    "PaymentStatus",
    "PaymentRequest",
    "RedemptionStatus",
    "PayoutMethod",
]
