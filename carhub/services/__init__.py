# Services module
from carhub.services.partner_service import PartnerService
from carhub.services.catalog_service import CatalogService
from carhub.services.booking_service import BookingService
from carhub.services.payment_service import PaymentService
from carhub.services.earnings_service import EarningsService
from carhub.services.redemption_service import RedemptionService

__all__ = [
    "PartnerService",
    "CatalogService",
    "BookingService",
    "PaymentService",
    "EarningsService",
    "RedemptionService",
]
