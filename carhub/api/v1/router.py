from fastapi import APIRouter

from carhub.api.v1.endpoints import (
    # Catalog
    cars,
    # Booking ledger & simulated gateway
    bookings,
    payments,
    # Partner self-service
    partners,
    # Admin console
    admin,
    redemptions,
)

# Create main API router
api_router = APIRouter(prefix="/api/v1")

# ==================== Catalog ====================
api_router.include_router(
    cars.router,
    prefix="/cars",
    tags=["Cars"]
)

# ==================== Bookings & Payments ====================
api_router.include_router(
    bookings.router,
    prefix="/bookings",
    tags=["Bookings"]
)
api_router.include_router(
    payments.router,
    prefix="/payments",
    tags=["Payments"]
)

# ==================== Partners ====================
api_router.include_router(
    partners.router,
    prefix="/partners",
    tags=["Partners"]
)

# ==================== Admin ====================
api_router.include_router(
    redemptions.router,
    prefix="/admin/redemptions",
    tags=["Admin - Redemptions"]
)
api_router.include_router(
    admin.router,
    prefix="/admin",
    tags=["Admin"]
)
