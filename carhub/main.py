from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from carhub.config import settings
from carhub.api.v1.router import api_router
from carhub.core.exceptions import (
    DomainError,
    ValidationError,
    NotFoundError,
    ConflictError,
    AuthorizationError,
)
from carhub.database import init_db, async_session_factory


logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Create tables for the five ledgers (users, partners, cars, bookings, payment requests)
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    await init_db()

    yield

    logger.info("Shutting down...")


# OpenAPI Tags with detailed descriptions
OPENAPI_TAGS = [
    {"name": "Cars", "description": "Car catalog: listing, pricing and availability"},
    {"name": "Bookings", "description": "Booking lifecycle and admin status overrides"},
    {"name": "Payments", "description": "Simulated two-phase payment gateway (intent, then confirm)"},
    {"name": "Partners", "description": "Partner applications, earnings balance and redemption requests"},
    {"name": "Admin", "description": "Car and partner moderation, earnings audit"},
    {"name": "Admin - Redemptions", "description": "Payout request queue: process, approve, reject, cancel"},
]

API_DESCRIPTION = """
## CarHub Rentals API

Booking lifecycle and partner-earnings settlement for a car rental marketplace.

* **Bookings** carry two independent state machines: `status` and `payment_status`
* **Partner balances** are recomputed from paid bookings on every read and never stored
* **Redemptions** move available earnings out under admin control

Authentication uses bearer tokens issued by the external identity service.
"""

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=API_DESCRIPTION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=OPENAPI_TAGS,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router)


def _domain_error_response(request: Request, exc: DomainError) -> JSONResponse:
    content = {
        "error": exc.message,
        "type": type(exc).__name__,
        "field": exc.field,
        "path": str(request.url.path),
    }
    if exc.details:
        content["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return _domain_error_response(request, exc)


@app.exception_handler(NotFoundError)
async def not_found_error_handler(request: Request, exc: NotFoundError):
    return _domain_error_response(request, exc)


@app.exception_handler(ConflictError)
async def conflict_error_handler(request: Request, exc: ConflictError):
    return _domain_error_response(request, exc)


@app.exception_handler(AuthorizationError)
async def authorization_error_handler(request: Request, exc: AuthorizationError):
    logger.warning(f"Forbidden {request.method} {request.url.path}: {exc.message}")
    return _domain_error_response(request, exc)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Anything that is not a domain error is a bug: log it, return 500."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "type": type(exc).__name__,
            "field": None,
            "path": str(request.url.path),
        },
    )


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint with database validation."""
    health_status = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": "unknown"
        }
    }

    try:
        async with async_session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
            health_status["checks"]["database"] = "connected"
    except Exception as e:
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"error: {str(e)}"

    if health_status["status"] == "unhealthy":
        return JSONResponse(status_code=503, content=health_status)

    return health_status


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "redoc": "/redoc",
    }
