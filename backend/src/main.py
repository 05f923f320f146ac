# pyright: reportMissingTypeStubs=false
"""
AroundU Booking Backend API

A FastAPI application for booking office hours and other provider slots in
a university community.

Features:
- Weekly slot templates and concrete slot instances per provider
- Booking requests from consumers
- Capacity-safe acceptance backed by database row locks
- PostgreSQL (or SQLite for local use) with SQLAlchemy ORM
"""

import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import slots, slot_instances, booking_requests
from core.constants import CORS_ORIGINS
from core.exceptions import BookingError, DataInconsistencyError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)

logger = logging.getLogger(__name__)
logger.info("AroundU Booking API starting...")


# Create FastAPI application
app = FastAPI(
    title="AroundU Booking Backend",
    description="Slot publishing and capacity-safe booking for the AroundU community",
    version="1.0.0",
    docs_url="/docs",  # Swagger UI
    redoc_url="/redoc",  # ReDoc
)

# CORS middleware for frontend integration
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

_COMMON_RESPONSES = {
    400: {"description": "Bad request"},
    401: {"description": "Unauthorized"},
    403: {"description": "Forbidden"},
    404: {"description": "Resource not found"},
    409: {"description": "Conflict"},
    500: {"description": "Internal server error"},
    503: {"description": "Store busy, retry"},
}

# Include API routers
app.include_router(
    slots.router,
    prefix="/api",
    tags=["slots"],
    responses=_COMMON_RESPONSES,
)
app.include_router(
    slot_instances.router,
    prefix="/api",
    tags=["slot-instances"],
    responses=_COMMON_RESPONSES,
)
app.include_router(
    booking_requests.router,
    prefix="/api",
    tags=["booking-requests"],
    responses=_COMMON_RESPONSES,
)


@app.get(
    "/",
    summary="Root endpoint",
    description="Returns basic API information",
)
async def root() -> dict[str, str]:
    """Get API information."""
    return {
        "message": "AroundU Booking Backend API",
        "version": "1.0.0",
        "status": "running"
    }


@app.get(
    "/health",
    summary="Health check",
    description="Returns the health status of the API",
)
async def health_check() -> dict[str, str]:
    """Check if the API is healthy and responding."""
    return {"status": "healthy"}


# Global exception handlers
@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    """Map booking domain errors to their HTTP status."""
    if isinstance(exc, DataInconsistencyError):
        logger.error(f"Data inconsistency on {request.method} {request.url.path}: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": "Internal server error", "type": exc.error_type},
        )
    if exc.status_code >= 500:
        logger.warning(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "type": exc.error_type},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions globally."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "type": "internal_error"},
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Handle ValueError exceptions."""
    logger.warning(f"ValueError: {exc}")
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc), "type": "validation_error"},
    )
