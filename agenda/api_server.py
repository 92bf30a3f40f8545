"""FastAPI server for the salon booking widget and admin panel.

Features:
- Public availability, catalog and booking endpoints
- Admin endpoints guarded by capability-checked session tokens
- Global exception handling with a uniform ErrorResponse body
- Structured logging with X-Request-ID
- Background task for expired admin session cleanup
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import List, Optional

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from agenda import __version__, config
from agenda.admin import AdminService
from agenda.api.dependencies import (
    bearer_token,
    get_admin_service,
    get_auth_manager,
    get_booking_service,
    get_catalog_store,
    get_login_limiter,
    require_capability,
)
from agenda.api.models import (
    AvailabilityResponse,
    CatalogResponse,
    ErrorResponse,
    LoginRequest,
    LoginResponse,
    ManualBookingRequest,
    ReservationResponse,
    ReviewResponse,
    SeedResponse,
)
from agenda.auth import (
    CAP_REVIEW_RESERVATIONS,
    CAP_WRITE_CATALOG,
    CAP_WRITE_SCHEDULE,
    AdminAuthManager,
    AdminPrincipal,
    InvalidCredentialsError,
    PermissionDeniedError,
)
from agenda.booking import AvailabilityUnavailable, BookingRejected, BookingRequest, BookingService
from agenda.catalog import ProfessionalConfig, ServiceConfig
from agenda.catalog_store import CatalogItemNotFoundError, CatalogStore
from agenda.logging_config import RequestIDMiddleware, setup_structured_logging
from agenda.rate_limiter import RateLimiter, RateLimitExceeded
from agenda.repository import ReservationNotFoundError, StoreError
from agenda.reservations import InvalidStatusTransition
from agenda.schedule import ScheduleValidationError, WeeklyScheduleConfig

setup_structured_logging(config.LOG_LEVEL)
logger = logging.getLogger(__name__)

SESSION_CLEANUP_INTERVAL_SECONDS = 3600


async def cleanup_sessions_periodically():
    """Background task to cleanup expired admin sessions every hour."""
    while True:
        try:
            await asyncio.sleep(SESSION_CLEANUP_INTERVAL_SECONDS)
            deleted = await asyncio.to_thread(get_auth_manager().cleanup_expired_sessions)
            logger.info(f"Cleaned up {deleted} expired admin sessions")
        except Exception as e:
            logger.error(f"Session cleanup error: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown logic."""
    from agenda.database import close_engine

    logger.info("Booking server starting up...")

    cleanup_task = asyncio.create_task(cleanup_sessions_periodically())
    logger.info("Session cleanup background task started")

    yield

    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        logger.info("Session cleanup task cancelled")

    close_engine()
    logger.info("Booking server shutting down...")


app = FastAPI(
    title="Salon Booking API",
    description="Appointment booking widget and admin panel",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",  # Development
        "http://localhost:5173",
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)
app.add_middleware(RequestIDMiddleware)


def error_response(
    status_code: int,
    error: str,
    detail: Optional[str],
    code: str,
    alternatives: Optional[List[str]] = None,
    headers: Optional[dict] = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=error,
            detail=detail,
            code=code,
            alternatives=alternatives
        ).model_dump(exclude_none=True),
        headers=headers
    )


# Global exception handlers
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors consistently."""
    logger.warning(f"Validation error: {exc.errors()}")
    return error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation Error", str(exc.errors()), "VALIDATION_ERROR"
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    codes = {
        status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
        status.HTTP_404_NOT_FOUND: "NOT_FOUND",
        status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
    }
    return error_response(
        exc.status_code,
        "Request Failed",
        str(exc.detail),
        codes.get(exc.status_code, "HTTP_ERROR"),
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(BookingRejected)
async def booking_rejected_handler(request: Request, exc: BookingRejected):
    if exc.code == "SLOT_UNAVAILABLE":
        return error_response(
            status.HTTP_409_CONFLICT, "Slot Unavailable", str(exc), exc.code, exc.alternatives
        )
    return error_response(status.HTTP_400_BAD_REQUEST, "Booking Rejected", str(exc), exc.code)


@app.exception_handler(AvailabilityUnavailable)
async def availability_unavailable_handler(request: Request, exc: AvailabilityUnavailable):
    return error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "Availability Unavailable",
        str(exc),
        "AVAILABILITY_UNAVAILABLE",
        headers={"Retry-After": "5"}
    )


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    """The write did not happen; the client must not report success."""
    return error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE, "Store Unavailable", str(exc), "STORE_UNAVAILABLE"
    )


@app.exception_handler(ReservationNotFoundError)
async def reservation_not_found_handler(request: Request, exc: ReservationNotFoundError):
    return error_response(status.HTTP_404_NOT_FOUND, "Reservation Not Found", str(exc), "RESERVATION_NOT_FOUND")


@app.exception_handler(CatalogItemNotFoundError)
async def catalog_item_not_found_handler(request: Request, exc: CatalogItemNotFoundError):
    return error_response(status.HTTP_404_NOT_FOUND, "Catalog Item Not Found", str(exc), "CATALOG_ITEM_NOT_FOUND")


@app.exception_handler(InvalidStatusTransition)
async def invalid_transition_handler(request: Request, exc: InvalidStatusTransition):
    return error_response(status.HTTP_409_CONFLICT, "Invalid Status Change", str(exc), "INVALID_TRANSITION")


@app.exception_handler(ScheduleValidationError)
async def schedule_validation_handler(request: Request, exc: ScheduleValidationError):
    return error_response(status.HTTP_400_BAD_REQUEST, "Invalid Schedule", str(exc), "INVALID_SCHEDULE")


@app.exception_handler(InvalidCredentialsError)
async def invalid_credentials_handler(request: Request, exc: InvalidCredentialsError):
    return error_response(status.HTTP_401_UNAUTHORIZED, "Login Failed", str(exc), "INVALID_CREDENTIALS")


@app.exception_handler(PermissionDeniedError)
async def permission_denied_handler(request: Request, exc: PermissionDeniedError):
    return error_response(status.HTTP_403_FORBIDDEN, "Forbidden", str(exc), "PERMISSION_DENIED")


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return error_response(
        status.HTTP_429_TOO_MANY_REQUESTS,
        "Rate limit exceeded",
        str(exc),
        "RATE_LIMIT_EXCEEDED",
        headers={"Retry-After": str(exc.retry_after)}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all handler for unexpected exceptions."""
    logger.error(f"Unexpected error: {exc}", exc_info=True)
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal Server Error",
        "An unexpected error occurred. Please try again later.",
        "INTERNAL_ERROR"
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for load balancers."""
    return {
        "status": "healthy",
        "service": "salon-booking-api",
        "version": __version__
    }


# Public booking widget

@app.get("/api/v1/catalog", tags=["Booking"], response_model=CatalogResponse)
async def get_catalog(catalog: CatalogStore = Depends(get_catalog_store)):
    """Services and professionals the client can choose from."""
    services, professionals = await asyncio.gather(
        catalog.list_services(), catalog.list_professionals()
    )
    return CatalogResponse(services=services, professionals=professionals)


@app.get("/api/v1/availability", tags=["Booking"], response_model=AvailabilityResponse)
async def get_availability(
    day: date = Query(..., alias="date", description="YYYY-MM-DD"),
    professional: Optional[str] = Query(None, description="Only this professional's bookings occupy slots"),
    service: BookingService = Depends(get_booking_service)
):
    """
    Bookable start times for one day.

    Returns:
        AvailabilityResponse with status open, closed or full

    Raises:
        503: Availability could not be loaded (retry)
    """
    availability = await service.get_day_availability(day, professional)
    return AvailabilityResponse.from_domain(availability)


@app.post(
    "/api/v1/reservations",
    tags=["Booking"],
    response_model=ReservationResponse,
    status_code=status.HTTP_201_CREATED
)
async def create_reservation(
    request: BookingRequest,
    service: BookingService = Depends(get_booking_service)
):
    """
    Request a booking. The reservation is stored as pending.

    Raises:
        400: Invalid client data, past or closed day
        409: Time no longer available (alternatives included)
        503: Store unavailable
    """
    reservation = await service.request_booking(request)
    return ReservationResponse.from_domain(reservation)


# Admin authentication

@app.post("/api/v1/admin/login", tags=["Admin"], response_model=LoginResponse)
async def admin_login(
    request: LoginRequest,
    manager: AdminAuthManager = Depends(get_auth_manager),
    limiter: RateLimiter = Depends(get_login_limiter)
):
    """
    Exchange e-mail and password for a session token.

    Raises:
        401: Invalid credentials
        429: Too many attempts for this e-mail
    """
    limiter.check_rate_limit(request.email)
    token = await asyncio.to_thread(manager.login, request.email, request.password)
    limiter.reset(request.email)
    principal = await asyncio.to_thread(manager.authenticate, token)
    logger.info(f"Admin login: {principal.email}")
    return LoginResponse(
        token=token,
        expires_in_seconds=int(manager.session_ttl.total_seconds()),
        capabilities=sorted(principal.capabilities)
    )


@app.post("/api/v1/admin/logout", tags=["Admin"], status_code=status.HTTP_204_NO_CONTENT)
async def admin_logout(
    token: str = Depends(bearer_token),
    manager: AdminAuthManager = Depends(get_auth_manager)
):
    """End the current admin session."""
    await asyncio.to_thread(manager.logout, token)


# Admin: reservations

@app.get("/api/v1/admin/reservations", tags=["Admin"], response_model=List[ReservationResponse])
async def list_reservations(
    day: Optional[date] = Query(None, alias="date", description="Only this day (YYYY-MM-DD)"),
    admin: AdminPrincipal = Depends(require_capability(CAP_REVIEW_RESERVATIONS)),
    service: AdminService = Depends(get_admin_service)
):
    """Reservations for review, newest appointment first."""
    reservations = await service.list_reservations(day)
    return [ReservationResponse.from_domain(r) for r in reservations]


@app.post(
    "/api/v1/admin/reservations",
    tags=["Admin"],
    response_model=ReservationResponse,
    status_code=status.HTTP_201_CREATED
)
async def create_manual_booking(
    request: ManualBookingRequest,
    admin: AdminPrincipal = Depends(require_capability(CAP_REVIEW_RESERVATIONS)),
    service: AdminService = Depends(get_admin_service)
):
    """Register a booking taken outside the widget (stored as confirmed)."""
    reservation = await service.create_manual_booking(
        client_name=request.client_name,
        client_phone=request.client_phone,
        client_email=request.client_email,
        service_name=request.service_name,
        professional_name=request.professional_name,
        start_at=request.start_at,
    )
    return ReservationResponse.from_domain(reservation)


@app.post(
    "/api/v1/admin/reservations/{reservation_id}/confirm",
    tags=["Admin"],
    response_model=ReviewResponse
)
async def confirm_reservation(
    reservation_id: str,
    admin: AdminPrincipal = Depends(require_capability(CAP_REVIEW_RESERVATIONS)),
    service: AdminService = Depends(get_admin_service)
):
    """
    Accept a pending reservation.

    The response carries the confirmation message and a messaging link the
    administrator opens to send it.
    """
    outcome = await service.accept(reservation_id)
    return ReviewResponse(
        reservation=ReservationResponse.from_domain(outcome.reservation),
        confirmation_message=outcome.notice.message if outcome.notice else None,
        messaging_link=outcome.notice.link if outcome.notice else None,
    )


@app.post(
    "/api/v1/admin/reservations/{reservation_id}/decline",
    tags=["Admin"],
    response_model=ReviewResponse
)
async def decline_reservation(
    reservation_id: str,
    admin: AdminPrincipal = Depends(require_capability(CAP_REVIEW_RESERVATIONS)),
    service: AdminService = Depends(get_admin_service)
):
    """Reject a pending reservation, releasing its slot."""
    outcome = await service.reject(reservation_id)
    return ReviewResponse(reservation=ReservationResponse.from_domain(outcome.reservation))


@app.delete(
    "/api/v1/admin/reservations/{reservation_id}",
    tags=["Admin"],
    status_code=status.HTTP_204_NO_CONTENT
)
async def delete_reservation(
    reservation_id: str,
    admin: AdminPrincipal = Depends(require_capability(CAP_REVIEW_RESERVATIONS)),
    service: AdminService = Depends(get_admin_service)
):
    """Permanently delete a reservation."""
    await service.delete(reservation_id)


# Admin: schedule

@app.get("/api/v1/admin/schedule", tags=["Admin"], response_model=WeeklyScheduleConfig)
async def get_schedule(
    admin: AdminPrincipal = Depends(require_capability(CAP_WRITE_SCHEDULE)),
    service: AdminService = Depends(get_admin_service)
):
    """Current weekly opening hours and slot interval."""
    return await service.get_schedule()


@app.put("/api/v1/admin/schedule", tags=["Admin"], response_model=WeeklyScheduleConfig)
async def update_schedule(
    schedule: WeeklyScheduleConfig,
    admin: AdminPrincipal = Depends(require_capability(CAP_WRITE_SCHEDULE)),
    service: AdminService = Depends(get_admin_service)
):
    """
    Replace the weekly schedule.

    Raises:
        400: Inconsistent schedule (nothing saved)
        503: Schedule could not be saved
    """
    return await service.update_schedule(schedule)


# Admin: catalog

@app.post(
    "/api/v1/admin/catalog/services",
    tags=["Admin"],
    response_model=ServiceConfig,
    status_code=status.HTTP_201_CREATED
)
async def save_service(
    service_config: ServiceConfig,
    admin: AdminPrincipal = Depends(require_capability(CAP_WRITE_CATALOG)),
    service: AdminService = Depends(get_admin_service)
):
    """Create a service, or replace it when the id already exists."""
    return await service.save_service(service_config)


@app.delete(
    "/api/v1/admin/catalog/services/{service_id}",
    tags=["Admin"],
    status_code=status.HTTP_204_NO_CONTENT
)
async def delete_service(
    service_id: str,
    admin: AdminPrincipal = Depends(require_capability(CAP_WRITE_CATALOG)),
    service: AdminService = Depends(get_admin_service)
):
    await service.delete_service(service_id)


@app.post(
    "/api/v1/admin/catalog/professionals",
    tags=["Admin"],
    response_model=ProfessionalConfig,
    status_code=status.HTTP_201_CREATED
)
async def save_professional(
    professional: ProfessionalConfig,
    admin: AdminPrincipal = Depends(require_capability(CAP_WRITE_CATALOG)),
    service: AdminService = Depends(get_admin_service)
):
    """Create a professional, or replace them when the id already exists."""
    return await service.save_professional(professional)


@app.delete(
    "/api/v1/admin/catalog/professionals/{professional_id}",
    tags=["Admin"],
    status_code=status.HTTP_204_NO_CONTENT
)
async def delete_professional(
    professional_id: str,
    admin: AdminPrincipal = Depends(require_capability(CAP_WRITE_CATALOG)),
    service: AdminService = Depends(get_admin_service)
):
    await service.delete_professional(professional_id)


@app.post("/api/v1/admin/catalog/seed", tags=["Admin"], response_model=SeedResponse)
async def seed_catalog(
    admin: AdminPrincipal = Depends(require_capability(CAP_WRITE_CATALOG)),
    service: AdminService = Depends(get_admin_service)
):
    """Import the sample services and professionals."""
    return SeedResponse(items_written=await service.seed_catalog())
