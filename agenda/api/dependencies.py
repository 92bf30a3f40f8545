"""FastAPI dependency injection functions.

Stores and services are process-wide singletons built from the configured
backends. Tests replace them with ``app.dependency_overrides``.
"""
from typing import Callable, Optional

from fastapi import Depends, Header, HTTPException, status

from agenda import config
from agenda.admin import AdminService
from agenda.auth import AdminAuthManager, AdminPrincipal, InvalidSessionError
from agenda.booking import BookingService
from agenda.catalog_store import CatalogStore, create_catalog_store
from agenda.rate_limiter import RateLimiter
from agenda.repository import ReservationRepository, create_reservation_repository
from agenda.schedule_store import ScheduleConfigStore, create_schedule_store

# Initialize singletons
_reservations: Optional[ReservationRepository] = None
_schedule_store: Optional[ScheduleConfigStore] = None
_catalog_store: Optional[CatalogStore] = None
_auth_manager: Optional[AdminAuthManager] = None
_login_limiter: Optional[RateLimiter] = None


def get_reservation_repository() -> ReservationRepository:
    """Get or create the reservation store singleton."""
    global _reservations
    if _reservations is None:
        _reservations = create_reservation_repository(config.RESERVATION_BACKEND)
    return _reservations


def get_schedule_store() -> ScheduleConfigStore:
    """Get or create the schedule store singleton."""
    global _schedule_store
    if _schedule_store is None:
        _schedule_store = create_schedule_store(config.SCHEDULE_BACKEND)
    return _schedule_store


def get_catalog_store() -> CatalogStore:
    """Get or create the catalog store singleton."""
    global _catalog_store
    if _catalog_store is None:
        _catalog_store = create_catalog_store(config.CATALOG_BACKEND)
    return _catalog_store


def get_auth_manager() -> AdminAuthManager:
    """Get or create the admin auth manager singleton."""
    global _auth_manager
    if _auth_manager is None:
        _auth_manager = AdminAuthManager(database_url=config.DATABASE_URL)
    return _auth_manager


def get_login_limiter() -> RateLimiter:
    """Get or create the login rate limiter singleton."""
    global _login_limiter
    if _login_limiter is None:
        _login_limiter = RateLimiter(default_requests=config.LOGIN_ATTEMPTS_PER_MINUTE)
    return _login_limiter


def get_booking_service(
    schedule_store: ScheduleConfigStore = Depends(get_schedule_store),
    reservations: ReservationRepository = Depends(get_reservation_repository),
) -> BookingService:
    return BookingService(schedule_store, reservations)


def get_admin_service(
    reservations: ReservationRepository = Depends(get_reservation_repository),
    schedule_store: ScheduleConfigStore = Depends(get_schedule_store),
    catalog: CatalogStore = Depends(get_catalog_store),
) -> AdminService:
    return AdminService(reservations, schedule_store, catalog)


def bearer_token(authorization: Optional[str] = Header(None, description="Bearer <token>")) -> str:
    """
    Extract the session token from the Authorization header.

    Raises:
        HTTPException 401: If the header is missing or not a Bearer token
    """
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"}
        )
    return token.strip()


async def get_current_admin(
    token: str = Depends(bearer_token),
    manager: AdminAuthManager = Depends(get_auth_manager),
) -> AdminPrincipal:
    """
    FastAPI dependency for admin session validation.

    Raises:
        HTTPException 401: If the session is invalid or expired
    """
    try:
        return manager.authenticate(token)
    except InvalidSessionError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"}
        )


def require_capability(capability: str) -> Callable:
    """
    Build a dependency that admits only sessions holding ``capability``.

    Usage:
        admin: AdminPrincipal = Depends(require_capability(CAP_WRITE_SCHEDULE))

    A missing capability raises PermissionDeniedError (mapped to 403).
    """
    async def _check(admin: AdminPrincipal = Depends(get_current_admin)) -> AdminPrincipal:
        admin.require(capability)
        return admin

    return _check


def reset_singletons() -> None:
    """Forget cached stores and managers (used by tests)."""
    global _reservations, _schedule_store, _catalog_store, _auth_manager, _login_limiter
    _reservations = None
    _schedule_store = None
    _catalog_store = None
    _auth_manager = None
    _login_limiter = None
