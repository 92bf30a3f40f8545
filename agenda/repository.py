"""Reservation Store: persistence boundary for reservations.

Pattern: async repository interface with swappable backends.
- InMemoryReservationRepository: test double / single-process demo
- SqlReservationRepository: SQLAlchemy, sync sessions run in a worker thread

The backend is picked from config.RESERVATION_BACKEND by
create_reservation_repository(); callers only see the interface.
"""
import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Dict, List, Optional, TypeVar

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from agenda import config
from agenda.api.database_models import ReservationRecord
from agenda.database import make_session_factory
from agenda.reservations import InvalidStatusTransition, Reservation, ReservationStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StoreError(Exception):
    """Raised when a backing store cannot complete an operation."""
    pass


class ReservationNotFoundError(Exception):
    """Raised when a reservation id does not exist."""
    pass


def new_reservation_id() -> str:
    """Opaque unique reservation id."""
    return uuid.uuid4().hex


class ReservationRepository(ABC):
    """Storage operations the booking flow and admin panel rely on."""

    @abstractmethod
    async def create(self, reservation: Reservation) -> str:
        """Store a new reservation and return its assigned id."""

    @abstractmethod
    async def get(self, reservation_id: str) -> Reservation:
        """Fetch one reservation. Raises ReservationNotFoundError."""

    @abstractmethod
    async def list_by_date_range(self, start: datetime, end: datetime) -> List[Reservation]:
        """Reservations with ``start <= start_at < end``, ordered by start."""

    @abstractmethod
    async def list_all(self) -> List[Reservation]:
        """Every reservation, ordered by start."""

    @abstractmethod
    async def update_status(
        self,
        reservation_id: str,
        status: ReservationStatus,
        expected: Optional[ReservationStatus] = None
    ) -> Reservation:
        """
        Set the status.

        With ``expected``, the write only happens if the stored status still
        equals it; otherwise InvalidStatusTransition is raised.
        Raises ReservationNotFoundError for unknown ids.
        """

    @abstractmethod
    async def delete(self, reservation_id: str) -> None:
        """Remove a reservation permanently. Raises ReservationNotFoundError."""


class InMemoryReservationRepository(ReservationRepository):
    """Dict-backed store. Returned objects are copies."""

    def __init__(self):
        self._items: Dict[str, Reservation] = {}

    async def create(self, reservation: Reservation) -> str:
        reservation_id = new_reservation_id()
        self._items[reservation_id] = reservation.model_copy(update={"id": reservation_id})
        return reservation_id

    async def get(self, reservation_id: str) -> Reservation:
        return self._lookup(reservation_id).model_copy()

    async def list_by_date_range(self, start: datetime, end: datetime) -> List[Reservation]:
        found = [r for r in self._items.values() if start <= r.start_at < end]
        return [r.model_copy() for r in sorted(found, key=lambda r: r.start_at)]

    async def list_all(self) -> List[Reservation]:
        return [r.model_copy() for r in sorted(self._items.values(), key=lambda r: r.start_at)]

    async def update_status(
        self,
        reservation_id: str,
        status: ReservationStatus,
        expected: Optional[ReservationStatus] = None
    ) -> Reservation:
        current = self._lookup(reservation_id)
        if expected is not None and current.status != expected:
            raise InvalidStatusTransition(current.status, status)
        updated = current.model_copy(update={"status": status})
        self._items[reservation_id] = updated
        return updated.model_copy()

    async def delete(self, reservation_id: str) -> None:
        self._lookup(reservation_id)
        del self._items[reservation_id]

    def _lookup(self, reservation_id: str) -> Reservation:
        if reservation_id not in self._items:
            raise ReservationNotFoundError(f"Reservation {reservation_id} not found")
        return self._items[reservation_id]


def _to_domain(record: ReservationRecord) -> Reservation:
    """Convert database row to domain model."""
    return Reservation(
        id=record.id,
        client_name=record.client_name,
        client_phone=record.client_phone,
        client_email=record.client_email,
        service_name=record.service_name,
        professional_name=record.professional_name,
        start_at=record.start_at,
        status=ReservationStatus(record.status),
        created_at=record.created_at,
        wants_reminders=record.wants_reminders,
        first_time_client=record.first_time_client,
    )


class SqlReservationRepository(ReservationRepository):
    """
    SQLAlchemy-backed store.

    Pattern: Separate database persistence from domain models.
    Reservation (domain) vs ReservationRecord (database).
    """

    def __init__(self, engine: Engine):
        """Initialize with a database engine (tables must exist)."""
        self.SessionLocal = make_session_factory(engine)

    async def _run(self, operation: Callable[[], T]) -> T:
        """Run blocking session work off the event loop."""
        try:
            return await asyncio.to_thread(operation)
        except SQLAlchemyError as e:
            logger.error(f"Reservation store error: {e}")
            raise StoreError("Reservation store unavailable") from e

    async def create(self, reservation: Reservation) -> str:
        reservation_id = new_reservation_id()

        def _create():
            with self.SessionLocal() as db:
                db.add(ReservationRecord(
                    id=reservation_id,
                    client_name=reservation.client_name,
                    client_phone=reservation.client_phone,
                    client_email=reservation.client_email,
                    service_name=reservation.service_name,
                    professional_name=reservation.professional_name,
                    start_at=reservation.start_at,
                    status=reservation.status.value,
                    created_at=reservation.created_at,
                    wants_reminders=reservation.wants_reminders,
                    first_time_client=reservation.first_time_client,
                ))
                db.commit()
            return reservation_id

        return await self._run(_create)

    async def get(self, reservation_id: str) -> Reservation:
        def _get():
            with self.SessionLocal() as db:
                record = db.get(ReservationRecord, reservation_id)
                if record is None:
                    raise ReservationNotFoundError(f"Reservation {reservation_id} not found")
                return _to_domain(record)

        return await self._run(_get)

    async def list_by_date_range(self, start: datetime, end: datetime) -> List[Reservation]:
        def _list():
            with self.SessionLocal() as db:
                records = db.query(ReservationRecord).filter(
                    ReservationRecord.start_at >= start,
                    ReservationRecord.start_at < end
                ).order_by(ReservationRecord.start_at).all()
                return [_to_domain(r) for r in records]

        return await self._run(_list)

    async def list_all(self) -> List[Reservation]:
        def _list():
            with self.SessionLocal() as db:
                records = db.query(ReservationRecord).order_by(ReservationRecord.start_at).all()
                return [_to_domain(r) for r in records]

        return await self._run(_list)

    async def update_status(
        self,
        reservation_id: str,
        status: ReservationStatus,
        expected: Optional[ReservationStatus] = None
    ) -> Reservation:
        def _update():
            with self.SessionLocal() as db:
                query = db.query(ReservationRecord).filter(ReservationRecord.id == reservation_id)
                if expected is not None:
                    query = query.filter(ReservationRecord.status == expected.value)
                changed = query.update({ReservationRecord.status: status.value})
                db.commit()

                record = db.get(ReservationRecord, reservation_id)
                if record is None:
                    raise ReservationNotFoundError(f"Reservation {reservation_id} not found")
                if not changed:
                    # Another review got there first
                    raise InvalidStatusTransition(ReservationStatus(record.status), status)
                return _to_domain(record)

        return await self._run(_update)

    async def delete(self, reservation_id: str) -> None:
        def _delete():
            with self.SessionLocal() as db:
                deleted = db.query(ReservationRecord).filter(
                    ReservationRecord.id == reservation_id
                ).delete()
                db.commit()
                if not deleted:
                    raise ReservationNotFoundError(f"Reservation {reservation_id} not found")

        await self._run(_delete)


def create_reservation_repository(
    backend: Optional[str] = None,
    engine: Optional[Engine] = None
) -> ReservationRepository:
    """
    Build the configured reservation store.

    Args:
        backend: "memory" or "sql" (defaults to config.RESERVATION_BACKEND)
        engine: Engine for the sql backend (defaults to the global engine)

    Raises:
        ValueError: On an unknown backend name
    """
    backend = (backend or config.RESERVATION_BACKEND).lower()
    if backend == "memory":
        return InMemoryReservationRepository()
    if backend == "sql":
        if engine is None:
            from agenda.database import get_engine
            engine = get_engine()
        return SqlReservationRepository(engine)
    raise ValueError(f"Unknown reservation backend: {backend}")
