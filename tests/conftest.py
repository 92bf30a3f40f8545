"""Shared test fixtures."""
import pytest
from datetime import datetime

from agenda.database import create_db_engine
from agenda.repository import InMemoryReservationRepository
from agenda.reservations import Reservation, ReservationStatus
from agenda.schedule import DaySchedule, WeeklyScheduleConfig
from agenda.schedule_store import InMemoryScheduleStore


@pytest.fixture
def engine():
    """In-memory SQLite engine with tables created."""
    engine = create_db_engine("sqlite:///:memory:")
    yield engine
    engine.dispose()


@pytest.fixture
def short_day_schedule() -> WeeklyScheduleConfig:
    """Every day open 09:00-11:00 with a 60 minute interval."""
    return WeeklyScheduleConfig(
        days={
            weekday: DaySchedule(is_open=True, start_time="09:00", end_time="11:00")
            for weekday in range(7)
        },
        slot_interval_minutes=60,
    )


@pytest.fixture
def make_reservation():
    """Factory for reservations with sensible defaults."""
    def _create(
        start_at: datetime,
        status: ReservationStatus = ReservationStatus.PENDING,
        professional_name: str = "Ana Silva",
        **overrides
    ) -> Reservation:
        data = {
            "client_name": "Maria Souza",
            "client_phone": "(11) 98765-4321",
            "service_name": "Manicure",
            "professional_name": professional_name,
            "start_at": start_at,
            "status": status,
        }
        data.update(overrides)
        return Reservation(**data)
    return _create


@pytest.fixture
def reservation_repo() -> InMemoryReservationRepository:
    return InMemoryReservationRepository()


@pytest.fixture
def schedule_store(short_day_schedule) -> InMemoryScheduleStore:
    return InMemoryScheduleStore(short_day_schedule)
