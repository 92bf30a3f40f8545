# agenda/schedule_store.py
"""
Schedule Configuration Store.

Holds the single weekly-schedule record. Backends:
- memory: test double
- json: one JSON file on disk
- sql: one row in the schedule_settings table

get() returns None while nothing has been saved; load_schedule() turns that
into the default schedule.
"""
import asyncio
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from agenda import config
from agenda.api.database_models import ScheduleRecord
from agenda.database import make_session_factory
from agenda.repository import StoreError
from agenda.schedule import WeeklyScheduleConfig, default_schedule

logger = logging.getLogger(__name__)

SCHEDULE_KEY = "general"


class ScheduleConfigStore(ABC):
    """Read/write access to the weekly schedule."""

    @abstractmethod
    async def get(self) -> Optional[WeeklyScheduleConfig]:
        """Saved schedule, or None if none has been saved."""

    @abstractmethod
    async def set(self, schedule: WeeklyScheduleConfig) -> None:
        """Replace the saved schedule."""


class InMemoryScheduleStore(ScheduleConfigStore):
    """Keeps the schedule in an attribute."""

    def __init__(self, schedule: Optional[WeeklyScheduleConfig] = None):
        self._schedule = schedule

    async def get(self) -> Optional[WeeklyScheduleConfig]:
        if self._schedule is None:
            return None
        return self._schedule.model_copy(deep=True)

    async def set(self, schedule: WeeklyScheduleConfig) -> None:
        self._schedule = schedule.model_copy(deep=True)


class JsonFileScheduleStore(ScheduleConfigStore):
    """Saves the schedule as a JSON file."""

    def __init__(self, path: Optional[str] = None):
        """
        Initialize file store.

        Args:
            path: File to store the schedule in.
                  Defaults to config.SCHEDULE_FILE.
        """
        self.path = Path(path or config.SCHEDULE_FILE)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _read(self) -> Optional[WeeklyScheduleConfig]:
        if not self.path.exists():
            return None

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return WeeklyScheduleConfig(**data)
        except (OSError, ValueError, ValidationError) as e:
            logger.error(f"Unreadable schedule file {self.path}: {e}")
            raise StoreError("Schedule configuration unreadable") from e

    def _write(self, schedule: WeeklyScheduleConfig) -> None:
        try:
            with open(self.path, 'w', encoding='utf-8') as f:
                json.dump(
                    schedule.model_dump(mode='json'),
                    f,
                    indent=2,
                    ensure_ascii=False
                )
        except OSError as e:
            logger.error(f"Could not write schedule file {self.path}: {e}")
            raise StoreError("Schedule configuration could not be saved") from e

    async def get(self) -> Optional[WeeklyScheduleConfig]:
        return await asyncio.to_thread(self._read)

    async def set(self, schedule: WeeklyScheduleConfig) -> None:
        await asyncio.to_thread(self._write, schedule)


class SqlScheduleStore(ScheduleConfigStore):
    """Saves the schedule as a single database row."""

    def __init__(self, engine: Engine):
        self.SessionLocal = make_session_factory(engine)

    def _read(self) -> Optional[WeeklyScheduleConfig]:
        with self.SessionLocal() as db:
            record = db.get(ScheduleRecord, SCHEDULE_KEY)
            if record is None:
                return None
            try:
                return WeeklyScheduleConfig(
                    days=record.days,
                    slot_interval_minutes=record.slot_interval_minutes
                )
            except ValidationError as e:
                logger.error(f"Stored schedule is invalid: {e}")
                raise StoreError("Schedule configuration unreadable") from e

    def _write(self, schedule: WeeklyScheduleConfig) -> None:
        data = schedule.model_dump(mode='json')
        with self.SessionLocal() as db:
            record = db.get(ScheduleRecord, SCHEDULE_KEY)
            if record is None:
                record = ScheduleRecord(key=SCHEDULE_KEY)
                db.add(record)
            record.days = data["days"]
            record.slot_interval_minutes = data["slot_interval_minutes"]
            db.commit()

    async def get(self) -> Optional[WeeklyScheduleConfig]:
        try:
            return await asyncio.to_thread(self._read)
        except SQLAlchemyError as e:
            logger.error(f"Schedule store error: {e}")
            raise StoreError("Schedule configuration unavailable") from e

    async def set(self, schedule: WeeklyScheduleConfig) -> None:
        try:
            await asyncio.to_thread(self._write, schedule)
        except SQLAlchemyError as e:
            logger.error(f"Schedule store error: {e}")
            raise StoreError("Schedule configuration could not be saved") from e


async def load_schedule(store: ScheduleConfigStore) -> WeeklyScheduleConfig:
    """Saved schedule, falling back to the default when none exists."""
    schedule = await store.get()
    if schedule is None:
        return default_schedule()
    return schedule


def create_schedule_store(
    backend: Optional[str] = None,
    engine: Optional[Engine] = None
) -> ScheduleConfigStore:
    """
    Build the configured schedule store.

    Args:
        backend: "memory", "json" or "sql" (defaults to config.SCHEDULE_BACKEND)
        engine: Engine for the sql backend (defaults to the global engine)

    Raises:
        ValueError: On an unknown backend name
    """
    backend = (backend or config.SCHEDULE_BACKEND).lower()
    if backend == "memory":
        return InMemoryScheduleStore()
    if backend == "json":
        return JsonFileScheduleStore()
    if backend == "sql":
        if engine is None:
            from agenda.database import get_engine
            engine = get_engine()
        return SqlScheduleStore(engine)
    raise ValueError(f"Unknown schedule backend: {backend}")
