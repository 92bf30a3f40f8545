"""Weekly opening-hours schedule.

Weekdays are keyed 0=Sunday .. 6=Saturday, matching the booking widget.
Stored records are accepted as they are; strict checks only run when an
administrator saves a new schedule (see ``validate_for_write``).
"""
import re
from datetime import date, time
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from agenda import config

HHMM_PATTERN = re.compile(r'^([01]\d|2[0-3]):([0-5]\d)$')

WEEKDAY_NAMES = {
    0: "Sunday",
    1: "Monday",
    2: "Tuesday",
    3: "Wednesday",
    4: "Thursday",
    5: "Friday",
    6: "Saturday",
}


class ScheduleValidationError(ValueError):
    """Raised when a schedule submitted for saving is inconsistent."""
    pass


def parse_hhmm(value: str) -> time:
    """
    Parse a zero-padded 24h "HH:MM" string.

    Raises:
        ValueError: If the string is not a valid time of day
    """
    match = HHMM_PATTERN.match(value or "")
    if not match:
        raise ValueError(f"Invalid time '{value}'. Use HH:MM (e.g., 09:30)")
    return time(int(match.group(1)), int(match.group(2)))


def weekday_index(day: date) -> int:
    """Weekday of ``day`` with Sunday as 0."""
    return (day.weekday() + 1) % 7


class DaySchedule(BaseModel):
    """Opening hours for one weekday."""
    model_config = ConfigDict(populate_by_name=True)

    is_open: bool = Field(..., alias="isOpen", description="Whether bookings are taken on this day")
    start_time: str = Field("09:00", alias="startTime", description="Opening time, HH:MM")
    end_time: str = Field("18:00", alias="endTime", description="Closing time, HH:MM")


class WeeklyScheduleConfig(BaseModel):
    """Opening hours for the whole week plus the shared slot interval."""
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "days": {
                    "0": {"is_open": False, "start_time": "09:00", "end_time": "18:00"},
                    "1": {"is_open": True, "start_time": "09:00", "end_time": "18:00"},
                },
                "slot_interval_minutes": 60
            }
        }
    )

    days: Dict[int, DaySchedule] = Field(default_factory=dict)
    slot_interval_minutes: int = Field(
        config.DEFAULT_SLOT_INTERVAL_MINUTES,
        gt=0,
        alias="appointmentInterval",
        description="Minutes between consecutive slot start times"
    )

    def day_for(self, day: date) -> Optional[DaySchedule]:
        """Schedule entry for the weekday of ``day`` (None if not configured)."""
        return self.days.get(weekday_index(day))

    def validate_for_write(self) -> None:
        """
        Check the schedule before it replaces the stored one.

        Raises:
            ScheduleValidationError: On unknown weekdays, an interval out of
                bounds, malformed times or an open day that does not end
                after it starts
        """
        unknown = sorted(k for k in self.days if k not in WEEKDAY_NAMES)
        if unknown:
            raise ScheduleValidationError(f"Unknown weekday keys: {unknown}")

        if not (config.MIN_SLOT_INTERVAL_MINUTES
                <= self.slot_interval_minutes
                <= config.MAX_SLOT_INTERVAL_MINUTES):
            raise ScheduleValidationError(
                f"Slot interval must be between {config.MIN_SLOT_INTERVAL_MINUTES} "
                f"and {config.MAX_SLOT_INTERVAL_MINUTES} minutes"
            )

        for weekday, day in sorted(self.days.items()):
            if not day.is_open:
                continue
            name = WEEKDAY_NAMES[weekday]
            try:
                start = parse_hhmm(day.start_time)
                end = parse_hhmm(day.end_time)
            except ValueError as e:
                raise ScheduleValidationError(f"{name}: {e}") from e
            if start >= end:
                raise ScheduleValidationError(
                    f"{name}: closing time {day.end_time} must be after opening time {day.start_time}"
                )


def default_schedule() -> WeeklyScheduleConfig:
    """Schedule used when none has been saved yet."""
    return WeeklyScheduleConfig(
        days={int(k): DaySchedule(**v) for k, v in config.DEFAULT_OPENING_HOURS.items()},
        slot_interval_minutes=config.DEFAULT_SLOT_INTERVAL_MINUTES,
    )
