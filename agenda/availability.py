"""Slot generation and occupancy filtering.

Two pure steps turn the weekly schedule into bookable times for one day:

- resolve_slots: opening hours + interval + lead time -> candidate slots
- filter_available: drop candidates already taken by a reservation

Occupancy is matched on the exact "HH:MM" start string, not on interval
overlap, so services of different lengths can still overlap.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Dict, Iterable, List, Optional

from agenda import config
from agenda.reservations import Reservation, ReservationStatus
from agenda.schedule import WeeklyScheduleConfig, parse_hhmm

logger = logging.getLogger(__name__)


class SlotPeriod(str, Enum):
    """Part of the day a slot starts in."""
    MORNING = "morning"  # Before 12:00
    AFTERNOON = "afternoon"  # 12:00 - 17:59
    EVENING = "evening"  # 18:00 and after

    @classmethod
    def for_hour(cls, hour: int) -> "SlotPeriod":
        if hour < config.MORNING_END_HOUR:
            return cls.MORNING
        if hour < config.AFTERNOON_END_HOUR:
            return cls.AFTERNOON
        return cls.EVENING


@dataclass(frozen=True)
class CandidateSlot:
    """A bookable start time on some day."""
    start_time: str  # HH:MM
    period: SlotPeriod


def default_lead_time() -> timedelta:
    """Minimum delay between now and a bookable slot."""
    return timedelta(hours=config.BOOKING_LEAD_TIME_HOURS)


def is_open_on(schedule: WeeklyScheduleConfig, day: date) -> bool:
    """Whether ``day`` has usable opening hours (open, valid times, start before end)."""
    day_schedule = schedule.day_for(day)
    if day_schedule is None or not day_schedule.is_open:
        return False
    try:
        return parse_hhmm(day_schedule.start_time) < parse_hhmm(day_schedule.end_time)
    except ValueError:
        return False


def resolve_slots(
    schedule: WeeklyScheduleConfig,
    day: date,
    now: datetime,
    lead_time: Optional[timedelta] = None
) -> List[CandidateSlot]:
    """
    Candidate slot start times for ``day``.

    Slots are emitted every ``slot_interval_minutes`` from opening time while
    the start is before closing time. Whether the service fits before closing
    is not checked. Slots starting before ``now + lead_time`` are skipped.

    Args:
        schedule: Weekly opening hours
        day: Calendar date to resolve
        now: Current local time
        lead_time: Booking margin (defaults to BOOKING_LEAD_TIME_HOURS)

    Returns:
        Ordered slots; empty when the day is closed
    """
    day_schedule = schedule.day_for(day)
    if day_schedule is None or not day_schedule.is_open:
        return []

    try:
        opens = parse_hhmm(day_schedule.start_time)
        closes = parse_hhmm(day_schedule.end_time)
    except ValueError as e:
        logger.warning(f"Treating {day.isoformat()} as closed, bad opening hours: {e}")
        return []

    cursor = datetime.combine(day, opens)
    end = datetime.combine(day, closes)
    if cursor >= end:
        logger.warning(
            f"Treating {day.isoformat()} as closed, opening time "
            f"{day_schedule.start_time} is not before closing time {day_schedule.end_time}"
        )
        return []

    if lead_time is None:
        lead_time = default_lead_time()
    min_bookable = now + lead_time
    step = timedelta(minutes=schedule.slot_interval_minutes)

    slots = []
    while cursor < end:
        if cursor >= min_bookable:
            slots.append(CandidateSlot(
                start_time=cursor.strftime("%H:%M"),
                period=SlotPeriod.for_hour(cursor.hour)
            ))
        if end - cursor <= step:
            break
        cursor += step

    return slots


def occupied_times(
    reservations: Iterable[Reservation],
    target_date: date,
    professional: Optional[str] = None
) -> set:
    """Start times (HH:MM) held by non-declined reservations on ``target_date``."""
    occupied = set()
    for reservation in reservations:
        if reservation.start_at.date() != target_date:
            continue
        if reservation.status == ReservationStatus.DECLINED:
            continue
        if professional is not None and reservation.professional_name != professional:
            continue
        occupied.add(f"{reservation.start_at.hour:02d}:{reservation.start_at.minute:02d}")
    return occupied


def filter_available(
    candidates: Iterable[CandidateSlot],
    reservations: Iterable[Reservation],
    target_date: date,
    professional: Optional[str] = None
) -> List[CandidateSlot]:
    """
    Remove candidates whose start time is already reserved.

    Args:
        candidates: Slots from resolve_slots, in order
        reservations: Reservations fetched for the target date
        target_date: Day the candidates belong to
        professional: Only count this professional's reservations (optional)

    Returns:
        Surviving slots in input order
    """
    taken = occupied_times(reservations, target_date, professional)
    return [slot for slot in candidates if slot.start_time not in taken]


def group_by_period(slots: Iterable[CandidateSlot]) -> Dict[SlotPeriod, List[CandidateSlot]]:
    """
    Group slots into morning / afternoon / evening buckets.

    Every period is present (possibly empty) and slot order is preserved.
    """
    grouped = {period: [] for period in SlotPeriod}
    for slot in slots:
        grouped[slot.period].append(slot)
    return grouped
