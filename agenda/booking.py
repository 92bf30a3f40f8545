"""Client booking flow.

BookingService answers "what can I book on this day?" and turns a chosen
slot plus client data into a pending reservation. Availability is always
derived from a fresh query of the reservation store for the selected day.

Known limitation: two clients can see the same slot free and both submit.
Both reservations are stored as pending and the administrator resolves the
conflict while reviewing.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from agenda import config
from agenda.availability import (
    CandidateSlot,
    SlotPeriod,
    filter_available,
    group_by_period,
    is_open_on,
    resolve_slots,
)
from agenda.input_sanitizer import InputSanitizer
from agenda.repository import ReservationRepository, StoreError
from agenda.reservations import Reservation, ReservationStatus
from agenda.schedule import parse_hhmm
from agenda.schedule_store import ScheduleConfigStore, load_schedule

logger = logging.getLogger(__name__)


class AvailabilityUnavailable(Exception):
    """Raised when availability cannot be computed right now (retry later)."""
    pass


class BookingRejected(Exception):
    """Raised when a booking request cannot be accepted."""

    def __init__(
        self,
        message: str,
        alternatives: Optional[List[str]] = None,
        code: str = "BOOKING_REJECTED"
    ):
        super().__init__(message)
        self.alternatives = alternatives or []
        self.code = code


class DayStatus(str, Enum):
    """Why a day does or does not offer slots."""
    OPEN = "open"  # At least one slot left
    CLOSED = "closed"  # Not a working day
    FULL = "full"  # Working day, but every slot is taken or too soon


@dataclass
class DayAvailability:
    """Bookable slots for one day."""
    day: date
    status: DayStatus
    slots: List[CandidateSlot] = field(default_factory=list)

    @property
    def slots_by_period(self) -> Dict[SlotPeriod, List[CandidateSlot]]:
        return group_by_period(self.slots)

    @property
    def start_times(self) -> List[str]:
        return [slot.start_time for slot in self.slots]


class BookingRequest(BaseModel):
    """Client data and chosen slot submitted by the booking widget."""
    model_config = ConfigDict(populate_by_name=True)

    client_name: str = Field(..., max_length=200, description="Full name (3-100 characters)")
    client_phone: str = Field(..., max_length=30, description="Phone/WhatsApp number")
    client_email: Optional[str] = Field(None, max_length=254, description="Optional e-mail")
    service_name: str = Field(..., min_length=1, max_length=100)
    professional_name: str = Field(..., min_length=1, max_length=100)
    day: date = Field(..., alias="date", description="Selected day")
    start_time: str = Field(..., description="Slot start, HH:MM")
    wants_reminders: bool = False
    first_time_client: bool = False


def day_bounds(day: date):
    """[start, end) datetimes covering one local calendar day."""
    start = datetime.combine(day, time.min)
    if day == date.max:
        return start, datetime.max
    return start, start + timedelta(days=1)


class BookingService:
    """Availability lookup and booking requests for the client widget."""

    def __init__(
        self,
        schedule_store: ScheduleConfigStore,
        reservations: ReservationRepository,
        lead_time: Optional[timedelta] = None,
        read_attempts: int = config.STORE_READ_ATTEMPTS,
        read_backoff: float = config.STORE_READ_BACKOFF_SECONDS
    ):
        """
        Initialize booking service.

        Args:
            schedule_store: Where the weekly schedule is kept
            reservations: Reservation store (single source of truth for occupancy)
            lead_time: Booking margin (defaults to BOOKING_LEAD_TIME_HOURS)
            read_attempts: Tries per store read before giving up
            read_backoff: Base delay in seconds between tries
        """
        self.schedule_store = schedule_store
        self.reservations = reservations
        self.lead_time = lead_time
        self.read_attempts = max(1, read_attempts)
        self.read_backoff = read_backoff

    async def _read(self, operation: Callable, *args):
        """Run a store read, retrying transient StoreErrors."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.read_attempts),
            wait=wait_exponential(multiplier=self.read_backoff, max=2),
            retry=retry_if_exception_type(StoreError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await operation(*args)

    async def reservations_for_day(self, day: date) -> List[Reservation]:
        """Reservations starting on ``day`` (re-queried on every call)."""
        start, end = day_bounds(day)
        return await self._read(self.reservations.list_by_date_range, start, end)

    async def get_day_availability(
        self,
        day: date,
        professional: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> DayAvailability:
        """
        Bookable slots for ``day``.

        Loads the schedule and that day's reservations concurrently, then
        resolves candidate slots and removes occupied ones.

        Args:
            day: Selected date
            professional: Only this professional's reservations occupy slots
            now: Current local time (defaults to datetime.now())

        Returns:
            DayAvailability with status open, closed or full

        Raises:
            AvailabilityUnavailable: If a store read keeps failing
        """
        now = now or datetime.now()
        try:
            schedule, booked = await asyncio.gather(
                self._read(load_schedule, self.schedule_store),
                self.reservations_for_day(day),
            )
        except StoreError as e:
            logger.error(f"Availability lookup failed for {day.isoformat()}: {e}")
            raise AvailabilityUnavailable(
                "Could not load available times. Please try again."
            ) from e

        candidates = resolve_slots(schedule, day, now, self.lead_time)
        if not is_open_on(schedule, day):
            return DayAvailability(day=day, status=DayStatus.CLOSED)

        slots = filter_available(candidates, booked, day, professional)
        status = DayStatus.OPEN if slots else DayStatus.FULL
        return DayAvailability(day=day, status=status, slots=slots)

    async def request_booking(
        self,
        request: BookingRequest,
        now: Optional[datetime] = None
    ) -> Reservation:
        """
        Create a pending reservation for a slot offered on the requested day.

        Args:
            request: Client data and chosen slot
            now: Current local time (defaults to datetime.now())

        Returns:
            Stored reservation with its id

        Raises:
            BookingRejected: Invalid client data, past or closed day, or a
                time that is not currently offered
            AvailabilityUnavailable: If availability cannot be checked
            StoreError: If the reservation could not be saved
        """
        now = now or datetime.now()
        try:
            client_name = InputSanitizer.clean_client_name(request.client_name)
            client_phone = InputSanitizer.clean_phone(request.client_phone)
            client_email = InputSanitizer.clean_email(request.client_email)
            start_time = parse_hhmm(request.start_time)
        except ValueError as e:
            raise BookingRejected(str(e)) from e

        if request.day < now.date():
            raise BookingRejected("Appointment date must be today or in the future")

        availability = await self.get_day_availability(
            request.day, request.professional_name, now
        )
        if availability.status == DayStatus.CLOSED:
            raise BookingRejected("We are closed on the selected day", code="DAY_CLOSED")

        requested = start_time.strftime("%H:%M")
        if requested not in availability.start_times:
            raise BookingRejected(
                "This time slot is no longer available",
                alternatives=availability.start_times[:5],
                code="SLOT_UNAVAILABLE"
            )

        reservation = Reservation(
            client_name=client_name,
            client_phone=client_phone,
            client_email=client_email,
            service_name=request.service_name,
            professional_name=request.professional_name,
            start_at=datetime.combine(request.day, start_time),
            status=ReservationStatus.PENDING,
            created_at=now,
            wants_reminders=request.wants_reminders,
            first_time_client=request.first_time_client,
        )
        reservation_id = await self.reservations.create(reservation)
        logger.info(
            f"Booking requested: id={reservation_id} professional={request.professional_name} "
            f"start={reservation.start_at.isoformat()}"
        )
        return reservation.model_copy(update={"id": reservation_id})


class SlotPickerState(str, Enum):
    """What a slot picker is currently showing."""
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class SlotPicker:
    """
    Per-session slot picker that follows the client's date selection.

    Each selection starts a new fetch. A fetch that completes after the
    client has already picked another date is discarded, so occupancy of
    one day is never shown for another.
    """

    def __init__(
        self,
        service: BookingService,
        professional: Optional[str] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.service = service
        self.professional = professional
        self.clock = clock
        self.selected_date: Optional[date] = None
        self.state = SlotPickerState.IDLE
        self.availability: Optional[DayAvailability] = None
        self.error: Optional[str] = None
        self._generation = 0

    async def select_date(self, day: date) -> Optional[DayAvailability]:
        """
        Select ``day`` and load its slots.

        Returns:
            The availability shown, or None if the fetch failed or was
            superseded by a newer selection
        """
        self._generation += 1
        generation = self._generation
        self.selected_date = day
        self.state = SlotPickerState.LOADING
        self.availability = None
        self.error = None

        try:
            result = await self.service.get_day_availability(day, self.professional, self.clock())
        except AvailabilityUnavailable as e:
            if generation == self._generation:
                self.state = SlotPickerState.ERROR
                self.error = str(e)
            return None

        if generation != self._generation:
            logger.debug(f"Discarding stale availability for {day.isoformat()}")
            return None

        self.availability = result
        self.state = SlotPickerState.READY
        return result

    async def retry(self) -> Optional[DayAvailability]:
        """Reload the currently selected date (after an error)."""
        if self.selected_date is None:
            return None
        return await self.select_date(self.selected_date)
