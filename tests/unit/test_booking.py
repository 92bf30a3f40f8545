"""Test the client booking flow."""
import asyncio
import pytest
from datetime import date, datetime, timedelta

from agenda.availability import SlotPeriod
from agenda.booking import (
    AvailabilityUnavailable,
    BookingRejected,
    BookingRequest,
    BookingService,
    DayStatus,
    SlotPicker,
    SlotPickerState,
)
from agenda.repository import InMemoryReservationRepository, StoreError
from agenda.reservations import ReservationStatus
from agenda.schedule import DaySchedule, WeeklyScheduleConfig
from agenda.schedule_store import InMemoryScheduleStore

FRIDAY = date(2025, 3, 14)
SATURDAY = date(2025, 3, 15)
THURSDAY_NOON = datetime(2025, 3, 13, 12, 0)


class FlakyReservationRepository(InMemoryReservationRepository):
    """Fails the first ``failures`` range queries."""

    def __init__(self, failures: int):
        super().__init__()
        self.failures = failures
        self.calls = 0

    async def list_by_date_range(self, start, end):
        self.calls += 1
        if self.calls <= self.failures:
            raise StoreError("Reservation store unavailable")
        return await super().list_by_date_range(start, end)


class GatedReservationRepository(InMemoryReservationRepository):
    """Range queries wait until the test releases that day."""

    def __init__(self):
        super().__init__()
        self.gates = {}

    def gate(self, day: date) -> asyncio.Event:
        return self.gates.setdefault(day, asyncio.Event())

    async def list_by_date_range(self, start, end):
        await self.gate(start.date()).wait()
        return await super().list_by_date_range(start, end)


@pytest.fixture
def service(schedule_store, reservation_repo):
    return BookingService(schedule_store, reservation_repo, lead_time=timedelta(hours=2), read_backoff=0)


def booking_request(**overrides) -> BookingRequest:
    data = {
        "client_name": "Maria Souza",
        "client_phone": "(11) 98765-4321",
        "client_email": "maria@example.com",
        "service_name": "Manicure",
        "professional_name": "Ana Silva",
        "date": "2025-03-14",
        "start_time": "09:00",
    }
    data.update(overrides)
    return BookingRequest(**data)


class TestDayAvailability:

    @pytest.mark.asyncio
    async def test_open_day(self, service):
        availability = await service.get_day_availability(FRIDAY, now=THURSDAY_NOON)

        assert availability.status == DayStatus.OPEN
        assert availability.start_times == ["09:00", "10:00"]

    @pytest.mark.asyncio
    async def test_closed_day_distinct_from_full(self, reservation_repo, make_reservation):
        schedule = WeeklyScheduleConfig(days={
            5: DaySchedule(is_open=True, start_time="09:00", end_time="10:00"),  # Friday
            6: DaySchedule(is_open=False),  # Saturday
        })
        service = BookingService(InMemoryScheduleStore(schedule), reservation_repo, read_backoff=0)
        await reservation_repo.create(make_reservation(datetime(2025, 3, 14, 9, 0)))

        friday = await service.get_day_availability(FRIDAY, now=THURSDAY_NOON)
        saturday = await service.get_day_availability(SATURDAY, now=THURSDAY_NOON)

        assert friday.status == DayStatus.FULL
        assert friday.slots == []
        assert saturday.status == DayStatus.CLOSED
        assert saturday.slots == []

    @pytest.mark.asyncio
    async def test_lead_time_leaves_day_full(self, service):
        """Open day with every slot inside the lead time."""
        now = datetime(2025, 3, 14, 8, 30)

        availability = await service.get_day_availability(FRIDAY, now=now)

        assert availability.status == DayStatus.FULL

    @pytest.mark.asyncio
    async def test_last_representable_day(self, service, reservation_repo, make_reservation):
        await reservation_repo.create(make_reservation(datetime(9999, 12, 31, 9, 0)))

        availability = await service.get_day_availability(date.max, now=THURSDAY_NOON)

        assert availability.status == DayStatus.OPEN
        assert availability.start_times == ["10:00"]

    @pytest.mark.asyncio
    async def test_missing_schedule_uses_default(self, reservation_repo):
        service = BookingService(InMemoryScheduleStore(), reservation_repo, read_backoff=0)

        sunday = await service.get_day_availability(date(2025, 3, 16), now=THURSDAY_NOON)
        friday = await service.get_day_availability(FRIDAY, now=THURSDAY_NOON)

        assert sunday.status == DayStatus.CLOSED
        assert friday.start_times[0] == "09:00"
        assert friday.start_times[-1] == "17:00"

    @pytest.mark.asyncio
    async def test_professional_filter(self, service, reservation_repo, make_reservation):
        await reservation_repo.create(
            make_reservation(datetime(2025, 3, 14, 9, 0), professional_name="Carlos Oliveira")
        )

        for_ana = await service.get_day_availability(FRIDAY, "Ana Silva", now=THURSDAY_NOON)
        for_carlos = await service.get_day_availability(FRIDAY, "Carlos Oliveira", now=THURSDAY_NOON)

        assert for_ana.start_times == ["09:00", "10:00"]
        assert for_carlos.start_times == ["10:00"]

    @pytest.mark.asyncio
    async def test_transient_store_failure_is_retried(self, schedule_store):
        repo = FlakyReservationRepository(failures=1)
        service = BookingService(schedule_store, repo, read_attempts=3, read_backoff=0)

        availability = await service.get_day_availability(FRIDAY, now=THURSDAY_NOON)

        assert availability.status == DayStatus.OPEN
        assert repo.calls == 2

    @pytest.mark.asyncio
    async def test_persistent_store_failure_is_retriable_error(self, schedule_store):
        repo = FlakyReservationRepository(failures=10)
        service = BookingService(schedule_store, repo, read_attempts=3, read_backoff=0)

        with pytest.raises(AvailabilityUnavailable):
            await service.get_day_availability(FRIDAY, now=THURSDAY_NOON)

        assert repo.calls == 3

    @pytest.mark.asyncio
    async def test_slots_grouped_by_period(self, service):
        availability = await service.get_day_availability(FRIDAY, now=THURSDAY_NOON)

        grouped = availability.slots_by_period

        assert [s.start_time for s in grouped[SlotPeriod.MORNING]] == ["09:00", "10:00"]
        assert grouped[SlotPeriod.AFTERNOON] == []


class TestRequestBooking:

    @pytest.mark.asyncio
    async def test_creates_pending_reservation(self, service, reservation_repo):
        reservation = await service.request_booking(booking_request(), now=THURSDAY_NOON)

        assert reservation.id is not None
        assert reservation.status == ReservationStatus.PENDING
        assert reservation.start_at == datetime(2025, 3, 14, 9, 0)
        stored = await reservation_repo.get(reservation.id)
        assert stored.client_email == "maria@example.com"

    @pytest.mark.asyncio
    async def test_booked_slot_disappears(self, service):
        await service.request_booking(booking_request(), now=THURSDAY_NOON)

        availability = await service.get_day_availability(FRIDAY, "Ana Silva", now=THURSDAY_NOON)

        assert availability.start_times == ["10:00"]

    @pytest.mark.asyncio
    async def test_taken_slot_rejected_with_alternatives(self, service):
        await service.request_booking(booking_request(), now=THURSDAY_NOON)

        with pytest.raises(BookingRejected) as exc_info:
            await service.request_booking(booking_request(client_name="Joana Lima"), now=THURSDAY_NOON)

        assert exc_info.value.code == "SLOT_UNAVAILABLE"
        assert exc_info.value.alternatives == ["10:00"]

    @pytest.mark.asyncio
    async def test_declined_slot_can_be_booked_again(self, service, reservation_repo):
        first = await service.request_booking(booking_request(), now=THURSDAY_NOON)
        await reservation_repo.update_status(first.id, ReservationStatus.DECLINED)

        second = await service.request_booking(booking_request(), now=THURSDAY_NOON)

        assert second.id != first.id

    @pytest.mark.asyncio
    async def test_slot_inside_lead_time_rejected(self, service):
        with pytest.raises(BookingRejected) as exc_info:
            await service.request_booking(booking_request(), now=datetime(2025, 3, 14, 8, 0))

        assert exc_info.value.code == "SLOT_UNAVAILABLE"

    @pytest.mark.asyncio
    async def test_off_grid_time_rejected(self, service):
        with pytest.raises(BookingRejected):
            await service.request_booking(booking_request(start_time="09:30"), now=THURSDAY_NOON)

    @pytest.mark.asyncio
    async def test_past_day_rejected(self, service):
        with pytest.raises(BookingRejected):
            await service.request_booking(booking_request(date="2025-03-10"), now=THURSDAY_NOON)

    @pytest.mark.asyncio
    async def test_closed_day_rejected(self, reservation_repo):
        service = BookingService(
            InMemoryScheduleStore(WeeklyScheduleConfig(days={5: DaySchedule(is_open=False)})),
            reservation_repo,
            read_backoff=0
        )

        with pytest.raises(BookingRejected) as exc_info:
            await service.request_booking(booking_request(), now=THURSDAY_NOON)

        assert exc_info.value.code == "DAY_CLOSED"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field,value", [
        ("client_name", "Al"),
        ("client_phone", "123"),
        ("client_email", "not-an-email"),
        ("start_time", "9h"),
    ])
    async def test_invalid_client_data_rejected(self, service, reservation_repo, field, value):
        with pytest.raises(BookingRejected) as exc_info:
            await service.request_booking(booking_request(**{field: value}), now=THURSDAY_NOON)

        assert exc_info.value.code == "BOOKING_REJECTED"
        assert await reservation_repo.list_all() == []

    @pytest.mark.asyncio
    async def test_name_is_sanitized(self, service):
        reservation = await service.request_booking(
            booking_request(client_name="<b>Maria</b>   Souza"), now=THURSDAY_NOON
        )

        assert reservation.client_name == "Maria Souza"


class TestSlotPicker:

    @pytest.mark.asyncio
    async def test_select_date_loads_slots(self, service):
        picker = SlotPicker(service, clock=lambda: THURSDAY_NOON)

        result = await picker.select_date(FRIDAY)

        assert picker.state == SlotPickerState.READY
        assert picker.availability is result
        assert result.start_times == ["09:00", "10:00"]

    @pytest.mark.asyncio
    async def test_stale_fetch_is_discarded(self, schedule_store, make_reservation):
        repo = GatedReservationRepository()
        await repo.create(make_reservation(datetime(2025, 3, 14, 9, 0)))
        service = BookingService(schedule_store, repo, read_backoff=0)
        picker = SlotPicker(service, clock=lambda: THURSDAY_NOON)

        friday_fetch = asyncio.create_task(picker.select_date(FRIDAY))
        await asyncio.sleep(0)
        saturday_fetch = asyncio.create_task(picker.select_date(SATURDAY))
        await asyncio.sleep(0)

        repo.gate(SATURDAY).set()
        saturday = await saturday_fetch
        repo.gate(FRIDAY).set()
        friday = await friday_fetch

        assert friday is None
        assert saturday.day == SATURDAY
        assert picker.selected_date == SATURDAY
        assert picker.availability.day == SATURDAY
        assert picker.availability.start_times == ["09:00", "10:00"]
        assert picker.state == SlotPickerState.READY

    @pytest.mark.asyncio
    async def test_failure_sets_error_and_retry_recovers(self, schedule_store):
        repo = FlakyReservationRepository(failures=2)
        service = BookingService(schedule_store, repo, read_attempts=2, read_backoff=0)
        picker = SlotPicker(service, clock=lambda: THURSDAY_NOON)

        assert await picker.select_date(FRIDAY) is None
        assert picker.state == SlotPickerState.ERROR
        assert picker.error

        result = await picker.retry()

        assert result is not None
        assert picker.state == SlotPickerState.READY
        assert picker.error is None

    @pytest.mark.asyncio
    async def test_retry_without_selection(self, service):
        picker = SlotPicker(service)

        assert await picker.retry() is None
        assert picker.state == SlotPickerState.IDLE
