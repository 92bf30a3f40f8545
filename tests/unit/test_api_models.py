"""Test API request/response models."""
import pytest
from datetime import date, datetime
from pydantic import ValidationError

from agenda.api.models import AvailabilityResponse, LoginRequest, ReservationResponse
from agenda.availability import CandidateSlot, SlotPeriod
from agenda.booking import BookingRequest, DayAvailability, DayStatus
from agenda.reservations import ReservationStatus


def test_booking_request_accepts_date_field():
    req = BookingRequest(
        client_name="Maria Souza",
        client_phone="11987654321",
        service_name="Manicure",
        professional_name="Ana Silva",
        date="2025-03-14",
        start_time="09:00",
    )

    assert req.day == date(2025, 3, 14)
    assert req.client_email is None
    assert req.wants_reminders is False


def test_booking_request_missing_professional_fails():
    with pytest.raises(ValidationError) as exc_info:
        BookingRequest(
            client_name="Maria Souza",
            client_phone="11987654321",
            service_name="Manicure",
            date="2025-03-14",
            start_time="09:00",
        )
    assert "professional_name" in str(exc_info.value)


def test_availability_response_groups_periods():
    availability = DayAvailability(
        day=date(2025, 3, 14),
        status=DayStatus.OPEN,
        slots=[
            CandidateSlot("10:00", SlotPeriod.MORNING),
            CandidateSlot("14:00", SlotPeriod.AFTERNOON),
        ],
    )

    resp = AvailabilityResponse.from_domain(availability)

    assert resp.status == "open"
    assert [s.start_time for s in resp.slots] == ["10:00", "14:00"]
    assert resp.periods == {"morning": ["10:00"], "afternoon": ["14:00"], "evening": []}


def test_closed_availability_response():
    resp = AvailabilityResponse.from_domain(DayAvailability(day=date(2025, 3, 16), status=DayStatus.CLOSED))

    assert resp.status == "closed"
    assert resp.slots == []


def test_reservation_response_lists_actions(make_reservation):
    reservation = make_reservation(datetime(2025, 3, 14, 9, 0)).model_copy(update={"id": "abc"})

    resp = ReservationResponse.from_domain(reservation)

    assert resp.id == "abc"
    assert resp.status == "pending"
    assert resp.actions == ["accept", "reject", "delete"]


def test_reservation_response_confirmed_actions(make_reservation):
    reservation = make_reservation(
        datetime(2025, 3, 14, 9, 0), ReservationStatus.CONFIRMED
    ).model_copy(update={"id": "abc"})

    assert ReservationResponse.from_domain(reservation).actions == ["delete"]


def test_login_request_normalizes_email():
    assert LoginRequest(email=" Admin@Example.com ", password="x").email == "admin@example.com"
