"""Test confirmation message composition."""
from datetime import datetime
from urllib.parse import unquote

from agenda import config
from agenda.notifications import build_confirmation_notice, compose_confirmation_message, messaging_link
from agenda.reservations import ReservationStatus


def test_message_contains_booking_details(make_reservation):
    reservation = make_reservation(
        datetime(2025, 3, 14, 9, 30),
        ReservationStatus.CONFIRMED,
        professional_name="Beatriz Santos",
        client_name="Joana Lima",
        service_name="Maquiagem",
    )

    message = compose_confirmation_message(reservation)

    assert "Joana Lima" in message
    assert "Maquiagem" in message
    assert "Beatriz Santos" in message
    assert "14/03/2025" in message
    assert "09:30" in message


def test_messaging_link_uses_digits_and_country_code():
    link = messaging_link("(11) 98765-4321", "Hi there")

    assert link.startswith(f"{config.MESSAGING_BASE_URL}?phone={config.MESSAGING_COUNTRY_CODE}11987654321&text=")
    assert unquote(link.split("&text=", 1)[1]) == "Hi there"


def test_messaging_link_encodes_special_characters():
    link = messaging_link("11987654321", "a&b=c *ok*")

    text = link.split("&text=", 1)[1]
    assert "&" not in text
    assert unquote(text) == "a&b=c *ok*"


def test_messaging_link_without_digits_is_none():
    assert messaging_link("---", "Hi") is None
    assert messaging_link("", "Hi") is None


def test_notice_combines_message_and_link(make_reservation):
    reservation = make_reservation(datetime(2025, 3, 14, 9, 30), ReservationStatus.CONFIRMED)

    notice = build_confirmation_notice(reservation)

    assert notice.message == compose_confirmation_message(reservation)
    assert notice.link is not None
    assert "11987654321" in notice.link
