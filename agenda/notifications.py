"""Confirmation messages sent to clients out of band.

The message is only composed here; the administrator delivers it by
opening the messaging link.
"""
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

from agenda import config
from agenda.reservations import Reservation


@dataclass
class ConfirmationNotice:
    """Text to send to the client and the deep link that pre-fills it."""
    message: str
    link: Optional[str] = None


def compose_confirmation_message(reservation: Reservation) -> str:
    """Confirmation text with client, service, professional, date and time."""
    day = reservation.start_at.strftime("%d/%m/%Y")
    hour = reservation.start_at.strftime("%H:%M")
    return (
        f"Hello, {reservation.client_name}! Your *{reservation.service_name}* appointment "
        f"with *{reservation.professional_name}* on *{day} at {hour}* has been CONFIRMED. "
        f"See you at {config.BUSINESS_NAME}!"
    )


def messaging_link(phone: str, message: str) -> Optional[str]:
    """
    Deep link that opens a chat with ``phone`` and ``message`` pre-filled.

    Returns None when the phone number has no digits.
    """
    digits = re.sub(r'\D', '', phone or "")
    if not digits:
        return None
    return (
        f"{config.MESSAGING_BASE_URL}?phone={config.MESSAGING_COUNTRY_CODE}{digits}"
        f"&text={quote(message, safe='')}"
    )


def build_confirmation_notice(reservation: Reservation) -> ConfirmationNotice:
    """Message plus link for a freshly confirmed reservation."""
    message = compose_confirmation_message(reservation)
    return ConfirmationNotice(
        message=message,
        link=messaging_link(reservation.client_phone, message)
    )
