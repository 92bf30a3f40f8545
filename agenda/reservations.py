"""Reservation record and its review lifecycle.

A reservation is created ``pending`` by the booking flow and reviewed once
by an administrator:

    pending -> confirmed   (accept)
    pending -> declined    (reject)

Both outcomes are terminal. Deleting a reservation is a separate,
irreversible operation available from any status.
"""
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ReservationStatus(str, Enum):
    """Review status of a reservation."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DECLINED = "declined"


class ReservationAction(str, Enum):
    """Actions an administrator can be offered for a reservation."""
    ACCEPT = "accept"
    REJECT = "reject"
    DELETE = "delete"


# Current status -> statuses it may move to
VALID_TRANSITIONS: Dict[ReservationStatus, List[ReservationStatus]] = {
    ReservationStatus.PENDING: [
        ReservationStatus.CONFIRMED,
        ReservationStatus.DECLINED,
    ],
    ReservationStatus.CONFIRMED: [],
    ReservationStatus.DECLINED: [],
}

ACTION_TARGETS: Dict[ReservationAction, ReservationStatus] = {
    ReservationAction.ACCEPT: ReservationStatus.CONFIRMED,
    ReservationAction.REJECT: ReservationStatus.DECLINED,
}


class InvalidStatusTransition(Exception):
    """Raised when a status change is not allowed from the current status."""

    def __init__(self, current: ReservationStatus, target: ReservationStatus):
        super().__init__(
            f"Cannot change reservation status from '{current.value}' to '{target.value}'"
        )
        self.current = current
        self.target = target


class Reservation(BaseModel):
    """A client's request for a slot with a professional."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "3f2b9c1e8a7d4e05",
                "client_name": "Maria Souza",
                "client_phone": "(11) 98765-4321",
                "client_email": "maria@example.com",
                "service_name": "Manicure",
                "professional_name": "Beatriz Santos",
                "start_at": "2025-03-14T10:00:00",
                "status": "pending",
                "wants_reminders": True,
                "first_time_client": False
            }
        }
    )

    id: Optional[str] = Field(None, description="Assigned by the store on creation")
    client_name: str = Field(..., min_length=1, max_length=100)
    client_phone: str = Field(..., min_length=1, max_length=30)
    client_email: Optional[str] = Field(None, max_length=254)
    service_name: str = Field(..., min_length=1, max_length=100)
    professional_name: str = Field(..., min_length=1, max_length=100)
    start_at: datetime = Field(..., description="Local start date and time")
    status: ReservationStatus = ReservationStatus.PENDING
    created_at: datetime = Field(default_factory=datetime.now)
    wants_reminders: bool = False
    first_time_client: bool = False

    @field_validator("start_at")
    @classmethod
    def to_local_naive(cls, v: datetime) -> datetime:
        """Store times in the salon's local zone without tzinfo."""
        if v.tzinfo is not None:
            return v.astimezone().replace(tzinfo=None)
        return v


def can_transition(current: ReservationStatus, target: ReservationStatus) -> bool:
    """Whether ``current -> target`` is an allowed status change."""
    return target in VALID_TRANSITIONS.get(current, [])


def transition(reservation: Reservation, target: ReservationStatus) -> Reservation:
    """
    Move a reservation to ``target``.

    Args:
        reservation: Reservation in its current status
        target: Desired status

    Returns:
        Updated copy of the reservation

    Raises:
        InvalidStatusTransition: If the change is not allowed
    """
    if not can_transition(reservation.status, target):
        raise InvalidStatusTransition(reservation.status, target)
    return reservation.model_copy(update={"status": target})


def available_actions(status: ReservationStatus) -> List[ReservationAction]:
    """Actions to offer for a reservation in ``status``. Delete is always offered."""
    actions = [
        action for action, target in ACTION_TARGETS.items()
        if can_transition(status, target)
    ]
    actions.append(ReservationAction.DELETE)
    return actions
