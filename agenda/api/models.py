"""Pydantic models for API request/response validation."""
from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from agenda.booking import DayAvailability
from agenda.catalog import ProfessionalConfig, ServiceConfig
from agenda.reservations import Reservation, available_actions


class ErrorResponse(BaseModel):
    """Error response schema."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Detailed error information")
    code: Optional[str] = Field(None, description="Error code")
    alternatives: Optional[List[str]] = Field(
        None,
        description="Other start times on the same day (booking conflicts only)"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "Slot Unavailable",
                "detail": "This time slot is no longer available",
                "code": "SLOT_UNAVAILABLE",
                "alternatives": ["14:00", "15:00"]
            }
        }
    )


class SlotResponse(BaseModel):
    """One bookable start time."""
    start_time: str = Field(..., description="HH:MM")
    period: str = Field(..., description="morning | afternoon | evening")


class AvailabilityResponse(BaseModel):
    """Response schema for GET /api/v1/availability."""
    date: date
    status: str = Field(..., description="open | closed | full")
    slots: List[SlotResponse] = Field(default_factory=list)
    periods: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="Start times grouped by part of day"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "date": "2025-03-14",
                "status": "open",
                "slots": [{"start_time": "14:00", "period": "afternoon"}],
                "periods": {"morning": [], "afternoon": ["14:00"], "evening": []}
            }
        }
    )

    @classmethod
    def from_domain(cls, availability: DayAvailability) -> "AvailabilityResponse":
        return cls(
            date=availability.day,
            status=availability.status.value,
            slots=[
                SlotResponse(start_time=s.start_time, period=s.period.value)
                for s in availability.slots
            ],
            periods={
                period.value: [s.start_time for s in slots]
                for period, slots in availability.slots_by_period.items()
            },
        )


class ReservationResponse(BaseModel):
    """A reservation as shown to the client or in the admin panel."""
    id: str
    client_name: str
    client_phone: str
    client_email: Optional[str] = None
    service_name: str
    professional_name: str
    start_at: datetime
    status: str
    created_at: datetime
    wants_reminders: bool = False
    first_time_client: bool = False
    actions: List[str] = Field(
        default_factory=list,
        description="Admin actions available in the current status"
    )

    @classmethod
    def from_domain(cls, reservation: Reservation) -> "ReservationResponse":
        return cls(
            **reservation.model_dump(exclude={"status"}),
            status=reservation.status.value,
            actions=[a.value for a in available_actions(reservation.status)],
        )


class ReviewResponse(BaseModel):
    """Response schema for confirm/decline."""
    reservation: ReservationResponse
    confirmation_message: Optional[str] = Field(
        None,
        description="Text to send the client (confirmations only)"
    )
    messaging_link: Optional[str] = Field(
        None,
        description="Deep link that opens a chat with the message pre-filled"
    )


class ManualBookingRequest(BaseModel):
    """Request schema for bookings entered by an administrator."""
    client_name: str = Field(..., max_length=200)
    client_phone: str = Field(..., max_length=30)
    client_email: Optional[str] = Field(None, max_length=254)
    service_name: str = Field(..., min_length=1, max_length=100)
    professional_name: str = Field(..., min_length=1, max_length=100)
    start_at: datetime = Field(..., description="Local start date and time")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "client_name": "Maria Souza",
                "client_phone": "(11) 98765-4321",
                "service_name": "Manicure",
                "professional_name": "Beatriz Santos",
                "start_at": "2025-03-14T10:00:00"
            }
        }
    )


class LoginRequest(BaseModel):
    """Request schema for POST /api/v1/admin/login."""
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=1, max_length=200)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class LoginResponse(BaseModel):
    """Session token issued on login."""
    token: str
    token_type: str = "bearer"
    expires_in_seconds: int
    capabilities: List[str] = Field(default_factory=list)


class CatalogResponse(BaseModel):
    """Services and professionals offered in the booking widget."""
    services: List[ServiceConfig] = Field(default_factory=list)
    professionals: List[ProfessionalConfig] = Field(default_factory=list)


class SeedResponse(BaseModel):
    """Result of importing the sample catalog."""
    items_written: int
