# agenda/catalog.py
"""
Catalog of services and professionals.

Reservations reference these by name only; durations are shown to the
client but never used to size slots.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from agenda import config


class ServiceConfig(BaseModel):
    """A service offered by the salon."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "manicure",
                "name": "Manicure",
                "description": "Unhas impecáveis e bem cuidadas",
                "duration_minutes": 60,
                "price": 40.0
            }
        }
    )

    id: Optional[str] = Field(None, description="Unique service ID (assigned if omitted)")
    name: str = Field(..., min_length=1, max_length=100, description="Service name")
    description: str = Field("", max_length=500, description="Service description")
    duration_minutes: int = Field(..., gt=0, le=480, description="Duration in minutes (1-480)")
    price: float = Field(..., ge=0, description="Price (0 or positive)")


class ProfessionalConfig(BaseModel):
    """A professional who takes bookings."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "beatriz-santos",
                "name": "Beatriz Santos",
                "role": "Manicure & Makeup",
                "service_ids": ["manicure", "maquiagem"]
            }
        }
    )

    id: Optional[str] = Field(None, description="Unique professional ID (assigned if omitted)")
    name: str = Field(..., min_length=1, max_length=100, description="Display name")
    role: str = Field("", max_length=100, description="Role or speciality")
    service_ids: List[str] = Field(
        ...,
        min_length=1,
        description="IDs of the services this professional performs"
    )


def seed_services() -> List[ServiceConfig]:
    """Sample services imported by the admin seed action."""
    return [ServiceConfig(**svc) for svc in config.SEED_SERVICES]


def seed_professionals() -> List[ProfessionalConfig]:
    """Sample professionals imported by the admin seed action."""
    return [ProfessionalConfig(**prof) for prof in config.SEED_PROFESSIONALS]
