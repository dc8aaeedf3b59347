"""Appointment models."""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Dict, FrozenSet, Optional

from pydantic import BaseModel, Field


class AppointmentStatus(str, Enum):
    """Appointment status."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


# Statuses that block a slot for availability purposes
OCCUPYING_STATUSES: FrozenSet[AppointmentStatus] = frozenset(
    {AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED}
)

# Admin-driven transitions
ALLOWED_TRANSITIONS: Dict[AppointmentStatus, FrozenSet[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset(
        {AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {
            AppointmentStatus.COMPLETED,
            AppointmentStatus.NO_SHOW,
            AppointmentStatus.CANCELLED,
        }
    ),
    AppointmentStatus.COMPLETED: frozenset({AppointmentStatus.CONFIRMED}),
    AppointmentStatus.CANCELLED: frozenset({AppointmentStatus.PENDING}),
    AppointmentStatus.NO_SHOW: frozenset({AppointmentStatus.PENDING}),
}


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return AppointmentStatus(target) in ALLOWED_TRANSITIONS[AppointmentStatus(current)]


class BusyInterval(BaseModel):
    """Time range already taken by an appointment (the `start_time, end_time,
    professional_id` projection of the appointments table)."""

    start_time: str
    end_time: str
    professional_id: Optional[str] = None
    status: AppointmentStatus = AppointmentStatus.CONFIRMED


class Appointment(BaseModel):
    """Appointment model."""

    id: Optional[str] = None
    salon_id: str
    service_id: Optional[str] = None
    professional_id: str
    client_id: Optional[str] = None
    date: dt.date
    start_time: str
    end_time: str
    client_name: Optional[str] = None
    client_phone: Optional[str] = None
    client_birthday: Optional[dt.date] = None
    coupon_id: Optional[str] = None
    price: Decimal = Field(default=Decimal("0"), ge=0)
    discount: Decimal = Field(default=Decimal("0"), ge=0)
    final_price: Decimal = Field(default=Decimal("0"), ge=0)
    notes: Optional[str] = None
    status: AppointmentStatus = AppointmentStatus.PENDING
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None

    class Config:
        use_enum_values = True
        json_schema_extra = {
            "example": {
                "salon_id": "uuid-here",
                "service_id": "uuid-here",
                "professional_id": "uuid-here",
                "date": "2026-01-15",
                "start_time": "10:00",
                "end_time": "10:30",
                "client_name": "João Silva",
                "client_phone": "11987654321",
                "price": "45.00",
                "final_price": "45.00",
                "status": "pending",
            }
        }


class AppointmentCreate(BaseModel):
    """Appointment insert model."""

    salon_id: str
    service_id: str
    professional_id: str
    client_id: Optional[str] = None
    date: dt.date
    start_time: str
    end_time: str
    client_name: str
    client_phone: Optional[str] = None
    client_birthday: Optional[dt.date] = None
    coupon_id: Optional[str] = None
    price: Decimal
    discount: Decimal = Decimal("0")
    final_price: Decimal
    notes: Optional[str] = None
    status: AppointmentStatus = AppointmentStatus.PENDING

    def to_row(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)
