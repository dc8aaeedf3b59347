"""Waitlist models: clients waiting for a slot to open up."""

import datetime as dt
from enum import Enum
from typing import Dict, FrozenSet, Optional

from pydantic import BaseModel, Field


class WaitlistStatus(str, Enum):
    """Waitlist entry status."""

    WAITING = "waiting"
    NOTIFIED = "notified"
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


# Entries still in the queue
ACTIVE_WAITLIST_STATUSES: FrozenSet[WaitlistStatus] = frozenset(
    {WaitlistStatus.WAITING, WaitlistStatus.NOTIFIED}
)

# Scheduled, cancelled and expired entries are final
WAITLIST_TRANSITIONS: Dict[WaitlistStatus, FrozenSet[WaitlistStatus]] = {
    WaitlistStatus.WAITING: frozenset(
        {
            WaitlistStatus.NOTIFIED,
            WaitlistStatus.SCHEDULED,
            WaitlistStatus.CANCELLED,
            WaitlistStatus.EXPIRED,
        }
    ),
    WaitlistStatus.NOTIFIED: frozenset(
        {
            WaitlistStatus.WAITING,
            WaitlistStatus.SCHEDULED,
            WaitlistStatus.CANCELLED,
            WaitlistStatus.EXPIRED,
        }
    ),
    WaitlistStatus.SCHEDULED: frozenset(),
    WaitlistStatus.CANCELLED: frozenset(),
    WaitlistStatus.EXPIRED: frozenset(),
}


def can_move_waitlist(current: WaitlistStatus, target: WaitlistStatus) -> bool:
    return WaitlistStatus(target) in WAITLIST_TRANSITIONS[WaitlistStatus(current)]


class WaitlistEntryCreate(BaseModel):
    """Waitlist insert model."""

    salon_id: str
    client_id: Optional[str] = None
    client_name: str
    client_phone: str
    service_id: Optional[str] = None
    professional_id: Optional[str] = None
    preferred_date: Optional[dt.date] = None
    preferred_time_start: Optional[str] = None
    preferred_time_end: Optional[str] = None
    notes: Optional[str] = None
    priority: int = Field(default=0, ge=0)
    status: WaitlistStatus = WaitlistStatus.WAITING

    class Config:
        use_enum_values = True

    def to_row(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


class WaitlistEntry(WaitlistEntryCreate):
    """Waitlist entry as stored."""

    id: str
    notified_at: Optional[dt.datetime] = None
    scheduled_at: Optional[dt.datetime] = None
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None

    class Config:
        use_enum_values = True
        json_schema_extra = {
            "example": {
                "id": "uuid-here",
                "salon_id": "uuid-here",
                "client_name": "João Silva",
                "client_phone": "11987654321",
                "service_id": "uuid-here",
                "preferred_date": "2026-01-15",
                "preferred_time_start": "09:00",
                "preferred_time_end": "12:00",
                "priority": 0,
                "status": "waiting",
            }
        }
