"""Notification queue models.

Rows are delivered by the managed messaging function; this service only
queues them.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class NotificationChannel(str, Enum):
    WHATSAPP = "whatsapp"
    PUSH = "push"


class NotificationStatus(str, Enum):
    PENDING = "pending"
    SCHEDULED = "scheduled"
    SENT = "sent"
    FAILED = "failed"


class NotificationType(str, Enum):
    APPOINTMENT_REMINDER = "appointment_reminder"
    APPOINTMENT_CREATED = "appointment_created"


class Notification(BaseModel):
    id: Optional[str] = None
    salon_id: str
    client_id: Optional[str] = None
    appointment_id: Optional[str] = None
    type: NotificationType
    channel: NotificationChannel = NotificationChannel.WHATSAPP
    title: Optional[str] = None
    message: str
    phone: Optional[str] = None
    status: NotificationStatus = NotificationStatus.PENDING
    scheduled_for: Optional[datetime] = None  # UTC

    class Config:
        use_enum_values = True

    def to_row(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)
