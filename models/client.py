"""Client models for salon customer records."""

from datetime import date, datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, EmailStr, Field


class Client(BaseModel):
    """Client model."""

    id: Optional[str] = None
    salon_id: str
    name: str
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    preferences: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        json_schema_extra = {
            "example": {
                "salon_id": "uuid-here",
                "name": "João Silva",
                "phone": "11987654321",
                "email": "joao@example.com",
                "preferences": {"birth_date": "1990-05-17"},
            }
        }


class ClientCreate(BaseModel):
    """Client creation model."""

    salon_id: str
    name: str
    phone: str
    email: Optional[EmailStr] = None
    birth_date: Optional[date] = None

    def to_row(self) -> Dict[str, Any]:
        preferences: Dict[str, Any] = {}
        if self.birth_date:
            preferences["birth_date"] = self.birth_date.isoformat()
        return {
            "salon_id": self.salon_id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "preferences": preferences,
        }
