"""Salon models: operating calendar of a tenant."""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from utils.constants import (
    DEFAULT_CLOSING_TIME,
    DEFAULT_OPENING_TIME,
    DEFAULT_WORKING_DAYS,
)


class Salon(BaseModel):
    """Salon model.

    Times are kept as the ``HH:MM`` strings the store returns; they are
    parsed (and validated) by the availability resolver.
    """

    id: Optional[str] = None
    name: str
    address: Optional[str] = None
    city: Optional[str] = None
    phone: Optional[str] = None
    whatsapp: Optional[str] = None
    opening_time: str = Field(default=DEFAULT_OPENING_TIME, description="HH:MM")
    closing_time: str = Field(default=DEFAULT_CLOSING_TIME, description="HH:MM")
    working_days: List[int] = Field(
        default_factory=lambda: list(DEFAULT_WORKING_DAYS),
        description="Weekdays the salon operates (0 = Sunday)",
    )
    is_active: bool = True

    @field_validator("opening_time", mode="before")
    @classmethod
    def default_opening_time(cls, v: Optional[str]) -> str:
        return v or DEFAULT_OPENING_TIME

    @field_validator("closing_time", mode="before")
    @classmethod
    def default_closing_time(cls, v: Optional[str]) -> str:
        return v or DEFAULT_CLOSING_TIME

    @field_validator("working_days", mode="before")
    @classmethod
    def validate_working_days(cls, v: Optional[List[int]]) -> List[int]:
        """Null falls back to Monday..Saturday; values must be within 0..6."""
        if v is None:
            return list(DEFAULT_WORKING_DAYS)
        days = sorted({int(day) for day in v})
        invalid = [day for day in days if day < 0 or day > 6]
        if invalid:
            raise ValueError(f"working_days must be within 0..6, got {invalid}")
        return days

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Barbearia Central",
                "opening_time": "09:00",
                "closing_time": "19:00",
                "working_days": [1, 2, 3, 4, 5, 6],
            }
        }
