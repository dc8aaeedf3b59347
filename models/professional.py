"""Professional models."""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class WorkingHours(BaseModel):
    """Per-professional override of the salon's opening hours."""

    start: str = Field(..., description="HH:MM")
    end: str = Field(..., description="HH:MM")


class Professional(BaseModel):
    """Professional (barber, stylist) working at a salon."""

    id: Optional[str] = None
    salon_id: str
    name: str
    specialty: Optional[str] = None
    phone: Optional[str] = None
    working_hours: Optional[WorkingHours] = None
    working_days: Optional[List[int]] = None
    commission_rate: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    is_active: bool = True

    @field_validator("working_days")
    @classmethod
    def validate_working_days(cls, v: Optional[List[int]]) -> Optional[List[int]]:
        if v is None:
            return None
        days = sorted({int(day) for day in v})
        if any(day < 0 or day > 6 for day in days):
            raise ValueError("working_days must be within 0..6")
        return days

    @field_validator("commission_rate", mode="before")
    @classmethod
    def default_commission_rate(cls, v):
        return Decimal("0") if v is None else v
