"""Service and product catalogue models."""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class Service(BaseModel):
    """Bookable salon service."""

    id: Optional[str] = None
    salon_id: str
    name: str
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0)
    duration_minutes: int = Field(..., gt=0, description="Duration in minutes")
    icon: Optional[str] = None
    is_active: bool = True

    class Config:
        json_schema_extra = {
            "example": {
                "salon_id": "uuid-here",
                "name": "Corte Masculino",
                "price": "45.00",
                "duration_minutes": 30,
            }
        }


class Product(BaseModel):
    """Retail product that can be added to a booking cart."""

    id: Optional[str] = None
    salon_id: str
    name: str
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0)
    stock: int = Field(default=0, ge=0)
    category: Optional[str] = None
    is_active: bool = True
