"""Coupon models for booking discounts."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class CouponType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class CouponRejection(str, Enum):
    """Rejection reasons, in the order they are checked."""

    NOT_FOUND = "not_found"
    NOT_YET_VALID = "not_yet_valid"
    EXPIRED = "expired"
    USAGE_EXHAUSTED = "usage_exhausted"
    BELOW_MINIMUM_PURCHASE = "below_minimum_purchase"


class Coupon(BaseModel):
    """Coupon model."""

    id: Optional[str] = None
    salon_id: str
    code: str
    type: CouponType = CouponType.PERCENTAGE
    value: Decimal = Field(..., ge=0)
    min_purchase: Optional[Decimal] = None
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    max_uses: Optional[int] = None
    uses_count: int = 0
    is_active: bool = True
    is_new_clients_only: bool = False

    @field_validator("code")
    @classmethod
    def upper_code(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("uses_count", mode="before")
    @classmethod
    def default_uses_count(cls, v):
        return 0 if v is None else v

    @field_validator("is_active", "is_new_clients_only", mode="before")
    @classmethod
    def default_flags(cls, v, info):
        if v is None:
            return info.field_name == "is_active"
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "salon_id": "uuid-here",
                "code": "BEMVINDO10",
                "type": "percentage",
                "value": "10",
                "min_purchase": "50.00",
                "max_uses": 100,
            }
        }


class CouponResult(BaseModel):
    """Outcome of validating a coupon against a subtotal."""

    valid: bool
    discount: Decimal = Decimal("0")
    reason: Optional[CouponRejection] = None
    message: str
    coupon_id: Optional[str] = None

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")
