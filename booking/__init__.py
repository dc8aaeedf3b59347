"""Booking core: availability, coupons and the booking service."""

from .availability import compute_available_slots, is_slot_available
from .coupons import calculate_discount, validate_coupon
from .service import (
    BookingConfirmation,
    BookingRequest,
    BookingService,
    ProfessionalDaySchedule,
    WaitlistRequest,
)

__all__ = [
    "BookingConfirmation",
    "BookingRequest",
    "BookingService",
    "ProfessionalDaySchedule",
    "WaitlistRequest",
    "calculate_discount",
    "compute_available_slots",
    "is_slot_available",
    "validate_coupon",
]
