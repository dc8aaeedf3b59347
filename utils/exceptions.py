"""
Custom exception classes for booking operations.
Provides specific error types instead of generic exceptions.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from models.coupon import CouponResult


class ValidationError(Exception):
    """Raised when input validation fails (malformed time, empty cart, missing fields)."""

    pass


class DatabaseError(Exception):
    """Base exception for remote store operations."""

    pass


class NotFoundError(DatabaseError):
    """Base exception for rows that do not exist in the store."""

    pass


class SalonNotFoundError(NotFoundError):
    """Raised when a salon is not found."""

    pass


class ServiceNotFoundError(NotFoundError):
    """Raised when a requested service is not found or inactive."""

    pass


class ProfessionalNotFoundError(NotFoundError):
    """Raised when a professional is not found or inactive."""

    pass


class AppointmentNotFoundError(NotFoundError):
    """Raised when an appointment is not found."""

    pass


class WaitlistEntryNotFoundError(NotFoundError):
    """Raised when a waitlist entry is not found."""

    pass


class SlotNotAvailableError(DatabaseError):
    """Raised when the chosen slot is taken or rejected by the store at insert time."""

    pass


class AppointmentCreationError(DatabaseError):
    """Raised when appointment creation fails."""

    pass


class CouponRejectedError(Exception):
    """Raised when a coupon cannot be applied to a booking."""

    def __init__(self, result: "CouponResult"):
        super().__init__(result.message)
        self.result = result

    @property
    def reason(self):
        return self.result.reason


class RequestTooLargeError(ValidationError):
    """Raised when a request body exceeds the configured maximum size."""

    pass
