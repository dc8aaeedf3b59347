"""Pydantic models for data validation and serialization."""

from .appointment import (
    ALLOWED_TRANSITIONS,
    OCCUPYING_STATUSES,
    Appointment,
    AppointmentCreate,
    AppointmentStatus,
    BusyInterval,
)
from .cart import AppointmentItem, Cart, CartItem, CartItemKind
from .client import Client, ClientCreate
from .coupon import Coupon, CouponRejection, CouponResult, CouponType
from .notification import (
    Notification,
    NotificationChannel,
    NotificationStatus,
    NotificationType,
)
from .professional import Professional, WorkingHours
from .salon import Salon
from .service import Product, Service
from .waitlist import (
    ACTIVE_WAITLIST_STATUSES,
    WaitlistEntry,
    WaitlistEntryCreate,
    WaitlistStatus,
)

__all__ = [
    "ACTIVE_WAITLIST_STATUSES",
    "ALLOWED_TRANSITIONS",
    "OCCUPYING_STATUSES",
    "Appointment",
    "AppointmentCreate",
    "AppointmentItem",
    "AppointmentStatus",
    "BusyInterval",
    "Cart",
    "CartItem",
    "CartItemKind",
    "Client",
    "ClientCreate",
    "Coupon",
    "CouponRejection",
    "CouponResult",
    "CouponType",
    "Notification",
    "NotificationChannel",
    "NotificationStatus",
    "NotificationType",
    "Product",
    "Professional",
    "Salon",
    "Service",
    "WaitlistEntry",
    "WaitlistEntryCreate",
    "WaitlistStatus",
    "WorkingHours",
]
