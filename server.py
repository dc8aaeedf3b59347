"""
HTTP API for the booking core.

Routes:
- GET   /health
- GET   /salons/{salon_id}/slots?date=YYYY-MM-DD&service_ids=a,b&professional_id=
- POST  /salons/{salon_id}/coupons/validate
- POST  /salons/{salon_id}/appointments
- PATCH /appointments/{appointment_id}/status
- GET   /professionals/{professional_id}/schedule?date=YYYY-MM-DD
- POST  /salons/{salon_id}/waitlist
- GET   /salons/{salon_id}/waitlist?status=
- PATCH /waitlist/{entry_id}/status

Errors are returned as {"status": "error", "error": <kind>, "message": <text>}.
"""

import json
import time
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from aiohttp import web
from aiohttp.web import Request, Response

from booking.service import BookingRequest, BookingService, WaitlistRequest
from config import settings
from db import get_db_client
from models.appointment import AppointmentStatus
from utils.datetime_utils import parse_iso_date
from utils.exceptions import (
    CouponRejectedError,
    DatabaseError,
    NotFoundError,
    RequestTooLargeError,
    SlotNotAvailableError,
    ValidationError,
)
from utils.logging_config import setup_logging

logger = setup_logging(name=__name__, log_file="api.log")

BOOKING_SERVICE_KEY = web.AppKey("booking_service", BookingService)

# Most specific first
ERROR_RESPONSES = [
    (RequestTooLargeError, 413, "request_too_large"),
    (ValidationError, 400, "validation_failed"),
    (NotFoundError, 404, "not_found"),
    (SlotNotAvailableError, 409, "slot_not_available"),
    (DatabaseError, 502, "database_error"),
]

# Statuses a booking may be created with
CREATION_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)

# Health metrics
_health_metrics = {
    "total_requests": 0,
    "failed_requests": 0,
    "bookings_created": 0,
    "slot_conflicts": 0,
    "coupon_rejections": 0,
    "waitlist_entries_created": 0,
    "start_time": time.time(),
}


def _error_response(status: int, error: str, message: str, **extra: Any) -> Response:
    return web.json_response(
        {"status": "error", "error": error, "message": message, **extra},
        status=status,
    )


def _split_ids(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def _parse_amount(value: Any, field: str) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"'{field}' must be a number") from e
    if not amount.is_finite() or amount < 0:
        raise ValidationError(f"'{field}' must be a non-negative number")
    return amount


async def _read_json(request: Request) -> Dict[str, Any]:
    """
    Read a JSON object body, enforcing the configured size limit.

    Raises:
        RequestTooLargeError: If the body exceeds max_request_size_bytes
        ValidationError: If the body is empty or not a JSON object
    """
    max_size = settings.max_request_size_bytes

    # Check Content-Length header if present
    content_length = request.headers.get("Content-Length")
    if content_length:
        try:
            size = int(content_length)
        except ValueError:
            size = 0
        if size > max_size:
            raise RequestTooLargeError(f"Request body exceeds maximum size of {max_size} bytes")

    raw_body = await request.read()
    if len(raw_body) > max_size:
        raise RequestTooLargeError(f"Request body exceeds maximum size of {max_size} bytes")
    if not raw_body:
        raise ValidationError("Empty payload")

    try:
        payload = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValidationError("Request body must be valid JSON") from e

    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


@web.middleware
async def security_headers_middleware(request: Request, handler):
    """Add security headers to all responses."""
    response = await handler(request)

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-XSS-Protection"] = "1; mode=block"
    if settings.is_production:
        response.headers["Strict-Transport-Security"] = (
            "max-age=31536000; includeSubDomains"
        )

    return response


@web.middleware
async def error_middleware(request: Request, handler):
    """Map booking exceptions to JSON error responses."""
    _health_metrics["total_requests"] += 1
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except CouponRejectedError as e:
        _health_metrics["coupon_rejections"] += 1
        logger.info(f"Coupon rejected on {request.method} {request.path}: {e.reason}")
        return _error_response(
            422, "coupon_rejected", str(e), reason=e.result.to_dict()["reason"]
        )
    except Exception as e:
        for exc_type, status, kind in ERROR_RESPONSES:
            if isinstance(e, exc_type):
                if isinstance(e, SlotNotAvailableError):
                    _health_metrics["slot_conflicts"] += 1
                if status >= 500:
                    _health_metrics["failed_requests"] += 1
                    logger.error(f"Store error on {request.method} {request.path}: {e}")
                else:
                    logger.warning(f"{kind} on {request.method} {request.path}: {e}")
                return _error_response(status, kind, str(e))

        _health_metrics["failed_requests"] += 1
        logger.error(
            f"Unexpected error on {request.method} {request.path}: {e}", exc_info=True
        )
        return _error_response(500, "internal_error", "Internal server error")


async def available_slots_handler(request: Request) -> Response:
    """List bookable start times for a set of services on a date."""
    salon_id = request.match_info["salon_id"]
    date_param = request.query.get("date")
    if not date_param:
        raise ValidationError("Query parameter 'date' is required")
    on_date = parse_iso_date(date_param)
    service_ids = _split_ids(request.query.get("service_ids"))
    professional_id = request.query.get("professional_id") or None

    service = request.app[BOOKING_SERVICE_KEY]
    slots = await service.get_available_slots(salon_id, on_date, service_ids, professional_id)

    return web.json_response(
        {
            "status": "success",
            "salon_id": salon_id,
            "date": on_date.isoformat(),
            "professional_id": professional_id,
            "slots": slots,
        }
    )


async def validate_coupon_handler(request: Request) -> Response:
    """Check a coupon code against a subtotal without redeeming it."""
    salon_id = request.match_info["salon_id"]
    payload = await _read_json(request)

    code = payload.get("code")
    if not isinstance(code, str) or not code.strip():
        raise ValidationError("'code' is required")
    subtotal = _parse_amount(payload.get("subtotal", 0), "subtotal")

    service = request.app[BOOKING_SERVICE_KEY]
    result = await service.apply_coupon(salon_id, code, subtotal)

    return web.json_response({"status": "success", "coupon": result.to_dict()})


async def create_appointment_handler(request: Request) -> Response:
    """Create a booking from the public page or the admin screen."""
    salon_id = request.match_info["salon_id"]
    payload = await _read_json(request)

    initial_status = payload.pop("initial_status", None) or AppointmentStatus.PENDING.value
    try:
        initial_status = AppointmentStatus(initial_status)
    except ValueError as e:
        raise ValidationError(f"Unknown appointment status: {initial_status!r}") from e
    if initial_status not in CREATION_STATUSES:
        raise ValidationError("A booking can only be created as pending or confirmed")

    booking_request = BookingRequest.from_payload(salon_id, payload)

    service = request.app[BOOKING_SERVICE_KEY]
    confirmation = await service.create_booking(booking_request, initial_status=initial_status)
    _health_metrics["bookings_created"] += 1

    return web.json_response({"status": "success", **confirmation.to_dict()}, status=201)


async def update_status_handler(request: Request) -> Response:
    """Apply a status transition to an appointment."""
    appointment_id = request.match_info["appointment_id"]
    payload = await _read_json(request)

    status = payload.get("status")
    if not status:
        raise ValidationError("'status' is required")

    service = request.app[BOOKING_SERVICE_KEY]
    appointment = await service.update_appointment_status(appointment_id, status)

    return web.json_response(
        {"status": "success", "appointment": appointment.model_dump(mode="json")}
    )


async def professional_schedule_handler(request: Request) -> Response:
    """A professional's appointments on a day and month-to-date commission."""
    professional_id = request.match_info["professional_id"]
    date_param = request.query.get("date")
    on_date = parse_iso_date(date_param) if date_param else None

    service = request.app[BOOKING_SERVICE_KEY]
    schedule = await service.get_professional_schedule(professional_id, on_date)

    return web.json_response({"status": "success", "schedule": schedule.to_dict()})


async def join_waitlist_handler(request: Request) -> Response:
    """Add a client to a salon's waitlist when no suitable time is free."""
    salon_id = request.match_info["salon_id"]
    payload = await _read_json(request)
    waitlist_request = WaitlistRequest.from_payload(salon_id, payload)

    service = request.app[BOOKING_SERVICE_KEY]
    entry = await service.join_waitlist(waitlist_request)
    _health_metrics["waitlist_entries_created"] += 1

    return web.json_response(
        {"status": "success", "entry": entry.model_dump(mode="json")}, status=201
    )


async def list_waitlist_handler(request: Request) -> Response:
    salon_id = request.match_info["salon_id"]
    status = request.query.get("status") or None

    service = request.app[BOOKING_SERVICE_KEY]
    entries = await service.list_waitlist(salon_id, status)

    return web.json_response(
        {
            "status": "success",
            "salon_id": salon_id,
            "entries": [entry.model_dump(mode="json") for entry in entries],
        }
    )


async def update_waitlist_status_handler(request: Request) -> Response:
    entry_id = request.match_info["entry_id"]
    payload = await _read_json(request)

    status = payload.get("status")
    if not status:
        raise ValidationError("'status' is required")

    service = request.app[BOOKING_SERVICE_KEY]
    entry = await service.update_waitlist_status(entry_id, status)

    return web.json_response({"status": "success", "entry": entry.model_dump(mode="json")})


async def health_check(request: Request) -> Response:
    """
    Health check endpoint with service metrics.

    Returns:
        JSON response with service status, metrics, and configuration info
    """
    uptime_seconds = time.time() - _health_metrics["start_time"]

    return web.json_response(
        {
            "status": "ok",
            "service": "salon-booking-core",
            "timestamp": time.time(),
            "uptime_hours": round(uptime_seconds / 3600, 2),
            "metrics": {
                key: value for key, value in _health_metrics.items() if key != "start_time"
            },
            "configuration": {
                "environment": settings.environment,
                "timezone": settings.timezone,
                "slot_step_minutes": settings.slot_step_minutes,
                "min_lead_minutes": settings.min_lead_minutes,
                "max_request_size_bytes": settings.max_request_size_bytes,
            },
        }
    )


def create_app(booking_service: Optional[BookingService] = None) -> web.Application:
    """
    Create aiohttp application with middleware and routes.

    Args:
        booking_service: Service to serve requests with; built on the
            global Supabase client when omitted

    Returns:
        Configured web application
    """
    app = web.Application(
        middlewares=[security_headers_middleware, error_middleware],
        client_max_size=settings.max_request_size_bytes,
    )
    app[BOOKING_SERVICE_KEY] = booking_service or BookingService(get_db_client())

    app.router.add_get("/health", health_check)
    app.router.add_get("/salons/{salon_id}/slots", available_slots_handler)
    app.router.add_post("/salons/{salon_id}/coupons/validate", validate_coupon_handler)
    app.router.add_post("/salons/{salon_id}/appointments", create_appointment_handler)
    app.router.add_patch("/appointments/{appointment_id}/status", update_status_handler)
    app.router.add_get(
        "/professionals/{professional_id}/schedule", professional_schedule_handler
    )
    app.router.add_post("/salons/{salon_id}/waitlist", join_waitlist_handler)
    app.router.add_get("/salons/{salon_id}/waitlist", list_waitlist_handler)
    app.router.add_patch("/waitlist/{entry_id}/status", update_waitlist_status_handler)

    return app


if __name__ == "__main__":
    logger.info(f"Starting API server on {settings.host}:{settings.port}")
    web.run_app(create_app(), host=settings.host, port=settings.port)
