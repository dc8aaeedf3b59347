"""
Booking service: orchestrates the store, the availability resolver and the
coupon validator for the public booking flow and the staff screens.
"""

import datetime as dt
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, ClassVar, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from booking.availability import (
    compute_available_slots,
    end_time_for,
    is_slot_available,
)
from booking.coupons import CENTS, validate_coupon
from config import settings
from models.appointment import (
    OCCUPYING_STATUSES,
    Appointment,
    AppointmentCreate,
    AppointmentStatus,
    BusyInterval,
    can_transition,
)
from models.cart import AppointmentItem, Cart, CartItem
from models.client import Client, ClientCreate
from models.coupon import CouponResult
from models.professional import Professional
from models.salon import Salon
from models.waitlist import (
    ACTIVE_WAITLIST_STATUSES,
    WaitlistEntry,
    WaitlistEntryCreate,
    WaitlistStatus,
    can_move_waitlist,
)
from utils.constants import MAX_CLIENT_NAME_LENGTH, MAX_COUPON_CODE_LENGTH, MAX_NOTES_LENGTH
from utils.datetime_utils import (
    format_time_of_day,
    local_now,
    month_start,
    parse_time_of_day,
    utc_now,
)
from utils.exceptions import (
    AppointmentNotFoundError,
    CouponRejectedError,
    DatabaseError,
    ProfessionalNotFoundError,
    SalonNotFoundError,
    ServiceNotFoundError,
    SlotNotAvailableError,
    ValidationError,
    WaitlistEntryNotFoundError,
)
from utils.validation import (
    normalize_coupon_code,
    normalize_phone,
    sanitize_text,
    validate_phone,
)

logger = logging.getLogger(__name__)

ANY_PROFESSIONAL = "any"


class ClientDetails(BaseModel):
    """Contact fields shared by bookings and waitlist requests."""

    kind: ClassVar[str] = "client"

    salon_id: str
    client_name: str = ""
    client_phone: str = ""
    client_email: Optional[str] = None
    client_birth_date: Optional[dt.date] = None
    professional_id: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("professional_id", mode="before")
    @classmethod
    def any_professional(cls, v):
        if v is None or str(v).strip().lower() in ("", ANY_PROFESSIONAL):
            return None
        return v

    @field_validator("client_email", "notes", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @classmethod
    def from_payload(cls, salon_id: str, payload: Dict[str, Any]):
        """
        Build a request from a JSON body.

        Raises:
            ValidationError: If the body does not describe a request of this kind
        """
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")
        try:
            return cls(**{**payload, "salon_id": salon_id})
        except PydanticValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise ValidationError(f"Invalid {cls.kind} request: {fields}") from e


class BookingRequest(ClientDetails):
    """Booking submitted from the public page or the admin screen."""

    kind: ClassVar[str] = "booking"

    service_ids: List[str] = Field(default_factory=list)
    product_ids: List[str] = Field(default_factory=list)
    date: dt.date
    start_time: str
    coupon_code: Optional[str] = None

    @field_validator("coupon_code", mode="before")
    @classmethod
    def blank_code_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class WaitlistRequest(ClientDetails):
    """A client asking to be told when a time opens up."""

    kind: ClassVar[str] = "waitlist"

    service_id: Optional[str] = None
    preferred_date: Optional[dt.date] = None
    preferred_time_start: Optional[str] = None
    preferred_time_end: Optional[str] = None
    priority: int = Field(default=0, ge=0)

    @field_validator(
        "service_id", "preferred_time_start", "preferred_time_end", mode="before"
    )
    @classmethod
    def blank_field_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class BookingConfirmation(BaseModel):
    """Result of a successful booking."""

    appointment: Appointment
    items: List[AppointmentItem]
    coupon: Optional[CouponResult] = None

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")


class ProfessionalDaySchedule(BaseModel):
    """A professional's day as shown on their dashboard."""

    professional_id: str
    date: dt.date
    appointments: List[Appointment]
    upcoming: List[Appointment]
    next_appointment: Optional[Appointment] = None
    completed_count: int = 0
    month_commission: Decimal = Decimal("0")

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")


class BookingService:
    """
    Booking operations on top of a store client.

    Args:
        db: Store client (see db.supabase_client.SupabaseClient)
        clock: Returns the salon's current wall-clock time as a naive datetime
        utc_clock: Returns the current UTC time, used for coupon validity
            and waitlist timestamps
    """

    def __init__(
        self,
        db,
        clock: Optional[Callable[[], datetime]] = None,
        utc_clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.clock = clock or (lambda: local_now(settings.timezone))
        self.utc_clock = utc_clock
        self.step_minutes = settings.slot_step_minutes
        self.lead_minutes = settings.min_lead_minutes

    # ========== Lookups ==========

    async def _get_salon(self, salon_id: str) -> Salon:
        salon = await self.db.get_salon(salon_id)
        if salon is None or not salon.is_active:
            raise SalonNotFoundError(f"Salon {salon_id} not found")
        return salon

    async def _get_professional(self, salon_id: str, professional_id: str) -> Professional:
        professional = await self.db.get_professional(professional_id)
        if professional is None or not professional.is_active or professional.salon_id != salon_id:
            raise ProfessionalNotFoundError(f"Professional {professional_id} not found")
        return professional

    async def build_cart(
        self,
        salon_id: str,
        service_ids: List[str],
        product_ids: Optional[List[str]] = None,
    ) -> Cart:
        """
        Build an ordered cart from service and product IDs.

        A repeated ID becomes one line with a higher quantity, kept at the
        position of its first occurrence.

        Raises:
            ServiceNotFoundError: If an ID is unknown or inactive
        """
        items: List[CartItem] = []

        service_counts = _count_in_order(service_ids)
        if service_counts:
            services = {s.id: s for s in await self.db.get_services(salon_id, list(service_counts))}
            missing = [sid for sid in service_counts if sid not in services]
            if missing:
                raise ServiceNotFoundError(f"Services not found: {', '.join(missing)}")
            items.extend(
                CartItem.from_service(services[sid], qty) for sid, qty in service_counts.items()
            )

        product_counts = _count_in_order(product_ids or [])
        if product_counts:
            products = {p.id: p for p in await self.db.get_products(salon_id, list(product_counts))}
            missing = [pid for pid in product_counts if pid not in products]
            if missing:
                raise ServiceNotFoundError(f"Products not found: {', '.join(missing)}")
            items.extend(
                CartItem.from_product(products[pid], qty) for pid, qty in product_counts.items()
            )

        return Cart(items=items)

    # ========== Availability ==========

    def _slots_for(
        self,
        salon: Salon,
        on_date: date,
        duration: int,
        existing: List[BusyInterval],
        professional: Optional[Professional],
        now: datetime,
    ) -> List[str]:
        return compute_available_slots(
            salon,
            on_date,
            duration,
            existing,
            professional.id if professional else None,
            professional=professional,
            now=now,
            step_minutes=self.step_minutes,
            lead_minutes=self.lead_minutes,
        )

    async def get_available_slots(
        self,
        salon_id: str,
        on_date: date,
        service_ids: List[str],
        professional_id: Optional[str] = None,
    ) -> List[str]:
        """
        Bookable start times for the given services on ``on_date``.

        Without a professional, a time is offered when at least one active
        professional is free; a salon without professionals is checked as a
        single calendar.
        """
        salon = await self._get_salon(salon_id)
        cart = await self.build_cart(salon_id, service_ids)
        if cart.is_empty():
            return []

        duration = cart.total_duration_minutes
        existing = await self.db.list_appointments(salon_id, on_date, OCCUPYING_STATUSES)
        now = self.clock()

        if professional_id and professional_id != ANY_PROFESSIONAL:
            professional = await self._get_professional(salon_id, professional_id)
            return self._slots_for(salon, on_date, duration, existing, professional, now)

        professionals = await self.db.list_professionals(salon_id)
        if not professionals:
            return self._slots_for(salon, on_date, duration, existing, None, now)

        slots = set()
        for professional in professionals:
            slots.update(self._slots_for(salon, on_date, duration, existing, professional, now))
        # HH:MM sorts chronologically
        return sorted(slots)

    async def _first_free_professional(
        self,
        salon: Salon,
        on_date: date,
        start_time: str,
        duration: int,
        existing: List[BusyInterval],
        now: datetime,
    ) -> Optional[Professional]:
        professionals = await self.db.list_professionals(salon.id)
        if not professionals:
            raise ProfessionalNotFoundError(f"Salon {salon.id} has no active professionals")

        for professional in professionals:
            if is_slot_available(
                salon,
                on_date,
                start_time,
                duration,
                existing,
                professional.id,
                professional=professional,
                now=now,
                step_minutes=self.step_minutes,
                lead_minutes=self.lead_minutes,
            ):
                return professional
        return None

    # ========== Coupons ==========

    async def apply_coupon(self, salon_id: str, code: str, subtotal: Decimal) -> CouponResult:
        """Look up a coupon by code and validate it against ``subtotal``."""
        code = normalize_coupon_code(code)
        if not code or len(code) > MAX_COUPON_CODE_LENGTH:
            return validate_coupon(None, subtotal, self.utc_clock())

        coupon = await self.db.find_coupon(salon_id, code)
        result = validate_coupon(coupon, subtotal, self.utc_clock())

        if not result.valid:
            logger.info(f"Coupon {code} rejected for salon {salon_id}: {result.reason}")
        return result

    # ========== Booking ==========

    def _validate_client(self, request: ClientDetails) -> None:
        if not sanitize_text(request.client_name):
            raise ValidationError("Client name is required")
        if not validate_phone(request.client_phone):
            raise ValidationError("A valid client phone is required")

    def _validate_request(self, request: BookingRequest) -> None:
        self._validate_client(request)
        if not request.service_ids:
            raise ValidationError("At least one service is required")

    async def _find_or_create_client(self, request: ClientDetails) -> Client:
        phone = normalize_phone(request.client_phone)
        client = await self.db.find_client_by_phone(request.salon_id, phone)
        if client is not None:
            if request.client_email and not client.email:
                updated = await self.db.update_client(client.id, {"email": request.client_email})
                return updated or client
            return client

        try:
            client_data = ClientCreate(
                salon_id=request.salon_id,
                name=sanitize_text(request.client_name, MAX_CLIENT_NAME_LENGTH),
                phone=phone,
                email=request.client_email,
                birth_date=request.client_birth_date,
            )
        except PydanticValidationError as e:
            raise ValidationError("Invalid client email") from e

        client = await self.db.create_client(client_data)
        logger.info(f"Created client {client.id} for salon {request.salon_id}")
        return client

    async def _discard_appointment(self, appointment_id: str) -> None:
        """Remove a half-written booking so its slot is freed again."""
        try:
            await self.db.delete_appointment(appointment_id)
            logger.warning(f"Rolled back appointment {appointment_id} after a failed write")
        except DatabaseError as e:
            logger.error(f"Failed to roll back appointment {appointment_id}: {e}", exc_info=True)

    async def create_booking(
        self,
        request: BookingRequest,
        initial_status: AppointmentStatus = AppointmentStatus.PENDING,
    ) -> BookingConfirmation:
        """
        Create an appointment with its items.

        Bookings from the public page start as pending; staff-created
        bookings may pass ``initial_status=CONFIRMED``.

        Raises:
            ValidationError: Missing client fields, empty cart or bad time
            SlotNotAvailableError: The chosen time is no longer free
            CouponRejectedError: The coupon cannot be applied
            NotFoundError: Unknown salon, professional or service
        """
        self._validate_request(request)
        salon = await self._get_salon(request.salon_id)

        cart = await self.build_cart(request.salon_id, request.service_ids, request.product_ids)
        if cart.is_empty():
            raise ValidationError("At least one service is required")

        duration = cart.total_duration_minutes
        start_time = format_time_of_day(parse_time_of_day(request.start_time))
        existing = await self.db.list_appointments(
            request.salon_id, request.date, OCCUPYING_STATUSES
        )
        now = self.clock()

        if request.professional_id:
            professional = await self._get_professional(request.salon_id, request.professional_id)
            free = is_slot_available(
                salon,
                request.date,
                start_time,
                duration,
                existing,
                professional.id,
                professional=professional,
                now=now,
                step_minutes=self.step_minutes,
                lead_minutes=self.lead_minutes,
            )
            if not free:
                professional = None
        else:
            professional = await self._first_free_professional(
                salon, request.date, start_time, duration, existing, now
            )

        if professional is None:
            raise SlotNotAvailableError(f"Slot {request.date} {start_time} is not available")

        coupon_result = None
        discount = Decimal("0")
        if request.coupon_code:
            coupon_result = await self.apply_coupon(
                request.salon_id, request.coupon_code, cart.total
            )
            if not coupon_result.valid:
                raise CouponRejectedError(coupon_result)
            discount = coupon_result.discount

        client = await self._find_or_create_client(request)

        appointment_data = AppointmentCreate(
            salon_id=request.salon_id,
            service_id=cart.main_service.item_id,
            professional_id=professional.id,
            client_id=client.id,
            date=request.date,
            start_time=start_time,
            end_time=end_time_for(start_time, duration),
            client_name=client.name,
            client_phone=client.phone,
            client_birthday=request.client_birth_date,
            coupon_id=coupon_result.coupon_id if coupon_result else None,
            price=cart.total,
            discount=discount,
            final_price=cart.final_price(discount).quantize(CENTS),
            notes=sanitize_text(request.notes, MAX_NOTES_LENGTH) or None,
            status=initial_status,
        )
        appointment = await self.db.insert_appointment(appointment_data)

        items = [
            AppointmentItem.from_cart_item(appointment.id, position, item)
            for position, item in enumerate(cart.items)
        ]
        try:
            await self.db.insert_appointment_items(items)
            if coupon_result and coupon_result.coupon_id:
                await self.db.increment_coupon_usage(coupon_result.coupon_id)
        except Exception:
            await self._discard_appointment(appointment.id)
            raise

        logger.info(
            f"Booked appointment {appointment.id} at salon {request.salon_id} "
            f"on {request.date} {start_time} with professional {professional.id}"
        )
        return BookingConfirmation(appointment=appointment, items=items, coupon=coupon_result)

    # ========== Staff Operations ==========

    async def update_appointment_status(self, appointment_id: str, status: Any) -> Appointment:
        """
        Move an appointment to a new status.

        Raises:
            ValidationError: Unknown status or transition not allowed
            AppointmentNotFoundError: No such appointment
        """
        try:
            target = AppointmentStatus(status)
        except ValueError as e:
            raise ValidationError(f"Unknown appointment status: {status!r}") from e

        appointment = await self.db.get_appointment(appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")

        current = AppointmentStatus(appointment.status)
        if not can_transition(current, target):
            raise ValidationError(
                f"Cannot change appointment status from {current.value} to {target.value}"
            )

        updated = await self.db.update_appointment_status(appointment_id, target)
        if updated is None:
            raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")

        logger.info(f"Appointment {appointment_id}: {current.value} -> {target.value}")
        return updated

    async def get_professional_schedule(
        self, professional_id: str, on_date: Optional[date] = None
    ) -> ProfessionalDaySchedule:
        """Appointments of a professional on a day plus month-to-date commission."""
        professional = await self.db.get_professional(professional_id)
        if professional is None:
            raise ProfessionalNotFoundError(f"Professional {professional_id} not found")

        now = self.clock()
        on_date = on_date or now.date()

        appointments = await self.db.get_professional_appointments(professional_id, on_date)
        upcoming = [a for a in appointments if AppointmentStatus(a.status) in OCCUPYING_STATUSES]
        completed_count = sum(
            1 for a in appointments if AppointmentStatus(a.status) == AppointmentStatus.COMPLETED
        )

        next_appointment = None
        if on_date > now.date():
            next_appointment = upcoming[0] if upcoming else None
        elif on_date == now.date():
            current_minutes = now.hour * 60 + now.minute
            next_appointment = next(
                (a for a in upcoming if parse_time_of_day(a.start_time) >= current_minutes),
                None,
            )

        revenue = await self.db.get_completed_revenue(
            professional_id, month_start(on_date), on_date
        )
        commission = (revenue * professional.commission_rate / Decimal("100")).quantize(CENTS)

        return ProfessionalDaySchedule(
            professional_id=professional_id,
            date=on_date,
            appointments=appointments,
            upcoming=upcoming,
            next_appointment=next_appointment,
            completed_count=completed_count,
            month_commission=commission,
        )

    # ========== Waitlist ==========

    async def join_waitlist(self, request: WaitlistRequest) -> WaitlistEntry:
        """
        Put a client on a salon's waitlist.

        Raises:
            ValidationError: Missing client fields, past date or bad time range
            NotFoundError: Unknown salon, professional or service
        """
        self._validate_client(request)
        await self._get_salon(request.salon_id)

        if request.service_id:
            await self.build_cart(request.salon_id, [request.service_id])
        if request.professional_id:
            await self._get_professional(request.salon_id, request.professional_id)

        if request.preferred_date and request.preferred_date < self.clock().date():
            raise ValidationError("Preferred date is in the past")

        time_start = time_end = None
        if request.preferred_time_start:
            time_start = format_time_of_day(parse_time_of_day(request.preferred_time_start))
        if request.preferred_time_end:
            time_end = format_time_of_day(parse_time_of_day(request.preferred_time_end))
        if time_start and time_end and time_start >= time_end:
            raise ValidationError("Preferred time range must end after it starts")

        client = await self._find_or_create_client(request)

        entry = await self.db.add_waitlist_entry(
            WaitlistEntryCreate(
                salon_id=request.salon_id,
                client_id=client.id,
                client_name=client.name,
                client_phone=client.phone,
                service_id=request.service_id,
                professional_id=request.professional_id,
                preferred_date=request.preferred_date,
                preferred_time_start=time_start,
                preferred_time_end=time_end,
                notes=sanitize_text(request.notes, MAX_NOTES_LENGTH) or None,
                priority=request.priority,
            )
        )
        logger.info(f"Client {client.id} joined the waitlist of salon {request.salon_id}")
        return entry

    async def list_waitlist(
        self, salon_id: str, status: Optional[str] = None
    ) -> List[WaitlistEntry]:
        """A salon's waitlist; waiting and notified entries unless ``status`` is given."""
        statuses = ACTIVE_WAITLIST_STATUSES
        if status:
            try:
                statuses = frozenset({WaitlistStatus(status)})
            except ValueError as e:
                raise ValidationError(f"Unknown waitlist status: {status!r}") from e

        await self._get_salon(salon_id)
        return await self.db.list_waitlist(salon_id, statuses)

    async def update_waitlist_status(self, entry_id: str, status: Any) -> WaitlistEntry:
        """
        Move a waitlist entry to a new status, stamping when it was notified
        or scheduled.

        Raises:
            ValidationError: Unknown status or transition not allowed
            WaitlistEntryNotFoundError: No such entry
        """
        try:
            target = WaitlistStatus(status)
        except ValueError as e:
            raise ValidationError(f"Unknown waitlist status: {status!r}") from e

        entry = await self.db.get_waitlist_entry(entry_id)
        if entry is None:
            raise WaitlistEntryNotFoundError(f"Waitlist entry {entry_id} not found")

        current = WaitlistStatus(entry.status)
        if not can_move_waitlist(current, target):
            raise ValidationError(
                f"Cannot change waitlist status from {current.value} to {target.value}"
            )

        update_data: Dict[str, Any] = {"status": target.value}
        if target == WaitlistStatus.NOTIFIED:
            update_data["notified_at"] = self.utc_clock().isoformat()
        elif target == WaitlistStatus.SCHEDULED:
            update_data["scheduled_at"] = self.utc_clock().isoformat()

        updated = await self.db.update_waitlist_entry(entry_id, update_data)
        if updated is None:
            raise WaitlistEntryNotFoundError(f"Waitlist entry {entry_id} not found")

        logger.info(f"Waitlist entry {entry_id}: {current.value} -> {target.value}")
        return updated


def _count_in_order(ids: List[str]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for item_id in ids:
        counts[item_id] = counts.get(item_id, 0) + 1
    return counts
