"""
Supabase database client with the queries the booking service needs.
Handles reads of salons, catalogue and appointments, and the writes of the
booking flow (clients, appointments, items, coupon usage, notifications,
waitlist).

Row Level Security (RLS) Notes:
==============================
This client uses the service_role key, which bypasses RLS. Public pages of
the product read through RLS policies configured in the Supabase dashboard.

Double bookings are only prevented by the store. The appointments table is
expected to carry an exclusion constraint such as:

    ALTER TABLE appointments ADD CONSTRAINT appointments_no_overlap
    EXCLUDE USING gist (
        professional_id WITH =,
        tsrange(date + start_time, date + end_time) WITH &&
    ) WHERE (status IN ('pending', 'confirmed'));

An insert rejected by it surfaces as SlotNotAvailableError.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from postgrest.exceptions import APIError
from supabase import Client as SupabaseClientType
from supabase import create_client

from config import settings
from models.appointment import (
    OCCUPYING_STATUSES,
    Appointment,
    AppointmentCreate,
    AppointmentStatus,
    BusyInterval,
)
from models.cart import AppointmentItem
from models.client import Client, ClientCreate
from models.coupon import Coupon
from models.notification import Notification, NotificationType
from models.professional import Professional
from models.salon import Salon
from models.service import Product, Service
from models.waitlist import (
    ACTIVE_WAITLIST_STATUSES,
    WaitlistEntry,
    WaitlistEntryCreate,
    WaitlistStatus,
)
from utils.constants import APPOINTMENTS_PAGE_SIZE, CACHE_TTL_MINUTES
from utils.datetime_utils import format_time_of_day, parse_time_of_day, utc_now
from utils.exceptions import (
    AppointmentCreationError,
    DatabaseError,
    SlotNotAvailableError,
)

# unique_violation, exclusion_violation
_CONFLICT_CODES = {"23505", "23P01"}


class SupabaseClient:
    """
    Supabase database client wrapper.

    Includes a simple in-memory cache for salon and catalogue reads, which
    change rarely compared to appointments.
    """

    def __init__(self):
        self.client: SupabaseClientType = create_client(
            settings.supabase_url, settings.supabase_key
        )

        # Format: {cache_key: (data, expiry_time)}
        self._cache: Dict[str, Tuple[Any, datetime]] = {}
        self._cache_ttl = timedelta(minutes=CACHE_TTL_MINUTES)

    # ========== Cache Helpers ==========

    def _get_from_cache(self, key: str) -> Optional[Any]:
        """Get value from cache if not expired."""
        if key not in self._cache:
            return None

        data, expiry = self._cache[key]
        if utc_now() > expiry:
            del self._cache[key]
            return None

        return data

    def _set_cache(self, key: str, value: Any) -> None:
        """Set value in cache with TTL."""
        self._cache[key] = (value, utc_now() + self._cache_ttl)

    # ========== Salon & Catalogue ==========

    async def get_salon(self, salon_id: str) -> Optional[Salon]:
        """Get salon by ID (cached)."""
        cache_key = f"salon:{salon_id}"
        cached = self._get_from_cache(cache_key)
        if cached is not None:
            return cached

        try:
            response = (
                self.client.table("salons").select("*").eq("id", salon_id).execute()
            )

            if not response.data:
                return None

            salon = Salon(**response.data[0])
            self._set_cache(cache_key, salon)
            return salon
        except Exception as e:
            raise DatabaseError(f"Failed to get salon: {e}") from e

    async def get_services(
        self, salon_id: str, service_ids: Optional[List[str]] = None
    ) -> List[Service]:
        """Get active services of a salon, optionally restricted to IDs."""
        cache_key = f"services:{salon_id}"
        services = self._get_from_cache(cache_key)

        if services is None:
            try:
                response = (
                    self.client.table("services")
                    .select("*")
                    .eq("salon_id", salon_id)
                    .eq("is_active", True)
                    .order("name")
                    .execute()
                )
                services = [Service(**item) for item in response.data]
                self._set_cache(cache_key, services)
            except Exception as e:
                raise DatabaseError(f"Failed to get services: {e}") from e

        if service_ids is None:
            return list(services)
        wanted = set(service_ids)
        return [service for service in services if service.id in wanted]

    async def get_products(self, salon_id: str, product_ids: List[str]) -> List[Product]:
        """Get active, in-stock products by IDs."""
        if not product_ids:
            return []

        try:
            response = (
                self.client.table("products")
                .select("*")
                .eq("salon_id", salon_id)
                .eq("is_active", True)
                .gt("stock", 0)
                .in_("id", product_ids)
                .execute()
            )
            return [Product(**item) for item in response.data]
        except Exception as e:
            raise DatabaseError(f"Failed to get products: {e}") from e

    async def get_professional(self, professional_id: str) -> Optional[Professional]:
        """Get professional by ID."""
        try:
            response = (
                self.client.table("professionals")
                .select("*")
                .eq("id", professional_id)
                .execute()
            )

            if response.data:
                return Professional(**response.data[0])
            return None
        except Exception as e:
            raise DatabaseError(f"Failed to get professional: {e}") from e

    async def list_professionals(self, salon_id: str) -> List[Professional]:
        """Get active professionals of a salon ordered by name."""
        try:
            response = (
                self.client.table("professionals")
                .select("*")
                .eq("salon_id", salon_id)
                .eq("is_active", True)
                .order("name")
                .execute()
            )
            return [Professional(**item) for item in response.data]
        except Exception as e:
            raise DatabaseError(f"Failed to list professionals: {e}") from e

    # ========== Appointment Operations ==========

    async def list_appointments(
        self,
        salon_id: str,
        on_date: date,
        statuses: Iterable[AppointmentStatus] = OCCUPYING_STATUSES,
        professional_id: Optional[str] = None,
    ) -> List[BusyInterval]:
        """
        Get the occupied time ranges of a salon on a date.

        Args:
            salon_id: Salon ID
            on_date: Appointment date
            statuses: Statuses to include (pending/confirmed by default)
            professional_id: Restrict to one professional

        Returns:
            List of busy intervals ordered by start time
        """
        try:
            query = (
                self.client.table("appointments")
                .select("start_time, end_time, professional_id, status")
                .eq("salon_id", salon_id)
                .eq("date", on_date.isoformat())
                .in_("status", sorted(AppointmentStatus(s).value for s in statuses))
            )

            if professional_id:
                query = query.eq("professional_id", professional_id)

            response = query.order("start_time").execute()

            return [BusyInterval(**item) for item in response.data]
        except Exception as e:
            raise DatabaseError(f"Failed to list appointments: {e}") from e

    async def insert_appointment(self, appointment_data: AppointmentCreate) -> Appointment:
        """
        Insert a new appointment row.

        Raises:
            SlotNotAvailableError: If the store rejects the row as a double booking
            AppointmentCreationError: For any other failure
        """
        try:
            response = (
                self.client.table("appointments")
                .insert(appointment_data.to_row())
                .execute()
            )

            if not response.data:
                raise AppointmentCreationError("Failed to create appointment: no data returned")

            return self._parse_appointment(response.data[0])
        except DatabaseError:
            raise
        except APIError as e:
            if e.code in _CONFLICT_CODES:
                raise SlotNotAvailableError(
                    f"Slot {appointment_data.date} {appointment_data.start_time} is no longer available"
                ) from e
            raise AppointmentCreationError(f"Failed to create appointment: {e}") from e
        except Exception as e:
            raise AppointmentCreationError(f"Failed to create appointment: {e}") from e

    async def insert_appointment_items(self, items: List[AppointmentItem]) -> int:
        """Insert the ordered line items of an appointment. Returns rows written."""
        if not items:
            return 0

        try:
            rows = [item.model_dump(mode="json", exclude_none=True) for item in items]
            response = self.client.table("appointment_items").insert(rows).execute()
            return len(response.data or [])
        except Exception as e:
            raise DatabaseError(f"Failed to insert appointment items: {e}") from e

    async def delete_appointment(self, appointment_id: str) -> None:
        """Delete an appointment and its items."""
        try:
            self.client.table("appointment_items").delete().eq(
                "appointment_id", appointment_id
            ).execute()
            self.client.table("appointments").delete().eq("id", appointment_id).execute()
        except Exception as e:
            raise DatabaseError(f"Failed to delete appointment: {e}") from e

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        """Get appointment by ID."""
        try:
            response = (
                self.client.table("appointments")
                .select("*")
                .eq("id", appointment_id)
                .execute()
            )

            if response.data:
                return self._parse_appointment(response.data[0])
            return None
        except Exception as e:
            raise DatabaseError(f"Failed to get appointment: {e}") from e

    async def update_appointment_status(
        self, appointment_id: str, status: AppointmentStatus
    ) -> Optional[Appointment]:
        """Update appointment status."""
        try:
            update_data = {
                "status": AppointmentStatus(status).value,
                "updated_at": utc_now().isoformat(),
            }

            response = (
                self.client.table("appointments")
                .update(update_data)
                .eq("id", appointment_id)
                .execute()
            )

            if not response.data:
                return None

            return self._parse_appointment(response.data[0])
        except APIError as e:
            if e.code in _CONFLICT_CODES:
                raise SlotNotAvailableError(
                    f"Appointment {appointment_id} overlaps another booking"
                ) from e
            raise DatabaseError(f"Failed to update appointment status: {e}") from e
        except Exception as e:
            raise DatabaseError(f"Failed to update appointment status: {e}") from e

    async def get_professional_appointments(
        self, professional_id: str, on_date: date
    ) -> List[Appointment]:
        """Get a professional's appointments on a date ordered by start time."""
        try:
            response = (
                self.client.table("appointments")
                .select("*")
                .eq("professional_id", professional_id)
                .eq("date", on_date.isoformat())
                .order("start_time")
                .execute()
            )
            return [self._parse_appointment(item) for item in response.data]
        except Exception as e:
            raise DatabaseError(f"Failed to get professional appointments: {e}") from e

    async def get_completed_revenue(
        self, professional_id: str, since: date, until: date
    ) -> Decimal:
        """Sum of final prices of a professional's completed appointments in [since, until]."""
        try:
            response = (
                self.client.table("appointments")
                .select("final_price")
                .eq("professional_id", professional_id)
                .eq("status", AppointmentStatus.COMPLETED.value)
                .gte("date", since.isoformat())
                .lte("date", until.isoformat())
                .execute()
            )
            return sum(
                (Decimal(str(item.get("final_price") or 0)) for item in response.data),
                Decimal("0"),
            )
        except Exception as e:
            raise DatabaseError(f"Failed to get completed revenue: {e}") from e

    async def get_upcoming_appointments(
        self, start_date: date, end_date: date, page_size: int = APPOINTMENTS_PAGE_SIZE
    ) -> List[Appointment]:
        """
        Get pending/confirmed appointments with a date in [start_date, end_date].

        Rows of all salons are read page by page until the window is exhausted.
        """
        appointments: List[Appointment] = []
        offset = 0
        try:
            while True:
                response = (
                    self.client.table("appointments")
                    .select("*")
                    .in_("status", sorted(s.value for s in OCCUPYING_STATUSES))
                    .gte("date", start_date.isoformat())
                    .lte("date", end_date.isoformat())
                    .order("date")
                    .order("start_time")
                    .order("id")
                    .range(offset, offset + page_size - 1)
                    .execute()
                )
                appointments.extend(self._parse_appointment(item) for item in response.data)
                if len(response.data) < page_size:
                    return appointments
                offset += page_size
        except Exception as e:
            raise DatabaseError(f"Failed to get upcoming appointments: {e}") from e

    # ========== Coupon Operations ==========

    async def find_coupon(self, salon_id: str, code: str) -> Optional[Coupon]:
        """Find an active coupon of a salon by (upper-cased) code."""
        try:
            response = (
                self.client.table("coupons")
                .select("*")
                .eq("salon_id", salon_id)
                .eq("code", code.strip().upper())
                .eq("is_active", True)
                .limit(1)
                .execute()
            )

            if response.data:
                return Coupon(**response.data[0])
            return None
        except Exception as e:
            raise DatabaseError(f"Failed to find coupon: {e}") from e

    async def increment_coupon_usage(self, coupon_id: str) -> int:
        """
        Increment a coupon's uses_count and return the new value.

        Read-then-write; concurrent redemptions may undercount.
        """
        try:
            response = (
                self.client.table("coupons")
                .select("uses_count")
                .eq("id", coupon_id)
                .execute()
            )
            current = (response.data[0].get("uses_count") or 0) if response.data else 0

            self.client.table("coupons").update({"uses_count": current + 1}).eq(
                "id", coupon_id
            ).execute()
            return current + 1
        except Exception as e:
            raise DatabaseError(f"Failed to increment coupon usage: {e}") from e

    # ========== Client Operations ==========

    async def find_client_by_phone(self, salon_id: str, phone: str) -> Optional[Client]:
        """Get the salon's client record for a phone number."""
        try:
            response = (
                self.client.table("clients")
                .select("*")
                .eq("salon_id", salon_id)
                .eq("phone", phone)
                .limit(1)
                .execute()
            )

            if response.data:
                return Client(**response.data[0])
            return None
        except Exception as e:
            raise DatabaseError(f"Failed to find client: {e}") from e

    async def create_client(self, client_data: ClientCreate) -> Client:
        """Create a new client."""
        try:
            response = self.client.table("clients").insert(client_data.to_row()).execute()

            if not response.data:
                raise DatabaseError("Failed to create client: no data returned")

            return Client(**response.data[0])
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError(f"Failed to create client: {e}") from e

    async def update_client(self, client_id: str, update_data: Dict[str, Any]) -> Optional[Client]:
        """Update a client's contact details."""
        try:
            update_data = {**update_data, "updated_at": utc_now().isoformat()}
            response = (
                self.client.table("clients")
                .update(update_data)
                .eq("id", client_id)
                .execute()
            )

            if not response.data:
                return None

            return Client(**response.data[0])
        except Exception as e:
            raise DatabaseError(f"Failed to update client: {e}") from e

    # ========== Notification Operations ==========

    async def create_notification(self, notification: Notification) -> Notification:
        """Queue a notification for the messaging function."""
        try:
            response = (
                self.client.table("notifications")
                .insert(notification.to_row())
                .execute()
            )

            if not response.data:
                raise DatabaseError("Failed to create notification: no data returned")

            return Notification(**response.data[0])
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError(f"Failed to create notification: {e}") from e

    async def get_notified_appointment_ids(
        self, appointment_ids: List[str], notification_type: NotificationType
    ) -> set:
        """IDs among ``appointment_ids`` that already have a notification of this type."""
        if not appointment_ids:
            return set()

        try:
            response = (
                self.client.table("notifications")
                .select("appointment_id")
                .eq("type", NotificationType(notification_type).value)
                .in_("appointment_id", appointment_ids)
                .execute()
            )
            return {item["appointment_id"] for item in response.data}
        except Exception as e:
            raise DatabaseError(f"Failed to get notifications: {e}") from e

    # ========== Waitlist Operations ==========

    async def add_waitlist_entry(self, entry: WaitlistEntryCreate) -> WaitlistEntry:
        """Add a client to a salon's waitlist."""
        try:
            response = self.client.table("waitlist").insert(entry.to_row()).execute()

            if not response.data:
                raise DatabaseError("Failed to add waitlist entry: no data returned")

            return WaitlistEntry(**response.data[0])
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError(f"Failed to add waitlist entry: {e}") from e

    async def list_waitlist(
        self,
        salon_id: str,
        statuses: Iterable[WaitlistStatus] = ACTIVE_WAITLIST_STATUSES,
    ) -> List[WaitlistEntry]:
        """Get a salon's waitlist, highest priority first, then oldest first."""
        try:
            response = (
                self.client.table("waitlist")
                .select("*")
                .eq("salon_id", salon_id)
                .in_("status", sorted(WaitlistStatus(s).value for s in statuses))
                .order("priority", desc=True)
                .order("created_at")
                .execute()
            )
            return [WaitlistEntry(**item) for item in response.data]
        except Exception as e:
            raise DatabaseError(f"Failed to get waitlist: {e}") from e

    async def get_waitlist_entry(self, entry_id: str) -> Optional[WaitlistEntry]:
        """Get waitlist entry by ID."""
        try:
            response = self.client.table("waitlist").select("*").eq("id", entry_id).execute()

            if response.data:
                return WaitlistEntry(**response.data[0])
            return None
        except Exception as e:
            raise DatabaseError(f"Failed to get waitlist entry: {e}") from e

    async def update_waitlist_entry(
        self, entry_id: str, update_data: Dict[str, Any]
    ) -> Optional[WaitlistEntry]:
        """Update a waitlist entry's status or timestamps."""
        try:
            update_data = {**update_data, "updated_at": utc_now().isoformat()}
            response = (
                self.client.table("waitlist")
                .update(update_data)
                .eq("id", entry_id)
                .execute()
            )

            if not response.data:
                return None

            return WaitlistEntry(**response.data[0])
        except Exception as e:
            raise DatabaseError(f"Failed to update waitlist entry: {e}") from e

    # ========== Helper Methods ==========

    def _parse_appointment(self, item: dict) -> Appointment:
        """
        Parse appointment data from database response.

        Postgres returns `time` columns as HH:MM:SS; they are normalized to HH:MM.
        """
        item = item.copy()
        for field in ["start_time", "end_time"]:
            if item.get(field):
                item[field] = format_time_of_day(parse_time_of_day(item[field]))
        return Appointment(**item)


# Global database client instance
_db_client: Optional[SupabaseClient] = None


def get_db_client() -> SupabaseClient:
    """Get or create database client instance."""
    global _db_client
    if _db_client is None:
        _db_client = SupabaseClient()
    return _db_client
