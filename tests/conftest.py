"""
Pytest configuration and shared fixtures.
"""

from contextlib import ExitStack
from datetime import date, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from models.appointment import Appointment, BusyInterval
from models.client import Client
from models.professional import Professional
from models.salon import Salon
from models.service import Product, Service
from models.waitlist import WaitlistEntry

# Modules that bind `settings` at import time
_SETTINGS_TARGETS = [
    "config.settings",
    "booking.service.settings",
    "db.supabase_client.settings",
    "scheduler.reminders.settings",
    "server.settings",
]

# Monday
MONDAY = date(2026, 1, 12)


@pytest.fixture(autouse=True)
def mock_settings():
    """Mock settings for all tests."""
    mock_settings = MagicMock()
    mock_settings.supabase_url = "https://test.supabase.co"
    mock_settings.supabase_key = "test_key"
    mock_settings.timezone = "America/Sao_Paulo"
    mock_settings.slot_step_minutes = 30
    mock_settings.min_lead_minutes = 30
    mock_settings.reminder_hours_before = 24
    mock_settings.environment = "test"
    mock_settings.is_production = False
    mock_settings.host = "0.0.0.0"
    mock_settings.port = 8000
    mock_settings.max_request_size_bytes = 1024 * 1024
    mock_settings.log_level = "INFO"
    mock_settings.log_dir = "logs"
    mock_settings.public_app_url = None

    with ExitStack() as stack:
        for target in _SETTINGS_TARGETS:
            stack.enter_context(patch(target, mock_settings))
        yield mock_settings


@pytest.fixture
def mock_supabase_client():
    """Create a mock Supabase client."""
    mock_client = MagicMock()
    mock_table = MagicMock()
    mock_client.table.return_value = mock_table
    return mock_client, mock_table


@pytest.fixture
def salon():
    """Salon open 09:00-19:00, Monday to Saturday."""
    return Salon(
        id="salon_1",
        name="Studio Bela",
        opening_time="09:00",
        closing_time="19:00",
        working_days=[1, 2, 3, 4, 5, 6],
    )


@pytest.fixture
def haircut():
    return Service(
        id="svc_cut",
        salon_id="salon_1",
        name="Haircut",
        price=Decimal("60.00"),
        duration_minutes=30,
    )


@pytest.fixture
def coloring():
    return Service(
        id="svc_color",
        salon_id="salon_1",
        name="Coloring",
        price=Decimal("120.00"),
        duration_minutes=90,
    )


@pytest.fixture
def shampoo():
    return Product(
        id="prd_shampoo",
        salon_id="salon_1",
        name="Shampoo",
        price=Decimal("35.00"),
        stock=10,
    )


@pytest.fixture
def ana():
    return Professional(id="pro_ana", salon_id="salon_1", name="Ana", commission_rate=Decimal("40"))


@pytest.fixture
def bruno():
    return Professional(id="pro_bruno", salon_id="salon_1", name="Bruno")


@pytest.fixture
def monday():
    return MONDAY


@pytest.fixture
def make_appointment():
    """Factory for appointment rows, by default Ana at 10:00 on a Monday."""

    def _make(**overrides) -> Appointment:
        data = {
            "id": "apt_1",
            "salon_id": "salon_1",
            "professional_id": "pro_ana",
            "client_id": "cli_1",
            "date": MONDAY,
            "start_time": "10:00",
            "end_time": "10:30",
            "client_name": "Maria",
            "client_phone": "11987654321",
            "price": Decimal("60.00"),
            "final_price": Decimal("60.00"),
            "status": "pending",
        }
        data.update(overrides)
        return Appointment(**data)

    return _make


@pytest.fixture
def make_busy():
    """Factory for busy intervals of the appointments projection."""

    def _make(start, end, professional_id="pro_ana", status="confirmed") -> BusyInterval:
        return BusyInterval(
            start_time=start, end_time=end, professional_id=professional_id, status=status
        )

    return _make


@pytest.fixture
def mock_db(salon, haircut, coloring, shampoo, ana, bruno):
    """Store client double with a salon, two services, a product and two professionals."""
    db = MagicMock()
    services = [haircut, coloring]
    professionals = {ana.id: ana, bruno.id: bruno}

    db.get_salon = AsyncMock(return_value=salon)
    db.get_services = AsyncMock(
        side_effect=lambda salon_id, ids=None: [s for s in services if ids is None or s.id in ids]
    )
    db.get_products = AsyncMock(
        side_effect=lambda salon_id, ids: [p for p in [shampoo] if p.id in ids]
    )
    db.get_professional = AsyncMock(side_effect=lambda pid: professionals.get(pid))
    db.list_professionals = AsyncMock(return_value=[ana, bruno])
    db.list_appointments = AsyncMock(return_value=[])
    db.insert_appointment = AsyncMock(
        side_effect=lambda data: Appointment(id="apt_new", **data.model_dump())
    )
    db.insert_appointment_items = AsyncMock(side_effect=lambda items: len(items))
    db.find_coupon = AsyncMock(return_value=None)
    db.increment_coupon_usage = AsyncMock(return_value=1)
    db.find_client_by_phone = AsyncMock(return_value=None)
    db.create_client = AsyncMock(
        side_effect=lambda data: Client(
            id="cli_new",
            salon_id=data.salon_id,
            name=data.name,
            phone=data.phone,
            email=data.email,
        )
    )
    db.update_client = AsyncMock()
    db.get_appointment = AsyncMock(return_value=None)
    db.update_appointment_status = AsyncMock()
    db.delete_appointment = AsyncMock()
    db.get_professional_appointments = AsyncMock(return_value=[])
    db.get_completed_revenue = AsyncMock(return_value=Decimal("0"))
    db.add_waitlist_entry = AsyncMock(
        side_effect=lambda data: WaitlistEntry(id="wl_new", **data.model_dump())
    )
    db.list_waitlist = AsyncMock(return_value=[])
    db.get_waitlist_entry = AsyncMock(return_value=None)
    db.update_waitlist_entry = AsyncMock()
    return db


@pytest.fixture
def fixed_clock():
    """Salon-local clock frozen at noon on the Sunday before the test Monday."""
    return lambda: datetime(2026, 1, 11, 12, 0)


@pytest.fixture
def make_waitlist_entry():
    """Factory for waitlist rows, by default a waiting haircut request."""

    def _make(**overrides) -> WaitlistEntry:
        data = {
            "id": "wl_1",
            "salon_id": "salon_1",
            "client_id": "cli_1",
            "client_name": "Maria",
            "client_phone": "11987654321",
            "service_id": "svc_cut",
            "status": "waiting",
        }
        data.update(overrides)
        return WaitlistEntry(**data)

    return _make
