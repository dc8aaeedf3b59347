"""
Unit tests for the booking service with a mocked store.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from booking.service import BookingRequest, BookingService
from models.appointment import AppointmentStatus
from models.client import Client
from models.coupon import Coupon, CouponRejection
from utils.exceptions import (
    AppointmentNotFoundError,
    CouponRejectedError,
    DatabaseError,
    ProfessionalNotFoundError,
    SalonNotFoundError,
    ServiceNotFoundError,
    SlotNotAvailableError,
    ValidationError,
)

UTC_NOW = datetime(2026, 1, 11, 15, 0, tzinfo=timezone.utc)


@pytest.fixture
def service(mock_db, fixed_clock):
    return BookingService(mock_db, clock=fixed_clock, utc_clock=lambda: UTC_NOW)


@pytest.fixture
def booking_request(monday):
    return BookingRequest(
        salon_id="salon_1",
        service_ids=["svc_cut"],
        professional_id="pro_ana",
        date=monday,
        start_time="10:00",
        client_name="Maria Souza",
        client_phone="(11) 98765-4321",
    )


@pytest.fixture
def welcome_coupon():
    return Coupon(
        id="cpn_1",
        salon_id="salon_1",
        code="BEMVINDO10",
        type="percentage",
        value=Decimal("10"),
        min_purchase=Decimal("50"),
    )


class TestAvailableSlots:
    @pytest.mark.asyncio
    async def test_professional_slots(self, service, mock_db, monday, make_busy):
        mock_db.list_appointments.return_value = [make_busy("10:00", "10:30")]

        slots = await service.get_available_slots("salon_1", monday, ["svc_cut"], "pro_ana")

        assert "10:00" not in slots
        assert "09:30" in slots
        assert "10:30" in slots

    @pytest.mark.asyncio
    async def test_any_professional_is_union(self, service, mock_db, monday, make_busy):
        mock_db.list_appointments.return_value = [
            make_busy("10:00", "10:30", professional_id="pro_ana"),
            make_busy("11:00", "11:30", professional_id="pro_ana"),
            make_busy("11:00", "11:30", professional_id="pro_bruno"),
        ]

        slots = await service.get_available_slots("salon_1", monday, ["svc_cut"], "any")

        assert "10:00" in slots
        assert "11:00" not in slots
        assert slots == sorted(slots)
        assert len(slots) == len(set(slots))

    @pytest.mark.asyncio
    async def test_salon_without_professionals(self, service, mock_db, monday, make_busy):
        mock_db.list_professionals.return_value = []
        mock_db.list_appointments.return_value = [make_busy("10:00", "10:30")]

        slots = await service.get_available_slots("salon_1", monday, ["svc_cut"])

        assert "10:00" not in slots

    @pytest.mark.asyncio
    async def test_duration_sums_services(self, service, monday):
        slots = await service.get_available_slots(
            "salon_1", monday, ["svc_cut", "svc_color"], "pro_ana"
        )

        # 30 + 90 minutes must end by 19:00
        assert slots[-1] == "17:00"

    @pytest.mark.asyncio
    async def test_empty_cart(self, service, mock_db, monday):
        assert await service.get_available_slots("salon_1", monday, []) == []
        mock_db.list_appointments.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_service(self, service, monday):
        with pytest.raises(ServiceNotFoundError):
            await service.get_available_slots("salon_1", monday, ["svc_missing"])

    @pytest.mark.asyncio
    async def test_unknown_salon(self, service, mock_db, monday):
        mock_db.get_salon.return_value = None

        with pytest.raises(SalonNotFoundError):
            await service.get_available_slots("salon_x", monday, ["svc_cut"])

    @pytest.mark.asyncio
    async def test_professional_from_other_salon(self, service, mock_db, monday, ana):
        mock_db.get_professional.side_effect = None
        mock_db.get_professional.return_value = ana.model_copy(update={"salon_id": "salon_2"})

        with pytest.raises(ProfessionalNotFoundError):
            await service.get_available_slots("salon_1", monday, ["svc_cut"], "pro_ana")


class TestApplyCoupon:
    @pytest.mark.asyncio
    async def test_valid(self, service, mock_db, welcome_coupon):
        mock_db.find_coupon.return_value = welcome_coupon

        result = await service.apply_coupon("salon_1", "bemvindo10", Decimal("100"))

        assert result.valid
        assert result.discount == Decimal("10.00")
        mock_db.find_coupon.assert_called_once_with("salon_1", "BEMVINDO10")

    @pytest.mark.asyncio
    async def test_unknown_code(self, service):
        result = await service.apply_coupon("salon_1", "NOPE", Decimal("100"))

        assert result.reason == CouponRejection.NOT_FOUND

    @pytest.mark.asyncio
    async def test_blank_code_skips_lookup(self, service, mock_db):
        result = await service.apply_coupon("salon_1", "   ", Decimal("100"))

        assert not result.valid
        mock_db.find_coupon.assert_not_called()


class TestCreateBooking:
    @pytest.mark.asyncio
    async def test_books_with_coupon_and_product(
        self, service, mock_db, booking_request, welcome_coupon
    ):
        mock_db.find_coupon.return_value = welcome_coupon
        request = booking_request.model_copy(
            update={"product_ids": ["prd_shampoo"], "coupon_code": "bemvindo10"}
        )

        confirmation = await service.create_booking(request)

        appointment = confirmation.appointment
        assert appointment.id == "apt_new"
        assert appointment.professional_id == "pro_ana"
        assert appointment.start_time == "10:00"
        assert appointment.end_time == "10:30"
        assert appointment.price == Decimal("95.00")
        assert appointment.discount == Decimal("9.50")
        assert appointment.final_price == Decimal("85.50")
        assert appointment.status == "pending"
        assert appointment.service_id == "svc_cut"
        assert appointment.coupon_id == "cpn_1"

        assert [item.position for item in confirmation.items] == [0, 1]
        assert [item.item_id for item in confirmation.items] == ["svc_cut", "prd_shampoo"]
        mock_db.insert_appointment_items.assert_called_once()
        mock_db.increment_coupon_usage.assert_called_once_with("cpn_1")

    @pytest.mark.asyncio
    async def test_creates_client_with_normalized_phone(self, service, mock_db, booking_request):
        confirmation = await service.create_booking(booking_request)

        client_data = mock_db.create_client.call_args[0][0]
        assert client_data.phone == "11987654321"
        assert confirmation.appointment.client_id == "cli_new"
        mock_db.increment_coupon_usage.assert_not_called()

    @pytest.mark.asyncio
    async def test_reuses_existing_client(self, service, mock_db, booking_request):
        mock_db.find_client_by_phone.return_value = Client(
            id="cli_1", salon_id="salon_1", name="Maria", phone="11987654321"
        )

        confirmation = await service.create_booking(booking_request)

        mock_db.create_client.assert_not_called()
        assert confirmation.appointment.client_id == "cli_1"

    @pytest.mark.asyncio
    async def test_any_professional_picks_first_free(
        self, service, mock_db, booking_request, make_busy
    ):
        mock_db.list_appointments.return_value = [make_busy("10:00", "10:30")]
        request = booking_request.model_copy(update={"professional_id": None})

        confirmation = await service.create_booking(request)

        assert confirmation.appointment.professional_id == "pro_bruno"

    @pytest.mark.asyncio
    async def test_taken_slot(self, service, mock_db, booking_request, make_busy):
        mock_db.list_appointments.return_value = [make_busy("09:30", "10:30")]

        with pytest.raises(SlotNotAvailableError):
            await service.create_booking(booking_request)

        mock_db.insert_appointment.assert_not_called()

    @pytest.mark.asyncio
    async def test_off_grid_time(self, service, mock_db, booking_request):
        request = booking_request.model_copy(update={"start_time": "10:10"})

        with pytest.raises(SlotNotAvailableError):
            await service.create_booking(request)

    @pytest.mark.asyncio
    async def test_malformed_time(self, service, booking_request):
        request = booking_request.model_copy(update={"start_time": "ten"})

        with pytest.raises(ValidationError):
            await service.create_booking(request)

    @pytest.mark.asyncio
    async def test_store_conflict_propagates(self, service, mock_db, booking_request):
        mock_db.insert_appointment.side_effect = SlotNotAvailableError("taken")

        with pytest.raises(SlotNotAvailableError):
            await service.create_booking(booking_request)

        mock_db.insert_appointment_items.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejected_coupon(self, service, mock_db, booking_request, welcome_coupon):
        mock_db.find_coupon.return_value = welcome_coupon.model_copy(
            update={"min_purchase": Decimal("100")}
        )
        request = booking_request.model_copy(update={"coupon_code": "BEMVINDO10"})

        with pytest.raises(CouponRejectedError) as exc_info:
            await service.create_booking(request)

        assert exc_info.value.reason == CouponRejection.BELOW_MINIMUM_PURCHASE
        mock_db.insert_appointment.assert_not_called()

    @pytest.mark.asyncio
    async def test_products_count_towards_minimum_purchase(
        self, service, mock_db, booking_request, welcome_coupon
    ):
        mock_db.find_coupon.return_value = welcome_coupon.model_copy(
            update={"min_purchase": Decimal("80")}
        )
        request = booking_request.model_copy(
            update={"product_ids": ["prd_shampoo"], "coupon_code": "BEMVINDO10"}
        )

        confirmation = await service.create_booking(request)

        assert confirmation.coupon.valid
        assert confirmation.appointment.discount == Decimal("9.50")

    @pytest.mark.asyncio
    async def test_failed_items_write_rolls_back(self, service, mock_db, booking_request):
        mock_db.insert_appointment_items.side_effect = DatabaseError("down")

        with pytest.raises(DatabaseError):
            await service.create_booking(booking_request)

        mock_db.delete_appointment.assert_called_once_with("apt_new")
        mock_db.increment_coupon_usage.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_coupon_usage_rolls_back(
        self, service, mock_db, booking_request, welcome_coupon
    ):
        mock_db.find_coupon.return_value = welcome_coupon
        mock_db.increment_coupon_usage.side_effect = DatabaseError("down")
        request = booking_request.model_copy(update={"coupon_code": "BEMVINDO10"})

        with pytest.raises(DatabaseError):
            await service.create_booking(request)

        mock_db.delete_appointment.assert_called_once_with("apt_new")

    @pytest.mark.asyncio
    async def test_failed_rollback_keeps_original_error(self, service, mock_db, booking_request):
        mock_db.insert_appointment_items.side_effect = DatabaseError("items down")
        mock_db.delete_appointment.side_effect = DatabaseError("delete down")

        with pytest.raises(DatabaseError, match="items down"):
            await service.create_booking(booking_request)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "update",
        [{"client_name": "  "}, {"client_phone": "123"}, {"service_ids": []}],
    )
    async def test_required_fields(self, service, mock_db, booking_request, update):
        with pytest.raises(ValidationError):
            await service.create_booking(booking_request.model_copy(update=update))

        mock_db.insert_appointment.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_product(self, service, booking_request):
        request = booking_request.model_copy(
            update={"service_ids": ["svc_cut"], "product_ids": ["prd_missing"]}
        )

        with pytest.raises(ServiceNotFoundError):
            await service.create_booking(request)

    @pytest.mark.asyncio
    async def test_staff_booking_confirmed(self, service, booking_request):
        confirmation = await service.create_booking(
            booking_request, initial_status=AppointmentStatus.CONFIRMED
        )

        assert confirmation.appointment.status == "confirmed"


class TestBookingRequest:
    def test_any_professional_normalized(self):
        request = BookingRequest.from_payload(
            "salon_1",
            {
                "service_ids": ["svc_cut"],
                "professional_id": "any",
                "date": "2026-01-12",
                "start_time": "10:00",
                "coupon_code": "",
            },
        )

        assert request.professional_id is None
        assert request.coupon_code is None
        assert request.date == date(2026, 1, 12)

    def test_salon_taken_from_path(self):
        request = BookingRequest.from_payload(
            "salon_1", {"salon_id": "other", "date": "2026-01-12", "start_time": "10:00"}
        )

        assert request.salon_id == "salon_1"

    def test_invalid_payload(self):
        with pytest.raises(ValidationError, match="date"):
            BookingRequest.from_payload("salon_1", {"start_time": "10:00"})


class TestUpdateStatus:
    @pytest.mark.asyncio
    async def test_allowed_transition(self, service, mock_db, make_appointment):
        mock_db.get_appointment.return_value = make_appointment(status="pending")
        mock_db.update_appointment_status.return_value = make_appointment(status="confirmed")

        appointment = await service.update_appointment_status("apt_1", "confirmed")

        assert appointment.status == "confirmed"
        mock_db.update_appointment_status.assert_called_once_with(
            "apt_1", AppointmentStatus.CONFIRMED
        )

    @pytest.mark.asyncio
    async def test_forbidden_transition(self, service, mock_db, make_appointment):
        mock_db.get_appointment.return_value = make_appointment(status="cancelled")

        with pytest.raises(ValidationError):
            await service.update_appointment_status("apt_1", "completed")

        mock_db.update_appointment_status.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_status(self, service):
        with pytest.raises(ValidationError):
            await service.update_appointment_status("apt_1", "archived")

    @pytest.mark.asyncio
    async def test_missing_appointment(self, service):
        with pytest.raises(AppointmentNotFoundError):
            await service.update_appointment_status("apt_x", "confirmed")


class TestProfessionalSchedule:
    @pytest.mark.asyncio
    async def test_day_schedule_and_commission(self, mock_db, monday, make_appointment):
        mock_db.get_professional_appointments.return_value = [
            make_appointment(id="a1", start_time="09:00", end_time="09:30", status="completed"),
            make_appointment(id="a2", start_time="10:00", end_time="10:30", status="confirmed"),
            make_appointment(id="a3", start_time="11:00", end_time="11:30", status="pending"),
            make_appointment(id="a4", start_time="12:00", end_time="12:30", status="cancelled"),
        ]
        mock_db.get_completed_revenue.return_value = Decimal("250.00")
        service = BookingService(mock_db, clock=lambda: datetime(2026, 1, 12, 10, 15))

        schedule = await service.get_professional_schedule("pro_ana", monday)

        assert [a.id for a in schedule.appointments] == ["a1", "a2", "a3", "a4"]
        assert [a.id for a in schedule.upcoming] == ["a2", "a3"]
        assert schedule.next_appointment.id == "a3"
        assert schedule.completed_count == 1
        assert schedule.month_commission == Decimal("100.00")
        mock_db.get_completed_revenue.assert_called_once_with(
            "pro_ana", date(2026, 1, 1), monday
        )

    @pytest.mark.asyncio
    async def test_defaults_to_today(self, service, mock_db):
        schedule = await service.get_professional_schedule("pro_bruno")

        assert schedule.date == date(2026, 1, 11)
        assert schedule.next_appointment is None
        assert schedule.month_commission == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_unknown_professional(self, service):
        with pytest.raises(ProfessionalNotFoundError):
            await service.get_professional_schedule("pro_x")

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self, service, mock_db):
        mock_db.get_professional_appointments = AsyncMock(side_effect=DatabaseError("down"))

        with pytest.raises(DatabaseError):
            await service.get_professional_schedule("pro_ana")
