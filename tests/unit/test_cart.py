"""
Unit tests for cart totals.
"""

from decimal import Decimal

from models.cart import AppointmentItem, Cart, CartItem, CartItemKind


def test_totals_and_duration(haircut, coloring, shampoo):
    cart = Cart(
        items=[
            CartItem.from_service(haircut),
            CartItem.from_service(coloring),
            CartItem.from_product(shampoo, quantity=2),
        ]
    )

    assert cart.services_subtotal == Decimal("180.00")
    assert cart.products_subtotal == Decimal("70.00")
    assert cart.total == Decimal("250.00")
    assert cart.total_duration_minutes == 120
    assert cart.main_service.item_id == "svc_cut"


def test_service_quantity_multiplies_duration(haircut):
    cart = Cart(items=[CartItem.from_service(haircut, quantity=2)])

    assert cart.total_duration_minutes == 60
    assert cart.services_subtotal == Decimal("120.00")


def test_discount_applies_to_cart_total(haircut, shampoo):
    cart = Cart(items=[CartItem.from_service(haircut), CartItem.from_product(shampoo)])

    assert cart.final_price(Decimal("9.50")) == Decimal("85.50")
    assert cart.final_price(Decimal("500")) == Decimal("0")


def test_products_only_cart_is_empty(shampoo):
    cart = Cart(items=[CartItem.from_product(shampoo)])

    assert cart.is_empty()
    assert cart.total_duration_minutes == 0
    assert cart.main_service is None


def test_appointment_item_keeps_position(coloring):
    item = AppointmentItem.from_cart_item("apt_1", 3, CartItem.from_service(coloring))
    row = item.model_dump(mode="json", exclude_none=True)

    assert row["position"] == 3
    assert row["kind"] == CartItemKind.SERVICE.value
    assert row["unit_price"] == "120.00"
    assert row["duration_minutes"] == 90
