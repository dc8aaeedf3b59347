"""Cart models: ordered, typed line items of a booking."""

from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from models.service import Product, Service


class CartItemKind(str, Enum):
    SERVICE = "service"
    PRODUCT = "product"


class CartItem(BaseModel):
    """One line of a booking cart."""

    kind: CartItemKind
    item_id: str
    name: str
    unit_price: Decimal = Field(..., ge=0)
    quantity: int = Field(default=1, ge=1)
    duration_minutes: int = Field(default=0, ge=0)

    @classmethod
    def from_service(cls, service: Service, quantity: int = 1) -> "CartItem":
        return cls(
            kind=CartItemKind.SERVICE,
            item_id=service.id,
            name=service.name,
            unit_price=service.price,
            quantity=quantity,
            duration_minutes=service.duration_minutes,
        )

    @classmethod
    def from_product(cls, product: Product, quantity: int = 1) -> "CartItem":
        return cls(
            kind=CartItemKind.PRODUCT,
            item_id=product.id,
            name=product.name,
            unit_price=product.price,
            quantity=quantity,
        )

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    @property
    def line_duration(self) -> int:
        if self.kind != CartItemKind.SERVICE:
            return 0
        return self.duration_minutes * self.quantity


class Cart(BaseModel):
    """Ordered collection of cart items. Order is preserved for storage."""

    items: List[CartItem] = Field(default_factory=list)

    @property
    def service_items(self) -> List[CartItem]:
        return [item for item in self.items if item.kind == CartItemKind.SERVICE]

    @property
    def product_items(self) -> List[CartItem]:
        return [item for item in self.items if item.kind == CartItemKind.PRODUCT]

    @property
    def main_service(self) -> Optional[CartItem]:
        services = self.service_items
        return services[0] if services else None

    @property
    def services_subtotal(self) -> Decimal:
        return sum((item.line_total for item in self.service_items), Decimal("0"))

    @property
    def products_subtotal(self) -> Decimal:
        return sum((item.line_total for item in self.product_items), Decimal("0"))

    @property
    def total(self) -> Decimal:
        return self.services_subtotal + self.products_subtotal

    @property
    def total_duration_minutes(self) -> int:
        return sum(item.line_duration for item in self.items)

    def is_empty(self) -> bool:
        return not self.service_items

    def final_price(self, discount: Decimal = Decimal("0")) -> Decimal:
        """Cart total minus a coupon discount, never below zero."""
        return max(self.total - discount, Decimal("0"))


class AppointmentItem(BaseModel):
    """Stored form of a cart line, linked to its appointment."""

    id: Optional[str] = None
    appointment_id: str
    position: int = Field(..., ge=0)
    kind: CartItemKind
    item_id: str
    name: str
    unit_price: Decimal
    quantity: int = 1
    duration_minutes: int = 0

    class Config:
        use_enum_values = True

    @classmethod
    def from_cart_item(
        cls, appointment_id: str, position: int, item: CartItem
    ) -> "AppointmentItem":
        return cls(
            appointment_id=appointment_id,
            position=position,
            kind=item.kind,
            item_id=item.item_id,
            name=item.name,
            unit_price=item.unit_price,
            quantity=item.quantity,
            duration_minutes=item.duration_minutes,
        )
