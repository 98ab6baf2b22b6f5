"""
Order types: the order aggregate and its value objects.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from orderflow._types import Money, OrderId, ProductId, UserId


# ═══════════════════════════════════════════════════════════════════════════════
# Enumerations
# ═══════════════════════════════════════════════════════════════════════════════


class OrderStatus(Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"


class PaymentMethod(Enum):
    CREDIT_CARD = "Credit Card"
    PAYPAL = "PayPal"
    STRIPE = "Stripe"
    CASH_ON_DELIVERY = "Cash on Delivery"


class ShippingCarrier(Enum):
    USPS = "USPS"
    FEDEX = "FedEx"
    UPS = "UPS"
    DHL = "DHL"
    OTHER = "Other"


STATUS_COLORS: dict[OrderStatus, str] = {
    OrderStatus.PENDING: "yellow",
    OrderStatus.PROCESSING: "blue",
    OrderStatus.SHIPPED: "purple",
    OrderStatus.DELIVERED: "green",
    OrderStatus.CANCELLED: "red",
    OrderStatus.REFUNDED: "gray",
}


# ═══════════════════════════════════════════════════════════════════════════════
# Value objects
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class OrderItem:
    """
    One order line.

    Note: name/price/image/sku are snapshots taken at creation; they are
    never refreshed from the catalog.
    """

    product_id: ProductId
    name: str
    price: Money
    quantity: int
    image: str = ""
    sku: str | None = None

    @property
    def line_total(self) -> Money:
        return self.price * self.quantity


@dataclass(frozen=True, slots=True)
class ShippingAddress:
    street: str
    city: str
    state: str
    zip_code: str
    country: str = "United States"


@dataclass(frozen=True, slots=True)
class PaymentResult:
    """Gateway confirmation attached to a paid order."""

    id: str
    status: str
    update_time: datetime
    email_address: str | None = None


@dataclass(frozen=True, slots=True)
class LineRequest:
    product_id: ProductId
    quantity: int


@dataclass(frozen=True, slots=True)
class CreateOrder:
    """Candidate order as submitted by a customer."""

    user_id: UserId
    lines: tuple[LineRequest, ...]
    shipping_address: ShippingAddress
    payment_method: PaymentMethod
    notes: str | None = None


@dataclass(frozen=True, slots=True)
class Actor:
    """Who is calling; ownership and role checks are made against it."""

    user_id: UserId
    is_admin: bool = False
    email: str | None = None


@dataclass(frozen=True, slots=True)
class StatusUpdate:
    status: OrderStatus
    notes: str | None = None
    tracking_number: str | None = None
    shipping_carrier: ShippingCarrier | None = None
    estimated_delivery: datetime | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Order
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Order:
    """
    The order aggregate.

    Invariants:
    - total_price == items_price + tax_price + shipping_price as of the
      last change to order_items
    - refund_amount <= total_price
    - paid_at / delivered_at are set once, together with their flag
    """

    id: OrderId
    user_id: UserId
    order_items: tuple[OrderItem, ...]
    shipping_address: ShippingAddress
    payment_method: PaymentMethod
    items_price: Money
    tax_price: Money
    shipping_price: Money
    total_price: Money
    created_at: datetime
    updated_at: datetime
    status: OrderStatus = OrderStatus.PENDING
    payment_result: PaymentResult | None = None
    is_paid: bool = False
    paid_at: datetime | None = None
    is_delivered: bool = False
    delivered_at: datetime | None = None
    tracking_number: str | None = None
    shipping_carrier: ShippingCarrier | None = None
    estimated_delivery: datetime | None = None
    notes: str | None = None
    cancel_reason: str | None = None
    refund_amount: Money | None = None
    refund_reason: str | None = None

    @property
    def order_number(self) -> str:
        return f"#{self.id[-8:].upper()}"

    @property
    def status_color(self) -> str:
        return STATUS_COLORS[self.status]

    @property
    def gateway_payment_id(self) -> str | None:
        """Payment intent id when the order was paid through the gateway."""
        if self.payment_result is None:
            return None
        return self.payment_result.id or None

    def owned_by(self, user_id: UserId) -> bool:
        return self.user_id == user_id


__all__ = (
    "OrderStatus",
    "PaymentMethod",
    "ShippingCarrier",
    "STATUS_COLORS",
    "OrderItem",
    "ShippingAddress",
    "PaymentResult",
    "LineRequest",
    "CreateOrder",
    "Actor",
    "StatusUpdate",
    "Order",
)
