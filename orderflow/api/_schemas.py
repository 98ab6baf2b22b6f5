"""
Request and response codecs.

Wire names are camelCase; XIn.to_domain() builds the command a service
takes, XOut.from_domain() renders what it returns.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel

from orderflow.orders import (
    CreateOrder,
    LineRequest,
    Order,
    OrderItem,
    OrderPage,
    OrderStatus,
    PaymentMethod,
    PaymentResult,
    ShippingAddress,
    ShippingCarrier,
    StatusUpdate,
)
from orderflow.payments import IntentCreated, PaymentMethodInfo

MoneyOut = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def dump(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# ═══════════════════════════════════════════════════════════════════════════════
# Requests
# ═══════════════════════════════════════════════════════════════════════════════


class OrderLineIn(CamelModel):
    product: str
    quantity: int

    def to_domain(self) -> LineRequest:
        return LineRequest(product_id=self.product, quantity=self.quantity)


class ShippingAddressIn(CamelModel):
    street: str
    city: str
    state: str
    zip_code: str
    country: str | None = None

    def to_domain(self, default_country: str) -> ShippingAddress:
        return ShippingAddress(
            street=self.street,
            city=self.city,
            state=self.state,
            zip_code=self.zip_code,
            country=self.country or default_country,
        )


class CreateOrderIn(CamelModel):
    order_items: list[OrderLineIn]
    shipping_address: ShippingAddressIn
    payment_method: PaymentMethod
    notes: str | None = None

    def to_domain(self, user_id: str, default_country: str) -> CreateOrder:
        return CreateOrder(
            user_id=user_id,
            lines=tuple(line.to_domain() for line in self.order_items),
            shipping_address=self.shipping_address.to_domain(default_country),
            payment_method=self.payment_method,
            notes=self.notes,
        )


class StatusUpdateIn(CamelModel):
    status: OrderStatus
    notes: str | None = None
    tracking_number: str | None = None
    shipping_carrier: ShippingCarrier | None = None
    estimated_delivery: datetime | None = None

    def to_domain(self) -> StatusUpdate:
        return StatusUpdate(
            status=self.status,
            notes=self.notes,
            tracking_number=self.tracking_number,
            shipping_carrier=self.shipping_carrier,
            estimated_delivery=self.estimated_delivery,
        )


class CancelIn(CamelModel):
    reason: str | None = None


class RefundIn(CamelModel):
    amount: Decimal
    reason: str = ""


class PaymentIntentIn(CamelModel):
    order_id: str


class ConfirmPaymentIn(CamelModel):
    order_id: str
    payment_intent_id: str


class PaymentRefundIn(RefundIn):
    order_id: str


# ═══════════════════════════════════════════════════════════════════════════════
# Responses
# ═══════════════════════════════════════════════════════════════════════════════


class OrderItemOut(CamelModel):
    product: str
    name: str
    price: MoneyOut
    quantity: int
    image: str
    sku: str | None

    @classmethod
    def from_domain(cls, item: OrderItem) -> OrderItemOut:
        return cls(
            product=item.product_id,
            name=item.name,
            price=item.price,
            quantity=item.quantity,
            image=item.image,
            sku=item.sku,
        )


class ShippingAddressOut(CamelModel):
    street: str
    city: str
    state: str
    zip_code: str
    country: str

    @classmethod
    def from_domain(cls, address: ShippingAddress) -> ShippingAddressOut:
        return cls(
            street=address.street,
            city=address.city,
            state=address.state,
            zip_code=address.zip_code,
            country=address.country,
        )


class PaymentResultOut(CamelModel):
    id: str
    status: str
    update_time: datetime
    email_address: str | None

    @classmethod
    def from_domain(cls, payment: PaymentResult) -> PaymentResultOut:
        return cls(
            id=payment.id,
            status=payment.status,
            update_time=payment.update_time,
            email_address=payment.email_address,
        )


class OrderOut(CamelModel):
    id: str
    order_number: str
    user: str
    order_items: list[OrderItemOut]
    shipping_address: ShippingAddressOut
    payment_method: PaymentMethod
    payment_result: PaymentResultOut | None
    items_price: MoneyOut
    tax_price: MoneyOut
    shipping_price: MoneyOut
    total_price: MoneyOut
    status: OrderStatus
    status_color: str
    is_paid: bool
    paid_at: datetime | None
    is_delivered: bool
    delivered_at: datetime | None
    tracking_number: str | None
    shipping_carrier: ShippingCarrier | None
    estimated_delivery: datetime | None
    notes: str | None
    cancel_reason: str | None
    refund_amount: MoneyOut | None
    refund_reason: str | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, order: Order) -> OrderOut:
        return cls(
            id=order.id,
            order_number=order.order_number,
            user=order.user_id,
            order_items=[OrderItemOut.from_domain(item) for item in order.order_items],
            shipping_address=ShippingAddressOut.from_domain(order.shipping_address),
            payment_method=order.payment_method,
            payment_result=PaymentResultOut.from_domain(order.payment_result) if order.payment_result else None,
            items_price=order.items_price,
            tax_price=order.tax_price,
            shipping_price=order.shipping_price,
            total_price=order.total_price,
            status=order.status,
            status_color=order.status_color,
            is_paid=order.is_paid,
            paid_at=order.paid_at,
            is_delivered=order.is_delivered,
            delivered_at=order.delivered_at,
            tracking_number=order.tracking_number,
            shipping_carrier=order.shipping_carrier,
            estimated_delivery=order.estimated_delivery,
            notes=order.notes,
            cancel_reason=order.cancel_reason,
            refund_amount=order.refund_amount,
            refund_reason=order.refund_reason,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class PaginationOut(CamelModel):
    page: int
    limit: int
    pages: int


class OrderPageOut(CamelModel):
    count: int
    total_orders: int
    pagination: PaginationOut
    data: list[OrderOut]

    @classmethod
    def from_domain(cls, page: OrderPage) -> OrderPageOut:
        return cls(
            count=len(page.orders),
            total_orders=page.total,
            pagination=PaginationOut(page=page.page, limit=page.limit, pages=page.pages),
            data=[OrderOut.from_domain(order) for order in page.orders],
        )


class IntentCreatedOut(CamelModel):
    client_secret: str | None
    payment_intent_id: str

    @classmethod
    def from_domain(cls, created: IntentCreated) -> IntentCreatedOut:
        return cls(client_secret=created.client_secret, payment_intent_id=created.payment_intent_id)


class PaymentMethodOut(CamelModel):
    id: str
    name: str
    description: str
    icon: str

    @classmethod
    def from_domain(cls, method: PaymentMethodInfo) -> PaymentMethodOut:
        return cls(id=method.id, name=method.name, description=method.description, icon=method.icon)


__all__ = (
    "CreateOrderIn",
    "StatusUpdateIn",
    "CancelIn",
    "RefundIn",
    "PaymentIntentIn",
    "ConfirmPaymentIn",
    "PaymentRefundIn",
    "OrderOut",
    "OrderPageOut",
    "IntentCreatedOut",
    "PaymentMethodOut",
)
