"""
Routes: thin adapters from HTTP to the order and payment services.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Header, Query, Request, status

from orderflow.api._deps import ActorDep, AdminDep, ServicesDep
from orderflow.api._errors import unwrap
from orderflow.api._schemas import (
    CancelIn,
    ConfirmPaymentIn,
    CreateOrderIn,
    IntentCreatedOut,
    OrderOut,
    OrderPageOut,
    PaymentIntentIn,
    PaymentMethodOut,
    PaymentRefundIn,
    RefundIn,
    StatusUpdateIn,
)
from orderflow.orders import Order


def _order(order: Order, message: str | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": True, "data": OrderOut.from_domain(order).dump()}
    if message:
        body["message"] = message
    return body


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════

orders = APIRouter(prefix="/api/orders", tags=["orders"])


@orders.post("", status_code=status.HTTP_201_CREATED)
async def create_order(body: CreateOrderIn, actor: ActorDep, services: ServicesDep) -> dict[str, Any]:
    command = body.to_domain(actor.user_id, services.settings.DEFAULT_COUNTRY)
    return _order(unwrap(await services.orders.create(command)))


@orders.get("/my-orders")
async def my_orders(
    actor: ActorDep,
    services: ServicesDep,
    page: Annotated[int, Query()] = 1,
    limit: Annotated[int, Query()] = 10,
) -> dict[str, Any]:
    result = unwrap(await services.orders.list_for_user(actor.user_id, page, limit))
    return {"success": True, **OrderPageOut.from_domain(result).dump()}


@orders.get("/track/{tracking_number}")
async def track_order(tracking_number: str, services: ServicesDep) -> dict[str, Any]:
    return _order(unwrap(await services.orders.track(tracking_number)))


@orders.get("/{order_id}")
async def get_order(order_id: str, actor: ActorDep, services: ServicesDep) -> dict[str, Any]:
    return _order(unwrap(await services.orders.get(order_id, actor)))


@orders.put("/{order_id}/status")
async def update_order_status(
    order_id: str, body: StatusUpdateIn, actor: AdminDep, services: ServicesDep
) -> dict[str, Any]:
    updated = unwrap(await services.orders.update_status(order_id, body.to_domain(), actor))
    return _order(updated, "Order status updated successfully")


@orders.put("/{order_id}/cancel")
async def cancel_order(order_id: str, body: CancelIn, actor: ActorDep, services: ServicesDep) -> dict[str, Any]:
    cancelled = unwrap(await services.orders.cancel(order_id, body.reason, actor))
    return _order(cancelled, "Order cancelled successfully")


@orders.put("/{order_id}/refund")
async def refund_order(order_id: str, body: RefundIn, actor: AdminDep, services: ServicesDep) -> dict[str, Any]:
    refunded = unwrap(await services.orders.refund(order_id, body.amount, body.reason, actor))
    return _order(refunded, "Order refunded successfully")


# ═══════════════════════════════════════════════════════════════════════════════
# Payments
# ═══════════════════════════════════════════════════════════════════════════════

payments = APIRouter(prefix="/api/payments", tags=["payments"])


@payments.post("/create-payment-intent")
async def create_payment_intent(body: PaymentIntentIn, actor: ActorDep, services: ServicesDep) -> dict[str, Any]:
    created = unwrap(await services.payments.create_payment_intent(body.order_id, actor))
    return {"success": True, "data": IntentCreatedOut.from_domain(created).dump()}


@payments.post("/confirm")
async def confirm_payment(body: ConfirmPaymentIn, actor: ActorDep, services: ServicesDep) -> dict[str, Any]:
    paid = unwrap(await services.payments.confirm(body.order_id, body.payment_intent_id, actor))
    return _order(paid, "Payment confirmed successfully")


@payments.post("/refund")
async def refund_payment(body: PaymentRefundIn, actor: AdminDep, services: ServicesDep) -> dict[str, Any]:
    refunded = unwrap(await services.payments.refund(body.order_id, body.amount, body.reason, actor))
    return _order(refunded, "Refund processed successfully")


@payments.get("/methods")
async def payment_methods(services: ServicesDep) -> dict[str, Any]:
    methods = [PaymentMethodOut.from_domain(m).dump() for m in services.payments.methods()]
    return {"success": True, "data": methods}


@payments.post("/webhook")
async def payment_webhook(
    request: Request,
    services: ServicesDep,
    stripe_signature: Annotated[str | None, Header()] = None,
) -> dict[str, Any]:
    ack = unwrap(await services.webhooks.handle(await request.body(), stripe_signature))
    return {"received": True, "duplicate": ack.duplicate}


__all__ = ("orders", "payments")
