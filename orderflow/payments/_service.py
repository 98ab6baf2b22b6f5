"""
Payment flows: customer-facing payment operations over the order service.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from kungfu import Result, Ok, Error

from orderflow._types import Clock, Money, OrderId, to_cents, utcnow
from orderflow.errors import OrderError, OrderErrors
from orderflow.orders import Actor, Order, OrderService, OrderStatus, PaymentResult
from orderflow.payments._gateway import PaymentGateway
from orderflow.payments._types import PaymentIntent, PaymentMethodInfo, PAYMENT_METHODS

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class IntentCreated:
    client_secret: str | None
    payment_intent_id: str
    amount_cents: int
    currency: str


class PaymentService:
    def __init__(
        self,
        orders: OrderService,
        gateway: PaymentGateway,
        currency: str = "usd",
        clock: Clock = utcnow,
    ) -> None:
        self._orders = orders
        self._gateway = gateway
        self._currency = currency
        self._clock = clock

    async def _own_order(self, order_id: OrderId, actor: Actor) -> Result[Order, OrderError]:
        match await self._orders.get(order_id, actor):
            case Error(e):
                return Error(e)
            case Ok(order):
                if not order.owned_by(actor.user_id):
                    return Error(OrderErrors.forbidden("Not authorized to pay for this order"))
                return Ok(order)

    async def create_payment_intent(self, order_id: OrderId, actor: Actor) -> Result[IntentCreated, OrderError]:
        """Open a gateway charge for the order's full total."""
        match await self._own_order(order_id, actor):
            case Error(e):
                return Error(e)
            case Ok(order):
                pass

        if order.is_paid:
            return Error(OrderErrors.invalid_transition("Order is already paid"))
        if order.status in (OrderStatus.CANCELLED, OrderStatus.REFUNDED):
            return Error(OrderErrors.invalid_transition(f"Cannot pay for a {order.status.value.lower()} order"))

        metadata = {"orderId": order.id, "userId": actor.user_id}
        match await self._gateway.create_payment_intent(to_cents(order.total_price), self._currency, metadata):
            case Error(e):
                return Error(e)
            case Ok(intent):
                return Ok(IntentCreated(
                    client_secret=intent.client_secret,
                    payment_intent_id=intent.id,
                    amount_cents=intent.amount_cents,
                    currency=intent.currency,
                ))

    async def confirm(self, order_id: OrderId, payment_intent_id: str, actor: Actor) -> Result[Order, OrderError]:
        """
        Confirm a client-side payment.

        The intent must have succeeded and carry this order's id in its
        metadata; after that this is ProcessPayment, duplicate-safe.
        """
        match await self._own_order(order_id, actor):
            case Error(e):
                return Error(e)
            case Ok(_):
                pass

        match await self._gateway.retrieve_payment_intent(payment_intent_id):
            case Error(e):
                return Error(e)
            case Ok(intent):
                pass

        if (err := _check_intent(intent, order_id)) is not None:
            return Error(err)

        payment = PaymentResult(
            id=intent.id,
            status=intent.status,
            update_time=self._clock(),
            email_address=actor.email or intent.receipt_email,
        )
        return await self._orders.process_payment(order_id, payment)

    async def refund(self, order_id: OrderId, amount: Money, reason: str, actor: Actor) -> Result[Order, OrderError]:
        return await self._orders.refund(order_id, amount, reason, actor)

    def methods(self) -> tuple[PaymentMethodInfo, ...]:
        return PAYMENT_METHODS


def _check_intent(intent: PaymentIntent, order_id: OrderId) -> OrderError | None:
    if not intent.succeeded:
        logger.info("Payment intent %s not completed (status %s)", intent.id, intent.status)
        return OrderErrors.payment_processor("Payment not completed")
    if intent.order_id != order_id:
        logger.warning("Payment intent %s belongs to order %s, not %s", intent.id, intent.order_id, order_id)
        return OrderErrors.payment_processor("Payment intent does not belong to this order")
    return None


__all__ = ("IntentCreated", "PaymentService")
