"""
Order service: the order lifecycle over injected stores.

Every operation returns Result[..., OrderError]. Business-rule checks run
before any mutation; the only multi-write operations are creation (a saga,
see _graph) and cancellation (per-line stock restore, best effort).
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from datetime import timedelta
from typing import Protocol

from kungfu import Result, Ok, Error

from orderflow import graph as G
from orderflow import saga as S
from orderflow._types import Clock, Money, OrderId, UserId, to_cents, to_money, utcnow
from orderflow.catalog import CatalogStore
from orderflow.config import Pricing
from orderflow.errors import ErrorKind, OrderError, OrderErrors, OrderFailure
from orderflow.orders import _machine as M
from orderflow.orders._graph import OrderContext, PlacedOrder, new_id
from orderflow.orders._store import OrderStore, OrderPage
from orderflow.orders._types import Actor, CreateOrder, Order, PaymentResult, StatusUpdate

logger = logging.getLogger(__name__)


class RefundGateway(Protocol):
    """The one gateway call refunds need."""

    def create_refund(
        self, payment_intent_id: str, amount_cents: int, reason: str | None
    ) -> Awaitable[Result[object, OrderError]]:
        ...


class OrderService:
    def __init__(
        self,
        catalog: CatalogStore,
        orders: OrderStore,
        intents: S.IntentStore,
        pricing: Pricing,
        gateway: RefundGateway | None = None,
        clock: Clock = utcnow,
        strict_transitions: bool = False,
    ) -> None:
        self._catalog = catalog
        self._orders = orders
        self._intents = intents
        self._pricing = pricing
        self._gateway = gateway
        self._clock = clock
        self._strict = strict_transitions

    @property
    def pricing(self) -> Pricing:
        return self._pricing

    # ─── Create ───────────────────────────────────────────────────────────────

    async def create(self, command: CreateOrder) -> Result[Order, OrderError]:
        ctx = OrderContext(
            catalog=self._catalog,
            orders=self._orders,
            intents=self._intents,
            pricing=self._pricing,
            clock=self._clock,
            make_id=new_id,
        )
        try:
            placed = await G.compose(PlacedOrder, command, ctx)
            return Ok(placed.order)
        except OrderFailure as e:
            return Error(e.error)

    # ─── Queries ──────────────────────────────────────────────────────────────

    async def get(self, order_id: OrderId, actor: Actor) -> Result[Order, OrderError]:
        match await self._orders.get(order_id):
            case Error(e):
                return Error(e)
            case Ok(order):
                if not (actor.is_admin or order.owned_by(actor.user_id)):
                    return Error(OrderErrors.forbidden("Not authorized to view this order"))
                return Ok(order)

    async def list_for_user(self, user_id: UserId, page: int = 1, limit: int = 10) -> Result[OrderPage, OrderError]:
        return await self._orders.list_for_user(user_id, page, limit)

    async def track(self, tracking_number: str) -> Result[Order, OrderError]:
        return await self._orders.by_tracking(tracking_number)

    # ─── Payment ──────────────────────────────────────────────────────────────

    async def process_payment(self, order_id: OrderId, payment: PaymentResult) -> Result[Order, OrderError]:
        """Idempotent: a second confirmation for a paid order changes nothing."""
        match await self._orders.get(order_id):
            case Error(e):
                return Error(e)
            case Ok(order):
                pass

        if order.is_paid:
            logger.info("Duplicate payment confirmation %s for order %s ignored", payment.id, order_id)
            return Ok(order)

        match M.process_payment(order, payment, self._clock()):
            case Error(e):
                return Error(e)
            case Ok(paid):
                pass

        match await self._orders.save(paid, order.status):
            case Ok(saved):
                logger.info("Payment %s confirmed for order %s", payment.id, order_id)
                return Ok(saved)
            case Error(e) if e.kind == ErrorKind.INVALID_TRANSITION:
                # Lost a race: fine if the winner was another confirmation.
                match await self._orders.get(order_id):
                    case Ok(current) if current.is_paid:
                        logger.info("Payment %s for order %s raced a paid confirmation", payment.id, order_id)
                        return Ok(current)
                    case _:
                        return Error(e)
            case Error(e):
                return Error(e)

    # ─── Status ───────────────────────────────────────────────────────────────

    async def update_status(self, order_id: OrderId, update: StatusUpdate, actor: Actor) -> Result[Order, OrderError]:
        if not actor.is_admin:
            return Error(OrderErrors.forbidden("Only admins can update order status"))

        match await self._orders.get(order_id):
            case Error(e):
                return Error(e)
            case Ok(order):
                pass

        match M.update_status(order, update, self._clock(), strict=self._strict):
            case Error(e):
                return Error(e)
            case Ok(updated):
                return await self._orders.save(updated, order.status)

    # ─── Cancel ───────────────────────────────────────────────────────────────

    async def cancel(self, order_id: OrderId, reason: str | None, actor: Actor) -> Result[Order, OrderError]:
        """
        Cancel and give every line's stock back.

        A line whose product cannot be restored is logged and skipped; the
        cancellation itself still goes through. The save is conditional on the
        status read here, so of two racing cancels only one restores stock.
        """
        match await self.get(order_id, actor):
            case Error(e):
                return Error(e)
            case Ok(order):
                pass

        match M.cancel(order, reason, self._clock()):
            case Error(e):
                return Error(e)
            case Ok(cancelled):
                pass

        match await self._orders.save(cancelled, order.status):
            case Error(e):
                return Error(e)
            case Ok(_):
                pass

        for item in cancelled.order_items:
            match await self._catalog.restore(item.product_id, item.quantity):
                case Error(e):
                    logger.warning(
                        "Cancel %s: could not restore %s x%d: %s",
                        order_id, item.product_id, item.quantity, e,
                    )
                case Ok(_):
                    pass

        logger.info("Order %s cancelled by %s (reason: %s)", order_id, actor.user_id, reason)
        return Ok(cancelled)

    # ─── Refund ───────────────────────────────────────────────────────────────

    async def refund(self, order_id: OrderId, amount: Money, reason: str, actor: Actor) -> Result[Order, OrderError]:
        """
        Refund money, gateway first.

        If the order was paid through the gateway, the gateway refund must
        succeed before the order is marked Refunded. Stock is not restored.
        """
        if not actor.is_admin:
            return Error(OrderErrors.forbidden("Only admins can refund orders"))

        amount = to_money(amount)

        match await self._orders.get(order_id):
            case Error(e):
                return Error(e)
            case Ok(order):
                pass

        if (err := M.check_refund(order, amount, reason)) is not None:
            return Error(err)

        if (intent_id := order.gateway_payment_id) is not None:
            if self._gateway is None:
                return Error(OrderErrors.payment_processor("Payment gateway is not configured"))
            match await self._gateway.create_refund(intent_id, to_cents(amount), reason):
                case Error(e):
                    logger.error("Gateway refund for order %s failed: %s", order_id, e)
                    return Error(e)
                case Ok(_):
                    pass

        match M.refund(order, amount, reason, self._clock()):
            case Error(e):
                return Error(e)
            case Ok(refunded):
                saved = await self._orders.save(refunded, order.status)
                if isinstance(saved, Ok):
                    logger.info("Order %s refunded %s (%s)", order_id, amount, reason)
                return saved

    # ─── Recovery ─────────────────────────────────────────────────────────────

    async def sweep_intents(self, stale_after: timedelta) -> Result[S.SweepReport, OrderError]:
        return await S.sweep_abandoned_intents(
            self._intents,
            self._catalog,
            self._orders,
            self._clock(),
            stale_after,
        )


__all__ = ("OrderService", "RefundGateway")
