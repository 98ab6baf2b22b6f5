"""
Order creation graph.

    CreateOrder, OrderContext (injected)
         │
         ▼
    CheckedCart      validate request, fetch products in parallel, pre-check stock
         │
         ▼
    DraftOrder       snapshot lines, compute totals
         │
         ▼
    PlacedOrder      intent → reserve each line → insert order → settle intent

Nothing is mutated before PlacedOrder. Nodes raise OrderFailure; the
service turns it back into Error at the compose boundary.

Note: no 'from __future__ import annotations' here, nodnod resolves
dependencies from the runtime annotations.
"""

import logging
import uuid
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field

import combinators as C
from kungfu import Ok, Error, Result, LazyCoroResult

from orderflow import graph as G
from orderflow import saga as S
from orderflow._types import Clock, utcnow
from orderflow.catalog import CatalogStore, Product
from orderflow.config import Pricing
from orderflow.errors import OrderError, OrderErrors, OrderFailure, FieldError
from orderflow.orders._machine import NOTES_MAX
from orderflow.orders._store import OrderStore
from orderflow.orders._totals import compute_totals
from orderflow.orders._types import CreateOrder, Order, OrderItem, OrderStatus, LineRequest

logger = logging.getLogger(__name__)


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class OrderContext:
    """Collaborators for one order creation."""

    catalog: CatalogStore
    orders: OrderStore
    intents: S.IntentStore
    pricing: Pricing
    clock: Clock = utcnow
    make_id: Callable[[], str] = field(default=new_id)


# ═══════════════════════════════════════════════════════════════════════════════
# Validation
# ═══════════════════════════════════════════════════════════════════════════════


def validate(command: CreateOrder) -> list[FieldError]:
    errors: list[FieldError] = []

    if not command.lines:
        errors.append(FieldError("orderItems", "Order must contain at least one item"))
    for index, line in enumerate(command.lines):
        if not line.product_id:
            errors.append(FieldError(f"orderItems[{index}].product", "Product ID is required"))
        if line.quantity < 1:
            errors.append(FieldError(f"orderItems[{index}].quantity", "Quantity must be at least 1"))

    address = command.shipping_address
    for name, value in (
        ("street", address.street),
        ("city", address.city),
        ("state", address.state),
        ("zipCode", address.zip_code),
    ):
        if not value or not value.strip():
            errors.append(FieldError(f"shippingAddress.{name}", f"{name} is required"))

    if command.notes is not None and len(command.notes) > NOTES_MAX:
        errors.append(FieldError("notes", f"Notes must be at most {NOTES_MAX} characters"))

    return errors


# ═══════════════════════════════════════════════════════════════════════════════
# Nodes
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class CheckedCart:
    """Request is well-formed, every product exists and has enough stock right now."""

    def __init__(self, products: dict[str, Product]) -> None:
        self.products = products

    @classmethod
    async def __compose__(cls, command: CreateOrder, ctx: OrderContext) -> "CheckedCart":
        if errors := validate(command):
            raise OrderFailure(OrderErrors.validation(*errors))

        wanted = Counter[str]()
        for line in command.lines:
            wanted[line.product_id] += line.quantity

        def fetch(product_id: str) -> LazyCoroResult[Product, OrderError]:
            return LazyCoroResult(lambda: ctx.catalog.find(product_id))

        result = await C.traverse_par(list(wanted), fetch)()

        match result:
            case Error(e):
                raise OrderFailure(e)
            case Ok(found):
                products = {p.id: p for p in found}

        for product_id, quantity in wanted.items():
            product = products[product_id]
            if product.stock < quantity:
                raise OrderFailure(OrderErrors.insufficient_stock(product.name, product.stock, quantity))

        return cls(products)


@G.node
class DraftOrder:
    """Unsaved order with snapshotted lines and totals."""

    def __init__(self, order: Order) -> None:
        self.order = order

    @classmethod
    def __compose__(cls, cart: CheckedCart, command: CreateOrder, ctx: OrderContext) -> "DraftOrder":
        items = tuple(_snapshot(cart.products[line.product_id], line) for line in command.lines)
        totals = compute_totals(items, ctx.pricing)
        now = ctx.clock()

        return cls(Order(
            id=ctx.make_id(),
            user_id=command.user_id,
            order_items=items,
            shipping_address=command.shipping_address,
            payment_method=command.payment_method,
            items_price=totals.items_price,
            tax_price=totals.tax_price,
            shipping_price=totals.shipping_price,
            total_price=totals.total_price,
            status=OrderStatus.PENDING,
            notes=command.notes,
            created_at=now,
            updated_at=now,
        ))


def _snapshot(product: Product, line: LineRequest) -> OrderItem:
    return OrderItem(
        product_id=product.id,
        name=product.name,
        price=product.effective_price,
        quantity=line.quantity,
        image=product.primary_image,
        sku=product.sku,
    )


@G.node
class PlacedOrder:
    """
    Order persisted with its stock reserved.

    Saga: each reserve is recorded on the intent right after it succeeds,
    each compensating restore right after it succeeds. The intent is marked
    COMPENSATED only when every reservation came back; otherwise it stays
    PENDING for the sweep.
    """

    def __init__(self, order: Order, intent: S.OrderIntent) -> None:
        self.order = order
        self.intent = intent

    @classmethod
    async def __compose__(cls, draft: DraftOrder, command: CreateOrder, ctx: OrderContext) -> "PlacedOrder":
        order = draft.order
        now = ctx.clock()
        intent = S.OrderIntent(
            id=ctx.make_id(),
            order_id=order.id,
            user_id=order.user_id,
            lines=tuple(S.IntentLine(line.product_id, line.quantity) for line in command.lines),
            created_at=now,
            updated_at=now,
        )

        match await ctx.intents.insert(intent):
            case Error(e):
                raise OrderFailure(e)
            case Ok(_):
                pass

        steps: list[S.SagaStep[object, OrderError]] = [
            S.step(
                lambda line=line: _reserve(ctx, intent.id, line),
                compensate=lambda _, line=line: _release(ctx, intent.id, line),
            )
            for line in intent.lines
        ]
        steps.append(S.step(lambda: ctx.orders.insert(order)))

        result = await S.run_sequence(steps)

        match result:
            case Ok(_):
                settled = await _settle(ctx, intent, S.IntentState.COMPLETED)
                logger.info(
                    "Order %s placed for user %s: %d lines, total %s",
                    order.id, order.user_id, len(order.order_items), order.total_price,
                )
                return cls(order, settled)

            case Error(failure):
                if not failure.rollback_complete:
                    # Stays PENDING; the sweep restores what is still outstanding
                    logger.error(
                        "Rollback of order %s incomplete: %d of %d restores failed",
                        order.id, failure.compensators_failed,
                        failure.compensators_run + failure.compensators_failed,
                    )
                else:
                    logger.info(
                        "Order %s rolled back at step %d (%d reservations restored): %s",
                        order.id, failure.step_failed, failure.compensators_run, failure.error,
                    )
                    await _settle(ctx, intent, S.IntentState.COMPENSATED)
                raise OrderFailure(failure.error)


async def _reserve(ctx: OrderContext, intent_id: str, line: S.IntentLine) -> Result[object, OrderError]:
    match await ctx.catalog.reserve(line.product_id, line.quantity):
        case Error(e):
            logger.info("Reservation of %s x%d failed: %s", line.product_id, line.quantity, e)
            return Error(e)
        case Ok(product):
            pass

    match await ctx.intents.record_reserved(intent_id, line, ctx.clock()):
        case Error(e):
            # Not on the intent, so undo here or nobody will
            try:
                await _restore(ctx, line)
            except OrderFailure as undo:
                logger.error("Unrecorded reservation of %s x%d leaked: %s", line.product_id, line.quantity, undo.error)
            return Error(e)
        case Ok(_):
            return Ok(product)


async def _restore(ctx: OrderContext, line: S.IntentLine) -> None:
    match await ctx.catalog.restore(line.product_id, line.quantity):
        case Error(e):
            raise OrderFailure(e)
        case Ok(_):
            pass


async def _release(ctx: OrderContext, intent_id: str, line: S.IntentLine) -> None:
    await _restore(ctx, line)
    match await ctx.intents.record_released(intent_id, line, ctx.clock()):
        case Error(e):
            logger.error(
                "Restored %s x%d but intent %s still lists it: %s",
                line.product_id, line.quantity, intent_id, e,
            )
        case Ok(_):
            pass


async def _settle(ctx: OrderContext, intent: S.OrderIntent, state: S.IntentState) -> S.OrderIntent:
    match await ctx.intents.settle(intent.id, state, ctx.clock()):
        case Ok(settled):
            return settled
        case Error(e):
            # Left PENDING; the sweep will close it
            logger.error("Could not mark intent %s %s: %s", intent.id, state.value, e)
            return intent


__all__ = ("OrderContext", "CheckedCart", "DraftOrder", "PlacedOrder", "validate", "new_id")
