"""
Order state machine: pure transitions over the Order aggregate.

    Pending → Processing → Shipped → Delivered     happy path
    Pending | Processing | Shipped → Cancelled
    any paid order → Refunded

Each transition returns Result[Order, OrderError] and never touches
storage; side effects on the catalog and the gateway belong to the service.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime

from kungfu import Result, Ok, Error

from orderflow._types import Money, to_money
from orderflow.errors import OrderError, OrderErrors, FieldError
from orderflow.orders._types import Order, OrderStatus, PaymentResult, StatusUpdate

logger = logging.getLogger(__name__)

NOTES_MAX = 500
REASON_MAX = 200

REGULAR_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED, OrderStatus.REFUNDED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.REFUNDED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.CANCELLED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.REFUNDED: frozenset(),
}

CANCELLABLE = frozenset({OrderStatus.PENDING, OrderStatus.PROCESSING, OrderStatus.SHIPPED})


def is_regular(current: OrderStatus, target: OrderStatus) -> bool:
    return target == current or target in REGULAR_TRANSITIONS[current]


def _too_long(name: str, value: str | None, limit: int) -> OrderError | None:
    if value is not None and len(value) > limit:
        return OrderErrors.validation(FieldError(name, f"Must be at most {limit} characters"))
    return None


# ═══════════════════════════════════════════════════════════════════════════════
# ProcessPayment
# ═══════════════════════════════════════════════════════════════════════════════


def process_payment(order: Order, payment: PaymentResult, now: datetime) -> Result[Order, OrderError]:
    """
    Mark the order paid.

    Already paid: returned unchanged, so gateway retries are no-ops.
    Cancelled/Refunded: the payment is recorded but the status stays.
    """
    if order.is_paid:
        return Ok(order)

    status = OrderStatus.PROCESSING
    if order.status in (OrderStatus.CANCELLED, OrderStatus.REFUNDED):
        logger.warning("Payment %s arrived for %s order %s", payment.id, order.status.value, order.id)
        status = order.status

    return Ok(replace(
        order,
        is_paid=True,
        paid_at=now,
        payment_result=payment,
        status=status,
        updated_at=now,
    ))


# ═══════════════════════════════════════════════════════════════════════════════
# UpdateStatus
# ═══════════════════════════════════════════════════════════════════════════════


def update_status(
    order: Order,
    update: StatusUpdate,
    now: datetime,
    strict: bool = False,
) -> Result[Order, OrderError]:
    """
    Operator status change.

    Any status is accepted unless strict; jumps outside REGULAR_TRANSITIONS
    are logged. Delivered stamps is_delivered/delivered_at the first time.
    """
    if (err := _too_long("notes", update.notes, NOTES_MAX)) is not None:
        return Error(err)

    if not is_regular(order.status, update.status):
        if strict:
            return Error(OrderErrors.invalid_transition(
                f"Cannot move order from {order.status.value} to {update.status.value}"
            ))
        logger.warning(
            "Irregular status jump for order %s: %s → %s",
            order.id, order.status.value, update.status.value,
        )

    updated = replace(order, status=update.status, updated_at=now)

    if update.status == OrderStatus.DELIVERED and not order.is_delivered:
        updated = replace(updated, is_delivered=True, delivered_at=now)
    if update.notes is not None:
        updated = replace(updated, notes=update.notes)
    if update.tracking_number is not None:
        updated = replace(updated, tracking_number=update.tracking_number)
    if update.shipping_carrier is not None:
        updated = replace(updated, shipping_carrier=update.shipping_carrier)
    if update.estimated_delivery is not None:
        updated = replace(updated, estimated_delivery=update.estimated_delivery)

    return Ok(updated)


# ═══════════════════════════════════════════════════════════════════════════════
# Cancel
# ═══════════════════════════════════════════════════════════════════════════════


def cancel(order: Order, reason: str | None, now: datetime) -> Result[Order, OrderError]:
    """Only Pending/Processing/Shipped orders can be cancelled."""
    if (err := _too_long("reason", reason, REASON_MAX)) is not None:
        return Error(err)

    if order.status not in CANCELLABLE:
        return Error(OrderErrors.invalid_transition(
            f"Cannot cancel order with status {order.status.value}"
        ))

    return Ok(replace(order, status=OrderStatus.CANCELLED, cancel_reason=reason, updated_at=now))


# ═══════════════════════════════════════════════════════════════════════════════
# Refund
# ═══════════════════════════════════════════════════════════════════════════════


def check_refund(order: Order, amount: Money, reason: str) -> OrderError | None:
    """Everything refund() rejects, checked before any gateway call."""
    if not reason or not reason.strip():
        return OrderErrors.validation(FieldError("reason", "Refund reason is required"))
    if (err := _too_long("reason", reason, REASON_MAX)) is not None:
        return err
    if amount <= 0:
        return OrderErrors.invalid_amount("Refund amount must be positive")
    if amount > order.total_price:
        return OrderErrors.invalid_amount(
            f"Refund amount {amount} exceeds order total {order.total_price}"
        )
    if order.status == OrderStatus.REFUNDED:
        return OrderErrors.invalid_transition("Order is already refunded")
    if not order.is_paid:
        return OrderErrors.invalid_transition("Cannot refund an unpaid order")
    return None


def refund(order: Order, amount: Money, reason: str, now: datetime) -> Result[Order, OrderError]:
    amount = to_money(amount)
    if (err := check_refund(order, amount, reason)) is not None:
        return Error(err)

    return Ok(replace(
        order,
        status=OrderStatus.REFUNDED,
        refund_amount=amount,
        refund_reason=reason,
        updated_at=now,
    ))


__all__ = (
    "REGULAR_TRANSITIONS",
    "CANCELLABLE",
    "NOTES_MAX",
    "REASON_MAX",
    "is_regular",
    "process_payment",
    "update_status",
    "cancel",
    "check_refund",
    "refund",
)
