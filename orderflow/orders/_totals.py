"""
Totals: pure function of order lines and pricing configuration.

    items    = Σ price × quantity
    tax      = round_half_up(items × tax_rate, cents)
    shipping = 0 if items ≥ free_shipping_threshold else shipping_cost
    total    = items + tax + shipping
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from orderflow._types import Money, ZERO, to_money
from orderflow.config import Pricing
from orderflow.orders._types import Order, OrderItem


@dataclass(frozen=True, slots=True)
class Totals:
    items_price: Money
    tax_price: Money
    shipping_price: Money
    total_price: Money


def compute_totals(items: Iterable[OrderItem], pricing: Pricing) -> Totals:
    items_price = to_money(sum((item.line_total for item in items), ZERO))
    tax_price = to_money(items_price * pricing.tax_rate)
    shipping_price = ZERO if items_price >= pricing.free_shipping_threshold else pricing.shipping_cost
    return Totals(
        items_price=items_price,
        tax_price=tax_price,
        shipping_price=shipping_price,
        total_price=to_money(items_price + tax_price + shipping_price),
    )


def recompute_totals(order: Order, pricing: Pricing) -> Totals:
    """Totals re-derived from the stored lines, ignoring stored subtotals."""
    return compute_totals(order.order_items, pricing)


def stored_totals(order: Order) -> Totals:
    return Totals(order.items_price, order.tax_price, order.shipping_price, order.total_price)


def reconciles(order: Order, pricing: Pricing) -> bool:
    return recompute_totals(order, pricing) == stored_totals(order)


__all__ = ("Totals", "compute_totals", "recompute_totals", "stored_totals", "reconciles")
