"""
Tests for totals computation and reconciliation.
"""

from dataclasses import replace
from decimal import Decimal

from orderflow._types import to_cents, to_money, from_cents
from orderflow.config import Pricing
from orderflow.orders import OrderItem, compute_totals, reconciles, recompute_totals, stored_totals


def item(price: str, quantity: int) -> OrderItem:
    return OrderItem(product_id="p", name="Thing", price=Decimal(price), quantity=quantity)


class TestComputeTotals:
    def test_below_threshold_pays_shipping(self, pricing: Pricing):
        totals = compute_totals([item("10.00", 2)], pricing)

        assert totals.items_price == Decimal("20.00")
        assert totals.tax_price == Decimal("1.70")
        assert totals.shipping_price == Decimal("5.99")
        assert totals.total_price == Decimal("27.69")

    def test_threshold_reached_ships_free(self, pricing: Pricing):
        totals = compute_totals([item("25.00", 2)], pricing)

        assert totals.items_price == Decimal("50.00")
        assert totals.shipping_price == Decimal("0.00")
        assert totals.total_price == Decimal("54.25")

    def test_tax_rounds_half_up_to_cents(self, pricing: Pricing):
        assert compute_totals([item("1.00", 1)], pricing).tax_price == Decimal("0.09")
        assert compute_totals([item("10.10", 1)], pricing).tax_price == Decimal("0.86")

    def test_multiple_lines_sum(self, pricing: Pricing):
        totals = compute_totals([item("10.00", 2), item("2.50", 3), item("0.99", 1)], pricing)

        assert totals.items_price == Decimal("28.49")
        assert totals.total_price == totals.items_price + totals.tax_price + totals.shipping_price

    def test_empty_lines(self, pricing: Pricing):
        totals = compute_totals([], pricing)

        assert totals.items_price == Decimal("0.00")
        assert totals.tax_price == Decimal("0.00")
        assert totals.shipping_price == Decimal("5.99")

    def test_configured_values_drive_result(self):
        pricing = Pricing(tax_rate=Decimal("0.10"), free_shipping_threshold=Decimal("100.00"), shipping_cost=Decimal("7.50"))

        totals = compute_totals([item("60.00", 1)], pricing)

        assert totals.tax_price == Decimal("6.00")
        assert totals.shipping_price == Decimal("7.50")
        assert totals.total_price == Decimal("73.50")


class TestReconciliation:
    async def test_placed_orders_reconcile(self, place, pricing: Pricing):
        orders = [
            await place(("P1", 2)),
            await place(("P1", 1), ("P2", 2)),
            await place(("P2", 1), ("P3", 1)),
        ]

        for order in orders:
            assert recompute_totals(order, pricing) == stored_totals(order)
            assert reconciles(order, pricing)

    async def test_tampered_totals_detected(self, place, pricing: Pricing):
        order = await place(("P1", 2))

        assert not reconciles(replace(order, total_price=order.total_price + Decimal("0.01")), pricing)


class TestMoney:
    def test_to_money_from_float_uses_decimal_text(self):
        assert to_money(0.085) == Decimal("0.09")
        assert to_money(2.675) == Decimal("2.68")

    def test_cents_conversion(self):
        assert to_cents(Decimal("27.69")) == 2769
        assert from_cents(2769) == Decimal("27.69")
