"""Shared infrastructure for examples."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from decimal import Decimal

from kungfu import Result, Ok

from orderflow import orders as O
from orderflow import payments as P
from orderflow import saga as S
from orderflow.catalog import MemoryCatalog, Product
from orderflow.config import Pricing
from orderflow.errors import OrderError


# Catalog
def demo_catalog() -> MemoryCatalog:
    return MemoryCatalog([
        Product("mug", "Stoneware Mug", Decimal("12.00"), stock=10, sku="MUG-01", images=("mug.jpg",)),
        Product("teapot", "Cast Iron Teapot", Decimal("45.00"), stock=2, sale_price=Decimal("39.00"), is_on_sale=True),
        Product("tea", "Sencha 100g", Decimal("8.50"), stock=25),
    ])


# Fake gateway
class PrintingGateway:
    """Refunds always succeed; each call is printed."""

    async def create_refund(self, payment_intent_id: str, amount_cents: int, reason: str | None) -> Result[P.Refund, OrderError]:
        print(f"  → gateway refund {amount_cents}¢ on {payment_intent_id} ({reason})")
        return Ok(P.Refund(f"re_{payment_intent_id}", "succeeded", amount_cents, payment_intent_id))


def demo_service(catalog: MemoryCatalog) -> O.OrderService:
    pricing = Pricing(
        tax_rate=Decimal("0.085"),
        free_shipping_threshold=Decimal("50.00"),
        shipping_cost=Decimal("5.99"),
    )
    return O.OrderService(catalog, O.MemoryOrderStore(), S.MemoryIntentStore(), pricing, gateway=PrintingGateway())


# Helpers
def banner(title: str) -> None:
    print(f"\n{'─' * 50}\n{title}\n{'─' * 50}")


def show(order: O.Order) -> None:
    print(f"  {order.order_number} [{order.status.value}] total={order.total_price} paid={order.is_paid}")


def run(main: Callable[[], Coroutine[object, object, None]]) -> None:
    asyncio.run(main())
