"""
Catalog store: find / reserve / restore.

All methods return Result for explicit error handling. Reservation is a
conditional decrement: it either takes the whole quantity or leaves the
product untouched.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from kungfu import Result, Ok, Error

from orderflow._types import ProductId
from orderflow.catalog._types import Product
from orderflow.errors import OrderError, OrderErrors, FieldError

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Store Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class CatalogStore(Protocol):
    """
    Catalog capability consumed by order logic.

    Implementations must make reserve() atomic per product: two concurrent
    reservations can never both succeed if together they exceed stock.
    """

    async def find(self, product_id: ProductId) -> Result[Product, OrderError]:
        """Get product. NOT_FOUND if missing."""
        ...

    async def reserve(self, product_id: ProductId, quantity: int) -> Result[Product, OrderError]:
        """
        Decrement stock by quantity.

        INSUFFICIENT_STOCK if stock < quantity; stock is left unchanged.
        """
        ...

    async def restore(self, product_id: ProductId, quantity: int) -> Result[Product, OrderError]:
        """Increment stock by quantity. NOT_FOUND if missing."""
        ...


def check_quantity(quantity: int) -> OrderError | None:
    if quantity < 1:
        return OrderErrors.validation(FieldError("quantity", "Quantity must be at least 1"))
    return None


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Catalog: single process, tests and demos
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryCatalog:
    """
    In-memory catalog.

    Note: one lock for all products; reserve is check-and-decrement under it.
    """

    def __init__(self, products: list[Product] | None = None) -> None:
        self._products: dict[ProductId, Product] = {p.id: p for p in products or []}
        self._lock = asyncio.Lock()

    def add(self, product: Product) -> None:
        self._products[product.id] = product

    def snapshot(self, product_id: ProductId) -> Product | None:
        """Current product without going through Result. For inspection."""
        return self._products.get(product_id)

    async def find(self, product_id: ProductId) -> Result[Product, OrderError]:
        async with self._lock:
            product = self._products.get(product_id)
            if product is None:
                return Error(OrderErrors.not_found("Product", product_id))
            return Ok(product)

    async def reserve(self, product_id: ProductId, quantity: int) -> Result[Product, OrderError]:
        if (err := check_quantity(quantity)) is not None:
            return Error(err)

        async with self._lock:
            product = self._products.get(product_id)
            if product is None:
                return Error(OrderErrors.not_found("Product", product_id))
            if product.stock < quantity:
                return Error(OrderErrors.insufficient_stock(product.name, product.stock, quantity))

            updated = product.take(quantity)
            self._products[product_id] = updated
            logger.debug("Reserved %s x%d (stock %d → %d)", product_id, quantity, product.stock, updated.stock)
            return Ok(updated)

    async def restore(self, product_id: ProductId, quantity: int) -> Result[Product, OrderError]:
        if (err := check_quantity(quantity)) is not None:
            return Error(err)

        async with self._lock:
            product = self._products.get(product_id)
            if product is None:
                return Error(OrderErrors.not_found("Product", product_id))

            updated = product.give_back(quantity)
            self._products[product_id] = updated
            logger.debug("Restored %s x%d (stock %d → %d)", product_id, quantity, product.stock, updated.stock)
            return Ok(updated)


__all__ = ("CatalogStore", "MemoryCatalog", "check_quantity")
