"""
Catalog types: products as consumed by order logic.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum

from orderflow._types import Money, ProductId, ZERO


class ProductStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    OUT_OF_STOCK = "out_of_stock"


@dataclass(frozen=True, slots=True)
class Product:
    """
    A catalog product.

    Invariants: stock >= 0, price >= 0, sale_price >= 0 when present.
    Status follows stock: OUT_OF_STOCK at zero, ACTIVE once restocked,
    unless an operator set INACTIVE.
    """

    id: ProductId
    name: str
    price: Money
    stock: int
    status: ProductStatus = ProductStatus.ACTIVE
    sale_price: Money | None = None
    sku: str | None = None
    images: tuple[str, ...] = field(default_factory=tuple)
    is_on_sale: bool = False

    def __post_init__(self) -> None:
        if self.stock < 0:
            raise ValueError(f"stock cannot be negative: {self.stock}")
        if self.price < 0:
            raise ValueError(f"price cannot be negative: {self.price}")
        if self.sale_price is not None and self.sale_price < 0:
            raise ValueError(f"sale price cannot be negative: {self.sale_price}")

    # ─── derived ──────────────────────────────────────────────────────────────

    @property
    def effective_price(self) -> Money:
        """Sale price when present and lower than the base price."""
        if self.sale_price is not None and self.sale_price < self.price:
            return self.sale_price
        return self.price

    @property
    def discount_amount(self) -> Money:
        if self.effective_price >= self.price:
            return ZERO
        return self.price - self.effective_price

    @property
    def discount_percentage(self) -> int:
        if self.price == 0 or self.effective_price >= self.price:
            return 0
        ratio = (self.price - self.effective_price) / self.price * 100
        return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    @property
    def in_stock(self) -> bool:
        return self.stock > 0 and self.status == ProductStatus.ACTIVE

    @property
    def primary_image(self) -> str:
        return self.images[0] if self.images else ""

    # ─── stock arithmetic (pure) ──────────────────────────────────────────────

    def take(self, quantity: int) -> Product:
        """Product after reserving quantity. Caller checks stock first."""
        stock = self.stock - quantity
        status = self.status
        if stock == 0 and status == ProductStatus.ACTIVE:
            status = ProductStatus.OUT_OF_STOCK
        return replace(self, stock=stock, status=status)

    def give_back(self, quantity: int) -> Product:
        """Product after restoring quantity."""
        stock = self.stock + quantity
        status = self.status
        if status == ProductStatus.OUT_OF_STOCK and stock > 0:
            status = ProductStatus.ACTIVE
        return replace(self, stock=stock, status=status)


__all__ = ("ProductStatus", "Product")
