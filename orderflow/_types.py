"""
Core types for orderflow.

Re-exports from kungfu + money and identity aliases.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from collections.abc import Callable

# Re-export from kungfu
from kungfu import Result, Ok, Error, LazyCoroResult

# ═══════════════════════════════════════════════════════════════════════════════
# Identity
# ═══════════════════════════════════════════════════════════════════════════════

type ProductId = str
type OrderId = str
type UserId = str
type IntentId = str

# ═══════════════════════════════════════════════════════════════════════════════
# Money
# ═══════════════════════════════════════════════════════════════════════════════

type Money = Decimal
"""Monetary amount in major units (dollars), always quantized to cents."""

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Decimal | int | float | str) -> Money:
    """
    Quantize to cents, round-half-up on the hundredths digit.

    Floats go through str() so 0.085 stays 0.085 and not its binary expansion.
    """
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value: Money) -> int:
    """Money → integer minor units for the payment gateway."""
    return int((to_money(value) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Money:
    return to_money(Decimal(cents) / 100)


# ═══════════════════════════════════════════════════════════════════════════════
# Clock
# ═══════════════════════════════════════════════════════════════════════════════

type Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


__all__ = (
    # Re-exports from kungfu
    "Result",
    "Ok",
    "Error",
    "LazyCoroResult",
    # Identity
    "ProductId",
    "OrderId",
    "UserId",
    "IntentId",
    # Money
    "Money",
    "CENT",
    "ZERO",
    "to_money",
    "to_cents",
    "from_cents",
    # Clock
    "Clock",
    "utcnow",
    "as_utc",
)
