"""
Error taxonomy: every failure an order operation can surface.

Stores and services return Error(OrderError); graph nodes raise
OrderFailure, which is unwrapped back into an OrderError at the
graph boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(Enum):
    """Stable error classification exposed to callers."""

    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    INSUFFICIENT_STOCK = "insufficient_stock"
    INVALID_TRANSITION = "invalid_transition"
    INVALID_AMOUNT = "invalid_amount"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    PAYMENT_PROCESSOR = "payment_processor"
    INTERNAL = "internal"


@dataclass(frozen=True, slots=True)
class FieldError:
    field: str
    message: str


@dataclass(frozen=True, slots=True)
class OrderError:
    """
    Error value carried in Result.

    Note: fields is only populated for VALIDATION.
    """

    kind: ErrorKind
    message: str
    fields: tuple[FieldError, ...] = ()

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


class OrderFailure(Exception):
    """Raised inside graph nodes; carries the OrderError out of the graph."""

    def __init__(self, error: OrderError) -> None:
        super().__init__(error.message)
        self.error = error


# ═══════════════════════════════════════════════════════════════════════════════
# Constructors
# ═══════════════════════════════════════════════════════════════════════════════


class OrderErrors:
    @staticmethod
    def not_found(entity: str, ident: str) -> OrderError:
        return OrderError(ErrorKind.NOT_FOUND, f"{entity} with ID {ident} not found")

    @staticmethod
    def tracking_not_found(tracking_number: str) -> OrderError:
        return OrderError(ErrorKind.NOT_FOUND, f"No order with tracking number {tracking_number}")

    @staticmethod
    def validation(*fields: FieldError) -> OrderError:
        return OrderError(ErrorKind.VALIDATION, "Validation failed", tuple(fields))

    @staticmethod
    def insufficient_stock(name: str, available: int, requested: int) -> OrderError:
        return OrderError(
            ErrorKind.INSUFFICIENT_STOCK,
            f"Insufficient stock for {name}. Available: {available}, requested: {requested}",
        )

    @staticmethod
    def invalid_transition(msg: str) -> OrderError:
        return OrderError(ErrorKind.INVALID_TRANSITION, msg)

    @staticmethod
    def order_changed(order_id: str, expected: str, actual: str) -> OrderError:
        return OrderError(
            ErrorKind.INVALID_TRANSITION,
            f"Order {order_id} changed concurrently: expected {expected}, found {actual}",
        )

    @staticmethod
    def invalid_amount(msg: str) -> OrderError:
        return OrderError(ErrorKind.INVALID_AMOUNT, msg)

    @staticmethod
    def unauthorized(msg: str = "Not authenticated") -> OrderError:
        return OrderError(ErrorKind.UNAUTHORIZED, msg)

    @staticmethod
    def forbidden(msg: str) -> OrderError:
        return OrderError(ErrorKind.FORBIDDEN, msg)

    @staticmethod
    def payment_processor(msg: str) -> OrderError:
        return OrderError(ErrorKind.PAYMENT_PROCESSOR, msg)

    @staticmethod
    def internal(msg: str = "Server error") -> OrderError:
        return OrderError(ErrorKind.INTERNAL, msg)


__all__ = (
    "ErrorKind",
    "FieldError",
    "OrderError",
    "OrderFailure",
    "OrderErrors",
)
