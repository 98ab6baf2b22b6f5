"""
Order store: persistence for the order aggregate.
"""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass
from typing import Protocol

from kungfu import Result, Ok, Error

from orderflow._types import OrderId, UserId
from orderflow.errors import OrderError, OrderErrors, FieldError
from orderflow.orders._types import Order, OrderStatus

PAGE_LIMIT_MAX = 50


@dataclass(frozen=True, slots=True)
class OrderPage:
    orders: tuple[Order, ...]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0


def check_paging(page: int, limit: int) -> OrderError | None:
    fields = []
    if page < 1:
        fields.append(FieldError("page", "Page must be at least 1"))
    if not 1 <= limit <= PAGE_LIMIT_MAX:
        fields.append(FieldError("limit", f"Limit must be between 1 and {PAGE_LIMIT_MAX}"))
    return OrderErrors.validation(*fields) if fields else None


class OrderStore(Protocol):
    async def get(self, order_id: OrderId) -> Result[Order, OrderError]:
        """NOT_FOUND if missing."""
        ...

    async def exists(self, order_id: OrderId) -> Result[bool, OrderError]:
        ...

    async def insert(self, order: Order) -> Result[Order, OrderError]:
        ...

    async def save(self, order: Order, expected: OrderStatus) -> Result[Order, OrderError]:
        """
        Overwrite an existing order if its stored status is still `expected`.

        NOT_FOUND if missing, INVALID_TRANSITION if another writer got there first.
        """
        ...

    async def by_tracking(self, tracking_number: str) -> Result[Order, OrderError]:
        ...

    async def list_for_user(self, user_id: UserId, page: int, limit: int) -> Result[OrderPage, OrderError]:
        """Newest first."""
        ...


class MemoryOrderStore:
    def __init__(self) -> None:
        self._orders: dict[OrderId, Order] = {}
        self._lock = asyncio.Lock()

    def snapshot(self, order_id: OrderId) -> Order | None:
        return self._orders.get(order_id)

    async def get(self, order_id: OrderId) -> Result[Order, OrderError]:
        async with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                return Error(OrderErrors.not_found("Order", order_id))
            return Ok(order)

    async def exists(self, order_id: OrderId) -> Result[bool, OrderError]:
        async with self._lock:
            return Ok(order_id in self._orders)

    async def insert(self, order: Order) -> Result[Order, OrderError]:
        async with self._lock:
            if order.id in self._orders:
                return Error(OrderErrors.internal(f"Order {order.id} already exists"))
            self._orders[order.id] = order
            return Ok(order)

    async def save(self, order: Order, expected: OrderStatus) -> Result[Order, OrderError]:
        async with self._lock:
            current = self._orders.get(order.id)
            if current is None:
                return Error(OrderErrors.not_found("Order", order.id))
            if current.status != expected:
                return Error(OrderErrors.order_changed(order.id, expected.value, current.status.value))
            self._orders[order.id] = order
            return Ok(order)

    async def by_tracking(self, tracking_number: str) -> Result[Order, OrderError]:
        async with self._lock:
            for order in self._orders.values():
                if order.tracking_number == tracking_number:
                    return Ok(order)
            return Error(OrderErrors.tracking_not_found(tracking_number))

    async def list_for_user(self, user_id: UserId, page: int, limit: int) -> Result[OrderPage, OrderError]:
        if (err := check_paging(page, limit)) is not None:
            return Error(err)

        async with self._lock:
            mine = sorted(
                (o for o in self._orders.values() if o.user_id == user_id),
                key=lambda o: o.created_at,
                reverse=True,
            )
            start = (page - 1) * limit
            return Ok(OrderPage(tuple(mine[start:start + limit]), len(mine), page, limit))


__all__ = ("OrderPage", "OrderStore", "MemoryOrderStore", "PAGE_LIMIT_MAX", "check_paging")
