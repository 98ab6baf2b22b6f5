"""
Saga types: compensated steps and the durable order intent.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from collections.abc import Callable, Awaitable

from kungfu import LazyCoroResult

from orderflow._types import IntentId, OrderId, ProductId, UserId

# ═══════════════════════════════════════════════════════════════════════════════
# SagaStep: action + undo
# ═══════════════════════════════════════════════════════════════════════════════

type Compensator[T] = Callable[[T], Awaitable[None]]
"""Receives the action's result and undoes it."""


@dataclass(frozen=True, slots=True)
class SagaStep[T, E]:
    """
    A single saga step.

    When action succeeds, compensator is recorded.
    If a later step fails, recorded compensators run in reverse.
    """

    action: LazyCoroResult[T, E]
    compensate: Compensator[T] | None = None


@dataclass(frozen=True, slots=True)
class SagaResult[T]:
    value: T
    steps_executed: int
    compensators_recorded: int


@dataclass(frozen=True, slots=True)
class SagaError[E]:
    """Failure with rollback status; rollback_complete is False if any undo raised."""

    error: E
    step_failed: int
    compensators_run: int
    compensators_failed: int
    rollback_complete: bool


# ═══════════════════════════════════════════════════════════════════════════════
# OrderIntent: written before any product is touched
# ═══════════════════════════════════════════════════════════════════════════════


class IntentState(Enum):
    """
    Lifecycle:
        PENDING → COMPLETED   (order inserted)
                → COMPENSATED (creation failed, reservations restored)
                → ABANDONED   (found stale by the sweep, reservations restored)

    A failed creation whose rollback could not restore every line stays
    PENDING so the sweep picks up what is still outstanding.
    """

    PENDING = "pending"
    COMPLETED = "completed"
    COMPENSATED = "compensated"
    ABANDONED = "abandoned"


@dataclass(frozen=True, slots=True)
class IntentLine:
    product_id: ProductId
    quantity: int


@dataclass(frozen=True, slots=True)
class OrderIntent:
    """
    Durable record of an in-flight order creation.

    Note: reserved grows one line at a time, after each successful reserve,
    and released after each successful restore; recovery restores only
    what is outstanding.
    """

    id: IntentId
    order_id: OrderId
    user_id: UserId
    lines: tuple[IntentLine, ...]
    created_at: datetime
    updated_at: datetime
    reserved: tuple[IntentLine, ...] = field(default_factory=tuple)
    released: tuple[IntentLine, ...] = field(default_factory=tuple)
    state: IntentState = IntentState.PENDING

    @property
    def outstanding(self) -> tuple[IntentLine, ...]:
        """Reserved lines not yet given back."""
        remaining = list(self.reserved)
        for line in self.released:
            if line in remaining:
                remaining.remove(line)
        return tuple(remaining)

    def with_reserved(self, line: IntentLine, now: datetime) -> OrderIntent:
        return replace(self, reserved=(*self.reserved, line), updated_at=now)

    def with_released(self, line: IntentLine, now: datetime) -> OrderIntent:
        return replace(self, released=(*self.released, line), updated_at=now)

    def settle(self, state: IntentState, now: datetime) -> OrderIntent:
        return replace(self, state=state, updated_at=now)


__all__ = (
    "Compensator",
    "SagaStep",
    "SagaResult",
    "SagaError",
    "IntentState",
    "IntentLine",
    "OrderIntent",
)
