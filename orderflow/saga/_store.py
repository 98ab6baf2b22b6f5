"""
Intent store: persistence for OrderIntent records.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime
from typing import Protocol

from kungfu import Result, Ok, Error

from orderflow._types import IntentId
from orderflow.errors import OrderError, OrderErrors
from orderflow.saga._types import OrderIntent, IntentLine, IntentState


class IntentStore(Protocol):
    async def insert(self, intent: OrderIntent) -> Result[OrderIntent, OrderError]:
        ...

    async def get(self, intent_id: IntentId) -> Result[OrderIntent, OrderError]:
        """NOT_FOUND if missing."""
        ...

    async def record_reserved(
        self, intent_id: IntentId, line: IntentLine, now: datetime
    ) -> Result[OrderIntent, OrderError]:
        """Append a successfully reserved line."""
        ...

    async def record_released(
        self, intent_id: IntentId, line: IntentLine, now: datetime
    ) -> Result[OrderIntent, OrderError]:
        """Mark a reserved line as given back to the catalog."""
        ...

    async def settle(
        self, intent_id: IntentId, state: IntentState, now: datetime
    ) -> Result[OrderIntent, OrderError]:
        ...

    async def stale(self, before: datetime) -> Result[list[OrderIntent], OrderError]:
        """PENDING intents created before the cutoff, oldest first."""
        ...


class MemoryIntentStore:
    def __init__(self) -> None:
        self._intents: dict[IntentId, OrderIntent] = {}
        self._lock = asyncio.Lock()

    async def insert(self, intent: OrderIntent) -> Result[OrderIntent, OrderError]:
        async with self._lock:
            self._intents[intent.id] = intent
            return Ok(intent)

    async def get(self, intent_id: IntentId) -> Result[OrderIntent, OrderError]:
        async with self._lock:
            intent = self._intents.get(intent_id)
            if intent is None:
                return Error(OrderErrors.not_found("Intent", intent_id))
            return Ok(intent)

    async def _update(
        self, intent_id: IntentId, change: Callable[[OrderIntent], OrderIntent]
    ) -> Result[OrderIntent, OrderError]:
        async with self._lock:
            intent = self._intents.get(intent_id)
            if intent is None:
                return Error(OrderErrors.not_found("Intent", intent_id))
            updated = change(intent)
            self._intents[intent_id] = updated
            return Ok(updated)

    async def record_reserved(
        self, intent_id: IntentId, line: IntentLine, now: datetime
    ) -> Result[OrderIntent, OrderError]:
        return await self._update(intent_id, lambda i: i.with_reserved(line, now))

    async def record_released(
        self, intent_id: IntentId, line: IntentLine, now: datetime
    ) -> Result[OrderIntent, OrderError]:
        return await self._update(intent_id, lambda i: i.with_released(line, now))

    async def settle(
        self, intent_id: IntentId, state: IntentState, now: datetime
    ) -> Result[OrderIntent, OrderError]:
        return await self._update(intent_id, lambda i: i.settle(state, now))

    async def stale(self, before: datetime) -> Result[list[OrderIntent], OrderError]:
        async with self._lock:
            found = [
                i for i in self._intents.values()
                if i.state == IntentState.PENDING and i.created_at < before
            ]
            return Ok(sorted(found, key=lambda i: i.created_at))


__all__ = ("IntentStore", "MemoryIntentStore")
