"""
Idempotency store: typed storage protocol.

All methods return Result for explicit error handling.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Protocol, Any, Generic, TypeVar

from kungfu import Result, Ok, Error

from orderflow._types import Clock, utcnow
from orderflow.idempotency._types import RecordState, IdempotencyRecord

T = TypeVar("T")


@dataclass(frozen=True)
class StoreError:
    message: str
    cause: Exception | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Store Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class Store(Protocol[T]):
    """Typed idempotency store. Expired records behave as absent."""

    async def get(self, key: str) -> Result[IdempotencyRecord[T, Any] | None, StoreError]:
        """Ok(None) if not found or expired."""
        ...

    async def set_pending(self, key: str, ttl: timedelta | None) -> Result[bool, StoreError]:
        """
        Atomically claim the key.

        Ok(True) if claimed, Ok(False) if a live record already exists.
        """
        ...

    async def set_completed(self, key: str, value: T, ttl: timedelta | None) -> Result[None, StoreError]:
        ...

    async def set_failed(self, key: str, error: Any, ttl: timedelta | None) -> Result[None, StoreError]:
        ...

    async def delete(self, key: str) -> Result[bool, StoreError]:
        """Ok(True) if the record existed."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Store
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryStore(Generic[T]):
    """
    In-memory idempotency store.

    Note: single process only; records do not survive a restart.
    """

    def __init__(self, clock: Clock = utcnow) -> None:
        self._records: dict[str, IdempotencyRecord[T, Any]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    def _expires(self, ttl: timedelta | None) -> datetime | None:
        return self._clock() + ttl if ttl else None

    def _live(self, key: str) -> IdempotencyRecord[T, Any] | None:
        record = self._records.get(key)
        if record is not None and record.expired(self._clock()):
            del self._records[key]
            return None
        return record

    async def get(self, key: str) -> Result[IdempotencyRecord[T, Any] | None, StoreError]:
        async with self._lock:
            return Ok(self._live(key))

    async def set_pending(self, key: str, ttl: timedelta | None) -> Result[bool, StoreError]:
        async with self._lock:
            if self._live(key) is not None:
                return Ok(False)
            self._records[key] = IdempotencyRecord(
                key=key,
                state=RecordState.PENDING,
                value=None,
                error=None,
                created_at=self._clock(),
                expires_at=self._expires(ttl),
            )
            return Ok(True)

    async def _settle(self, key: str, ttl: timedelta | None, **changes: Any) -> Result[None, StoreError]:
        async with self._lock:
            record = self._records.get(key)
            if record is None:
                return Error(StoreError(f"No pending record for key: {key}"))
            self._records[key] = replace(record, expires_at=self._expires(ttl), **changes)
            return Ok(None)

    async def set_completed(self, key: str, value: T, ttl: timedelta | None) -> Result[None, StoreError]:
        return await self._settle(key, ttl, state=RecordState.COMPLETED, value=value)

    async def set_failed(self, key: str, error: Any, ttl: timedelta | None) -> Result[None, StoreError]:
        return await self._settle(key, ttl, state=RecordState.FAILED, error=error)

    async def delete(self, key: str) -> Result[bool, StoreError]:
        async with self._lock:
            return Ok(self._records.pop(key, None) is not None)


__all__ = ("StoreError", "Store", "MemoryStore")
