"""
Idempotency: run an operation at most once per key.

    from orderflow import idempotency as I

    store = I.MemoryStore()
    policy = I.Policy().with_ttl(hours=72).with_on_pending(I.FAIL)

    result = await I.run_once(store, event_id, lambda: handle(event), policy)

Used to deduplicate payment gateway webhook deliveries by event id.
"""

from orderflow.idempotency._types import (
    RecordState,
    IdempotencyRecord,
    IdempotencyResult,
    IdempotencyError,
    IdempotencyErrorKind,
)
from orderflow.idempotency._store import Store, StoreError, MemoryStore
from orderflow.idempotency._policy import OnPending, WAIT, FAIL, Policy
from orderflow.idempotency._sqlalchemy import (
    IdempotencyMixin,
    IdempotencyStatus,
    SQLAlchemyStore,
    insert_ignoring_conflict,
)
from orderflow.idempotency._run import Outcome, run_once

__all__ = (
    "RecordState",
    "IdempotencyRecord",
    "IdempotencyResult",
    "IdempotencyError",
    "IdempotencyErrorKind",
    "Store",
    "StoreError",
    "MemoryStore",
    "OnPending",
    "WAIT",
    "FAIL",
    "Policy",
    "IdempotencyMixin",
    "IdempotencyStatus",
    "SQLAlchemyStore",
    "insert_ignoring_conflict",
    "Outcome",
    "run_once",
)
