"""
Keyed once-only execution.

    result = await run_once(store, event.id, lambda: handle(event), policy)

    match result:
        case Ok(r) if r.from_cache:   # seen before, nothing ran
        case Ok(r):                   # ran now, r.value stored
        case Error(e):                # CONFLICT / TIMEOUT / STORE_ERROR / EXECUTION

Flow:
    fetch record
      ├── COMPLETED → cached value
      ├── FAILED    → cached failure
      ├── PENDING   → WAIT (poll) | FAIL (CONFLICT)
      └── absent    → claim key → run → store outcome
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from kungfu import Result, Ok, Error

from orderflow.idempotency._policy import Policy, OnPending
from orderflow.idempotency._store import Store, StoreError
from orderflow.idempotency._types import (
    RecordState,
    IdempotencyRecord,
    IdempotencyResult,
    IdempotencyError,
    IdempotencyErrorKind,
)

logger = logging.getLogger(__name__)

type Outcome[T, E] = Result[IdempotencyResult[T], IdempotencyError[E]]


def _store_error[T, E](err: StoreError) -> Outcome[T, E]:
    return Error(IdempotencyError(IdempotencyErrorKind.STORE_ERROR, err.message))


def _settled[T, E](record: IdempotencyRecord[T, Any]) -> Outcome[T, E] | None:
    match record.state:
        case RecordState.COMPLETED:
            return Ok(IdempotencyResult(value=record.value, from_cache=True, key=record.key))  # type: ignore[arg-type]
        case RecordState.FAILED:
            return Error(
                IdempotencyError(IdempotencyErrorKind.EXECUTION, "Cached failure", record.error)
            )
        case _:
            return None


async def _wait[T, E](store: Store[T], key: str, policy: Policy) -> Outcome[T, E]:
    deadline = policy.pending_wait_timeout.total_seconds()
    interval = policy.poll_interval.total_seconds()
    elapsed = 0.0

    while elapsed < deadline:
        await asyncio.sleep(interval)
        elapsed += interval

        match await store.get(key):
            case Error(err):
                return _store_error(err)
            case Ok(None):
                return Error(IdempotencyError(IdempotencyErrorKind.CONFLICT, "Record disappeared"))
            case Ok(record):
                if (settled := _settled(record)) is not None:
                    return settled

    return Error(IdempotencyError(IdempotencyErrorKind.TIMEOUT, f"Timeout waiting for {key}"))


async def _execute[T, E](
    store: Store[T],
    key: str,
    operation: Callable[[], Awaitable[Result[T, E]]],
    policy: Policy,
) -> Outcome[T, E]:
    try:
        result = await operation()
    except BaseException:
        # Key is released before the exception (or cancellation) propagates
        await store.delete(key)
        raise

    match result:
        case Ok(value):
            match await store.set_completed(key, value, policy.result_ttl):
                case Error(err):
                    return _store_error(err)
                case Ok(_):
                    return Ok(IdempotencyResult(value=value, from_cache=False, key=key))
        case Error(err):
            if policy.persist_failed:
                await store.set_failed(key, err, policy.result_ttl)
            else:
                await store.delete(key)
            return Error(IdempotencyError(IdempotencyErrorKind.EXECUTION, "Operation returned Error", err))


async def run_once[T, E](
    store: Store[T],
    key: str,
    operation: Callable[[], Awaitable[Result[T, E]]],
    policy: Policy = Policy(),
) -> Outcome[T, E]:
    """
    Run operation at most once per live key.

    Note: exceptions from operation propagate after the key is released.
    A claim whose holder died without settling expires after pending_ttl.
    """
    match await store.get(key):
        case Error(err):
            return _store_error(err)
        case Ok(None):
            pass
        case Ok(record):
            if (settled := _settled(record)) is not None:
                logger.debug("Idempotency hit for %s (%s)", key, record.state.name)
                return settled
            if policy.conflict_strategy == OnPending.FAIL:
                return Error(IdempotencyError(IdempotencyErrorKind.CONFLICT, f"Pending conflict: {key}"))
            return await _wait(store, key, policy)

    match await store.set_pending(key, policy.pending_ttl):
        case Error(err):
            return _store_error(err)
        case Ok(False):
            # Lost the race; whoever won may already be done
            match await store.get(key):
                case Ok(record) if record is not None and record.state == RecordState.COMPLETED:
                    return Ok(IdempotencyResult(value=record.value, from_cache=True, key=key))  # type: ignore[arg-type]
                case _:
                    return Error(IdempotencyError(IdempotencyErrorKind.CONFLICT, "Race conflict"))
        case Ok(True):
            return await _execute(store, key, operation, policy)


__all__ = ("Outcome", "run_once")
