"""
Idempotency policy: how long keys live and what to do on contention.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import timedelta
from enum import Enum, auto


class OnPending(Enum):
    """
    What to do when a key is already held by a running execution.

    WAIT: poll until it settles, return its result.
    FAIL: return CONFLICT immediately. Webhook senders retry on non-2xx,
          so this is the right choice for inbound deliveries.
    """

    WAIT = auto()
    FAIL = auto()


WAIT = OnPending.WAIT
FAIL = OnPending.FAIL


@dataclass(frozen=True, slots=True)
class Policy:
    """
    Immutable policy; each with_* returns a new one.

        policy = Policy().with_ttl(hours=72).with_on_pending(FAIL)
    """

    result_ttl: timedelta | None = None
    # Lease on a claimed key; a claim that never settles frees up after it.
    pending_ttl: timedelta | None = timedelta(minutes=5)
    conflict_strategy: OnPending = OnPending.WAIT
    pending_wait_timeout: timedelta = timedelta(seconds=30)
    poll_interval: timedelta = timedelta(milliseconds=100)
    # Failed executions are forgotten by default so the sender can retry.
    persist_failed: bool = False

    def with_ttl(
        self,
        *,
        seconds: float | None = None,
        hours: float | None = None,
        delta: timedelta | None = None,
    ) -> Policy:
        if delta is None:
            total = (seconds or 0) + (hours or 0) * 3600
            delta = timedelta(seconds=total) if total > 0 else None
        return replace(self, result_ttl=delta)

    def with_pending_ttl(self, *, seconds: float) -> Policy:
        return replace(self, pending_ttl=timedelta(seconds=seconds) if seconds > 0 else None)

    def with_on_pending(self, strategy: OnPending) -> Policy:
        return replace(self, conflict_strategy=strategy)

    def with_wait_timeout(self, *, seconds: float) -> Policy:
        return replace(self, pending_wait_timeout=timedelta(seconds=seconds))

    def with_store_failed(self, store: bool = True) -> Policy:
        return replace(self, persist_failed=store)


__all__ = ("OnPending", "WAIT", "FAIL", "Policy")
