"""
Idempotency types: records of keyed once-only executions.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, auto
from typing import Generic, TypeVar

T = TypeVar("T")
E = TypeVar("E")


# ═══════════════════════════════════════════════════════════════════════════════
# Record State
# ═══════════════════════════════════════════════════════════════════════════════


class RecordState(Enum):
    """
    Lifecycle:
        PENDING → COMPLETED (success)
                → FAILED (error, only when failures are persisted)
                → (expired/deleted)
    """

    PENDING = auto()
    COMPLETED = auto()
    FAILED = auto()


@dataclass(frozen=True, slots=True)
class IdempotencyRecord(Generic[T, E]):
    """
    A stored record.

    Note: value is set only for COMPLETED, error only for FAILED.
    """

    key: str
    state: RecordState
    value: T | None
    error: E | None
    created_at: datetime
    expires_at: datetime | None

    def expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now > self.expires_at


# ═══════════════════════════════════════════════════════════════════════════════
# Outcome
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class IdempotencyResult(Generic[T]):
    """
    Successful execution.

    Note: from_cache means the key was seen before and nothing ran.
    """

    value: T
    from_cache: bool
    key: str


class IdempotencyErrorKind(Enum):
    CONFLICT = auto()  # another execution holds the key
    TIMEOUT = auto()  # waited for pending too long
    STORE_ERROR = auto()
    EXECUTION = auto()  # wrapped operation failed


@dataclass(frozen=True, slots=True)
class IdempotencyError(Generic[E]):
    """original_error carries the wrapped operation's error for EXECUTION."""

    kind: IdempotencyErrorKind
    message: str
    original_error: E | None = None


__all__ = (
    "RecordState",
    "IdempotencyRecord",
    "IdempotencyResult",
    "IdempotencyError",
    "IdempotencyErrorKind",
)
