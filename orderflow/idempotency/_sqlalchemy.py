"""
SQLAlchemy integration: idempotency store over any model with the mixin.

    class WebhookEventTable(Base, IdempotencyMixin):
        __tablename__ = "webhook_events"
        id: Mapped[int] = mapped_column(primary_key=True)
        created_at: Mapped[datetime] = ...

    store = SQLAlchemyStore(
        session_factory,
        model=WebhookEventTable,
        to_pending=lambda key, now: WebhookEventTable(idempotency_key=key, created_at=now),
        to_insert=insert_ignoring_conflict,
    )

set_pending relies on INSERT ... ON CONFLICT DO NOTHING against the
unique idempotency_key, so two workers can never both claim a key.
"""

from datetime import datetime, timedelta
from typing import Any, Protocol, TypeVar, Generic, Callable, cast

from sqlalchemy import select, String, DateTime, Text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Mapped, mapped_column

from kungfu import Result, Ok, Error

from orderflow._types import Clock, utcnow, as_utc
from orderflow.idempotency._types import IdempotencyRecord, RecordState
from orderflow.idempotency._store import StoreError


# ═══════════════════════════════════════════════════════════════════════════════
# Mixin
# ═══════════════════════════════════════════════════════════════════════════════

class IdempotencyMixin:
    """
    Adds columns:
    - idempotency_key: unique key for deduplication
    - idempotency_status: "pending" | "completed" | "failed"
    - idempotency_value: serialized result
    - idempotency_error: error message
    - idempotency_expires_at: optional TTL
    """

    idempotency_key: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    idempotency_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    idempotency_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    idempotency_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    idempotency_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class IdempotencyStatus:
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


_STATES = {
    IdempotencyStatus.PENDING: RecordState.PENDING,
    IdempotencyStatus.COMPLETED: RecordState.COMPLETED,
    IdempotencyStatus.FAILED: RecordState.FAILED,
}


class IdempotentModel(Protocol):
    idempotency_key: str
    idempotency_status: str
    idempotency_value: str | None
    idempotency_error: str | None
    idempotency_expires_at: datetime | None
    created_at: datetime


M = TypeVar("M")


def insert_ignoring_conflict(model: Any, dialect: str) -> Any:
    """INSERT ... ON CONFLICT (idempotency_key) DO NOTHING for the row's table."""
    table = type(model).__table__
    values = {
        c.key: getattr(model, c.key)
        for c in table.columns
        if getattr(model, c.key, None) is not None
    }
    insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
    return insert(table).values(**values).on_conflict_do_nothing(index_elements=["idempotency_key"])


# ═══════════════════════════════════════════════════════════════════════════════
# Store
# ═══════════════════════════════════════════════════════════════════════════════

class SQLAlchemyStore(Generic[M]):
    """
    Idempotency store for SQLAlchemy models; values are stored as text.

    Args:
        session_factory: async session factory
        model: model class with IdempotencyMixin
        to_pending: (key, now) → pending row
        to_insert: (row, dialect name) → conflict-ignoring INSERT
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        model: type[M],
        to_pending: Callable[[str, datetime], M],
        to_insert: Callable[[M, str], Any] = insert_ignoring_conflict,
        clock: Clock = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._model = model
        self._to_pending = to_pending
        self._to_insert = to_insert
        self._clock = clock

    async def _find(self, session: AsyncSession, key: str) -> IdempotentModel | None:
        stmt = select(self._model).where(self._model.idempotency_key == key)  # type: ignore[attr-defined]
        row = (await session.execute(stmt)).scalar_one_or_none()
        return cast(IdempotentModel | None, row)

    def _expired(self, row: IdempotentModel) -> bool:
        expires_at = row.idempotency_expires_at
        return expires_at is not None and self._clock() > as_utc(expires_at)

    async def get(self, key: str) -> Result[IdempotencyRecord[str, str] | None, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await self._find(session, key)
                if row is None or self._expired(row):
                    return Ok(None)
                return Ok(self._to_record(row))

        except Exception as e:
            return Error(StoreError(f"Failed to get: {e}", e))

    async def set_pending(self, key: str, ttl: timedelta | None) -> Result[bool, StoreError]:
        try:
            async with self._session_factory() as session:
                existing = await self._find(session, key)
                if existing is not None and self._expired(existing):
                    await session.delete(existing)
                    await session.flush()

                now = self._clock()
                row = self._to_pending(key, now)
                model = cast(IdempotentModel, row)
                model.idempotency_status = IdempotencyStatus.PENDING
                if ttl:
                    model.idempotency_expires_at = now + ttl

                dialect = session.bind.dialect.name
                cursor = cast(CursorResult[Any], await session.execute(self._to_insert(row, dialect)))
                await session.commit()

                return Ok(cursor.rowcount > 0)

        except Exception as e:
            return Error(StoreError(f"Failed to set pending: {e}", e))

    async def set_completed(self, key: str, value: str, ttl: timedelta | None) -> Result[None, StoreError]:
        return await self._settle(key, IdempotencyStatus.COMPLETED, value, None, ttl)

    async def set_failed(self, key: str, error: Any, ttl: timedelta | None) -> Result[None, StoreError]:
        return await self._settle(key, IdempotencyStatus.FAILED, None, str(error), ttl)

    async def _settle(
        self,
        key: str,
        status: str,
        value: str | None,
        error: str | None,
        ttl: timedelta | None,
    ) -> Result[None, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await self._find(session, key)
                if row is None:
                    return Error(StoreError(f"Record not found: {key}"))

                row.idempotency_status = status
                row.idempotency_value = value
                row.idempotency_error = error
                row.idempotency_expires_at = self._clock() + ttl if ttl else None

                await session.commit()
                return Ok(None)

        except Exception as e:
            return Error(StoreError(f"Failed to mark {status}: {e}", e))

    async def delete(self, key: str) -> Result[bool, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await self._find(session, key)
                if row is None:
                    return Ok(False)

                await session.delete(row)
                await session.commit()
                return Ok(True)

        except Exception as e:
            return Error(StoreError(f"Failed to delete: {e}", e))

    def _to_record(self, row: IdempotentModel) -> IdempotencyRecord[str, str]:
        expires_at = row.idempotency_expires_at
        return IdempotencyRecord(
            key=row.idempotency_key,
            state=_STATES.get(row.idempotency_status, RecordState.PENDING),
            value=row.idempotency_value,
            error=row.idempotency_error,
            created_at=as_utc(row.created_at),
            expires_at=as_utc(expires_at) if expires_at else None,
        )


__all__ = (
    "IdempotencyMixin",
    "IdempotencyStatus",
    "IdempotentModel",
    "SQLAlchemyStore",
    "insert_ignoring_conflict",
)
