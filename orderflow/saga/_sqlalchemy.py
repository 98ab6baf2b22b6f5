"""
SQLAlchemy intent store.
"""

from collections.abc import Callable
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kungfu import Result, Ok, Error

from orderflow._types import IntentId, as_utc
from orderflow.db import OrderIntentTable, storage_error
from orderflow.errors import OrderError, OrderErrors
from orderflow.saga._types import OrderIntent, IntentLine, IntentState


def _lines_to_json(lines: tuple[IntentLine, ...]) -> list[dict[str, object]]:
    return [{"product_id": line.product_id, "quantity": line.quantity} for line in lines]


def _lines_from_json(raw: list[dict[str, object]]) -> tuple[IntentLine, ...]:
    return tuple(IntentLine(str(item["product_id"]), int(item["quantity"])) for item in raw)  # type: ignore[call-overload]


def _to_domain(row: OrderIntentTable) -> OrderIntent:
    return OrderIntent(
        id=row.id,
        order_id=row.order_id,
        user_id=row.user_id,
        lines=_lines_from_json(row.lines),
        reserved=_lines_from_json(row.reserved),
        released=_lines_from_json(row.released),
        state=IntentState(row.state),
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


class SQLAlchemyIntentStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session = session_factory

    async def insert(self, intent: OrderIntent) -> Result[OrderIntent, OrderError]:
        try:
            async with self._session() as session:
                session.add(OrderIntentTable(
                    id=intent.id,
                    order_id=intent.order_id,
                    user_id=intent.user_id,
                    lines=_lines_to_json(intent.lines),
                    reserved=_lines_to_json(intent.reserved),
                    released=_lines_to_json(intent.released),
                    state=intent.state.value,
                    created_at=intent.created_at,
                    updated_at=intent.updated_at,
                ))
                await session.commit()
                return Ok(intent)
        except SQLAlchemyError as e:
            return Error(storage_error(e))

    async def get(self, intent_id: IntentId) -> Result[OrderIntent, OrderError]:
        try:
            async with self._session() as session:
                row = await session.get(OrderIntentTable, intent_id)
                if row is None:
                    return Error(OrderErrors.not_found("Intent", intent_id))
                return Ok(_to_domain(row))
        except SQLAlchemyError as e:
            return Error(storage_error(e))

    async def _update(
        self, intent_id: IntentId, change: Callable[[OrderIntentTable], None]
    ) -> Result[OrderIntent, OrderError]:
        try:
            async with self._session() as session:
                row = await session.get(OrderIntentTable, intent_id)
                if row is None:
                    return Error(OrderErrors.not_found("Intent", intent_id))
                change(row)
                await session.commit()
                return Ok(_to_domain(row))
        except SQLAlchemyError as e:
            return Error(storage_error(e))

    async def record_reserved(
        self, intent_id: IntentId, line: IntentLine, now: datetime
    ) -> Result[OrderIntent, OrderError]:
        def change(row: OrderIntentTable) -> None:
            # New list so the JSON column is flagged dirty
            row.reserved = [*row.reserved, *_lines_to_json((line,))]
            row.updated_at = now

        return await self._update(intent_id, change)

    async def record_released(
        self, intent_id: IntentId, line: IntentLine, now: datetime
    ) -> Result[OrderIntent, OrderError]:
        def change(row: OrderIntentTable) -> None:
            row.released = [*row.released, *_lines_to_json((line,))]
            row.updated_at = now

        return await self._update(intent_id, change)

    async def settle(
        self, intent_id: IntentId, state: IntentState, now: datetime
    ) -> Result[OrderIntent, OrderError]:
        def change(row: OrderIntentTable) -> None:
            row.state = state.value
            row.updated_at = now

        return await self._update(intent_id, change)

    async def stale(self, before: datetime) -> Result[list[OrderIntent], OrderError]:
        try:
            async with self._session() as session:
                stmt = (
                    select(OrderIntentTable)
                    .where(OrderIntentTable.state == IntentState.PENDING.value)
                    .where(OrderIntentTable.created_at < before)
                    .order_by(OrderIntentTable.created_at)
                )
                rows = (await session.execute(stmt)).scalars().all()
                return Ok([_to_domain(row) for row in rows])
        except SQLAlchemyError as e:
            return Error(storage_error(e))


__all__ = ("SQLAlchemyIntentStore",)
