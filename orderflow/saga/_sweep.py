"""
Recovery sweep for order intents left PENDING by a crashed creation.

An intent is stale once it has been PENDING longer than the configured
threshold. If its order made it to storage the intent is simply closed;
otherwise every reservation not yet released is returned to the catalog.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from kungfu import Result, Ok, Error

from orderflow._types import OrderId
from orderflow.catalog import CatalogStore
from orderflow.errors import ErrorKind, OrderError
from orderflow.saga._store import IntentStore
from orderflow.saga._types import OrderIntent, IntentState

logger = logging.getLogger(__name__)


class OrderLookup(Protocol):
    async def exists(self, order_id: OrderId) -> Result[bool, OrderError]:
        ...


@dataclass(frozen=True, slots=True)
class SweepReport:
    completed: int = 0
    abandoned: int = 0
    restore_failures: int = 0
    skipped: int = 0


async def restore_reserved(
    catalog: CatalogStore,
    intents: IntentStore,
    intent: OrderIntent,
    now: datetime,
) -> int:
    """
    Give back every outstanding reservation, newest first. Returns failure count.

    Each restored line is recorded as released on the intent. A product that
    no longer exists has nowhere to go back to and is released as well.
    """
    failures = 0
    for line in reversed(intent.outstanding):
        match await catalog.restore(line.product_id, line.quantity):
            case Ok(_):
                pass
            case Error(e) if e.kind == ErrorKind.NOT_FOUND:
                logger.warning("Intent %s: product %s is gone, dropping x%d", intent.id, line.product_id, line.quantity)
            case Error(e):
                failures += 1
                logger.warning(
                    "Could not restore %s x%d for intent %s: %s",
                    line.product_id, line.quantity, intent.id, e,
                )
                continue

        match await intents.record_released(intent.id, line, now):
            case Error(e):
                failures += 1
                logger.error("Restored %s x%d but intent %s still lists it: %s", line.product_id, line.quantity, intent.id, e)
            case Ok(_):
                pass
    return failures


async def sweep_abandoned_intents(
    intents: IntentStore,
    catalog: CatalogStore,
    orders: OrderLookup,
    now: datetime,
    stale_after: timedelta,
) -> Result[SweepReport, OrderError]:
    """
    Close every stale PENDING intent.

    An intent with a line that could not be restored stays PENDING and is
    retried on the next sweep; only the outstanding lines are restored again.
    """
    match await intents.stale(now - stale_after):
        case Error(e):
            return Error(e)
        case Ok(found):
            pending = found

    completed = abandoned = restore_failures = skipped = 0

    for intent in pending:
        match await orders.exists(intent.order_id):
            case Error(e):
                logger.error("Sweep skipped intent %s: %s", intent.id, e)
                skipped += 1
                continue
            case Ok(True):
                state = IntentState.COMPLETED
                completed += 1
            case Ok(_):
                if failures := await restore_reserved(catalog, intents, intent, now):
                    restore_failures += failures
                    logger.warning("Intent %s left pending: %d lines still outstanding", intent.id, failures)
                    continue
                state = IntentState.ABANDONED
                abandoned += 1

        match await intents.settle(intent.id, state, now):
            case Error(e):
                logger.error("Could not settle intent %s as %s: %s", intent.id, state.value, e)
            case Ok(_):
                logger.info("Intent %s for order %s settled as %s", intent.id, intent.order_id, state.value)

    report = SweepReport(completed, abandoned, restore_failures, skipped)
    logger.info(
        "Intent sweep: %d completed, %d abandoned, %d restore failures, %d skipped",
        report.completed, report.abandoned, report.restore_failures, report.skipped,
    )
    return Ok(report)


__all__ = ("OrderLookup", "SweepReport", "restore_reserved", "sweep_abandoned_intents")
