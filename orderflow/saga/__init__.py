"""
Saga: compensated multi-step writes and the order intent log.

    from orderflow import saga as S

    result = await S.run_sequence([
        S.step(lambda: catalog.reserve("p1", 2), compensate=undo_p1),
        S.step(lambda: orders.insert(order)),
    ])

Order creation writes an OrderIntent before touching stock;
sweep_abandoned_intents() recovers intents a crash left behind.
"""

from __future__ import annotations

from orderflow.saga._types import (
    Compensator,
    SagaStep,
    SagaResult,
    SagaError,
    IntentState,
    IntentLine,
    OrderIntent,
)
from orderflow.saga._run import step, from_async, run_step, run_compensators, run_sequence
from orderflow.saga._store import IntentStore, MemoryIntentStore
from orderflow.saga._sqlalchemy import SQLAlchemyIntentStore
from orderflow.saga._sweep import OrderLookup, SweepReport, restore_reserved, sweep_abandoned_intents

__all__ = (
    "Compensator",
    "SagaStep",
    "SagaResult",
    "SagaError",
    "IntentState",
    "IntentLine",
    "OrderIntent",
    "step",
    "from_async",
    "run_step",
    "run_compensators",
    "run_sequence",
    "IntentStore",
    "MemoryIntentStore",
    "SQLAlchemyIntentStore",
    "OrderLookup",
    "SweepReport",
    "restore_reserved",
    "sweep_abandoned_intents",
)
