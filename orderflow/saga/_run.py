"""
Saga execution with automatic rollback.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Awaitable, Sequence

from combinators import lift as L
from kungfu import Result, Ok, Error, LazyCoroResult

from orderflow.saga._types import SagaStep, SagaResult, SagaError, Compensator

logger = logging.getLogger(__name__)

type RecordedCompensator[T] = tuple[T, Compensator[T]]


# ═══════════════════════════════════════════════════════════════════════════════
# Constructors
# ═══════════════════════════════════════════════════════════════════════════════


def step[T, E](
    action: Callable[[], Awaitable[Result[T, E]]],
    compensate: Compensator[T] | None = None,
) -> SagaStep[T, E]:
    """
    Step from an async callable that already returns Result.

        reserve = S.step(
            lambda: catalog.reserve(pid, qty),
            compensate=lambda product: release(pid, qty),
        )
    """
    async def impl() -> Result[T, E]:
        return await action()

    return SagaStep(action=LazyCoroResult(impl), compensate=compensate)


def from_async[T, E](
    action: Callable[[], Awaitable[T]],
    on_error: Callable[[Exception], E],
    compensate: Compensator[T] | None = None,
) -> SagaStep[T, E]:
    """Step from a plain async callable; exceptions become Error(on_error(exc))."""
    return SagaStep(action=L.catching_async(action, on_error=on_error), compensate=compensate)


# ═══════════════════════════════════════════════════════════════════════════════
# Running
# ═══════════════════════════════════════════════════════════════════════════════


async def run_step[T, E](
    saga_step: SagaStep[T, E],
    compensators: list[RecordedCompensator[T]],
) -> Result[T, E]:
    """Execute single step, recording compensator on success."""
    result = await saga_step.action
    match result:
        case Ok(value):
            if saga_step.compensate is not None:
                compensators.append((value, saga_step.compensate))
            return Ok(value)
        case Error(e):
            return Error(e)


async def run_compensators[T](compensators: list[RecordedCompensator[T]]) -> tuple[int, int]:
    """Run compensators in reverse. Returns (run, failed)."""
    comp_run = 0
    comp_failed = 0

    for value, comp in reversed(compensators):
        try:
            await comp(value)
            comp_run += 1
        except Exception:
            logger.exception("Compensation failed for %r", value)
            comp_failed += 1

    return comp_run, comp_failed


async def run_sequence[T, E](steps: Sequence[SagaStep[T, E]]) -> Result[SagaResult[list[T]], SagaError[E]]:
    """
    Run steps in order; on the first failure undo everything done so far.

        result = await S.run_sequence([reserve_a, reserve_b, insert_order])

        match result:
            case Ok(r):  r.value is the list of step values
            case Error(e):  e.error, e.step_failed (1-based), e.rollback_complete
    """
    compensators: list[RecordedCompensator[T]] = []
    values: list[T] = []

    for index, saga_step in enumerate(steps, start=1):
        match await run_step(saga_step, compensators):
            case Ok(value):
                values.append(value)
            case Error(error):
                comp_run, comp_failed = await run_compensators(compensators)
                return Error(SagaError(
                    error=error,
                    step_failed=index,
                    compensators_run=comp_run,
                    compensators_failed=comp_failed,
                    rollback_complete=comp_failed == 0,
                ))

    return Ok(SagaResult(
        value=values,
        steps_executed=len(values),
        compensators_recorded=len(compensators),
    ))


__all__ = ("step", "from_async", "run_step", "run_compensators", "run_sequence")
