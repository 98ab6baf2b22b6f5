"""
Tests for keyed once-only execution.
"""

import asyncio
from datetime import timedelta

import pytest
from kungfu import Ok, Error

from orderflow import idempotency as I


class Counter:
    def __init__(self, result=None) -> None:
        self.calls = 0
        self.result = result if result is not None else Ok("done")

    async def __call__(self):
        self.calls += 1
        return self.result


class TestRunOnce:
    async def test_second_run_is_served_from_cache(self, events):
        op = Counter()

        first = await I.run_once(events, "evt_1", op)
        second = await I.run_once(events, "evt_1", op)

        match first, second:
            case Ok(a), Ok(b):
                assert not a.from_cache
                assert b.from_cache
                assert b.value == "done"
            case _:
                pytest.fail(f"unexpected {first!r} {second!r}")
        assert op.calls == 1

    async def test_different_keys_both_run(self, events):
        op = Counter()

        await I.run_once(events, "evt_1", op)
        await I.run_once(events, "evt_2", op)

        assert op.calls == 2

    async def test_failed_run_is_forgotten(self, events):
        op = Counter(Error("downstream"))

        match await I.run_once(events, "evt_1", op):
            case Error(e):
                assert e.kind == I.IdempotencyErrorKind.EXECUTION
                assert e.original_error == "downstream"
            case Ok(_):
                pytest.fail("expected failure")

        op.result = Ok("recovered")
        match await I.run_once(events, "evt_1", op):
            case Ok(r):
                assert r.value == "recovered"
                assert not r.from_cache
            case Error(e):
                pytest.fail(str(e))
        assert op.calls == 2

    async def test_failures_can_be_remembered(self, events):
        op = Counter(Error("declined"))
        policy = I.Policy().with_store_failed()

        await I.run_once(events, "evt_1", op, policy)
        match await I.run_once(events, "evt_1", op, policy):
            case Error(e):
                assert e.kind == I.IdempotencyErrorKind.EXECUTION
            case Ok(_):
                pytest.fail("expected cached failure")
        assert op.calls == 1

    async def test_pending_key_conflicts_when_failing_fast(self, events):
        await events.set_pending("evt_1", None)
        op = Counter()

        match await I.run_once(events, "evt_1", op, I.Policy().with_on_pending(I.FAIL)):
            case Error(e):
                assert e.kind == I.IdempotencyErrorKind.CONFLICT
            case Ok(_):
                pytest.fail("expected CONFLICT")
        assert op.calls == 0

    async def test_waiting_on_pending_key_times_out(self):
        store = I.MemoryStore()
        await store.set_pending("evt_1", None)
        policy = I.Policy().with_wait_timeout(seconds=0.2)

        match await I.run_once(store, "evt_1", Counter(), policy):
            case Error(e):
                assert e.kind == I.IdempotencyErrorKind.TIMEOUT
            case Ok(_):
                pytest.fail("expected TIMEOUT")

    async def test_waiting_sees_completion(self):
        store = I.MemoryStore()
        await store.set_pending("evt_1", None)
        await store.set_completed("evt_1", "theirs", None)

        match await I.run_once(store, "evt_1", Counter()):
            case Ok(r):
                assert r.value == "theirs"
                assert r.from_cache
            case Error(e):
                pytest.fail(str(e))

    async def test_exception_releases_key(self, events):
        async def crash():
            raise RuntimeError("bug")

        with pytest.raises(RuntimeError):
            await I.run_once(events, "evt_1", crash)

        match await events.get("evt_1"):
            case Ok(record):
                assert record is None
            case Error(e):
                pytest.fail(str(e))

    async def test_cancelled_run_releases_key(self, events):
        started = asyncio.Event()

        async def hang():
            started.set()
            await asyncio.Event().wait()

        task = asyncio.create_task(I.run_once(events, "evt_1", hang))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        match await events.get("evt_1"):
            case Ok(record):
                assert record is None
            case Error(e):
                pytest.fail(str(e))

    async def test_unsettled_claim_expires_after_lease(self, events, clock):
        policy = I.Policy().with_ttl(hours=72).with_on_pending(I.FAIL)
        await events.set_pending("evt_1", policy.pending_ttl)
        op = Counter()

        match await I.run_once(events, "evt_1", op, policy):
            case Error(e):
                assert e.kind == I.IdempotencyErrorKind.CONFLICT
            case Ok(_):
                pytest.fail("expected CONFLICT while the claim is live")

        clock.advance(minutes=6)
        match await I.run_once(events, "evt_1", op, policy):
            case Ok(r):
                assert not r.from_cache
            case Error(e):
                pytest.fail(str(e))
        assert op.calls == 1

        match await events.get("evt_1"):
            case Ok(record):
                assert record.expires_at == clock() + timedelta(hours=72)
            case Error(e):
                pytest.fail(str(e))

    async def test_expired_key_runs_again(self, events, clock):
        op = Counter()
        policy = I.Policy().with_ttl(hours=1)

        await I.run_once(events, "evt_1", op, policy)
        clock.advance(hours=2)
        await I.run_once(events, "evt_1", op, policy)

        assert op.calls == 2


class TestPolicy:
    def test_builders_return_new_policies(self):
        base = I.Policy()
        tuned = base.with_ttl(hours=72).with_on_pending(I.FAIL)

        assert base.result_ttl is None
        assert tuned.result_ttl == timedelta(hours=72)
        assert tuned.conflict_strategy == I.OnPending.FAIL

    def test_zero_ttl_means_forever(self):
        assert I.Policy().with_ttl(seconds=0).result_ttl is None

    def test_claims_have_a_short_lease(self):
        assert I.Policy().pending_ttl == timedelta(minutes=5)
        assert I.Policy().with_pending_ttl(seconds=30).pending_ttl == timedelta(seconds=30)
        assert I.Policy().with_pending_ttl(seconds=0).pending_ttl is None
