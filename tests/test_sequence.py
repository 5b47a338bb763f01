"""Tests for order number allocation.

Covers:
- Counter repo: first number is start + 1, counter never moves backwards
- Transient transaction conflicts are retried with bounded backoff
- DEGRADED PATH: after the transactional attempts the allocator falls back to
  a non-transactional increment. This trades strict uniqueness for
  availability; the race is demonstrated explicitly below.
- Fallback failure raises SequenceAllocationError
- Concurrent uniqueness on the transactional path
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pymongo.errors import OperationFailure, ServerSelectionTimeoutError

from app.features.order_id import sequence as sequence_module
from app.features.order_id.backoff import backoff_seconds
from app.features.order_id.counter_repo import COUNTER_ID, OrderCounterRepo
from app.features.order_id.exceptions import SequenceAllocationError
from app.features.order_id.sequence import SequenceAllocator, is_transient


def _write_conflict() -> OperationFailure:
    return OperationFailure("WriteConflict", code=112, details={"errorLabels": ["TransientTransactionError"]})


def _commit_unknown() -> OperationFailure:
    return OperationFailure(
        "commit result unknown",
        code=91,
        details={"errorLabels": ["UnknownTransactionCommitResult"]},
    )


def _no_replica_set() -> OperationFailure:
    return OperationFailure("Transaction numbers are only allowed on a replica set member or mongos", code=20)


def _store(*, txn=None, fallback=None) -> MagicMock:
    store = MagicMock()
    store.increment_in_transaction = AsyncMock(side_effect=txn)
    store.increment_best_effort = AsyncMock(side_effect=fallback)
    return store


def _allocator(store, *, max_attempts: int = 5, sleep=None) -> SequenceAllocator:
    return SequenceAllocator(
        store,
        max_attempts=max_attempts,
        backoff_base_seconds=0.01,
        backoff_max_seconds=0.5,
        sleep=sleep or AsyncMock(),
    )


# ── Backoff ─────────────────────────────────────────────────────────


class TestBackoff:
    def test_doubles_per_attempt(self):
        assert [backoff_seconds(a, base=0.01, cap=1.0, jitter=0) for a in (1, 2, 3, 4)] == [0.01, 0.02, 0.04, 0.08]

    def test_capped(self):
        assert backoff_seconds(20, base=0.01, cap=0.5, jitter=0) == 0.5

    def test_jitter_bounded(self):
        for _ in range(50):
            assert 0.04 <= backoff_seconds(3, base=0.01, cap=1.0) < 0.0501


# ── Counter repo (against the in-memory db) ─────────────────────────


class TestOrderCounterRepo:
    @pytest.mark.asyncio()
    async def test_first_number_follows_start(self, fake_db):
        repo = OrderCounterRepo(fake_db, start=1000)
        assert await repo.increment_in_transaction() == 1001
        assert await repo.increment_in_transaction() == 1002
        assert fake_db["counters"].docs[0]["_id"] == COUNTER_ID
        assert fake_db["counters"].docs[0]["count"] == 1002
        assert fake_db.client.transactions == 2

    @pytest.mark.asyncio()
    async def test_best_effort_continues_sequence(self, fake_db):
        repo = OrderCounterRepo(fake_db, start=1000)
        await repo.increment_in_transaction()
        assert await repo.increment_best_effort() == 1002

    @pytest.mark.asyncio()
    async def test_counter_below_start_is_lifted(self, fake_db):
        fake_db["counters"].docs.append({"_id": COUNTER_ID, "count": 5})
        assert await OrderCounterRepo(fake_db, start=1000).increment_in_transaction() == 1001

    @pytest.mark.asyncio()
    async def test_best_effort_never_moves_counter_backwards(self, fake_db):
        col = fake_db["counters"]
        col.docs.append({"_id": COUNTER_ID, "count": 1500})
        await col.update_one({"_id": COUNTER_ID}, {"$max": {"count": 1200}})
        assert col.docs[0]["count"] == 1500


# ── Allocator ───────────────────────────────────────────────────────


class TestSequenceAllocator:
    def test_transient_labels(self):
        assert is_transient(_write_conflict())
        assert is_transient(_commit_unknown())
        assert not is_transient(_no_replica_set())

    @pytest.mark.asyncio()
    async def test_first_attempt_succeeds(self):
        store = _store(txn=[1001])
        sleep = AsyncMock()
        assert await _allocator(store, sleep=sleep).next_sequence() == 1001
        sleep.assert_not_awaited()
        store.increment_best_effort.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_retries_transient_conflicts(self):
        store = _store(txn=[_write_conflict(), _commit_unknown(), 1003])
        sleep = AsyncMock()

        assert await _allocator(store, sleep=sleep).next_sequence() == 1003
        assert store.increment_in_transaction.await_count == 3
        assert sleep.await_count == 2
        delays = [c.args[0] for c in sleep.await_args_list]
        assert delays[0] < delays[1] <= 0.5 * 1.25
        store.increment_best_effort.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_degraded_fallback_after_exhaustion(self):
        """Every transaction conflicts: the submission still gets a number, non-transactionally."""
        store = _store(txn=[_write_conflict()] * 5, fallback=[1042])
        sleep = AsyncMock()

        with patch.object(sequence_module.logger, "warning") as warn:
            value = await _allocator(store, sleep=sleep).next_sequence()

        assert value == 1042
        assert store.increment_in_transaction.await_count == 5
        assert sleep.await_count == 4
        store.increment_best_effort.assert_awaited_once()
        assert any("SEQUENCE_DEGRADED" in c.args[0] for c in warn.call_args_list)

    @pytest.mark.asyncio()
    async def test_non_transient_error_skips_retries(self):
        store = _store(txn=[_no_replica_set()], fallback=[1001])
        sleep = AsyncMock()

        assert await _allocator(store, sleep=sleep).next_sequence() == 1001
        assert store.increment_in_transaction.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_fallback_failure_is_fatal(self):
        store = _store(txn=[_write_conflict()] * 3, fallback=ServerSelectionTimeoutError("no primary"))

        with pytest.raises(SequenceAllocationError) as excinfo:
            await _allocator(store, max_attempts=3).next_sequence()

        assert excinfo.value.attempts == 3
        assert isinstance(excinfo.value.last_error, ServerSelectionTimeoutError)

    @pytest.mark.asyncio()
    async def test_unexpected_errors_propagate(self):
        store = _store(txn=RuntimeError("bug"))
        with pytest.raises(RuntimeError):
            await _allocator(store).next_sequence()
        store.increment_best_effort.assert_not_awaited()


# ── Concurrency ─────────────────────────────────────────────────────


class TestConcurrency:
    @pytest.mark.asyncio()
    async def test_concurrent_transactional_allocations_are_unique(self, fake_db):
        allocator = _allocator(OrderCounterRepo(fake_db, start=1000))

        values = await asyncio.gather(*(allocator.next_sequence() for _ in range(50)))

        assert len(set(values)) == 50
        assert sorted(values) == list(range(1001, 1051))

    @pytest.mark.asyncio()
    async def test_best_effort_path_can_collide(self, fake_db):
        """The documented cost of the degraded path: racing callers may share a number."""
        repo = OrderCounterRepo(fake_db, start=1000)

        a, b = await asyncio.gather(repo.increment_best_effort(), repo.increment_best_effort())

        assert a == b == 1001
        assert fake_db["counters"].docs[0]["count"] == 1001
