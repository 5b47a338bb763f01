"""
Order number allocation.

`SequenceAllocator.next_sequence()` hands out strictly increasing integers,
each exactly once, backed by one counter record mutated inside a transaction.
This is the only serialization point of the whole submission flow.

Contention (TransientTransactionError / UnknownTransactionCommitResult) is
retried with bounded exponential backoff. When every transactional attempt
has failed we fall back to a NON-transactional read-increment-write instead
of failing the customer's submission:

    availability over strict uniqueness on this degraded path.

Two callers racing through the fallback at the same moment can receive the
same number. Valuations use the order id as their `_id`, so such a duplicate
surfaces as a DuplicateKeyError on insert rather than a silent overwrite.
Gaps (from aborted or unknown-result commits) are acceptable; duplicates
on the transactional path are not possible.

Only labelled errors are retried. Any other transaction failure (for example
"Transaction numbers are only allowed on a replica set member" from a
standalone server, or an authorization error) will not succeed on a second
attempt, so it goes straight to the fallback without backoff.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Protocol

from pymongo.errors import PyMongoError

from .backoff import backoff_seconds
from .exceptions import SequenceAllocationError

logger = logging.getLogger(__name__)

_TRANSIENT_LABELS = ("TransientTransactionError", "UnknownTransactionCommitResult")


class CounterStore(Protocol):
    async def increment_in_transaction(self) -> int: ...

    async def increment_best_effort(self) -> int: ...


def is_transient(exc: PyMongoError) -> bool:
    return any(exc.has_error_label(label) for label in _TRANSIENT_LABELS)


class SequenceAllocator:
    def __init__(
        self,
        store: CounterStore,
        *,
        max_attempts: int = 5,
        backoff_base_seconds: float = 0.01,
        backoff_max_seconds: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._max_attempts = max(1, int(max_attempts))
        self._backoff_base = float(backoff_base_seconds)
        self._backoff_max = float(backoff_max_seconds)
        self._sleep = sleep

    async def next_sequence(self) -> int:
        attempts = 0
        last_exc: Optional[PyMongoError] = None

        while attempts < self._max_attempts:
            attempts += 1
            try:
                value = await self._store.increment_in_transaction()
            except PyMongoError as exc:
                last_exc = exc

                if not is_transient(exc):
                    logger.error(
                        "[order_id] SEQUENCE_TXN_FAILED attempt=%d/%d transient=false err=%r",
                        attempts,
                        self._max_attempts,
                        exc,
                    )
                    break

                if attempts >= self._max_attempts:
                    logger.error(
                        "[order_id] SEQUENCE_TXN_EXHAUSTED attempts=%d err=%r",
                        attempts,
                        exc,
                    )
                    break

                wait_s = backoff_seconds(attempts, base=self._backoff_base, cap=self._backoff_max)
                logger.warning(
                    "[order_id] SEQUENCE_TXN_CONFLICT attempt=%d/%d wait=%.3fs err=%r",
                    attempts,
                    self._max_attempts,
                    wait_s,
                    exc,
                )
                await self._sleep(wait_s)
                continue

            if attempts > 1:
                logger.info("[order_id] SEQUENCE_OK value=%d attempts=%d", value, attempts)
            return value

        return await self._degraded(attempts, last_exc)

    async def _degraded(self, attempts: int, last_exc: Optional[PyMongoError]) -> int:
        logger.warning(
            "[order_id] SEQUENCE_DEGRADED attempts=%d -> non-transactional increment "
            "(concurrent callers may collide) last_err=%r",
            attempts,
            last_exc,
        )
        try:
            value = await self._store.increment_best_effort()
        except PyMongoError as exc:
            logger.error(
                "[order_id] SEQUENCE_FALLBACK_FAILED attempts=%d last_txn_err=%r err=%r",
                attempts,
                last_exc,
                exc,
            )
            raise SequenceAllocationError(
                f"Failed to allocate an order number after {attempts} transaction attempts and the fallback",
                attempts=attempts,
                last_error=exc,
            ) from exc

        logger.warning("[order_id] SEQUENCE_DEGRADED_OK value=%d", value)
        return value
