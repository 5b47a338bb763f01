from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReadPreference
from pymongo.read_concern import ReadConcern
from pymongo.write_concern import WriteConcern

COUNTER_ID = "order_id"


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class OrderCounterRepo:
    """
    The single order-number counter: counters/{_id: "order_id", count: int}.

    `count` is the high-water mark of every number ever handed out.
    """

    def __init__(self, db: AsyncIOMotorDatabase, *, start: int):
        self._db = db
        self._col = db["counters"]
        self._start = int(start)

    def _current(self, doc: Optional[Dict[str, Any]]) -> int:
        count = (doc or {}).get("count")
        if isinstance(count, int) and not isinstance(count, bool):
            return max(self._start, count)
        return self._start

    async def increment_in_transaction(self) -> int:
        """
        Read-increment-write inside one snapshot transaction.

        Two concurrent transactions touching the counter make the second one fail
        with a WriteConflict (TransientTransactionError); the caller retries.
        Commit errors surface when the transaction block exits.
        """
        async with await self._db.client.start_session() as session:
            async with session.start_transaction(
                read_concern=ReadConcern("snapshot"),
                write_concern=WriteConcern("majority"),
                read_preference=ReadPreference.PRIMARY,
            ):
                doc = await self._col.find_one({"_id": COUNTER_ID}, session=session)
                next_value = self._current(doc) + 1
                now = _now_utc()
                await self._col.update_one(
                    {"_id": COUNTER_ID},
                    {
                        "$set": {"count": next_value, "updated_at": now},
                        "$setOnInsert": {"created_at": now},
                    },
                    upsert=True,
                    session=session,
                )
        return next_value

    async def increment_best_effort(self) -> int:
        """
        Non-transactional read then write.

        Two callers interleaving between the read and the write can get the same
        number. `$max` keeps the stored counter from ever moving backwards.
        """
        doc = await self._col.find_one({"_id": COUNTER_ID})
        next_value = self._current(doc) + 1
        now = _now_utc()
        await self._col.update_one(
            {"_id": COUNTER_ID},
            {
                "$max": {"count": next_value},
                "$set": {"updated_at": now},
                "$setOnInsert": {"created_at": now},
            },
            upsert=True,
        )
        return next_value

