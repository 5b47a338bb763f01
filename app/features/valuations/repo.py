"""
ValuationsRepo: the valuations collection, keyed by order identifier.

Documents carry `_id = order_id` (uniqueness enforced by Mongo itself) and a
plain `order_id` copy so reads can drop `_id` the way every other repo does.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.core.errors import ConflictError

logger = logging.getLogger(__name__)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class ValuationsRepo:
    def __init__(self, db: AsyncIOMotorDatabase):
        self._col = db["valuations"]

    async def create(self, order_id: str, doc: Dict[str, Any]) -> Dict[str, Any]:
        now = _now_utc()
        record = {
            **doc,
            "_id": order_id,
            "order_id": order_id,
            "created_at": now,
            "updated_at": now,
        }
        try:
            await self._col.insert_one(record)
        except DuplicateKeyError as exc:
            logger.error("[valuations] ORDER_ID_COLLISION order_id=%s", order_id)
            raise ConflictError(
                code="order_id_collision",
                message="Order identifier already in use",
                details={"order_id": order_id},
            ) from exc

        record.pop("_id", None)
        return record

    async def get(self, order_id: str) -> Optional[Dict[str, Any]]:
        return await self._col.find_one({"_id": order_id}, projection={"_id": 0})

    async def list(
        self,
        *,
        user_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 100,
    ) -> List[Dict[str, Any]]:
        q: Dict[str, Any] = {}
        if user_id:
            q["user_id"] = user_id
        if status:
            q["status"] = status
        cursor = self._col.find(q, {"_id": 0}).sort("created_at", -1).limit(int(limit))
        return [doc async for doc in cursor]

    async def update_fields(self, order_id: str, patch: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Set exactly the given fields; an explicit None clears the field."""
        patch = {**patch, "updated_at": _now_utc()}
        return await self._col.find_one_and_update(
            {"_id": order_id},
            {"$set": patch},
            return_document=ReturnDocument.AFTER,
            projection={"_id": 0},
        )

    async def transition_status(
        self,
        order_id: str,
        *,
        status: str,
        note: Optional[str],
        locked: Iterable[str],
    ) -> Optional[Dict[str, Any]]:
        """
        Atomically move to `status` unless the current status is in `locked`.

        Returns None when the valuation is missing OR locked; callers tell the
        two apart with `get`.
        """
        now = _now_utc()
        return await self._col.find_one_and_update(
            {"_id": order_id, "status": {"$nin": list(locked)}},
            {
                "$set": {"status": status, "updated_at": now},
                "$push": {"status_history": {"status": status, "note": note, "at": now}},
            },
            return_document=ReturnDocument.AFTER,
            projection={"_id": 0},
        )
