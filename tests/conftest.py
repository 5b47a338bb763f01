"""Shared fixtures: an in-memory stand-in for the Motor database.

Supports exactly what the repositories use:
- find_one / find(...).sort(...).limit(...) with equality and $nin filters
- insert_one (DuplicateKeyError on a repeated _id)
- update_one / find_one_and_update with $set, $setOnInsert, $push, $max, upsert
- delete_one
- client.start_session() + session.start_transaction(), serialised by one lock
"""

from __future__ import annotations

import asyncio
import copy
import itertools
from typing import Any

import pytest
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

_MISSING = object()


def _matches(doc: dict, filt: dict) -> bool:
    for key, cond in filt.items():
        value = doc.get(key, _MISSING)
        if isinstance(cond, dict) and "$nin" in cond:
            if value is not _MISSING and value in cond["$nin"]:
                return False
            continue
        if value is _MISSING or value != cond:
            return False
    return True


def _project(doc: dict, projection: dict | None) -> dict:
    out = copy.deepcopy(doc)
    if projection and projection.get("_id") == 0:
        out.pop("_id", None)
    return out


class FakeCursor:
    def __init__(self, docs: list[dict]):
        self._docs = docs

    def sort(self, key: str, direction: int = 1) -> FakeCursor:
        self._docs.sort(key=lambda d: d.get(key), reverse=direction < 0)
        return self

    def limit(self, n: int) -> FakeCursor:
        self._docs = self._docs[: int(n)]
        return self

    def __aiter__(self):
        return self._iter()

    async def _iter(self):
        for doc in self._docs:
            yield doc


class FakeResult:
    def __init__(self, *, deleted_count: int = 0, matched_count: int = 0):
        self.deleted_count = deleted_count
        self.matched_count = matched_count


class FakeCollection:
    _ids = itertools.count(1)

    def __init__(self, name: str):
        self.name = name
        self.docs: list[dict] = []

    def _find(self, filt: dict) -> dict | None:
        return next((d for d in self.docs if _matches(d, filt)), None)

    async def find_one(self, filt: dict, projection: dict | None = None, *, session: Any = None) -> dict | None:
        doc = self._find(filt)
        out = _project(doc, projection) if doc is not None else None
        # Yield after reading so concurrent callers interleave between read and write.
        await asyncio.sleep(0)
        return out

    def find(self, filt: dict | None = None, projection: dict | None = None) -> FakeCursor:
        return FakeCursor([_project(d, projection) for d in self.docs if _matches(d, filt or {})])

    async def insert_one(self, doc: dict, *, session: Any = None) -> None:
        doc.setdefault("_id", f"oid-{next(self._ids)}")
        if any(d["_id"] == doc["_id"] for d in self.docs):
            raise DuplicateKeyError("E11000 duplicate key error", code=11000)
        self.docs.append(copy.deepcopy(doc))

    def _apply(self, doc: dict, update: dict, *, inserted: bool) -> None:
        for k, v in (update.get("$set") or {}).items():
            doc[k] = copy.deepcopy(v)
        if inserted:
            for k, v in (update.get("$setOnInsert") or {}).items():
                doc[k] = copy.deepcopy(v)
        for k, v in (update.get("$push") or {}).items():
            doc.setdefault(k, []).append(copy.deepcopy(v))
        for k, v in (update.get("$max") or {}).items():
            if k not in doc or doc[k] < v:
                doc[k] = v

    def _upsert(self, filt: dict, update: dict, upsert: bool) -> dict | None:
        doc = self._find(filt)
        if doc is not None:
            self._apply(doc, update, inserted=False)
            return doc
        if not upsert:
            return None
        doc = {k: v for k, v in filt.items() if not isinstance(v, dict)}
        doc.setdefault("_id", f"oid-{next(self._ids)}")
        self._apply(doc, update, inserted=True)
        self.docs.append(doc)
        return doc

    async def update_one(self, filt: dict, update: dict, *, upsert: bool = False, session: Any = None) -> FakeResult:
        doc = self._upsert(filt, update, upsert)
        return FakeResult(matched_count=int(doc is not None))

    async def find_one_and_update(
        self,
        filt: dict,
        update: dict,
        *,
        upsert: bool = False,
        return_document: bool = ReturnDocument.BEFORE,
        projection: dict | None = None,
        session: Any = None,
    ) -> dict | None:
        before = copy.deepcopy(self._find(filt))
        after = self._upsert(filt, update, upsert)
        out = after if return_document == ReturnDocument.AFTER else before
        return _project(out, projection) if out is not None else None

    async def delete_one(self, filt: dict, *, session: Any = None) -> FakeResult:
        doc = self._find(filt)
        if doc is None:
            return FakeResult(deleted_count=0)
        self.docs.remove(doc)
        return FakeResult(deleted_count=1)


class FakeTransaction:
    def __init__(self, client: FakeClient):
        self._client = client

    async def __aenter__(self) -> FakeTransaction:
        await self._client.lock().acquire()
        return self

    async def __aexit__(self, *exc_info) -> None:
        self._client.lock().release()


class FakeSession:
    def __init__(self, client: FakeClient):
        self._client = client

    def start_transaction(self, **_kwargs) -> FakeTransaction:
        self._client.transactions += 1
        return FakeTransaction(self._client)

    async def __aenter__(self) -> FakeSession:
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None


class FakeClient:
    def __init__(self):
        self.transactions = 0
        self._lock: asyncio.Lock | None = None

    def lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    async def start_session(self) -> FakeSession:
        return FakeSession(self)


class FakeDatabase:
    name = "tradein_test"

    def __init__(self):
        self.client = FakeClient()
        self._collections: dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self._collections:
            self._collections[name] = FakeCollection(name)
        return self._collections[name]


# ── Catalog / rule fixtures ─────────────────────────────────────────


def make_product(**overrides) -> dict:
    product = {
        "id": "galaxy-s23",
        "category": "phones",
        "brand": "Samsung",
        "model_name": "Galaxy S23",
        "base_price": 42000,
        "internal_base_price": 40000,
        "variants": [
            {"id": "256gb", "label": "256 GB", "internal_base_price": 45000},
            {"id": "128gb", "label": "128 GB", "base_price": 38000},
        ],
    }
    product.update(overrides)
    return product


@pytest.fixture()
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture()
def seeded_db(fake_db: FakeDatabase) -> FakeDatabase:
    fake_db["products"].docs.append({"_id": "p1", **make_product()})
    fake_db["products"].docs.append(
        {
            "_id": "p2",
            "id": "eos-r6",
            "category": "cameras",
            "brand": "Canon",
            "model_name": "EOS R6",
            "base_price": 90000,
        }
    )
    return fake_db
