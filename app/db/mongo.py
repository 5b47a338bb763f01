# app/db/mongo.py
"""
MongoDB connection + FastAPI dependency.

- Connects once at app startup (lifespan) and stores db on app.state.db
- Creates the indexes below idempotently
- Warns when the server is not a replica set member: order numbers rely on
  multi-document transactions and would run on the non-transactional fallback
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timezone
from typing import Any, Dict, List, Tuple

from fastapi import FastAPI, Request
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import OperationFailure

from app.core.config import config

logger = logging.getLogger(__name__)

INDEX_OPTIONS_CONFLICT = 85

# (collection, keys, options). valuations._id is the order identifier itself.
INDEXES: List[Tuple[str, List[Tuple[str, int]], Dict[str, Any]]] = [
    ("products", [("id", 1)], {"unique": True, "name": "uniq_products_id"}),
    ("product_pricing", [("product_id", 1)], {"unique": True, "name": "uniq_product_pricing_product"}),
    (
        "variant_pricing",
        [("product_id", 1), ("variant_id", 1)],
        {"unique": True, "name": "uniq_variant_pricing_product_variant"},
    ),
    ("valuations", [("created_at", -1)], {"name": "idx_valuations_created"}),
    ("valuations", [("user_id", 1), ("created_at", -1)], {"name": "idx_valuations_user_created"}),
    ("valuations", [("status", 1), ("created_at", -1)], {"name": "idx_valuations_status_created"}),
]


async def _ensure_index(col, keys, **kwargs) -> None:
    """
    Create an index if it doesn't exist.

    An equivalent index under another name raises IndexOptionsConflict (85);
    the existing one is kept.
    """
    try:
        await col.create_index(keys, **kwargs)
    except OperationFailure as e:
        if getattr(e, "code", None) != INDEX_OPTIONS_CONFLICT:
            raise
        logger.warning(
            "Index conflict on %s keys=%s name=%s; keeping existing index",
            col.name,
            keys,
            kwargs.get("name"),
        )


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    for collection, keys, options in INDEXES:
        await _ensure_index(db[collection], keys, **options)


async def _check_transactions(db: AsyncIOMotorDatabase) -> None:
    hello = await db.command("hello")
    if hello.get("setName") or hello.get("msg") == "isdbgrid":
        return
    logger.warning(
        "[order_id] Mongo at %s is standalone: transactions unavailable, "
        "order numbers will use the non-transactional fallback",
        config.mongo_uri,
    )


@asynccontextmanager
async def mongo_lifespan(fastapi_app: FastAPI):
    client = AsyncIOMotorClient(
        config.mongo_uri,
        tz_aware=True,
        tzinfo=timezone.utc,
    )
    db = client[config.mongo_db]

    logger.info("Mongo connected: uri=%s db=%s", config.mongo_uri, db.name)

    state = getattr(fastapi_app, "state")
    setattr(state, "mongo_client", client)
    setattr(state, "db", db)

    await _check_transactions(db)
    await ensure_indexes(db)

    try:
        yield
    finally:
        client.close()


async def get_db(request: Request) -> AsyncIOMotorDatabase:
    return request.app.state.db
