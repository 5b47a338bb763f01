from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.config import config
from app.features.order_id.counter_repo import OrderCounterRepo
from app.features.order_id.geo import resolve_category_code, resolve_region_code
from app.features.order_id.sequence import SequenceAllocator

logger = logging.getLogger(__name__)

BRAND_MARKER = "WT"
SEQUENCE_WIDTH = 4


@dataclass(frozen=True)
class OrderIdParts:
    region_code: str
    sub_region_code: str
    category_code: str
    sequence: int

    def format(self) -> str:
        # Sequences past 9999 simply grow wider.
        return (
            f"{self.region_code}{self.sub_region_code}{BRAND_MARKER}"
            f"{self.category_code}{self.sequence:0{SEQUENCE_WIDTH}d}"
        )


class OrderIdGenerator:
    """
    "{region}{sub_region}WT{category}{sequence:04d}", e.g. TN01WTIPNE1001.

    Region and category are pure lookups; only the sequence touches the store.
    """

    def __init__(self, allocator: SequenceAllocator):
        self._allocator = allocator

    async def generate(
        self,
        postal_code: str,
        category: str,
        brand: Optional[str] = None,
        state_name: Optional[str] = None,
    ) -> str:
        region, sub_region = resolve_region_code(postal_code, state_name)
        category_code = resolve_category_code(category, brand)
        sequence = await self._allocator.next_sequence()

        order_id = OrderIdParts(region, sub_region, category_code, sequence).format()
        logger.info(
            "[order_id] issued order_id=%s postal=%s state=%s category=%s brand=%s",
            order_id,
            postal_code,
            state_name,
            category,
            brand,
        )
        return order_id


def build_order_id_generator(db: AsyncIOMotorDatabase) -> OrderIdGenerator:
    store = OrderCounterRepo(db, start=config.order_id_counter_start)
    allocator = SequenceAllocator(
        store,
        max_attempts=config.order_id_max_attempts,
        backoff_base_seconds=config.order_id_backoff_base_seconds,
        backoff_max_seconds=config.order_id_backoff_max_seconds,
    )
    return OrderIdGenerator(allocator)
