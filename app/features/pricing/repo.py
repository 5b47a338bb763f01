from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

GLOBAL_PRICING_ID = "pricing"


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class PricingRulesRepo:
    """
    Three rule tiers, one document each:

      variant_pricing  {product_id, variant_id, pricing_rules}
      product_pricing  {product_id, pricing_rules}
      settings         {_id: "pricing", pricing_rules}

    Writes replace `pricing_rules` whole; tiers are never merged.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self._variants = db["variant_pricing"]
        self._products = db["product_pricing"]
        self._settings = db["settings"]

    # ---- reads ----

    async def get_variant_rules(self, *, product_id: str, variant_id: str) -> Optional[Dict[str, Any]]:
        return await self._variants.find_one(
            {"product_id": product_id, "variant_id": variant_id},
            projection={"_id": 0},
        )

    async def get_product_rules(self, *, product_id: str) -> Optional[Dict[str, Any]]:
        return await self._products.find_one({"product_id": product_id}, projection={"_id": 0})

    async def get_global_rules(self) -> Optional[Dict[str, Any]]:
        return await self._settings.find_one({"_id": GLOBAL_PRICING_ID}, projection={"_id": 0})

    # ---- writes ----

    async def replace_variant_rules(
        self,
        *,
        product_id: str,
        variant_id: str,
        pricing_rules: Dict[str, Any],
        updated_by: Optional[str],
    ) -> Dict[str, Any]:
        return await self._replace(
            self._variants,
            {"product_id": product_id, "variant_id": variant_id},
            pricing_rules,
            updated_by,
        )

    async def replace_product_rules(
        self,
        *,
        product_id: str,
        pricing_rules: Dict[str, Any],
        updated_by: Optional[str],
    ) -> Dict[str, Any]:
        return await self._replace(self._products, {"product_id": product_id}, pricing_rules, updated_by)

    async def replace_global_rules(self, *, pricing_rules: Dict[str, Any], updated_by: Optional[str]) -> Dict[str, Any]:
        return await self._replace(self._settings, {"_id": GLOBAL_PRICING_ID}, pricing_rules, updated_by)

    async def delete_variant_rules(self, *, product_id: str, variant_id: str) -> bool:
        res = await self._variants.delete_one({"product_id": product_id, "variant_id": variant_id})
        return res.deleted_count == 1

    async def delete_product_rules(self, *, product_id: str) -> bool:
        res = await self._products.delete_one({"product_id": product_id})
        return res.deleted_count == 1

    @staticmethod
    async def _replace(col, filt: Dict[str, Any], pricing_rules: Dict[str, Any], updated_by: Optional[str]) -> Dict[str, Any]:
        now = _now_utc()
        doc = await col.find_one_and_update(
            filt,
            {
                "$set": {
                    **{k: v for k, v in filt.items() if k != "_id"},
                    "pricing_rules": pricing_rules,
                    "updated_by": updated_by,
                    "updated_at": now,
                },
                "$setOnInsert": {"created_at": now},
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
            projection={"_id": 0},
        )
        assert doc is not None
        return doc
