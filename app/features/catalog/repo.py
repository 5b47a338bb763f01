"""
ProductsRepo: read-only access to the product catalog.

Catalog documents are maintained by the storefront admin; this service only reads
the fields it needs to price a device:

    {
      "id": "...", "category": "phones", "brand": "Samsung", "model_name": "Galaxy S23",
      "base_price": 42000, "internal_base_price": 38000,
      "power_on_deduction_percent": 80,
      "variants": [{"id": "256gb", "label": "256 GB", "internal_base_price": 41000}, ...]
    }
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase


class ProductsRepo:
    def __init__(self, db: AsyncIOMotorDatabase):
        self._col = db["products"]

    async def get(self, product_id: str) -> Optional[Dict[str, Any]]:
        return await self._col.find_one({"id": product_id}, {"_id": 0})
