from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.errors import BadRequestError, NotFoundError
from app.features.catalog.repo import ProductsRepo


@dataclass(frozen=True)
class PricedProduct:
    product_id: str
    variant_id: Optional[str]
    variant_label: Optional[str]
    category: str
    brand: str
    model: str
    base_price: float
    power_on_override_percent: Optional[float]


def _money(x: Any) -> Optional[float]:
    if isinstance(x, bool) or not isinstance(x, (int, float)):
        return None
    v = float(x)
    return v if math.isfinite(v) and v >= 0 else None


def _percent(x: Any) -> Optional[float]:
    if isinstance(x, bool) or not isinstance(x, (int, float)):
        return None
    v = float(x)
    return v if math.isfinite(v) and 0.0 <= v <= 100.0 else None


def _find_variant(product: Dict[str, Any], variant_id: str) -> Optional[Dict[str, Any]]:
    for v in product.get("variants") or []:
        if isinstance(v, dict) and str(v.get("id")) == variant_id:
            return v
    return None


def priced_product_from_doc(product: Dict[str, Any], variant_id: Optional[str] = None) -> PricedProduct:
    """
    Base price priority:
        variant.internal_base_price -> variant.base_price
        -> product.internal_base_price -> product.base_price

    Power-on override: variant's power_on_deduction_percent, else the product's.
    """
    product_id = str(product.get("id") or "")
    variant = None
    if variant_id:
        variant = _find_variant(product, variant_id)
        if variant is None:
            raise NotFoundError(
                code="variant_not_found",
                message="Product variant not found",
                details={"product_id": product_id, "variant_id": variant_id},
            )

    candidates = []
    if variant is not None:
        candidates += [variant.get("internal_base_price"), variant.get("base_price")]
    candidates += [product.get("internal_base_price"), product.get("base_price")]

    base_price = next((m for m in (_money(c) for c in candidates) if m is not None), None)
    if base_price is None:
        raise BadRequestError(
            code="product_not_priced",
            message="Product has no base price",
            details={"product_id": product_id, "variant_id": variant_id},
        )

    override = _percent(variant.get("power_on_deduction_percent")) if variant is not None else None
    if override is None:
        override = _percent(product.get("power_on_deduction_percent"))

    return PricedProduct(
        product_id=product_id,
        variant_id=variant_id if variant is not None else None,
        variant_label=(variant.get("label") if variant is not None else None),
        category=str(product.get("category") or ""),
        brand=str(product.get("brand") or ""),
        model=str(product.get("model_name") or product.get("model") or ""),
        base_price=base_price,
        power_on_override_percent=override,
    )


async def get_priced_product(db: AsyncIOMotorDatabase, product_id: str, variant_id: Optional[str] = None) -> PricedProduct:
    product = await ProductsRepo(db).get(product_id)
    if not product:
        raise NotFoundError(code="product_not_found", message="Product not found", details={"product_id": product_id})
    return priced_product_from_doc(product, variant_id)
