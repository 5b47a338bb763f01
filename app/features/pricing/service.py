from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError

from app.core.config import config
from app.core.errors import ConflictError, NotFoundError
from app.features.catalog.service import PricedProduct, get_priced_product
from app.features.pricing.engine import PriceBreakdown, compute_breakdown
from app.features.pricing.repo import PricingRulesRepo
from app.features.pricing.resolution import ResolvedRules, resolve_rules_with_source
from app.features.pricing.rules import PricingRules
from app.features.pricing.schemas import (
    PricingRulesRead,
    PricingRulesUpsert,
    QuoteRequest,
    QuoteResponse,
    ResolvedRulesRead,
)

logger = logging.getLogger(__name__)


def _norm_id(s: str) -> str:
    return str(s).strip()


def _read_model(doc: Dict[str, Any], *, code: str, details: Dict[str, Any]) -> PricingRulesRead:
    d = dict(doc)
    try:
        d["pricing_rules"] = PricingRules.from_document(d.get("pricing_rules") or {})
    except ValidationError as exc:
        raise ConflictError(
            code=f"{code}_unparseable",
            message="Stored pricing rules are not valid",
            details={**details, "errors": exc.error_count()},
        ) from exc
    return PricingRulesRead(**d)


# -----------------------------------------------------------------------------
# Pricing one submission
# -----------------------------------------------------------------------------

def price_answers(product: PricedProduct, answers: Dict[str, Any], rules: PricingRules) -> PriceBreakdown:
    return compute_breakdown(
        product.base_price,
        answers,
        rules,
        product.brand,
        product.power_on_override_percent,
        high_value_brands=config.high_value_brands,
    )


async def quote(db: AsyncIOMotorDatabase, payload: QuoteRequest) -> QuoteResponse:
    """Price a questionnaire without persisting anything."""
    product_id = _norm_id(payload.product_id)
    variant_id = _norm_id(payload.variant_id) if payload.variant_id else None

    product = await get_priced_product(db, product_id, variant_id)
    resolved = await resolve_rules_with_source(PricingRulesRepo(db), product_id, variant_id)
    breakdown = price_answers(product, payload.answers, resolved.rules)

    return QuoteResponse(
        product_id=product_id,
        variant_id=variant_id,
        base_price=breakdown.base_price,
        modifier=breakdown.modifier,
        final_value=breakdown.final_value,
        rules_source=resolved.source,
        lines=breakdown.lines,
    )


# -----------------------------------------------------------------------------
# Rule editor
# -----------------------------------------------------------------------------

async def get_product_rules(db: AsyncIOMotorDatabase, product_id: str) -> PricingRulesRead:
    pid = _norm_id(product_id)
    doc = await PricingRulesRepo(db).get_product_rules(product_id=pid)
    details = {"product_id": pid}
    if not doc:
        raise NotFoundError(code="product_rules_not_found", message="Product pricing rules not found", details=details)
    return _read_model(doc, code="product_rules", details=details)


async def put_product_rules(db: AsyncIOMotorDatabase, product_id: str, payload: PricingRulesUpsert) -> PricingRulesRead:
    pid = _norm_id(product_id)
    doc = await PricingRulesRepo(db).replace_product_rules(
        product_id=pid,
        pricing_rules=payload.pricing_rules.to_document(),
        updated_by=payload.updated_by,
    )
    logger.info("[pricing_rules] saved tier=product product_id=%s by=%s", pid, payload.updated_by)
    return _read_model(doc, code="product_rules", details={"product_id": pid})


async def delete_product_rules(db: AsyncIOMotorDatabase, product_id: str) -> None:
    pid = _norm_id(product_id)
    ok = await PricingRulesRepo(db).delete_product_rules(product_id=pid)
    if not ok:
        raise NotFoundError(
            code="product_rules_not_found",
            message="Product pricing rules not found",
            details={"product_id": pid},
        )
    logger.info("[pricing_rules] deleted tier=product product_id=%s", pid)


async def get_variant_rules(db: AsyncIOMotorDatabase, product_id: str, variant_id: str) -> PricingRulesRead:
    pid, vid = _norm_id(product_id), _norm_id(variant_id)
    doc = await PricingRulesRepo(db).get_variant_rules(product_id=pid, variant_id=vid)
    details = {"product_id": pid, "variant_id": vid}
    if not doc:
        raise NotFoundError(code="variant_rules_not_found", message="Variant pricing rules not found", details=details)
    return _read_model(doc, code="variant_rules", details=details)


async def put_variant_rules(
    db: AsyncIOMotorDatabase,
    product_id: str,
    variant_id: str,
    payload: PricingRulesUpsert,
) -> PricingRulesRead:
    pid, vid = _norm_id(product_id), _norm_id(variant_id)
    doc = await PricingRulesRepo(db).replace_variant_rules(
        product_id=pid,
        variant_id=vid,
        pricing_rules=payload.pricing_rules.to_document(),
        updated_by=payload.updated_by,
    )
    logger.info("[pricing_rules] saved tier=variant product_id=%s variant_id=%s by=%s", pid, vid, payload.updated_by)
    return _read_model(doc, code="variant_rules", details={"product_id": pid, "variant_id": vid})


async def delete_variant_rules(db: AsyncIOMotorDatabase, product_id: str, variant_id: str) -> None:
    pid, vid = _norm_id(product_id), _norm_id(variant_id)
    ok = await PricingRulesRepo(db).delete_variant_rules(product_id=pid, variant_id=vid)
    if not ok:
        raise NotFoundError(
            code="variant_rules_not_found",
            message="Variant pricing rules not found",
            details={"product_id": pid, "variant_id": vid},
        )
    logger.info("[pricing_rules] deleted tier=variant product_id=%s variant_id=%s", pid, vid)


async def get_global_rules(db: AsyncIOMotorDatabase) -> PricingRulesRead:
    doc = await PricingRulesRepo(db).get_global_rules()
    if not doc:
        raise NotFoundError(code="global_rules_not_found", message="Global pricing rules not found", details={})
    return _read_model(doc, code="global_rules", details={})


async def put_global_rules(db: AsyncIOMotorDatabase, payload: PricingRulesUpsert) -> PricingRulesRead:
    doc = await PricingRulesRepo(db).replace_global_rules(
        pricing_rules=payload.pricing_rules.to_document(),
        updated_by=payload.updated_by,
    )
    logger.info("[pricing_rules] saved tier=global by=%s", payload.updated_by)
    return _read_model(doc, code="global_rules", details={})


async def get_resolved_rules(db: AsyncIOMotorDatabase, product_id: str, variant_id: Optional[str]) -> ResolvedRulesRead:
    pid = _norm_id(product_id)
    vid = _norm_id(variant_id) if variant_id else None
    resolved: ResolvedRules = await resolve_rules_with_source(PricingRulesRepo(db), pid, vid)
    return ResolvedRulesRead(product_id=pid, variant_id=vid, source=resolved.source, pricing_rules=resolved.rules)
