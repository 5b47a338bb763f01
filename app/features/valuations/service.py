"""
Valuation service: submit, read, staff edits, status transitions.

Submission flow:
    catalog lookup -> rule resolution -> pricing -> order identifier -> insert
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.errors import ConflictError, NotFoundError
from app.features.catalog.service import get_priced_product
from app.features.order_id.generator import OrderIdGenerator, build_order_id_generator
from app.features.pricing.answers import Answer, dump_answers, parse_answers
from app.features.pricing.repo import PricingRulesRepo
from app.features.pricing.resolution import resolve_rules_with_source
from app.features.pricing.service import price_answers
from app.features.valuations.repo import ValuationsRepo
from app.features.valuations.schemas import (
    TERMINAL_STATUSES,
    StatusChange,
    ValuationCreate,
    ValuationRead,
    ValuationStatus,
    ValuationUpdate,
)

logger = logging.getLogger(__name__)

DEFAULT_CONDITION = "good"
DEFAULT_USAGE = "moderate"

USAGE_BY_AGE = {
    "lessThan3Months": "light",
    "fourToTwelveMonths": "moderate",
}


def _norm_order_id(order_id: str) -> str:
    return str(order_id).strip().upper()


# -----------------------------------------------------------------------------
# Summary fields shown on staff dashboards
# -----------------------------------------------------------------------------

def derive_condition(answers: Dict[str, Answer]) -> str:
    ans = answers.get("bodyCondition")
    return ans.options[0] if ans else DEFAULT_CONDITION


def derive_usage(answers: Dict[str, Answer]) -> str:
    ans = answers.get("age")
    if not ans:
        return DEFAULT_USAGE
    return USAGE_BY_AGE.get(ans.options[0], "heavy")


def derive_accessories(answers: Dict[str, Answer]) -> List[str]:
    ans = answers.get("accessories")
    return list(ans.options) if ans else []


# -----------------------------------------------------------------------------
# Submit
# -----------------------------------------------------------------------------

async def create_valuation(
    db: AsyncIOMotorDatabase,
    payload: ValuationCreate,
    *,
    generator: Optional[OrderIdGenerator] = None,
) -> ValuationRead:
    product_id = str(payload.product_id).strip()
    variant_id = str(payload.variant_id).strip() if payload.variant_id else None

    logger.info("create_valuation:start product_id=%s variant_id=%s user_id=%s", product_id, variant_id, payload.user_id)

    product = await get_priced_product(db, product_id, variant_id)
    resolved = await resolve_rules_with_source(PricingRulesRepo(db), product_id, variant_id)

    answers = parse_answers(payload.answers)
    breakdown = price_answers(product, answers, resolved.rules)

    # Priced before numbering so a pricing failure never consumes a number.
    gen = generator or build_order_id_generator(db)
    order_id = await gen.generate(
        payload.customer.postal_code,
        product.category,
        product.brand,
        payload.customer.state,
    )

    doc = {
        "user_id": payload.user_id,
        "product_id": product.product_id,
        "variant_id": product.variant_id,
        "variant_label": product.variant_label,
        "category": product.category,
        "brand": product.brand,
        "model": product.model,
        "answers": dump_answers(answers),
        "condition": derive_condition(answers),
        "usage": derive_usage(answers),
        "accessories": derive_accessories(answers),
        "base_price": breakdown.base_price,
        "modifier": breakdown.modifier,
        "final_value": breakdown.final_value,
        "rules_source": resolved.source.value,
        "lines": breakdown.lines,
        "agreed_value": None,
        "customer": payload.customer.model_dump(mode="json"),
        "pickup_date": payload.pickup_date,
        "pickup_time": payload.pickup_time,
        "remarks": None,
        "status": ValuationStatus.PENDING.value,
        "status_history": [],
    }

    created = await ValuationsRepo(db).create(order_id, doc)
    logger.info(
        "create_valuation:done order_id=%s final_value=%s rules_source=%s",
        order_id,
        breakdown.final_value,
        resolved.source.value,
    )
    return ValuationRead(**created)


# -----------------------------------------------------------------------------
# Read
# -----------------------------------------------------------------------------

async def get_valuation(db: AsyncIOMotorDatabase, order_id: str) -> ValuationRead:
    oid = _norm_order_id(order_id)
    doc = await ValuationsRepo(db).get(oid)
    if not doc:
        raise NotFoundError(code="valuation_not_found", message="Valuation not found", details={"order_id": oid})
    return ValuationRead(**doc)


async def list_valuations(
    db: AsyncIOMotorDatabase,
    *,
    user_id: Optional[str] = None,
    status: Optional[ValuationStatus] = None,
    limit: int = 100,
) -> List[ValuationRead]:
    docs = await ValuationsRepo(db).list(
        user_id=user_id,
        status=status.value if status else None,
        limit=limit,
    )
    logger.debug("list_valuations count=%s user_id=%s status=%s", len(docs), user_id, status)
    return [ValuationRead(**d) for d in docs]


# -----------------------------------------------------------------------------
# Staff edits
# -----------------------------------------------------------------------------

async def update_valuation(db: AsyncIOMotorDatabase, order_id: str, patch: ValuationUpdate) -> ValuationRead:
    oid = _norm_order_id(order_id)
    update = patch.model_dump(exclude_unset=True)
    logger.info("update_valuation order_id=%s fields=%s", oid, sorted(update.keys()))

    doc = await ValuationsRepo(db).update_fields(oid, update)
    if not doc:
        raise NotFoundError(code="valuation_not_found", message="Valuation not found", details={"order_id": oid})
    return ValuationRead(**doc)


async def change_status(db: AsyncIOMotorDatabase, order_id: str, payload: StatusChange) -> ValuationRead:
    oid = _norm_order_id(order_id)
    repo = ValuationsRepo(db)

    doc = await repo.transition_status(
        oid,
        status=payload.status.value,
        note=payload.note,
        locked=sorted(s.value for s in TERMINAL_STATUSES),
    )
    if doc:
        logger.info("[valuations] status order_id=%s -> %s", oid, payload.status.value)
        return ValuationRead(**doc)

    current = await repo.get(oid)
    if not current:
        raise NotFoundError(code="valuation_not_found", message="Valuation not found", details={"order_id": oid})

    raise ConflictError(
        code="valuation_status_locked",
        message="Valuation is in a terminal status",
        details={"order_id": oid, "status": current.get("status"), "requested": payload.status.value},
    )
