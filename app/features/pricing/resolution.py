"""
Rule set resolution.

Tiers are tried in order and the first one that exists and parses is used
in full:

    variant rules -> product rules -> global default rules -> all-zero baseline

No field-level merge between tiers. The baseline always exists, so resolution
never comes back empty: a product nobody has priced yet values at its base price.
Store errors are not swallowed; they abort the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Tuple

from pydantic import ValidationError

from .repo import PricingRulesRepo
from .rules import PricingRules, zero_pricing_rules

logger = logging.getLogger(__name__)


class RulesSource(str, Enum):
    VARIANT = "variant"
    PRODUCT = "product"
    GLOBAL = "global"
    BASELINE = "baseline"


@dataclass(frozen=True)
class ResolvedRules:
    rules: PricingRules
    source: RulesSource


TierLoader = Callable[[], Awaitable[Optional[Mapping[str, Any]]]]


def _parse_tier(doc: Optional[Mapping[str, Any]], source: RulesSource, context: str) -> Optional[PricingRules]:
    if not doc:
        return None

    raw = doc.get("pricing_rules")
    if not isinstance(raw, Mapping):
        return None

    try:
        return PricingRules.from_document(raw)
    except ValidationError as exc:
        logger.warning(
            "[pricing_rules] TIER_UNPARSEABLE source=%s %s errors=%d -> trying next tier",
            source.value,
            context,
            exc.error_count(),
        )
        return None


def _tiers(repo: PricingRulesRepo, product_id: str, variant_id: Optional[str]) -> List[Tuple[RulesSource, TierLoader]]:
    tiers: List[Tuple[RulesSource, TierLoader]] = []
    if variant_id:
        tiers.append(
            (RulesSource.VARIANT, lambda: repo.get_variant_rules(product_id=product_id, variant_id=variant_id))
        )
    tiers.append((RulesSource.PRODUCT, lambda: repo.get_product_rules(product_id=product_id)))
    tiers.append((RulesSource.GLOBAL, repo.get_global_rules))
    return tiers


async def resolve_rules_with_source(
    repo: PricingRulesRepo,
    product_id: str,
    variant_id: Optional[str] = None,
) -> ResolvedRules:
    context = f"product_id={product_id} variant_id={variant_id}"

    for source, load in _tiers(repo, product_id, variant_id):
        rules = _parse_tier(await load(), source, context)
        if rules is not None:
            logger.debug("[pricing_rules] resolved source=%s %s", source.value, context)
            return ResolvedRules(rules=rules, source=source)

    logger.info("[pricing_rules] no configured rules, using zero baseline %s", context)
    return ResolvedRules(rules=zero_pricing_rules(), source=RulesSource.BASELINE)


async def resolve_rules(
    repo: PricingRulesRepo,
    product_id: str,
    variant_id: Optional[str] = None,
) -> PricingRules:
    resolved = await resolve_rules_with_source(repo, product_id, variant_id)
    return resolved.rules
