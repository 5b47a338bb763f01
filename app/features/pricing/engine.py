"""
Valuation pricing engine.

    final_value = max(0, base_price + sum(modifiers))

Pure and synchronous: the result depends only on the arguments. Unknown
question ids and option ids are worth 0 (the questionnaire and the rule editor
evolve independently), so a structurally valid submission always prices.

Power-on is the one special question. When the device does not power on:

  1. an explicit override percentage (per product/variant) wins,
  2. else high-value brands lose 75% of base price,
  3. else the rule table's powerOn.no entry applies.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional

from .answers import Answer, Single, parse_answers
from .rules import POWER_ON_QUESTION, PricingRules, zero_pricing_rules

DEFAULT_HIGH_VALUE_BRANDS: FrozenSet[str] = frozenset({"apple", "iphone", "samsung"})
HIGH_VALUE_POWER_OFF_PERCENT = Decimal("75")

_ZERO = Decimal(0)
_HUNDRED = Decimal(100)


@dataclass(frozen=True)
class PriceBreakdown:
    base_price: float
    modifier: float
    final_value: float
    lines: Dict[str, float] = field(default_factory=dict)


def _dec(v: Any, name: str) -> Decimal:
    if isinstance(v, bool) or not isinstance(v, (int, float, Decimal)):
        raise TypeError(f"{name} must be a number, got {type(v).__name__}")
    if not math.isfinite(float(v)):
        raise ValueError(f"{name} must be finite")
    return Decimal(str(v))


def _norm_brand(brand: Optional[str]) -> str:
    return (brand or "").strip().lower()


def _power_on_modifier(
    base: Decimal,
    answer: Optional[Answer],
    rules: PricingRules,
    brand: Optional[str],
    override_percent: Optional[Decimal],
    high_value_brands: FrozenSet[str],
) -> Decimal:
    if not isinstance(answer, Single):
        return _ZERO

    value = answer.value.strip().lower()
    if value == "no":
        if override_percent is not None:
            return -(base * override_percent / _HUNDRED)
        if _norm_brand(brand) in high_value_brands:
            return -(base * HIGH_VALUE_POWER_OFF_PERCENT / _HUNDRED)
        return Decimal(rules.yes_no(POWER_ON_QUESTION, "no") or 0)

    if value == "yes":
        return Decimal(rules.yes_no(POWER_ON_QUESTION, "yes") or 0)

    return _ZERO


def _answer_modifier(rules: PricingRules, question_id: str, answer: Answer) -> Decimal:
    if isinstance(answer, Single):
        yn = rules.yes_no(question_id, answer.value)
        if yn is not None:
            return Decimal(yn)

    if rules.has_table(question_id):
        return sum((Decimal(rules.option(question_id, opt)) for opt in answer.options), _ZERO)

    return _ZERO


def compute_breakdown(
    base_price: float,
    answers: Mapping[str, Any] | None,
    rules: PricingRules | None = None,
    brand: Optional[str] = None,
    power_on_override_percent: Optional[float] = None,
    *,
    high_value_brands: Iterable[str] = DEFAULT_HIGH_VALUE_BRANDS,
) -> PriceBreakdown:
    base = _dec(base_price, "base_price")
    override = (
        _dec(power_on_override_percent, "power_on_override_percent")
        if power_on_override_percent is not None
        else None
    )
    hv = frozenset(_norm_brand(b) for b in high_value_brands)
    rules = rules if rules is not None else zero_pricing_rules()
    parsed = parse_answers(answers)

    lines: Dict[str, Decimal] = {}

    power = _power_on_modifier(base, parsed.get(POWER_ON_QUESTION), rules, brand, override, hv)
    if POWER_ON_QUESTION in parsed:
        lines[POWER_ON_QUESTION] = power

    for qid, ans in parsed.items():
        if qid == POWER_ON_QUESTION:
            continue
        lines[qid] = _answer_modifier(rules, qid, ans)

    modifier = sum(lines.values(), _ZERO)
    final = max(_ZERO, base + modifier)

    return PriceBreakdown(
        base_price=float(base),
        modifier=float(modifier),
        final_value=float(final),
        lines={k: float(v) for k, v in lines.items()},
    )


def compute_value(
    base_price: float,
    answers: Mapping[str, Any] | None,
    rules: PricingRules | None = None,
    brand: Optional[str] = None,
    power_on_override_percent: Optional[float] = None,
    *,
    high_value_brands: Iterable[str] = DEFAULT_HIGH_VALUE_BRANDS,
) -> float:
    """Final valuation in rupees; never negative."""
    return compute_breakdown(
        base_price,
        answers,
        rules,
        brand,
        power_on_override_percent,
        high_value_brands=high_value_brands,
    ).final_value
