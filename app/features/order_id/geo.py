"""
Postal code / state / category -> short codes used in order identifiers.

All lookups are pure and total: anything unmatched falls back to a default
code, because every submission must get *some* identifier.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

DEFAULT_REGION_CODE = "TN"
DEFAULT_SUB_REGION_CODE = "37"  # Coimbatore


@dataclass(frozen=True)
class PostalRange:
    start: int
    end: int
    region_code: str
    sub_region_code: str

    def contains(self, value: int) -> bool:
        return self.start <= value <= self.end


# Sorted, inclusive, non-overlapping. Overlaps are an authoring error; the
# scan below simply takes the first hit.
POSTAL_RANGES: Tuple[PostalRange, ...] = (
    PostalRange(600001, 600100, "TN", "01"),  # Chennai
    PostalRange(620001, 620025, "TN", "39"),  # Trichy
    PostalRange(625001, 625025, "TN", "45"),  # Madurai
    PostalRange(627001, 627015, "TN", "30"),  # Tirunelveli
    PostalRange(632001, 632015, "TN", "23"),  # Vellore
    PostalRange(636001, 636020, "TN", "33"),  # Salem
    PostalRange(638001, 638015, "TN", "31"),  # Erode
    PostalRange(641001, 641050, "TN", "37"),  # Coimbatore
    PostalRange(641601, 641615, "TN", "38"),  # Tiruppur
)

STATE_CODES = {
    "tamil nadu": "TN",
    "tamilnadu": "TN",
    "tn": "TN",
    "karnataka": "KA",
    "kerala": "KL",
    "andhra pradesh": "AP",
    "telangana": "TS",
    "maharashtra": "MH",
    "delhi": "DL",
    "gujarat": "GJ",
    "rajasthan": "RJ",
    "west bengal": "WB",
    "uttar pradesh": "UP",
    "punjab": "PB",
    "haryana": "HR",
    "odisha": "OD",
    "assam": "AS",
    "bihar": "BR",
    "jharkhand": "JH",
    "chhattisgarh": "CG",
    "himachal pradesh": "HP",
    "uttarakhand": "UK",
    "goa": "GA",
    "manipur": "MN",
    "meghalaya": "MG",
    "mizoram": "MZ",
    "nagaland": "NL",
    "sikkim": "SK",
    "tripura": "TR",
    "arunachal pradesh": "AR",
    "ladakh": "LA",
    "jammu and kashmir": "JK",
    "puducherry": "PY",
    "andaman and nicobar islands": "AN",
    "dadra and nagar haveli and daman and diu": "DH",
    "lakshadweep": "LD",
}

_NON_DIGIT = re.compile(r"\D")
_MULTI_SPACE = re.compile(r"\s+")


def normalize_postal_code(postal_code: str) -> int:
    """Digits only, left-padded to 6, first 6 kept. No digits at all -> 0."""
    digits = _NON_DIGIT.sub("", str(postal_code or ""))
    return int(digits.zfill(6)[:6])


def resolve_region(
    postal_code: str,
    ranges: Sequence[PostalRange] = POSTAL_RANGES,
    default: Tuple[str, str] = (DEFAULT_REGION_CODE, DEFAULT_SUB_REGION_CODE),
) -> Tuple[str, str]:
    value = normalize_postal_code(postal_code)
    for r in ranges:
        if r.contains(value):
            return r.region_code, r.sub_region_code
    return default


def state_code(state_name: Optional[str]) -> Optional[str]:
    """Known state name -> code; None for blanks and unknown names."""
    key = _MULTI_SPACE.sub(" ", str(state_name or "").strip().lower())
    if not key:
        return None
    return STATE_CODES.get(key)


# -----------------------------------------------------------------------------
# Category codes
# -----------------------------------------------------------------------------

DEFAULT_CATEGORY_CODE = "DSLR"

CAMERA_CATEGORIES = frozenset({"cameras", "camera", "dslr"})
PHONE_CATEGORIES = frozenset({"phones", "phone"})
LAPTOP_CATEGORIES = frozenset({"laptops", "laptop"})
TABLET_CATEGORIES = frozenset({"tablets", "tablet"})

_APPLE = ("apple", "iphone")
_SAMSUNG = ("samsung",)


@dataclass(frozen=True)
class CategoryRule:
    categories: frozenset
    code: str
    brand_tokens: Tuple[str, ...] = ()

    def matches(self, category: str, brand: str) -> bool:
        if category not in self.categories:
            return False
        if not self.brand_tokens:
            return True
        return any(tok in brand for tok in self.brand_tokens)


# Order matters: brand-specific codes before the generic code of the same category.
CATEGORY_RULES: Tuple[CategoryRule, ...] = (
    CategoryRule(CAMERA_CATEGORIES, "DSLR"),
    CategoryRule(PHONE_CATEGORIES, "IPNE", _APPLE),
    CategoryRule(PHONE_CATEGORIES, "SMSG", _SAMSUNG),
    CategoryRule(LAPTOP_CATEGORIES, "MCBK", _APPLE),
    CategoryRule(TABLET_CATEGORIES, "IPAD", _APPLE),
    CategoryRule(PHONE_CATEGORIES, "PHNE"),
    CategoryRule(LAPTOP_CATEGORIES, "LPTP"),
    CategoryRule(TABLET_CATEGORIES, "TBLT"),
)


def resolve_category_code(
    category: str,
    brand: Optional[str] = None,
    rules: Iterable[CategoryRule] = CATEGORY_RULES,
) -> str:
    c = str(category or "").strip().lower()
    b = str(brand or "").strip().lower()
    for rule in rules:
        if rule.matches(c, b):
            return rule.code
    return DEFAULT_CATEGORY_CODE


# -----------------------------------------------------------------------------
# Region with an optional state-name override
# -----------------------------------------------------------------------------

def resolve_region_code(postal_code: str, state_name: Optional[str] = None) -> Tuple[str, str]:
    """
    (region_code, sub_region_code) for an order.

    A known state name overrides the postal-derived region code; the sub-region
    always comes from the postal code (or its default).
    """
    region, sub_region = resolve_region(postal_code)
    return state_code(state_name) or region, sub_region
