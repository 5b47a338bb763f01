"""
Pricing rule schema.

A rule set is two kinds of tables, all values in whole rupees:

- questions: yes/no questions -> {"yes": int, "no": int}
- tables:    option tables (displayCondition, accessories, age, ...) -> {option_id: int}

Stored documents and API bodies come in two layouts and both are accepted:

    {"questions": {...}, "tables": {"displayCondition": {...}, ...}}   # what we write
    {"questions": {...}, "displayCondition": {...}, ...}              # storefront editor (flat)
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field, model_validator

MAX_MODIFIER = 1_000_000

Modifier = Annotated[int, Field(ge=-MAX_MODIFIER, le=MAX_MODIFIER)]

POWER_ON_QUESTION = "powerOn"

# Yes/no questions asked by the questionnaire.
KNOWN_QUESTIONS: tuple[str, ...] = (
    POWER_ON_QUESTION,
    "cameraFunction",
    "buttonsWorking",
    "waterDamage",
    "flashWorking",
    "memoryCardSlotWorking",
    "speakerWorking",
)

# Option tables and the options the questionnaire can submit for each.
KNOWN_TABLES: Dict[str, tuple[str, ...]] = {
    "lensCondition": ("withoutLens", "good", "autofocusIssue", "fungus", "scratches"),
    "displayCondition": ("excellent", "good", "fair", "cracked"),
    "bodyCondition": ("excellent", "good", "fair", "poor"),
    "errorCondition": ("noErrors", "minorErrors", "frequentErrors"),
    "bodyPhysicalCondition": ("likeNew", "average", "worn"),
    "lcdDisplayCondition": ("good", "fair", "poor"),
    "rubberGripsCondition": ("good", "fair", "poor"),
    "sensorViewfinderCondition": ("clean", "minor", "major"),
    "errorCodesCondition": ("none", "intermittent", "persistent"),
    "fungusDustCondition": ("clean", "minorFungus", "majorFungus"),
    "focusFunctionality": ("goodFocus", "afIssue", "mfIssue"),
    "rubberRingCondition": ("goodRubber", "minorRubber", "majorRubber"),
    "lensErrorStatus": ("noErrors", "occasionalErrors", "frequentErrors"),
    "functionalIssues": (
        "microphoneIssue",
        "speakerIssue",
        "chargingPortIssue",
        "touchScreenIssue",
        "wifiIssue",
        "buttonIssue",
        "frameDamageIssue",
        "bodyDamageIssue",
        "waterDamageIssue",
        "networkIssue",
        "noIssues",
    ),
    "accessories": ("battery", "charger", "box", "cable", "manual", "case", "bill", "warrantyCard"),
    "age": ("lessThan3Months", "fourToTwelveMonths", "aboveTwelveMonths"),
}

_META_KEYS = {"_id", "product_id", "variant_id", "created_at", "updated_at", "updated_by"}


class YesNoPrice(BaseModel):
    yes: Modifier = 0
    no: Modifier = 0


class PricingRules(BaseModel):
    questions: Dict[str, YesNoPrice] = Field(default_factory=dict)
    tables: Dict[str, Dict[str, Modifier]] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _fold_flat_tables(cls, data: Any) -> Any:
        """Accept either layout: top-level option tables are folded into `tables`."""
        if not isinstance(data, Mapping):
            return data

        tables: Dict[str, Any] = {}
        for key, value in data.items():
            if key in ("questions", "tables") or key in _META_KEYS:
                continue
            if isinstance(value, Mapping):
                tables[key] = dict(value)

        nested = data.get("tables")
        if isinstance(nested, Mapping):
            for key, value in nested.items():
                if isinstance(value, Mapping):
                    tables[key] = dict(value)
        elif nested is not None:
            # Let field validation reject a malformed `tables`.
            return {"questions": data.get("questions") or {}, "tables": nested}

        return {"questions": data.get("questions") or {}, "tables": tables}

    def yes_no(self, question_id: str, answer: str) -> Optional[int]:
        """Modifier for a yes/no answer, or None if the question has no entry."""
        entry = self.questions.get(question_id)
        if entry is None:
            return None
        a = answer.strip().lower()
        if a == "yes":
            return entry.yes
        if a == "no":
            return entry.no
        return None

    def has_table(self, table: str) -> bool:
        return table in self.tables

    def option(self, table: str, option_id: str) -> int:
        """Missing tables and options are worth 0."""
        return int(self.tables.get(table, {}).get(option_id, 0))

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "PricingRules":
        """
        Parse a stored rule document (either layout).

        Raises pydantic.ValidationError if a value is not an in-range integer.
        """
        return cls.model_validate(dict(doc))

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump()


def zero_pricing_rules() -> PricingRules:
    """Every known question and option at 0: base price passes through untouched."""
    return PricingRules(
        questions={q: YesNoPrice() for q in KNOWN_QUESTIONS},
        tables={t: {opt: 0 for opt in opts} for t, opts in KNOWN_TABLES.items()},
    )
