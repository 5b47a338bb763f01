from __future__ import annotations

from datetime import datetime
from typing import Annotated, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from .resolution import RulesSource
from .rules import PricingRules

# Question id -> option id, or a list of option ids for multi-select questions.
AnswerMapIn = Dict[str, Union[str, List[str]]]


class PricingRulesUpsert(BaseModel):
    """PUT payload: replaces the tier's rules whole."""
    pricing_rules: PricingRules
    updated_by: Optional[Annotated[str, Field(max_length=128)]] = None


class PricingRulesRead(BaseModel):
    product_id: Optional[str] = None
    variant_id: Optional[str] = None
    pricing_rules: PricingRules
    updated_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ResolvedRulesRead(BaseModel):
    product_id: str
    variant_id: Optional[str] = None
    source: RulesSource
    pricing_rules: PricingRules


class QuoteRequest(BaseModel):
    product_id: Annotated[str, Field(min_length=1, max_length=100)]
    variant_id: Optional[Annotated[str, Field(min_length=1, max_length=100)]] = None
    answers: AnswerMapIn = Field(default_factory=dict)


class QuoteResponse(BaseModel):
    product_id: str
    variant_id: Optional[str] = None
    base_price: float
    modifier: float
    final_value: float
    rules_source: RulesSource
    lines: Dict[str, float] = Field(default_factory=dict)
