"""
Valuation API schemas.

A valuation is one customer's trade-in submission: what they sell, how they
answered the questionnaire, what we offered, and where to pick it up.
Its order identifier is also its primary key.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field

from app.features.pricing.resolution import RulesSource
from app.features.pricing.schemas import AnswerMapIn

PickupDate = Annotated[str, Field(pattern=r"^\d{4}-\d{2}-\d{2}$")]
PickupTime = Annotated[str, Field(min_length=1, max_length=32)]


class ValuationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    HOLD = "hold"
    VERIFICATION = "verification"
    REJECT = "reject"
    SUSPECT = "suspect"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    PICKED_UP = "picked_up"
    QC_REVIEW = "qc_review"
    SERVICE_STATION = "service_station"
    SHOWROOM = "showroom"
    WAREHOUSE = "warehouse"


TERMINAL_STATUSES = frozenset({ValuationStatus.COMPLETED, ValuationStatus.CANCELLED, ValuationStatus.REJECT})


class Customer(BaseModel):
    name: Annotated[str, Field(min_length=1, max_length=200)]
    phone: Annotated[str, Field(min_length=5, max_length=20)]
    email: Optional[EmailStr] = None
    address: Annotated[str, Field(min_length=1, max_length=500)]
    city: Optional[Annotated[str, Field(max_length=100)]] = None
    state: Optional[Annotated[str, Field(max_length=100)]] = None
    postal_code: Annotated[str, Field(min_length=1, max_length=12)]


class ValuationCreate(BaseModel):
    product_id: Annotated[str, Field(min_length=1, max_length=100)]
    variant_id: Optional[Annotated[str, Field(min_length=1, max_length=100)]] = None
    answers: AnswerMapIn = Field(default_factory=dict)
    customer: Customer
    pickup_date: Optional[PickupDate] = None
    pickup_time: Optional[PickupTime] = None
    user_id: Optional[Annotated[str, Field(min_length=1, max_length=128)]] = None


class ValuationUpdate(BaseModel):
    """PATCH model (staff fields only, all optional)."""
    remarks: Optional[Annotated[str, Field(max_length=2000)]] = None
    agreed_value: Optional[Annotated[float, Field(ge=0)]] = None
    pickup_date: Optional[PickupDate] = None
    pickup_time: Optional[PickupTime] = None


class StatusChange(BaseModel):
    status: ValuationStatus
    note: Optional[Annotated[str, Field(max_length=1000)]] = None


class StatusHistoryEntry(BaseModel):
    status: ValuationStatus
    note: Optional[str] = None
    at: datetime


class ValuationRead(BaseModel):
    order_id: str
    user_id: Optional[str] = None

    product_id: str
    variant_id: Optional[str] = None
    variant_label: Optional[str] = None
    category: str
    brand: str
    model: str

    answers: AnswerMapIn = Field(default_factory=dict)
    condition: str
    usage: str
    accessories: List[str] = Field(default_factory=list)

    base_price: float
    modifier: float
    final_value: float
    rules_source: RulesSource
    lines: Dict[str, float] = Field(default_factory=dict)
    agreed_value: Optional[float] = None

    customer: Customer
    pickup_date: Optional[str] = None
    pickup_time: Optional[str] = None
    remarks: Optional[str] = None

    status: ValuationStatus
    status_history: List[StatusHistoryEntry] = Field(default_factory=list)

    created_at: datetime
    updated_at: datetime
