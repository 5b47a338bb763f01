"""
This file holds *global* app settings (things that are not per-request).

Think of it like the "settings panel" for the backend:
- MongoDB connection details
- Order identifier counter + retry knobs
- Pricing heuristics that staff may need to tune without a deploy
"""
from __future__ import annotations

import os
from typing import FrozenSet

from dotenv import load_dotenv
from pydantic import BaseModel

# Loads environment variables from a local ".env" file (if present).
load_dotenv()


def _csv_set(raw: str) -> FrozenSet[str]:
    return frozenset(p.strip().lower() for p in raw.split(",") if p.strip())


class AppConfig(BaseModel):
    """
    AppConfig is a structured container for environment-based settings.

    Environment variables override the defaults below.
    """

    # -----------------------------
    # General app settings
    # -----------------------------
    app_name: str = "Trade-in Valuation Backend"
    environment: str = os.getenv("APP_ENV", "dev")  # dev / staging / prod
    debug: bool = os.getenv("DEBUG", "true").lower() == "true"

    # -----------------------------
    # MongoDB settings
    # -----------------------------
    # Transactions need a replica set (a single-node one is fine for local dev).
    mongo_uri: str = os.getenv("MONGO_URI", "mongodb://localhost:27017/?replicaSet=rs0")
    mongo_db: str = os.getenv("MONGO_DB", "tradein")

    # -----------------------------
    # Order identifier sequence
    # -----------------------------
    # The counter starts here; the first order number handed out is start + 1.
    order_id_counter_start: int = int(os.getenv("ORDER_ID_COUNTER_START", "1000"))

    # Transaction attempts before dropping to the best-effort path.
    order_id_max_attempts: int = int(os.getenv("ORDER_ID_MAX_ATTEMPTS", "5"))

    # Exponential backoff between transaction attempts (seconds).
    order_id_backoff_base_seconds: float = float(os.getenv("ORDER_ID_BACKOFF_BASE_SECONDS", "0.01"))
    order_id_backoff_max_seconds: float = float(os.getenv("ORDER_ID_BACKOFF_MAX_SECONDS", "0.5"))

    # -----------------------------
    # Pricing
    # -----------------------------
    # Brands that lose 75% of base price when the device does not power on.
    high_value_brands: FrozenSet[str] = _csv_set(os.getenv("HIGH_VALUE_BRANDS", "apple,iphone,samsung"))


# Global singleton used throughout the app
config = AppConfig()
