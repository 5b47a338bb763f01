"""
Retry / backoff timings for counter transactions.

Keep these pure so they are testable and reusable.
"""

from __future__ import annotations

import random


def backoff_seconds(attempt: int, *, base: float, cap: float, jitter: float = 0.25) -> float:
    """
    Exponential backoff with proportional jitter.

    attempt=1 -> ~base, attempt=2 -> ~2*base, ... never above cap * (1 + jitter).
    """
    delay = min(cap, base * (2 ** max(0, attempt - 1)))
    return delay + random.uniform(0.0, delay * jitter)
