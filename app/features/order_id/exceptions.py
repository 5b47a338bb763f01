"""
Exceptions for the order number sequence.
"""

from __future__ import annotations

from typing import Optional


class SequenceAllocationError(RuntimeError):
    """
    Raised when no order number could be allocated.

    Both the transactional attempts and the best-effort fallback failed. The
    submission must be aborted: a valuation without a unique key cannot be stored.
    """

    def __init__(self, message: str, *, attempts: int, last_error: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.attempts = int(attempts)
        self.last_error = last_error
