"""
Request budget and retry utilities for eBay API requests.
"""

from cardsync.services.rate_limiting.budget import BudgetTracker
from cardsync.services.rate_limiting.retry import (
    BackoffPolicy,
    RetryExhausted,
    RetryMachine,
    RetryState,
    retry_async,
)

__all__ = [
    "BudgetTracker",
    "BackoffPolicy",
    "RetryExhausted",
    "RetryMachine",
    "RetryState",
    "retry_async",
]
