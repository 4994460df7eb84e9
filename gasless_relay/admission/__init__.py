"""
Admission control — per-caller rate limiting and the fee payer's advisory balances.
"""

from gasless_relay.admission.fee_payer_account import BalanceSnapshot, FeePayerAccount, TokenBalance  # noqa: F401
from gasless_relay.admission.rate_limit import FixedWindowRateLimiter, RateLimitDecision  # noqa: F401

__all__ = [
    "BalanceSnapshot",
    "FeePayerAccount",
    "FixedWindowRateLimiter",
    "RateLimitDecision",
    "TokenBalance",
]
