"""
Fee policy validator — decides whether the relay may co-sign a transaction.
"""

from gasless_relay.validator.fee_policy import ValidationReason, ValidationVerdict, validate  # noqa: F401
from gasless_relay.validator.token_transfers import TokenTransfer, parse_token_transfer  # noqa: F401

__all__ = [
    "TokenTransfer",
    "ValidationReason",
    "ValidationVerdict",
    "parse_token_transfer",
    "validate",
]
