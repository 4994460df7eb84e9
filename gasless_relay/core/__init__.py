"""
Core utilities — application exceptions shared by every relay component.
"""

from gasless_relay.core.exceptions import (  # noqa: F401
    ConfigurationError,
    DecodeError,
    RateLimitExceeded,
    RelayError,
    SigningError,
    SubmissionError,
)

__all__ = [
    "ConfigurationError",
    "DecodeError",
    "RateLimitExceeded",
    "RelayError",
    "SigningError",
    "SubmissionError",
]
