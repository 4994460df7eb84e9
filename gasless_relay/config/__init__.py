"""
Configuration management for the gasless relay.

Loads and validates settings from environment variables and an optional .env
file. RelayConfig is built once at process start and passed explicitly to
every component.
"""

from gasless_relay.config.settings import (  # noqa: F401
    CustodyReference,
    RateLimitPolicy,
    RelayConfig,
    SupportedToken,
    load_relay_config,
)

__all__ = [
    "CustodyReference",
    "RateLimitPolicy",
    "RelayConfig",
    "SupportedToken",
    "load_relay_config",
]
