"""
Structured logging for the gasless relay.

JSON logs with timestamp, event_type, and request-scoped fields.
Use get_logger() in all relay modules.
"""

from gasless_relay.relay_logging.logger import bind_request, configure_logging, get_logger, short

__all__ = ["bind_request", "configure_logging", "get_logger", "short"]
