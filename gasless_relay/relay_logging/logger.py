"""
Relay logging: one structlog pipeline for every module.

Each line carries event_type, level, a UTC timestamp, the emitting module and,
inside an HTTP request, the request_id and caller bound by the middleware.
Credential-looking fields are masked before rendering so a stray keyword
argument cannot put key material or webhook secrets into the log stream.

LOG_LEVEL (default INFO) and LOG_FORMAT (json | console, default json) are
read when the module is first imported; configure_logging() can be called
again to override them.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

SERVICE_NAME = "gasless-relay"
REDACTED = "***"
_SECRET_MARKERS = ("secret", "private_key", "authorization", "password", "api_key")

EventDict = dict[str, Any]


def _redact_secrets(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    for key in list(event_dict):
        lowered = key.lower()
        if any(marker in lowered for marker in _SECRET_MARKERS):
            event_dict[key] = REDACTED
    return event_dict


def _relay_fields(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """event -> event_type, stamp the service, and lead with request identity when bound."""
    event_dict["event_type"] = event_dict.pop("event", None)
    event_dict["service"] = SERVICE_NAME
    lead = {k: event_dict.pop(k) for k in ("event_type", "request_id", "caller") if k in event_dict}
    return {**lead, **event_dict}


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    level_name = (level or os.getenv("LOG_LEVEL") or "INFO").strip().upper()
    fmt = (fmt or os.getenv("LOG_FORMAT") or "json").strip().lower()

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        _redact_secrets,
        structlog.processors.format_exc_info,
    ]
    if fmt == "console":
        # ConsoleRenderer keys on "event"; keep it
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    else:
        processors += [_relay_fields, structlog.processors.JSONRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level_name, logging.INFO)),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_logging()


def get_logger(name: str) -> structlog.BoundLogger:
    """Module logger; call with an event name and keyword fields."""
    return structlog.get_logger(name).bind(logger=name)


def bind_request(request_id: str, **fields: Any) -> None:
    """Start a fresh log context for one HTTP request (request_id, caller, ...)."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, **fields)


def short(value: Any, keep: int = 8) -> str:
    """First `keep` chars of a base58 key or signature."""
    s = str(value)
    return s[:keep] + "..." if len(s) > keep else s
