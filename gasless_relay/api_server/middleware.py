"""
HTTP middleware — CORS headers, request ids, request logging, caller identity.
"""

from __future__ import annotations

import hashlib
import time
import uuid

from fastapi import FastAPI, Request

from gasless_relay.relay_logging import bind_request, get_logger

logger = get_logger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, X-API-Key",
}
API_KEY_HEADER = "x-api-key"
ANONYMOUS_CALLER = "anonymous"


def caller_key(request: Request) -> str:
    """Rate-limit bucket: hashed API key if sent, else client address, else the shared anonymous bucket."""
    api_key = (request.headers.get(API_KEY_HEADER) or "").strip()
    if api_key:
        return "key:" + hashlib.sha256(api_key.encode("utf-8")).hexdigest()[:16]
    if request.client and request.client.host:
        return "ip:" + request.client.host
    return ANONYMOUS_CALLER


def install_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        bind_request(request_id, caller=caller_key(request))
        started = time.perf_counter()
        response = await call_next(request)
        for name, value in CORS_HEADERS.items():
            response.headers.setdefault(name, value)
        response.headers["X-Request-ID"] = request_id
        logger.info(
            "relay_request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return response
