"""
FastAPI server — gasless relay HTTP surface.

GET  /config    fee payer, accepted fee tokens, rate limit
GET  /health    fee payer SOL + token balances, healthy | low_sol
POST /transfer  {transaction: base64, mint?} -> co-sign and submit
OPTIONS on every path -> 204 with CORS headers.

Config is loaded once in the lifespan. When it fails to load the app still
serves, and every route answers 500 relay_not_configured.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from gasless_relay import __version__
from gasless_relay.api_server.middleware import CORS_HEADERS, caller_key, install_middleware
from gasless_relay.api_server.runtime import RelayRuntime, build_runtime
from gasless_relay.config.settings import load_relay_config
from gasless_relay.core.exceptions import ConfigurationError, RateLimitExceeded, RelayError
from gasless_relay.pipeline.submission import SubmissionState
from gasless_relay.relay_logging import get_logger, short
from gasless_relay.signer.base import sign_transaction
from gasless_relay.transaction.codec import decode_base64
from gasless_relay.validator.fee_policy import validate

logger = get_logger(__name__)


# -----------------------------------------------------------------------------
# Request / response models
# -----------------------------------------------------------------------------


class TransferRequest(BaseModel):
    """POST /transfer body."""

    transaction: str | None = Field(None, description="Partially-signed transaction, base64 wire format")
    mint: str | None = Field(None, description="Fee token mint (base58); optional hint")


class TransferResponse(BaseModel):
    status: str = Field("ok")
    signature: str = Field(..., description="Transaction signature (base58)")


class TokenInfo(BaseModel):
    mint: str
    symbol: str
    decimals: int
    fee: int = Field(..., description="Minimum fee in token atomic units")
    account: str = Field(..., description="Fee destination token account")


class TransferEndpoint(BaseModel):
    tokens: list[TokenInfo]


class Endpoints(BaseModel):
    transfer: TransferEndpoint


class ConfigResponse(BaseModel):
    feePayer: str
    endpoints: Endpoints
    rateLimit: int = Field(..., description="Max requests per caller per window")
    rateLimitWindowSec: int


class TokenBalanceInfo(BaseModel):
    mint: str
    symbol: str
    balance: int
    balanceFormatted: str


class HealthResponse(BaseModel):
    feePayer: str
    solBalance: str
    tokenBalances: list[TokenBalanceInfo]
    status: str


# -----------------------------------------------------------------------------
# Runtime dependency
# -----------------------------------------------------------------------------


def get_runtime(request: Request) -> RelayRuntime:
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        error = getattr(request.app.state, "config_error", None)
        raise ConfigurationError("Relay not configured", reason=str(error) if error else None)
    return runtime


def _json(status_code: int, content: dict[str, Any], headers: dict[str, str] | None = None) -> JSONResponse:
    merged = dict(CORS_HEADERS)
    if headers:
        merged.update(headers)
    return JSONResponse(status_code=status_code, content=content, headers=merged)


# -----------------------------------------------------------------------------
# App factory
# -----------------------------------------------------------------------------


def create_app(runtime: RelayRuntime | None = None) -> FastAPI:
    """Build the app. Pass a runtime to skip env-based config (tests, embedding)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = False
        if app.state.runtime is None:
            try:
                app.state.runtime = build_runtime(load_relay_config())
                owned = True
            except ConfigurationError as e:
                app.state.config_error = e
                logger.error("relay_config_error", error=e.message)
        yield
        if owned and app.state.runtime is not None:
            await app.state.runtime.aclose()
            logger.info("relay_runtime_closed")

    app = FastAPI(
        title="Gasless Relay",
        description="Co-signs and submits fee-paying transactions as the network fee payer.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.runtime = runtime
    app.state.config_error = None
    install_middleware(app)

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
        headers = None
        if isinstance(exc, RateLimitExceeded):
            headers = {"Retry-After": str(exc.retry_after)}
        if exc.http_status >= 500:
            logger.error("relay_request_failed", code=exc.code, error=exc.message, path=request.url.path)
        return _json(exc.http_status, exc.to_dict(), headers)

    @app.exception_handler(RequestValidationError)
    async def body_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _json(400, {"error": "Invalid request body"})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("relay_unexpected_error", path=request.url.path, error=str(exc))
        return _json(500, {"error": "Internal server error"})

    @app.options("/{path:path}")
    async def preflight(path: str) -> Response:
        return Response(status_code=204, headers=CORS_HEADERS)

    @app.get("/config", response_model=ConfigResponse)
    async def get_config(runtime: RelayRuntime = Depends(get_runtime)) -> dict[str, Any]:
        cfg = runtime.config
        return {
            "feePayer": str(cfg.fee_payer),
            "endpoints": {"transfer": {"tokens": [t.to_public_dict() for t in cfg.tokens]}},
            "rateLimit": cfg.rate_limit.max_requests,
            "rateLimitWindowSec": cfg.rate_limit.window_seconds,
        }

    @app.get("/health", response_model=HealthResponse)
    async def get_health(runtime: RelayRuntime = Depends(get_runtime)):
        try:
            snapshot = await runtime.fee_payer_account.snapshot()
        except Exception as e:
            logger.exception("relay_health_check_failed", error=str(e))
            return _json(500, {"status": "error", "error": "Health check failed"})
        return snapshot.to_health_dict()

    @app.post("/transfer", response_model=TransferResponse)
    async def transfer(
        body: TransferRequest,
        request: Request,
        runtime: RelayRuntime = Depends(get_runtime),
    ):
        """
        Validate the fee instruction, co-sign as fee payer, submit and wait for
        the configured commitment. Returns 200 only for Confirmed.
        """
        limiter = runtime.limiter
        decision = limiter.allow(caller_key(request))
        if not decision.allowed:
            retry_after = decision.retry_after(limiter.now())
            logger.info("relay_rate_limited", retry_after=retry_after)
            raise RateLimitExceeded(retry_after)

        tx = decode_base64(body.transaction or "")
        verdict = validate(tx, body.mint, runtime.config)
        if not verdict.valid:
            logger.info(
                "relay_tx_rejected",
                reason=verdict.reason.value,
                fee_payer=short(tx.fee_payer),
                detail=verdict.detail,
            )
            return _json(400, {"error": verdict.error_message, "reason": verdict.reason.value})

        signed = await sign_transaction(tx, runtime.signer)
        outcome = await runtime.pipeline.submit_and_confirm(signed)

        if outcome.state is SubmissionState.CONFIRMED:
            if runtime.notifier is not None:
                runtime.notifier.notify_confirmed(
                    outcome.signature,
                    mint=str(verdict.token.mint),
                    fee=verdict.fee_amount,
                    feePayer=str(runtime.config.fee_payer),
                )
            return {"status": "ok", "signature": outcome.signature}

        message = (
            "Transaction failed on chain"
            if outcome.state is SubmissionState.ON_CHAIN_ERROR
            else "Transaction not confirmed before timeout"
        )
        return _json(
            500,
            {
                "error": message,
                "state": outcome.state.value,
                "signature": outcome.signature,
                "details": outcome.error_detail,
            },
        )

    return app


app = create_app()
