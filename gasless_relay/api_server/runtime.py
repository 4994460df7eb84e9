"""
Process-wide relay runtime: the objects every request shares read-only.

Built once in the FastAPI lifespan from RelayConfig; torn down at shutdown.
The rate limiter's counters are the only mutable shared state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from solana.rpc.async_api import AsyncClient

from gasless_relay.admission.fee_payer_account import FeePayerAccount
from gasless_relay.admission.rate_limit import FixedWindowRateLimiter
from gasless_relay.config.env import mask_rpc_url
from gasless_relay.config.settings import RelayConfig
from gasless_relay.pipeline.notifier import WebhookNotifier
from gasless_relay.pipeline.submission import SubmissionPipeline
from gasless_relay.relay_logging import get_logger
from gasless_relay.signer.base import FeePayerSigner
from gasless_relay.signer.loader import load_signer

logger = get_logger(__name__)


@dataclass
class RelayRuntime:
    config: RelayConfig
    signer: FeePayerSigner
    pipeline: SubmissionPipeline
    limiter: FixedWindowRateLimiter
    fee_payer_account: FeePayerAccount
    notifier: WebhookNotifier | None = None
    rpc_client: Any = None

    async def aclose(self) -> None:
        await self.signer.aclose()
        if self.notifier is not None:
            await self.notifier.aclose()
        if self.rpc_client is not None:
            await self.rpc_client.close()


def build_runtime(config: RelayConfig, rpc_client: Any = None) -> RelayRuntime:
    """Wire every component from config. rpc_client defaults to solana-py AsyncClient on config.rpc_url."""
    client = rpc_client or AsyncClient(config.rpc_url, commitment=config.commitment, timeout=config.rpc_timeout_sec)
    signer = load_signer(config)
    pipeline = SubmissionPipeline(
        client,
        commitment=config.commitment,
        confirm_timeout_sec=config.confirm_timeout_sec,
        poll_interval_sec=config.confirm_poll_interval_sec,
        rpc_timeout_sec=config.rpc_timeout_sec,
    )
    account = FeePayerAccount(
        config.fee_payer,
        config.tokens,
        client,
        min_sol_balance_lamports=config.min_sol_balance_lamports,
        cache_ttl_sec=config.health_cache_ttl_sec,
        rpc_timeout_sec=config.rpc_timeout_sec,
    )
    notifier = WebhookNotifier(config.webhook_url, config.webhook_secret) if config.webhook_url else None
    logger.info(
        "relay_runtime_built",
        network=config.network,
        rpc_url=mask_rpc_url(config.rpc_url),
        fee_payer=str(config.fee_payer),
        custody=config.custody.kind,
        tokens=[t.symbol or str(t.mint) for t in config.tokens],
        commitment=config.commitment,
    )
    return RelayRuntime(
        config=config,
        signer=signer,
        pipeline=pipeline,
        limiter=FixedWindowRateLimiter(config.rate_limit),
        fee_payer_account=account,
        notifier=notifier,
        rpc_client=client,
    )
