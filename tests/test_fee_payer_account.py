"""
Tests for the fee payer balance snapshot behind /health.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace

from solders.pubkey import Pubkey
from spl.token.instructions import get_associated_token_address

from gasless_relay.admission import FeePayerAccount


class Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _account(relay_config, fake_rpc, clock=None) -> FeePayerAccount:
    return FeePayerAccount(
        relay_config.fee_payer,
        relay_config.tokens,
        fake_rpc,
        min_sol_balance_lamports=1_000_000,
        cache_ttl_sec=15,
        clock=clock or Clock(),
    )


def test_healthy_snapshot(relay_config, fake_rpc, usdc):
    fake_rpc.lamports = 1_500_000_000
    fake_rpc.token_amounts[usdc.fee_destination] = 1_234_567
    body = asyncio.run(_account(relay_config, fake_rpc).snapshot()).to_health_dict()
    assert body == {
        "feePayer": str(relay_config.fee_payer),
        "solBalance": "1.500000000",
        "tokenBalances": [
            {"mint": str(usdc.mint), "symbol": "USDC", "balance": 1_234_567, "balanceFormatted": "1.234567"}
        ],
        "status": "healthy",
    }


def test_low_sol_at_threshold(relay_config, fake_rpc):
    fake_rpc.lamports = 1_000_000
    snapshot = asyncio.run(_account(relay_config, fake_rpc).snapshot())
    assert not snapshot.healthy
    assert snapshot.to_health_dict()["status"] == "low_sol"


def test_missing_token_account_reads_zero(relay_config, fake_rpc):
    snapshot = asyncio.run(_account(relay_config, fake_rpc).snapshot())
    assert snapshot.token_balances[0].balance == 0
    assert snapshot.token_balances[0].to_dict()["balanceFormatted"] == "0.000000"


def test_snapshot_is_cached_until_ttl(relay_config, fake_rpc):
    clock = Clock()
    account = _account(relay_config, fake_rpc, clock)

    async def run():
        first = await account.snapshot()
        fake_rpc.lamports = 5
        clock.now = 10
        cached = await account.snapshot()
        clock.now = 16
        fresh = await account.snapshot()
        forced = await account.snapshot(max_age=0)
        return first, cached, fresh, forced

    first, cached, fresh, forced = asyncio.run(run())
    assert cached is first
    assert fresh.lamports == 5
    assert forced is not fresh


def test_token_balance_is_fee_payers_own_account(relay_config, fake_rpc, usdc):
    """A separate treasury as fee destination does not leak into the fee payer's balances."""
    treasury = Pubkey.new_unique()
    cfg = replace(relay_config, tokens=(replace(usdc, fee_destination=treasury),))
    own_account = get_associated_token_address(relay_config.fee_payer, usdc.mint)
    fake_rpc.token_amounts[treasury] = 999
    fake_rpc.token_amounts[own_account] = 42

    snapshot = asyncio.run(_account(cfg, fake_rpc).refresh())
    assert snapshot.token_balances[0].balance == 42
