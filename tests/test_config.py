"""
Tests for environment-driven relay configuration.
"""

from __future__ import annotations

import json

import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from spl.token.instructions import get_associated_token_address

from gasless_relay.config import load_relay_config
from gasless_relay.config.env import DEVNET_RPC_URL, MAINNET_RPC_URL, mask_rpc_url
from gasless_relay.config.settings import (
    CUSTODY_LOCAL,
    CUSTODY_REMOTE,
    USDC_DEVNET_MINT,
    USDC_MAINNET_MINT,
    parse_token_table,
)
from gasless_relay.core.exceptions import ConfigurationError

RELAY_ENV_VARS = (
    "FEE_PAYER_SECRET",
    "FEE_PAYER_SECRET_KEY",
    "PRIVY_APP_ID",
    "NEXT_PUBLIC_PRIVY_APP_ID",
    "PRIVY_APP_SECRET",
    "PRIVY_FEE_PAYER_WALLET_ID",
    "PRIVY_FEE_PAYER_ADDRESS",
    "PRIVY_API_BASE",
    "SOLANA_NETWORK",
    "SOLANA_CLUSTER",
    "SOLANA_RPC_URL",
    "HELIUS_API_KEY",
    "RELAY_TOKENS",
    "RATE_LIMIT",
    "RATE_LIMIT_WINDOW_SEC",
    "RELAY_COMMITMENT",
    "RELAY_WEBHOOK_URL",
    "RELAY_WEBHOOK_SECRET",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in RELAY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def local_env(clean_env, fee_payer):
    clean_env.setenv("FEE_PAYER_SECRET", str(fee_payer))
    return clean_env


def test_local_custody_devnet_defaults(local_env, fee_payer):
    cfg = load_relay_config()
    assert cfg.custody.kind == CUSTODY_LOCAL
    assert cfg.fee_payer == fee_payer.pubkey()
    assert cfg.network == "devnet"
    assert cfg.rpc_url == DEVNET_RPC_URL
    assert cfg.commitment == "confirmed"
    assert cfg.rate_limit.max_requests == 60

    (usdc,) = cfg.tokens
    mint = Pubkey.from_string(USDC_DEVNET_MINT)
    assert usdc.mint == mint
    assert usdc.minimum_fee_units == 10_000
    assert usdc.fee_destination == get_associated_token_address(fee_payer.pubkey(), mint)
    assert str(fee_payer) not in repr(cfg)


def test_mainnet_defaults(local_env):
    local_env.setenv("SOLANA_NETWORK", "mainnet-beta")
    cfg = load_relay_config()
    assert cfg.network == "mainnet"
    assert cfg.rpc_url == MAINNET_RPC_URL
    assert str(cfg.tokens[0].mint) == USDC_MAINNET_MINT
    assert cfg.tokens[0].minimum_fee_units == 5_000


def test_helius_rpc_url(local_env):
    local_env.setenv("HELIUS_API_KEY", "k123")
    cfg = load_relay_config()
    assert cfg.rpc_url == "https://devnet.helius-rpc.com/?api-key=k123"
    assert mask_rpc_url(cfg.rpc_url) == "https://devnet.helius-rpc.com/?api-key=***"


def test_token_table_from_env(local_env, fee_payer):
    explicit = Pubkey.new_unique()
    mint_a, mint_b = Pubkey.new_unique(), Pubkey.new_unique()
    local_env.setenv(
        "RELAY_TOKENS",
        json.dumps(
            [
                {"mint": str(mint_a), "symbol": "AAA", "decimals": 9, "fee": 1, "account": str(explicit)},
                {"mint": str(mint_b), "symbol": "BBB", "decimals": 2, "fee": 50},
            ]
        ),
    )
    local_env.setenv("RATE_LIMIT", "5")
    local_env.setenv("RATE_LIMIT_WINDOW_SEC", "30")
    cfg = load_relay_config()
    assert [t.symbol for t in cfg.tokens] == ["AAA", "BBB"]
    assert cfg.tokens[0].fee_destination == explicit
    assert cfg.tokens[1].fee_destination == get_associated_token_address(fee_payer.pubkey(), mint_b)
    assert cfg.token_for_mint(str(mint_b)) == cfg.tokens[1]
    assert cfg.token_for_mint(Pubkey.new_unique()) is None
    assert (cfg.rate_limit.max_requests, cfg.rate_limit.window_seconds) == (5, 30)


def test_remote_custody(clean_env):
    address = Keypair().pubkey()
    clean_env.setenv("PRIVY_APP_ID", "app")
    clean_env.setenv("PRIVY_APP_SECRET", "s3cret")
    clean_env.setenv("PRIVY_FEE_PAYER_WALLET_ID", "wallet-1")
    clean_env.setenv("PRIVY_FEE_PAYER_ADDRESS", str(address))
    cfg = load_relay_config()
    assert cfg.custody.kind == CUSTODY_REMOTE
    assert cfg.custody.wallet_id == "wallet-1"
    assert cfg.fee_payer == address
    assert "s3cret" not in repr(cfg)


def test_missing_custody(clean_env):
    with pytest.raises(ConfigurationError, match="Fee payer not configured"):
        load_relay_config()


@pytest.mark.parametrize(
    "name,value",
    [
        ("RATE_LIMIT", "lots"),
        ("RATE_LIMIT", "0"),
        ("RELAY_COMMITMENT", "processed"),
        ("RELAY_TOKENS", "{not json"),
        ("RELAY_TOKENS", "[]"),
        ("FEE_PAYER_SECRET", "not-a-key"),
    ],
)
def test_invalid_settings(local_env, name, value):
    local_env.setenv(name, value)
    with pytest.raises(ConfigurationError):
        load_relay_config()


def test_parse_token_table_rejects_bad_entries(fee_payer):
    with pytest.raises(ConfigurationError):
        parse_token_table([{"mint": "nope", "decimals": 6, "fee": 1}], fee_payer.pubkey())
    with pytest.raises(ConfigurationError):
        parse_token_table([{"mint": str(Pubkey.new_unique()), "decimals": "six", "fee": 1}], fee_payer.pubkey())
