"""
Relay settings: RelayConfig and its parts, loaded from environment variables.

Responsibilities:
- Resolve the fee-payer key reference (local secret key or remote managed wallet).
- Build the supported fee-token table (RELAY_TOKENS or network USDC default).
- Expose typed, immutable settings (RPC URL, commitment, timeouts, rate limit)
  constructed once at startup and shared read-only by every request.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from solders.pubkey import Pubkey
from spl.token.instructions import get_associated_token_address

from gasless_relay.config.env import (
    env_float,
    env_int,
    env_str,
    get_solana_network,
    get_solana_rpc_url,
    load_relay_env,
)
from gasless_relay.core.exceptions import ConfigurationError

USDC_DEVNET_MINT = "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU"
USDC_MAINNET_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
USDC_DECIMALS = 6
# 0.01 USDC per transaction on devnet, 0.005 on mainnet
USDC_DEVNET_FEE = 10_000
USDC_MAINNET_FEE = 5_000

DEFAULT_RATE_LIMIT = 60
DEFAULT_RATE_LIMIT_WINDOW_SEC = 60
DEFAULT_COMMITMENT = "confirmed"
DEFAULT_CONFIRM_TIMEOUT_SEC = 30.0
DEFAULT_CONFIRM_POLL_INTERVAL_SEC = 1.0
DEFAULT_RPC_TIMEOUT_SEC = 10.0
DEFAULT_REMOTE_SIGNER_TIMEOUT_SEC = 10.0
DEFAULT_MIN_SOL_BALANCE_LAMPORTS = 1_000_000  # 0.001 SOL
DEFAULT_HEALTH_CACHE_TTL_SEC = 15.0
PRIVY_API_BASE = "https://api.privy.io"

COMMITMENT_LEVELS = ("confirmed", "finalized")

CUSTODY_LOCAL = "local"
CUSTODY_REMOTE = "remote"


@dataclass(frozen=True)
class SupportedToken:
    """One fee token the relay accepts: mint, label, decimals, minimum fee and where fees go."""

    mint: Pubkey
    symbol: str
    decimals: int
    minimum_fee_units: int
    fee_destination: Pubkey

    def format_amount(self, units: int) -> str:
        """Atomic units -> decimal string with exactly `decimals` places."""
        value = Decimal(units).scaleb(-self.decimals)
        return f"{value:.{self.decimals}f}"

    def to_public_dict(self) -> dict[str, Any]:
        """Shape used by GET /config."""
        return {
            "mint": str(self.mint),
            "symbol": self.symbol,
            "decimals": self.decimals,
            "fee": self.minimum_fee_units,
            "account": str(self.fee_destination),
        }


@dataclass(frozen=True)
class RateLimitPolicy:
    max_requests: int = DEFAULT_RATE_LIMIT
    window_seconds: int = DEFAULT_RATE_LIMIT_WINDOW_SEC

    def __post_init__(self) -> None:
        if self.max_requests < 1:
            raise ConfigurationError("RATE_LIMIT must be >= 1")
        if self.window_seconds < 1:
            raise ConfigurationError("RATE_LIMIT_WINDOW_SEC must be >= 1")


@dataclass(frozen=True)
class CustodyReference:
    """
    Where the fee-payer key lives. Local: secret key material in env.
    Remote: a Privy managed wallet addressed by wallet id.
    """

    kind: str
    secret_key: str = field(default="", repr=False)
    wallet_id: str = ""
    app_id: str = ""
    app_secret: str = field(default="", repr=False)
    api_base: str = PRIVY_API_BASE


@dataclass(frozen=True)
class RelayConfig:
    """Process-wide relay configuration. Immutable after load_relay_config()."""

    fee_payer: Pubkey
    custody: CustodyReference
    rpc_url: str
    tokens: tuple[SupportedToken, ...]
    rate_limit: RateLimitPolicy = field(default_factory=RateLimitPolicy)
    network: str = "devnet"
    commitment: str = DEFAULT_COMMITMENT
    confirm_timeout_sec: float = DEFAULT_CONFIRM_TIMEOUT_SEC
    confirm_poll_interval_sec: float = DEFAULT_CONFIRM_POLL_INTERVAL_SEC
    rpc_timeout_sec: float = DEFAULT_RPC_TIMEOUT_SEC
    remote_signer_timeout_sec: float = DEFAULT_REMOTE_SIGNER_TIMEOUT_SEC
    min_sol_balance_lamports: int = DEFAULT_MIN_SOL_BALANCE_LAMPORTS
    health_cache_ttl_sec: float = DEFAULT_HEALTH_CACHE_TTL_SEC
    webhook_url: str | None = None
    webhook_secret: str | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not self.tokens:
            raise ConfigurationError("No supported fee tokens configured")
        if self.commitment not in COMMITMENT_LEVELS:
            raise ConfigurationError(f"Unsupported commitment level: {self.commitment}")
        if self.confirm_timeout_sec <= 0 or self.rpc_timeout_sec <= 0:
            raise ConfigurationError("Timeouts must be positive")
        if self.confirm_poll_interval_sec <= 0:
            raise ConfigurationError("CONFIRM_POLL_INTERVAL_SEC must be positive")

    def token_for_mint(self, mint: str | Pubkey) -> SupportedToken | None:
        target = str(mint).strip()
        for token in self.tokens:
            if str(token.mint) == target:
                return token
        return None


def _parse_pubkey(value: Any, what: str) -> Pubkey:
    try:
        return Pubkey.from_string(str(value).strip())
    except Exception as e:
        raise ConfigurationError(f"Invalid {what}: {value!r}") from e


def parse_token_table(raw: str | list[dict[str, Any]], fee_payer: Pubkey) -> tuple[SupportedToken, ...]:
    """
    Parse RELAY_TOKENS: JSON list of {mint, symbol, decimals, fee, account?}.
    A missing account defaults to the fee payer's associated token account for the mint.
    """
    if isinstance(raw, str):
        try:
            entries = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigurationError("RELAY_TOKENS is not valid JSON") from e
    else:
        entries = raw
    if not isinstance(entries, list):
        raise ConfigurationError("RELAY_TOKENS must be a JSON list")
    tokens: list[SupportedToken] = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise ConfigurationError("RELAY_TOKENS entries must be objects")
        mint = _parse_pubkey(entry.get("mint"), "token mint")
        try:
            decimals = int(entry.get("decimals"))
            fee = int(entry.get("fee"))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Token {mint}: decimals and fee must be integers") from e
        if not 0 <= decimals <= 255 or fee < 0:
            raise ConfigurationError(f"Token {mint}: decimals/fee out of range")
        account = entry.get("account")
        destination = (
            _parse_pubkey(account, "fee destination account")
            if account
            else get_associated_token_address(fee_payer, mint)
        )
        tokens.append(
            SupportedToken(
                mint=mint,
                symbol=str(entry.get("symbol") or "")[:16],
                decimals=decimals,
                minimum_fee_units=fee,
                fee_destination=destination,
            )
        )
    return tuple(tokens)


def default_token_table(network: str, fee_payer: Pubkey) -> tuple[SupportedToken, ...]:
    """USDC for the current network, fees paid to the fee payer's USDC ATA."""
    if network == "mainnet":
        entry = {"mint": USDC_MAINNET_MINT, "symbol": "USDC", "decimals": USDC_DECIMALS, "fee": USDC_MAINNET_FEE}
    else:
        entry = {"mint": USDC_DEVNET_MINT, "symbol": "USDC", "decimals": USDC_DECIMALS, "fee": USDC_DEVNET_FEE}
    return parse_token_table([entry], fee_payer)


def _load_custody() -> tuple[CustodyReference, Pubkey]:
    """Resolve custody from env: FEE_PAYER_SECRET (local) wins over Privy managed wallet (remote)."""
    from gasless_relay.signer.local import load_keypair

    secret = env_str("FEE_PAYER_SECRET") or env_str("FEE_PAYER_SECRET_KEY")
    if secret:
        keypair = load_keypair(secret)
        return CustodyReference(kind=CUSTODY_LOCAL, secret_key=secret), keypair.pubkey()

    wallet_id = env_str("PRIVY_FEE_PAYER_WALLET_ID")
    address = env_str("PRIVY_FEE_PAYER_ADDRESS")
    app_id = env_str("PRIVY_APP_ID") or env_str("NEXT_PUBLIC_PRIVY_APP_ID")
    app_secret = env_str("PRIVY_APP_SECRET")
    if wallet_id and address and app_id and app_secret:
        custody = CustodyReference(
            kind=CUSTODY_REMOTE,
            wallet_id=wallet_id,
            app_id=app_id,
            app_secret=app_secret,
            api_base=env_str("PRIVY_API_BASE", PRIVY_API_BASE).rstrip("/"),
        )
        return custody, _parse_pubkey(address, "PRIVY_FEE_PAYER_ADDRESS")

    raise ConfigurationError(
        "Fee payer not configured: set FEE_PAYER_SECRET or the PRIVY_* managed wallet variables"
    )


def load_relay_config() -> RelayConfig:
    """
    Build RelayConfig from the environment. Raises ConfigurationError on
    missing custody, bad token table or out-of-range numbers.
    """
    load_relay_env()
    network = get_solana_network()
    custody, fee_payer = _load_custody()

    raw_tokens = env_str("RELAY_TOKENS")
    tokens = parse_token_table(raw_tokens, fee_payer) if raw_tokens else default_token_table(network, fee_payer)

    try:
        rate_limit = RateLimitPolicy(
            max_requests=env_int("RATE_LIMIT", DEFAULT_RATE_LIMIT),
            window_seconds=env_int("RATE_LIMIT_WINDOW_SEC", DEFAULT_RATE_LIMIT_WINDOW_SEC),
        )
        return RelayConfig(
            fee_payer=fee_payer,
            custody=custody,
            rpc_url=get_solana_rpc_url(),
            tokens=tokens,
            rate_limit=rate_limit,
            network=network,
            commitment=env_str("RELAY_COMMITMENT", DEFAULT_COMMITMENT).lower(),
            confirm_timeout_sec=env_float("CONFIRM_TIMEOUT_SEC", DEFAULT_CONFIRM_TIMEOUT_SEC),
            confirm_poll_interval_sec=env_float("CONFIRM_POLL_INTERVAL_SEC", DEFAULT_CONFIRM_POLL_INTERVAL_SEC),
            rpc_timeout_sec=env_float("RPC_TIMEOUT_SEC", DEFAULT_RPC_TIMEOUT_SEC),
            remote_signer_timeout_sec=env_float("REMOTE_SIGNER_TIMEOUT_SEC", DEFAULT_REMOTE_SIGNER_TIMEOUT_SEC),
            min_sol_balance_lamports=env_int("MIN_SOL_BALANCE_LAMPORTS", DEFAULT_MIN_SOL_BALANCE_LAMPORTS),
            health_cache_ttl_sec=env_float("HEALTH_CACHE_TTL_SEC", DEFAULT_HEALTH_CACHE_TTL_SEC),
            webhook_url=env_str("RELAY_WEBHOOK_URL") or None,
            webhook_secret=env_str("RELAY_WEBHOOK_SECRET") or None,
        )
    except ValueError as e:
        raise ConfigurationError(f"Invalid numeric setting: {e}") from e
