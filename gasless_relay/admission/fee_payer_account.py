"""
Fee payer balances for the health surface.

Native (lamports) balance of the relay plus, per fee token, the balance of
the relay's own associated token account (never the fee destination, which
may be a separate treasury). Cached and refreshed on demand. Advisory only:
nothing on the signing path reads this, and it never touches the signer.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable

from solana.rpc.core import RPCException
from solders.pubkey import Pubkey
from spl.token.instructions import get_associated_token_address

from gasless_relay.config.settings import SupportedToken
from gasless_relay.relay_logging import get_logger, short

logger = get_logger(__name__)

LAMPORTS_PER_SOL = 1_000_000_000
STATUS_HEALTHY = "healthy"
STATUS_LOW_SOL = "low_sol"


@dataclass(frozen=True)
class TokenBalance:
    token: SupportedToken
    balance: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "mint": str(self.token.mint),
            "symbol": self.token.symbol,
            "balance": self.balance,
            "balanceFormatted": self.token.format_amount(self.balance),
        }


@dataclass(frozen=True)
class BalanceSnapshot:
    fee_payer: Pubkey
    lamports: int
    token_balances: tuple[TokenBalance, ...]
    min_lamports: int
    refreshed_at: float

    @property
    def healthy(self) -> bool:
        return self.lamports > self.min_lamports

    @property
    def sol_balance(self) -> str:
        return f"{Decimal(self.lamports) / LAMPORTS_PER_SOL:.9f}"

    def to_health_dict(self) -> dict[str, Any]:
        return {
            "feePayer": str(self.fee_payer),
            "solBalance": self.sol_balance,
            "tokenBalances": [b.to_dict() for b in self.token_balances],
            "status": STATUS_HEALTHY if self.healthy else STATUS_LOW_SOL,
        }


class FeePayerAccount:
    def __init__(
        self,
        fee_payer: Pubkey,
        tokens: tuple[SupportedToken, ...],
        client: Any,
        *,
        min_sol_balance_lamports: int,
        cache_ttl_sec: float = 15.0,
        rpc_timeout_sec: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.fee_payer = fee_payer
        self._tokens = tokens
        self._client = client
        self._min_lamports = min_sol_balance_lamports
        self._ttl = cache_ttl_sec
        self._rpc_timeout = rpc_timeout_sec
        self._clock = clock
        self._cached: BalanceSnapshot | None = None
        self._refresh_lock = asyncio.Lock()

    @property
    def cached(self) -> BalanceSnapshot | None:
        return self._cached

    async def _token_balance(self, token: SupportedToken) -> TokenBalance:
        account = get_associated_token_address(self.fee_payer, token.mint)
        try:
            resp = await asyncio.wait_for(
                self._client.get_token_account_balance(account),
                timeout=self._rpc_timeout,
            )
            amount = int(resp.value.amount)
        except RPCException as e:
            # Token account not created yet
            logger.debug("relay_token_account_missing", account=short(account), error=str(e))
            amount = 0
        return TokenBalance(token=token, balance=amount)

    async def refresh(self) -> BalanceSnapshot:
        resp = await asyncio.wait_for(self._client.get_balance(self.fee_payer), timeout=self._rpc_timeout)
        lamports = int(resp.value)
        balances = await asyncio.gather(*(self._token_balance(t) for t in self._tokens))
        snapshot = BalanceSnapshot(
            fee_payer=self.fee_payer,
            lamports=lamports,
            token_balances=tuple(balances),
            min_lamports=self._min_lamports,
            refreshed_at=self._clock(),
        )
        self._cached = snapshot
        if not snapshot.healthy:
            logger.warning("relay_fee_payer_low_sol", fee_payer=short(self.fee_payer), lamports=lamports)
        return snapshot

    async def snapshot(self, max_age: float | None = None) -> BalanceSnapshot:
        """Cached snapshot if younger than max_age (default: cache TTL), else refresh once for all waiters."""
        ttl = self._ttl if max_age is None else max_age
        cached = self._cached
        if cached is not None and self._clock() - cached.refreshed_at < ttl:
            return cached
        async with self._refresh_lock:
            cached = self._cached
            if cached is not None and self._clock() - cached.refreshed_at < ttl:
                return cached
            return await self.refresh()
