"""
Submission pipeline: broadcast a fully-signed transaction and resolve it to a
terminal outcome.

- submit(): send raw with preflight enabled; RPC rejection raises
  SubmissionError with the raw error payload. A send that times out returns
  Timeout carrying the locally known signature (the transaction may still land).
- confirm(): poll getSignatureStatuses with cooperative sleeps, bounded by
  confirm_timeout_sec. err -> OnChainError (terminal, never retried);
  commitment reached -> Confirmed; deadline or cancellation -> Timeout with
  the signature.
- Nothing here resubmits. Callers re-query by signature instead.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
from solana.exceptions import SolanaRpcException
from solana.rpc.core import RPCException
from solana.rpc.models import TxOpts
from solders.signature import Signature

from gasless_relay.core.exceptions import SubmissionError
from gasless_relay.relay_logging import get_logger, short
from gasless_relay.transaction.codec import encode
from gasless_relay.transaction.models import DecodedTransaction

logger = get_logger(__name__)

DEFAULT_COMMITMENT = "confirmed"
DEFAULT_CONFIRM_TIMEOUT_SEC = 30.0
DEFAULT_CONFIRM_POLL_INTERVAL_SEC = 1.0
DEFAULT_RPC_TIMEOUT_SEC = 10.0

_COMMITMENT_RANK = {"processed": 0, "confirmed": 1, "finalized": 2}
_RPC_ERRORS = (RPCException, SolanaRpcException, httpx.HTTPError)


class SubmissionState(str, Enum):
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    ON_CHAIN_ERROR = "on_chain_error"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class SubmissionOutcome:
    signature: str
    state: SubmissionState
    error_detail: str | None = None

    @property
    def terminal(self) -> bool:
        return self.state is not SubmissionState.SUBMITTED

    def to_dict(self) -> dict[str, Any]:
        return {"signature": self.signature, "state": self.state.value, "errorDetail": self.error_detail}


def _rpc_error_detail(exc: BaseException) -> str:
    """Raw RPC error payload as text (RPCException carries the error object as args[0])."""
    if exc.args:
        first = exc.args[0]
        to_json = getattr(first, "to_json", None)
        if callable(to_json):
            try:
                return to_json()
            except Exception:
                pass
        return str(first)
    return type(exc).__name__


def _status_rank(confirmation_status: Any) -> int:
    """Rank processed < confirmed < finalized; accepts RPC enums or plain strings."""
    if confirmation_status is None:
        return -1
    name = str(confirmation_status).rsplit(".", 1)[-1].strip().lower()
    return _COMMITMENT_RANK.get(name, -1)


class SubmissionPipeline:
    """Per-request send + confirm over a shared async RPC client. Holds no per-request state."""

    def __init__(
        self,
        client: Any,
        *,
        commitment: str = DEFAULT_COMMITMENT,
        confirm_timeout_sec: float = DEFAULT_CONFIRM_TIMEOUT_SEC,
        poll_interval_sec: float = DEFAULT_CONFIRM_POLL_INTERVAL_SEC,
        rpc_timeout_sec: float = DEFAULT_RPC_TIMEOUT_SEC,
    ) -> None:
        if commitment not in _COMMITMENT_RANK:
            raise ValueError(f"Unknown commitment: {commitment}")
        self._client = client
        self._commitment = commitment
        self._confirm_timeout = confirm_timeout_sec
        self._poll_interval = poll_interval_sec
        self._rpc_timeout = rpc_timeout_sec

    async def submit(self, tx: DecodedTransaction) -> SubmissionOutcome:
        """Broadcast with preflight. Returns Submitted, or Timeout if the send call itself timed out."""
        local_id = tx.transaction_id
        opts = TxOpts(skip_preflight=False, preflight_commitment=self._commitment)
        try:
            resp = await asyncio.wait_for(
                self._client.send_raw_transaction(encode(tx), opts=opts),
                timeout=self._rpc_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("relay_tx_send_timeout", signature=short(local_id, 16), timeout_sec=self._rpc_timeout)
            return SubmissionOutcome(
                signature=local_id,
                state=SubmissionState.TIMEOUT,
                error_detail=f"RPC send timed out after {self._rpc_timeout}s",
            )
        except _RPC_ERRORS as e:
            detail = _rpc_error_detail(e)
            logger.warning("relay_tx_send_rejected", signature=short(local_id, 16), error=detail)
            raise SubmissionError("Transaction rejected by network", signature=local_id, detail=detail) from e

        signature = str(resp.value) if getattr(resp, "value", None) is not None else local_id
        if signature != local_id:
            logger.warning("relay_tx_signature_mismatch", returned=short(signature, 16), expected=short(local_id, 16))
        logger.info("relay_tx_sent", signature=short(signature, 16))
        return SubmissionOutcome(signature=signature, state=SubmissionState.SUBMITTED)

    async def _poll_status(self, signature: str) -> SubmissionOutcome:
        sig = Signature.from_string(signature)
        target = _COMMITMENT_RANK[self._commitment]
        while True:
            try:
                resp = await asyncio.wait_for(
                    self._client.get_signature_statuses([sig]),
                    timeout=self._rpc_timeout,
                )
                statuses = getattr(resp, "value", None) or []
                status = statuses[0] if statuses else None
                if status is not None:
                    err = getattr(status, "err", None)
                    if err is not None:
                        detail = str(err)
                        logger.warning("relay_tx_failed_on_chain", signature=short(signature, 16), err=detail)
                        return SubmissionOutcome(signature, SubmissionState.ON_CHAIN_ERROR, detail)
                    if _status_rank(getattr(status, "confirmation_status", None)) >= target:
                        logger.info("relay_tx_confirmed", signature=short(signature, 16), commitment=self._commitment)
                        return SubmissionOutcome(signature, SubmissionState.CONFIRMED)
            except asyncio.TimeoutError:
                logger.warning("relay_tx_confirm_poll_timeout", signature=short(signature, 16))
            except _RPC_ERRORS as e:
                logger.warning("relay_tx_confirm_poll_error", signature=short(signature, 16), error=str(e))
            await asyncio.sleep(self._poll_interval)

    async def confirm(self, outcome: SubmissionOutcome) -> SubmissionOutcome:
        """
        Wait for the commitment level; terminal outcomes pass through unchanged.

        Deadline and cancellation both end in Timeout carrying the signature,
        since the transaction may still land.
        """
        if outcome.terminal:
            return outcome
        try:
            return await asyncio.wait_for(self._poll_status(outcome.signature), timeout=self._confirm_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "relay_tx_confirm_timeout",
                signature=short(outcome.signature, 16),
                timeout_sec=self._confirm_timeout,
            )
            detail = f"Not confirmed within {self._confirm_timeout}s"
        except asyncio.CancelledError:
            logger.warning("relay_tx_confirm_cancelled", signature=short(outcome.signature, 16))
            detail = "Confirmation wait cancelled"
        return SubmissionOutcome(
            signature=outcome.signature,
            state=SubmissionState.TIMEOUT,
            error_detail=f"{detail}; query by signature before resubmitting",
        )

    async def submit_and_confirm(self, tx: DecodedTransaction) -> SubmissionOutcome:
        return await self.confirm(await self.submit(tx))
