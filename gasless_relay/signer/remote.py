"""
Remote custody: a Privy managed wallet signs as fee payer.

One HTTP request per signature, bounded timeout, no retries. The returned
transaction is decoded and checked: its message must be byte-identical to
what was sent and slot 0 must hold a verifying fee-payer signature.
"""

from __future__ import annotations

from typing import Any

import httpx
from solders.pubkey import Pubkey
from solders.signature import Signature

from gasless_relay.core.exceptions import DecodeError, SigningError
from gasless_relay.relay_logging import get_logger, short
from gasless_relay.signer.base import FEE_PAYER_INDEX, FeePayerSigner
from gasless_relay.transaction.codec import decode_base64, encode_base64
from gasless_relay.transaction.models import DecodedTransaction

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SEC = 10.0


class RemoteWalletSigner(FeePayerSigner):
    def __init__(
        self,
        *,
        wallet_id: str,
        address: Pubkey,
        app_id: str,
        app_secret: str,
        api_base: str = "https://api.privy.io",
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._wallet_id = wallet_id
        self._address = address
        self._client = client or httpx.AsyncClient(
            base_url=api_base,
            auth=(app_id, app_secret),
            headers={"privy-app-id": app_id},
            timeout=httpx.Timeout(timeout_sec),
        )

    @property
    def public_key(self) -> Pubkey:
        return self._address

    async def _request_signature(self, tx: DecodedTransaction) -> dict[str, Any]:
        body = {
            "method": "signTransaction",
            "params": {"transaction": encode_base64(tx), "encoding": "base64"},
        }
        try:
            resp = await self._client.post(f"/v1/wallets/{self._wallet_id}/rpc", json=body)
            resp.raise_for_status()
            return resp.json()
        except httpx.TimeoutException as e:
            logger.warning("relay_remote_signer_timeout", wallet_id=self._wallet_id)
            raise SigningError("Remote signer timed out") from e
        except httpx.HTTPStatusError as e:
            logger.warning(
                "relay_remote_signer_rejected",
                wallet_id=self._wallet_id,
                status_code=e.response.status_code,
            )
            raise SigningError(f"Remote signer returned HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("relay_remote_signer_error", wallet_id=self._wallet_id, error=str(e))
            raise SigningError("Remote signer request failed") from e

    async def sign(self, tx: DecodedTransaction) -> Signature:
        payload = await self._request_signature(tx)
        data = payload.get("data") if isinstance(payload, dict) else None
        signed_b64 = (data or {}).get("signed_transaction")
        if not signed_b64:
            raise SigningError("Remote signer response missing signed_transaction")
        try:
            returned = decode_base64(signed_b64)
        except DecodeError as e:
            raise SigningError("Remote signer returned an undecodable transaction") from e

        if returned.message_bytes != tx.message_bytes:
            logger.error("relay_remote_signer_message_changed", wallet_id=self._wallet_id)
            raise SigningError("Remote signer altered the transaction message")
        signature = returned.signatures[FEE_PAYER_INDEX]
        logger.debug("relay_remote_signature_received", signature=short(signature, 16))
        return signature

    async def aclose(self) -> None:
        await self._client.aclose()

    def __repr__(self) -> str:
        return f"RemoteWalletSigner(wallet_id={self._wallet_id!r}, public_key={self._address})"
