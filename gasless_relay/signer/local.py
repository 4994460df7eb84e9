"""
In-process custody: the fee-payer keypair lives in this process.
"""

from __future__ import annotations

import json

import base58
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature

from gasless_relay.core.exceptions import ConfigurationError
from gasless_relay.relay_logging import get_logger
from gasless_relay.signer.base import FeePayerSigner
from gasless_relay.transaction.models import DecodedTransaction

logger = get_logger(__name__)


def load_keypair(private_key: str) -> Keypair:
    """Load Keypair from FEE_PAYER_SECRET: base58 string or JSON array of 64 bytes."""
    raw = private_key.strip()
    if raw.startswith("["):
        try:
            arr = json.loads(raw)
            if isinstance(arr, list) and len(arr) == 64:
                return Keypair.from_bytes(bytes(arr))
        except (json.JSONDecodeError, TypeError, ValueError) as e:
            raise ConfigurationError("Invalid FEE_PAYER_SECRET") from e
        raise ConfigurationError("FEE_PAYER_SECRET JSON array must hold 64 bytes")
    try:
        secret = base58.b58decode(raw)
        return Keypair.from_bytes(secret)
    except Exception as e:
        logger.warning("relay_keypair_load_failed", error=type(e).__name__)
        raise ConfigurationError("Invalid FEE_PAYER_SECRET") from e


class LocalKeypairSigner(FeePayerSigner):
    def __init__(self, keypair: Keypair) -> None:
        self._keypair = keypair

    @classmethod
    def from_secret(cls, secret: str) -> "LocalKeypairSigner":
        return cls(load_keypair(secret))

    @property
    def public_key(self) -> Pubkey:
        return self._keypair.pubkey()

    async def sign(self, tx: DecodedTransaction) -> Signature:
        return self._keypair.sign_message(tx.message_bytes)

    def __repr__(self) -> str:
        return f"LocalKeypairSigner(public_key={self.public_key})"
