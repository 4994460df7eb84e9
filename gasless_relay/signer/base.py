"""
Signer capability and the one place a fee-payer signature is written.

sign_transaction() must only run on a transaction whose exact bytes already
passed fee validation in the same request.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from solders.pubkey import Pubkey
from solders.signature import Signature

from gasless_relay.core.exceptions import SigningError
from gasless_relay.relay_logging import get_logger, short
from gasless_relay.transaction.models import DecodedTransaction

logger = get_logger(__name__)

FEE_PAYER_INDEX = 0


class FeePayerSigner(ABC):
    """Custody key handle. Safe for concurrent use: signing is a pure function of message and key."""

    @property
    @abstractmethod
    def public_key(self) -> Pubkey:
        ...

    @abstractmethod
    async def sign(self, tx: DecodedTransaction) -> Signature:
        """Return the fee payer's signature over tx.message_bytes."""

    async def aclose(self) -> None:
        """Release network resources, if any."""


async def sign_transaction(tx: DecodedTransaction, signer: FeePayerSigner) -> DecodedTransaction:
    """
    Fill the fee payer's signature slot and return the new transaction.

    Message bytes and every other signature are left untouched; the new
    signature is verified before it is accepted.
    """
    if tx.fee_payer != signer.public_key:
        raise SigningError("Signer key does not match the transaction fee payer")
    if tx.is_signed(FEE_PAYER_INDEX):
        raise SigningError("Fee payer slot is already signed")

    signature = await signer.sign(tx)
    if not signature.verify(signer.public_key, tx.message_bytes):
        logger.error("relay_signature_invalid", fee_payer=short(signer.public_key))
        raise SigningError("Fee payer signature does not verify")

    signed = tx.with_signature(FEE_PAYER_INDEX, signature)
    logger.info("relay_tx_signed", signature=short(signed.transaction_id, 16), fee_payer=short(signer.public_key))
    return signed
