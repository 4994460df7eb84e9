"""
Fee-payer signer — produces the relay's signature slot.

Custody sits behind FeePayerSigner: in-process keypair (LocalKeypairSigner) or
a remote managed wallet (RemoteWalletSigner). Callers only use sign_transaction().
"""

from gasless_relay.signer.base import FeePayerSigner, sign_transaction  # noqa: F401
from gasless_relay.signer.loader import load_signer  # noqa: F401
from gasless_relay.signer.local import LocalKeypairSigner, load_keypair  # noqa: F401
from gasless_relay.signer.remote import RemoteWalletSigner  # noqa: F401

__all__ = [
    "FeePayerSigner",
    "LocalKeypairSigner",
    "RemoteWalletSigner",
    "load_keypair",
    "load_signer",
    "sign_transaction",
]
