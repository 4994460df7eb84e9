"""
Build the configured signer variant from RelayConfig.custody.
"""

from __future__ import annotations

from gasless_relay.config.settings import CUSTODY_LOCAL, CUSTODY_REMOTE, RelayConfig
from gasless_relay.core.exceptions import ConfigurationError
from gasless_relay.signer.base import FeePayerSigner
from gasless_relay.signer.local import LocalKeypairSigner
from gasless_relay.signer.remote import RemoteWalletSigner


def load_signer(cfg: RelayConfig) -> FeePayerSigner:
    custody = cfg.custody
    if custody.kind == CUSTODY_LOCAL:
        signer: FeePayerSigner = LocalKeypairSigner.from_secret(custody.secret_key)
    elif custody.kind == CUSTODY_REMOTE:
        signer = RemoteWalletSigner(
            wallet_id=custody.wallet_id,
            address=cfg.fee_payer,
            app_id=custody.app_id,
            app_secret=custody.app_secret,
            api_base=custody.api_base,
            timeout_sec=cfg.remote_signer_timeout_sec,
        )
    else:
        raise ConfigurationError(f"Unknown custody kind: {custody.kind}")
    if signer.public_key != cfg.fee_payer:
        raise ConfigurationError("Signer key does not match configured fee payer")
    return signer
