"""
Fee policy validation: may the relay co-sign this transaction?

The fee payer's signature authorizes the entire message, so every check here
looks at the whole transaction, not only the fee transfer. Checks run in a
fixed order and stop at the first failure so each rejection carries one
deterministic reason:

1. resolve the fee token (hinted mint, else first configured token with a
   transfer to its fee destination)
2. fee payer at account 0 is the relay
3. exactly one user signature, present and valid; fee-payer slot still empty
4. some SPL transfer pays the token's fee destination at least the minimum
5. address lookups and fee-payer account usage limits
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from gasless_relay.config.settings import RelayConfig, SupportedToken
from gasless_relay.core.exceptions import ConfigurationError
from gasless_relay.relay_logging import get_logger, short
from gasless_relay.transaction.models import DecodedTransaction
from gasless_relay.validator.token_transfers import TokenTransfer, iter_token_transfers

logger = get_logger(__name__)

FEE_PAYER_INDEX = 0
USER_INDEX = 1
# Fee payer plus exactly one user
MAX_SIGNATURES = 2


class ValidationReason(str, Enum):
    UNSUPPORTED_TOKEN = "unsupported_token"
    WRONG_FEE_PAYER = "wrong_fee_payer"
    MISSING_USER_SIGNATURE = "missing_user_signature"
    FEE_PAYER_ALREADY_SIGNED = "fee_payer_already_signed"
    INVALID_SIGNATURE = "invalid_signature"
    NO_FEE_INSTRUCTION = "no_fee_instruction"
    FEE_BELOW_MINIMUM = "fee_below_minimum"
    TOO_MANY_SIGNATURES = "too_many_signatures"
    ADDRESS_LOOKUP_UNSUPPORTED = "address_lookup_unsupported"
    FEE_PAYER_IN_INSTRUCTION = "fee_payer_in_instruction"

    @property
    def message(self) -> str:
        return _REASON_MESSAGES[self]


_REASON_MESSAGES = {
    ValidationReason.UNSUPPORTED_TOKEN: "Unsupported token for fees",
    ValidationReason.WRONG_FEE_PAYER: "Invalid fee payer",
    ValidationReason.MISSING_USER_SIGNATURE: "Transaction must be signed by user",
    ValidationReason.FEE_PAYER_ALREADY_SIGNED: "Fee payer signature slot must be empty",
    ValidationReason.INVALID_SIGNATURE: "User signature does not verify",
    ValidationReason.NO_FEE_INSTRUCTION: "No fee transfer to relay found",
    ValidationReason.FEE_BELOW_MINIMUM: "Insufficient fee",
    ValidationReason.TOO_MANY_SIGNATURES: "Too many signatures",
    ValidationReason.ADDRESS_LOOKUP_UNSUPPORTED: "Address lookup tables are not supported",
    ValidationReason.FEE_PAYER_IN_INSTRUCTION: "Fee payer may not be used by instructions",
}


@dataclass(frozen=True)
class ValidationVerdict:
    valid: bool
    reason: ValidationReason | None = None
    token: SupportedToken | None = None
    fee_amount: int | None = None
    """Amount of the qualifying fee transfer (valid verdicts only)."""
    detail: str | None = None

    @property
    def error_message(self) -> str | None:
        if self.reason is None:
            return None
        if self.detail:
            return f"{self.reason.message}. {self.detail}"
        return self.reason.message


def _reject(reason: ValidationReason, token: SupportedToken | None = None, detail: str | None = None) -> ValidationVerdict:
    return ValidationVerdict(valid=False, reason=reason, token=token, detail=detail)


def _pays_destination(transfer: TokenTransfer, token: SupportedToken) -> bool:
    """Transfer lands in the token's fee destination (and, when checked, names the right mint/decimals)."""
    if transfer.destination != token.fee_destination:
        return False
    if transfer.checked:
        return transfer.mint == token.mint and transfer.decimals == token.decimals
    return True


def _resolve_token(
    transfers: list[TokenTransfer],
    hinted_mint: str | None,
    cfg: RelayConfig,
) -> SupportedToken | None:
    if not cfg.tokens:
        raise ConfigurationError("No supported fee tokens configured")
    if hinted_mint:
        return cfg.token_for_mint(hinted_mint)
    for token in cfg.tokens:
        if any(_pays_destination(t, token) for t in transfers):
            return token
    # No token matched: keep checking against the first one so the verdict names the real problem
    return cfg.tokens[0]


def _check_signatures(tx: DecodedTransaction) -> ValidationReason | None:
    """Exactly one signer besides the fee payer, its slot filled and verifying; fee-payer slot empty."""
    if len(tx.signatures) > MAX_SIGNATURES:
        return ValidationReason.TOO_MANY_SIGNATURES
    if len(tx.signatures) < MAX_SIGNATURES or not tx.is_signed(USER_INDEX):
        return ValidationReason.MISSING_USER_SIGNATURE
    if tx.is_signed(FEE_PAYER_INDEX):
        return ValidationReason.FEE_PAYER_ALREADY_SIGNED
    if not tx.signatures[USER_INDEX].verify(tx.account_keys[USER_INDEX], tx.message_bytes):
        return ValidationReason.INVALID_SIGNATURE
    return None


def _fee_payer_used_by_instruction(tx: DecodedTransaction) -> bool:
    return any(
        ix.program_id_index == FEE_PAYER_INDEX or FEE_PAYER_INDEX in ix.accounts
        for ix in tx.instructions
    )


def validate(tx: DecodedTransaction, hinted_mint: str | None, cfg: RelayConfig) -> ValidationVerdict:
    """
    Check tx against the fee policy in cfg. Returns a verdict; never raises for
    policy failures (ConfigurationError only when the token table is empty).
    """
    transfers = iter_token_transfers(tx)

    token = _resolve_token(transfers, hinted_mint, cfg)
    if token is None:
        return _reject(ValidationReason.UNSUPPORTED_TOKEN, detail=f"Mint {hinted_mint} is not accepted")

    if tx.fee_payer != cfg.fee_payer:
        return _reject(ValidationReason.WRONG_FEE_PAYER, token)

    sig_reason = _check_signatures(tx)
    if sig_reason is not None:
        return _reject(sig_reason, token)

    to_destination = [t for t in transfers if _pays_destination(t, token)]
    if not to_destination:
        return _reject(ValidationReason.NO_FEE_INSTRUCTION, token)
    qualifying = next((t for t in to_destination if t.amount >= token.minimum_fee_units), None)
    if qualifying is None:
        best = max(t.amount for t in to_destination)
        return _reject(
            ValidationReason.FEE_BELOW_MINIMUM,
            token,
            detail=f"Expected {token.minimum_fee_units}, got {best}",
        )

    if tx.address_table_lookups:
        return _reject(ValidationReason.ADDRESS_LOOKUP_UNSUPPORTED, token)
    if _fee_payer_used_by_instruction(tx):
        return _reject(ValidationReason.FEE_PAYER_IN_INSTRUCTION, token)

    logger.debug(
        "relay_fee_validated",
        mint=short(token.mint),
        fee_amount=qualifying.amount,
        instruction_index=qualifying.instruction_index,
    )
    return ValidationVerdict(valid=True, token=token, fee_amount=qualifying.amount)
