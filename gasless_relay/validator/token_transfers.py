"""
SPL token transfer decoding from compiled instructions.

Recognizes Transfer (tag 3) and TransferChecked (tag 12) under the Token and
Token-2022 programs. Returns resolved account keys and the u64 amount; any
other instruction yields None.
"""

from __future__ import annotations

from dataclasses import dataclass

from solders.pubkey import Pubkey

from gasless_relay.transaction.models import CompiledInstruction, DecodedTransaction

TOKEN_PROGRAM_ID = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")
TOKEN_2022_PROGRAM_ID = Pubkey.from_string("TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb")
TOKEN_PROGRAMS = frozenset((TOKEN_PROGRAM_ID, TOKEN_2022_PROGRAM_ID))

TRANSFER_TAG = 3
TRANSFER_CHECKED_TAG = 12
# Transfer: [source, destination, owner]; TransferChecked: [source, mint, destination, owner]
_TRANSFER_DEST_INDEX = 1
_CHECKED_MINT_INDEX = 1
_CHECKED_DEST_INDEX = 2


@dataclass(frozen=True)
class TokenTransfer:
    instruction_index: int
    program_id: Pubkey
    source: Pubkey | None
    destination: Pubkey | None
    authority: Pubkey | None
    amount: int
    mint: Pubkey | None = None
    """Only set for TransferChecked."""
    decimals: int | None = None
    """Only set for TransferChecked."""

    @property
    def checked(self) -> bool:
        return self.decimals is not None


def _account(tx: DecodedTransaction, ix: CompiledInstruction, pos: int) -> Pubkey | None:
    if pos >= len(ix.accounts):
        return None
    return tx.resolve_account(ix.accounts[pos])


def parse_token_transfer(tx: DecodedTransaction, index: int) -> TokenTransfer | None:
    """Decode instruction `index` as an SPL token transfer, or None if it is not one."""
    ix = tx.instructions[index]
    program_id = tx.instruction_program(ix)
    if program_id not in TOKEN_PROGRAMS or not ix.data:
        return None

    tag = ix.data[0]
    if tag == TRANSFER_TAG:
        if len(ix.data) != 9 or len(ix.accounts) < 3:
            return None
        return TokenTransfer(
            instruction_index=index,
            program_id=program_id,
            source=_account(tx, ix, 0),
            destination=_account(tx, ix, _TRANSFER_DEST_INDEX),
            authority=_account(tx, ix, 2),
            amount=int.from_bytes(ix.data[1:9], "little"),
        )
    if tag == TRANSFER_CHECKED_TAG:
        if len(ix.data) != 10 or len(ix.accounts) < 4:
            return None
        return TokenTransfer(
            instruction_index=index,
            program_id=program_id,
            source=_account(tx, ix, 0),
            destination=_account(tx, ix, _CHECKED_DEST_INDEX),
            authority=_account(tx, ix, 3),
            amount=int.from_bytes(ix.data[1:9], "little"),
            mint=_account(tx, ix, _CHECKED_MINT_INDEX),
            decimals=ix.data[9],
        )
    return None


def iter_token_transfers(tx: DecodedTransaction) -> list[TokenTransfer]:
    """All SPL token transfers in the message, in instruction order."""
    out: list[TokenTransfer] = []
    for i in range(len(tx.instructions)):
        transfer = parse_token_transfer(tx, i)
        if transfer is not None:
            out.append(transfer)
    return out
