"""
Data models for decoded transactions.

Frozen dataclasses mirroring the ledger wire layout: signatures aligned 1:1
with the signer prefix of account_keys, a message header, compiled
instructions that reference accounts by index, and (version 0 only) address
table lookups. Account 0 is always the fee payer.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.signature import Signature

ZERO_SIGNATURE = Signature.default()


@dataclass(frozen=True)
class MessageHeader:
    num_required_signatures: int
    num_readonly_signed: int
    num_readonly_unsigned: int


@dataclass(frozen=True)
class CompiledInstruction:
    """One instruction: program and accounts as indices into the message account list."""

    program_id_index: int
    accounts: tuple[int, ...]
    data: bytes


@dataclass(frozen=True)
class AddressTableLookup:
    account_key: Pubkey
    writable_indexes: tuple[int, ...]
    readonly_indexes: tuple[int, ...]


@dataclass(frozen=True)
class DecodedTransaction:
    """
    A (possibly partially) signed transaction.

    message_bytes is the exact serialized message every signature covers;
    it is derived from the other fields when not supplied by the decoder.
    """

    signatures: tuple[Signature, ...]
    header: MessageHeader
    account_keys: tuple[Pubkey, ...]
    recent_blockhash: Hash
    instructions: tuple[CompiledInstruction, ...]
    version: int | None = None
    """None for legacy messages, 0 for version-0 messages."""
    address_table_lookups: tuple[AddressTableLookup, ...] = ()
    message_bytes: bytes = field(default=b"", repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.message_bytes:
            from gasless_relay.transaction.codec import encode_message

            object.__setattr__(self, "message_bytes", encode_message(self))

    @property
    def fee_payer(self) -> Pubkey:
        return self.account_keys[0]

    @property
    def signer_keys(self) -> tuple[Pubkey, ...]:
        return self.account_keys[: self.header.num_required_signatures]

    @property
    def transaction_id(self) -> str:
        """Base58 of signature slot 0 (the fee payer's); the ledger's transaction identifier."""
        return str(self.signatures[0])

    @property
    def lookup_account_count(self) -> int:
        return sum(len(t.writable_indexes) + len(t.readonly_indexes) for t in self.address_table_lookups)

    def is_signed(self, index: int) -> bool:
        return self.signatures[index] != ZERO_SIGNATURE

    def signer_index(self, pubkey: Pubkey) -> int | None:
        for i, key in enumerate(self.signer_keys):
            if key == pubkey:
                return i
        return None

    def signature_for(self, pubkey: Pubkey) -> Signature | None:
        idx = self.signer_index(pubkey)
        return None if idx is None else self.signatures[idx]

    def resolve_account(self, index: int) -> Pubkey | None:
        """Static account for an instruction index; None when the index points into a lookup table."""
        if 0 <= index < len(self.account_keys):
            return self.account_keys[index]
        return None

    def instruction_program(self, ix: CompiledInstruction) -> Pubkey | None:
        return self.resolve_account(ix.program_id_index)

    def with_signature(self, index: int, signature: Signature) -> "DecodedTransaction":
        """Return a copy with one signature slot replaced; message bytes are carried over untouched."""
        if not 0 <= index < len(self.signatures):
            raise IndexError(f"signature slot {index} out of range")
        sigs = list(self.signatures)
        sigs[index] = signature
        return replace(self, signatures=tuple(sigs), message_bytes=self.message_bytes)
