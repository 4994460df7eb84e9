"""
Wire codec for ledger transactions.

Layout: shortvec(num_signatures) || 64-byte signatures || message.
Message: [0x80 | version] (v0 only) || header(3 x u8) || shortvec(n) 32-byte
account keys || 32-byte recent blockhash || shortvec(n) instructions
(u8 program index, shortvec(n) u8 account indices, shortvec(n) data)
|| (v0) shortvec(n) address table lookups.

shortvec is the ledger's compact-u16: 7 bits per byte, little-endian, high
bit = continuation, at most 3 bytes. Non-canonical encodings are rejected so
that encode(decode(b)) == b for every accepted input.
"""

from __future__ import annotations

import base64
import binascii

from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.signature import Signature

from gasless_relay.core.exceptions import DecodeError
from gasless_relay.transaction.models import (
    AddressTableLookup,
    CompiledInstruction,
    DecodedTransaction,
    MessageHeader,
)

SIGNATURE_LEN = 64
PUBKEY_LEN = 32
HASH_LEN = 32
# Max packet payload the network accepts for one transaction
MAX_TRANSACTION_SIZE = 1232
VERSION_PREFIX_MASK = 0x80
SUPPORTED_VERSIONS = (0,)


class _Reader:
    """Bounds-checked cursor over a byte buffer; every short read raises DecodeError."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self.pos = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self.pos

    def take(self, n: int, what: str) -> bytes:
        if n < 0 or self.remaining < n:
            raise DecodeError(f"Truncated transaction: expected {n} bytes for {what}, {self.remaining} left")
        out = self._data[self.pos : self.pos + n]
        self.pos += n
        return out

    def peek_u8(self, what: str) -> int:
        if self.remaining < 1:
            raise DecodeError(f"Truncated transaction: missing {what}")
        return self._data[self.pos]

    def u8(self, what: str) -> int:
        return self.take(1, what)[0]

    def shortvec(self, what: str) -> int:
        value = 0
        for i in range(3):
            byte = self.u8(what)
            value |= (byte & 0x7F) << (7 * i)
            if not byte & 0x80:
                if i > 0 and byte == 0:
                    raise DecodeError(f"Non-canonical length prefix for {what}")
                if value > 0xFFFF:
                    raise DecodeError(f"Length prefix overflow for {what}")
                return value
        raise DecodeError(f"Length prefix too long for {what}")

    def u8_array(self, what: str) -> tuple[int, ...]:
        n = self.shortvec(what)
        return tuple(self.take(n, what))


def encode_shortvec(value: int) -> bytes:
    if not 0 <= value <= 0xFFFF:
        raise ValueError(f"shortvec value out of range: {value}")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _decode_message(reader: _Reader) -> tuple[
    int | None,
    MessageHeader,
    tuple[Pubkey, ...],
    Hash,
    tuple[CompiledInstruction, ...],
    tuple[AddressTableLookup, ...],
]:
    version: int | None = None
    first = reader.peek_u8("message header")
    if first & VERSION_PREFIX_MASK:
        reader.u8("version prefix")
        version = first & 0x7F
        if version not in SUPPORTED_VERSIONS:
            raise DecodeError(f"Unsupported message version: {version}")

    header = MessageHeader(
        num_required_signatures=reader.u8("header"),
        num_readonly_signed=reader.u8("header"),
        num_readonly_unsigned=reader.u8("header"),
    )

    n_keys = reader.shortvec("account keys")
    keys = tuple(Pubkey.from_bytes(reader.take(PUBKEY_LEN, "account key")) for _ in range(n_keys))
    blockhash = Hash.from_bytes(reader.take(HASH_LEN, "recent blockhash"))

    n_ix = reader.shortvec("instructions")
    instructions = []
    for _ in range(n_ix):
        program_id_index = reader.u8("program id index")
        accounts = reader.u8_array("instruction accounts")
        data_len = reader.shortvec("instruction data")
        data = reader.take(data_len, "instruction data")
        instructions.append(CompiledInstruction(program_id_index, accounts, data))

    lookups = []
    if version is not None:
        n_lookups = reader.shortvec("address table lookups")
        for _ in range(n_lookups):
            table = Pubkey.from_bytes(reader.take(PUBKEY_LEN, "lookup table key"))
            writable = reader.u8_array("lookup writable indexes")
            readonly = reader.u8_array("lookup readonly indexes")
            lookups.append(AddressTableLookup(table, writable, readonly))

    return version, header, keys, blockhash, tuple(instructions), tuple(lookups)


def _check_structure(tx: DecodedTransaction) -> None:
    """Header/index consistency a well-formed message must satisfy."""
    h = tx.header
    n_keys = len(tx.account_keys)
    if h.num_required_signatures == 0:
        raise DecodeError("Message has no required signers (no fee payer)")
    if len(tx.signatures) != h.num_required_signatures:
        raise DecodeError(
            f"Signature count {len(tx.signatures)} does not match required signers {h.num_required_signatures}"
        )
    if h.num_required_signatures > n_keys:
        raise DecodeError("More required signers than account keys")
    if h.num_readonly_signed >= h.num_required_signatures:
        raise DecodeError("Fee payer must be a writable signer")
    if h.num_readonly_unsigned > n_keys - h.num_required_signatures:
        raise DecodeError("Readonly unsigned count exceeds unsigned accounts")
    if len(set(tx.account_keys)) != n_keys:
        raise DecodeError("Duplicate account keys in message")
    addressable = n_keys + tx.lookup_account_count
    if addressable > 256:
        raise DecodeError("Too many accounts in message")
    for ix in tx.instructions:
        if ix.program_id_index >= n_keys:
            raise DecodeError(f"Program id index {ix.program_id_index} out of range")
        for idx in ix.accounts:
            if idx >= addressable:
                raise DecodeError(f"Account index {idx} out of range")


def decode(data: bytes) -> DecodedTransaction:
    """
    Parse wire bytes into a DecodedTransaction.

    Raises DecodeError on truncated buffers, malformed length prefixes,
    trailing bytes, unsupported versions and signature/account mismatches.
    """
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise DecodeError("Transaction must be bytes")
    data = bytes(data)
    if not data:
        raise DecodeError("Empty transaction")
    if len(data) > MAX_TRANSACTION_SIZE:
        raise DecodeError(f"Transaction too large: {len(data)} > {MAX_TRANSACTION_SIZE} bytes")

    reader = _Reader(data)
    n_sigs = reader.shortvec("signatures")
    signatures = tuple(Signature.from_bytes(reader.take(SIGNATURE_LEN, "signature")) for _ in range(n_sigs))
    message_start = reader.pos
    version, header, keys, blockhash, instructions, lookups = _decode_message(reader)
    if reader.remaining:
        raise DecodeError(f"{reader.remaining} trailing bytes after message")

    tx = DecodedTransaction(
        signatures=signatures,
        header=header,
        account_keys=keys,
        recent_blockhash=blockhash,
        instructions=instructions,
        version=version,
        address_table_lookups=lookups,
        message_bytes=data[message_start:],
    )
    _check_structure(tx)
    return tx


def decode_base64(payload: str) -> DecodedTransaction:
    """Decode the base64 transaction string carried in HTTP bodies."""
    if not isinstance(payload, str) or not payload.strip():
        raise DecodeError("Missing transaction")
    try:
        raw = base64.b64decode(payload.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError("Transaction is not valid base64") from e
    return decode(raw)


def encode_message(tx: DecodedTransaction) -> bytes:
    """Serialize the message part (the bytes every signature covers)."""
    out = bytearray()
    if tx.version is not None:
        out.append(VERSION_PREFIX_MASK | tx.version)
    h = tx.header
    out += bytes((h.num_required_signatures, h.num_readonly_signed, h.num_readonly_unsigned))
    out += encode_shortvec(len(tx.account_keys))
    for key in tx.account_keys:
        out += bytes(key)
    out += bytes(tx.recent_blockhash)
    out += encode_shortvec(len(tx.instructions))
    for ix in tx.instructions:
        out.append(ix.program_id_index)
        out += encode_shortvec(len(ix.accounts))
        out += bytes(ix.accounts)
        out += encode_shortvec(len(ix.data))
        out += ix.data
    if tx.version is not None:
        out += encode_shortvec(len(tx.address_table_lookups))
        for lookup in tx.address_table_lookups:
            out += bytes(lookup.account_key)
            out += encode_shortvec(len(lookup.writable_indexes))
            out += bytes(lookup.writable_indexes)
            out += encode_shortvec(len(lookup.readonly_indexes))
            out += bytes(lookup.readonly_indexes)
    return bytes(out)


def encode(tx: DecodedTransaction) -> bytes:
    """Serialize signatures + message to wire bytes."""
    out = bytearray(encode_shortvec(len(tx.signatures)))
    for sig in tx.signatures:
        out += bytes(sig)
    out += encode_message(tx)
    return bytes(out)


def encode_base64(tx: DecodedTransaction) -> str:
    return base64.b64encode(encode(tx)).decode("ascii")
