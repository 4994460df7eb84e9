"""
Transaction codec — wire bytes to DecodedTransaction and back.

Handles legacy and version-0 messages with their signature prefix.
Purely structural; no fee or signing policy.
"""

from gasless_relay.transaction.codec import (  # noqa: F401
    decode,
    decode_base64,
    encode,
    encode_base64,
    encode_message,
)
from gasless_relay.transaction.models import (  # noqa: F401
    ZERO_SIGNATURE,
    AddressTableLookup,
    CompiledInstruction,
    DecodedTransaction,
    MessageHeader,
)

__all__ = [
    "ZERO_SIGNATURE",
    "AddressTableLookup",
    "CompiledInstruction",
    "DecodedTransaction",
    "MessageHeader",
    "decode",
    "decode_base64",
    "encode",
    "encode_base64",
    "encode_message",
]
