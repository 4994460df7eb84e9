"""
Pytest fixtures for relay tests.

Transactions are built with solders (Message / Transaction) so the codec is
exercised against real wire bytes. RPC is an in-memory fake with the same
async method names as solana-py's AsyncClient.
"""

from __future__ import annotations

from types import SimpleNamespace
from typing import Callable

import pytest
from solana.rpc.core import RPCException
from solders.hash import Hash
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.transaction import Transaction
from spl.token.instructions import get_associated_token_address

from gasless_relay.config.settings import CustodyReference, RateLimitPolicy, RelayConfig, SupportedToken
from gasless_relay.transaction.codec import decode
from gasless_relay.validator.token_transfers import TOKEN_PROGRAM_ID

USDC_DECIMALS = 6
USDC_FEE = 10_000
SYSTEM_PROGRAM_ID = Pubkey.from_string("11111111111111111111111111111111")
MEMO_PROGRAM_ID = Pubkey.from_string("MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr")


def token_transfer_ix(source: Pubkey, dest: Pubkey, owner: Pubkey, amount: int, program: Pubkey = TOKEN_PROGRAM_ID) -> Instruction:
    return Instruction(
        program,
        bytes([3]) + amount.to_bytes(8, "little"),
        [
            AccountMeta(source, is_signer=False, is_writable=True),
            AccountMeta(dest, is_signer=False, is_writable=True),
            AccountMeta(owner, is_signer=True, is_writable=False),
        ],
    )


def token_transfer_checked_ix(
    source: Pubkey, mint: Pubkey, dest: Pubkey, owner: Pubkey, amount: int, decimals: int
) -> Instruction:
    return Instruction(
        TOKEN_PROGRAM_ID,
        bytes([12]) + amount.to_bytes(8, "little") + bytes([decimals]),
        [
            AccountMeta(source, is_signer=False, is_writable=True),
            AccountMeta(mint, is_signer=False, is_writable=False),
            AccountMeta(dest, is_signer=False, is_writable=True),
            AccountMeta(owner, is_signer=True, is_writable=False),
        ],
    )


def memo_ix(signer: Pubkey, text: bytes = b"order-42") -> Instruction:
    return Instruction(MEMO_PROGRAM_ID, text, [AccountMeta(signer, is_signer=True, is_writable=False)])


def system_transfer_ix(source: Pubkey, dest: Pubkey, lamports: int) -> Instruction:
    return Instruction(
        SYSTEM_PROGRAM_ID,
        (2).to_bytes(4, "little") + lamports.to_bytes(8, "little"),
        [
            AccountMeta(source, is_signer=True, is_writable=True),
            AccountMeta(dest, is_signer=False, is_writable=True),
        ],
    )


def build_tx_bytes(
    fee_payer: Pubkey,
    instructions: list[Instruction],
    signers: list[Keypair],
    blockhash: Hash | None = None,
) -> bytes:
    """Legacy wire transaction with fee_payer at account 0, signed by `signers` only."""
    blockhash = blockhash or Hash.new_unique()
    message = Message.new_with_blockhash(instructions, fee_payer, blockhash)
    tx = Transaction.new_unsigned(message)
    if signers:
        tx.partial_sign(signers, blockhash)
    return bytes(tx)


class FakeRpcClient:
    """In-memory stand-in for solana.rpc.async_api.AsyncClient."""

    def __init__(self) -> None:
        self.sent: list[tuple[bytes, object]] = []
        self.landed: set[str] = set()
        self.send_error: Exception | None = None
        self.send_delay: float = 0.0
        self.confirmation_status: str = "confirmed"
        self.on_chain_err: object = None
        self.never_confirm = False
        self.status_calls = 0
        self.lamports = 2_000_000_000
        self.token_amounts: dict[Pubkey, int] = {}
        self.closed = False

    async def send_raw_transaction(self, txn: bytes, opts=None):
        if self.send_delay:
            import asyncio

            await asyncio.sleep(self.send_delay)
        if self.send_error is not None:
            raise self.send_error
        self.sent.append((txn, opts))
        signature = decode(txn).signatures[0]
        self.landed.add(str(signature))
        return SimpleNamespace(value=signature)

    async def get_signature_statuses(self, signatures):
        self.status_calls += 1
        out = []
        for sig in signatures:
            if self.never_confirm or str(sig) not in self.landed:
                out.append(None)
            else:
                out.append(SimpleNamespace(err=self.on_chain_err, confirmation_status=self.confirmation_status))
        return SimpleNamespace(value=out)

    async def get_balance(self, pubkey):
        return SimpleNamespace(value=self.lamports)

    async def get_token_account_balance(self, pubkey):
        if pubkey not in self.token_amounts:
            raise RPCException("could not find account")
        return SimpleNamespace(value=SimpleNamespace(amount=str(self.token_amounts[pubkey])))

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fee_payer() -> Keypair:
    return Keypair()


@pytest.fixture
def user() -> Keypair:
    return Keypair()


@pytest.fixture
def usdc_mint() -> Pubkey:
    return Pubkey.new_unique()


@pytest.fixture
def usdc(fee_payer, usdc_mint) -> SupportedToken:
    return SupportedToken(
        mint=usdc_mint,
        symbol="USDC",
        decimals=USDC_DECIMALS,
        minimum_fee_units=USDC_FEE,
        fee_destination=get_associated_token_address(fee_payer.pubkey(), usdc_mint),
    )


@pytest.fixture
def relay_config(fee_payer, usdc) -> RelayConfig:
    return RelayConfig(
        fee_payer=fee_payer.pubkey(),
        custody=CustodyReference(kind="local", secret_key=str(fee_payer)),
        rpc_url="http://localhost:8899",
        tokens=(usdc,),
        rate_limit=RateLimitPolicy(max_requests=60, window_seconds=60),
        confirm_timeout_sec=0.5,
        confirm_poll_interval_sec=0.01,
        rpc_timeout_sec=0.5,
    )


@pytest.fixture
def user_source(user, usdc_mint) -> Pubkey:
    return get_associated_token_address(user.pubkey(), usdc_mint)


@pytest.fixture
def fee_tx(fee_payer, user, usdc, user_source) -> Callable[..., bytes]:
    """
    Build a fee-paying transaction: fee payer = relay, user signs, one USDC
    transfer of `amount` to the relay's fee account plus optional extra instructions.
    """

    def _build(
        amount: int = USDC_FEE,
        *,
        before: list[Instruction] | None = None,
        after: list[Instruction] | None = None,
        payer: Pubkey | None = None,
        signers: list[Keypair] | None = None,
    ) -> bytes:
        fee_ix = token_transfer_ix(user_source, usdc.fee_destination, user.pubkey(), amount)
        instructions = [*(before or []), fee_ix, *(after or [])]
        return build_tx_bytes(
            payer or fee_payer.pubkey(),
            instructions,
            [user] if signers is None else signers,
        )

    return _build


@pytest.fixture
def fake_rpc() -> FakeRpcClient:
    return FakeRpcClient()
