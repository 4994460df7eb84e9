"""
Tests for the submission pipeline against the in-memory RPC fake:
confirmed, on-chain error, confirmation timeout, preflight rejection,
send timeout, and resubmission of the same signed bytes.
"""

from __future__ import annotations

import asyncio

import pytest
from solana.rpc.core import RPCException

from gasless_relay.core.exceptions import SubmissionError
from gasless_relay.pipeline import SubmissionOutcome, SubmissionPipeline, SubmissionState
from gasless_relay.signer import LocalKeypairSigner, sign_transaction
from gasless_relay.transaction import decode, encode


@pytest.fixture
def signed_tx(fee_tx, fee_payer):
    return asyncio.run(sign_transaction(decode(fee_tx()), LocalKeypairSigner(fee_payer)))


def _pipeline(client, **kwargs) -> SubmissionPipeline:
    kwargs.setdefault("confirm_timeout_sec", 0.3)
    kwargs.setdefault("poll_interval_sec", 0.01)
    kwargs.setdefault("rpc_timeout_sec", 0.2)
    return SubmissionPipeline(client, **kwargs)


def test_confirmed(fake_rpc, signed_tx):
    outcome = asyncio.run(_pipeline(fake_rpc).submit_and_confirm(signed_tx))
    assert outcome.state is SubmissionState.CONFIRMED
    assert outcome.signature == signed_tx.transaction_id
    assert outcome.terminal

    raw, opts = fake_rpc.sent[0]
    assert raw == encode(signed_tx)
    assert opts.skip_preflight is False


def test_on_chain_error_is_terminal(fake_rpc, signed_tx):
    fake_rpc.on_chain_err = "InstructionError(1, Custom(1))"
    outcome = asyncio.run(_pipeline(fake_rpc).submit_and_confirm(signed_tx))
    assert outcome.state is SubmissionState.ON_CHAIN_ERROR
    assert "Custom(1)" in outcome.error_detail
    assert len(fake_rpc.sent) == 1


def test_confirmation_timeout_keeps_signature(fake_rpc, signed_tx):
    fake_rpc.never_confirm = True
    outcome = asyncio.run(_pipeline(fake_rpc).submit_and_confirm(signed_tx))
    assert outcome.state is SubmissionState.TIMEOUT
    assert outcome.signature == signed_tx.transaction_id
    assert fake_rpc.status_calls > 1
    assert outcome.to_dict()["state"] == "timeout"


def test_commitment_level_is_respected(fake_rpc, signed_tx):
    fake_rpc.confirmation_status = "processed"
    assert asyncio.run(_pipeline(fake_rpc).submit_and_confirm(signed_tx)).state is SubmissionState.TIMEOUT

    fake_rpc.confirmation_status = "confirmed"
    finalized = _pipeline(fake_rpc, commitment="finalized")
    assert asyncio.run(finalized.submit_and_confirm(signed_tx)).state is SubmissionState.TIMEOUT

    fake_rpc.confirmation_status = "finalized"
    assert asyncio.run(finalized.submit_and_confirm(signed_tx)).state is SubmissionState.CONFIRMED


def test_preflight_rejection_raises_with_raw_detail(fake_rpc, signed_tx):
    fake_rpc.send_error = RPCException("Blockhash not found")
    with pytest.raises(SubmissionError) as exc_info:
        asyncio.run(_pipeline(fake_rpc).submit(signed_tx))
    err = exc_info.value
    assert err.signature == signed_tx.transaction_id
    assert "Blockhash not found" in err.detail
    assert err.to_dict()["code"] == "submission_failed"


def test_send_timeout_returns_timeout_outcome(fake_rpc, signed_tx):
    fake_rpc.send_delay = 1.0
    outcome = asyncio.run(_pipeline(fake_rpc).submit(signed_tx))
    assert outcome.state is SubmissionState.TIMEOUT
    assert outcome.signature == signed_tx.transaction_id
    assert not fake_rpc.sent


def test_resubmitting_same_bytes_keeps_signature(fake_rpc, signed_tx):
    pipeline = _pipeline(fake_rpc)
    first = asyncio.run(pipeline.submit_and_confirm(signed_tx))
    second = asyncio.run(pipeline.submit_and_confirm(signed_tx))
    assert first.signature == second.signature
    assert fake_rpc.sent[0][0] == fake_rpc.sent[1][0]


def test_confirm_passes_terminal_outcomes_through(fake_rpc):
    done = SubmissionOutcome("sig", SubmissionState.ON_CHAIN_ERROR, "boom")
    assert asyncio.run(_pipeline(fake_rpc).confirm(done)) is done
    assert fake_rpc.status_calls == 0


def test_unknown_commitment_rejected(fake_rpc):
    with pytest.raises(ValueError):
        SubmissionPipeline(fake_rpc, commitment="eventually")


def test_cancelled_confirmation_returns_timeout(fake_rpc, signed_tx):
    fake_rpc.never_confirm = True
    pipeline = _pipeline(fake_rpc, confirm_timeout_sec=30)

    async def run():
        submitted = await pipeline.submit(signed_tx)
        task = asyncio.create_task(pipeline.confirm(submitted))
        await asyncio.sleep(0.05)
        task.cancel()
        return await task

    outcome = asyncio.run(run())
    assert outcome.state is SubmissionState.TIMEOUT
    assert outcome.signature == signed_tx.transaction_id
    assert "cancelled" in outcome.error_detail
