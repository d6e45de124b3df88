"""
Build, sign, submit and confirm a single transaction.

A transaction moves through UNSENT -> SUBMITTED -> one of CONFIRMED, FAILED
or TIMED_OUT. Nothing is retried: a rejection or timeout is raised to the
caller as-is.
"""
from __future__ import annotations

import enum
import logging
import time
from typing import Any, Callable, Optional, Sequence

from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.transaction import Transaction

from .errors import ConfirmationTimeoutError, TransactionFailedError
from .project_constants import COMMITMENT_LEVELS, DEFAULT_COMMITMENT

log = logging.getLogger(__name__)


class SendState(enum.Enum):
    UNSENT = "unsent"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


def commitment_reached(status: Optional[str], wanted: str) -> bool:
    if status not in COMMITMENT_LEVELS:
        return False
    return COMMITMENT_LEVELS.index(status) >= COMMITMENT_LEVELS.index(wanted)


def build_transaction(
    instructions: Sequence[Instruction],
    signers: Sequence[Keypair],
    blockhash: str,
) -> Transaction:
    """First signer pays the fee."""
    if not signers:
        raise ValueError("At least one signer (the fee payer) is required.")
    recent = Hash.from_string(blockhash)
    message = Message.new_with_blockhash(list(instructions), signers[0].pubkey(), recent)
    return Transaction(list(signers), message, recent)


def send_and_confirm(
    rpc: Any,
    instructions: Sequence[Instruction],
    signers: Sequence[Keypair],
    commitment: str = DEFAULT_COMMITMENT,
    timeout_s: float = 60.0,
    poll_interval_s: float = 0.5,
    sleep: Callable[[float], None] = time.sleep,
    on_state: Optional[Callable[[SendState, str], None]] = None,
) -> str:
    """
    Returns the signature once `commitment` is reached.
    `on_state` is called with (state, signature) on every transition after UNSENT.
    """
    if commitment not in COMMITMENT_LEVELS:
        raise ValueError(f"Unknown commitment {commitment!r}")

    def enter(state: SendState, signature: str, detail: str = "") -> SendState:
        log.info("Transaction %s -> %s%s", signature, state.value, detail)
        if on_state is not None:
            on_state(state, signature)
        return state

    blockhash, last_valid_block_height = rpc.get_latest_blockhash(commitment)
    tx = build_transaction(instructions, signers, blockhash)

    signature = rpc.send_transaction(bytes(tx), preflight_commitment=commitment)
    enter(SendState.SUBMITTED, signature)

    deadline = time.monotonic() + timeout_s
    last_status: Optional[str] = None
    while True:
        status = rpc.get_signature_statuses([signature])[0]
        if status is not None:
            if status.get("err") is not None:
                state = enter(SendState.FAILED, signature)
                raise TransactionFailedError(signature, status["err"], state=state)
            last_status = status.get("confirmationStatus")
            if commitment_reached(last_status, commitment):
                enter(SendState.CONFIRMED, signature, f" ({last_status})")
                return signature

        if time.monotonic() >= deadline:
            state = enter(SendState.TIMED_OUT, signature)
            raise ConfirmationTimeoutError(
                signature, f"no {commitment} confirmation within {timeout_s}s", last_status, state=state
            )
        if rpc.get_block_height(commitment) > last_valid_block_height:
            state = enter(SendState.TIMED_OUT, signature)
            raise ConfirmationTimeoutError(
                signature, "blockhash expired before confirmation", last_status, state=state
            )
        sleep(poll_interval_s)
