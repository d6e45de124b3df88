"""Pytest configuration and fixtures for solana_token_kit tests"""

import json
from typing import Any, Dict, List, Optional

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.transaction import Transaction

STUB_SIGNATURE = "5VERv8NMvzbJMEkV8xnrLkEaWRtSz9CosKDYjCJjBRnbJLgp8uirBgmQpjKhoR4tjF3ZpRzrFmBV6UjKdiSZkQUW"


class FakeRpc:
    """In-process stand-in for RpcClient. Records everything it is sent."""

    def __init__(
        self,
        statuses: Optional[List[Optional[Dict[str, Any]]]] = None,
        signature: str = STUB_SIGNATURE,
        block_height: int = 100,
        last_valid_block_height: int = 250,
        rent: int = 1_461_600,
        accounts: Optional[Dict[str, Dict[str, Any]]] = None,
    ):
        # One entry consumed per poll; the last one repeats.
        self.statuses = list(statuses) if statuses is not None else [
            {"confirmationStatus": "confirmed", "err": None}
        ]
        self.signature = signature
        self.block_height = block_height
        self.last_valid_block_height = last_valid_block_height
        self.rent = rent
        self.accounts = accounts or {}
        self.blockhash = str(Hash.default())

        self.sent: List[bytes] = []
        self.polls = 0
        self.rent_requests: List[int] = []
        self.account_lookups: List[str] = []

    def get_latest_blockhash(self, commitment="confirmed"):
        return self.blockhash, self.last_valid_block_height

    def get_block_height(self, commitment="confirmed"):
        return self.block_height

    def get_minimum_balance_for_rent_exemption(self, data_size, commitment="confirmed"):
        self.rent_requests.append(data_size)
        return self.rent

    def get_account_info(self, address, commitment="confirmed"):
        self.account_lookups.append(address)
        return self.accounts.get(address)

    def send_transaction(self, raw_transaction, skip_preflight=False, preflight_commitment="confirmed"):
        self.sent.append(raw_transaction)
        return self.signature

    def get_signature_statuses(self, signatures):
        self.polls += 1
        if len(self.statuses) > 1:
            status = self.statuses.pop(0)
        else:
            status = self.statuses[0] if self.statuses else None
        return [status]

    def sent_transactions(self) -> List[Transaction]:
        return [Transaction.from_bytes(raw) for raw in self.sent]


def program_ids(tx):
    keys = tx.message.account_keys
    return [keys[ix.program_id_index] for ix in tx.message.instructions]


def instruction_accounts(tx, index=0):
    keys = tx.message.account_keys
    return [keys[i] for i in tx.message.instructions[index].accounts]


@pytest.fixture
def payer():
    return Keypair()


@pytest.fixture
def fake_rpc():
    return FakeRpc()


@pytest.fixture
def wallet_file(tmp_path, payer):
    path = tmp_path / "wallet.json"
    path.write_text(json.dumps(list(bytes(payer))))
    return path


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """No token-kit variables leak in from the host or a stray .env"""
    for name in (
        "RPC_URL",
        "SOLANA_CLUSTER",
        "WALLET_PATH",
        "COMMITMENT",
        "CONFIRM_TIMEOUT",
        "STORAGE_UPLOAD_URL",
        "STORAGE_API_KEY",
        "STORAGE_GATEWAY_URL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("solana_token_kit.config.load_dotenv", lambda *a, **k: False)
    return monkeypatch
