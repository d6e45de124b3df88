"""Tests for solana_token_kit.cli"""

import argparse
import json

import httpx
import pytest
from solders.keypair import Keypair
from spl.token.constants import ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_PROGRAM_ID

from conftest import STUB_SIGNATURE, FakeRpc, instruction_accounts, program_ids
from solana_token_kit import cli
from solana_token_kit.pda import (
    derive_associated_token_address,
    derive_master_edition_address,
    derive_metadata_address,
)

UPLOAD_URL = "https://api.nft.storage/upload"


@pytest.fixture
def cli_rpc(monkeypatch):
    """FakeRpc handed to every command instead of a real RpcClient"""
    fake = FakeRpc()
    fake.close = lambda: None
    monkeypatch.setattr(cli, "RpcClient", lambda *a, **k: fake)
    return fake


@pytest.fixture
def storage_env(clean_env):
    clean_env.setenv("STORAGE_UPLOAD_URL", UPLOAD_URL)
    clean_env.setenv("STORAGE_API_KEY", "test-api-key")
    return clean_env


class TestArgumentParsing:
    """Tests for argument converters"""

    def test_parse_creator(self):
        address = str(Keypair().pubkey())
        assert cli.parse_creator(f"{address}:60") == (address, 60)

    @pytest.mark.parametrize("value", ["no-share", ":100", "addr:sixty"])
    def test_parse_creator_rejects(self, value):
        with pytest.raises(argparse.ArgumentTypeError):
            cli.parse_creator(value)

    def test_parse_attribute(self):
        assert cli.parse_attribute("color=dark red") == ("color", "dark red")

    def test_parse_attribute_rejects(self):
        with pytest.raises(argparse.ArgumentTypeError):
            cli.parse_attribute("color")

    def test_subcommand_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])


class TestDeriveMetadataCommand:
    """Tests for `derive-metadata`"""

    def test_prints_pda_and_bump(self, capsys):
        mint = Keypair().pubkey()
        address, bump = derive_metadata_address(mint)

        with pytest.raises(SystemExit) as exc_info:
            cli.main(["derive-metadata", "--mint", str(mint)])

        assert exc_info.value.code == 0
        out = capsys.readouterr().out
        assert f"Metadata PDA  : {address}" in out
        assert f"Bump          : {bump}" in out

    def test_bad_mint_exits_non_zero(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["derive-metadata", "--mint", "<mint address>"])

        assert exc_info.value.code == 1
        assert "Not a valid base58 public key" in capsys.readouterr().err


class TestCreateMetadataCommand:
    """Tests for `create-metadata`"""

    def _argv(self, wallet_file, *extra):
        return [
            "--wallet", str(wallet_file),
            "create-metadata",
            "--mint", str(Keypair().pubkey()),
            "--name", "LEO",
            "--symbol", "TST",
            "--uri", "https://arweave.net/abc",
            "--seller-fee-basis-points", "1000",
            *extra,
        ]

    def test_invalid_shares_fail_before_network(self, clean_env, wallet_file, monkeypatch, capsys):
        def no_network(*args, **kwargs):
            raise AssertionError("RPC client must not be created")

        monkeypatch.setattr(cli, "RpcClient", no_network)
        a, b = Keypair().pubkey(), Keypair().pubkey()

        with pytest.raises(SystemExit) as exc_info:
            cli.main(self._argv(wallet_file, "--creator", f"{a}:50", "--creator", f"{b}:40"))

        assert exc_info.value.code == 1
        assert "sum to 100" in capsys.readouterr().err

    def test_success_prints_signature(self, clean_env, wallet_file, monkeypatch, capsys):
        fake = FakeRpc()
        fake.close = lambda: None
        monkeypatch.setattr(cli, "RpcClient", lambda *a, **k: fake)

        with pytest.raises(SystemExit) as exc_info:
            cli.main(self._argv(wallet_file))

        assert exc_info.value.code == 0
        out = capsys.readouterr().out
        assert f"Signature     : {STUB_SIGNATURE}" in out
        assert "cluster=devnet" in out
        assert len(fake.sent) == 1

    def test_timeout_exits_non_zero(self, clean_env, wallet_file, monkeypatch, capsys):
        clean_env.setenv("CONFIRM_TIMEOUT", "0")
        fake = FakeRpc(statuses=[None])
        fake.close = lambda: None
        monkeypatch.setattr(cli, "RpcClient", lambda *a, **k: fake)

        with pytest.raises(SystemExit) as exc_info:
            cli.main(self._argv(wallet_file))

        assert exc_info.value.code == 1
        assert "not confirmed" in capsys.readouterr().err


class TestCreateMintCommand:
    """Tests for `create-mint`"""

    def test_prints_mint_banner(self, clean_env, wallet_file, payer, cli_rpc, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--wallet", str(wallet_file), "create-mint", "--decimals", "2"])

        assert exc_info.value.code == 0
        out = capsys.readouterr().out
        assert "MINT CREATED" in out
        assert "Decimals      : 2" in out
        assert f"Authority     : {payer.pubkey()}" in out
        assert f"Signature     : {STUB_SIGNATURE}" in out

        tx = cli_rpc.sent_transactions()[0]
        assert program_ids(tx)[1] == TOKEN_PROGRAM_ID
        assert bytes(tx.message.instructions[1].data)[1] == 2

    def test_rpc_http_error_exits_non_zero(self, clean_env, wallet_file, httpx_mock, capsys):
        httpx_mock.add_response(url="https://rpc.test", status_code=429)

        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--wallet", str(wallet_file), "--rpc-url", "https://rpc.test", "create-mint"])

        assert exc_info.value.code == 1
        assert "HTTP 429" in capsys.readouterr().err

    def test_unreachable_rpc_exits_non_zero(self, clean_env, wallet_file, httpx_mock, capsys):
        httpx_mock.add_exception(httpx.ConnectError("Connection refused"))

        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--wallet", str(wallet_file), "--rpc-url", "https://rpc.test", "create-mint"])

        assert exc_info.value.code == 1
        assert "could not reach" in capsys.readouterr().err

    def test_bad_cluster_exits_non_zero(self, clean_env, wallet_file, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--wallet", str(wallet_file), "--cluster", "moonnet", "create-mint"])

        assert exc_info.value.code == 1
        assert "Unknown cluster" in capsys.readouterr().err

    def test_missing_wallet_exits_non_zero(self, clean_env, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--wallet", str(tmp_path / "nope.json"), "create-mint"])

        assert exc_info.value.code == 1
        assert "Wallet file not found" in capsys.readouterr().err


class TestMintToCommand:
    """Tests for `mint-to`"""

    def test_mints_into_owner_ata(self, clean_env, wallet_file, payer, cli_rpc, capsys):
        mint = Keypair().pubkey()
        owner = Keypair().pubkey()
        owner_ata = derive_associated_token_address(owner, mint)

        with pytest.raises(SystemExit) as exc_info:
            cli.main([
                "--wallet", str(wallet_file),
                "mint-to", "--mint", str(mint), "--amount", "500", "--owner", str(owner),
            ])

        assert exc_info.value.code == 0
        out = capsys.readouterr().out
        assert f"This is your ATA: {owner_ata}" in out
        assert "Successfully minted 500 base units." in out

        create_ata, mint_tx = cli_rpc.sent_transactions()
        assert program_ids(create_ata) == [ASSOCIATED_TOKEN_PROGRAM_ID]
        assert owner_ata in instruction_accounts(create_ata)
        assert owner in instruction_accounts(create_ata)
        assert instruction_accounts(mint_tx) == [mint, owner_ata, payer.pubkey()]
        data = bytes(mint_tx.message.instructions[0].data)
        assert data[0] == 7
        assert int.from_bytes(data[1:9], "little") == 500

    def test_defaults_to_own_wallet(self, clean_env, wallet_file, payer, cli_rpc, capsys):
        mint = Keypair().pubkey()

        with pytest.raises(SystemExit):
            cli.main(["--wallet", str(wallet_file), "mint-to", "--mint", str(mint), "--amount", "1"])

        own_ata = derive_associated_token_address(payer.pubkey(), mint)
        assert f"This is your ATA: {own_ata}" in capsys.readouterr().out

    def test_zero_amount_exits_non_zero(self, clean_env, wallet_file, cli_rpc, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.main([
                "--wallet", str(wallet_file),
                "mint-to", "--mint", str(Keypair().pubkey()), "--amount", "0",
            ])

        assert exc_info.value.code == 1
        assert "positive integer" in capsys.readouterr().err


class TestTransferCommand:
    """Tests for `transfer`"""

    def test_creates_both_atas_then_transfers(self, clean_env, wallet_file, payer, cli_rpc, capsys):
        mint = Keypair().pubkey()
        recipient = Keypair().pubkey()
        from_ata = derive_associated_token_address(payer.pubkey(), mint)
        to_ata = derive_associated_token_address(recipient, mint)

        with pytest.raises(SystemExit) as exc_info:
            cli.main([
                "--wallet", str(wallet_file),
                "transfer", "--mint", str(mint), "--to", str(recipient), "--amount", "1000",
            ])

        assert exc_info.value.code == 0
        out = capsys.readouterr().out
        assert f"From ATA      : {from_ata}" in out
        assert f"To ATA        : {to_ata}" in out
        assert "Successfully transferred 1000 base units." in out

        first, second, moved = cli_rpc.sent_transactions()
        assert from_ata in instruction_accounts(first)
        assert to_ata in instruction_accounts(second)
        assert program_ids(moved) == [TOKEN_PROGRAM_ID]
        assert instruction_accounts(moved) == [from_ata, to_ata, payer.pubkey()]
        data = bytes(moved.message.instructions[0].data)
        assert data[0] == 3
        assert int.from_bytes(data[1:9], "little") == 1000

    def test_existing_atas_are_reused(self, clean_env, wallet_file, payer, monkeypatch, capsys):
        mint = Keypair().pubkey()
        recipient = Keypair().pubkey()
        existing = {
            str(derive_associated_token_address(payer.pubkey(), mint)): {"lamports": 1},
            str(derive_associated_token_address(recipient, mint)): {"lamports": 1},
        }
        fake = FakeRpc(accounts=existing)
        fake.close = lambda: None
        monkeypatch.setattr(cli, "RpcClient", lambda *a, **k: fake)

        with pytest.raises(SystemExit) as exc_info:
            cli.main([
                "--wallet", str(wallet_file),
                "transfer", "--mint", str(mint), "--to", str(recipient), "--amount", "5",
            ])

        assert exc_info.value.code == 0
        assert len(fake.sent) == 1


class TestUploadCommand:
    """Tests for `upload`"""

    def test_prints_gateway_uri(self, storage_env, tmp_path, httpx_mock, capsys):
        path = tmp_path / "generug.png"
        path.write_bytes(b"\x89PNGdata")
        httpx_mock.add_response(url=UPLOAD_URL, method="POST", json={"ok": True, "value": {"cid": "bafyimage"}})

        with pytest.raises(SystemExit) as exc_info:
            cli.main(["upload", str(path)])

        assert exc_info.value.code == 0
        assert capsys.readouterr().out.strip() == "https://ipfs.io/ipfs/bafyimage"
        assert b'filename="generug.png"' in httpx_mock.get_request().read()

    def test_missing_storage_config_exits_non_zero(self, clean_env, tmp_path, capsys):
        path = tmp_path / "generug.png"
        path.write_bytes(b"\x89PNGdata")

        with pytest.raises(SystemExit) as exc_info:
            cli.main(["upload", str(path)])

        assert exc_info.value.code == 1
        assert "STORAGE_UPLOAD_URL" in capsys.readouterr().err

    def test_missing_file_exits_non_zero(self, storage_env, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["upload", str(tmp_path / "missing.png")])

        assert exc_info.value.code == 1
        assert "Cannot read" in capsys.readouterr().err

    def test_service_error_exits_non_zero(self, storage_env, tmp_path, httpx_mock, capsys):
        path = tmp_path / "generug.png"
        path.write_bytes(b"\x89PNGdata")
        httpx_mock.add_response(url=UPLOAD_URL, method="POST", status_code=401, text="bad key")

        with pytest.raises(SystemExit) as exc_info:
            cli.main(["upload", str(path)])

        assert exc_info.value.code == 1
        assert "[401]" in capsys.readouterr().err


class TestUploadMetadataCommand:
    """Tests for `upload-metadata`"""

    def test_uploads_document_with_self_creator(self, storage_env, wallet_file, payer, httpx_mock, capsys):
        httpx_mock.add_response(url=UPLOAD_URL, method="POST", json={"cid": "bafymeta"})

        with pytest.raises(SystemExit) as exc_info:
            cli.main([
                "--wallet", str(wallet_file),
                "upload-metadata",
                "--name", "Generug",
                "--symbol", "RUG",
                "--image", "https://ipfs.io/ipfs/bafyimage",
                "--attribute", "color=red",
                "--attribute", "rarity=rare",
            ])

        assert exc_info.value.code == 0
        assert "Your metadata URI: https://ipfs.io/ipfs/bafymeta" in capsys.readouterr().out

        body = httpx_mock.get_request().read().decode()
        assert 'filename="metadata.json"' in body
        doc = json.loads(body[body.index("{"): body.rindex("}") + 1])
        assert doc["name"] == "Generug"
        assert doc["image"] == "https://ipfs.io/ipfs/bafyimage"
        assert doc["attributes"] == [
            {"trait_type": "color", "value": "red"},
            {"trait_type": "rarity", "value": "rare"},
        ]
        assert doc["properties"]["creators"] == [{"address": str(payer.pubkey()), "share": 100}]


class TestCreateNftCommand:
    """Tests for `create-nft`"""

    def test_prints_all_addresses(self, clean_env, wallet_file, payer, cli_rpc, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.main([
                "--wallet", str(wallet_file),
                "create-nft",
                "--name", "Generug",
                "--symbol", "RUG",
                "--uri", "https://ipfs.io/ipfs/bafymeta",
                "--seller-fee-basis-points", "500",
            ])

        assert exc_info.value.code == 0
        out = capsys.readouterr().out
        assert "NFT MINTED" in out
        assert f"Signature     : {STUB_SIGNATURE}" in out

        mint_line = next(line for line in out.splitlines() if line.startswith("Mint          : "))
        mint = mint_line.split(": ", 1)[1]
        assert f"Master edition: {derive_master_edition_address(mint)[0]}" in out
        assert f"Metadata PDA  : {derive_metadata_address(mint)[0]}" in out
        assert f"Token account : {derive_associated_token_address(payer.pubkey(), mint)}" in out
        assert len(cli_rpc.sent) == 1

    def test_unlimited_supply(self, clean_env, wallet_file, cli_rpc):
        with pytest.raises(SystemExit):
            cli.main([
                "--wallet", str(wallet_file),
                "create-nft", "--name", "A", "--symbol", "B", "--uri", "https://x.y/z", "--max-supply", "-1",
            ])

        tx = cli_rpc.sent_transactions()[0]
        assert bytes(tx.message.instructions[-1].data) == bytes([17, 0])

    def test_invalid_royalty_fails_before_network(self, clean_env, wallet_file, monkeypatch, capsys):
        def no_network(*args, **kwargs):
            raise AssertionError("RPC client must not be created")

        monkeypatch.setattr(cli, "RpcClient", no_network)

        with pytest.raises(SystemExit) as exc_info:
            cli.main([
                "--wallet", str(wallet_file),
                "create-nft", "--name", "A", "--symbol", "B", "--uri", "https://x.y/z",
                "--seller-fee-basis-points", "10001",
            ])

        assert exc_info.value.code == 1
        assert "seller_fee_basis_points" in capsys.readouterr().err
