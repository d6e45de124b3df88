from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional, Tuple

from .config import Settings, storage_from_env
from .errors import TokenKitError
from .metadata import (
    Creator,
    build_offchain_metadata,
    build_payload,
    create_metadata_account,
    create_nft,
)
from .pda import derive_master_edition_address, derive_metadata_address, to_pubkey
from .project_constants import (
    DEFAULT_DECIMALS,
    EXPLORER_ADDRESS_URL,
    EXPLORER_TX_URL,
    TOKEN_METADATA_PROGRAM_ID,
)
from .rpc import RpcClient
from .storage import GenericFile, StorageUploader
from .tokens import create_mint, get_or_create_associated_token_account, mint_to, transfer
from .wallet import load_keypair


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def tx_url(settings: Settings, signature: str) -> str:
    return EXPLORER_TX_URL.format(signature=signature, cluster=settings.cluster)


def parse_creator(value: str) -> Tuple[str, int]:
    """ADDRESS:SHARE"""
    address, sep, share = value.rpartition(":")
    if not sep or not address:
        raise argparse.ArgumentTypeError(f"Expected ADDRESS:SHARE, got {value!r}")
    try:
        return address, int(share)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Share must be an integer, got {share!r}")


def parse_attribute(value: str) -> Tuple[str, str]:
    """TRAIT=VALUE"""
    trait, sep, val = value.partition("=")
    if not sep or not trait:
        raise argparse.ArgumentTypeError(f"Expected TRAIT=VALUE, got {value!r}")
    return trait, val


def _settings(args: argparse.Namespace) -> Settings:
    return Settings.from_env(
        rpc_url_override=args.rpc_url,
        wallet_override=args.wallet,
        cluster_override=args.cluster,
    )


def cmd_create_mint(args: argparse.Namespace) -> int:
    settings = _settings(args)
    keypair = load_keypair(settings.wallet_path)
    log = logging.getLogger("create-mint")
    log.info("Payer            : %s", keypair.pubkey())

    rpc = RpcClient(settings.rpc_url, timeout_s=args.timeout)
    try:
        mint, signature = create_mint(
            rpc,
            keypair,
            decimals=args.decimals,
            freeze_authority=args.freeze_authority,
            commitment=settings.commitment,
            timeout_s=settings.confirm_timeout_s,
        )
    finally:
        rpc.close()

    print("========================================")
    print("🪙 MINT CREATED")
    print("========================================")
    print(f"Mint          : {mint}")
    print(f"Decimals      : {args.decimals}")
    print(f"Authority     : {keypair.pubkey()}")
    print(f"Signature     : {signature}")
    print(f"Explorer      : {tx_url(settings, signature)}")
    return 0


def cmd_mint_to(args: argparse.Namespace) -> int:
    settings = _settings(args)
    keypair = load_keypair(settings.wallet_path)
    owner = args.owner or keypair.pubkey()

    rpc = RpcClient(settings.rpc_url, timeout_s=args.timeout)
    try:
        ata, _ = get_or_create_associated_token_account(
            rpc,
            keypair,
            args.mint,
            owner,
            commitment=settings.commitment,
            timeout_s=settings.confirm_timeout_s,
        )
        print(f"This is your ATA: {ata}")
        signature = mint_to(
            rpc,
            keypair,
            args.mint,
            ata,
            args.amount,
            commitment=settings.commitment,
            timeout_s=settings.confirm_timeout_s,
        )
    finally:
        rpc.close()

    print(f"Successfully minted {args.amount} base units.")
    print(f"Transaction   : {tx_url(settings, signature)}")
    return 0


def cmd_transfer(args: argparse.Namespace) -> int:
    settings = _settings(args)
    keypair = load_keypair(settings.wallet_path)

    rpc = RpcClient(settings.rpc_url, timeout_s=args.timeout)
    try:
        from_ata, _ = get_or_create_associated_token_account(
            rpc, keypair, args.mint, keypair.pubkey(),
            commitment=settings.commitment, timeout_s=settings.confirm_timeout_s,
        )
        to_ata, _ = get_or_create_associated_token_account(
            rpc, keypair, args.mint, args.to,
            commitment=settings.commitment, timeout_s=settings.confirm_timeout_s,
        )
        signature = transfer(
            rpc,
            keypair,
            from_ata,
            to_ata,
            args.amount,
            commitment=settings.commitment,
            timeout_s=settings.confirm_timeout_s,
        )
    finally:
        rpc.close()

    print(f"From ATA      : {from_ata}")
    print(f"To ATA        : {to_ata}")
    print(f"Successfully transferred {args.amount} base units.")
    print(f"Transaction   : {tx_url(settings, signature)}")
    return 0


def _uploader(args: argparse.Namespace) -> StorageUploader:
    storage = storage_from_env(gateway_override=args.gateway_url)
    return StorageUploader(
        storage.upload_url,
        storage.api_key,
        gateway_url=storage.gateway_url,
        timeout_s=args.timeout,
    )


def cmd_upload(args: argparse.Namespace) -> int:
    file = GenericFile.from_path(args.path, file_name=args.name)
    uploader = _uploader(args)
    try:
        uri = uploader.upload(file)
    finally:
        uploader.close()

    print(uri)
    return 0


def cmd_upload_metadata(args: argparse.Namespace) -> int:
    settings = _settings(args)
    keypair = load_keypair(settings.wallet_path)

    creators = [Creator(address=keypair.pubkey(), share=100, verified=True)]
    document = build_offchain_metadata(
        name=args.name,
        symbol=args.symbol,
        description=args.description,
        image_uri=args.image,
        creators=creators,
        attributes=args.attribute,
        image_type=args.image_type,
        external_url=args.external_url,
    )

    uploader = _uploader(args)
    try:
        uri = uploader.upload_json(document)
    finally:
        uploader.close()

    print(f"Your metadata URI: {uri}")
    return 0


def cmd_create_metadata(args: argparse.Namespace) -> int:
    settings = _settings(args)
    keypair = load_keypair(settings.wallet_path)
    log = logging.getLogger("create-metadata")

    if args.no_creators:
        creators = None
    else:
        creators = args.creator or [(keypair.pubkey(), 100)]

    # Validate before any network call.
    payload = build_payload(
        name=args.name,
        symbol=args.symbol,
        uri=args.uri,
        seller_fee_basis_points=args.seller_fee_basis_points,
        creators=creators,
        collection=args.collection,
        is_mutable=not args.immutable,
        signer=keypair.pubkey(),
    )
    log.info("Mint authority   : %s", keypair.pubkey())

    rpc = RpcClient(settings.rpc_url, timeout_s=args.timeout)
    try:
        metadata_address, signature = create_metadata_account(
            rpc,
            keypair,
            args.mint,
            payload,
            update_authority=args.update_authority,
            program_id=args.program_id,
            commitment=settings.commitment,
            timeout_s=settings.confirm_timeout_s,
        )
    finally:
        rpc.close()

    print("========================================")
    print("🏷️  METADATA ACCOUNT CREATED")
    print("========================================")
    print(f"Mint          : {args.mint}")
    print(f"Metadata PDA  : {metadata_address}")
    print(f"Name / Symbol : {payload.name} / {payload.symbol}")
    print(f"URI           : {payload.uri}")
    print(f"Signature     : {signature}")
    print(f"Explorer      : {tx_url(settings, signature)}")
    return 0


def cmd_create_nft(args: argparse.Namespace) -> int:
    settings = _settings(args)
    keypair = load_keypair(settings.wallet_path)

    if args.no_creators:
        creators = None
    else:
        creators = args.creator or [(keypair.pubkey(), 100)]

    payload = build_payload(
        name=args.name,
        symbol=args.symbol,
        uri=args.uri,
        seller_fee_basis_points=args.seller_fee_basis_points,
        creators=creators,
        collection=args.collection,
        is_mutable=not args.immutable,
        signer=keypair.pubkey(),
    )
    max_supply = None if args.max_supply < 0 else args.max_supply

    rpc = RpcClient(settings.rpc_url, timeout_s=args.timeout)
    try:
        nft = create_nft(
            rpc,
            keypair,
            payload,
            owner=args.owner,
            max_supply=max_supply,
            program_id=args.program_id,
            commitment=settings.commitment,
            timeout_s=settings.confirm_timeout_s,
        )
    finally:
        rpc.close()

    print("========================================")
    print("🖼️  NFT MINTED")
    print("========================================")
    print(f"Mint          : {nft.mint}")
    print(f"Token account : {nft.token_account}")
    print(f"Metadata PDA  : {nft.metadata}")
    print(f"Master edition: {nft.master_edition}")
    print(f"Signature     : {nft.signature}")
    print(f"Explorer      : {tx_url(settings, nft.signature)}")
    return 0


def cmd_derive_metadata(args: argparse.Namespace) -> int:
    address, bump = derive_metadata_address(to_pubkey(args.mint), args.program_id)
    print(f"Metadata PDA  : {address}")
    print(f"Bump          : {bump}")
    if args.edition:
        edition, edition_bump = derive_master_edition_address(to_pubkey(args.mint), args.program_id)
        print(f"Edition PDA   : {edition}")
        print(f"Edition bump  : {edition_bump}")
    if args.cluster:
        print(f"Explorer      : {EXPLORER_ADDRESS_URL.format(address=address, cluster=args.cluster)}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="solana-token-kit",
        description="Create SPL mints, move tokens, upload assets and attach token metadata.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    p.add_argument("--rpc-url", default=None, help="Override RPC URL (else use env).")
    p.add_argument(
        "--cluster",
        default=None,
        help="mainnet-beta, devnet, testnet or localnet (else SOLANA_CLUSTER, default devnet).",
    )
    p.add_argument("--wallet", default=None, help="Key file path (else WALLET_PATH, default wallet.json).")
    p.add_argument("--timeout", type=float, default=60.0, help="HTTP timeout seconds.")

    sub = p.add_subparsers(dest="cmd", required=True)

    cm = sub.add_parser("create-mint", help="Create and initialize a new token mint.")
    cm.add_argument("--decimals", type=int, default=DEFAULT_DECIMALS, help="Decimal places (0-9).")
    cm.add_argument("--freeze-authority", default=None, help="Optional freeze authority address.")
    cm.set_defaults(func=cmd_create_mint)

    mt = sub.add_parser("mint-to", help="Mint tokens into an owner's associated token account.")
    mt.add_argument("--mint", required=True, help="Mint address.")
    mt.add_argument("--amount", required=True, type=int, help="Amount in base units.")
    mt.add_argument("--owner", default=None, help="Recipient wallet (default: your wallet).")
    mt.set_defaults(func=cmd_mint_to)

    tr = sub.add_parser("transfer", help="Transfer tokens from your ATA to a recipient's ATA.")
    tr.add_argument("--mint", required=True, help="Mint address.")
    tr.add_argument("--to", required=True, help="Recipient wallet address.")
    tr.add_argument("--amount", required=True, type=int, help="Amount in base units.")
    tr.set_defaults(func=cmd_transfer)

    up = sub.add_parser("upload", help="Upload a file to decentralized storage and print its URI.")
    up.add_argument("path", help="File to upload (e.g. ./images/generug.png).")
    up.add_argument("--name", default=None, help="File name to store (default: basename).")
    up.add_argument("--gateway-url", default=None, help="Override STORAGE_GATEWAY_URL.")
    up.set_defaults(func=cmd_upload)

    um = sub.add_parser("upload-metadata", help="Upload an off-chain metadata JSON document.")
    um.add_argument("--name", required=True)
    um.add_argument("--symbol", required=True)
    um.add_argument("--description", default="")
    um.add_argument("--image", required=True, help="Image URI (see `upload`).")
    um.add_argument("--image-type", default="image/png")
    um.add_argument("--external-url", default=None)
    um.add_argument(
        "--attribute",
        action="append",
        type=parse_attribute,
        default=[],
        help="TRAIT=VALUE, repeatable.",
    )
    um.add_argument("--gateway-url", default=None, help="Override STORAGE_GATEWAY_URL.")
    um.set_defaults(func=cmd_upload_metadata)

    md = sub.add_parser("create-metadata", help="Create the on-chain metadata account for a mint.")
    md.add_argument("--mint", required=True, help="Mint address (you must be its mint authority).")
    md.add_argument("--name", required=True)
    md.add_argument("--symbol", required=True)
    md.add_argument("--uri", required=True, help="Off-chain metadata URI.")
    md.add_argument("--seller-fee-basis-points", type=int, default=0, help="Royalty, 0-10000.")
    md.add_argument(
        "--creator",
        action="append",
        type=parse_creator,
        default=None,
        help="ADDRESS:SHARE, repeatable; shares must sum to 100 (default: your wallet, 100).",
    )
    md.add_argument("--no-creators", action="store_true", help="Store no creator list.")
    md.add_argument("--collection", default=None, help="Collection mint address (unverified).")
    md.add_argument("--update-authority", default=None, help="Update authority (default: your wallet).")
    md.add_argument("--immutable", action="store_true", help="Lock the metadata after creation.")
    md.add_argument("--program-id", default=TOKEN_METADATA_PROGRAM_ID, help=argparse.SUPPRESS)
    md.set_defaults(func=cmd_create_metadata)

    nf = sub.add_parser("create-nft", help="Mint a 1-of-1 NFT with metadata and a master edition.")
    nf.add_argument("--name", required=True)
    nf.add_argument("--symbol", required=True)
    nf.add_argument("--uri", required=True, help="Off-chain metadata URI (see `upload-metadata`).")
    nf.add_argument("--seller-fee-basis-points", type=int, default=0, help="Royalty, 0-10000.")
    nf.add_argument(
        "--creator",
        action="append",
        type=parse_creator,
        default=None,
        help="ADDRESS:SHARE, repeatable; shares must sum to 100 (default: your wallet, 100).",
    )
    nf.add_argument("--no-creators", action="store_true", help="Store no creator list.")
    nf.add_argument("--collection", default=None, help="Collection mint address (unverified).")
    nf.add_argument("--owner", default=None, help="Wallet receiving the NFT (default: your wallet).")
    nf.add_argument(
        "--max-supply",
        type=int,
        default=0,
        help="Printable editions; 0 for none, negative for unlimited.",
    )
    nf.add_argument("--immutable", action="store_true", help="Lock the metadata after creation.")
    nf.add_argument("--program-id", default=TOKEN_METADATA_PROGRAM_ID, help=argparse.SUPPRESS)
    nf.set_defaults(func=cmd_create_nft)

    dm = sub.add_parser("derive-metadata", help="Print the metadata PDA and bump for a mint.")
    dm.add_argument("--mint", required=True, help="Mint address.")
    dm.add_argument("--edition", action="store_true", help="Also print the master edition PDA.")
    dm.add_argument("--program-id", default=TOKEN_METADATA_PROGRAM_ID, help=argparse.SUPPRESS)
    dm.set_defaults(func=cmd_derive_metadata)

    return p


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    try:
        code = args.func(args)
    except (TokenKitError, ValueError) as e:
        print(f"Oops.. Something went wrong: {e}", file=sys.stderr)
        raise SystemExit(1)
    raise SystemExit(code)
