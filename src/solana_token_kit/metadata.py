"""
Token metadata: payload assembly, the CreateMetadataAccountV3 and
CreateMasterEditionV3 instructions, one-transaction NFT minting and the
off-chain JSON document a metadata URI points to.

Layout reference (borsh), CreateMetadataAccountV3:
    u8 discriminator (33)
    DataV2 { name, symbol, uri, seller_fee_basis_points: u16,
             creators: Option<Vec<Creator>>, collection: Option<Collection>,
             uses: Option<Uses> }
    is_mutable: bool
    collection_details: Option<CollectionDetails>

CreateMasterEditionV3:
    u8 discriminator (17)
    max_supply: Option<u64>
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from borsh_construct import Bool, CStruct, Enum, Option, String, U16, U64, U8, Vec
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.system_program import ID as SYS_PROGRAM_ID
from solders.sysvar import RENT
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import MintToParams, create_associated_token_account, mint_to

from .errors import PayloadValidationError
from .pda import (
    PubkeyLike,
    derive_associated_token_address,
    derive_master_edition_address,
    derive_metadata_address,
    to_pubkey,
)
from .project_constants import (
    CREATE_MASTER_EDITION_V3_DISCRIMINATOR,
    CREATE_METADATA_ACCOUNT_V3_DISCRIMINATOR,
    DEFAULT_COMMITMENT,
    MAX_BASIS_POINTS,
    MAX_CREATOR_LIMIT,
    MAX_NAME_LENGTH,
    MAX_SYMBOL_LENGTH,
    MAX_URI_LENGTH,
    MINT_ACCOUNT_SIZE,
    TOKEN_METADATA_PROGRAM_ID,
)
from .tokens import mint_account_instructions
from .transactions import send_and_confirm

log = logging.getLogger(__name__)


class UseMethod(enum.Enum):
    BURN = "Burn"
    MULTIPLE = "Multiple"
    SINGLE = "Single"


@dataclass(frozen=True)
class Creator:
    address: Pubkey
    share: int
    verified: bool = False


@dataclass(frozen=True)
class Collection:
    key: Pubkey
    verified: bool = False


@dataclass(frozen=True)
class Uses:
    use_method: UseMethod
    remaining: int
    total: int


@dataclass(frozen=True)
class MetadataPayload:
    name: str
    symbol: str
    uri: str
    seller_fee_basis_points: int
    creators: Optional[Tuple[Creator, ...]] = None
    collection: Optional[Collection] = None
    uses: Optional[Uses] = None
    is_mutable: bool = True
    # Size of a sized collection parent; None for regular tokens.
    collection_details: Optional[int] = None

    def __post_init__(self) -> None:
        validate_payload(self)


def _check_length(field: str, value: str, limit: int) -> None:
    if not isinstance(value, str):
        raise PayloadValidationError(f"{field} must be a string")
    size = len(value.encode("utf-8"))
    if size > limit:
        raise PayloadValidationError(f"{field} is {size} bytes, max {limit}")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_payload(payload: MetadataPayload) -> None:
    _check_length("name", payload.name, MAX_NAME_LENGTH)
    _check_length("symbol", payload.symbol, MAX_SYMBOL_LENGTH)
    _check_length("uri", payload.uri, MAX_URI_LENGTH)

    bps = payload.seller_fee_basis_points
    if not _is_int(bps) or not 0 <= bps <= MAX_BASIS_POINTS:
        raise PayloadValidationError(
            f"seller_fee_basis_points must be an integer in [0, {MAX_BASIS_POINTS}], got {bps!r}"
        )

    if payload.creators is not None:
        creators = payload.creators
        if not creators:
            raise PayloadValidationError("creators must be omitted or hold at least one creator")
        if len(creators) > MAX_CREATOR_LIMIT:
            raise PayloadValidationError(
                f"At most {MAX_CREATOR_LIMIT} creators allowed, got {len(creators)}"
            )
        seen = set()
        for c in creators:
            if not _is_int(c.share) or not 0 <= c.share <= 100:
                raise PayloadValidationError(f"Creator {c.address} share must be in [0, 100]")
            if c.address in seen:
                raise PayloadValidationError(f"Duplicate creator {c.address}")
            seen.add(c.address)
        total = sum(c.share for c in creators)
        if total != 100:
            raise PayloadValidationError(f"Creator shares must sum to 100, got {total}")

    if payload.uses is not None:
        u = payload.uses
        if not _is_int(u.remaining) or not _is_int(u.total) or u.remaining < 0 or u.total < 0:
            raise PayloadValidationError("uses.remaining and uses.total must be non-negative integers")
        if u.remaining > u.total:
            raise PayloadValidationError("uses.remaining cannot exceed uses.total")

    if payload.collection_details is not None:
        if not _is_int(payload.collection_details) or payload.collection_details < 0:
            raise PayloadValidationError("collection_details size must be a non-negative integer")


CreatorInput = Union[Creator, Tuple[PubkeyLike, int], Dict[str, Any]]


def _to_creator(value: CreatorInput, signer: Optional[Pubkey]) -> Creator:
    if isinstance(value, Creator):
        return value
    if isinstance(value, dict):
        address = to_pubkey(value["address"])
        share = value["share"]
        verified = value.get("verified")
    else:
        address, share = value
        address = to_pubkey(address)
        verified = None
    # A creator can only be marked verified by signing the transaction.
    if verified is None:
        verified = signer is not None and address == signer
    return Creator(address=address, share=share, verified=bool(verified))


def build_payload(
    name: str,
    symbol: str,
    uri: str,
    seller_fee_basis_points: int,
    creators: Optional[Iterable[CreatorInput]] = None,
    collection: Optional[PubkeyLike] = None,
    uses: Optional[Uses] = None,
    is_mutable: bool = True,
    collection_details: Optional[int] = None,
    signer: Optional[Pubkey] = None,
) -> MetadataPayload:
    """
    Assemble and validate a metadata payload. Raises PayloadValidationError
    before anything touches the network.
    """
    creator_records = None
    if creators is not None:
        try:
            creator_records = tuple(_to_creator(c, signer) for c in creators)
        except (KeyError, TypeError, ValueError) as e:
            raise PayloadValidationError(f"Malformed creator entry: {e}")

    collection_record = None
    if collection is not None:
        try:
            collection_record = Collection(key=to_pubkey(collection))
        except ValueError as e:
            raise PayloadValidationError(f"Malformed collection key: {e}")

    return MetadataPayload(
        name=name,
        symbol=symbol,
        uri=uri,
        seller_fee_basis_points=seller_fee_basis_points,
        creators=creator_records,
        collection=collection_record,
        uses=uses,
        is_mutable=is_mutable,
        collection_details=collection_details,
    )


# --- borsh layouts ---

PubkeyLayout = U8[32]

CreatorLayout = CStruct(
    "address" / PubkeyLayout,
    "verified" / Bool,
    "share" / U8,
)
CollectionLayout = CStruct(
    "verified" / Bool,
    "key" / PubkeyLayout,
)
UseMethodLayout = Enum("Burn", "Multiple", "Single", enum_name="UseMethod")
UsesLayout = CStruct(
    "use_method" / UseMethodLayout,
    "remaining" / U64,
    "total" / U64,
)
DataV2Layout = CStruct(
    "name" / String,
    "symbol" / String,
    "uri" / String,
    "seller_fee_basis_points" / U16,
    "creators" / Option(Vec(CreatorLayout)),
    "collection" / Option(CollectionLayout),
    "uses" / Option(UsesLayout),
)
CollectionDetailsLayout = Enum("V1" / CStruct("size" / U64), enum_name="CollectionDetails")
CreateMetadataAccountArgsV3Layout = CStruct(
    "data" / DataV2Layout,
    "is_mutable" / Bool,
    "collection_details" / Option(CollectionDetailsLayout),
)


def encode_create_metadata_args(payload: MetadataPayload) -> bytes:
    creators = None
    if payload.creators is not None:
        creators = [
            {"address": list(bytes(c.address)), "verified": c.verified, "share": c.share}
            for c in payload.creators
        ]
    collection = None
    if payload.collection is not None:
        collection = {
            "verified": payload.collection.verified,
            "key": list(bytes(payload.collection.key)),
        }
    uses = None
    if payload.uses is not None:
        uses = {
            "use_method": getattr(UseMethodLayout.enum, payload.uses.use_method.value)(),
            "remaining": payload.uses.remaining,
            "total": payload.uses.total,
        }
    details = None
    if payload.collection_details is not None:
        details = CollectionDetailsLayout.enum.V1(size=payload.collection_details)

    body = CreateMetadataAccountArgsV3Layout.build(
        {
            "data": {
                "name": payload.name,
                "symbol": payload.symbol,
                "uri": payload.uri,
                "seller_fee_basis_points": payload.seller_fee_basis_points,
                "creators": creators,
                "collection": collection,
                "uses": uses,
            },
            "is_mutable": payload.is_mutable,
            "collection_details": details,
        }
    )
    return bytes([CREATE_METADATA_ACCOUNT_V3_DISCRIMINATOR]) + body


@dataclass
class CreateMetadataAccounts:
    """
    Accounts for CreateMetadataAccountV3. Optional fields are resolved when
    the record is built: payer and update authority fall back to the mint
    authority, which then also signs as update authority.
    """

    metadata: Pubkey
    mint: Pubkey
    mint_authority: Pubkey
    payer: Optional[Pubkey] = None
    update_authority: Optional[Pubkey] = None
    update_authority_is_signer: Optional[bool] = None
    system_program: Pubkey = SYS_PROGRAM_ID
    rent: Optional[Pubkey] = RENT

    def __post_init__(self) -> None:
        if self.payer is None:
            self.payer = self.mint_authority
        if self.update_authority is None:
            self.update_authority = self.mint_authority
        if self.update_authority_is_signer is None:
            self.update_authority_is_signer = self.update_authority in (
                self.mint_authority,
                self.payer,
            )

    def to_account_metas(self) -> List[AccountMeta]:
        metas = [
            AccountMeta(self.metadata, is_signer=False, is_writable=True),
            AccountMeta(self.mint, is_signer=False, is_writable=False),
            AccountMeta(self.mint_authority, is_signer=True, is_writable=False),
            AccountMeta(self.payer, is_signer=True, is_writable=True),
            AccountMeta(
                self.update_authority,
                is_signer=bool(self.update_authority_is_signer),
                is_writable=False,
            ),
            AccountMeta(self.system_program, is_signer=False, is_writable=False),
        ]
        if self.rent is not None:
            metas.append(AccountMeta(self.rent, is_signer=False, is_writable=False))
        return metas


def create_metadata_account_v3_instruction(
    accounts: CreateMetadataAccounts,
    payload: MetadataPayload,
    program_id: PubkeyLike = TOKEN_METADATA_PROGRAM_ID,
) -> Instruction:
    return Instruction(
        to_pubkey(program_id),
        encode_create_metadata_args(payload),
        accounts.to_account_metas(),
    )


def create_metadata_account(
    rpc: Any,
    signer: Keypair,
    mint: PubkeyLike,
    payload: MetadataPayload,
    update_authority: Optional[PubkeyLike] = None,
    program_id: PubkeyLike = TOKEN_METADATA_PROGRAM_ID,
    commitment: str = DEFAULT_COMMITMENT,
    timeout_s: float = 60.0,
) -> Tuple[Pubkey, str]:
    """
    Derive the metadata PDA for `mint`, then create it in one transaction
    signed by the mint authority. Returns (metadata address, signature).
    """
    mint_key = to_pubkey(mint)
    metadata_address, bump = derive_metadata_address(mint_key, program_id)
    log.info("Metadata PDA      : %s (bump %d)", metadata_address, bump)

    accounts = CreateMetadataAccounts(
        metadata=metadata_address,
        mint=mint_key,
        mint_authority=signer.pubkey(),
        update_authority=to_pubkey(update_authority) if update_authority else None,
    )
    ix = create_metadata_account_v3_instruction(accounts, payload, program_id)
    signature = send_and_confirm(
        rpc, [ix], [signer], commitment=commitment, timeout_s=timeout_s
    )
    return metadata_address, signature


# --- master edition ---

CreateMasterEditionArgsLayout = CStruct("max_supply" / Option(U64))


def encode_create_master_edition_args(max_supply: Optional[int]) -> bytes:
    """max_supply None means unlimited prints; 0 makes the NFT one of one."""
    if max_supply is not None and (not _is_int(max_supply) or not 0 <= max_supply < 2**64):
        raise PayloadValidationError(f"max_supply must be a u64 or None, got {max_supply!r}")
    body = CreateMasterEditionArgsLayout.build({"max_supply": max_supply})
    return bytes([CREATE_MASTER_EDITION_V3_DISCRIMINATOR]) + body


@dataclass
class CreateMasterEditionAccounts:
    """Accounts for CreateMasterEditionV3, in program order."""

    edition: Pubkey
    mint: Pubkey
    mint_authority: Pubkey
    metadata: Pubkey
    update_authority: Optional[Pubkey] = None
    payer: Optional[Pubkey] = None
    token_program: Pubkey = TOKEN_PROGRAM_ID
    system_program: Pubkey = SYS_PROGRAM_ID
    rent: Optional[Pubkey] = RENT

    def __post_init__(self) -> None:
        if self.update_authority is None:
            self.update_authority = self.mint_authority
        if self.payer is None:
            self.payer = self.mint_authority

    def to_account_metas(self) -> List[AccountMeta]:
        metas = [
            AccountMeta(self.edition, is_signer=False, is_writable=True),
            AccountMeta(self.mint, is_signer=False, is_writable=True),
            AccountMeta(self.update_authority, is_signer=True, is_writable=False),
            AccountMeta(self.mint_authority, is_signer=True, is_writable=False),
            AccountMeta(self.payer, is_signer=True, is_writable=True),
            AccountMeta(self.metadata, is_signer=False, is_writable=True),
            AccountMeta(self.token_program, is_signer=False, is_writable=False),
            AccountMeta(self.system_program, is_signer=False, is_writable=False),
        ]
        if self.rent is not None:
            metas.append(AccountMeta(self.rent, is_signer=False, is_writable=False))
        return metas


def create_master_edition_v3_instruction(
    accounts: CreateMasterEditionAccounts,
    max_supply: Optional[int] = 0,
    program_id: PubkeyLike = TOKEN_METADATA_PROGRAM_ID,
) -> Instruction:
    return Instruction(
        to_pubkey(program_id),
        encode_create_master_edition_args(max_supply),
        accounts.to_account_metas(),
    )


@dataclass(frozen=True)
class MintedNft:
    mint: Pubkey
    token_account: Pubkey
    metadata: Pubkey
    master_edition: Pubkey
    signature: str


def create_nft(
    rpc: Any,
    signer: Keypair,
    payload: MetadataPayload,
    owner: Optional[PubkeyLike] = None,
    max_supply: Optional[int] = 0,
    mint_keypair: Optional[Keypair] = None,
    program_id: PubkeyLike = TOKEN_METADATA_PROGRAM_ID,
    commitment: str = DEFAULT_COMMITMENT,
    timeout_s: float = 60.0,
) -> MintedNft:
    """
    Mint a non-fungible token in a single transaction:

    1) create and initialize a 0-decimal mint (signer is mint and freeze authority)
    2) create the owner's associated token account and mint exactly 1 token into it
    3) create the metadata account
    4) create the master edition, which takes over both mint authorities

    The signer pays for everything and is the update authority.
    """
    encode_create_master_edition_args(max_supply)

    mint_keypair = mint_keypair or Keypair()
    mint = mint_keypair.pubkey()
    authority = signer.pubkey()
    owner_key = to_pubkey(owner) if owner else authority

    token_account = derive_associated_token_address(owner_key, mint)
    metadata_address, _ = derive_metadata_address(mint, program_id)
    edition_address, _ = derive_master_edition_address(mint, program_id)
    log.info("Mint             : %s", mint)
    log.info("Metadata PDA     : %s", metadata_address)
    log.info("Master edition   : %s", edition_address)

    lamports = rpc.get_minimum_balance_for_rent_exemption(MINT_ACCOUNT_SIZE, commitment)
    instructions = mint_account_instructions(authority, mint, lamports, 0, authority, authority)
    instructions.append(create_associated_token_account(authority, owner_key, mint))
    instructions.append(
        mint_to(
            MintToParams(
                program_id=TOKEN_PROGRAM_ID,
                mint=mint,
                dest=token_account,
                mint_authority=authority,
                amount=1,
            )
        )
    )
    instructions.append(
        create_metadata_account_v3_instruction(
            CreateMetadataAccounts(metadata=metadata_address, mint=mint, mint_authority=authority),
            payload,
            program_id,
        )
    )
    instructions.append(
        create_master_edition_v3_instruction(
            CreateMasterEditionAccounts(
                edition=edition_address,
                mint=mint,
                mint_authority=authority,
                metadata=metadata_address,
            ),
            max_supply,
            program_id,
        )
    )

    signature = send_and_confirm(
        rpc, instructions, [signer, mint_keypair], commitment=commitment, timeout_s=timeout_s
    )
    return MintedNft(
        mint=mint,
        token_account=token_account,
        metadata=metadata_address,
        master_edition=edition_address,
        signature=signature,
    )


def build_offchain_metadata(
    name: str,
    symbol: str,
    description: str,
    image_uri: str,
    creators: Sequence[Creator] = (),
    attributes: Sequence[Tuple[str, str]] = (),
    image_type: str = "image/png",
    external_url: Optional[str] = None,
) -> Dict[str, Any]:
    """JSON document wallets fetch from the on-chain `uri`."""
    creator_entries = [{"address": str(c.address), "share": c.share} for c in creators]
    doc: Dict[str, Any] = {
        "name": name,
        "symbol": symbol,
        "description": description,
        "image": image_uri,
        "attributes": [{"trait_type": t, "value": v} for t, v in attributes],
        "properties": {
            "files": [{"type": image_type, "uri": image_uri}],
            "creators": creator_entries,
        },
        "creators": creator_entries,
    }
    if external_url:
        doc["external_url"] = external_url
    return doc
