from __future__ import annotations

import logging
from typing import Any, List, Optional, Tuple

from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.system_program import CreateAccountParams, create_account
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import (
    InitializeMintParams,
    MintToParams,
    TransferParams,
    create_associated_token_account,
    initialize_mint,
    mint_to as mint_to_ix,
    transfer as transfer_ix,
)

from .pda import PubkeyLike, derive_associated_token_address, to_pubkey
from .project_constants import DEFAULT_COMMITMENT, MAX_DECIMALS, MINT_ACCOUNT_SIZE
from .transactions import send_and_confirm

log = logging.getLogger(__name__)


def _check_amount(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValueError(f"Amount must be a positive integer of base units, got {amount!r}")
    if amount >= 2**64:
        raise ValueError(f"Amount {amount} does not fit in u64")


def _check_decimals(decimals: int) -> None:
    if isinstance(decimals, bool) or not isinstance(decimals, int) or not 0 <= decimals <= MAX_DECIMALS:
        raise ValueError(f"Decimals must be an integer in [0, {MAX_DECIMALS}], got {decimals!r}")


def mint_account_instructions(
    payer: Pubkey,
    mint: Pubkey,
    lamports: int,
    decimals: int,
    mint_authority: Pubkey,
    freeze_authority: Optional[Pubkey] = None,
) -> List[Instruction]:
    """System create_account for the 82-byte mint followed by initialize_mint."""
    return [
        create_account(
            CreateAccountParams(
                from_pubkey=payer,
                to_pubkey=mint,
                lamports=lamports,
                space=MINT_ACCOUNT_SIZE,
                owner=TOKEN_PROGRAM_ID,
            )
        ),
        initialize_mint(
            InitializeMintParams(
                decimals=decimals,
                program_id=TOKEN_PROGRAM_ID,
                mint=mint,
                mint_authority=mint_authority,
                freeze_authority=freeze_authority,
            )
        ),
    ]


def create_mint(
    rpc: Any,
    payer: Keypair,
    decimals: int,
    mint_authority: Optional[PubkeyLike] = None,
    freeze_authority: Optional[PubkeyLike] = None,
    mint_keypair: Optional[Keypair] = None,
    commitment: str = DEFAULT_COMMITMENT,
    timeout_s: float = 60.0,
) -> Tuple[Pubkey, str]:
    """
    Allocate and initialize a new SPL mint in one transaction.
    Mint authority defaults to the payer; no freeze authority unless given.
    """
    _check_decimals(decimals)

    mint_keypair = mint_keypair or Keypair()
    mint = mint_keypair.pubkey()
    authority = to_pubkey(mint_authority) if mint_authority else payer.pubkey()
    freeze = to_pubkey(freeze_authority) if freeze_authority else None

    lamports = rpc.get_minimum_balance_for_rent_exemption(MINT_ACCOUNT_SIZE, commitment)
    log.debug("Rent-exempt minimum for mint: %d lamports", lamports)

    instructions = mint_account_instructions(payer.pubkey(), mint, lamports, decimals, authority, freeze)
    signature = send_and_confirm(
        rpc, instructions, [payer, mint_keypair], commitment=commitment, timeout_s=timeout_s
    )
    return mint, signature


def get_or_create_associated_token_account(
    rpc: Any,
    payer: Keypair,
    mint: PubkeyLike,
    owner: PubkeyLike,
    commitment: str = DEFAULT_COMMITMENT,
    timeout_s: float = 60.0,
) -> Tuple[Pubkey, Optional[str]]:
    """
    Returns (ata address, signature). Signature is None when the account
    already existed and nothing was sent.
    """
    mint_key = to_pubkey(mint)
    owner_key = to_pubkey(owner)
    ata = derive_associated_token_address(owner_key, mint_key)

    if rpc.get_account_info(str(ata), commitment) is not None:
        log.debug("ATA %s already exists", ata)
        return ata, None

    log.info("Creating ATA %s for owner %s", ata, owner_key)
    ix = create_associated_token_account(payer.pubkey(), owner_key, mint_key)
    signature = send_and_confirm(rpc, [ix], [payer], commitment=commitment, timeout_s=timeout_s)
    return ata, signature


def mint_to(
    rpc: Any,
    payer: Keypair,
    mint: PubkeyLike,
    destination: PubkeyLike,
    amount: int,
    authority: Optional[Keypair] = None,
    commitment: str = DEFAULT_COMMITMENT,
    timeout_s: float = 60.0,
) -> str:
    """Mint `amount` base units into the token account `destination`."""
    _check_amount(amount)
    authority = authority or payer

    ix = mint_to_ix(
        MintToParams(
            program_id=TOKEN_PROGRAM_ID,
            mint=to_pubkey(mint),
            dest=to_pubkey(destination),
            mint_authority=authority.pubkey(),
            amount=amount,
        )
    )
    signers = [payer] if authority.pubkey() == payer.pubkey() else [payer, authority]
    return send_and_confirm(rpc, [ix], signers, commitment=commitment, timeout_s=timeout_s)


def transfer(
    rpc: Any,
    payer: Keypair,
    source: PubkeyLike,
    destination: PubkeyLike,
    amount: int,
    owner: Optional[Keypair] = None,
    commitment: str = DEFAULT_COMMITMENT,
    timeout_s: float = 60.0,
) -> str:
    """Move `amount` base units between two token accounts of the same mint."""
    _check_amount(amount)
    owner = owner or payer

    ix = transfer_ix(
        TransferParams(
            program_id=TOKEN_PROGRAM_ID,
            source=to_pubkey(source),
            dest=to_pubkey(destination),
            owner=owner.pubkey(),
            amount=amount,
        )
    )
    signers = [payer] if owner.pubkey() == payer.pubkey() else [payer, owner]
    return send_and_confirm(rpc, [ix], signers, commitment=commitment, timeout_s=timeout_s)
