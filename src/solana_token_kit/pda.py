from __future__ import annotations

from typing import Sequence, Tuple, Union

from solders.pubkey import Pubkey
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import get_associated_token_address

from .errors import DerivationError
from .project_constants import (
    EDITION_SEED,
    MAX_SEED_LENGTH,
    MAX_SEEDS,
    METADATA_SEED,
    TOKEN_METADATA_PROGRAM_ID,
)

PubkeyLike = Union[Pubkey, str]


def to_pubkey(value: PubkeyLike) -> Pubkey:
    if isinstance(value, Pubkey):
        return value
    try:
        return Pubkey.from_string(value)
    except ValueError as e:
        raise ValueError(f"Not a valid base58 public key: {value!r} ({e})")


def _check_seeds(seeds: Sequence[bytes], max_seeds: int = MAX_SEEDS) -> None:
    # Same limits the runtime enforces
    if len(seeds) > max_seeds:
        raise DerivationError(f"Too many seeds: {len(seeds)} > {max_seeds}")
    for seed in seeds:
        if len(seed) > MAX_SEED_LENGTH:
            raise DerivationError(
                f"Seed too long: {len(seed)} bytes > {MAX_SEED_LENGTH}"
            )


def create_program_address(seeds: Sequence[bytes], program_id: PubkeyLike) -> Pubkey:
    """
    Address for the exact seeds given (bump included).
    Raises DerivationError when the hash lands on the ed25519 curve.
    """
    seeds = [bytes(s) for s in seeds]
    _check_seeds(seeds)
    try:
        return Pubkey.create_program_address(seeds, to_pubkey(program_id))
    except ValueError as e:
        raise DerivationError(f"Derived address falls on the ed25519 curve: {e}")


def find_program_address(
    seeds: Sequence[bytes], program_id: PubkeyLike
) -> Tuple[Pubkey, int]:
    """
    Canonical PDA: the first off-curve address searching bump 255 down to 0.

    Pubkey.find_program_address raises a Rust panic (a BaseException)
    when no bump works, so the search walks the bumps here and reports that
    case as DerivationError.
    """
    seeds = [bytes(s) for s in seeds]
    # Leave room for the bump seed
    _check_seeds(seeds, max_seeds=MAX_SEEDS - 1)
    program = to_pubkey(program_id)

    for bump in range(255, -1, -1):
        try:
            return create_program_address(seeds + [bytes([bump])], program), bump
        except DerivationError:
            continue
    raise DerivationError("Unable to find a viable program address bump seed")


def derive_metadata_address(
    mint: PubkeyLike, program_id: PubkeyLike = TOKEN_METADATA_PROGRAM_ID
) -> Tuple[Pubkey, int]:
    # Order is fixed: prefix, program id, mint
    program = to_pubkey(program_id)
    seeds = [METADATA_SEED, bytes(program), bytes(to_pubkey(mint))]
    return find_program_address(seeds, program)


def derive_master_edition_address(
    mint: PubkeyLike, program_id: PubkeyLike = TOKEN_METADATA_PROGRAM_ID
) -> Tuple[Pubkey, int]:
    program = to_pubkey(program_id)
    seeds = [METADATA_SEED, bytes(program), bytes(to_pubkey(mint)), EDITION_SEED]
    return find_program_address(seeds, program)


def derive_associated_token_address(
    owner: PubkeyLike,
    mint: PubkeyLike,
    token_program_id: Pubkey = TOKEN_PROGRAM_ID,
) -> Pubkey:
    return get_associated_token_address(to_pubkey(owner), to_pubkey(mint), token_program_id)
