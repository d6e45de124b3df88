from __future__ import annotations

import json
from typing import List

import base58
from solders.keypair import Keypair

from .errors import WalletError


def _secret_from_json(path: str, raw: str) -> bytes:
    try:
        values = json.loads(raw)
    except json.JSONDecodeError as e:
        raise WalletError(f"Wallet file {path} is not valid JSON: {e}")

    if not isinstance(values, list):
        raise WalletError(f"Wallet file {path} must hold a JSON array of bytes.")
    out: List[int] = []
    for b in values:
        if isinstance(b, bool) or not isinstance(b, int) or not 0 <= b <= 255:
            raise WalletError(f"Wallet file {path} contains values outside 0-255.")
        out.append(b)
    return bytes(out)


def load_keypair(path: str) -> Keypair:
    """
    Supports:
    1) Solana CLI key file: JSON array of 64 integers (secret seed + public key)
    2) Raw base58 string of the same 64 bytes (wallet "export private key")
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = f.read().strip()
    except FileNotFoundError:
        raise WalletError(f"Wallet file not found: {path}")
    except OSError as e:
        raise WalletError(f"Cannot read wallet file {path}: {e}")

    if raw.startswith("["):
        secret = _secret_from_json(path, raw)
    else:
        try:
            secret = base58.b58decode(raw)
        except ValueError as e:
            raise WalletError(f"Wallet file {path} is neither a JSON array nor base58: {e}")

    if len(secret) != 64:
        raise WalletError(f"Wallet file {path} must hold 64 secret key bytes, got {len(secret)}.")

    try:
        return Keypair.from_bytes(secret)
    except ValueError as e:
        raise WalletError(f"Wallet file {path} does not hold a valid ed25519 keypair: {e}")
