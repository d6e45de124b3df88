from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigError
from .project_constants import (
    CLUSTER_URLS,
    COMMITMENT_LEVELS,
    DEFAULT_CLUSTER,
    DEFAULT_COMMITMENT,
)


@dataclass(frozen=True)
class StorageSettings:
    upload_url: str
    api_key: str
    gateway_url: str


@dataclass(frozen=True)
class Settings:
    rpc_url: str
    cluster: str
    wallet_path: str
    commitment: str = DEFAULT_COMMITMENT
    confirm_timeout_s: float = 60.0

    @staticmethod
    def from_env(
        rpc_url_override: str | None = None,
        wallet_override: str | None = None,
        cluster_override: str | None = None,
    ) -> "Settings":
        load_dotenv()

        cluster = (cluster_override or os.getenv("SOLANA_CLUSTER", "")).strip() or DEFAULT_CLUSTER
        if cluster not in CLUSTER_URLS:
            raise ConfigError(
                f"Unknown cluster {cluster!r}. Expected one of: {', '.join(CLUSTER_URLS)}"
            )

        # If user provides --rpc-url, trust it. Otherwise RPC_URL, else the public endpoint.
        rpc_url = rpc_url_override or os.getenv("RPC_URL", "").strip() or CLUSTER_URLS[cluster]

        wallet_path = wallet_override or os.getenv("WALLET_PATH", "").strip() or "wallet.json"

        commitment = os.getenv("COMMITMENT", "").strip() or DEFAULT_COMMITMENT
        if commitment not in COMMITMENT_LEVELS:
            raise ConfigError(
                f"Unknown COMMITMENT {commitment!r}. Expected one of: {', '.join(COMMITMENT_LEVELS)}"
            )

        timeout_raw = os.getenv("CONFIRM_TIMEOUT", "").strip()
        try:
            confirm_timeout_s = float(timeout_raw) if timeout_raw else 60.0
        except ValueError:
            raise ConfigError(f"CONFIRM_TIMEOUT must be a number of seconds, got {timeout_raw!r}")

        return Settings(
            rpc_url=rpc_url,
            cluster=cluster,
            wallet_path=wallet_path,
            commitment=commitment,
            confirm_timeout_s=confirm_timeout_s,
        )


def storage_from_env(gateway_override: Optional[str] = None) -> StorageSettings:
    load_dotenv()

    upload_url = os.getenv("STORAGE_UPLOAD_URL", "").strip()
    api_key = os.getenv("STORAGE_API_KEY", "").strip()
    if not upload_url or not api_key:
        raise ConfigError(
            "Missing STORAGE_UPLOAD_URL or STORAGE_API_KEY. Put them in .env or export them."
        )

    gateway_url = gateway_override or os.getenv("STORAGE_GATEWAY_URL", "").strip() or "https://ipfs.io/ipfs"
    return StorageSettings(
        upload_url=upload_url,
        api_key=api_key,
        gateway_url=gateway_url.rstrip("/"),
    )
