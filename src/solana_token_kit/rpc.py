from __future__ import annotations

import base64
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from .errors import RpcError

log = logging.getLogger(__name__)


class RpcClient:
    """Thin JSON-RPC client over the handful of methods the token kit needs."""

    def __init__(self, rpc_url: str, timeout_s: float = 60.0) -> None:
        self.rpc_url = rpc_url
        self.client = httpx.Client(timeout=timeout_s)
        self._request_id = 0

    def close(self) -> None:
        self.client.close()

    def _post(self, method: str, params: List[Any]) -> Dict[str, Any]:
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params,
        }
        log.debug("RPC %s -> %s", method, self.rpc_url)
        try:
            resp = self.client.post(self.rpc_url, json=payload)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RpcError(f"{method} answered HTTP {e.response.status_code}", e.response.status_code)
        except httpx.HTTPError as e:
            raise RpcError(f"{method} could not reach {self.rpc_url}: {e}")
        try:
            data = resp.json()
        except ValueError:
            raise RpcError(f"{method} answered with non-JSON body: {resp.text[:200]}")
        if "error" in data:
            raise RpcError(data["error"])
        return data

    def get_latest_blockhash(self, commitment: str = "confirmed") -> Tuple[str, int]:
        """Returns (blockhash, lastValidBlockHeight)."""
        data = self._post("getLatestBlockhash", [{"commitment": commitment}])
        value = data["result"]["value"]
        return value["blockhash"], int(value["lastValidBlockHeight"])

    def get_block_height(self, commitment: str = "confirmed") -> int:
        data = self._post("getBlockHeight", [{"commitment": commitment}])
        return int(data["result"])

    def get_minimum_balance_for_rent_exemption(
        self, data_size: int, commitment: str = "confirmed"
    ) -> int:
        data = self._post(
            "getMinimumBalanceForRentExemption",
            [data_size, {"commitment": commitment}],
        )
        return int(data["result"])

    def get_account_info(
        self, address: str, commitment: str = "confirmed"
    ) -> Optional[Dict[str, Any]]:
        """Returns the account object, or None when the account does not exist."""
        data = self._post(
            "getAccountInfo",
            [address, {"encoding": "base64", "commitment": commitment}],
        )
        return data["result"]["value"]

    def send_transaction(
        self,
        raw_transaction: bytes,
        skip_preflight: bool = False,
        preflight_commitment: str = "confirmed",
    ) -> str:
        """Submits a signed, serialized transaction and returns its signature."""
        data = self._post(
            "sendTransaction",
            [
                base64.b64encode(raw_transaction).decode("ascii"),
                {
                    "encoding": "base64",
                    "skipPreflight": skip_preflight,
                    "preflightCommitment": preflight_commitment,
                },
            ],
        )
        return data["result"]

    def get_signature_statuses(
        self, signatures: Sequence[str]
    ) -> List[Optional[Dict[str, Any]]]:
        """
        One entry per signature, None while the cluster has not seen it.
        Each entry carries 'confirmationStatus' and 'err'.
        """
        data = self._post(
            "getSignatureStatuses",
            [list(signatures), {"searchTransactionHistory": False}],
        )
        return data["result"]["value"]
