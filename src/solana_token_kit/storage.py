from __future__ import annotations

import json
import logging
import mimetypes
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from .errors import UploadError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenericFile:
    buffer: bytes
    file_name: str
    content_type: Optional[str] = None

    @staticmethod
    def from_path(path: str, file_name: str | None = None) -> "GenericFile":
        try:
            with open(path, "rb") as f:
                buffer = f.read()
        except OSError as e:
            raise UploadError(f"Cannot read {path}: {e}")
        name = file_name or os.path.basename(path)
        content_type, _ = mimetypes.guess_type(path)
        return GenericFile(buffer=buffer, file_name=name, content_type=content_type)


def extract_content_id(data: Any) -> str:
    """
    Supports the common pinning-service answers:
    1) {"ok": true, "value": {"cid": "..."}}
    2) {"cid": "..."}
    3) {"IpfsHash": "..."}
    """
    if isinstance(data, dict):
        value = data.get("value")
        if isinstance(value, dict) and isinstance(value.get("cid"), str):
            return value["cid"]
        if isinstance(data.get("cid"), str):
            return data["cid"]
        if isinstance(data.get("IpfsHash"), str):
            return data["IpfsHash"]

    raise UploadError(
        "Could not find a content id in upload response. "
        "Expected value.cid, cid or IpfsHash."
    )


class StorageUploader:
    def __init__(
        self,
        upload_url: str,
        api_key: str,
        gateway_url: str = "https://ipfs.io/ipfs",
        timeout_s: float = 120.0,
    ) -> None:
        self.upload_url = upload_url
        self.gateway_url = gateway_url.rstrip("/")
        self.client = httpx.Client(
            timeout=timeout_s,
            headers={"Authorization": f"Bearer {api_key}"},
        )

    def close(self) -> None:
        self.client.close()

    def upload(self, file: GenericFile) -> str:
        """Uploads the buffer and returns a gateway URI for it."""
        if not file.buffer:
            raise UploadError(f"Refusing to upload empty file {file.file_name}")

        content_type = file.content_type or "application/octet-stream"
        log.info("Uploading %s (%d bytes, %s)", file.file_name, len(file.buffer), content_type)
        try:
            resp = self.client.post(
                self.upload_url,
                files={"file": (file.file_name, file.buffer, content_type)},
            )
        except httpx.HTTPError as e:
            raise UploadError(f"Upload of {file.file_name} failed: {e}")

        if resp.status_code >= 400:
            raise UploadError(
                f"Upload of {file.file_name} failed: {resp.text}",
                status_code=resp.status_code,
            )
        try:
            data = resp.json()
        except ValueError:
            raise UploadError(f"Upload response is not JSON: {resp.text[:200]}")
        if isinstance(data, dict) and data.get("ok") is False:
            error = data.get("error")
            message = error.get("message") if isinstance(error, dict) else error
            message = message or "unknown error"
            raise UploadError(f"Upload of {file.file_name} failed: {message}")

        cid = extract_content_id(data)
        return f"{self.gateway_url}/{cid}"

    def upload_json(self, document: Dict[str, Any], file_name: str = "metadata.json") -> str:
        buffer = json.dumps(document, indent=2).encode("utf-8")
        return self.upload(GenericFile(buffer=buffer, file_name=file_name, content_type="application/json"))
