from __future__ import annotations

from typing import Any, Optional


class TokenKitError(Exception):
    """Base exception for every failure the token kit reports."""


class ConfigError(TokenKitError, RuntimeError):
    """Missing or invalid settings in the environment or .env file."""


class PayloadValidationError(TokenKitError, ValueError):
    """Metadata input rejected locally, before anything is sent."""


class DerivationError(TokenKitError):
    """No off-curve address exists for the given seeds. Not retryable."""


class WalletError(TokenKitError):
    """Key file missing or not a 64-byte secret key array."""


class RpcError(TokenKitError, RuntimeError):
    """JSON-RPC endpoint answered with an error object, or could not be reached."""

    def __init__(self, error: Any, status_code: Optional[int] = None) -> None:
        super().__init__(f"RPC error: {error}")
        self.error = error
        self.status_code = status_code


class TransactionFailedError(TokenKitError):
    """The cluster processed the transaction and rejected it."""

    def __init__(self, signature: str, error: Any, state: Any = None) -> None:
        super().__init__(f"Transaction {signature} failed: {error}")
        self.signature = signature
        self.error = error
        self.state = state


class ConfirmationTimeoutError(TokenKitError, TimeoutError):
    """Transaction not confirmed before the deadline or blockhash expiry."""

    def __init__(
        self,
        signature: str,
        reason: str,
        last_status: Optional[str] = None,
        state: Any = None,
    ) -> None:
        super().__init__(f"Transaction {signature} not confirmed: {reason}")
        self.signature = signature
        self.reason = reason
        self.last_status = last_status
        self.state = state


class UploadError(TokenKitError):
    """Storage service refused the upload or returned no content id."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code:
            return f"[{self.status_code}] {self.args[0]}"
        return self.args[0]
