"""
Confidential Bank Error Handling

Error codes and exception classes. Call-local errors abort only the call that
raised them; codec and key errors are fatal for the call and are never retried.
"""

from enum import IntEnum
from typing import Any, Optional


class ErrorCode(IntEnum):
    """Bank error codes."""

    # 1xxx - Ledger call errors
    TOKEN_ALREADY_EXISTS = 1001
    TOKEN_NOT_FOUND = 1002
    UNAUTHORIZED_MINTER = 1003
    FROZEN_TOKEN = 1004
    ALREADY_FROZEN = 1005
    UNKNOWN_CALL = 1006

    # 2xxx - Serialization errors
    CODEC_ERROR = 2001
    KEY_SERIALIZATION = 2002
    KEY_DESERIALIZATION = 2003

    # 3xxx - Evaluation errors
    CONTEXT_RELEASED = 3001
    KEYS_NOT_INITIALIZED = 3002
    UNKNOWN_BACKEND = 3003

    # 4xxx - Query / configuration errors
    DECRYPTION_UNAVAILABLE = 4001
    CONFIG_ERROR = 4002


class BankError(Exception):
    """Base exception for all confidential bank errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[Any] = None
    ):
        self.code = code
        self.message = message
        self.details = details
        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict for API responses."""
        result = {
            "code": self.code.value,
            "name": self.code.name,
            "message": self.message,
        }
        if self.details is not None:
            result["details"] = self.details
        return result


# ==============================================================================
# Ledger call errors (1xxx)
# ==============================================================================

class TokenAlreadyExists(BankError):
    def __init__(self, token_name: str, token_id: Any):
        super().__init__(
            ErrorCode.TOKEN_ALREADY_EXISTS,
            f"Token {token_name} at {token_id} already exists",
            {"token_name": token_name, "token_id": str(token_id)}
        )


class TokenNotFound(BankError):
    def __init__(self, token_id: Any):
        super().__init__(
            ErrorCode.TOKEN_NOT_FOUND,
            f"Token {token_id} not found",
            {"token_id": str(token_id)}
        )


class UnauthorizedMinter(BankError):
    def __init__(self, sender: Any, token_name: str):
        super().__init__(
            ErrorCode.UNAUTHORIZED_MINTER,
            f"Sender {sender} is not an authorized minter of token {token_name}",
            {"sender": str(sender), "token_name": token_name}
        )


class FrozenToken(BankError):
    def __init__(self, token_name: str):
        super().__init__(
            ErrorCode.FROZEN_TOKEN,
            f"Attempt to mint frozen token {token_name}",
            {"token_name": token_name}
        )


class AlreadyFrozen(BankError):
    def __init__(self, token_name: str):
        super().__init__(
            ErrorCode.ALREADY_FROZEN,
            f"Token {token_name} is already frozen",
            {"token_name": token_name}
        )


class UnknownCall(BankError):
    def __init__(self, name: str):
        super().__init__(
            ErrorCode.UNKNOWN_CALL,
            f"Unknown call message: {name}",
            {"call": name}
        )


# ==============================================================================
# Serialization errors (2xxx)
# ==============================================================================

class CodecError(BankError):
    def __init__(self, message: str, details: Any = None):
        super().__init__(ErrorCode.CODEC_ERROR, message, details)


class KeySerializationError(BankError):
    def __init__(self, status: Any, failed: list):
        super().__init__(
            ErrorCode.KEY_SERIALIZATION,
            f"Key material not fully serialized ({status}); failed: {', '.join(failed) or 'none'}",
            {"status": str(status), "failed": failed}
        )


class KeyDeserializationError(BankError):
    def __init__(self, key_name: str, reason: str):
        super().__init__(
            ErrorCode.KEY_DESERIALIZATION,
            f"Failed to deserialize {key_name} key: {reason}",
            {"key": key_name}
        )


# ==============================================================================
# Evaluation errors (3xxx)
# ==============================================================================

class ContextReleasedError(BankError):
    def __init__(self, backend: str):
        super().__init__(
            ErrorCode.CONTEXT_RELEASED,
            f"Evaluation context ({backend}) used after release",
            {"backend": backend}
        )


class KeysNotInitialized(BankError):
    def __init__(self, key_name: str):
        super().__init__(
            ErrorCode.KEYS_NOT_INITIALIZED,
            f"FHE {key_name} key is not set; run genesis first",
            {"key": key_name}
        )


class UnknownBackend(BankError):
    def __init__(self, name: str):
        super().__init__(
            ErrorCode.UNKNOWN_BACKEND,
            f"Unknown evaluation backend: {name}",
            {"backend": name}
        )


# ==============================================================================
# Query / configuration errors (4xxx)
# ==============================================================================

class DecryptionUnavailable(BankError):
    def __init__(self):
        super().__init__(
            ErrorCode.DECRYPTION_UNAVAILABLE,
            "No decryption authority configured for plaintext queries"
        )


class ConfigError(BankError):
    def __init__(self, message: str, details: Any = None):
        super().__init__(ErrorCode.CONFIG_ERROR, message, details)
