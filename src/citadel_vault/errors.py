"""
Vault Exception Classes
"""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Machine-readable error kinds, one per exception class."""

    CANNOT_DECRYPT = "cannot_decrypt"
    BAD_CIPHER_PARAMS = "bad_cipher_params"
    NOT_FAST_FORWARD = "not_fast_forward"
    BAD_CREDENTIALS = "bad_credentials"
    DEMO_MODE = "demo_mode"
    NETWORK_ERROR = "network_error"
    OFFLINE_MODE = "offline_mode"
    BACKEND_UNAVAILABLE = "backend_unavailable"
    NO_SUCH_ENTRY = "no_such_entry"
    ROTATION_DIVERGED = "rotation_diverged"


class VaultError(Exception):
    """Base exception for vault operations"""

    code: ErrorCode = ErrorCode.NETWORK_ERROR

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message} ({self.cause})"
        return self.message


class DecryptionFailure(VaultError):
    """Raised when a cipher is malformed or was made with another key"""
    code = ErrorCode.CANNOT_DECRYPT


class CipherParameterError(DecryptionFailure):
    """Raised when a cipher parameter record is structurally invalid"""
    code = ErrorCode.BAD_CIPHER_PARAMS


class MissingCipherParameter(CipherParameterError):
    """Raised when a parameter required by the AEAD mode is absent.

    ``field`` holds the parameter name (``"tag_size"``, ``"iv"``, ...).
    """

    def __init__(self, field: str, description: str):
        super().__init__(f"missing {description}")
        self.field = field


class StaleWrite(VaultError):
    """Raised when the server has a newer version of the database"""
    code = ErrorCode.NOT_FAST_FORWARD


class BadCredentials(VaultError):
    """Raised when the server rejects the remote key"""
    code = ErrorCode.BAD_CREDENTIALS


class DemoModeRejected(VaultError):
    """Raised when a demo server refuses a write"""
    code = ErrorCode.DEMO_MODE


class NetworkError(VaultError):
    """Raised when the transport fails or the server answers garbage"""
    code = ErrorCode.NETWORK_ERROR


class OfflineModeViolation(VaultError):
    """Raised when an online-only operation is attempted on an offline vault"""
    code = ErrorCode.OFFLINE_MODE

    def __init__(self, operation: str):
        super().__init__(f"{operation} is not allowed in offline mode")
        self.operation = operation


class BackendUnavailable(VaultError):
    """Raised when no crypto backend can perform the requested operation"""
    code = ErrorCode.BACKEND_UNAVAILABLE


class NoSuchEntry(VaultError):
    """Raised when an entry id is not present in the store"""
    code = ErrorCode.NO_SUCH_ENTRY

    def __init__(self, entry_id: str):
        super().__init__(f"no entry with id {entry_id!r}")
        self.entry_id = entry_id


class PasswordRotationDiverged(VaultError):
    """Raised when the server adopted a new remote key that could not be confirmed.

    The push introducing the new remote key succeeded, the confirmation
    pull failed, and the server no longer accepts the old remote key.
    ``pending_credentials`` holds the credentials the server now expects so
    the caller can re-authenticate with the new master password.
    """
    code = ErrorCode.ROTATION_DIVERGED

    def __init__(self, message: str, pending_credentials, cause: Optional[BaseException] = None):
        super().__init__(message, cause)
        self.pending_credentials = pending_credentials
