# Citadel Vault - Main Package
#
# Client engine for an encrypted, server-synchronized credential vault:
# master password key derivation, SJCL-compatible authenticated encryption
# on interchangeable crypto backends, fingerprint-checked push/pull and an
# offline cache.

__version__ = "0.3.0"
__author__ = "Citadel Archer Team"
__description__ = "Encrypted, server-synced credential vault client"

from .client import login, version
from .core import EventSeverity, EventType, VaultSettings
from .errors import (
    BackendUnavailable,
    BadCredentials,
    DecryptionFailure,
    DemoModeRejected,
    ErrorCode,
    NetworkError,
    NoSuchEntry,
    OfflineModeViolation,
    PasswordRotationDiverged,
    StaleWrite,
    VaultError,
)
from .remote import Credentials, HttpParams
from .vault import EntryAttrs, EntryView, PasswordStrength, Vault

__all__ = [
    "__version__",
    "login",
    "version",
    "Vault",
    "Credentials",
    "HttpParams",
    "EntryAttrs",
    "EntryView",
    "PasswordStrength",
    "VaultSettings",
    "EventType",
    "EventSeverity",
    # Errors
    "ErrorCode",
    "VaultError",
    "DecryptionFailure",
    "StaleWrite",
    "BadCredentials",
    "DemoModeRejected",
    "NetworkError",
    "OfflineModeViolation",
    "BackendUnavailable",
    "NoSuchEntry",
    "PasswordRotationDiverged",
]
