# Core Module - Shared Utilities
#
# Core module provides shared functionality across the vault client:
# - Audit logging
# - Configuration

from .audit_log import (
    AuditLogger,
    EventSeverity,
    EventType,
)
from .config import (
    DEFAULT_OFFLINE_PBKDF2_ITERATIONS,
    DEFAULT_PBKDF2_ITERATIONS,
    VaultSettings,
)

__all__ = [
    # Audit Logging
    "AuditLogger",
    "EventType",
    "EventSeverity",
    # Configuration
    "VaultSettings",
    "DEFAULT_PBKDF2_ITERATIONS",
    "DEFAULT_OFFLINE_PBKDF2_ITERATIONS",
]
