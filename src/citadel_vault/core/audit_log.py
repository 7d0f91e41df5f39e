# Core - Vault Audit Log
#
# Structured audit trail for everything that touches the vault's security
# state: unlocks, pushes, pulls, password rotations, rejected writes and
# offline cache failures. Events are JSON lines rendered by structlog and
# routed through the standard logging module, optionally into a daily file.
#
# Never pass secrets (keys, passwords, plaintext) in event details.

import logging
import os
import socket
import sys
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import uuid4

import structlog

AUDIT_LOGGER_NAME = "citadel_vault.audit"

_structlog_configured = False


class EventType(str, Enum):
    """Types of vault events that can be logged."""

    VAULT_OPENED = "vault.opened"
    VAULT_SAVED = "vault.saved"
    VAULT_PULLED = "vault.pulled"
    VAULT_EMPTY_REMOTE = "vault.empty_remote"
    VAULT_DEMO_SAVE = "vault.demo_save"
    VAULT_STALE_WRITE = "vault.stale_write"

    PASSWORD_ROTATED = "vault.password.rotated"
    PASSWORD_ROTATION_FAILED = "vault.password.rotation_failed"
    PASSWORD_ROTATION_DIVERGED = "vault.password.rotation_diverged"

    ENTRY_ADDED = "vault.entry.added"
    ENTRY_UPDATED = "vault.entry.updated"
    ENTRY_REMOVED = "vault.entry.removed"
    ENTRIES_REPLACED = "vault.entry.replaced_all"

    OFFLINE_SNAPSHOT_SAVED = "vault.offline.saved"
    OFFLINE_SNAPSHOT_FAILED = "vault.offline.failed"

    USER_LOGIN = "user.login"


class EventSeverity(str, Enum):
    """Severity levels for vault events."""

    INFO = "info"
    INVESTIGATE = "investigate"
    ALERT = "alert"
    CRITICAL = "critical"


def _configure_structlog() -> None:
    global _structlog_configured
    if _structlog_configured:
        return
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _structlog_configured = True


class AuditLogger:
    """
    Append-only audit logger for vault events.

    Features:
    - Structured JSON logging (structlog)
    - Automatic timestamp and event ID
    - Optional daily log file under ``log_dir``
    - Session context (username, server) attached to every event
    """

    def __init__(self, log_dir: Optional[Path] = None):
        """
        Initialize audit logger.

        Args:
            log_dir: Directory for daily audit files. When None, events only
                     go to the ``citadel_vault.audit`` stdlib logger.
        """
        self.log_dir = log_dir
        _configure_structlog()

        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            self._setup_file_handler()

        self.logger = structlog.get_logger(AUDIT_LOGGER_NAME)

    def _setup_file_handler(self):
        """Attach a daily file handler to the audit logger."""
        today = datetime.now().strftime("%Y-%m-%d")
        log_file = self.log_dir / f"vault_audit_{today}.log"

        audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)
        for handler in audit_logger.handlers:
            if getattr(handler, "baseFilename", None) == str(log_file.resolve()):
                return

        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        audit_logger.addHandler(file_handler)
        audit_logger.setLevel(logging.INFO)

    def log_event(
        self,
        event_type: EventType,
        severity: EventSeverity,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        user_context: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Log a vault event.

        Args:
            event_type: Type of event (from EventType enum)
            severity: Severity level (from EventSeverity enum)
            message: Human-readable event description
            details: Additional event details (never secrets)
            user_context: Session context (username, server_url)

        Returns:
            str: Event ID (UUID) for reference
        """
        event_id = str(uuid4())
        event_data = {
            "event_id": event_id,
            "event_type": event_type.value,
            "severity": severity.value,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "details": details or {},
            "user_context": user_context or self._get_default_user_context(),
        }

        if severity in (EventSeverity.ALERT, EventSeverity.CRITICAL):
            self.logger.warning("vault_event", **event_data)
        else:
            self.logger.info("vault_event", **event_data)

        return event_id

    def log_vault_event(
        self,
        event_type: EventType,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        user_context: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Log a routine vault event at INFO severity."""
        return self.log_event(
            event_type=event_type,
            severity=EventSeverity.INFO,
            message=f"Vault: {message}",
            details=details,
            user_context=user_context,
        )

    def _get_default_user_context(self) -> Dict[str, Any]:
        """Get default user context (OS user, hostname, etc.)."""
        return {
            "os_user": os.getenv("USERNAME") or os.getenv("USER"),
            "hostname": socket.gethostname(),
            "platform": sys.platform,
        }
