"""Tests for settings loading and the audit logger."""

import json
import logging
from pathlib import Path

import pytest

from citadel_vault.core.audit_log import AUDIT_LOGGER_NAME, AuditLogger, EventSeverity, EventType
from citadel_vault.core.config import (
    DEFAULT_OFFLINE_PBKDF2_ITERATIONS,
    DEFAULT_PBKDF2_ITERATIONS,
    VaultSettings,
)

ENV_VARS = [
    "CITADEL_VAULT_PBKDF2_ITERATIONS",
    "CITADEL_VAULT_OFFLINE_PBKDF2_ITERATIONS",
    "CITADEL_VAULT_HTTP_TIMEOUT",
    "CITADEL_VAULT_DISABLED_BACKENDS",
    "CITADEL_VAULT_AUDIT_LOG_DIR",
]


@pytest.fixture
def clean_env(monkeypatch):
    # setenv first so values loaded from a .env file are undone too
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch


class TestVaultSettings:

    def test_defaults(self):
        settings = VaultSettings()
        assert settings.pbkdf2_iterations == DEFAULT_PBKDF2_ITERATIONS == 32768
        assert settings.offline_pbkdf2_iterations == DEFAULT_OFFLINE_PBKDF2_ITERATIONS == 1048576
        assert settings.disabled_backends == frozenset()
        assert settings.audit_log_dir is None

    def test_from_env(self, clean_env, tmp_path):
        clean_env.setenv("CITADEL_VAULT_PBKDF2_ITERATIONS", "1000")
        clean_env.setenv("CITADEL_VAULT_OFFLINE_PBKDF2_ITERATIONS", "2000")
        clean_env.setenv("CITADEL_VAULT_HTTP_TIMEOUT", "2.5")
        clean_env.setenv("CITADEL_VAULT_DISABLED_BACKENDS", " Native, ,portable ")
        clean_env.setenv("CITADEL_VAULT_AUDIT_LOG_DIR", str(tmp_path))

        settings = VaultSettings.from_env(tmp_path / "missing.env")

        assert settings.pbkdf2_iterations == 1000
        assert settings.offline_pbkdf2_iterations == 2000
        assert settings.http_timeout == 2.5
        assert settings.disabled_backends == frozenset({"native", "portable"})
        assert settings.audit_log_dir == Path(tmp_path)

    def test_from_dotenv_file(self, clean_env, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("CITADEL_VAULT_PBKDF2_ITERATIONS=4096\n")

        settings = VaultSettings.from_env(env_file)

        assert settings.pbkdf2_iterations == 4096
        assert settings.offline_pbkdf2_iterations == DEFAULT_OFFLINE_PBKDF2_ITERATIONS


class TestAuditLogger:

    @pytest.fixture
    def file_audit(self, tmp_path):
        audit = AuditLogger(tmp_path)
        yield audit
        stdlib_logger = logging.getLogger(AUDIT_LOGGER_NAME)
        for handler in list(stdlib_logger.handlers):
            handler.close()
            stdlib_logger.removeHandler(handler)

    def _read_events(self, log_dir):
        for handler in logging.getLogger(AUDIT_LOGGER_NAME).handlers:
            handler.flush()
        lines = []
        for path in log_dir.glob("vault_audit_*.log"):
            lines.extend(path.read_text(encoding="utf-8").splitlines())
        return [json.loads(line) for line in lines if line.strip()]

    def test_writes_json_lines(self, file_audit, tmp_path):
        event_id = file_audit.log_event(
            EventType.VAULT_STALE_WRITE,
            EventSeverity.INVESTIGATE,
            "push rejected",
            details={"revision": 3},
            user_context={"username": "alice"},
        )

        events = self._read_events(tmp_path)
        assert len(events) == 1
        event = events[0]
        assert event["event_id"] == event_id
        assert event["event_type"] == "vault.stale_write"
        assert event["severity"] == "investigate"
        assert event["details"] == {"revision": 3}
        assert event["user_context"] == {"username": "alice"}

    def test_vault_event_prefix(self, file_audit, tmp_path):
        file_audit.log_vault_event(EventType.VAULT_SAVED, "entries pushed")
        event = self._read_events(tmp_path)[0]
        assert event["message"] == "Vault: entries pushed"
        assert event["severity"] == "info"
        assert "hostname" in event["user_context"]

    def test_one_handler_per_file(self, file_audit, tmp_path):
        AuditLogger(tmp_path)
        handlers = logging.getLogger(AUDIT_LOGGER_NAME).handlers
        assert len(handlers) == 1
