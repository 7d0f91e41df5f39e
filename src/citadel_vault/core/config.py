# Core - Client Settings
#
# Tunables for key derivation cost, HTTP behaviour and backend selection.
# Defaults match what existing servers and clients expect; every value can
# be overridden through CITADEL_VAULT_* environment variables (a local .env
# file is honoured).

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, Optional

from dotenv import load_dotenv

# Interactive derivations (local key, remote key, fingerprint)
DEFAULT_PBKDF2_ITERATIONS = 32768

# Offline caches can be attacked without any server round trip, so the
# offline key is made far more expensive.
DEFAULT_OFFLINE_PBKDF2_ITERATIONS = 1048576

DEFAULT_HTTP_TIMEOUT_SEC = 30.0


def _split_names(raw: str) -> FrozenSet[str]:
    return frozenset(name.strip().lower() for name in raw.split(",") if name.strip())


@dataclass(frozen=True)
class VaultSettings:
    """Settings for one client session."""

    pbkdf2_iterations: int = DEFAULT_PBKDF2_ITERATIONS
    offline_pbkdf2_iterations: int = DEFAULT_OFFLINE_PBKDF2_ITERATIONS
    http_timeout: float = DEFAULT_HTTP_TIMEOUT_SEC
    disabled_backends: FrozenSet[str] = field(default_factory=frozenset)
    audit_log_dir: Optional[Path] = None

    @classmethod
    def from_env(cls, dotenv_path: Optional[Path] = None) -> "VaultSettings":
        """Build settings from the environment.

        Recognised variables:
            CITADEL_VAULT_PBKDF2_ITERATIONS
            CITADEL_VAULT_OFFLINE_PBKDF2_ITERATIONS
            CITADEL_VAULT_HTTP_TIMEOUT
            CITADEL_VAULT_DISABLED_BACKENDS  (comma separated: native,portable)
            CITADEL_VAULT_AUDIT_LOG_DIR
        """
        load_dotenv(dotenv_path)

        audit_dir = os.environ.get("CITADEL_VAULT_AUDIT_LOG_DIR", "")
        return cls(
            pbkdf2_iterations=int(
                os.environ.get("CITADEL_VAULT_PBKDF2_ITERATIONS", DEFAULT_PBKDF2_ITERATIONS)
            ),
            offline_pbkdf2_iterations=int(
                os.environ.get(
                    "CITADEL_VAULT_OFFLINE_PBKDF2_ITERATIONS",
                    DEFAULT_OFFLINE_PBKDF2_ITERATIONS,
                )
            ),
            http_timeout=float(
                os.environ.get("CITADEL_VAULT_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT_SEC)
            ),
            disabled_backends=_split_names(
                os.environ.get("CITADEL_VAULT_DISABLED_BACKENDS", "")
            ),
            audit_log_dir=Path(audit_dir) if audit_dir else None,
        )
