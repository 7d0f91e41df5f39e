"""
Shared pytest fixtures for the citadel-vault test suite.

  - FakeVaultServer   -> in-memory server enforcing remote keys and fingerprints
  - MemoryOfflineProvider -> in-memory offline cache
  - Low iteration settings so key derivation stays fast
"""

from typing import List, Optional

import pytest

from citadel_vault.core.audit_log import AuditLogger
from citadel_vault.core.config import VaultSettings
from citadel_vault.crypto.backends import BackendSelector
from citadel_vault.crypto.service import VaultCrypto
from citadel_vault.errors import BadCredentials, DemoModeRejected, StaleWrite, VaultError
from citadel_vault.remote.offline import OfflineProvider
from citadel_vault.remote.transport import Credentials, Salts, ServerConfig, Transport
from citadel_vault.vault.orchestrator import Vault

LOCAL_SALT = "local-salt"
REMOTE_SALT = "remote-salt"
SERVER_URL = "http://vault.test"
TEST_ITERATIONS = 8
TEST_OFFLINE_ITERATIONS = 16


class FakeVaultServer(Transport):
    """In-memory vault server.

    The first remote key it sees becomes the account key unless one is
    given. Pushes are refused unless the old fingerprint matches.
    """

    def __init__(self, remote_key: Optional[str] = None, demo: bool = False):
        self.remote_key = remote_key
        self.demo = demo
        self.cipher = ""
        self.fingerprint = ""
        self.ignore_key_change = False
        self.fail_next_pull: Optional[VaultError] = None
        self.fail_next_push: Optional[VaultError] = None
        self.config_requests = 0
        self.pull_requests: List[Credentials] = []
        self.pushes: List[dict] = []

    def _authenticate(self, creds: Credentials) -> None:
        if self.remote_key is None:
            self.remote_key = creds.remote_key
        if creds.remote_key != self.remote_key:
            raise BadCredentials("Invalid credentials")

    async def pull_config(self, server_url: str) -> ServerConfig:
        self.config_requests += 1
        return ServerConfig(
            version=1,
            demo=self.demo,
            salts=Salts(local_key_salt=LOCAL_SALT, remote_key_salt=REMOTE_SALT),
        )

    async def pull_cipher(self, creds: Credentials) -> str:
        self.pull_requests.append(creds)
        if self.fail_next_pull is not None:
            error, self.fail_next_pull = self.fail_next_pull, None
            raise error
        self._authenticate(creds)
        return self.cipher

    async def push_cipher(self, creds, new_remote_key, cipher, old_fingerprint, new_fingerprint):
        if self.fail_next_push is not None:
            error, self.fail_next_push = self.fail_next_push, None
            raise error
        self._authenticate(creds)
        if self.demo:
            raise DemoModeRejected("Server in demo mode")
        if (old_fingerprint or "") != self.fingerprint:
            raise StaleWrite("The server has a newer version of the DB")

        self.pushes.append({
            "remote_key": creds.remote_key,
            "new_remote_key": new_remote_key,
            "cipher": cipher,
            "old_fingerprint": old_fingerprint,
            "new_fingerprint": new_fingerprint,
        })
        self.cipher = cipher
        self.fingerprint = new_fingerprint
        if new_remote_key and not self.ignore_key_change:
            self.remote_key = new_remote_key


class MemoryOfflineProvider(OfflineProvider):
    """Offline cache kept in memory."""

    def __init__(self, salt: str = "", offline: bool = False, cipher: str = ""):
        self.salt = salt
        self.offline = offline
        self.cipher = cipher
        self.saved: List[str] = []
        self.fail_saves = False

    async def is_running_offline(self) -> bool:
        return self.offline

    async def get_offline_cipher(self) -> str:
        return self.cipher

    async def offline_salt(self) -> str:
        return self.salt

    async def save_offline_cipher(self, cipher: str) -> None:
        if self.fail_saves:
            raise OSError("offline storage is read-only")
        self.saved.append(cipher)
        self.cipher = cipher


@pytest.fixture(scope="session")
def selector():
    return BackendSelector.probe()


@pytest.fixture
def settings():
    return VaultSettings(
        pbkdf2_iterations=TEST_ITERATIONS,
        offline_pbkdf2_iterations=TEST_OFFLINE_ITERATIONS,
    )


@pytest.fixture
def crypto(selector):
    return VaultCrypto(LOCAL_SALT, REMOTE_SALT, selector, iterations=TEST_ITERATIONS)


@pytest.fixture
def audit():
    return AuditLogger()


@pytest.fixture
def server():
    return FakeVaultServer(remote_key="remote-key-1")


@pytest.fixture
def creds():
    return Credentials(
        local_key="local-key-1",
        remote_key="remote-key-1",
        server_url=SERVER_URL,
        username="alice",
    )


@pytest.fixture
def make_vault(crypto, server, creds, audit):
    """Factory building a Vault against the fake server."""

    async def _make(
        cipher: Optional[str] = None,
        credentials: Optional[Credentials] = None,
        transport: Optional[Transport] = None,
        offline_provider: Optional[OfflineProvider] = None,
        demo_mode: bool = False,
    ) -> Vault:
        return await Vault.build(
            credentials or creds,
            crypto,
            cipher,
            transport or server,
            offline_provider=offline_provider,
            demo_mode=demo_mode,
            audit=audit,
            offline_iterations=TEST_OFFLINE_ITERATIONS,
        )

    return _make
