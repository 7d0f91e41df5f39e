# Remote - Transport Contract
#
# The three requests a vault client makes to its server: fetch the public
# configuration (salts, demo flag), pull the current cipher, push a new one.
# Protocol-level rejections surface as the typed errors in citadel_vault.errors
# (StaleWrite, BadCredentials, DemoModeRejected, NetworkError).

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Tuple

from pydantic import BaseModel, Field


class Salts(BaseModel):
    local_key_salt: str = Field(..., min_length=1)
    remote_key_salt: str = Field(..., min_length=1)


class ServerConfig(BaseModel):
    """Public server configuration, as served by ``GET {url}/config``."""

    version: int = 1
    demo: bool = False
    salts: Salts


@dataclass(frozen=True)
class HttpParams:
    """Extra per-request HTTP settings."""

    auth: Optional[Tuple[str, str]] = None  # HTTP basic auth (username, password)


@dataclass(frozen=True)
class Credentials:
    """
    Everything needed to talk to the server on behalf of one user.

    Never mutated: a password rotation builds a new instance with
    ``dataclasses.replace`` and swaps it in whole.
    """

    local_key: str
    remote_key: str
    server_url: str
    username: str
    offline_key: Optional[str] = None

    def __repr__(self) -> str:
        return (
            f"Credentials(server_url={self.server_url!r}, username={self.username!r}, "
            f"offline={'yes' if self.offline_key else 'no'})"
        )


class Transport(ABC):
    """Request/response contract between the vault and its server."""

    @abstractmethod
    async def pull_config(self, server_url: str) -> ServerConfig:
        """Fetch the server's public configuration."""

    @abstractmethod
    async def pull_cipher(self, creds: Credentials) -> str:
        """Fetch the stored cipher; empty string when the server has none."""

    @abstractmethod
    async def push_cipher(
        self,
        creds: Credentials,
        new_remote_key: Optional[str],
        cipher: str,
        old_fingerprint: Optional[str],
        new_fingerprint: str,
    ) -> None:
        """
        Replace the stored cipher.

        The request is authenticated with ``creds.remote_key``. When
        ``new_remote_key`` is given the server authenticates later requests
        with it instead. The server refuses the write unless
        ``old_fingerprint`` matches what it currently stores.
        """
