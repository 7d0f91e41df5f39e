# Remote - Offline Cache Contract
#
# Storage for an encrypted copy of the vault that can be opened without the
# server. The storage medium belongs to the embedding application; the
# default provider never reports offline and stores nothing.

from abc import ABC, abstractmethod

# Server URL of a vault opened from the offline cache
OFFLINE_URL = "offline://"


class OfflineProvider(ABC):
    """Access to the offline cipher cache."""

    @abstractmethod
    async def is_running_offline(self) -> bool:
        """Should the vault be opened from the cache instead of the server?"""

    @abstractmethod
    async def get_offline_cipher(self) -> str:
        """Return the cached cipher."""

    @abstractmethod
    async def offline_salt(self) -> str:
        """Salt for the offline key. Empty when offline mode is disabled."""

    @abstractmethod
    async def save_offline_cipher(self, cipher: str) -> None:
        """Replace the cached cipher."""


class NoOpOfflineProvider(OfflineProvider):
    """Offline mode disabled."""

    async def is_running_offline(self) -> bool:
        return False

    async def get_offline_cipher(self) -> str:
        raise NotImplementedError("offline mode is disabled")

    async def offline_salt(self) -> str:
        return ""

    async def save_offline_cipher(self, cipher: str) -> None:
        raise NotImplementedError("offline mode is disabled")
