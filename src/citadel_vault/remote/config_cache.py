# Remote - Server Config Cache
#
# Lets a client skip the config round trip on later logins. Demo servers
# are never cached; that policy is applied by the caller (see client.login).

from abc import ABC, abstractmethod
from typing import Dict, Optional

from .transport import ServerConfig


class ConfigCache(ABC):

    @abstractmethod
    def load_config(self, server_url: str) -> Optional[ServerConfig]:
        """Cached config for ``server_url``, or None."""

    @abstractmethod
    def save_config(self, server_url: str, config: ServerConfig) -> None:
        """Remember ``config`` for ``server_url``."""


class NoOpConfigCache(ConfigCache):
    """Caches nothing."""

    def load_config(self, server_url: str) -> Optional[ServerConfig]:
        return None

    def save_config(self, server_url: str, config: ServerConfig) -> None:
        pass


class InMemoryConfigCache(ConfigCache):
    """Process-lifetime cache keyed by server URL."""

    def __init__(self):
        self._configs: Dict[str, ServerConfig] = {}

    def load_config(self, server_url: str) -> Optional[ServerConfig]:
        config = self._configs.get(server_url)
        return config.model_copy(deep=True) if config is not None else None

    def save_config(self, server_url: str, config: ServerConfig) -> None:
        self._configs[server_url] = config.model_copy(deep=True)
