# Remote Module - Server Transport and Client-Side Caches
#
# - Transport contract and the httpx implementation
# - Offline cipher cache contract
# - Server config cache

from .config_cache import ConfigCache, InMemoryConfigCache, NoOpConfigCache
from .http_api import HttpApi
from .offline import OFFLINE_URL, NoOpOfflineProvider, OfflineProvider
from .transport import Credentials, HttpParams, Salts, ServerConfig, Transport

__all__ = [
    # Transport
    "Transport",
    "HttpApi",
    "HttpParams",
    "Credentials",
    "ServerConfig",
    "Salts",
    # Offline
    "OfflineProvider",
    "NoOpOfflineProvider",
    "OFFLINE_URL",
    # Config cache
    "ConfigCache",
    "NoOpConfigCache",
    "InMemoryConfigCache",
]
