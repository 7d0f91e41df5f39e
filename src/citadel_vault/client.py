# Client - Login
#
# Opens a vault session: fetch (or load cached) server config, derive keys
# from the master password, pull the cipher and build the Vault. When the
# offline provider says so, the server is skipped entirely and the vault is
# opened read-only from the offline cache.

import asyncio
import logging
from typing import Optional

from .core.audit_log import AuditLogger, EventType
from .core.config import VaultSettings
from .crypto.backends import BackendSelector
from .crypto.keys import KeyDeriver
from .crypto.service import VaultCrypto
from .remote.config_cache import ConfigCache, NoOpConfigCache
from .remote.http_api import HttpApi
from .remote.offline import OFFLINE_URL, NoOpOfflineProvider, OfflineProvider
from .remote.transport import Credentials, HttpParams, Transport
from .vault.orchestrator import Vault
from .vault.strength import PasswordStrengthClassifier

logger = logging.getLogger(__name__)


async def login(
    server_url: str,
    username: str,
    master_password: str,
    http_params: Optional[HttpParams] = None,
    config_cache: Optional[ConfigCache] = None,
    offline_provider: Optional[OfflineProvider] = None,
    transport: Optional[Transport] = None,
    settings: Optional[VaultSettings] = None,
    selector: Optional[BackendSelector] = None,
    audit: Optional[AuditLogger] = None,
    classifier: Optional[PasswordStrengthClassifier] = None,
) -> Vault:
    """
    Authenticate against a vault server and return the session.

    Args:
        server_url: Server base URL (a trailing slash is ignored)
        username: Account name
        master_password: The user's master password
        http_params: Basic auth for the default HTTP transport
        config_cache: Where to look up / remember server configs
        offline_provider: Offline cache; enables offline mode when it has a salt
        transport: Overrides the default HttpApi transport
        settings: Iteration counts, timeouts, backend switches
        selector: Pre-probed crypto backends (probed here when omitted)
        audit: Audit logger for the session
        classifier: Password strength classifier for new and edited entries

    Raises:
        BadCredentials: the server rejected the derived remote key
        DecryptionFailure: the pulled or cached cipher does not open
        NetworkError: the server could not be reached
    """
    settings = settings or VaultSettings()
    config_cache = config_cache or NoOpConfigCache()
    offline_provider = offline_provider or NoOpOfflineProvider()
    audit = audit or AuditLogger(settings.audit_log_dir)
    if transport is None:
        transport = HttpApi(http_params, timeout=settings.http_timeout)
    if selector is None:
        selector = await asyncio.to_thread(
            BackendSelector.probe, None, settings.disabled_backends
        )

    if server_url.endswith("/"):
        server_url = server_url[:-1]

    if await offline_provider.is_running_offline():
        offline_salt = await offline_provider.offline_salt()
        crypto = VaultCrypto(offline_salt, "", selector, settings.pbkdf2_iterations)
        local_key = await KeyDeriver.derive_offline_key(
            master_password, offline_salt, selector, settings.offline_pbkdf2_iterations
        )
        creds = Credentials(
            local_key=local_key,
            remote_key="",
            server_url=OFFLINE_URL,
            username=username,
        )
        cipher = await offline_provider.get_offline_cipher()
        demo = False
        logger.info("Opening vault for %s from the offline cache", username)
    else:
        config = config_cache.load_config(server_url)
        if config is None:
            config = await transport.pull_config(server_url)
            if not config.demo:
                config_cache.save_config(server_url, config)

        crypto = VaultCrypto(
            config.salts.local_key_salt,
            config.salts.remote_key_salt,
            selector,
            settings.pbkdf2_iterations,
        )

        offline_salt = await offline_provider.offline_salt()
        derivations = [
            crypto.derive_local_key(master_password),
            crypto.derive_remote_key(master_password),
        ]
        if offline_salt:
            derivations.append(KeyDeriver.derive_offline_key(
                master_password, offline_salt, selector, settings.offline_pbkdf2_iterations
            ))
        keys = await asyncio.gather(*derivations)

        creds = Credentials(
            local_key=keys[0],
            remote_key=keys[1],
            server_url=server_url,
            username=username,
            offline_key=keys[2] if offline_salt else None,
        )
        cipher = await transport.pull_cipher(creds)
        demo = config.demo

    audit.log_vault_event(
        EventType.USER_LOGIN,
        f"login as {username}",
        details={"offline": creds.server_url == OFFLINE_URL, "demo": demo},
        user_context={"username": username, "server_url": creds.server_url},
    )

    return await Vault.build(
        creds,
        crypto,
        cipher,
        transport,
        offline_provider=offline_provider,
        demo_mode=demo,
        audit=audit,
        classifier=classifier,
        offline_iterations=settings.offline_pbkdf2_iterations,
    )


def version() -> str:
    """Version of the installed citadel-vault package."""
    from . import __version__

    return __version__
