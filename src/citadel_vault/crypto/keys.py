# Crypto - Master Password Key Derivation
#
# Every key the client uses comes from the master password:
#   local key   - encrypts the entry database, never leaves the client
#   remote key  - authenticates against the server
#   offline key - encrypts the offline cache (much higher iteration count)
#
# A fingerprint is the same derivation applied to the database plaintext
# with the local key as salt; the server only stores it to detect stale
# writes.
#
# PBKDF2 is CPU bound, so every derivation runs in a worker thread.

import asyncio
import logging
from typing import Optional

from ..core.config import DEFAULT_OFFLINE_PBKDF2_ITERATIONS, DEFAULT_PBKDF2_ITERATIONS
from .backends import BackendSelector, CryptoOperation

logger = logging.getLogger(__name__)


def derive_key_sync(selector: BackendSelector, secret: str, salt: str,
                    iterations: int, prehash_sha512: bool = True) -> str:
    backend = selector.select(CryptoOperation.DERIVE)
    return backend.derive_key(secret, salt, iterations, prehash_sha512)


async def derive_key(selector: BackendSelector, secret: str, salt: str,
                     iterations: int, prehash_sha512: bool = True) -> str:
    """Derive a 64-character hex key off the event loop."""
    return await asyncio.to_thread(
        derive_key_sync, selector, secret, salt, iterations, prehash_sha512
    )


class KeyDeriver:
    """
    Derives the session keys from a master password.

    The local and remote salts come from the server configuration; the
    offline key needs no server at all and is therefore a static method.
    """

    def __init__(
        self,
        local_key_salt: str,
        remote_key_salt: str,
        selector: BackendSelector,
        iterations: int = DEFAULT_PBKDF2_ITERATIONS,
    ):
        self.local_key_salt = local_key_salt
        self.remote_key_salt = remote_key_salt
        self.selector = selector
        self.iterations = iterations

    async def derive_local_key(self, master_password: str) -> str:
        return await derive_key(
            self.selector, master_password, self.local_key_salt, self.iterations
        )

    async def derive_remote_key(self, master_password: str) -> str:
        return await derive_key(
            self.selector, master_password, self.remote_key_salt, self.iterations
        )

    @staticmethod
    async def derive_offline_key(
        master_password: str,
        offline_salt: str,
        selector: BackendSelector,
        iterations: Optional[int] = None,
    ) -> str:
        if iterations is None:
            iterations = DEFAULT_OFFLINE_PBKDF2_ITERATIONS
        return await derive_key(selector, master_password, offline_salt, iterations)

    async def fingerprint(self, plaintext: str, local_key: str) -> str:
        """Fingerprint of a serialized database under ``local_key``.

        No SHA-512 pre-hash: the plaintext is stretched directly.
        """
        return await derive_key(
            self.selector, plaintext, local_key, self.iterations, prehash_sha512=False
        )
