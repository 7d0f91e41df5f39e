# Crypto - Vault Crypto Service
#
# What the vault orchestrator talks to: key derivation plus string-in,
# string-out authenticated encryption of the serialized database. Backend
# choice happens per call from the session's probe results.

import asyncio
import logging
from dataclasses import replace
from typing import Optional

from ..core.config import DEFAULT_PBKDF2_ITERATIONS
from ..errors import DecryptionFailure, VaultError
from .backends import BackendSelector, CryptoOperation
from .keys import KeyDeriver
from .params import CipherParams, params_from_string, params_to_string

logger = logging.getLogger(__name__)


class VaultCrypto(KeyDeriver):
    """
    Key derivation and database encryption for one session.

    Args:
        local_key_salt: Server-provided salt for the local key
        remote_key_salt: Server-provided salt for the remote key
        selector: Probe results to pick backends from
        iterations: PBKDF2 iterations for interactive derivations
        cipher_params: Fixed parameters for every encryption (mode, sizes);
                       IV and salt are still fresh per call unless set here
    """

    def __init__(
        self,
        local_key_salt: str,
        remote_key_salt: str,
        selector: BackendSelector,
        iterations: int = DEFAULT_PBKDF2_ITERATIONS,
        cipher_params: Optional[CipherParams] = None,
    ):
        super().__init__(local_key_salt, remote_key_salt, selector, iterations)
        self.cipher_params = cipher_params

    def _encrypt_sync(self, local_key: str, plaintext: str) -> str:
        params = self.cipher_params
        if params is not None:
            params = replace(params, ciphertext=None)
        backend = self.selector.select(CryptoOperation.ENCRYPT, params)
        return params_to_string(backend.encrypt(plaintext, local_key, params))

    def _decrypt_sync(self, local_key: str, cipher: str) -> str:
        params = params_from_string(cipher)
        backend = self.selector.select(CryptoOperation.DECRYPT, params)
        return backend.decrypt(local_key, params)

    async def encrypt(self, local_key: str, plaintext: str) -> str:
        """Encrypt ``plaintext`` into a cipher document string."""
        return await asyncio.to_thread(self._encrypt_sync, local_key, plaintext)

    async def decrypt(self, local_key: str, cipher: str) -> str:
        """
        Decrypt a cipher document string.

        Raises:
            DecryptionFailure: malformed cipher, wrong key or tampering
            BackendUnavailable: no backend supports the cipher's parameters
        """
        try:
            return await asyncio.to_thread(self._decrypt_sync, local_key, cipher)
        except VaultError:
            raise
        except Exception as exc:
            logger.debug("Cipher decryption failed: %s", type(exc).__name__)
            raise DecryptionFailure("cannot decrypt the vault cipher", exc) from exc
