# Crypto - Native Backend
#
# OpenSSL-backed primitives from the cryptography package. Preferred
# whenever it can honour the requested parameters.
#
# AESGCM only produces full 128-bit tags, so truncated-tag GCM ciphers are
# declined here and fall through to the portable backend.

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESCCM, AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..errors import BackendUnavailable, DecryptionFailure
from .backends import CryptoBackend
from .params import AESMode, ccm_nonce


class NativeBackend(CryptoBackend):
    """AES-CCM / AES-GCM and PBKDF2 through OpenSSL."""

    name = "native"

    tag_sizes = {
        AESMode.CCM: frozenset({64, 96, 128}),
        AESMode.GCM: frozenset({128}),
    }

    def _pbkdf2(self, password: bytes, salt: bytes, iterations: int, length: int) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=length,
            salt=salt,
            iterations=iterations,
            backend=default_backend()
        )
        return kdf.derive(password)

    def _sha512(self, data: bytes) -> bytes:
        digest = hashes.Hash(hashes.SHA512(), backend=default_backend())
        digest.update(data)
        return digest.finalize()

    def _aead(self, mode: AESMode, key: bytes, tag_length: int):
        if mode is AESMode.CCM:
            return AESCCM(key, tag_length=tag_length)
        if mode is AESMode.GCM:
            return AESGCM(key)
        raise BackendUnavailable(f"{self.name} backend does not implement {mode.value}")

    def _seal(self, mode, key, iv, plaintext, adata, tag_length):
        nonce = ccm_nonce(iv, len(plaintext)) if mode is AESMode.CCM else iv
        return self._aead(mode, key, tag_length).encrypt(nonce, plaintext, adata or None)

    def _open(self, mode, key, iv, sealed, adata, tag_length):
        body_length = len(sealed) - tag_length
        nonce = ccm_nonce(iv, body_length) if mode is AESMode.CCM else iv
        try:
            return self._aead(mode, key, tag_length).decrypt(nonce, sealed, adata or None)
        except InvalidTag as exc:
            raise DecryptionFailure("authentication tag mismatch", exc) from exc
