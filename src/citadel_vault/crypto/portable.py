# Crypto - Portable Backend
#
# Pure pycryptodome implementation. Slower to construct than the native
# backend but accepts every tag size the cipher format allows, including
# truncated GCM tags.

from Crypto.Cipher import AES
from Crypto.Hash import SHA256, SHA512
from Crypto.Protocol.KDF import PBKDF2

from ..errors import BackendUnavailable, DecryptionFailure
from .backends import CryptoBackend
from .params import AESMode, ccm_nonce


class PortableBackend(CryptoBackend):
    """AES-CCM / AES-GCM and PBKDF2 through pycryptodome."""

    name = "portable"

    tag_sizes = {
        AESMode.CCM: frozenset({64, 96, 128}),
        AESMode.GCM: frozenset({64, 96, 128}),
    }

    def _pbkdf2(self, password: bytes, salt: bytes, iterations: int, length: int) -> bytes:
        return PBKDF2(password, salt, dkLen=length, count=iterations, hmac_hash_module=SHA256)

    def _sha512(self, data: bytes) -> bytes:
        return SHA512.new(data).digest()

    def _cipher(self, mode: AESMode, key: bytes, iv: bytes, message_length: int,
                adata: bytes, tag_length: int):
        if mode is AESMode.CCM:
            return AES.new(
                key, AES.MODE_CCM,
                nonce=ccm_nonce(iv, message_length),
                mac_len=tag_length,
                msg_len=message_length,
                assoc_len=len(adata),
            )
        if mode is AESMode.GCM:
            return AES.new(key, AES.MODE_GCM, nonce=iv, mac_len=tag_length)
        raise BackendUnavailable(f"{self.name} backend does not implement {mode.value}")

    def _seal(self, mode, key, iv, plaintext, adata, tag_length):
        cipher = self._cipher(mode, key, iv, len(plaintext), adata, tag_length)
        if adata:
            cipher.update(adata)
        ciphertext, tag = cipher.encrypt_and_digest(plaintext)
        return ciphertext + tag

    def _open(self, mode, key, iv, sealed, adata, tag_length):
        body, tag = sealed[:-tag_length], sealed[-tag_length:]
        cipher = self._cipher(mode, key, iv, len(body), adata, tag_length)
        if adata:
            cipher.update(adata)
        try:
            return cipher.decrypt_and_verify(body, tag)
        except ValueError as exc:
            raise DecryptionFailure("authentication tag mismatch", exc) from exc
