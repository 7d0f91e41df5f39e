"""Tests for master password key derivation."""

import pytest

from citadel_vault.crypto.backends import BackendSelector
from citadel_vault.crypto.keys import KeyDeriver, derive_key
from citadel_vault.crypto.native import NativeBackend
from citadel_vault.crypto.portable import PortableBackend

BACKENDS = [NativeBackend(), PortableBackend()]


class TestDeriveKey:
    """PBKDF2-HMAC-SHA256 with SHA-512 pre-hash."""

    @pytest.mark.parametrize("backend", BACKENDS, ids=lambda b: b.name)
    def test_golden_local_salt(self, backend):
        key = backend.derive_key("ucantseeme", "deadbeef", 1)
        assert key == "93ff3db4b46bf6e63885f0d37efcac689970947c49cd9a04e66cace32b258b0e"

    @pytest.mark.parametrize("backend", BACKENDS, ids=lambda b: b.name)
    def test_golden_remote_salt(self, backend):
        key = backend.derive_key("ucantseeme", "0123456789", 1)
        assert key == "8aefc63391ce6eb2e706bf92d0af026189adfe02d2bc757ca5511112c8bdb2a8"

    @pytest.mark.parametrize("backend", BACKENDS, ids=lambda b: b.name)
    def test_output_is_64_lowercase_hex(self, backend):
        key = backend.derive_key("anything", "salt", 3)
        assert len(key) == 64
        assert key == key.lower()
        int(key, 16)

    def test_backends_agree(self):
        native = NativeBackend().derive_key("p@ss wörd", "s4lt", 50)
        portable = PortableBackend().derive_key("p@ss wörd", "s4lt", 50)
        assert native == portable

    def test_backends_agree_without_prehash(self):
        native = NativeBackend().derive_key("plaintext", "a" * 64, 50, prehash_sha512=False)
        portable = PortableBackend().derive_key("plaintext", "a" * 64, 50, prehash_sha512=False)
        assert native == portable

    def test_prehash_changes_result(self):
        backend = NativeBackend()
        with_prehash = backend.derive_key("secret", "salt", 10)
        without = backend.derive_key("secret", "salt", 10, prehash_sha512=False)
        assert with_prehash != without

    def test_deterministic(self):
        backend = PortableBackend()
        assert backend.derive_key("x", "y", 7) == backend.derive_key("x", "y", 7)


class TestKeyDeriver:
    """Local, remote and offline keys plus fingerprints."""

    @pytest.mark.asyncio
    async def test_remote_key_golden(self, selector):
        deriver = KeyDeriver("deadbeef", "0123456789", selector)
        key = await deriver.derive_remote_key("passwd")
        assert key == "483c29af947d335ed2851c62f1daa12227126b00035387f66f2d1492036d4dcb"

    @pytest.mark.asyncio
    async def test_offline_key_golden(self):
        selector = BackendSelector.probe([NativeBackend()])
        key = await KeyDeriver.derive_offline_key("ucantseeme", "my-offline-salt123", selector)
        assert key == "8a895f56fe4d16e2b88480e500ae6c195c2a7318c72aebf0642fb0a24bdbde6f"

    @pytest.mark.asyncio
    async def test_local_and_remote_keys_differ(self, selector):
        deriver = KeyDeriver("salt-a", "salt-b", selector, iterations=5)
        local = await deriver.derive_local_key("master")
        remote = await deriver.derive_remote_key("master")
        assert local != remote

    @pytest.mark.asyncio
    async def test_fingerprint_sensitive_to_plaintext(self, selector):
        deriver = KeyDeriver("salt-a", "salt-b", selector, iterations=5)
        first = await deriver.fingerprint('{"revision":1}', "local-key")
        second = await deriver.fingerprint('{"revision":2}', "local-key")
        assert first != second

    @pytest.mark.asyncio
    async def test_fingerprint_sensitive_to_key(self, selector):
        deriver = KeyDeriver("salt-a", "salt-b", selector, iterations=5)
        first = await deriver.fingerprint("same plaintext", "key-1")
        second = await deriver.fingerprint("same plaintext", "key-2")
        assert first != second

    @pytest.mark.asyncio
    async def test_fingerprint_skips_prehash(self, selector):
        deriver = KeyDeriver("salt-a", "salt-b", selector, iterations=5)
        fingerprint = await deriver.fingerprint("plain", "local-key")
        assert fingerprint == NativeBackend().derive_key("plain", "local-key", 5, prehash_sha512=False)

    @pytest.mark.asyncio
    async def test_derive_key_coroutine(self, selector):
        key = await derive_key(selector, "ucantseeme", "deadbeef", 1)
        assert key == "93ff3db4b46bf6e63885f0d37efcac689970947c49cd9a04e66cace32b258b0e"
