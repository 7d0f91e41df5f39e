# Crypto - Backend Contract and Capability-Based Selection
#
# Two interchangeable backends implement the same key derivation and AEAD
# primitives:
#   native   - cryptography (OpenSSL), preferred
#   portable - pycryptodome, fallback
#
# Each backend is probed once with a self-test; the probe results are held
# by value in a BackendSelector. Selection walks the backends in preference
# order and returns the first one whose capability predicate accepts the
# request, so a backend can opt out of parameters it cannot honour instead
# of producing an incompatible cipher.

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Optional, Sequence, Tuple

from ..errors import BackendUnavailable, DecryptionFailure
from .params import (
    KEY_SIZES,
    MAX_IV_LENGTH,
    MIN_IV_LENGTH,
    AESMode,
    CipherParams,
    require_decrypt_fields,
    validate,
    verify_round_trip,
    with_defaults,
)

logger = logging.getLogger(__name__)

# PBKDF2 output for derive_key (hex encodes to 64 characters)
DERIVED_KEY_LENGTH = 32

_SELF_TEST_KEY = "self-test"
_SELF_TEST_PLAINTEXT = "{}"


class CryptoOperation(str, Enum):
    DERIVE = "derive"
    ENCRYPT = "encrypt"
    DECRYPT = "decrypt"


class CryptoBackend(ABC):
    """Key derivation and AEAD primitives behind one capability interface.

    Concrete backends only supply the raw primitives (PBKDF2, SHA-512,
    seal/open for one AES mode) and declare which tag sizes they honour per
    mode. Parameter defaults, validation and round-trip checks live here so
    that every backend produces identical cipher documents.
    """

    name: str = "abstract"

    # mode -> tag sizes (bits) this backend can produce and verify
    tag_sizes: Dict[AESMode, FrozenSet[int]] = {}

    supports_adata: bool = True

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    @abstractmethod
    def _pbkdf2(self, password: bytes, salt: bytes, iterations: int, length: int) -> bytes:
        """PBKDF2-HMAC-SHA256."""

    @abstractmethod
    def _sha512(self, data: bytes) -> bytes:
        """SHA-512 digest."""

    @abstractmethod
    def _seal(self, mode: AESMode, key: bytes, iv: bytes, plaintext: bytes,
              adata: bytes, tag_length: int) -> bytes:
        """Encrypt and return ciphertext followed by a ``tag_length``-byte tag."""

    @abstractmethod
    def _open(self, mode: AESMode, key: bytes, iv: bytes, sealed: bytes,
              adata: bytes, tag_length: int) -> bytes:
        """Verify and decrypt; raise DecryptionFailure on a bad tag."""

    # ------------------------------------------------------------------
    # Capability predicates
    # ------------------------------------------------------------------

    def can_derive(self) -> bool:
        return True

    def _accepts(self, params: CipherParams) -> bool:
        mode = params.mode
        if mode is None or AESMode(mode) not in self.tag_sizes:
            return False
        if params.tag_size not in self.tag_sizes[AESMode(mode)]:
            return False
        if params.key_size not in KEY_SIZES:
            return False
        if params.iv is not None and not MIN_IV_LENGTH <= len(params.iv) <= MAX_IV_LENGTH:
            return False
        if params.adata and not self.supports_adata:
            return False
        return True

    def can_encrypt(self, params: Optional[CipherParams] = None) -> bool:
        """Can this backend encrypt with ``params`` (defaults filled in)?"""
        requested = params or CipherParams()
        probe = replace(
            with_defaults(requested),
            iv=requested.iv if requested.iv is not None else b"\x00" * MAX_IV_LENGTH,
        )
        return self._accepts(probe)

    def can_decrypt(self, params: CipherParams) -> bool:
        """Can this backend decrypt a cipher described by ``params``?"""
        return self._accepts(params)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def derive_key(self, secret: str, salt: str, iterations: int,
                   prehash_sha512: bool = True) -> str:
        """PBKDF2-HMAC-SHA256 of ``secret`` as a 64-character lowercase hex string.

        With ``prehash_sha512`` the SHA-512 digest of the secret is stretched
        instead of the secret itself.
        """
        material = secret.encode("utf-8")
        if prehash_sha512:
            material = self._sha512(material)
        derived = self._pbkdf2(material, salt.encode("utf-8"), iterations, DERIVED_KEY_LENGTH)
        return derived.hex()

    def encrypt(self, plaintext: str, key: str,
                params: Optional[CipherParams] = None) -> CipherParams:
        """Encrypt ``plaintext`` under the key string ``key``.

        Returns the complete parameter record that was used, ciphertext
        included.
        """
        requested = params or CipherParams()
        used = with_defaults(requested)
        validate(used)
        if not self._accepts(used):
            raise BackendUnavailable(
                f"{self.name} backend cannot encrypt with {used.describe()}"
            )

        cipher_key = self._pbkdf2(
            key.encode("utf-8"), used.salt, used.iterations, used.key_size // 8
        )
        sealed = self._seal(
            used.mode, cipher_key, used.iv, plaintext.encode("utf-8"),
            used.aad_bytes, used.tag_size // 8,
        )
        result = replace(used, ciphertext=sealed)
        verify_round_trip(requested, result)
        return result

    def decrypt(self, key: str, params: CipherParams) -> str:
        """Decrypt a cipher described by ``params`` with the key string ``key``."""
        require_decrypt_fields(params)
        validate(params)
        if not self._accepts(params):
            raise BackendUnavailable(
                f"{self.name} backend cannot decrypt {params.describe()}"
            )

        cipher_key = self._pbkdf2(
            key.encode("utf-8"), params.salt, params.iterations, params.key_size // 8
        )
        plain = self._open(
            AESMode(params.mode), cipher_key, params.iv, params.ciphertext,
            params.aad_bytes, params.tag_size // 8,
        )
        try:
            return plain.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecryptionFailure("decrypted data is not utf-8 text", exc) from exc

    def supports(self, operation: CryptoOperation,
                 params: Optional[CipherParams] = None) -> bool:
        if operation is CryptoOperation.DERIVE:
            return self.can_derive()
        if operation is CryptoOperation.ENCRYPT:
            return self.can_encrypt(params)
        return params is not None and self.can_decrypt(params)

    def self_test(self) -> None:
        """Exercise every primitive once; raises if the runtime is unusable."""
        self.derive_key(_SELF_TEST_KEY, "salt", 1)
        for mode, sizes in self.tag_sizes.items():
            params = CipherParams(mode=mode, tag_size=max(sizes), iterations=101)
            sealed = self.encrypt(_SELF_TEST_PLAINTEXT, _SELF_TEST_KEY, params)
            if self.decrypt(_SELF_TEST_KEY, sealed) != _SELF_TEST_PLAINTEXT:
                raise RuntimeError(f"{mode.value} round trip mismatch")


# ---------------------------------------------------------------------------
# Probing and selection
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BackendProbe:
    """Outcome of probing one backend at startup."""

    name: str
    available: bool
    reason: str = ""
    backend: Optional[CryptoBackend] = field(default=None, compare=False, repr=False)


def probe_backend(backend: CryptoBackend, disabled: Iterable[str] = ()) -> BackendProbe:
    if backend.name in set(disabled):
        return BackendProbe(backend.name, False, "disabled by configuration")
    try:
        backend.self_test()
    except Exception as exc:
        logger.warning("Crypto backend %s failed its self-test: %s", backend.name, exc)
        return BackendProbe(backend.name, False, f"self-test failed: {exc}")
    return BackendProbe(backend.name, True, backend=backend)


def default_backends() -> Tuple[CryptoBackend, ...]:
    """The known backends in preference order."""
    from .native import NativeBackend
    from .portable import PortableBackend

    return (NativeBackend(), PortableBackend())


def probe_backends(backends: Optional[Sequence[CryptoBackend]] = None,
                   disabled: Iterable[str] = ()) -> Tuple[BackendProbe, ...]:
    """Probe ``backends`` (default: all known, in preference order)."""
    disabled = frozenset(disabled)
    return tuple(
        probe_backend(backend, disabled)
        for backend in (backends if backends is not None else default_backends())
    )


def select_backend(probes: Sequence[BackendProbe], operation: CryptoOperation,
                   params: Optional[CipherParams] = None) -> CryptoBackend:
    """First available backend, in probe order, that supports the request.

    Raises:
        MissingCipherParameter, CipherParameterError: a decrypt request
            describes a malformed cipher
        BackendUnavailable: no probed backend can do it.
    """
    if operation is CryptoOperation.DECRYPT and params is not None:
        require_decrypt_fields(params)
        validate(params)

    for probe in probes:
        if probe.available and probe.backend.supports(operation, params):
            return probe.backend

    wanted = f" with {params.describe()}" if params is not None else ""
    unavailable = ", ".join(
        f"{p.name}: {p.reason}" for p in probes if not p.available
    )
    message = f"no crypto backend can {operation.value}{wanted}"
    if unavailable:
        message += f" (unavailable: {unavailable})"
    raise BackendUnavailable(message)


class BackendSelector:
    """Holds probe results for one session and picks backends from them."""

    def __init__(self, probes: Sequence[BackendProbe]):
        self._probes = tuple(probes)

    @classmethod
    def probe(cls, backends: Optional[Sequence[CryptoBackend]] = None,
              disabled: Iterable[str] = ()) -> "BackendSelector":
        return cls(probe_backends(backends, disabled))

    @property
    def probes(self) -> Tuple[BackendProbe, ...]:
        return self._probes

    @property
    def available(self) -> Tuple[str, ...]:
        return tuple(p.name for p in self._probes if p.available)

    def select(self, operation: CryptoOperation,
               params: Optional[CipherParams] = None) -> CryptoBackend:
        return select_backend(self._probes, operation, params)
