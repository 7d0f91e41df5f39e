# Crypto Module - Keys, Backends and Cipher Format
#
# - Master password key derivation (local, remote, offline, fingerprint)
# - Native (cryptography) and portable (pycryptodome) AEAD backends
# - SJCL-compatible cipher parameter record

from .backends import (
    BackendProbe,
    BackendSelector,
    CryptoBackend,
    CryptoOperation,
    probe_backends,
    select_backend,
)
from .keys import KeyDeriver, derive_key
from .native import NativeBackend
from .params import (
    AESMode,
    CipherParams,
    params_from_string,
    params_to_string,
)
from .portable import PortableBackend
from .service import VaultCrypto

__all__ = [
    # Backends
    "CryptoBackend",
    "CryptoOperation",
    "BackendProbe",
    "BackendSelector",
    "NativeBackend",
    "PortableBackend",
    "probe_backends",
    "select_backend",
    # Cipher format
    "AESMode",
    "CipherParams",
    "params_from_string",
    "params_to_string",
    # Keys
    "KeyDeriver",
    "derive_key",
    "VaultCrypto",
]
