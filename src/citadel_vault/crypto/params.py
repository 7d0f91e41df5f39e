"""Authenticated-cipher parameter record and its string encoding.

A vault cipher is a self-describing JSON document compatible with the
SJCL ``sjcl.encrypt`` format used by the web clients::

    {"iv": b64, "v": 1, "iter": 10000, "ks": 128, "ts": 64, "mode": "ccm",
     "adata": b64, "cipher": "aes", "salt": b64, "ct": b64}

The cipher key is PBKDF2-HMAC-SHA256(key string, salt, iter, ks / 8) and
``ct`` is the AEAD ciphertext followed by the ``ts``-bit tag. Every field a
caller leaves out is filled in here, so the record returned by an encrypt
call always carries everything needed to decrypt it on any backend.
"""

import base64
import binascii
import json
import re
import secrets
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any, Dict, Optional

from ..errors import CipherParameterError, MissingCipherParameter


class AESMode(str, Enum):
    """AES modes that can appear in a cipher document."""

    CCM = "ccm"
    GCM = "gcm"
    OCB2 = "ocb2"


FORMAT_VERSION = 1
CIPHER_NAME = "aes"

DEFAULT_MODE = AESMode.CCM
DEFAULT_ITERATIONS = 10000
DEFAULT_KEY_SIZE = 128
DEFAULT_TAG_SIZE = 64

KEY_SIZES = frozenset({128, 192, 256})
TAG_SIZES = frozenset({64, 96, 128})

IV_LENGTH = 16      # bytes, fresh per call
SALT_LENGTH = 8     # bytes, fresh per call
MIN_IV_LENGTH = 8
MAX_IV_LENGTH = 16

# SJCL refuses to stretch a password with 100 iterations or fewer
MIN_ITERATIONS = 101

# JSON field names in document order
_WIRE_NAMES = (
    ("iv", "iv"),
    ("version", "v"),
    ("iterations", "iter"),
    ("key_size", "ks"),
    ("tag_size", "ts"),
    ("mode", "mode"),
    ("adata", "adata"),
    ("cipher", "cipher"),
    ("salt", "salt"),
    ("ciphertext", "ct"),
)

# Fields an AEAD decryption cannot do without, with their error wording
_REQUIRED_FOR_DECRYPT = (
    ("mode", "AES mode"),
    ("key_size", "key size"),
    ("tag_size", "tag length"),
    ("iv", "IV"),
    ("salt", "salt"),
    ("iterations", "iteration count"),
    ("ciphertext", "ciphertext"),
)


@dataclass(frozen=True)
class CipherParams:
    """One authenticated-encryption invocation.

    ``adata`` is the additional authenticated data as text; ``iv``,
    ``salt`` and ``ciphertext`` are raw bytes.
    """

    iv: Optional[bytes] = None
    version: Optional[int] = None
    iterations: Optional[int] = None
    key_size: Optional[int] = None
    tag_size: Optional[int] = None
    mode: Optional[AESMode] = None
    adata: Optional[str] = None
    cipher: Optional[str] = None
    salt: Optional[bytes] = None
    ciphertext: Optional[bytes] = None

    @property
    def aad_bytes(self) -> bytes:
        return (self.adata or "").encode("utf-8")

    def describe(self) -> str:
        """Short human description, safe to log (no key material)."""
        iv_len = len(self.iv) if self.iv is not None else None
        return (
            f"mode={_mode_value(self.mode)} ks={self.key_size} ts={self.tag_size} "
            f"iv_bytes={iv_len} adata={'yes' if self.adata else 'no'}"
        )


def _mode_value(mode: Optional[AESMode]) -> Optional[str]:
    return mode.value if isinstance(mode, AESMode) else mode


def with_defaults(params: Optional[CipherParams] = None) -> CipherParams:
    """Return ``params`` with every omitted field filled.

    Salt and IV are drawn fresh for every call; the ciphertext is cleared.
    """
    p = params or CipherParams()
    return replace(
        p,
        iv=p.iv if p.iv is not None else secrets.token_bytes(IV_LENGTH),
        version=p.version if p.version is not None else FORMAT_VERSION,
        iterations=p.iterations if p.iterations is not None else DEFAULT_ITERATIONS,
        key_size=p.key_size if p.key_size is not None else DEFAULT_KEY_SIZE,
        tag_size=p.tag_size if p.tag_size is not None else DEFAULT_TAG_SIZE,
        mode=AESMode(p.mode) if p.mode is not None else DEFAULT_MODE,
        adata=p.adata if p.adata is not None else "",
        cipher=p.cipher if p.cipher is not None else CIPHER_NAME,
        salt=p.salt if p.salt is not None else secrets.token_bytes(SALT_LENGTH),
        ciphertext=None,
    )


def require_decrypt_fields(params: CipherParams) -> None:
    """Fail fast when a field the AEAD mode needs is missing."""
    for name, description in _REQUIRED_FOR_DECRYPT:
        if getattr(params, name) is None:
            raise MissingCipherParameter(name, description)


def validate(params: CipherParams) -> None:
    """Check a fully-populated record against the format's limits."""
    if params.cipher not in (None, CIPHER_NAME):
        raise CipherParameterError(f"unsupported cipher {params.cipher!r}")
    if params.version not in (None, FORMAT_VERSION):
        raise CipherParameterError(f"unsupported format version {params.version!r}")
    if params.key_size is not None and params.key_size not in KEY_SIZES:
        raise CipherParameterError(f"invalid key size {params.key_size!r}")
    if params.tag_size is not None and params.tag_size not in TAG_SIZES:
        raise CipherParameterError(f"invalid tag length {params.tag_size!r}")
    if params.iterations is not None and params.iterations < MIN_ITERATIONS:
        raise CipherParameterError(
            f"iteration count must be at least {MIN_ITERATIONS}, got {params.iterations}"
        )
    if params.iv is not None and not MIN_IV_LENGTH <= len(params.iv) <= MAX_IV_LENGTH:
        raise CipherParameterError(
            f"IV must be {MIN_IV_LENGTH}-{MAX_IV_LENGTH} bytes, got {len(params.iv)}"
        )
    if params.ciphertext is not None and params.tag_size is not None:
        if len(params.ciphertext) < params.tag_size // 8:
            raise CipherParameterError("ciphertext shorter than its tag")


def verify_round_trip(requested: CipherParams, used: CipherParams) -> None:
    """Every field the caller asked for must be exactly what was used."""
    for f in fields(CipherParams):
        if f.name == "ciphertext":
            continue
        wanted = getattr(requested, f.name)
        if wanted is None:
            continue
        if f.name == "mode":
            wanted = AESMode(wanted)
        if getattr(used, f.name) != wanted:
            raise CipherParameterError(f"field {f.name} does not match")


def ccm_nonce(iv: bytes, message_length: int) -> bytes:
    """Truncate the IV to a CCM nonce for a message of the given length.

    The length field ``L`` is the smallest of 2..4 bytes able to hold the
    message length, widened when the IV is too short to fill ``15 - L``.
    """
    length_field = 2
    while length_field < 4 and message_length >> (8 * length_field):
        length_field += 1
    if length_field < 15 - len(iv):
        length_field = 15 - len(iv)
    return iv[: 15 - length_field]


# ---------------------------------------------------------------------------
# String encoding
# ---------------------------------------------------------------------------


def _b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _b64decode(text: str, name: str) -> bytes:
    # Pulled ciphers may have lost their padding to the transport sanitizer
    cleaned = re.sub(r"[\s=]", "", text)
    cleaned += "=" * (-len(cleaned) % 4)
    try:
        return base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CipherParameterError(f"field {name} is not valid base64", exc) from exc


def params_to_dict(params: CipherParams) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for attr, wire in _WIRE_NAMES:
        value = getattr(params, attr)
        if value is None:
            continue
        if attr == "adata":
            value = _b64encode(value.encode("utf-8"))
        elif attr == "mode":
            value = _mode_value(value)
        elif isinstance(value, bytes):
            value = _b64encode(value)
        out[wire] = value
    return out


def params_to_string(params: CipherParams) -> str:
    """Serialize a parameter record to its JSON cipher document."""
    return json.dumps(params_to_dict(params), separators=(",", ":"))


def params_from_dict(data: Dict[str, Any]) -> CipherParams:
    values: Dict[str, Any] = {}
    for attr, wire in _WIRE_NAMES:
        if wire not in data or data[wire] is None:
            continue
        raw = data[wire]
        if attr in ("iv", "salt", "ciphertext"):
            if not isinstance(raw, str):
                raise CipherParameterError(f"field {wire} must be a base64 string")
            values[attr] = _b64decode(raw, wire)
        elif attr == "adata":
            if not isinstance(raw, str):
                raise CipherParameterError("field adata must be a base64 string")
            try:
                values[attr] = _b64decode(raw, wire).decode("utf-8")
            except UnicodeDecodeError as exc:
                raise CipherParameterError("field adata is not utf-8 text", exc) from exc
        elif attr == "mode":
            try:
                values[attr] = AESMode(raw)
            except ValueError as exc:
                raise CipherParameterError(f"unknown AES mode {raw!r}", exc) from exc
        elif attr == "cipher":
            values[attr] = str(raw)
        else:
            if isinstance(raw, bool) or not isinstance(raw, int):
                raise CipherParameterError(f"field {wire} must be an integer")
            values[attr] = raw
    return CipherParams(**values)


def params_from_string(text: str) -> CipherParams:
    """Parse a JSON cipher document.

    Raises:
        CipherParameterError: the text is not a cipher document.
    """
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise CipherParameterError("cipher is not a JSON document", exc) from exc
    if not isinstance(data, dict):
        raise CipherParameterError("cipher is not a JSON object")
    return params_from_dict(data)
