# Vault - Item Locator
#
# A credential's stored ``url`` field carries two things: the item URL and
# an optional secure note. They are packed as a small JSON object with the
# note base64 encoded. Records written by older clients joined the JSON
# with "|||" instead of ","; anything that is not a packed locator at all is
# taken as a literal URL.

import base64
import binascii
import json
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

LEGACY_SEPARATOR = "|||"


def _decode_note(encoded: str) -> str:
    data = base64.b64decode(encoded, validate=True)
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        # Older web clients encoded notes with btoa(), one byte per char
        return data.decode("latin-1")


def _unpack(text: str) -> Optional[Tuple[str, str]]:
    """(url, note) from a packed JSON locator, or None if it is not one."""
    try:
        data = json.loads(text)
        url = data["url"]
        note = _decode_note(data["secureNote"])
    except (ValueError, TypeError, KeyError, binascii.Error):
        return None
    if not isinstance(url, str):
        return None
    return url, note


class LocatorFormat(str, Enum):
    """How a stored locator was encoded."""

    JSON = "json"
    LEGACY_SEPARATOR = "legacy_separator"
    PLAIN_URL = "plain_url"


@dataclass(frozen=True)
class ItemLocator:
    url: str = ""
    secure_note: str = ""
    format: LocatorFormat = LocatorFormat.JSON

    def encode(self) -> str:
        """Stored form; always the current JSON format."""
        note = base64.b64encode(self.secure_note.encode("utf-8")).decode("ascii")
        return json.dumps(
            {"url": self.url, "secureNote": note},
            separators=(",", ":"),
            ensure_ascii=False,
        )

    @classmethod
    def decode(cls, raw: str) -> "ItemLocator":
        """Parse a stored locator. Never raises.

        Unparseable input becomes a plain URL with an empty note.
        """
        if not isinstance(raw, str):
            return cls(url="", format=LocatorFormat.PLAIN_URL)

        packed = _unpack(raw)
        if packed is not None:
            return cls(url=packed[0], secure_note=packed[1], format=LocatorFormat.JSON)

        if LEGACY_SEPARATOR in raw:
            packed = _unpack(raw.replace(LEGACY_SEPARATOR, ","))
            if packed is not None:
                return cls(
                    url=packed[0], secure_note=packed[1],
                    format=LocatorFormat.LEGACY_SEPARATOR,
                )

        return cls(url=raw, format=LocatorFormat.PLAIN_URL)


def encode_locator(url: str, secure_note: str = "") -> str:
    return ItemLocator(url=url or "", secure_note=secure_note or "").encode()


def decode_locator(raw: str) -> ItemLocator:
    return ItemLocator.decode(raw)
