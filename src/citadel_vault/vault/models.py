# Vault - Entry Models
#
# VaultEntry is the stored record (what gets serialized and encrypted).
# EntryView is what callers see: the packed ``url`` field split into the
# item URL and the secure note.

from dataclasses import asdict, dataclass
from enum import IntEnum
from typing import Any, Dict, Optional

from .locator import ItemLocator, encode_locator


class PasswordStrength(IntEnum):
    """Subjective strength of a password, higher is harder to guess."""

    WEAK = 1
    MEDIUM = 2
    STRONG = 3


@dataclass
class EntryAttrs:
    """Caller-provided attributes for adding or updating an entry.

    On update, attributes left as None keep their previous value.
    """

    title: Optional[str] = None
    item_url: Optional[str] = None
    login: Optional[str] = None
    password: Optional[str] = None
    secure_note_text: Optional[str] = None
    hidden: Optional[bool] = None


@dataclass
class VaultEntry:
    """One credential as stored in the database."""

    id: str
    title: str = ""
    url: str = ""
    login: str = ""
    password: str = ""
    created: str = ""  # ISO 8601
    updated: str = ""  # ISO 8601
    usage_count: int = 0
    reuse_count: int = 0
    password_strength_indication: PasswordStrength = PasswordStrength.WEAK
    hidden: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["password_strength_indication"] = int(self.password_strength_indication)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VaultEntry":
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            url=data.get("url", ""),
            login=data.get("login", ""),
            password=data.get("password", ""),
            created=data.get("created", ""),
            updated=data.get("updated", ""),
            usage_count=int(data.get("usage_count", 0)),
            reuse_count=int(data.get("reuse_count", 0)),
            password_strength_indication=PasswordStrength(
                data.get("password_strength_indication", PasswordStrength.WEAK)
            ),
            hidden=bool(data.get("hidden", False)),
        )

    @property
    def locator(self) -> ItemLocator:
        return ItemLocator.decode(self.url)


@dataclass(frozen=True)
class EntryView:
    """Caller-facing copy of an entry."""

    id: str
    title: str
    item_url: str
    secure_note_text: str
    login: str
    password: str
    created: str
    updated: str
    usage_count: int
    reuse_count: int
    password_strength_indication: PasswordStrength
    hidden: bool = False

    @classmethod
    def from_entry(cls, entry: VaultEntry) -> "EntryView":
        locator = entry.locator
        return cls(
            id=entry.id,
            title=entry.title,
            item_url=locator.url,
            secure_note_text=locator.secure_note,
            login=entry.login,
            password=entry.password,
            created=entry.created,
            updated=entry.updated,
            usage_count=entry.usage_count,
            reuse_count=entry.reuse_count,
            password_strength_indication=entry.password_strength_indication,
            hidden=entry.hidden,
        )

    def to_entry(self) -> VaultEntry:
        return VaultEntry(
            id=self.id,
            title=self.title,
            url=encode_locator(self.item_url, self.secure_note_text),
            login=self.login,
            password=self.password,
            created=self.created,
            updated=self.updated,
            usage_count=self.usage_count,
            reuse_count=self.reuse_count,
            password_strength_indication=self.password_strength_indication,
            hidden=self.hidden,
        )
