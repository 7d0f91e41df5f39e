# Vault - Entry Store
#
# The in-memory credential database: a revision number, a map of id -> entry
# and the id counter. Its canonical JSON form is exactly what gets encrypted
# and fingerprinted, so serialization is deterministic (sorted keys, compact
# separators) and round-trips byte for byte.
#
# Ids come from a counter persisted with the store; removed ids are never
# handed out again.
#
# Not thread-safe. One session drives one store.

import json
import logging
from collections import defaultdict
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from ..errors import DecryptionFailure, NoSuchEntry
from .locator import ItemLocator, encode_locator
from .models import EntryAttrs, PasswordStrength, VaultEntry
from .strength import EntropyStrengthClassifier, PasswordStrengthClassifier

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _id_sort_key(entry_id: str) -> Tuple[int, int, str]:
    if entry_id.isdigit():
        return (0, int(entry_id), entry_id)
    return (1, 0, entry_id)


class EntryStore:
    """
    Revisioned collection of credentials.

    Every read hands out copies; the only way to change an entry is through
    the store's own methods, which keep reuse counts and strength indications
    current.
    """

    def __init__(
        self,
        entries: Optional[Dict[str, VaultEntry]] = None,
        revision: int = 0,
        next_id: int = 0,
        classifier: Optional[PasswordStrengthClassifier] = None,
    ):
        self._entries: Dict[str, VaultEntry] = {
            str(eid): replace(entry) for eid, entry in (entries or {}).items()
        }
        self._revision = revision
        self._next_id = max(next_id, self._min_next_id(self._entries))
        self._classifier = classifier or EntropyStrengthClassifier()
        self._recompute_reuse()

    # ── Revision ─────────────────────────────────────────────────────

    def new_revision(self) -> int:
        self._revision += 1
        return self._revision

    def get_revision(self) -> int:
        return self._revision

    def size(self) -> int:
        return len(self._entries)

    # ── Mutation ─────────────────────────────────────────────────────

    def add(self, attrs: EntryAttrs) -> str:
        """Insert a new entry and return its id."""
        entry_id = str(self._next_id)
        self._next_id += 1

        now = _now_iso()
        password = attrs.password or ""
        self._entries[entry_id] = VaultEntry(
            id=entry_id,
            title=attrs.title or "",
            url=encode_locator(attrs.item_url or "", attrs.secure_note_text or ""),
            login=attrs.login or "",
            password=password,
            created=now,
            updated=now,
            password_strength_indication=self._classify(password),
            hidden=bool(attrs.hidden),
        )
        self._recompute_reuse()
        return entry_id

    def update(self, entry_id: str, attrs: EntryAttrs) -> VaultEntry:
        """Apply every non-None attribute to an entry.

        Raises:
            NoSuchEntry: unknown id
        """
        entry = self._require(entry_id)

        if attrs.title is not None:
            entry.title = attrs.title
        if attrs.login is not None:
            entry.login = attrs.login
        if attrs.password is not None:
            entry.password = attrs.password
        if attrs.hidden is not None:
            entry.hidden = attrs.hidden
        if attrs.item_url is not None or attrs.secure_note_text is not None:
            current = ItemLocator.decode(entry.url)
            entry.url = encode_locator(
                attrs.item_url if attrs.item_url is not None else current.url,
                attrs.secure_note_text if attrs.secure_note_text is not None
                else current.secure_note,
            )

        entry.updated = _now_iso()
        entry.password_strength_indication = self._classify(entry.password)
        self._recompute_reuse()
        return replace(entry)

    def remove(self, entry_id: str) -> None:
        self._require(entry_id)
        del self._entries[entry_id]
        self._recompute_reuse()

    def entry_used(self, entry_id: str) -> int:
        """Record one use of an entry; returns the new usage count."""
        entry = self._require(entry_id)
        entry.usage_count += 1
        return entry.usage_count

    def replace_all_entries(self, entries: Iterable[VaultEntry]) -> None:
        """Swap in a whole new set of entries (import / restore)."""
        fresh: Dict[str, VaultEntry] = {}
        for entry in entries:
            copy = replace(entry, id=str(entry.id))
            fresh[copy.id] = copy
        self._entries = fresh
        self._next_id = max(self._next_id, self._min_next_id(fresh))
        self.new_revision()
        self._recompute_reuse()

    # ── Queries ──────────────────────────────────────────────────────

    def get(self, entry_id: str) -> VaultEntry:
        return replace(self._require(entry_id))

    def find(self, *terms: str) -> List[VaultEntry]:
        """
        Entries matching every term, best matches first.

        A term matches an entry when it is a case-insensitive substring of
        its title, login, item URL or secure note. With no terms every entry
        is returned. Ordering: number of fields matched by the terms, then
        usage count, both descending, then id.
        """
        needles = [t.lower() for t in terms if t is not None]
        scored = []
        for entry in self._entries.values():
            fields = self._searchable_fields(entry)
            score = 0
            for needle in needles:
                hits = sum(1 for value in fields if needle in value)
                if hits == 0:
                    break
                score += hits
            else:
                scored.append((score, entry))

        scored.sort(key=lambda item: (-item[0], -item[1].usage_count, _id_sort_key(item[1].id)))
        return [replace(entry) for _, entry in scored]

    def get_entries_which_reuse_passwords(self) -> List[VaultEntry]:
        """Entries sharing their password with at least one other entry."""
        reused = [e for e in self._entries.values() if e.reuse_count > 0]
        reused.sort(key=lambda e: (e.password, _id_sort_key(e.id)))
        return [replace(e) for e in reused]

    # ── Serialization ────────────────────────────────────────────────

    def serialize(self) -> str:
        """Canonical plaintext form of the store."""
        payload = {
            "entries": {eid: entry.to_dict() for eid, entry in self._entries.items()},
            "next_id": self._next_id,
            "revision": self._revision,
        }
        return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)

    @classmethod
    def deserialize(
        cls,
        plaintext: str,
        classifier: Optional[PasswordStrengthClassifier] = None,
    ) -> "EntryStore":
        """
        Rebuild a store from its serialized form.

        Raises:
            DecryptionFailure: the plaintext is not a serialized store
        """
        try:
            payload = json.loads(plaintext)
            raw_entries = payload.get("entries", {})
            entries = {
                str(eid): VaultEntry.from_dict({**data, "id": eid})
                for eid, data in raw_entries.items()
            }
            revision = int(payload.get("revision", 0))
            next_id = int(payload.get("next_id", 0))
        except (ValueError, TypeError, KeyError, AttributeError) as exc:
            raise DecryptionFailure("vault plaintext is not a valid entry database", exc) from exc

        return cls(entries, revision=revision, next_id=next_id, classifier=classifier)

    # ── Internals ────────────────────────────────────────────────────

    def _require(self, entry_id: str) -> VaultEntry:
        entry = self._entries.get(str(entry_id))
        if entry is None:
            raise NoSuchEntry(str(entry_id))
        return entry

    def _classify(self, password: str) -> PasswordStrength:
        return PasswordStrength(self._classifier.classify(password))

    @staticmethod
    def _searchable_fields(entry: VaultEntry) -> List[str]:
        locator = ItemLocator.decode(entry.url)
        return [
            entry.title.lower(),
            entry.login.lower(),
            locator.url.lower(),
            locator.secure_note.lower(),
        ]

    @staticmethod
    def _min_next_id(entries: Dict[str, VaultEntry]) -> int:
        numeric = [int(eid) for eid in entries if eid.isdigit()]
        return max(numeric) + 1 if numeric else 0

    def _recompute_reuse(self) -> None:
        groups: Dict[str, List[VaultEntry]] = defaultdict(list)
        for entry in self._entries.values():
            if entry.password:
                groups[entry.password].append(entry)
        for entry in self._entries.values():
            group = groups.get(entry.password) if entry.password else None
            entry.reuse_count = len(group) - 1 if group else 0
