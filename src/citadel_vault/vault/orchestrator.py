# Vault - Sync Orchestrator
#
# Owns one session: the credentials, the decrypted entry store and the
# fingerprint of the last cipher seen on the server. Every push carries the
# previous fingerprint so the server can refuse writes made against a stale
# copy (StaleWrite); nothing is merged or retried here.
#
# Vaults opened from the offline cache are read-only: every operation that
# mutates entries or talks to the server raises OfflineModeViolation before
# doing any work.
#
# Callers must serialize calls on one instance.

import asyncio
import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from ..core.audit_log import AuditLogger, EventSeverity, EventType
from ..core.config import DEFAULT_OFFLINE_PBKDF2_ITERATIONS
from ..crypto.keys import KeyDeriver
from ..crypto.service import VaultCrypto
from ..errors import (
    BadCredentials,
    NetworkError,
    OfflineModeViolation,
    PasswordRotationDiverged,
    StaleWrite,
    VaultError,
)
from ..remote.offline import OFFLINE_URL, NoOpOfflineProvider, OfflineProvider
from ..remote.transport import Credentials, Transport
from .entry_store import EntryStore
from .models import EntryAttrs, EntryView, PasswordStrength
from .strength import PasswordStrengthClassifier

logger = logging.getLogger(__name__)


class Vault:
    """
    An authenticated vault session.

    Build with ``await Vault.build(...)`` (or ``citadel_vault.login``), then
    use the entry methods to read and edit, ``save()`` to push and
    ``pull()`` to refresh.
    """

    def __init__(
        self,
        creds: Credentials,
        crypto: VaultCrypto,
        transport: Transport,
        offline_provider: Optional[OfflineProvider] = None,
        demo_mode: bool = False,
        audit: Optional[AuditLogger] = None,
        classifier: Optional[PasswordStrengthClassifier] = None,
        offline_iterations: int = DEFAULT_OFFLINE_PBKDF2_ITERATIONS,
    ):
        self._creds = creds
        self._crypto = crypto
        self._transport = transport
        self._offline_provider = offline_provider or NoOpOfflineProvider()
        self._demo_mode = demo_mode
        self._audit = audit or AuditLogger()
        self._classifier = classifier
        self._offline_iterations = offline_iterations

        self._store = EntryStore(classifier=classifier)
        self._last_fingerprint: Optional[str] = None
        self._has_unsynced_changes = False
        self._pending_snapshots: Set[asyncio.Task] = set()

    @classmethod
    async def build(
        cls,
        creds: Credentials,
        crypto: VaultCrypto,
        cipher: Optional[str],
        transport: Transport,
        offline_provider: Optional[OfflineProvider] = None,
        demo_mode: bool = False,
        audit: Optional[AuditLogger] = None,
        classifier: Optional[PasswordStrengthClassifier] = None,
        offline_iterations: int = DEFAULT_OFFLINE_PBKDF2_ITERATIONS,
    ) -> "Vault":
        """
        Create a session and load ``cipher`` into it.

        An empty or missing cipher gives an empty vault. When offline mode
        is enabled, a fresh offline snapshot is written right away.

        Raises:
            DecryptionFailure: ``cipher`` cannot be decrypted with the local key
        """
        vault = cls(
            creds, crypto, transport,
            offline_provider=offline_provider,
            demo_mode=demo_mode,
            audit=audit,
            classifier=classifier,
            offline_iterations=offline_iterations,
        )
        if cipher:
            plain = await crypto.decrypt(creds.local_key, cipher)
            vault._store = EntryStore.deserialize(plain, classifier)
            vault._last_fingerprint = await crypto.fingerprint(plain, creds.local_key)
            vault._save_offline_vault()

        vault._audit.log_vault_event(
            EventType.VAULT_OPENED,
            "session opened",
            details={
                "entries": vault.get_nb_entries(),
                "offline": vault.offline,
                "demo": demo_mode,
            },
            user_context=vault._audit_context(),
        )
        return vault

    # ── Session state ────────────────────────────────────────────────

    @property
    def username(self) -> str:
        return self._creds.username

    @property
    def server_url(self) -> str:
        return self._creds.server_url

    @property
    def offline(self) -> bool:
        """Was this vault opened from the offline cache?"""
        return self._creds.server_url == OFFLINE_URL

    @property
    def offline_enabled(self) -> bool:
        """Does this session keep the offline cache up to date?"""
        return self._creds.offline_key is not None

    @property
    def has_unsynced_changes(self) -> bool:
        """True when local edits have not reached the server.

        Stays true after ``save()`` on a demo server, which never stores
        anything.
        """
        return self._has_unsynced_changes

    def is_in_demo_mode(self) -> bool:
        return self._demo_mode

    def get_db_revision(self) -> int:
        return self._store.get_revision()

    def get_nb_entries(self) -> int:
        return self._store.size()

    # ── Server sync ──────────────────────────────────────────────────

    async def save(self) -> None:
        """
        Push the current entries to the server.

        On a demo server this returns without contacting it.

        Raises:
            OfflineModeViolation: the vault is offline
            StaleWrite: the server copy changed since the last pull
            BadCredentials, NetworkError: transport failures
        """
        self._ensure_online("save")

        # A new revision makes every push's plaintext, and so its
        # fingerprint, differ from the previous one.
        revision = self._store.new_revision()

        if self._demo_mode:
            self._has_unsynced_changes = True
            self._audit.log_vault_event(
                EventType.VAULT_DEMO_SAVE,
                "save skipped, server is in demo mode",
                details={"revision": revision},
                user_context=self._audit_context(),
            )
            return

        try:
            fingerprint = await self._push_cipher(self._creds, None)
        except StaleWrite:
            self._audit.log_event(
                EventType.VAULT_STALE_WRITE,
                EventSeverity.INVESTIGATE,
                "Vault: push rejected, server has a newer version",
                details={"revision": revision},
                user_context=self._audit_context(),
            )
            raise

        self._last_fingerprint = fingerprint
        self._has_unsynced_changes = False
        self._audit.log_vault_event(
            EventType.VAULT_SAVED,
            "entries pushed to server",
            details={"revision": revision, "entries": self._store.size()},
            user_context=self._audit_context(),
        )
        self._save_offline_vault()

    async def pull(self) -> None:
        """
        Replace the local entries with the server copy.

        An empty server copy resets the vault to an empty store.

        Raises:
            OfflineModeViolation: the vault is offline
            DecryptionFailure: the server cipher is not readable with our key
            BadCredentials, NetworkError: transport failures
        """
        self._ensure_online("pull")

        plain, fingerprint = await self._fetch_plaintext(self._creds)
        if plain is None:
            self._store = EntryStore(classifier=self._classifier)
            self._last_fingerprint = ""
            self._audit.log_vault_event(
                EventType.VAULT_EMPTY_REMOTE,
                "server holds no data, starting empty",
                user_context=self._audit_context(),
            )
        else:
            self._store = EntryStore.deserialize(plain, self._classifier)
            self._last_fingerprint = fingerprint
            self._audit.log_vault_event(
                EventType.VAULT_PULLED,
                "entries pulled from server",
                details={"revision": self._store.get_revision(), "entries": self._store.size()},
                user_context=self._audit_context(),
            )

        self._has_unsynced_changes = False
        self._save_offline_vault()

    async def update_master_password(self, new_password: str) -> None:
        """
        Change the master password, server side included.

        The new cipher is pushed under the old remote key while asking the
        server to switch to the new one, then read back with the new
        credentials. The session switches to the new credentials only once
        that read succeeds.

        Raises:
            OfflineModeViolation: the vault is offline
            PasswordRotationDiverged: the server took the new key but it
                could not be confirmed, and the old key no longer works
            VaultError: any other push or confirmation failure; the old
                credentials stay in effect
        """
        self._ensure_online("update_master_password")

        derivations = [
            self._crypto.derive_local_key(new_password),
            self._crypto.derive_remote_key(new_password),
        ]
        if self.offline_enabled:
            derivations.append(self._derive_offline_key(new_password))
        keys = await asyncio.gather(*derivations)
        new_local_key, new_remote_key = keys[0], keys[1]
        new_offline_key = keys[2] if self.offline_enabled else None

        self._store.new_revision()

        # Authenticated with the old remote key, encrypted with the new local key
        push_creds = replace(self._creds, local_key=new_local_key)
        try:
            self._last_fingerprint = await self._push_cipher(push_creds, new_remote_key)
        except VaultError as exc:
            self._log_rotation_failure("push", exc)
            raise

        pending = replace(
            push_creds, remote_key=new_remote_key, offline_key=new_offline_key
        )
        try:
            plain, fingerprint = await self._fetch_plaintext(pending)
            if plain is None:
                raise NetworkError("server returned no data after the password change")
        except VaultError as exc:
            await self._reconcile_rotation(pending, exc)
            raise

        self._creds = pending
        self._store = EntryStore.deserialize(plain, self._classifier)
        self._last_fingerprint = fingerprint
        self._has_unsynced_changes = False

        self._audit.log_event(
            EventType.PASSWORD_ROTATED,
            EventSeverity.ALERT,
            "Vault: master password changed",
            details={"revision": self._store.get_revision()},
            user_context=self._audit_context(),
        )
        self._save_offline_vault()

    # ── Entries ──────────────────────────────────────────────────────

    def add_entry(self, attrs: EntryAttrs) -> str:
        """Add an entry; returns its id."""
        self._ensure_online("add_entry")
        entry_id = self._store.add(attrs)
        self._entry_changed(EventType.ENTRY_ADDED, entry_id)
        return entry_id

    def update_entry(self, entry_id: str, attrs: EntryAttrs) -> EntryView:
        """Edit an entry. Attributes left as None keep their value."""
        self._ensure_online("update_entry")
        entry = self._store.update(entry_id, attrs)
        self._entry_changed(EventType.ENTRY_UPDATED, entry_id)
        return EntryView.from_entry(entry)

    def remove_entry(self, entry_id: str) -> None:
        self._ensure_online("remove_entry")
        self._store.remove(entry_id)
        self._entry_changed(EventType.ENTRY_REMOVED, entry_id)

    def replace_all_entries(self, entries: Iterable[EntryView]) -> None:
        """
        Replace every entry (import / restore).

        Follow with ``save()`` to overwrite the server copy, or ``pull()``
        to discard the import.
        """
        self._ensure_online("replace_all_entries")
        self._store.replace_all_entries(view.to_entry() for view in entries)
        self._has_unsynced_changes = True
        self._audit.log_vault_event(
            EventType.ENTRIES_REPLACED,
            "all entries replaced",
            details={"entries": self._store.size()},
            user_context=self._audit_context(),
        )

    def entry_used(self, entry_id: str) -> int:
        """Record one use of an entry; returns the new usage count."""
        count = self._store.entry_used(entry_id)
        self._has_unsynced_changes = True
        return count

    def get_entry(self, entry_id: str) -> EntryView:
        return EntryView.from_entry(self._store.get(entry_id))

    def find_entries(self, *query: str) -> List[EntryView]:
        """Entries matching every query substring, best matches first."""
        return [EntryView.from_entry(e) for e in self._store.find(*query)]

    def get_all_entries(self) -> List[EntryView]:
        return self.find_entries()

    def get_weak_passwords(
        self, threshold: PasswordStrength = PasswordStrength.WEAK
    ) -> List[EntryView]:
        """Entries whose strength is at or below ``threshold``."""
        return [
            e for e in self.get_all_entries()
            if e.password_strength_indication <= threshold
        ]

    def get_entries_which_reuse_passwords(self) -> List[EntryView]:
        return [
            EntryView.from_entry(e)
            for e in self._store.get_entries_which_reuse_passwords()
        ]

    # ── Offline cache ────────────────────────────────────────────────

    async def wait_for_offline_cache(self) -> None:
        """Wait until every scheduled offline snapshot has finished."""
        while self._pending_snapshots:
            await asyncio.gather(*list(self._pending_snapshots), return_exceptions=True)
            await asyncio.sleep(0)

    def _save_offline_vault(self) -> None:
        """Schedule an encrypted snapshot for the offline cache."""
        if not self.offline_enabled or self.offline:
            return

        plain = self._store.serialize()
        task = asyncio.get_running_loop().create_task(
            self._write_offline_snapshot(self._creds.offline_key, plain)
        )
        self._pending_snapshots.add(task)
        task.add_done_callback(self._on_snapshot_done)

    async def _write_offline_snapshot(self, offline_key: str, plain: str) -> None:
        cipher = await self._crypto.encrypt(offline_key, plain)
        await self._offline_provider.save_offline_cipher(cipher)

    def _on_snapshot_done(self, task: asyncio.Task) -> None:
        self._pending_snapshots.discard(task)
        if task.cancelled():
            return

        exc = task.exception()
        if exc is not None:
            logger.error("Error saving offline vault: %s", exc)
            self._audit.log_event(
                EventType.OFFLINE_SNAPSHOT_FAILED,
                EventSeverity.INVESTIGATE,
                "Vault: offline snapshot could not be saved",
                details={"error": type(exc).__name__},
                user_context=self._audit_context(),
            )
            return

        logger.info("Offline vault saved")
        self._audit.log_vault_event(
            EventType.OFFLINE_SNAPSHOT_SAVED,
            "offline snapshot saved",
            user_context=self._audit_context(),
        )

    # ── Internals ────────────────────────────────────────────────────

    def _ensure_online(self, operation: str) -> None:
        if self.offline:
            raise OfflineModeViolation(operation)

    async def _derive_offline_key(self, master_password: str) -> str:
        salt = await self._offline_provider.offline_salt()
        return await KeyDeriver.derive_offline_key(
            master_password, salt, self._crypto.selector, self._offline_iterations
        )

    async def _push_cipher(self, creds: Credentials, new_remote_key: Optional[str]) -> str:
        """Encrypt and push the store; returns the pushed fingerprint."""
        plain = self._store.serialize()
        cipher, fingerprint = await asyncio.gather(
            self._crypto.encrypt(creds.local_key, plain),
            self._crypto.fingerprint(plain, creds.local_key),
        )
        await self._transport.push_cipher(
            creds, new_remote_key, cipher, self._last_fingerprint, fingerprint
        )
        return fingerprint

    async def _fetch_plaintext(self, creds: Credentials) -> Tuple[Optional[str], str]:
        """Pull and decrypt without touching session state.

        Returns (None, "") when the server has no cipher.
        """
        cipher = await self._transport.pull_cipher(creds)
        if not cipher:
            return None, ""
        plain = await self._crypto.decrypt(creds.local_key, cipher)
        fingerprint = await self._crypto.fingerprint(plain, creds.local_key)
        return plain, fingerprint

    async def _reconcile_rotation(self, pending: Credentials, error: VaultError) -> None:
        """Find out which remote key the server accepts after a failed confirmation.

        Raises PasswordRotationDiverged when only the new key can work;
        returns (so the caller re-raises ``error``) when the old key still does.
        """
        try:
            await self._transport.pull_cipher(self._creds)
        except BadCredentials as probe_error:
            logger.error("Password change diverged: server no longer accepts the old key")
            self._audit.log_event(
                EventType.PASSWORD_ROTATION_DIVERGED,
                EventSeverity.CRITICAL,
                "Vault: server switched to the new master password but it could not be confirmed",
                details={"error": type(error).__name__},
                user_context=self._audit_context(),
            )
            raise PasswordRotationDiverged(
                "password change was applied by the server but could not be confirmed; "
                "log in again with the new master password",
                pending_credentials=pending,
                cause=error,
            ) from probe_error
        except VaultError as probe_error:
            logger.warning(
                "Could not check the old key after a failed password change: %s", probe_error
            )
        self._log_rotation_failure("confirm", error)

    def _log_rotation_failure(self, stage: str, error: VaultError) -> None:
        self._audit.log_event(
            EventType.PASSWORD_ROTATION_FAILED,
            EventSeverity.ALERT,
            f"Vault: master password change failed at {stage}",
            details={"stage": stage, "error": type(error).__name__},
            user_context=self._audit_context(),
        )

    def _entry_changed(self, event_type: EventType, entry_id: str) -> None:
        self._has_unsynced_changes = True
        self._audit.log_vault_event(
            event_type,
            f"entry {entry_id} changed",
            details={"entry_id": entry_id},
            user_context=self._audit_context(),
        )

    def _audit_context(self) -> Dict[str, Any]:
        return {"username": self._creds.username, "server_url": self._creds.server_url}
