# Vault Module - Encrypted, Server-Synced Credential Store
#
# Entry database with search and password analytics, plus the session
# object that keeps it in sync with the server.

from .entry_store import EntryStore
from .locator import ItemLocator, LocatorFormat
from .models import EntryAttrs, EntryView, PasswordStrength, VaultEntry
from .orchestrator import Vault
from .strength import EntropyStrengthClassifier, PasswordStrengthClassifier

__all__ = [
    "Vault",
    "EntryStore",
    "EntryAttrs",
    "EntryView",
    "VaultEntry",
    "PasswordStrength",
    "ItemLocator",
    "LocatorFormat",
    "PasswordStrengthClassifier",
    "EntropyStrengthClassifier",
]
