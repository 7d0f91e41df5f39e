# Vault - Password Strength Classification
#
# A coarse WEAK / MEDIUM / STRONG indication stored with every entry.
# The default classifier estimates entropy from length and character
# classes; callers can plug in a smarter one (zxcvbn and the like).

import math
import re
from abc import ABC, abstractmethod

from .models import PasswordStrength

# Frequently reused passwords that score well on character classes alone
COMMON_PASSWORDS = frozenset({
    "password", "password1", "password123", "passw0rd", "p@ssw0rd",
    "qwerty", "qwerty123", "azerty", "letmein", "welcome", "welcome1",
    "admin", "admin123", "iloveyou", "monkey", "dragon", "sunshine",
    "123456", "12345678", "123456789", "1234567890", "abc123",
})


class PasswordStrengthClassifier(ABC):
    """Maps a password to a PasswordStrength."""

    @abstractmethod
    def classify(self, password: str) -> PasswordStrength:
        """Return the strength indication for ``password``."""


class EntropyStrengthClassifier(PasswordStrengthClassifier):
    """
    Charset-size entropy heuristic: length * log2(alphabet size).

    Alphabet size is the sum of the character classes present (lowercase,
    uppercase, digits, ASCII symbols, anything else).
    """

    WEAK_BELOW_BITS = 50
    MEDIUM_BELOW_BITS = 80

    def entropy_bits(self, password: str) -> float:
        charset_size = 0
        if re.search(r"[a-z]", password):
            charset_size += 26
        if re.search(r"[A-Z]", password):
            charset_size += 26
        if re.search(r"[0-9]", password):
            charset_size += 10
        if re.search(r"[!-/:-@\[-`{-~ ]", password):
            charset_size += 33
        if re.search(r"[^\x00-\x7f]", password):
            charset_size += 100

        if charset_size == 0:
            return 0.0
        return len(password) * math.log2(charset_size)

    def classify(self, password: str) -> PasswordStrength:
        if not password or password.lower() in COMMON_PASSWORDS:
            return PasswordStrength.WEAK

        bits = self.entropy_bits(password)
        if bits < self.WEAK_BELOW_BITS:
            return PasswordStrength.WEAK
        if bits < self.MEDIUM_BELOW_BITS:
            return PasswordStrength.MEDIUM
        return PasswordStrength.STRONG
