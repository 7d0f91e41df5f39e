"""Tests for password strength classification."""

import pytest

from citadel_vault.vault.models import PasswordStrength
from citadel_vault.vault.strength import EntropyStrengthClassifier


@pytest.fixture
def classifier():
    return EntropyStrengthClassifier()


class TestEntropyStrengthClassifier:

    @pytest.mark.parametrize("password", ["zephyr", "jackson", "", "Password123", "123456"])
    def test_weak(self, classifier, password):
        assert classifier.classify(password) is PasswordStrength.WEAK

    @pytest.mark.parametrize("password", ["Tr0ub4dor&3x", "correcthorse12"])
    def test_medium(self, classifier, password):
        assert classifier.classify(password) is PasswordStrength.MEDIUM

    @pytest.mark.parametrize("password", ["ldfksdjfolfj08028&(*&*", "N1N$a23489zasd√©l123"])
    def test_strong(self, classifier, password):
        assert classifier.classify(password) is PasswordStrength.STRONG

    def test_ordering(self):
        assert PasswordStrength.WEAK < PasswordStrength.MEDIUM < PasswordStrength.STRONG

    def test_entropy_grows_with_length(self, classifier):
        assert classifier.entropy_bits("abcdefgh") > classifier.entropy_bits("abcd")
