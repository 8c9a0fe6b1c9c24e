"""Unit tests for auth/passwords.py -- bcrypt hashing and verification."""

from __future__ import annotations

from auth.passwords import PasswordHasher


class TestPasswordHasher:
    def test_hash_is_not_plaintext_and_verifies(self) -> None:
        hasher = PasswordHasher(rounds=4)
        digest = hasher.hash("secret123")
        assert digest != "secret123"
        assert digest.startswith("$2")
        assert hasher.verify("secret123", digest)

    def test_wrong_password_does_not_verify(self) -> None:
        hasher = PasswordHasher(rounds=4)
        digest = hasher.hash("secret123")
        assert not hasher.verify("secret124", digest)

    def test_same_password_hashes_differently(self) -> None:
        """Each hash carries its own salt."""
        hasher = PasswordHasher(rounds=4)
        assert hasher.hash("secret123") != hasher.hash("secret123")

    def test_cost_factor_is_embedded_in_digest(self) -> None:
        digest = PasswordHasher(rounds=5).hash("secret123")
        assert digest.split("$")[2] == "05"

    def test_malformed_digest_returns_false(self) -> None:
        hasher = PasswordHasher(rounds=4)
        assert hasher.verify("secret123", "not-a-bcrypt-hash") is False
        assert hasher.verify("secret123", "") is False

    def test_verify_dummy_always_false(self) -> None:
        hasher = PasswordHasher(rounds=4)
        assert hasher.verify_dummy("trailpass_timing_dummy") is False
        assert hasher.verify_dummy("anything") is False
