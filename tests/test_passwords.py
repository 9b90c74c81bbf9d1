"""Unit tests for auth/passwords.py -- bcrypt hashing and verification."""

import pytest

from auth.passwords import PasswordHasher


def test_same_plaintext_hashes_differently_and_both_verify(hasher: PasswordHasher) -> None:
    first = hasher.hash("secret1")
    second = hasher.hash("secret1")
    assert first != second
    assert hasher.verify("secret1", first)
    assert hasher.verify("secret1", second)


def test_hash_does_not_contain_plaintext(hasher: PasswordHasher) -> None:
    assert "secret1" not in hasher.hash("secret1")


def test_wrong_password_returns_false(hasher: PasswordHasher) -> None:
    stored = hasher.hash("secret1")
    assert hasher.verify("secret2", stored) is False


def test_malformed_hash_raises(hasher: PasswordHasher) -> None:
    with pytest.raises(ValueError):
        hasher.verify("secret1", "not-a-bcrypt-hash")


def test_cost_factor_is_encoded_in_hash() -> None:
    assert PasswordHasher(rounds=5).hash("secret1").startswith("$2b$05$")


def test_passwords_beyond_72_bytes_do_not_raise(hasher: PasswordHasher) -> None:
    long_password = "x" * 100
    stored = hasher.hash(long_password)
    assert hasher.verify(long_password, stored)


def test_verify_dummy_returns_nothing(hasher: PasswordHasher) -> None:
    assert hasher.verify_dummy("whatever") is None


def test_dummy_hash_is_ready_before_first_use(monkeypatch: pytest.MonkeyPatch) -> None:
    hasher = PasswordHasher(rounds=4)
    assert hasher._dummy_hash.startswith("$2b$04$")

    def fail(plain: str) -> str:
        raise AssertionError("verify_dummy must not hash")

    monkeypatch.setattr(hasher, "hash", fail)
    hasher.verify_dummy("whatever")
