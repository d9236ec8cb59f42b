"""Tests for code generation and hashing."""

import hashlib

import pytest

from route_access.codes import (
    CODE_LENGTH,
    compare_hashes,
    generate_code,
    generate_salt,
    hash_code,
    normalize_code,
)


def test_generate_code_is_six_digits():
    for _ in range(200):
        code = generate_code()
        assert len(code) == CODE_LENGTH
        assert code.isdigit()


def test_generate_code_keeps_leading_zeros(monkeypatch):
    monkeypatch.setattr("route_access.codes.secrets.randbelow", lambda _: 42)
    assert generate_code() == "000042"


def test_generate_salt_is_32_hex_chars_and_random():
    salts = {generate_salt() for _ in range(20)}
    assert len(salts) == 20
    for salt in salts:
        assert len(salt) == 32
        bytes.fromhex(salt)


def test_hash_code_is_sha256_of_salt_and_code():
    expected = hashlib.sha256(b"abc:123456").hexdigest()
    assert hash_code("abc", "123456") == expected


def test_hash_code_depends_on_salt():
    assert hash_code("salt-a", "123456") != hash_code("salt-b", "123456")


class TestCompareHashes:
    def test_equal_digests(self):
        digest = hash_code("s", "111111")
        assert compare_hashes(digest, digest) is True

    def test_different_digests(self):
        assert compare_hashes(hash_code("s", "111111"), hash_code("s", "222222")) is False

    def test_length_mismatch(self):
        assert compare_hashes("abcd", "abcdef") is False

    def test_invalid_hex(self):
        assert compare_hashes("zz", "zz") is False


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("123456", "123456"),
        ("  012345 ", "012345"),
        ("12345", None),
        ("1234567", None),
        ("12a456", None),
        ("", None),
        ("١٢٣٤٥٦", None),
    ],
)
def test_normalize_code(raw, expected):
    assert normalize_code(raw) == expected
