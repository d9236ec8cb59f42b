"""One-time code generation and hashing.

The plaintext code only ever lives in memory long enough to be emailed;
storage holds a salted SHA-256 digest.
"""

from __future__ import annotations

import hashlib
import hmac
import re
import secrets

CODE_LENGTH = 6
SALT_BYTES = 16

_CODE_PATTERN = re.compile(rf"[0-9]{{{CODE_LENGTH}}}")


def generate_code() -> str:
    """Draw a zero-padded 6-digit code uniformly from 000000-999999."""
    return str(secrets.randbelow(10**CODE_LENGTH)).zfill(CODE_LENGTH)


def generate_salt() -> str:
    """Random per-challenge salt, hex encoded."""
    return secrets.token_hex(SALT_BYTES)


def hash_code(salt: str, code: str) -> str:
    """SHA-256 hex digest of ``salt:code``."""
    return hashlib.sha256(f"{salt}:{code}".encode()).hexdigest()


def compare_hashes(left_hex: str, right_hex: str) -> bool:
    """Compare two hex digests in constant time.

    Only a length mismatch (or undecodable input) returns early; that
    reveals nothing about the stored digest.
    """
    try:
        left = bytes.fromhex(left_hex)
        right = bytes.fromhex(right_hex)
    except ValueError:
        return False

    if len(left) != len(right):
        return False

    return hmac.compare_digest(left, right)


def normalize_code(code: str) -> str | None:
    """Trim user input and return it if it is exactly six ASCII digits."""
    normalized = code.strip()
    if _CODE_PATTERN.fullmatch(normalized) is None:
        return None
    return normalized


__all__: list[str] = [
    "CODE_LENGTH",
    "SALT_BYTES",
    "generate_code",
    "generate_salt",
    "hash_code",
    "compare_hashes",
    "normalize_code",
]
