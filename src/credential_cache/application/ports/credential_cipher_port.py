"""Ports for keyed secret encryption and session token handling."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Protocol


class DecryptFailure(StrEnum):
    """Reasons a ciphertext could not be decrypted."""

    INVALID_KEY = "invalid_key"
    MALFORMED_CIPHERTEXT = "malformed_ciphertext"
    KEY_MISMATCH = "key_mismatch"


@dataclass(frozen=True)
class DecryptResult:
    """Decryption outcome; `plaintext` is empty whenever `failure` is set."""

    plaintext: str = field(default="", repr=False)
    failure: DecryptFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


class CredentialCipherPort(Protocol):
    """String-keyed symmetric cipher and one-way digest."""

    def encrypt(self, key: str, value: str) -> str:
        """Return hex ciphertext, or empty string on failure."""

    def decrypt(self, key: str, value: str) -> str:
        """Return plaintext, or empty string on failure."""

    def try_decrypt(self, key: str, value: str) -> DecryptResult:
        """Return plaintext or the failure kind."""

    def hash(self, value: str) -> str:
        """Return a fixed-length digest of value."""


class SessionTokenPort(Protocol):
    """Session token minting, lookup hashing, and clock."""

    def issue_token(self) -> str:
        """Return a fresh high-entropy session token."""

    def hash_token(self, token: str) -> str:
        """Return the stored lookup key for token."""

    def now(self) -> datetime:
        """Return the current UTC time."""
