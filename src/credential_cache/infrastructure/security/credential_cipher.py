"""Keyed symmetric cipher and digest used to bind session tokens to passwords.

Ciphertexts are AES-SIV (deterministic authenticated encryption) under a key
derived from an arbitrary string with PBKDF2-HMAC-SHA256, encoded as lowercase
hex. Neither `encrypt` nor `decrypt` raises: failures collapse to an empty
string, and `try_decrypt` reports the failure kind explicitly.
"""

from __future__ import annotations

import hashlib
import logging

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESSIV
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from credential_cache.application.ports.credential_cipher_port import (
    CredentialCipherPort,
    DecryptFailure,
    DecryptResult,
)

_DERIVED_KEY_LENGTH = 64
DEFAULT_KDF_ITERATIONS = 100_000
logger = logging.getLogger(__name__)


class CredentialCipher(CredentialCipherPort):
    """String-keyed AES-SIV cipher plus SHA-256 digest."""

    def __init__(self, *, salt: str, iterations: int = DEFAULT_KDF_ITERATIONS) -> None:
        if not salt:
            raise ValueError("salt must be a non-empty string")
        if iterations <= 0:
            raise ValueError("iterations must be positive")
        self._salt = salt.encode("utf-8")
        self._iterations = iterations

    def encrypt(self, key: str, value: str) -> str:
        """Encrypt value under key and return hex ciphertext, or empty string on failure."""

        if not key:
            return ""
        try:
            ciphertext = self._aead(key).encrypt(value.encode("utf-8"), None)
        except (ValueError, TypeError, AttributeError):
            logger.debug("credential_cipher_encrypt_failed")
            return ""
        return ciphertext.hex()

    def decrypt(self, key: str, value: str) -> str:
        """Decrypt hex ciphertext under key, returning empty string on any failure."""

        return self.try_decrypt(key, value).plaintext

    def try_decrypt(self, key: str, value: str) -> DecryptResult:
        """Decrypt hex ciphertext under key and report why it failed, if it did."""

        if not key or not isinstance(key, str):
            return DecryptResult(failure=DecryptFailure.INVALID_KEY)
        try:
            ciphertext = bytes.fromhex(value)
        except (ValueError, TypeError):
            return DecryptResult(failure=DecryptFailure.MALFORMED_CIPHERTEXT)
        if not ciphertext:
            return DecryptResult(failure=DecryptFailure.MALFORMED_CIPHERTEXT)

        try:
            plaintext = self._aead(key).decrypt(ciphertext, None)
        except InvalidTag:
            return DecryptResult(failure=DecryptFailure.KEY_MISMATCH)
        except ValueError:
            return DecryptResult(failure=DecryptFailure.MALFORMED_CIPHERTEXT)

        try:
            return DecryptResult(plaintext=plaintext.decode("utf-8"))
        except UnicodeDecodeError:
            return DecryptResult(failure=DecryptFailure.MALFORMED_CIPHERTEXT)

    def hash(self, value: str) -> str:
        """Return the SHA-256 hex digest of value."""

        return hashlib.sha256(value.encode("utf-8")).hexdigest()

    def _aead(self, key: str) -> AESSIV:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=_DERIVED_KEY_LENGTH,
            salt=self._salt,
            iterations=self._iterations,
        )
        return AESSIV(kdf.derive(key.encode("utf-8")))
