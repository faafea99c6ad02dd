"""Bcrypt password hasher adapter."""

from __future__ import annotations

import base64
import hashlib

import bcrypt

from credential_cache.application.ports.password_hasher_port import PasswordHasherPort


class BcryptPasswordHasher(PasswordHasherPort):
    """Password hashing adapter using bcrypt over a SHA-256 pre-hash.

    bcrypt only reads the first 72 bytes of its input, so the password is
    digested first and the base64 digest (44 bytes, no NUL) is what gets hashed.
    """

    def __init__(self, *, rounds: int = 12) -> None:
        self._rounds = rounds

    def hash_password(self, password: str) -> str:
        return bcrypt.hashpw(_prehash(password), bcrypt.gensalt(rounds=self._rounds)).decode(
            "utf-8"
        )

    def verify_password(self, *, password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(_prehash(password), password_hash.encode("utf-8"))
        except ValueError:
            return False


def _prehash(password: str) -> bytes:
    return base64.b64encode(hashlib.sha256(password.encode("utf-8")).digest())
