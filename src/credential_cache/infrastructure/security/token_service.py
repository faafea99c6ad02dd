"""Opaque session token minting, hashing, and clock helpers."""

from __future__ import annotations

import secrets
from collections.abc import Callable
from datetime import UTC, datetime

from credential_cache.application.ports.credential_cipher_port import (
    CredentialCipherPort,
    SessionTokenPort,
)

_TOKEN_BYTES = 20


def _random_token() -> str:
    return secrets.token_hex(_TOKEN_BYTES)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class OpaqueTokenService(SessionTokenPort):
    """Mint high-entropy session tokens and derive their lookup hashes."""

    def __init__(
        self,
        *,
        cipher: CredentialCipherPort,
        token_factory: Callable[[], str] | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._cipher = cipher
        self._token_factory = token_factory or _random_token
        self._now = now or _utc_now

    def issue_token(self) -> str:
        """Return a fresh hex-encoded session token."""

        return self._token_factory()

    def hash_token(self, token: str) -> str:
        """Return the non-reversible lookup key stored for token."""

        return self._cipher.hash(token)

    def now(self) -> datetime:
        return self._now()
