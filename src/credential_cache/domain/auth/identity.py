"""Per-request identity context handed to downstream consumers.

Two variants share one shape. `AuthenticatedIdentity` carries the decrypted
credentials of a resolved session token. `AnonymousIdentity` exposes only
`is_login`; every other attribute raises `UnauthorizedError` when touched, so
shared code that forgets to branch on `is_login` still enforces login.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from http.cookiejar import CookieJar
from typing import NoReturn, Protocol

from credential_cache.domain.auth.credentials import UpstreamCredentials
from credential_cache.domain.auth.errors import UnauthorizedError


class KeyedCipherPort(Protocol):
    """Symmetric cipher keyed by an arbitrary string."""

    def encrypt(self, key: str, value: str) -> str:
        """Encrypt value under key, returning empty string on failure."""

    def decrypt(self, key: str, value: str) -> str:
        """Decrypt value under key, returning empty string on failure."""


@dataclass(frozen=True)
class AuthenticatedIdentity:
    """Identity resolved from a live session token."""

    token: str
    identity: str
    cardnum: str
    password: str = field(repr=False)
    secondary_password: str = field(repr=False)
    name: str
    schoolnum: str
    platform: str
    raw_token: str = field(repr=False)
    cipher: KeyedCipherPort = field(repr=False, compare=False)

    @property
    def is_login(self) -> bool:
        return True

    @property
    def credentials(self) -> UpstreamCredentials:
        """Return the cached credentials for upstream re-authentication."""

        return UpstreamCredentials(
            cardnum=self.cardnum,
            password=self.password,
            secondary_password=self.secondary_password,
        )

    def encrypt(self, value: str) -> str:
        """Encrypt another secret under this session's raw token."""

        return self.cipher.encrypt(self.raw_token, value)

    def decrypt(self, value: str) -> str:
        """Decrypt a secret previously encrypted under this session's raw token."""

        return self.cipher.decrypt(self.raw_token, value)

    def require_login(self) -> AuthenticatedIdentity:
        return self


def _login_required(attribute: str) -> property:
    def _reject(self: AnonymousIdentity) -> NoReturn:
        raise UnauthorizedError(f"login required to access {attribute}")

    return property(_reject)


class AnonymousIdentity:
    """Identity of a request without a recognized session token."""

    __slots__ = ()

    token = _login_required("token")
    identity = _login_required("identity")
    cardnum = _login_required("cardnum")
    password = _login_required("password")
    secondary_password = _login_required("secondary_password")
    name = _login_required("name")
    schoolnum = _login_required("schoolnum")
    platform = _login_required("platform")
    credentials = _login_required("credentials")
    encrypt = _login_required("encrypt")
    decrypt = _login_required("decrypt")

    @property
    def is_login(self) -> bool:
        return False

    def require_login(self) -> NoReturn:
        raise UnauthorizedError("login required")

    def __repr__(self) -> str:
        return "AnonymousIdentity()"


Identity = AuthenticatedIdentity | AnonymousIdentity


@dataclass
class RequestContext:
    """Mutable per-request state threaded through the gateway and providers."""

    identity: Identity = field(default_factory=AnonymousIdentity)
    cookie_jar: CookieJar = field(default_factory=CookieJar, repr=False)
