"""Port for upstream identity providers validating username/password pairs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from credential_cache.domain.auth.identity import RequestContext


@dataclass(frozen=True)
class UpstreamProfile:
    """Profile fields returned by a successful upstream authentication."""

    name: str = ""
    schoolnum: str = ""


class IdentityProviderPort(Protocol):
    """Upstream identity provider contract.

    Implementations raise `UnauthorizedError` when the provider rejects the
    credentials and `UpstreamUnavailableError` for any other failure. They may
    store provider session cookies in `context.cookie_jar`.
    """

    async def authenticate(
        self,
        *,
        context: RequestContext,
        username: str,
        password: str,
    ) -> UpstreamProfile:
        """Validate credentials upstream and return profile fields."""
