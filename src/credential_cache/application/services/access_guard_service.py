"""Admin allow-list checks for resolved request identities."""

from __future__ import annotations

from collections.abc import Iterable

from credential_cache.domain.auth.errors import AdminRequiredError
from credential_cache.domain.auth.identity import AuthenticatedIdentity, Identity


class AccessGuardService:
    """Decide admin access from an externally supplied cardnum allow-list."""

    def __init__(self, *, admin_cardnums: Iterable[str] = ()) -> None:
        self._admin_cardnums = frozenset(admin_cardnums)

    def is_admin(self, identity: Identity) -> bool:
        """Return whether identity is a logged-in admin; anonymous callers are never admins."""

        if not identity.is_login:
            return False
        return identity.cardnum in self._admin_cardnums

    def require_admin(self, identity: Identity) -> AuthenticatedIdentity:
        """Return the authenticated admin identity or raise.

        Anonymous callers get `UnauthorizedError`; logged-in non-admins get
        `AdminRequiredError`.
        """

        authenticated = identity.require_login()
        if authenticated.cardnum not in self._admin_cardnums:
            raise AdminRequiredError()
        return authenticated
