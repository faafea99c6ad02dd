"""Test-friendly in-memory identity provider for development runtimes."""

from __future__ import annotations

import hmac
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from credential_cache.application.ports.identity_provider_port import (
    IdentityProviderPort,
    UpstreamProfile,
)
from credential_cache.domain.auth.errors import UnauthorizedError
from credential_cache.domain.auth.identity import RequestContext


class StaticAccountsConfigError(ValueError):
    """Raised when the static accounts file is unreadable or malformed."""


@dataclass(frozen=True)
class StaticAccount:
    """One account known to the static provider."""

    password: str = field(repr=False)
    name: str = ""
    schoolnum: str = ""


class StaticIdentityProvider(IdentityProviderPort):
    """Provider answering from a fixed username -> account table."""

    def __init__(self, accounts: Mapping[str, StaticAccount]) -> None:
        self._accounts = dict(accounts)

    async def authenticate(
        self,
        *,
        context: RequestContext,
        username: str,
        password: str,
    ) -> UpstreamProfile:
        _ = context
        account = self._accounts.get(username)
        if account is None or not hmac.compare_digest(
            account.password.encode("utf-8"),
            password.encode("utf-8"),
        ):
            raise UnauthorizedError("invalid credentials")
        return UpstreamProfile(name=account.name, schoolnum=account.schoolnum)


def load_static_accounts(
    path: str | Path,
) -> tuple[dict[str, StaticAccount], dict[str, StaticAccount]]:
    """Load `{"primary": {...}, "graduate": {...}}` account tables from a JSON file."""

    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise StaticAccountsConfigError(f"failed to read static accounts file: {path}") from exc
    if not isinstance(raw, dict):
        raise StaticAccountsConfigError("static accounts file must contain a JSON object")

    return (
        _parse_accounts(raw.get("primary", {}), section="primary"),
        _parse_accounts(raw.get("graduate", {}), section="graduate"),
    )


def _parse_accounts(raw: object, *, section: str) -> dict[str, StaticAccount]:
    if not isinstance(raw, dict):
        raise StaticAccountsConfigError(f"static accounts section {section} must be an object")

    accounts: dict[str, StaticAccount] = {}
    for username, entry in raw.items():
        if not isinstance(entry, dict) or not isinstance(entry.get("password"), str):
            raise StaticAccountsConfigError(
                f"static account {section}.{username} requires a string password"
            )
        accounts[str(username)] = StaticAccount(
            password=entry["password"],
            name=str(entry.get("name", "")),
            schoolnum=str(entry.get("schoolnum", "")),
        )
    return accounts
