"""Port for cached credential record persistence operations."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Protocol


class AuthRecordConflictError(RuntimeError):
    """Raised when an insert collides with an existing (cardnum, platform) or token hash."""


@dataclass(frozen=True)
class AuthRecordFilter:
    """Equality filter over the lookup keys of an auth record."""

    cardnum: str | None = None
    platform: str | None = None
    token_hash: str | None = None

    def as_dict(self) -> dict[str, str]:
        """Return only the populated filter fields."""

        values = {item.name: getattr(self, item.name) for item in fields(self)}
        return {key: value for key, value in values.items() if value is not None}


@dataclass(frozen=True)
class AuthRecordCreateInput:
    """Input payload for inserting one cached credential record."""

    cardnum: str
    platform: str
    token_hash: str
    token_encrypted: str
    password_encrypted: str
    password_hash: str
    gpassword_encrypted: str
    name: str
    schoolnum: str
    registered: datetime
    last_invoked: datetime


@dataclass(frozen=True)
class AuthRecordPatch:
    """Partial update payload; fields left as None are not written."""

    token_encrypted: str | None = None
    password_encrypted: str | None = None
    password_hash: str | None = None
    gpassword_encrypted: str | None = None
    name: str | None = None
    schoolnum: str | None = None
    last_invoked: datetime | None = None

    def as_dict(self) -> dict[str, object]:
        values = {item.name: getattr(self, item.name) for item in fields(self)}
        return {key: value for key, value in values.items() if value is not None}


@dataclass(frozen=True)
class AuthRecord:
    """Persisted cached credential model."""

    id: int
    cardnum: str
    platform: str
    token_hash: str
    token_encrypted: str = field(repr=False)
    password_encrypted: str = field(repr=False)
    password_hash: str = field(repr=False)
    gpassword_encrypted: str = field(repr=False)
    name: str
    schoolnum: str
    registered: datetime
    last_invoked: datetime


class AuthRecordRepositoryPort(Protocol):
    """Cached credential record persistence contract."""

    async def find(self, record_filter: AuthRecordFilter, *, limit: int = 1) -> AuthRecord | None:
        """Return the first record matching every populated filter field."""

    async def insert(self, payload: AuthRecordCreateInput) -> AuthRecord:
        """Persist a new record or raise AuthRecordConflictError."""

    async def replace(
        self,
        record_filter: AuthRecordFilter,
        payload: AuthRecordCreateInput,
    ) -> AuthRecord:
        """Delete records matching record_filter and insert payload in one transaction.

        Raises AuthRecordConflictError, leaving the store unchanged, when the
        insert still collides.
        """

    async def update(self, record_filter: AuthRecordFilter, patch: AuthRecordPatch) -> int:
        """Apply patch to matching records and return affected count."""

    async def remove(self, record_filter: AuthRecordFilter) -> int:
        """Delete matching records and return affected count."""
