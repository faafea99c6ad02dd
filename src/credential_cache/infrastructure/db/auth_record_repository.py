"""SQLAlchemy adapter for cached credential record persistence."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, cast

import sqlalchemy as sa
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from credential_cache.application.ports.auth_record_repository_port import (
    AuthRecord,
    AuthRecordConflictError,
    AuthRecordCreateInput,
    AuthRecordFilter,
    AuthRecordPatch,
    AuthRecordRepositoryPort,
)
from credential_cache.infrastructure.db.metadata import auth_records


class SqlAlchemyAuthRecordRepository(AuthRecordRepositoryPort):
    """Auth record repository backed by SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def find(self, record_filter: AuthRecordFilter, *, limit: int = 1) -> AuthRecord | None:
        """Return the first record matching the equality filter."""

        statement = (
            sa.select(*auth_records.c)
            .where(*_where_clauses(record_filter))
            .order_by(auth_records.c.id)
            .limit(limit)
        )

        async with self._session_factory() as session:
            result = await session.execute(statement)

        row = result.mappings().first()
        if row is None:
            return None
        return _to_auth_record(row)

    async def insert(self, payload: AuthRecordCreateInput) -> AuthRecord:
        """Insert one record and return it, raising on unique-key collisions."""

        async with self._session_factory() as session:
            try:
                result = await session.execute(_insert_statement(payload))
                row = result.mappings().one()
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise _conflict_error(payload) from exc

        return _to_auth_record(row)

    async def replace(
        self,
        record_filter: AuthRecordFilter,
        payload: AuthRecordCreateInput,
    ) -> AuthRecord:
        """Delete matching records and insert payload in a single transaction."""

        delete_statement = sa.delete(auth_records).where(*_where_clauses(record_filter))
        async with self._session_factory() as session:
            try:
                async with session.begin():
                    await session.execute(delete_statement)
                    result = await session.execute(_insert_statement(payload))
                    row = result.mappings().one()
            except IntegrityError as exc:
                raise _conflict_error(payload) from exc

        return _to_auth_record(row)

    async def update(self, record_filter: AuthRecordFilter, patch: AuthRecordPatch) -> int:
        """Write the populated patch fields to every matching record."""

        values = patch.as_dict()
        if not values:
            return 0
        statement = (
            sa.update(auth_records)
            .where(*_where_clauses(record_filter))
            .values(**values)
        )

        async with self._session_factory() as session:
            result = cast(CursorResult[Any], await session.execute(statement))
            await session.commit()

        return int(result.rowcount or 0)

    async def remove(self, record_filter: AuthRecordFilter) -> int:
        """Delete matching records."""

        statement = sa.delete(auth_records).where(*_where_clauses(record_filter))

        async with self._session_factory() as session:
            result = cast(CursorResult[Any], await session.execute(statement))
            await session.commit()

        return int(result.rowcount or 0)


def _insert_statement(payload: AuthRecordCreateInput) -> sa.Insert:
    return (
        sa.insert(auth_records)
        .values(
            cardnum=payload.cardnum,
            platform=payload.platform,
            token_hash=payload.token_hash,
            token_encrypted=payload.token_encrypted,
            password_encrypted=payload.password_encrypted,
            password_hash=payload.password_hash,
            gpassword_encrypted=payload.gpassword_encrypted,
            name=payload.name,
            schoolnum=payload.schoolnum,
            registered=payload.registered,
            last_invoked=payload.last_invoked,
        )
        .returning(*auth_records.c)
    )


def _conflict_error(payload: AuthRecordCreateInput) -> AuthRecordConflictError:
    return AuthRecordConflictError(
        f"auth record already exists for cardnum={payload.cardnum} "
        f"platform={payload.platform}"
    )


def _where_clauses(record_filter: AuthRecordFilter) -> list[sa.ColumnElement[bool]]:
    values = record_filter.as_dict()
    if not values:
        raise ValueError("auth record filter requires at least one field")
    return [auth_records.c[column] == value for column, value in values.items()]


def _as_aware(value: datetime) -> datetime:
    # SQLite drops tzinfo on round-trip; stored values are always UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _to_auth_record(row: sa.RowMapping) -> AuthRecord:
    return AuthRecord(
        id=int(row["id"]),
        cardnum=cast(str, row["cardnum"]),
        platform=cast(str, row["platform"]),
        token_hash=cast(str, row["token_hash"]),
        token_encrypted=cast(str, row["token_encrypted"]),
        password_encrypted=cast(str, row["password_encrypted"]),
        password_hash=cast(str, row["password_hash"]),
        gpassword_encrypted=cast(str, row["gpassword_encrypted"] or ""),
        name=cast(str, row["name"] or ""),
        schoolnum=cast(str, row["schoolnum"] or ""),
        registered=_as_aware(cast(datetime, row["registered"])),
        last_invoked=_as_aware(cast(datetime, row["last_invoked"])),
    )
