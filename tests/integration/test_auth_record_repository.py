from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import sqlalchemy as sa
from alembic.config import Config

from alembic import command
from credential_cache.application.ports.auth_record_repository_port import (
    AuthRecordConflictError,
    AuthRecordCreateInput,
    AuthRecordFilter,
    AuthRecordPatch,
)
from credential_cache.infrastructure.db.auth_record_repository import (
    SqlAlchemyAuthRecordRepository,
)
from credential_cache.infrastructure.db.session import create_session_factory

REGISTERED_AT = datetime(2026, 3, 1, 8, 0, tzinfo=UTC)


def _upgrade_head(tmp_path: Path, filename: str) -> tuple[str, str]:
    db_path = tmp_path / filename
    sync_url = f"sqlite+pysqlite:///{db_path}"
    async_url = f"sqlite+aiosqlite:///{db_path}"

    alembic_config = Config("alembic.ini")
    alembic_config.set_main_option("sqlalchemy.url", sync_url)
    command.upgrade(alembic_config, "head")

    return sync_url, async_url


def _payload(
    *,
    cardnum: str = "213170000",
    platform: str = "web",
    token_hash: str = "hash-1",
) -> AuthRecordCreateInput:
    return AuthRecordCreateInput(
        cardnum=cardnum,
        platform=platform,
        token_hash=token_hash,
        token_encrypted="token-ciphertext",
        password_encrypted="password-ciphertext",
        password_hash="password-hash",
        gpassword_encrypted="",
        name="Alice",
        schoolnum="71117100",
        registered=REGISTERED_AT,
        last_invoked=REGISTERED_AT,
    )


@pytest.mark.asyncio
async def test_insert_then_find_by_pair_and_token_hash(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "auth_records_find.db")
    repo = SqlAlchemyAuthRecordRepository(create_session_factory(async_url))

    inserted = await repo.insert(_payload())
    by_pair = await repo.find(AuthRecordFilter(cardnum="213170000", platform="web"))
    by_hash = await repo.find(AuthRecordFilter(token_hash="hash-1"))
    missing = await repo.find(AuthRecordFilter(cardnum="213170000", platform="app"))

    assert inserted.id > 0
    assert by_pair == inserted
    assert by_hash == inserted
    assert missing is None
    assert inserted.registered == REGISTERED_AT
    assert inserted.registered.tzinfo is not None


@pytest.mark.asyncio
async def test_insert_duplicate_pair_or_token_hash_raises_conflict(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "auth_records_conflict.db")
    repo = SqlAlchemyAuthRecordRepository(create_session_factory(async_url))
    await repo.insert(_payload())

    with pytest.raises(AuthRecordConflictError):
        await repo.insert(_payload(token_hash="hash-2"))
    with pytest.raises(AuthRecordConflictError):
        await repo.insert(_payload(platform="app"))

    assert await repo.find(AuthRecordFilter(platform="app")) is None


@pytest.mark.asyncio
async def test_update_writes_only_populated_patch_fields(tmp_path: Path) -> None:
    sync_url, async_url = _upgrade_head(tmp_path, "auth_records_update.db")
    repo = SqlAlchemyAuthRecordRepository(create_session_factory(async_url))
    await repo.insert(_payload())
    later = REGISTERED_AT + timedelta(minutes=10)

    updated = await repo.update(
        AuthRecordFilter(token_hash="hash-1"),
        AuthRecordPatch(last_invoked=later, password_hash="rotated-hash"),
    )
    untouched = await repo.update(AuthRecordFilter(token_hash="unknown"), AuthRecordPatch(name="x"))
    noop = await repo.update(AuthRecordFilter(token_hash="hash-1"), AuthRecordPatch())

    assert (updated, untouched, noop) == (1, 0, 0)
    record = await repo.find(AuthRecordFilter(token_hash="hash-1"))
    assert record is not None
    assert record.last_invoked == later
    assert record.password_hash == "rotated-hash"
    assert record.name == "Alice"

    engine = sa.create_engine(sync_url)
    with engine.begin() as connection:
        stored = connection.execute(
            sa.text("SELECT password_encrypted FROM auth_records WHERE token_hash = 'hash-1'")
        ).scalar_one()
    assert stored == "password-ciphertext"


@pytest.mark.asyncio
async def test_remove_deletes_matching_records_only(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "auth_records_remove.db")
    repo = SqlAlchemyAuthRecordRepository(create_session_factory(async_url))
    await repo.insert(_payload())
    await repo.insert(_payload(platform="app", token_hash="hash-2"))

    removed = await repo.remove(AuthRecordFilter(cardnum="213170000", platform="web"))
    removed_again = await repo.remove(AuthRecordFilter(token_hash="hash-1"))

    assert (removed, removed_again) == (1, 0)
    assert await repo.find(AuthRecordFilter(token_hash="hash-2")) is not None


@pytest.mark.asyncio
async def test_replace_swaps_the_pair_record_in_one_step(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "auth_records_replace.db")
    repo = SqlAlchemyAuthRecordRepository(create_session_factory(async_url))
    original = await repo.insert(_payload())

    replaced = await repo.replace(
        AuthRecordFilter(cardnum="213170000", platform="web"),
        _payload(token_hash="hash-2"),
    )

    assert replaced.id != original.id
    assert await repo.find(AuthRecordFilter(token_hash="hash-1")) is None
    assert await repo.find(AuthRecordFilter(cardnum="213170000", platform="web")) == replaced


@pytest.mark.asyncio
async def test_replace_conflict_rolls_back_the_delete(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "auth_records_replace_conflict.db")
    repo = SqlAlchemyAuthRecordRepository(create_session_factory(async_url))
    original = await repo.insert(_payload())
    await repo.insert(_payload(platform="app", token_hash="hash-2"))

    with pytest.raises(AuthRecordConflictError):
        await repo.replace(
            AuthRecordFilter(cardnum="213170000", platform="web"),
            _payload(token_hash="hash-2"),
        )

    assert await repo.find(AuthRecordFilter(cardnum="213170000", platform="web")) == original


@pytest.mark.asyncio
async def test_empty_filter_is_rejected(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "auth_records_empty_filter.db")
    repo = SqlAlchemyAuthRecordRepository(create_session_factory(async_url))

    with pytest.raises(ValueError):
        await repo.remove(AuthRecordFilter())
