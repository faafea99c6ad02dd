from __future__ import annotations

from pathlib import Path

import pytest
import sqlalchemy as sa
from alembic.config import Config

from alembic import command


def _configure_alembic(database_url: str) -> Config:
    alembic_config = Config("alembic.ini")
    alembic_config.set_main_option("sqlalchemy.url", database_url)
    return alembic_config


def test_auth_records_schema_has_lookup_keys_and_unique_constraints(tmp_path: Path) -> None:
    database_url = f"sqlite+pysqlite:///{tmp_path / 'auth_records_schema.db'}"

    command.upgrade(_configure_alembic(database_url), "head")

    inspector = sa.inspect(sa.create_engine(database_url))
    columns = {column["name"] for column in inspector.get_columns("auth_records")}
    assert columns == {
        "id",
        "cardnum",
        "platform",
        "token_hash",
        "token_encrypted",
        "password_encrypted",
        "password_hash",
        "gpassword_encrypted",
        "name",
        "schoolnum",
        "registered",
        "last_invoked",
    }
    unique_sets = {
        tuple(constraint["column_names"])
        for constraint in inspector.get_unique_constraints("auth_records")
    }
    assert ("cardnum", "platform") in unique_sets
    assert ("token_hash",) in unique_sets
    index_names = {index["name"] for index in inspector.get_indexes("auth_records")}
    assert "ix_auth_records_cardnum" in index_names


def test_unique_pair_constraint_rejects_duplicate_records(tmp_path: Path) -> None:
    database_url = f"sqlite+pysqlite:///{tmp_path / 'auth_records_unique.db'}"
    command.upgrade(_configure_alembic(database_url), "head")
    engine = sa.create_engine(database_url)
    insert = sa.text(
        "INSERT INTO auth_records (cardnum, platform, token_hash, token_encrypted, "
        "password_encrypted, password_hash) VALUES (:cardnum, 'web', :token_hash, 'a', 'b', 'c')"
    )

    with engine.begin() as connection:
        connection.execute(insert, {"cardnum": "213170000", "token_hash": "h1"})
        row = connection.execute(
            sa.text("SELECT gpassword_encrypted, name, schoolnum FROM auth_records")
        ).one()
    assert tuple(row) == ("", "", "")

    with pytest.raises(sa.exc.IntegrityError):
        with engine.begin() as connection:
            connection.execute(insert, {"cardnum": "213170000", "token_hash": "h2"})


def test_downgrade_drops_auth_records(tmp_path: Path) -> None:
    database_url = f"sqlite+pysqlite:///{tmp_path / 'auth_records_downgrade.db'}"
    alembic_config = _configure_alembic(database_url)

    command.upgrade(alembic_config, "head")
    command.downgrade(alembic_config, "base")

    inspector = sa.inspect(sa.create_engine(database_url))
    assert "auth_records" not in inspector.get_table_names()
