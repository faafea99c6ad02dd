"""SQLAlchemy metadata definitions for cached credential tables."""

from __future__ import annotations

import sqlalchemy as sa

metadata = sa.MetaData()
sqlite_bigint = sa.BigInteger().with_variant(sa.Integer(), "sqlite")

auth_records = sa.Table(
    "auth_records",
    metadata,
    sa.Column("id", sqlite_bigint, primary_key=True, autoincrement=True),
    sa.Column("cardnum", sa.Text(), nullable=False),
    sa.Column("platform", sa.Text(), nullable=False),
    sa.Column("token_hash", sa.Text(), nullable=False),
    sa.Column("token_encrypted", sa.Text(), nullable=False),
    sa.Column("password_encrypted", sa.Text(), nullable=False),
    sa.Column("password_hash", sa.Text(), nullable=False),
    sa.Column(
        "gpassword_encrypted",
        sa.Text(),
        nullable=False,
        server_default=sa.text("''"),
    ),
    sa.Column("name", sa.Text(), nullable=False, server_default=sa.text("''")),
    sa.Column("schoolnum", sa.Text(), nullable=False, server_default=sa.text("''")),
    sa.Column(
        "registered",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    ),
    sa.Column(
        "last_invoked",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    ),
    sa.UniqueConstraint("cardnum", "platform", name="uq_auth_records_cardnum_platform"),
    sa.UniqueConstraint("token_hash", name="uq_auth_records_token_hash"),
)

sa.Index("ix_auth_records_cardnum", auth_records.c.cardnum)
