"""Initial schema for cached credential records."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_auth_records"
down_revision = None
branch_labels = None
depends_on = None

sqlite_bigint = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    op.create_table(
        "auth_records",
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
    op.create_index("ix_auth_records_cardnum", "auth_records", ["cardnum"])


def downgrade() -> None:
    op.drop_index("ix_auth_records_cardnum", table_name="auth_records")
    op.drop_table("auth_records")
