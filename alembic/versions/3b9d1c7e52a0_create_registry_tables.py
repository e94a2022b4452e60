"""create registry tables

Revision ID: 3b9d1c7e52a0
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b9d1c7e52a0"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "records",
        sa.Column("record_id", sa.String(length=66), primary_key=True),
        sa.Column("issuer", sa.String(length=320), nullable=False),
        sa.Column("file_hash", sa.String(length=66), nullable=False),
        sa.Column("issued_at", sa.BigInteger(), nullable=False),
        sa.Column("revoked", sa.Boolean(), nullable=False, server_default=sa.false()),
    )

    op.create_table(
        "role_memberships",
        sa.Column("identity", sa.String(length=320), primary_key=True),
        sa.Column("role", sa.String(length=32), primary_key=True),
        sa.Column("granted_at", sa.BigInteger(), nullable=False),
    )
    op.create_index("ix_role_memberships_role", "role_memberships", ["role"])

    op.create_table(
        "registry_events",
        sa.Column("seq", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.Column("timestamp", sa.BigInteger(), nullable=False),
        sa.Column("record_id", sa.String(length=66), nullable=True),
        sa.Column("payload_json", sa.Text(), nullable=False),
        sa.Column("prev_digest", sa.String(length=64), nullable=False),
        sa.Column("digest", sa.String(length=64), nullable=False, unique=True),
    )
    op.create_index(
        "ix_registry_events_record_id", "registry_events", ["record_id"]
    )


def downgrade() -> None:
    op.drop_index("ix_registry_events_record_id", table_name="registry_events")
    op.drop_table("registry_events")
    op.drop_index("ix_role_memberships_role", table_name="role_memberships")
    op.drop_table("role_memberships")
    op.drop_table("records")
