"""Add token_records table for revocable session tokens.

Each issued token gets one row keyed by the SHA-256 of the token string.
Deleting the row revokes the token.

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-17 09:30:00

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0002"
down_revision: str | None = "0001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "token_records",
        sa.Column("token_hash", sa.String(64), primary_key=True),
        sa.Column(
            "user_id",
            sa.Uuid(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("device_info", sa.JSON(), nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_index("ix_token_records_user_id", "token_records", ["user_id"])
    # Expiry sweep deletes by expires_at range
    op.create_index("ix_token_records_expires_at", "token_records", ["expires_at"])


def downgrade() -> None:
    op.drop_index("ix_token_records_expires_at", table_name="token_records")
    op.drop_index("ix_token_records_user_id", table_name="token_records")
    op.drop_table("token_records")
