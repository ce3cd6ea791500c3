"""Create the diary table.

Revision ID: 20251019_create_diary
Revises:
Create Date: 2025-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "20251019_create_diary"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "diary",
        sa.Column("uuid", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=False),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "ix_diary_created_at",
        "diary",
        [sa.text("created_at DESC"), sa.text("uuid DESC")],
    )


def downgrade() -> None:
    op.drop_index("ix_diary_created_at", table_name="diary")
    op.drop_table("diary")
