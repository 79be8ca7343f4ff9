"""Initial schema: chats and their message logs.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18
"""

from typing import Sequence

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic
revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

JSON_PAYLOAD = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    # Create chats table
    op.create_table(
        "chats",
        sa.Column("id", sa.String(128), nullable=False),
        sa.Column("owner", sa.String(255), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        # Per-chat sequence counter
        sa.Column("message_count", sa.Integer(), nullable=False),
        # Timestamps
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=False),
        # Keys
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_chats_owner_last_activity", "chats", ["owner", "last_activity_at"])

    # Create chat_messages table
    op.create_table(
        "chat_messages",
        sa.Column("chat_id", sa.String(128), nullable=False),
        sa.Column("sequence", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("role", sa.String(20), nullable=False),  # 'system', 'user' or 'assistant'
        # Canonical content parts and caller metadata
        sa.Column("content", JSON_PAYLOAD, nullable=False),
        sa.Column("metadata", JSON_PAYLOAD, nullable=False),
        # Timestamps
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        # Keys
        sa.PrimaryKeyConstraint("chat_id", "sequence"),
        sa.ForeignKeyConstraint(["chat_id"], ["chats.id"], ondelete="CASCADE"),
    )


def downgrade() -> None:
    op.drop_table("chat_messages")
    op.drop_index("ix_chats_owner_last_activity", table_name="chats")
    op.drop_table("chats")
