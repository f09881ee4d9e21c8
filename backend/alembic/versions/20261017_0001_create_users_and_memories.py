"""create users and memories tables

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa

revision = "20261017_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("username", sa.String(length=50), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("username", name="uq_users_username"),
    )

    op.create_table(
        "memories",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("photo_url", sa.String(length=500), nullable=False),
        sa.Column("photo_storage_key", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("length(title) > 0", name="ck_memories_title_not_empty"),
        sa.CheckConstraint("length(photo_url) > 0", name="ck_memories_photo_url_not_empty"),
        sa.CheckConstraint("length(photo_storage_key) > 0", name="ck_memories_photo_storage_key_not_empty"),
    )
    op.create_index("ix_memories_user_id_date", "memories", ["user_id", "date"])


def downgrade() -> None:
    op.drop_index("ix_memories_user_id_date", table_name="memories")
    op.drop_table("memories")
    op.drop_table("users")
