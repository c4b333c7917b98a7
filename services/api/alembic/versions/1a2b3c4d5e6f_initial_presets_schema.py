"""initial_presets_schema

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "1a2b3c4d5e6f"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=200), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=True),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "presets",
        sa.Column("id", sa.String(length=200), nullable=False),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("packages", sa.JSON(), nullable=False),
        sa.Column("npmtrends_url", sa.Text(), nullable=False),
        sa.Column("owner_id", sa.String(length=200), nullable=False),
        sa.Column("likes_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("likes_count >= 0", name="ck_presets_likes_count_non_negative"),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_presets_owner_id"), "presets", ["owner_id"], unique=False)
    op.create_index(op.f("ix_presets_likes_count"), "presets", ["likes_count"], unique=False)
    op.create_index(op.f("ix_presets_created_at"), "presets", ["created_at"], unique=False)

    op.create_table(
        "preset_packages",
        sa.Column("preset_id", sa.String(length=200), nullable=False),
        sa.Column("package_name", sa.String(length=214), nullable=False),
        sa.Column("position", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.ForeignKeyConstraint(["preset_id"], ["presets.id"]),
        sa.PrimaryKeyConstraint("preset_id", "package_name"),
    )
    op.create_index(op.f("ix_preset_packages_package_name"), "preset_packages", ["package_name"], unique=False)

    op.create_table(
        "likes",
        sa.Column("user_id", sa.String(length=200), nullable=False),
        sa.Column("preset_id", sa.String(length=200), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["preset_id"], ["presets.id"]),
        sa.PrimaryKeyConstraint("user_id", "preset_id"),
    )
    op.create_index(op.f("ix_likes_preset_id"), "likes", ["preset_id"], unique=False)

    op.create_table(
        "packages",
        sa.Column("id", sa.String(length=214), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("weekly_downloads", sa.BigInteger(), server_default=sa.text("0"), nullable=False),
        sa.Column("repository", sa.Text(), nullable=True),
        sa.Column("homepage", sa.Text(), nullable=True),
        sa.Column("last_update", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_packages_weekly_downloads"), "packages", ["weekly_downloads"], unique=False)

    op.create_table(
        "tags",
        sa.Column("id", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("color", sa.String(length=7), server_default="#6B7280", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "package_tags",
        sa.Column("package_id", sa.String(length=214), nullable=False),
        sa.Column("tag_id", sa.String(length=50), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["package_id"], ["packages.id"]),
        sa.ForeignKeyConstraint(["tag_id"], ["tags.id"]),
        sa.PrimaryKeyConstraint("package_id", "tag_id"),
    )
    op.create_index(op.f("ix_package_tags_tag_id"), "package_tags", ["tag_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_package_tags_tag_id"), table_name="package_tags")
    op.drop_table("package_tags")
    op.drop_table("tags")
    op.drop_index(op.f("ix_packages_weekly_downloads"), table_name="packages")
    op.drop_table("packages")
    op.drop_index(op.f("ix_likes_preset_id"), table_name="likes")
    op.drop_table("likes")
    op.drop_index(op.f("ix_preset_packages_package_name"), table_name="preset_packages")
    op.drop_table("preset_packages")
    op.drop_index(op.f("ix_presets_created_at"), table_name="presets")
    op.drop_index(op.f("ix_presets_likes_count"), table_name="presets")
    op.drop_index(op.f("ix_presets_owner_id"), table_name="presets")
    op.drop_table("presets")
    op.drop_table("users")
