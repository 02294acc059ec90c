"""Initial schema: users, items, matches

Revision ID: 001
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("username", sa.String(64), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("trust_score", sa.Integer(), nullable=False, server_default="100"),
        sa.Column("reports_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed_exchanges", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("trust_score BETWEEN 0 AND 100", name="ck_users_trust_score_range"),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "items",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(32), nullable=False),
        sa.Column("category", sa.String(64), nullable=False),
        sa.Column("title", sa.String(255), nullable=False, server_default=""),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("color_tokens", sa.JSON(), nullable=False),
        sa.Column("brand_token", sa.String(64), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("address", sa.String(255), nullable=True),
        sa.Column("image", sa.Text(), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="open"),
        sa.Column("private_details", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_items_owner_id", "items", ["owner_id"], unique=False)
    op.create_index("ix_items_kind", "items", ["kind"], unique=False)
    op.create_index("ix_items_category", "items", ["category"], unique=False)
    op.create_index("ix_items_status", "items", ["status"], unique=False)

    # Item ids are deliberately not foreign keys: completed exchanges delete items
    # and sibling matches keep pointing at ids that no longer resolve.
    op.create_table(
        "matches",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("lost_item_id", sa.Integer(), nullable=False),
        sa.Column("found_item_id", sa.Integer(), nullable=False),
        sa.Column("lost_user_id", sa.Integer(), nullable=False),
        sa.Column("found_user_id", sa.Integer(), nullable=False),
        sa.Column("confidence", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(500), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("exchange_status", sa.String(32), nullable=False, server_default="none"),
        sa.Column("exchange_start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("exchange_confirmed_by", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("confidence > 50 AND confidence <= 100", name="ck_matches_confidence_range"),
    )
    op.create_index("ix_matches_lost_item_id", "matches", ["lost_item_id"], unique=False)
    op.create_index("ix_matches_found_item_id", "matches", ["found_item_id"], unique=False)
    op.create_index("ix_matches_lost_user_id", "matches", ["lost_user_id"], unique=False)
    op.create_index("ix_matches_found_user_id", "matches", ["found_user_id"], unique=False)
    op.create_index("ix_matches_exchange_status", "matches", ["exchange_status"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_matches_exchange_status", "matches")
    op.drop_index("ix_matches_found_user_id", "matches")
    op.drop_index("ix_matches_lost_user_id", "matches")
    op.drop_index("ix_matches_found_item_id", "matches")
    op.drop_index("ix_matches_lost_item_id", "matches")
    op.drop_table("matches")
    op.drop_index("ix_items_status", "items")
    op.drop_index("ix_items_category", "items")
    op.drop_index("ix_items_kind", "items")
    op.drop_index("ix_items_owner_id", "items")
    op.drop_table("items")
    op.drop_index("ix_users_username", "users")
    op.drop_table("users")
