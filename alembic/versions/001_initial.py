"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-18

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
        "tenants",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("token", sa.String(128), unique=True, nullable=False, index=True),
        sa.Column("username", sa.String(64), nullable=False),
        sa.Column("creator_id", sa.String(32), nullable=False, index=True),
        sa.Column("creator_username", sa.String(128), nullable=True),
        sa.Column("created_at", sa.Integer(), nullable=False),
    )
    op.create_table(
        "channel_urls",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("bot_token", sa.String(128), unique=True, nullable=False, index=True),
        sa.Column("url", sa.Text(), nullable=False),
    )
    op.create_table(
        "tenant_members",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("bot_token", sa.String(128), nullable=False, index=True),
        sa.Column("user_id", sa.String(32), nullable=False),
        sa.Column("has_joined", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("user_step", sa.String(32), nullable=False, server_default="none"),
        sa.Column("admin_state", sa.String(32), nullable=False, server_default="none"),
        sa.Column("last_interaction", sa.Integer(), nullable=False),
        sa.Column("is_blocked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("username", sa.String(128), nullable=True),
        sa.Column("referred_by", sa.String(128), nullable=False, server_default="None"),
        sa.Column("is_first_start", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.UniqueConstraint("bot_token", "user_id", name="uq_tenant_members_bot_user"),
    )
    op.create_index("ix_tenant_members_bot_joined", "tenant_members", ["bot_token", "has_joined"])
    op.create_table(
        "platform_users",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("user_id", sa.String(32), unique=True, nullable=False, index=True),
        sa.Column("step", sa.String(32), nullable=False, server_default="none"),
        sa.Column("admin_state", sa.String(32), nullable=False, server_default="none"),
        sa.Column("is_blocked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("username", sa.String(128), nullable=True),
        sa.Column("referred_by", sa.String(128), nullable=False, server_default="None"),
        sa.Column("is_first_start", sa.Boolean(), nullable=False, server_default=sa.true()),
    )


def downgrade() -> None:
    op.drop_table("platform_users")
    op.drop_index("ix_tenant_members_bot_joined", table_name="tenant_members")
    op.drop_table("tenant_members")
    op.drop_table("channel_urls")
    op.drop_table("tenants")
