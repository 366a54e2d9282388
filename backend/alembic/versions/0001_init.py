"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "materials",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("unit", sa.Text(), nullable=False),
        sa.Column("current_stock", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("threshold", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("bill_number", sa.Text(), nullable=True),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_materials_name", "materials", ["name"])

    op.create_table(
        "batches",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("batch_number", sa.Text(), nullable=False),
        sa.Column("product", sa.Text(), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'In Progress'")),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_batches_date", "batches", ["date"])

    op.create_table(
        "batch_materials",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("batch_id", sa.Integer(), sa.ForeignKey("batches.id", ondelete="CASCADE"), nullable=False),
        sa.Column("material_id", sa.Integer(), sa.ForeignKey("materials.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_batch_materials_batch_id", "batch_materials", ["batch_id"])
    op.create_index("ix_batch_materials_material_id", "batch_materials", ["material_id"])

    op.create_table(
        "usage_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("material_id", sa.Integer(), sa.ForeignKey("materials.id", ondelete="SET NULL"), nullable=True),
        sa.Column("batch_id", sa.Integer(), sa.ForeignKey("batches.id", ondelete="SET NULL"), nullable=True),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("username", sa.Text(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("bill_number", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_usage_logs_material_id", "usage_logs", ["material_id"])
    op.create_index("ix_usage_logs_batch_id", "usage_logs", ["batch_id"])
    op.create_index("ix_usage_logs_date", "usage_logs", ["date"])

    op.create_table(
        "material_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("material_id", sa.Integer(), sa.ForeignKey("materials.id", ondelete="SET NULL"), nullable=True),
        sa.Column("action_type", sa.Text(), nullable=False),
        sa.Column("username", sa.Text(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("details", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
    )
    op.create_index("ix_material_logs_material_id", "material_logs", ["material_id"])
    op.create_index("ix_material_logs_timestamp", "material_logs", ["timestamp"])

    op.create_table(
        "settings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("key", sa.Text(), nullable=False),
        sa.Column("value", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("user_id", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ux_settings_key_user", "settings", ["key", "user_id"], unique=True)
    op.create_index(
        "ux_settings_key_global",
        "settings",
        ["key"],
        unique=True,
        postgresql_where=sa.text("user_id IS NULL"),
    )


def downgrade() -> None:
    op.drop_index("ux_settings_key_global", table_name="settings")
    op.drop_index("ux_settings_key_user", table_name="settings")
    op.drop_table("settings")

    op.drop_index("ix_material_logs_timestamp", table_name="material_logs")
    op.drop_index("ix_material_logs_material_id", table_name="material_logs")
    op.drop_table("material_logs")

    op.drop_index("ix_usage_logs_date", table_name="usage_logs")
    op.drop_index("ix_usage_logs_batch_id", table_name="usage_logs")
    op.drop_index("ix_usage_logs_material_id", table_name="usage_logs")
    op.drop_table("usage_logs")

    op.drop_index("ix_batch_materials_material_id", table_name="batch_materials")
    op.drop_index("ix_batch_materials_batch_id", table_name="batch_materials")
    op.drop_table("batch_materials")

    op.drop_index("ix_batches_date", table_name="batches")
    op.drop_table("batches")

    op.drop_index("ix_materials_name", table_name="materials")
    op.drop_table("materials")
