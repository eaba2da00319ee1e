"""store tables with public QR token

Revision ID: 0002_store_tables
Revises: 0001_create_schema
Create Date: 2026-10-19

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0002_store_tables"
down_revision = "0001_create_schema"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "store_tables",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), sa.ForeignKey("stores.id"), nullable=False, index=True),
        sa.Column("number", sa.Integer(), nullable=False),
        sa.Column("public_token", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="ativo"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("store_id", "number", name="uq_store_tables_store_number"),
    )
    op.create_index("ix_store_tables_public_token", "store_tables", ["public_token"], unique=True)


def downgrade() -> None:
    op.drop_index("ix_store_tables_public_token", table_name="store_tables")
    op.drop_table("store_tables")
