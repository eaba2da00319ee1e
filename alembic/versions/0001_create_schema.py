"""create vendafacil schema

Revision ID: 0001_create_schema
Revises:
Create Date: 2026-10-19

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_create_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(*names: str) -> list[sa.Column]:
    return [
        sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)
        for name in names
    ]


def upgrade() -> None:
    op.create_table(
        "stores",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_user_id", sa.String(), nullable=True, index=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("legal_name", sa.String(), nullable=True),
        sa.Column("cnpj", sa.String(), nullable=True),
        sa.Column("address", sa.String(), nullable=True),
        sa.Column("city", sa.String(), nullable=True),
        sa.Column("state", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("settings", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="active"),
        sa.Column("trial_used", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps("created_at"),
    )
    op.create_table(
        "store_members",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), sa.ForeignKey("stores.id"), nullable=False, index=True),
        sa.Column("email", sa.String(), nullable=False, index=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("role", sa.String(), nullable=False, server_default="staff"),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps("created_at"),
        sa.UniqueConstraint("store_id", "email", name="uq_store_members_store_email"),
    )
    op.create_table(
        "store_access",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), sa.ForeignKey("stores.id"), nullable=False, unique=True),
        sa.Column("plano_nome", sa.String(), nullable=False),
        sa.Column("plano_tipo", sa.String(), nullable=False),
        sa.Column("data_inicio_acesso", sa.DateTime(timezone=True), nullable=False),
        sa.Column("data_fim_acesso", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status_acesso", sa.String(), nullable=False, server_default="ativo"),
        *_timestamps("updated_at"),
    )
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), sa.ForeignKey("stores.id"), nullable=False, index=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("category", sa.String(), nullable=True),
        sa.Column("barcode", sa.String(), nullable=True, index=True),
        sa.Column("price_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cost_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("stock_qty", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("min_stock_qty", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("production_target", sa.String(), nullable=False, server_default="nenhum"),
        sa.Column("prep_time_minutes", sa.Integer(), nullable=True),
        *_timestamps("created_at", "updated_at"),
    )
    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), sa.ForeignKey("stores.id"), nullable=False, index=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("cpf", sa.String(), nullable=True),
        *_timestamps("created_at"),
    )
    op.create_table(
        "cash_sessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), sa.ForeignKey("stores.id"), nullable=False, index=True),
        sa.Column("opening_amount_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("opened_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closing_amount_cents", sa.Integer(), nullable=True),
    )
    op.create_index(
        "uq_cash_sessions_store_open",
        "cash_sessions",
        ["store_id"],
        unique=True,
        sqlite_where=sa.text("closed_at IS NULL"),
        postgresql_where=sa.text("closed_at IS NULL"),
    )
    op.create_table(
        "sales",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), sa.ForeignKey("stores.id"), nullable=False, index=True),
        sa.Column("comanda_id", sa.Integer(), nullable=True, index=True),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=True),
        sa.Column("cash_session_id", sa.Integer(), sa.ForeignKey("cash_sessions.id"), nullable=True, index=True),
        sa.Column("total_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("payment_method", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, index=True),
    )
    op.create_table(
        "comandas",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), sa.ForeignKey("stores.id"), nullable=False, index=True),
        sa.Column("numero", sa.Integer(), nullable=False),
        sa.Column("mesa", sa.String(), nullable=True),
        sa.Column("cliente_nome", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="aberta"),
        sa.Column("sale_id", sa.Integer(), sa.ForeignKey("sales.id"), nullable=True),
        *_timestamps("opened_at"),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "uq_comandas_store_numero_aberta",
        "comandas",
        ["store_id", "numero"],
        unique=True,
        sqlite_where=sa.text("status = 'aberta'"),
        postgresql_where=sa.text("status = 'aberta'"),
    )
    op.create_table(
        "order_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), sa.ForeignKey("stores.id"), nullable=False, index=True),
        sa.Column("comanda_id", sa.Integer(), sa.ForeignKey("comandas.id"), nullable=True, index=True),
        sa.Column("sale_id", sa.Integer(), sa.ForeignKey("sales.id"), nullable=True, index=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("product_name_snapshot", sa.String(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("subtotal_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("destino_preparo", sa.String(), nullable=False, server_default="nenhum"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("done_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_order_items_queue",
        "order_items",
        ["store_id", "destino_preparo", "status", "created_at"],
    )
    op.create_table(
        "sale_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sale_id", sa.Integer(), sa.ForeignKey("sales.id"), nullable=False, index=True),
        sa.Column("store_id", sa.Integer(), sa.ForeignKey("stores.id"), nullable=False, index=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("product_name_snapshot", sa.String(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False),
        sa.Column("subtotal_cents", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("destino_preparo", sa.String(), nullable=False, server_default="nenhum"),
        sa.Column("production_item_id", sa.Integer(), sa.ForeignKey("order_items.id"), nullable=True, index=True),
    )
    op.create_table(
        "audit_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), nullable=False, index=True),
        sa.Column("member_id", sa.Integer(), nullable=True, index=True),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("entity_type", sa.String(), nullable=True),
        sa.Column("entity_id", sa.Integer(), nullable=True),
        sa.Column("meta_json", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("sale_items")
    op.drop_index("ix_order_items_queue", table_name="order_items")
    op.drop_table("order_items")
    op.drop_index("uq_comandas_store_numero_aberta", table_name="comandas")
    op.drop_table("comandas")
    op.drop_table("sales")
    op.drop_index("uq_cash_sessions_store_open", table_name="cash_sessions")
    op.drop_table("cash_sessions")
    op.drop_table("customers")
    op.drop_table("products")
    op.drop_table("store_access")
    op.drop_table("store_members")
    op.drop_table("stores")
