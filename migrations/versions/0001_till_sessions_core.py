"""till sessions core

Revision ID: 0001_till_sessions_core
Revises:
Create Date: 2025-12-01 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_till_sessions_core"
down_revision = None
branch_labels = None
depends_on = None


def _money():
    return sa.Numeric(14, 2)


OPEN_ONLY = sa.text("status = 'OPEN'")


def upgrade() -> None:
    op.create_table(
        "warehouses",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(length=30), nullable=False, unique=True),
        sa.Column("name", sa.String(length=150), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(length=30), nullable=False, unique=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("payment_term_code", sa.String(length=30), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_table(
        "cash_registers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(length=30), nullable=False),
        sa.Column("name", sa.String(length=150), nullable=False),
        sa.Column("warehouse_id", sa.Integer(), sa.ForeignKey("warehouses.id"), nullable=False),
        sa.Column(
            "allow_manual_warehouse_override",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column("default_customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("notes", sa.String(length=250), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_cash_registers_code", "cash_registers", ["code"], unique=True)

    op.create_table(
        "cash_register_users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("admin_user_id", sa.Integer(), nullable=False),
        sa.Column("cash_register_id", sa.Integer(), sa.ForeignKey("cash_registers.id"), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("admin_user_id", "cash_register_id", name="uq_cash_register_users_admin_register"),
    )
    op.create_index("ix_cash_register_users_admin_user_id", "cash_register_users", ["admin_user_id"])

    op.create_table(
        "cash_register_sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="OPEN"),
        sa.Column("admin_user_id", sa.Integer(), nullable=False),
        sa.Column("opened_by_admin_user_id", sa.Integer(), nullable=True),
        sa.Column("cash_register_id", sa.Integer(), sa.ForeignKey("cash_registers.id"), nullable=False),
        sa.Column("register_snapshot", sa.JSON(), nullable=False),
        sa.Column("opening_amount", _money(), nullable=False),
        sa.Column("opening_at", sa.DateTime(), nullable=False),
        sa.Column("opening_notes", sa.String(length=400), nullable=True),
        sa.Column("opening_denominations", sa.JSON(), nullable=True),
        sa.Column("closing_amount", _money(), nullable=True),
        sa.Column("closing_at", sa.DateTime(), nullable=True),
        sa.Column("closing_notes", sa.String(length=400), nullable=True),
        sa.Column("closing_user_id", sa.Integer(), nullable=True),
        sa.Column("closing_denominations", sa.JSON(), nullable=True),
        sa.Column("totals_snapshot", sa.JSON(), nullable=True),
        sa.CheckConstraint("status IN ('OPEN', 'CLOSED', 'CANCELLED')", name="ck_cash_register_sessions_status"),
    )
    op.create_index("ix_cash_register_sessions_admin_user_id", "cash_register_sessions", ["admin_user_id"])
    op.create_index("ix_cash_register_sessions_cash_register_id", "cash_register_sessions", ["cash_register_id"])
    op.create_index(
        "uq_cash_register_sessions_open_admin",
        "cash_register_sessions",
        ["admin_user_id"],
        unique=True,
        sqlite_where=OPEN_ONLY,
        postgresql_where=OPEN_ONLY,
    )
    op.create_index(
        "uq_cash_register_sessions_open_register",
        "cash_register_sessions",
        ["cash_register_id"],
        unique=True,
        sqlite_where=OPEN_ONLY,
        postgresql_where=OPEN_ONLY,
    )

    op.create_table(
        "cash_register_session_payments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("session_id", sa.Integer(), sa.ForeignKey("cash_register_sessions.id"), nullable=False),
        sa.Column("payment_method", sa.String(length=40), nullable=False),
        sa.Column("expected_amount", _money(), nullable=False),
        sa.Column("reported_amount", _money(), nullable=False),
        sa.Column("difference_amount", _money(), nullable=False),
        sa.Column("transaction_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("session_id", "payment_method", name="uq_cash_register_session_payments_method"),
    )

    op.create_table(
        "invoices",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("invoice_number", sa.String(length=40), nullable=False),
        sa.Column(
            "cash_register_session_id",
            sa.Integer(),
            sa.ForeignKey("cash_register_sessions.id"),
            nullable=True,
        ),
        sa.Column("total_amount", _money(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="POSTED"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_invoices_cash_register_session_id", "invoices", ["cash_register_session_id"])

    op.create_table(
        "invoice_payments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id"), nullable=False),
        sa.Column("payment_method", sa.String(length=40), nullable=False),
        sa.Column("amount", _money(), nullable=False),
    )
    op.create_index("ix_invoice_payments_invoice_id", "invoice_payments", ["invoice_id"])


def downgrade() -> None:
    op.drop_index("ix_invoice_payments_invoice_id", table_name="invoice_payments")
    op.drop_table("invoice_payments")
    op.drop_index("ix_invoices_cash_register_session_id", table_name="invoices")
    op.drop_table("invoices")
    op.drop_table("cash_register_session_payments")
    op.drop_index("uq_cash_register_sessions_open_register", table_name="cash_register_sessions")
    op.drop_index("uq_cash_register_sessions_open_admin", table_name="cash_register_sessions")
    op.drop_index("ix_cash_register_sessions_cash_register_id", table_name="cash_register_sessions")
    op.drop_index("ix_cash_register_sessions_admin_user_id", table_name="cash_register_sessions")
    op.drop_table("cash_register_sessions")
    op.drop_index("ix_cash_register_users_admin_user_id", table_name="cash_register_users")
    op.drop_table("cash_register_users")
    op.drop_index("ix_cash_registers_code", table_name="cash_registers")
    op.drop_table("cash_registers")
    op.drop_table("customers")
    op.drop_table("warehouses")
