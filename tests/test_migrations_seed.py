import os
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import CheckConstraint, create_engine, func, inspect, select
from sqlalchemy.orm import sessionmaker

from app.till.db.models import CashRegister, CashRegisterAssignment, CashRegisterSession, Customer, Warehouse
from app.till.db.seed import run_seed


def _run_migrations(database_url: str):
    os.environ["DATABASE_URL"] = database_url
    config = Config("alembic.ini")
    config.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(config, "head")


def test_migrations_apply(tmp_path: Path):
    database_url = f"sqlite+pysqlite:///{tmp_path / 'migrations.db'}"
    _run_migrations(database_url)

    inspector = inspect(create_engine(database_url, future=True))
    tables = set(inspector.get_table_names())

    assert {
        "warehouses",
        "customers",
        "cash_registers",
        "cash_register_users",
        "cash_register_sessions",
        "cash_register_session_payments",
        "invoices",
        "invoice_payments",
    } <= tables
    session_indexes = {index["name"]: index for index in inspector.get_indexes("cash_register_sessions")}
    assert session_indexes["uq_cash_register_sessions_open_admin"]["unique"]
    assert session_indexes["uq_cash_register_sessions_open_register"]["unique"]

    migrated_checks = {check["name"] for check in inspector.get_check_constraints("cash_register_sessions")}
    model_checks = {
        constraint.name
        for constraint in CashRegisterSession.__table__.constraints
        if isinstance(constraint, CheckConstraint)
    }
    assert model_checks == {"ck_cash_register_sessions_status"}
    assert model_checks <= migrated_checks


def test_seed_is_idempotent(tmp_path: Path):
    database_url = f"sqlite+pysqlite:///{tmp_path / 'seed.db'}"
    _run_migrations(database_url)
    SessionLocal = sessionmaker(bind=create_engine(database_url, future=True), future=True)

    def counts(db):
        return [
            db.scalar(select(func.count()).select_from(model))
            for model in (Warehouse, Customer, CashRegister, CashRegisterAssignment)
        ]

    with SessionLocal() as db:
        run_seed(db, admin_user_ids=(1, 2))
        first = counts(db)
        run_seed(db, admin_user_ids=(1, 2))
        assert counts(db) == first
        assert first == [1, 1, 2, 4]
        defaults = db.scalar(
            select(func.count()).select_from(CashRegisterAssignment).where(CashRegisterAssignment.is_default.is_(True))
        )
        assert defaults == 2
