from decimal import Decimal

import pytest
from sqlalchemy import func, select

from app.till.core.error_catalog import AppError, ErrorCatalog
from app.till.db.models import CashRegister, CashRegisterSession, CashRegisterSessionPayment, Warehouse
from app.till.repos.cash_registers import SqlCashRegisterRepository
from app.till.repos.ledger import SqlInvoiceLedger
from app.till.services.cash_sessions import SessionLifecycleManager
from app.till.services.records import ReportedPayment
from tests.cash_helpers import auth_headers, post_invoice, seed_catalog


class StaleSessionRepository(SqlCashRegisterRepository):
    """Serves one pre-read session record, as a request that read it before a concurrent close."""

    def __init__(self, db, stale):
        super().__init__(db)
        self._stale = stale

    def get_session(self, session_id, *, for_update=False):
        if self._stale is not None and self._stale.id == session_id:
            stale, self._stale = self._stale, None
            return stale
        return super().get_session(session_id, for_update=for_update)


class BlindOpenRepository(SqlCashRegisterRepository):
    """Sees no open sessions, as a request whose check ran before a concurrent insert."""

    def get_open_session_for_admin(self, admin_user_id, *, for_update=False):
        return None

    def get_open_session_for_register(self, cash_register_id, *, for_update=False):
        return None


class FailingBreakdownRepository(SqlCashRegisterRepository):
    def upsert_payment_breakdown(self, session_id, rows):
        raise RuntimeError("breakdown write failed")


@pytest.fixture()
def sessions(client):
    from app.till.db.session import SessionLocal

    opened = []

    def factory():
        db = SessionLocal()
        opened.append(db)
        return db

    yield factory
    for db in opened:
        db.close()


def _manager(repo):
    return SessionLifecycleManager(repo, SqlInvoiceLedger(repo.db), cash_methods=["CASH"])


def _card(amount):
    return [ReportedPayment(method="CARD", amount=Decimal(amount), tx_count=1)]


def test_losing_close_replays_the_winner_summary(db_session, sessions):
    seed_catalog(db_session, admin_user_ids=(1,))
    winner = _manager(SqlCashRegisterRepository(sessions()))
    session = winner.open(1, "CAJA-01", Decimal("0"))
    post_invoice(db_session, session.id, [("CARD", "50")])

    loser_db = sessions()
    stale = SqlCashRegisterRepository(loser_db).get_session(session.id)
    loser_db.rollback()
    assert stale.status == "OPEN"

    first = winner.close(1, session_id=session.id, payments=_card("45"))
    second = _manager(StaleSessionRepository(loser_db, stale)).close(1, session_id=session.id, payments=_card("50"))

    assert first.already_closed is False
    assert second.already_closed is True
    assert second.summary == first.summary
    assert second.summary.reported_total_amount == Decimal("45.00")

    check = sessions()
    rows = check.scalar(
        select(func.count())
        .select_from(CashRegisterSessionPayment)
        .where(CashRegisterSessionPayment.session_id == session.id)
    )
    assert rows == 1
    stored = check.get(CashRegisterSession, session.id)
    assert stored.status == "CLOSED"
    assert stored.closing_amount == Decimal("0.00")


def test_racing_open_hits_the_open_session_index(db_session, sessions):
    seed_catalog(db_session, admin_user_ids=(1, 2))
    _manager(SqlCashRegisterRepository(sessions())).open(1, "CAJA-01", Decimal("0"))

    racer = _manager(BlindOpenRepository(sessions()))
    with pytest.raises(AppError) as same_admin:
        racer.open(1, "CAJA-02", Decimal("0"))
    assert same_admin.value.error == ErrorCatalog.SESSION_ALREADY_OPEN
    assert same_admin.value.details["conflict"] == "concurrent_open"

    with pytest.raises(AppError) as same_register:
        racer.open(2, "CAJA-01", Decimal("0"))
    assert same_register.value.error == ErrorCatalog.SESSION_ALREADY_OPEN

    check = sessions()
    open_count = check.scalar(
        select(func.count()).select_from(CashRegisterSession).where(CashRegisterSession.status == "OPEN")
    )
    assert open_count == 1

    # the failed insert must not poison the session for later work
    assert racer.open(2, "CAJA-02", Decimal("0")).status == "OPEN"


def test_close_rolls_back_when_breakdown_write_fails(db_session, sessions):
    seed_catalog(db_session, admin_user_ids=(1,))
    session = _manager(SqlCashRegisterRepository(sessions())).open(1, "CAJA-01", Decimal("0"))
    post_invoice(db_session, session.id, [("CARD", "50")])

    with pytest.raises(RuntimeError):
        _manager(FailingBreakdownRepository(sessions())).close(1, session_id=session.id, payments=_card("50"))

    check = sessions()
    stored = check.get(CashRegisterSession, session.id)
    assert stored.status == "OPEN"
    assert stored.totals_snapshot is None
    assert stored.closing_at is None
    rows = check.scalar(
        select(func.count())
        .select_from(CashRegisterSessionPayment)
        .where(CashRegisterSessionPayment.session_id == session.id)
    )
    assert rows == 0

    retry = _manager(SqlCashRegisterRepository(sessions())).close(1, session_id=session.id, payments=_card("50"))
    assert retry.already_closed is False
    assert retry.summary.difference_total_amount == Decimal("0.00")


def test_register_binding_is_frozen_at_open(client, db_session, sessions):
    seed_catalog(db_session, admin_user_ids=(1,))
    session = _manager(SqlCashRegisterRepository(sessions())).open(1, "CAJA-01", Decimal("0"))

    register = db_session.scalar(select(CashRegister).where(CashRegister.code == "CAJA-01"))
    register.name = "Caja renombrada"
    warehouse = db_session.get(Warehouse, register.warehouse_id)
    warehouse.name = "Bodega renombrada"
    db_session.commit()

    reloaded = _manager(SqlCashRegisterRepository(sessions())).get_session(session.id)
    assert reloaded.cash_register.cash_register_name == "Caja principal"
    assert reloaded.cash_register.warehouse_name == session.cash_register.warehouse_name

    report = client.get(
        f"/till/cash-registers/sessions/{session.id}/opening-report",
        headers=auth_headers(1),
    )
    assert report.status_code == 200, report.text
    binding = report.json()["session"]["cash_register"]
    assert binding["cash_register_name"] == "Caja principal"
    assert binding["warehouse_name"] != "Bodega renombrada"
