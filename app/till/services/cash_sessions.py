"""Cash register session lifecycle: OPEN -> CLOSED.

The manager owns every transition. It talks to storage only through a
``CashRegisterRepository`` and to invoicing only through an ``InvoiceLedger``,
so the same rules run against the SQL store and the in-memory one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from app.till.core.config import settings
from app.till.core.error_catalog import AppError, ErrorCatalog
from app.till.core.logging import log_event
from app.till.db.models import SESSION_CLOSED, SESSION_OPEN
from app.till.repos.cash_registers import CashRegisterRepository, OpenSessionConflict
from app.till.repos.ledger import InvoiceLedger
from app.till.schemas.cash_registers import ClosureSummary
from app.till.services.assignments import AssignmentDirectory
from app.till.services.denominations import DenominationValidator
from app.till.services.reconciliation import build_closure_summary
from app.till.services.records import (
    Denomination,
    MAX_AMOUNT,
    ReportedPayment,
    SessionRecord,
    clean_notes,
    normalize_code,
    round2,
    to_decimal,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CloseResult:
    session_id: int
    summary: ClosureSummary
    already_closed: bool = False


class _CloseRaceLost(Exception):
    def __init__(self, session_id: int):
        super().__init__(session_id)
        self.session_id = session_id


def _amount_in_range(value, field: str) -> Decimal:
    amount = to_decimal(value)
    if not amount.is_finite() or amount < 0:
        raise AppError(
            ErrorCatalog.VALIDATION_ERROR,
            details={"field": field, "message": f"{field} must be greater than or equal to 0"},
        )
    if amount > MAX_AMOUNT:
        raise AppError(
            ErrorCatalog.VALIDATION_ERROR,
            details={"field": field, "message": f"{field} must be less than or equal to {MAX_AMOUNT}"},
        )
    return amount


class SessionLifecycleManager:
    def __init__(
        self,
        repo: CashRegisterRepository,
        ledger: InvoiceLedger,
        *,
        validator: DenominationValidator | None = None,
        cash_methods: list[str] | None = None,
        notes_max_length: int | None = None,
    ):
        self.repo = repo
        self.ledger = ledger
        self.assignments = AssignmentDirectory(repo)
        self.validator = validator or DenominationValidator()
        self.cash_methods = {normalize_code(method) for method in (cash_methods or settings.CASH_PAYMENT_METHODS)}
        self.notes_max_length = notes_max_length or settings.NOTES_MAX_LENGTH

    def open(
        self,
        admin_user_id: int,
        cash_register_code: str,
        opening_amount,
        *,
        opening_notes: str | None = None,
        opening_denominations: list[Denomination] | None = None,
        allow_unassigned: bool = False,
        acting_admin_user_id: int | None = None,
        now: datetime | None = None,
    ) -> SessionRecord:
        amount = round2(_amount_in_range(opening_amount, "opening_amount"))
        notes = clean_notes(opening_notes, self.notes_max_length)
        binding = self.assignments.resolve(admin_user_id, cash_register_code, allow_unassigned=allow_unassigned)
        if amount > 0:
            self.validator.validate(opening_denominations, amount, field="opening_denominations")

        with self.repo.transaction():
            self._ensure_no_open_session(admin_user_id, binding.cash_register_id)
            try:
                record = self.repo.insert_session(
                    SessionRecord(
                        id=None,
                        status=SESSION_OPEN,
                        admin_user_id=admin_user_id,
                        opened_by_admin_user_id=acting_admin_user_id or admin_user_id,
                        cash_register=binding,
                        opening_amount=amount,
                        opening_at=now or datetime.utcnow(),
                        opening_notes=notes,
                        opening_denominations=opening_denominations or None,
                    )
                )
            except OpenSessionConflict as exc:
                raise AppError(
                    ErrorCatalog.SESSION_ALREADY_OPEN,
                    details={"conflict": "concurrent_open", "cash_register_id": binding.cash_register_id},
                ) from exc

        log_event(
            logger,
            "cash_session.open",
            session_id=record.id,
            admin_user_id=admin_user_id,
            opened_by_admin_user_id=record.opened_by_admin_user_id,
            cash_register_id=binding.cash_register_id,
            cash_register_code=binding.cash_register_code,
            opening_amount=str(amount),
        )
        return record

    def _ensure_no_open_session(self, admin_user_id: int, cash_register_id: int) -> None:
        current = self.repo.get_open_session_for_admin(admin_user_id, for_update=True)
        if current is not None:
            raise AppError(
                ErrorCatalog.SESSION_ALREADY_OPEN,
                details={
                    "conflict": "admin",
                    "session_id": current.id,
                    "cash_register_code": current.cash_register.cash_register_code,
                },
            )
        busy = self.repo.get_open_session_for_register(cash_register_id, for_update=True)
        if busy is not None:
            raise AppError(
                ErrorCatalog.SESSION_ALREADY_OPEN,
                details={"conflict": "cash_register", "session_id": busy.id, "admin_user_id": busy.admin_user_id},
            )

    def close(
        self,
        admin_user_id: int,
        *,
        payments: list[ReportedPayment],
        session_id: int | None = None,
        closing_amount=None,
        closing_notes: str | None = None,
        closing_denominations: list[Denomination] | None = None,
        allow_different_user: bool = False,
        now: datetime | None = None,
    ) -> CloseResult:
        """Close a session, or replay the frozen summary if it is already closed.

        ``closing_amount`` defaults to the reported total of cash-like methods.
        """
        reported = [
            ReportedPayment(
                method=payment.method,
                amount=_amount_in_range(payment.amount, "payments.reported_amount"),
                tx_count=max(0, int(payment.tx_count or 0)),
            )
            for payment in payments
        ]
        cash_total = round2(
            sum((item.amount for item in reported if normalize_code(item.method) in self.cash_methods), Decimal("0"))
        )
        amount = round2(_amount_in_range(closing_amount, "closing_amount") if closing_amount is not None else cash_total)
        notes = clean_notes(closing_notes, self.notes_max_length)

        try:
            with self.repo.transaction():
                session = self._resolve_target(admin_user_id, session_id)
                if session.status == SESSION_CLOSED:
                    return self._replay(session, admin_user_id, allow_different_user)
                if session.status != SESSION_OPEN:
                    raise AppError(
                        ErrorCatalog.SESSION_NOT_OPEN,
                        details={"session_id": session.id, "status": session.status},
                    )
                if session.admin_user_id != admin_user_id and not allow_different_user:
                    raise AppError(
                        ErrorCatalog.FORBIDDEN,
                        details={"session_id": session.id, "message": "session belongs to another user"},
                    )

                totals = self.ledger.expected_payments(session.id)
                if cash_total > 0:
                    self.validator.validate(closing_denominations, cash_total, field="closing_denominations")

                closing_at = now or datetime.utcnow()
                summary = build_closure_summary(
                    session=session,
                    closing_user_id=admin_user_id,
                    closing_amount=amount,
                    closing_at=closing_at,
                    closing_notes=notes,
                    expected_payments=totals.payments,
                    reported_payments=reported,
                    total_invoices=totals.total_invoices,
                )
                snapshot = summary.to_snapshot()
                if not self.repo.mark_closed(
                    session.id,
                    closing_amount=amount,
                    closing_at=closing_at,
                    closing_notes=notes,
                    closing_user_id=admin_user_id,
                    closing_denominations=closing_denominations or None,
                    totals_snapshot=snapshot,
                ):
                    raise _CloseRaceLost(session.id)
                self.repo.upsert_payment_breakdown(session.id, summary.payments)
        except _CloseRaceLost as lost:
            winner = self.repo.get_session(lost.session_id)
            return self._replay(winner, admin_user_id, allow_different_user)

        log_event(
            logger,
            "cash_session.close",
            session_id=session.id,
            admin_user_id=session.admin_user_id,
            closing_user_id=admin_user_id,
            expected_total_amount=str(summary.expected_total_amount),
            reported_total_amount=str(summary.reported_total_amount),
            difference_total_amount=str(summary.difference_total_amount),
            total_invoices=summary.total_invoices,
        )
        return CloseResult(session_id=session.id, summary=ClosureSummary.from_snapshot(snapshot))

    def _resolve_target(self, admin_user_id: int, session_id: int | None) -> SessionRecord:
        if session_id is not None:
            session = self.repo.get_session(session_id, for_update=True)
        else:
            session = self.repo.get_open_session_for_admin(admin_user_id, for_update=True)
        if session is None:
            raise AppError(
                ErrorCatalog.SESSION_NOT_FOUND,
                details={"session_id": session_id, "admin_user_id": admin_user_id},
            )
        return session

    def _replay(self, session: SessionRecord, admin_user_id: int, allow_different_user: bool) -> CloseResult:
        if (
            admin_user_id not in (session.admin_user_id, session.closing_user_id)
            and not allow_different_user
        ):
            raise AppError(
                ErrorCatalog.FORBIDDEN,
                details={"session_id": session.id, "message": "session belongs to another user"},
            )
        if not session.totals_snapshot:
            raise AppError(
                ErrorCatalog.SESSION_NOT_OPEN,
                details={"session_id": session.id, "status": session.status},
            )
        log_event(
            logger,
            "cash_session.close_replayed",
            session_id=session.id,
            requested_by=admin_user_id,
            closing_user_id=session.closing_user_id,
        )
        return CloseResult(
            session_id=session.id,
            summary=ClosureSummary.from_snapshot(session.totals_snapshot),
            already_closed=True,
        )

    def get_session(self, session_id: int) -> SessionRecord:
        session = self.repo.get_session(session_id)
        if session is None:
            raise AppError(ErrorCatalog.SESSION_NOT_FOUND, details={"session_id": session_id})
        return session

    def get_active_session(self, admin_user_id: int) -> SessionRecord | None:
        return self.repo.get_open_session_for_admin(admin_user_id)

    def list_recent_sessions(self, admin_user_id: int, limit: int | None = None) -> list[SessionRecord]:
        requested = settings.RECENT_SESSIONS_DEFAULT_LIMIT if limit is None else limit
        clamped = max(1, min(int(requested), settings.RECENT_SESSIONS_MAX_LIMIT))
        return self.repo.list_sessions_for_admin(admin_user_id, limit=clamped)

    def list_active_sessions(self) -> list[SessionRecord]:
        return self.repo.list_open_sessions()

    def closure_report(self, session_id: int, *, now: datetime | None = None) -> tuple[SessionRecord, ClosureSummary]:
        """Frozen summary for closed sessions; a live preview otherwise.

        The preview takes the ledger totals as both expected and reported, so
        every difference is zero until the cashier reports real counts.
        """
        session = self.get_session(session_id)
        if session.totals_snapshot:
            return session, ClosureSummary.from_snapshot(session.totals_snapshot)

        totals = self.ledger.expected_payments(session.id)
        summary = build_closure_summary(
            session=session,
            closing_user_id=session.closing_user_id or session.admin_user_id,
            closing_amount=session.closing_amount or Decimal("0"),
            closing_at=session.closing_at or now or datetime.utcnow(),
            closing_notes=session.closing_notes,
            expected_payments=totals.payments,
            reported_payments=[
                ReportedPayment(method=item.method, amount=item.amount, tx_count=item.tx_count)
                for item in totals.payments
            ],
            total_invoices=totals.total_invoices,
        )
        return session, summary
