"""Process-local storage backends.

Both classes keep the same guarantees as the SQL ones: a single lock stands in
for row locks, and a failed ``transaction()`` block restores the state it
started from.
"""

from __future__ import annotations

import copy
import itertools
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from decimal import Decimal

from app.till.db.models import SESSION_CLOSED, SESSION_OPEN
from app.till.repos.cash_registers import CashRegisterRepository, OpenSessionConflict
from app.till.repos.ledger import InvoiceLedger
from app.till.schemas.cash_registers import PaymentBreakdown
from app.till.services.records import (
    AssignmentGroup,
    Denomination,
    ExpectedPayment,
    LedgerTotals,
    RegisterBinding,
    SessionRecord,
    normalize_code,
    to_decimal,
)


class InMemoryCashRegisterRepository(CashRegisterRepository):
    def __init__(self):
        self._lock = threading.RLock()
        self._ids = itertools.count(1)
        self._registers: dict[int, RegisterBinding] = {}
        self._inactive: set[int] = set()
        self._assignments: dict[tuple[int, int], bool] = {}
        self._sessions: dict[int, SessionRecord] = {}
        self._breakdowns: dict[int, dict[str, PaymentBreakdown]] = {}

    def add_register(
        self,
        code: str,
        name: str,
        *,
        warehouse_id: int = 1,
        warehouse_code: str = "PRINCIPAL",
        warehouse_name: str = "Almacen principal",
        allow_manual_warehouse_override: bool = False,
        default_customer_id: int | None = None,
        default_customer_code: str | None = None,
        default_customer_name: str | None = None,
        default_customer_payment_term_code: str | None = None,
        is_active: bool = True,
    ) -> RegisterBinding:
        with self._lock:
            binding = RegisterBinding(
                cash_register_id=len(self._registers) + 1,
                cash_register_code=normalize_code(code),
                cash_register_name=name,
                allow_manual_warehouse_override=allow_manual_warehouse_override,
                warehouse_id=warehouse_id,
                warehouse_code=warehouse_code,
                warehouse_name=warehouse_name,
                default_customer_id=default_customer_id,
                default_customer_code=default_customer_code,
                default_customer_name=default_customer_name,
                default_customer_payment_term_code=default_customer_payment_term_code,
            )
            self._registers[binding.cash_register_id] = binding
            if not is_active:
                self._inactive.add(binding.cash_register_id)
            return binding

    def set_session_status(self, session_id: int, status: str) -> None:
        with self._lock:
            self._sessions[session_id].status = status

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            saved = copy.deepcopy(
                (self._assignments, self._sessions, self._breakdowns)
            )
            try:
                yield
            except BaseException:
                self._assignments, self._sessions, self._breakdowns = saved
                raise

    def _active_by_code(self, code: str) -> RegisterBinding | None:
        wanted = normalize_code(code)
        for register_id, binding in self._registers.items():
            if binding.cash_register_code == wanted and register_id not in self._inactive:
                return binding
        return None

    def find_active_register(self, code: str) -> RegisterBinding | None:
        with self._lock:
            return self._active_by_code(code)

    def find_assignment(self, admin_user_id: int, code: str) -> RegisterBinding | None:
        with self._lock:
            binding = self._active_by_code(code)
            if binding is None:
                return None
            key = (admin_user_id, binding.cash_register_id)
            if key not in self._assignments:
                return None
            return replace(binding, is_default=self._assignments[key])

    def list_assignments_for_admin(self, admin_user_id: int) -> list[RegisterBinding]:
        with self._lock:
            items = [
                replace(self._registers[register_id], is_default=is_default)
                for (admin_id, register_id), is_default in self._assignments.items()
                if admin_id == admin_user_id and register_id not in self._inactive
            ]
        return sorted(items, key=lambda item: (not item.is_default, item.cash_register_code))

    def list_assignment_groups(self, admin_user_ids: list[int] | None = None) -> list[AssignmentGroup]:
        with self._lock:
            admin_ids = sorted({admin_id for admin_id, _ in self._assignments})
        if admin_user_ids:
            admin_ids = [admin_id for admin_id in admin_ids if admin_id in admin_user_ids]
        groups = []
        for admin_id in admin_ids:
            items = sorted(self.list_assignments_for_admin(admin_id), key=lambda item: item.cash_register_code)
            if items:
                groups.append(AssignmentGroup(admin_user_id=admin_id, assignments=items))
        return groups

    def _clear_defaults(self, admin_user_id: int) -> None:
        for key in self._assignments:
            if key[0] == admin_user_id:
                self._assignments[key] = False

    def save_assignment(self, admin_user_id: int, cash_register_id: int, *, is_default: bool) -> None:
        with self._lock:
            if is_default:
                self._clear_defaults(admin_user_id)
            self._assignments[(admin_user_id, cash_register_id)] = is_default

    def delete_assignment(self, admin_user_id: int, cash_register_id: int) -> bool:
        with self._lock:
            return self._assignments.pop((admin_user_id, cash_register_id), None) is not None

    def set_default_assignment(self, admin_user_id: int, cash_register_id: int) -> bool:
        with self._lock:
            key = (admin_user_id, cash_register_id)
            if key not in self._assignments:
                return False
            self._clear_defaults(admin_user_id)
            self._assignments[key] = True
            return True

    def get_session(self, session_id: int, *, for_update: bool = False) -> SessionRecord | None:
        with self._lock:
            record = self._sessions.get(session_id)
            return record.copy() if record else None

    def _find_open(self, predicate) -> SessionRecord | None:
        with self._lock:
            for record in self._sessions.values():
                if record.status == SESSION_OPEN and predicate(record):
                    return record.copy()
        return None

    def get_open_session_for_admin(self, admin_user_id: int, *, for_update: bool = False) -> SessionRecord | None:
        return self._find_open(lambda record: record.admin_user_id == admin_user_id)

    def get_open_session_for_register(
        self, cash_register_id: int, *, for_update: bool = False
    ) -> SessionRecord | None:
        return self._find_open(lambda record: record.cash_register.cash_register_id == cash_register_id)

    def list_sessions_for_admin(self, admin_user_id: int, *, limit: int) -> list[SessionRecord]:
        with self._lock:
            rows = [record.copy() for record in self._sessions.values() if record.admin_user_id == admin_user_id]
        rows.sort(key=lambda record: (record.opening_at, record.id), reverse=True)
        return rows[:limit]

    def list_open_sessions(self) -> list[SessionRecord]:
        with self._lock:
            rows = [record.copy() for record in self._sessions.values() if record.status == SESSION_OPEN]
        rows.sort(key=lambda record: (record.opening_at, record.id))
        return rows

    def insert_session(self, record: SessionRecord) -> SessionRecord:
        with self._lock:
            if record.status == SESSION_OPEN:
                register_id = record.cash_register.cash_register_id
                if self._find_open(
                    lambda row: row.admin_user_id == record.admin_user_id
                    or row.cash_register.cash_register_id == register_id
                ):
                    raise OpenSessionConflict("open session already exists")
            stored = replace(record, id=next(self._ids))
            self._sessions[stored.id] = stored
            return stored.copy()

    def mark_closed(
        self,
        session_id: int,
        *,
        closing_amount,
        closing_at: datetime,
        closing_notes: str | None,
        closing_user_id: int,
        closing_denominations: list[Denomination] | None,
        totals_snapshot: dict,
    ) -> bool:
        with self._lock:
            record = self._sessions.get(session_id)
            if record is None or record.status != SESSION_OPEN:
                return False
            record.status = SESSION_CLOSED
            record.closing_amount = closing_amount
            record.closing_at = closing_at
            record.closing_notes = closing_notes
            record.closing_user_id = closing_user_id
            record.closing_denominations = closing_denominations
            record.totals_snapshot = totals_snapshot
            return True

    def upsert_payment_breakdown(self, session_id: int, rows: list[PaymentBreakdown]) -> None:
        with self._lock:
            stored = self._breakdowns.setdefault(session_id, {})
            for row in rows:
                stored[row.method] = row

    def list_payment_breakdown(self, session_id: int) -> list[PaymentBreakdown]:
        with self._lock:
            stored = self._breakdowns.get(session_id, {})
            return [stored[method] for method in sorted(stored)]


class InMemoryInvoiceLedger(InvoiceLedger):
    def __init__(self):
        self._lock = threading.Lock()
        self._invoices: dict[int, list[list[tuple[str, Decimal]]]] = {}

    def record_invoice(self, session_id: int, payments: list[tuple[str, object]]) -> None:
        """Posts one invoice with its payment lines as ``(method, amount)`` pairs."""
        with self._lock:
            self._invoices.setdefault(session_id, []).append(
                [(method, to_decimal(amount)) for method, amount in payments]
            )

    def expected_payments(self, session_id: int) -> LedgerTotals:
        with self._lock:
            invoices = list(self._invoices.get(session_id, []))
        grouped: dict[str, list] = {}
        for lines in invoices:
            for method, amount in lines:
                bucket = grouped.setdefault(normalize_code(method), [Decimal("0"), 0])
                bucket[0] += amount
                bucket[1] += 1
        return LedgerTotals(
            payments=[
                ExpectedPayment(method=method, amount=total, tx_count=count)
                for method, (total, count) in sorted(grouped.items())
            ],
            total_invoices=len(invoices),
        )
