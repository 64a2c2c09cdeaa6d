from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from app.till.db.models import (
    SESSION_CLOSED,
    SESSION_OPEN,
    CashRegister,
    CashRegisterAssignment,
    CashRegisterSession,
    CashRegisterSessionPayment,
)
from app.till.schemas.cash_registers import PaymentBreakdown
from app.till.services.records import (
    AssignmentGroup,
    Denomination,
    RegisterBinding,
    SessionRecord,
    denominations_from_json,
    denominations_to_json,
    normalize_code,
)


class OpenSessionConflict(Exception):
    """Raised when storage rejects a second OPEN session for an admin or register."""


class CashRegisterRepository(ABC):
    """Storage for registers, assignments, sessions and closure breakdowns.

    Mutating calls must run inside ``transaction()``; everything written in one
    block commits together or not at all.
    """

    @abstractmethod
    def transaction(self): ...

    @abstractmethod
    def find_active_register(self, code: str) -> RegisterBinding | None: ...

    @abstractmethod
    def find_assignment(self, admin_user_id: int, code: str) -> RegisterBinding | None: ...

    @abstractmethod
    def list_assignments_for_admin(self, admin_user_id: int) -> list[RegisterBinding]: ...

    @abstractmethod
    def list_assignment_groups(self, admin_user_ids: list[int] | None = None) -> list[AssignmentGroup]: ...

    @abstractmethod
    def save_assignment(self, admin_user_id: int, cash_register_id: int, *, is_default: bool) -> None: ...

    @abstractmethod
    def delete_assignment(self, admin_user_id: int, cash_register_id: int) -> bool: ...

    @abstractmethod
    def set_default_assignment(self, admin_user_id: int, cash_register_id: int) -> bool: ...

    @abstractmethod
    def get_session(self, session_id: int, *, for_update: bool = False) -> SessionRecord | None: ...

    @abstractmethod
    def get_open_session_for_admin(self, admin_user_id: int, *, for_update: bool = False) -> SessionRecord | None: ...

    @abstractmethod
    def get_open_session_for_register(
        self, cash_register_id: int, *, for_update: bool = False
    ) -> SessionRecord | None: ...

    @abstractmethod
    def list_sessions_for_admin(self, admin_user_id: int, *, limit: int) -> list[SessionRecord]: ...

    @abstractmethod
    def list_open_sessions(self) -> list[SessionRecord]: ...

    @abstractmethod
    def insert_session(self, record: SessionRecord) -> SessionRecord: ...

    @abstractmethod
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
        """Flip OPEN to CLOSED; returns False when the session was no longer OPEN."""

    @abstractmethod
    def upsert_payment_breakdown(self, session_id: int, rows: list[PaymentBreakdown]) -> None: ...

    @abstractmethod
    def list_payment_breakdown(self, session_id: int) -> list[PaymentBreakdown]: ...


def _binding_from_register(register: CashRegister, *, is_default: bool = False) -> RegisterBinding:
    customer = register.default_customer
    return RegisterBinding(
        cash_register_id=register.id,
        cash_register_code=register.code,
        cash_register_name=register.name,
        allow_manual_warehouse_override=register.allow_manual_warehouse_override,
        warehouse_id=register.warehouse.id,
        warehouse_code=register.warehouse.code,
        warehouse_name=register.warehouse.name,
        is_default=is_default,
        default_customer_id=customer.id if customer else None,
        default_customer_code=customer.code if customer else None,
        default_customer_name=customer.name if customer else None,
        default_customer_payment_term_code=customer.payment_term_code if customer else None,
    )


def _session_to_record(row: CashRegisterSession) -> SessionRecord:
    return SessionRecord(
        id=row.id,
        status=row.status,
        admin_user_id=row.admin_user_id,
        opened_by_admin_user_id=row.opened_by_admin_user_id,
        cash_register=RegisterBinding.from_dict(row.register_snapshot),
        opening_amount=row.opening_amount,
        opening_at=row.opening_at,
        opening_notes=row.opening_notes,
        opening_denominations=denominations_from_json(row.opening_denominations),
        closing_amount=row.closing_amount,
        closing_at=row.closing_at,
        closing_notes=row.closing_notes,
        closing_user_id=row.closing_user_id,
        closing_denominations=denominations_from_json(row.closing_denominations),
        totals_snapshot=row.totals_snapshot,
    )


class SqlCashRegisterRepository(CashRegisterRepository):
    def __init__(self, db):
        self.db = db

    @contextmanager
    def transaction(self) -> Iterator[None]:
        try:
            yield
            self.db.commit()
        except BaseException:
            self.db.rollback()
            raise

    def _register_query(self):
        return select(CashRegister).options(
            selectinload(CashRegister.warehouse),
            selectinload(CashRegister.default_customer),
        )

    def _active_register_filter(self, stmt):
        return stmt.where(CashRegister.is_active.is_(True))

    def find_active_register(self, code: str) -> RegisterBinding | None:
        stmt = self._active_register_filter(self._register_query()).where(
            func.upper(CashRegister.code) == normalize_code(code)
        )
        register = self.db.execute(stmt).scalars().first()
        if register is None or not register.warehouse.is_active:
            return None
        return _binding_from_register(register)

    def _assignment_query(self):
        return (
            select(CashRegisterAssignment)
            .join(CashRegister, CashRegister.id == CashRegisterAssignment.cash_register_id)
            .options(
                selectinload(CashRegisterAssignment.cash_register).selectinload(CashRegister.warehouse),
                selectinload(CashRegisterAssignment.cash_register).selectinload(CashRegister.default_customer),
            )
            .where(CashRegister.is_active.is_(True))
        )

    def find_assignment(self, admin_user_id: int, code: str) -> RegisterBinding | None:
        stmt = self._assignment_query().where(
            CashRegisterAssignment.admin_user_id == admin_user_id,
            func.upper(CashRegister.code) == normalize_code(code),
        )
        assignment = self.db.execute(stmt).scalars().first()
        if assignment is None or not assignment.cash_register.warehouse.is_active:
            return None
        return _binding_from_register(assignment.cash_register, is_default=assignment.is_default)

    def list_assignments_for_admin(self, admin_user_id: int) -> list[RegisterBinding]:
        stmt = (
            self._assignment_query()
            .where(CashRegisterAssignment.admin_user_id == admin_user_id)
            .order_by(CashRegisterAssignment.is_default.desc(), CashRegister.code.asc())
        )
        rows = self.db.execute(stmt).scalars().all()
        return [
            _binding_from_register(row.cash_register, is_default=row.is_default)
            for row in rows
            if row.cash_register.warehouse.is_active
        ]

    def list_assignment_groups(self, admin_user_ids: list[int] | None = None) -> list[AssignmentGroup]:
        stmt = self._assignment_query().order_by(CashRegisterAssignment.admin_user_id.asc(), CashRegister.code.asc())
        if admin_user_ids:
            stmt = stmt.where(CashRegisterAssignment.admin_user_id.in_(admin_user_ids))
        grouped: dict[int, list[RegisterBinding]] = {}
        for row in self.db.execute(stmt).scalars().all():
            grouped.setdefault(row.admin_user_id, []).append(
                _binding_from_register(row.cash_register, is_default=row.is_default)
            )
        return [AssignmentGroup(admin_user_id=admin_id, assignments=items) for admin_id, items in grouped.items()]

    def _get_assignment_row(self, admin_user_id: int, cash_register_id: int) -> CashRegisterAssignment | None:
        stmt = select(CashRegisterAssignment).where(
            CashRegisterAssignment.admin_user_id == admin_user_id,
            CashRegisterAssignment.cash_register_id == cash_register_id,
        )
        return self.db.execute(stmt).scalars().first()

    def _clear_defaults(self, admin_user_id: int) -> None:
        self.db.execute(
            update(CashRegisterAssignment)
            .where(CashRegisterAssignment.admin_user_id == admin_user_id)
            .values(is_default=False)
        )

    def save_assignment(self, admin_user_id: int, cash_register_id: int, *, is_default: bool) -> None:
        if is_default:
            self._clear_defaults(admin_user_id)
        row = self._get_assignment_row(admin_user_id, cash_register_id)
        if row is None:
            row = CashRegisterAssignment(admin_user_id=admin_user_id, cash_register_id=cash_register_id)
        row.is_default = is_default
        self.db.add(row)
        self.db.flush()

    def delete_assignment(self, admin_user_id: int, cash_register_id: int) -> bool:
        row = self._get_assignment_row(admin_user_id, cash_register_id)
        if row is None:
            return False
        self.db.delete(row)
        self.db.flush()
        return True

    def set_default_assignment(self, admin_user_id: int, cash_register_id: int) -> bool:
        row = self._get_assignment_row(admin_user_id, cash_register_id)
        if row is None:
            return False
        self._clear_defaults(admin_user_id)
        row.is_default = True
        self.db.flush()
        return True

    def _select_session(self, *criteria, for_update: bool):
        stmt = select(CashRegisterSession).where(*criteria)
        if for_update:
            stmt = stmt.with_for_update()
        row = self.db.execute(stmt.order_by(CashRegisterSession.opening_at.desc()).limit(1)).scalars().first()
        return _session_to_record(row) if row is not None else None

    def get_session(self, session_id: int, *, for_update: bool = False) -> SessionRecord | None:
        return self._select_session(CashRegisterSession.id == session_id, for_update=for_update)

    def get_open_session_for_admin(self, admin_user_id: int, *, for_update: bool = False) -> SessionRecord | None:
        return self._select_session(
            CashRegisterSession.admin_user_id == admin_user_id,
            CashRegisterSession.status == SESSION_OPEN,
            for_update=for_update,
        )

    def get_open_session_for_register(
        self, cash_register_id: int, *, for_update: bool = False
    ) -> SessionRecord | None:
        return self._select_session(
            CashRegisterSession.cash_register_id == cash_register_id,
            CashRegisterSession.status == SESSION_OPEN,
            for_update=for_update,
        )

    def list_sessions_for_admin(self, admin_user_id: int, *, limit: int) -> list[SessionRecord]:
        stmt = (
            select(CashRegisterSession)
            .where(CashRegisterSession.admin_user_id == admin_user_id)
            .order_by(CashRegisterSession.opening_at.desc(), CashRegisterSession.id.desc())
            .limit(limit)
        )
        return [_session_to_record(row) for row in self.db.execute(stmt).scalars().all()]

    def list_open_sessions(self) -> list[SessionRecord]:
        stmt = (
            select(CashRegisterSession)
            .where(CashRegisterSession.status == SESSION_OPEN)
            .order_by(CashRegisterSession.opening_at.asc(), CashRegisterSession.id.asc())
        )
        return [_session_to_record(row) for row in self.db.execute(stmt).scalars().all()]

    def insert_session(self, record: SessionRecord) -> SessionRecord:
        row = CashRegisterSession(
            status=record.status,
            admin_user_id=record.admin_user_id,
            opened_by_admin_user_id=record.opened_by_admin_user_id,
            cash_register_id=record.cash_register.cash_register_id,
            register_snapshot=record.cash_register.to_dict(),
            opening_amount=record.opening_amount,
            opening_at=record.opening_at,
            opening_notes=record.opening_notes,
            opening_denominations=denominations_to_json(record.opening_denominations),
        )
        self.db.add(row)
        try:
            self.db.flush()
        except IntegrityError as exc:
            raise OpenSessionConflict(str(exc.orig)) from exc
        return _session_to_record(row)

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
        result = self.db.execute(
            update(CashRegisterSession)
            .where(CashRegisterSession.id == session_id, CashRegisterSession.status == SESSION_OPEN)
            .values(
                status=SESSION_CLOSED,
                closing_amount=closing_amount,
                closing_at=closing_at,
                closing_notes=closing_notes,
                closing_user_id=closing_user_id,
                closing_denominations=denominations_to_json(closing_denominations),
                totals_snapshot=totals_snapshot,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def upsert_payment_breakdown(self, session_id: int, rows: list[PaymentBreakdown]) -> None:
        existing = {
            row.payment_method: row
            for row in self.db.execute(
                select(CashRegisterSessionPayment).where(CashRegisterSessionPayment.session_id == session_id)
            )
            .scalars()
            .all()
        }
        now = datetime.utcnow()
        for item in rows:
            row = existing.get(item.method)
            if row is None:
                row = CashRegisterSessionPayment(session_id=session_id, payment_method=item.method, created_at=now)
            row.expected_amount = item.expected_amount
            row.reported_amount = item.reported_amount
            row.difference_amount = item.difference_amount
            row.transaction_count = item.transaction_count
            row.updated_at = now
            self.db.add(row)
        self.db.flush()

    def list_payment_breakdown(self, session_id: int) -> list[PaymentBreakdown]:
        stmt = (
            select(CashRegisterSessionPayment)
            .where(CashRegisterSessionPayment.session_id == session_id)
            .order_by(CashRegisterSessionPayment.payment_method.asc())
        )
        return [
            PaymentBreakdown(
                method=row.payment_method,
                expected_amount=row.expected_amount,
                reported_amount=row.reported_amount,
                difference_amount=row.difference_amount,
                transaction_count=row.transaction_count,
            )
            for row in self.db.execute(stmt).scalars().all()
        ]
