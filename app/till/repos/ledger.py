from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal

from sqlalchemy import func, select

from app.till.db.models import Invoice, InvoicePayment
from app.till.services.records import ExpectedPayment, LedgerTotals, normalize_code


class InvoiceLedger(ABC):
    """Read side of the invoicing pipeline, scoped to one cash register session."""

    @abstractmethod
    def expected_payments(self, session_id: int) -> LedgerTotals: ...


class SqlInvoiceLedger(InvoiceLedger):
    def __init__(self, db):
        self.db = db

    def expected_payments(self, session_id: int) -> LedgerTotals:
        session_invoices = select(Invoice.id).where(Invoice.cash_register_session_id == session_id)
        rows = self.db.execute(
            select(
                InvoicePayment.payment_method,
                func.count(InvoicePayment.id),
                func.coalesce(func.sum(InvoicePayment.amount), 0),
            )
            .where(InvoicePayment.invoice_id.in_(session_invoices))
            .group_by(InvoicePayment.payment_method)
        ).all()
        payments = [
            ExpectedPayment(method=normalize_code(method), amount=Decimal(str(total)), tx_count=int(count))
            for method, count, total in rows
        ]
        total_invoices = self.db.execute(
            select(func.count(Invoice.id)).where(Invoice.cash_register_session_id == session_id)
        ).scalar_one()
        return LedgerTotals(payments=payments, total_invoices=int(total_invoices or 0))
