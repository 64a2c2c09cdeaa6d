"""Expected vs reported payment reconciliation.

Method codes are normalized (trim + upper) before grouping. Each breakdown
row is rounded to cents, and the totals are summed from the rounded rows and
rounded once more, so ``sum(row.expected_amount) == expected_total_amount``
holds exactly.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from app.till.schemas.cash_registers import CashRegisterBindingResponse, ClosureSummary, PaymentBreakdown
from app.till.services.records import ExpectedPayment, ReportedPayment, SessionRecord, normalize_code, round2

ZERO = Decimal("0")


@dataclass
class _MethodTotals:
    amount: Decimal = ZERO
    tx_count: int = 0


@dataclass(frozen=True)
class ReconciliationTotals:
    expected_total_amount: Decimal
    reported_total_amount: Decimal
    difference_total_amount: Decimal


def _group(entries: Iterable[ExpectedPayment | ReportedPayment]) -> dict[str, _MethodTotals]:
    grouped: dict[str, _MethodTotals] = {}
    for entry in entries:
        key = normalize_code(entry.method)
        bucket = grouped.setdefault(key, _MethodTotals())
        bucket.amount += Decimal(str(entry.amount))
        bucket.tx_count += max(0, int(entry.tx_count or 0))
    return grouped


def reconcile(
    expected: Iterable[ExpectedPayment],
    reported: Iterable[ReportedPayment],
) -> list[PaymentBreakdown]:
    expected_map = _group(expected)
    reported_map = _group(reported)

    breakdown = []
    for method in sorted(set(expected_map) | set(reported_map)):
        expected_side = expected_map.get(method, _MethodTotals())
        reported_side = reported_map.get(method, _MethodTotals())
        expected_amount = round2(expected_side.amount)
        reported_amount = round2(reported_side.amount)
        breakdown.append(
            PaymentBreakdown(
                method=method,
                expected_amount=expected_amount,
                reported_amount=reported_amount,
                difference_amount=round2(reported_amount - expected_amount),
                transaction_count=max(expected_side.tx_count, reported_side.tx_count),
            )
        )
    return breakdown


def compute_totals(breakdown: list[PaymentBreakdown]) -> ReconciliationTotals:
    expected_total = sum((row.expected_amount for row in breakdown), ZERO)
    reported_total = sum((row.reported_amount for row in breakdown), ZERO)
    return ReconciliationTotals(
        expected_total_amount=round2(expected_total),
        reported_total_amount=round2(reported_total),
        difference_total_amount=round2(reported_total - expected_total),
    )


def build_closure_summary(
    *,
    session: SessionRecord,
    closing_user_id: int,
    closing_amount,
    closing_at: datetime,
    closing_notes: str | None,
    expected_payments: Iterable[ExpectedPayment],
    reported_payments: Iterable[ReportedPayment],
    total_invoices: int,
) -> ClosureSummary:
    breakdown = reconcile(expected_payments, reported_payments)
    totals = compute_totals(breakdown)
    return ClosureSummary(
        session_id=session.id,
        cash_register=CashRegisterBindingResponse.from_binding(session.cash_register),
        opened_by_admin_id=session.admin_user_id,
        opening_amount=round2(session.opening_amount),
        opening_at=session.opening_at,
        closing_by_admin_id=closing_user_id,
        closing_amount=round2(closing_amount),
        closing_at=closing_at,
        closing_notes=closing_notes,
        expected_total_amount=totals.expected_total_amount,
        reported_total_amount=totals.reported_total_amount,
        difference_total_amount=totals.difference_total_amount,
        total_invoices=total_invoices,
        payments=breakdown,
    )
