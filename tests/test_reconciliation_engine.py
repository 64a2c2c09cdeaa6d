from datetime import datetime
from decimal import Decimal

from app.till.services.reconciliation import build_closure_summary, compute_totals, reconcile
from app.till.services.records import ExpectedPayment, RegisterBinding, ReportedPayment, SessionRecord


def _binding():
    return RegisterBinding(
        cash_register_id=1,
        cash_register_code="CAJA-01",
        cash_register_name="Caja principal",
        allow_manual_warehouse_override=False,
        warehouse_id=1,
        warehouse_code="PRINCIPAL",
        warehouse_name="Almacen principal",
    )


def test_split_and_mixed_case_methods_merge_into_one_row():
    rows = reconcile(
        [ExpectedPayment("CASH", Decimal("100"), 3)],
        [ReportedPayment("cash", Decimal("60"), 1), ReportedPayment(" Cash ", Decimal("40"), 1)],
    )

    assert len(rows) == 1
    row = rows[0]
    assert row.method == "CASH"
    assert row.expected_amount == Decimal("100.00")
    assert row.reported_amount == Decimal("100.00")
    assert row.difference_amount == Decimal("0.00")
    assert row.transaction_count == 3


def test_union_of_methods_is_sorted_and_missing_sides_default_to_zero():
    rows = reconcile(
        [ExpectedPayment("transfer", Decimal("30"), 1), ExpectedPayment("CARD", Decimal("20"), 2)],
        [ReportedPayment("CASH", Decimal("15.5"), 4)],
    )

    assert [row.method for row in rows] == ["CARD", "CASH", "TRANSFER"]
    card, cash, transfer = rows
    assert card.reported_amount == Decimal("0.00")
    assert card.difference_amount == Decimal("-20.00")
    assert cash.expected_amount == Decimal("0.00")
    assert cash.difference_amount == Decimal("15.50")
    assert cash.transaction_count == 4
    assert transfer.difference_amount == Decimal("-30.00")


def test_amounts_round_half_up_to_cents_and_totals_match_rows():
    rows = reconcile(
        [ExpectedPayment("CASH", Decimal("10.005"), 1), ExpectedPayment("CARD", Decimal("0.125"), 1)],
        [ReportedPayment("CASH", Decimal("10.004"), 1), ReportedPayment("CARD", Decimal("0.135"), 1)],
    )
    totals = compute_totals(rows)

    for row in rows:
        assert row.expected_amount.as_tuple().exponent == -2
        assert row.difference_amount == row.reported_amount - row.expected_amount
    assert totals.expected_total_amount == sum(row.expected_amount for row in rows)
    assert totals.reported_total_amount == sum(row.reported_amount for row in rows)
    assert totals.difference_total_amount == totals.reported_total_amount - totals.expected_total_amount
    assert rows[1].expected_amount == Decimal("10.01")


def test_empty_inputs_give_empty_breakdown_and_zero_totals():
    rows = reconcile([], [])
    totals = compute_totals(rows)

    assert rows == []
    assert totals.expected_total_amount == Decimal("0.00")
    assert totals.difference_total_amount == Decimal("0.00")


def test_build_closure_summary_snapshot_round_trip_is_identical():
    session = SessionRecord(
        id=7,
        status="OPEN",
        admin_user_id=3,
        cash_register=_binding(),
        opening_amount=Decimal("0"),
        opening_at=datetime(2025, 1, 10, 8, 0, 0),
    )
    summary = build_closure_summary(
        session=session,
        closing_user_id=3,
        closing_amount=Decimal("0"),
        closing_at=datetime(2025, 1, 10, 18, 30, 0),
        closing_notes=None,
        expected_payments=[ExpectedPayment("CARD", Decimal("50"), 1)],
        reported_payments=[ReportedPayment("CARD", Decimal("50"), 0)],
        total_invoices=1,
    )

    assert summary.difference_total_amount == Decimal("0.00")
    assert summary.payments[0].transaction_count == 1
    assert summary.cash_register.cash_register_code == "CAJA-01"
    restored = type(summary).from_snapshot(summary.to_snapshot())
    assert restored == summary
