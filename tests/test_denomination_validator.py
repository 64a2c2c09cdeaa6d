from decimal import Decimal

import pytest

from app.till.core.error_catalog import AppError, ErrorCatalog
from app.till.services.denominations import DenominationValidator
from app.till.services.records import Denomination


def _count(*pairs, currency="MXN"):
    return [Denomination(value=Decimal(value), qty=qty, currency=currency) for value, qty in pairs]


@pytest.fixture()
def validator():
    return DenominationValidator(local_currency="mxn")


def test_exact_count_passes(validator):
    validator.validate(_count(("100", 1), ("20", 1), ("5", 1)), Decimal("125.00"))


def test_missing_coin_fails_amount_mismatch(validator):
    with pytest.raises(AppError) as excinfo:
        validator.validate(_count(("100", 1), ("20", 1), ("5", 0)), Decimal("125.00"))

    assert excinfo.value.error == ErrorCatalog.AMOUNT_MISMATCH
    assert excinfo.value.details["counted_amount"] == Decimal("120.00")


def test_counted_total_is_rounded_to_cents_before_comparing(validator):
    validator.validate(_count(("0.333", 3)), Decimal("1.00"))


def test_positive_target_requires_denominations(validator):
    with pytest.raises(AppError) as excinfo:
        validator.validate([], Decimal("10"), field="closing_denominations")

    assert excinfo.value.error == ErrorCatalog.DENOMINATIONS_REQUIRED
    assert excinfo.value.details["field"] == "closing_denominations"


def test_foreign_or_mixed_currency_is_rejected(validator):
    mixed = _count(("100", 1)) + _count(("5", 1), currency="USD")
    with pytest.raises(AppError) as excinfo:
        validator.validate(mixed, Decimal("105"))

    assert excinfo.value.error == ErrorCatalog.CURRENCY_MISMATCH
    assert excinfo.value.details["currencies"] == ["MXN", "USD"]


def test_currency_comparison_ignores_case(validator):
    validator.validate(_count(("50", 2), currency="mxn"), Decimal("100"))


def test_zero_target_skips_every_check(validator):
    validator.validate(None, Decimal("0"))
    validator.validate(_count(("1", 1), currency="EUR"), Decimal("0"))


def test_out_of_range_entries_are_validation_errors(validator):
    with pytest.raises(AppError) as excinfo:
        validator.validate(_count(("1e30", 1), ("10", 1)), Decimal("10.00"), field="closing_denominations")

    assert excinfo.value.error == ErrorCatalog.VALIDATION_ERROR
    assert excinfo.value.details["indexes"] == [0]

    with pytest.raises(AppError) as excinfo:
        validator.validate(_count(("10", 10**12)), Decimal("10.00"))
    assert excinfo.value.error == ErrorCatalog.VALIDATION_ERROR
