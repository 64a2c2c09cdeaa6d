from decimal import Decimal

from app.till.core.config import settings
from app.till.core.error_catalog import AppError, ErrorCatalog
from app.till.services.records import MAX_AMOUNT, MAX_DENOMINATION_QTY, Denomination, round2, to_decimal

AMOUNT_EPSILON = Decimal("0.005")


class DenominationValidator:
    """Checks a bill/coin count against the amount it is supposed to cover."""

    def __init__(self, local_currency: str | None = None):
        self.local_currency = (local_currency or settings.LOCAL_CURRENCY_CODE).strip().upper()

    @staticmethod
    def total(denominations: list[Denomination]) -> Decimal:
        return round2(sum((item.value * item.qty for item in denominations), Decimal("0")))

    def validate(self, denominations: list[Denomination] | None, target_amount, *, field: str = "denominations") -> None:
        target = round2(target_amount)
        if target == 0:
            return
        if not denominations:
            raise AppError(
                ErrorCatalog.DENOMINATIONS_REQUIRED,
                details={"field": field, "target_amount": target},
            )

        currencies = {item.currency.strip().upper() for item in denominations}
        if currencies != {self.local_currency}:
            raise AppError(
                ErrorCatalog.CURRENCY_MISMATCH,
                details={
                    "field": field,
                    "expected_currency": self.local_currency,
                    "currencies": sorted(currencies),
                },
            )

        out_of_range = [
            index
            for index, item in enumerate(denominations)
            if not to_decimal(item.value).is_finite()
            or not 0 <= to_decimal(item.value) <= MAX_AMOUNT
            or not 0 <= item.qty <= MAX_DENOMINATION_QTY
        ]
        if out_of_range:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={"field": field, "message": "denomination value or quantity out of range", "indexes": out_of_range},
            )

        counted = self.total(denominations)
        if abs(counted - to_decimal(target)) > AMOUNT_EPSILON:
            raise AppError(
                ErrorCatalog.AMOUNT_MISMATCH,
                details={"field": field, "target_amount": target, "counted_amount": counted},
            )
