from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
MAX_AMOUNT = Decimal("999999999999.99")
MAX_DENOMINATION_QTY = 1_000_000


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round2(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def normalize_code(value: str) -> str:
    return value.strip().upper()


def clean_notes(value: str | None, max_length: int) -> str | None:
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed[:max_length] if trimmed else None


@dataclass(frozen=True)
class Denomination:
    value: Decimal
    qty: int
    currency: str

    def to_dict(self) -> dict:
        return {"value": format(self.value, "f"), "qty": self.qty, "currency": self.currency}

    @classmethod
    def from_dict(cls, data: dict) -> "Denomination":
        return cls(value=to_decimal(data["value"]), qty=int(data["qty"]), currency=str(data["currency"]))


def denominations_to_json(items: list[Denomination] | None) -> list[dict] | None:
    if not items:
        return None
    return [item.to_dict() for item in items]


def denominations_from_json(items: list[dict] | None) -> list[Denomination] | None:
    if not items:
        return None
    return [Denomination.from_dict(item) for item in items]


@dataclass(frozen=True)
class RegisterBinding:
    """Register, warehouse and default-customer binding as seen at a point in time."""

    cash_register_id: int
    cash_register_code: str
    cash_register_name: str
    allow_manual_warehouse_override: bool
    warehouse_id: int
    warehouse_code: str
    warehouse_name: str
    is_default: bool = False
    default_customer_id: int | None = None
    default_customer_code: str | None = None
    default_customer_name: str | None = None
    default_customer_payment_term_code: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "RegisterBinding":
        return cls(**data)


@dataclass(frozen=True)
class ExpectedPayment:
    method: str
    amount: Decimal
    tx_count: int


@dataclass(frozen=True)
class ReportedPayment:
    method: str
    amount: Decimal
    tx_count: int = 0


@dataclass(frozen=True)
class LedgerTotals:
    payments: list[ExpectedPayment]
    total_invoices: int


@dataclass
class SessionRecord:
    id: int | None
    status: str
    admin_user_id: int
    cash_register: RegisterBinding
    opening_amount: Decimal
    opening_at: datetime
    opening_notes: str | None = None
    opening_denominations: list[Denomination] | None = None
    opened_by_admin_user_id: int | None = None
    closing_amount: Decimal | None = None
    closing_at: datetime | None = None
    closing_notes: str | None = None
    closing_user_id: int | None = None
    closing_denominations: list[Denomination] | None = None
    totals_snapshot: dict | None = None

    def copy(self) -> "SessionRecord":
        return replace(self)


@dataclass(frozen=True)
class AssignmentGroup:
    admin_user_id: int
    assignments: list[RegisterBinding] = field(default_factory=list)

    @property
    def default_cash_register_id(self) -> int | None:
        for assignment in self.assignments:
            if assignment.is_default:
                return assignment.cash_register_id
        return None
