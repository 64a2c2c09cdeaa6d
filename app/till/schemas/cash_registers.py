from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.till.services.records import Denomination, RegisterBinding, ReportedPayment, SessionRecord

MoneyAmount = Annotated[Decimal, Field(ge=0, max_digits=14, decimal_places=2)]
Count = Annotated[int, Field(ge=0, le=1_000_000)]


class DenominationPayload(BaseModel):
    value: MoneyAmount
    qty: Count
    currency: str = Field(min_length=1, max_length=10)

    def to_record(self) -> Denomination:
        return Denomination(value=self.value, qty=self.qty, currency=self.currency.strip().upper())


def _denomination_records(items: list[DenominationPayload] | None) -> list[Denomination] | None:
    if items is None:
        return None
    return [item.to_record() for item in items]


class OpenSessionRequest(BaseModel):
    cash_register_code: str = Field(min_length=1, max_length=30)
    opening_amount: MoneyAmount
    opening_notes: str | None = Field(default=None, max_length=400)
    operator_admin_user_id: int | None = Field(default=None, gt=0)
    opening_denominations: list[DenominationPayload] | None = None

    @field_validator("cash_register_code")
    @classmethod
    def _strip_code(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("cash_register_code is required")
        return value

    def denominations(self) -> list[Denomination] | None:
        return _denomination_records(self.opening_denominations)


class ReportedPaymentPayload(BaseModel):
    method: str = Field(min_length=1, max_length=40)
    reported_amount: MoneyAmount
    transaction_count: Count = 0

    @field_validator("method")
    @classmethod
    def _strip_method(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("method is required")
        return value

    def to_record(self) -> ReportedPayment:
        return ReportedPayment(method=self.method, amount=self.reported_amount, tx_count=self.transaction_count)


class CloseSessionRequest(BaseModel):
    session_id: int | None = Field(default=None, gt=0)
    closing_amount: MoneyAmount | None = None
    payments: list[ReportedPaymentPayload] = Field(min_length=1)
    closing_notes: str | None = Field(default=None, max_length=400)
    closing_denominations: list[DenominationPayload] | None = None

    def reported_payments(self) -> list[ReportedPayment]:
        return [payment.to_record() for payment in self.payments]

    def denominations(self) -> list[Denomination] | None:
        return _denomination_records(self.closing_denominations)


class CashRegisterBindingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

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

    @classmethod
    def from_binding(cls, binding: RegisterBinding) -> "CashRegisterBindingResponse":
        return cls.model_validate(binding, from_attributes=True)


class DenominationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    value: Decimal
    qty: int
    currency: str


class SessionResponse(BaseModel):
    id: int
    status: str
    admin_user_id: int
    opened_by_admin_user_id: int | None
    cash_register: CashRegisterBindingResponse
    opening_amount: Decimal
    opening_at: datetime
    opening_notes: str | None
    opening_denominations: list[DenominationResponse] | None
    closing_amount: Decimal | None
    closing_at: datetime | None
    closing_notes: str | None
    closing_user_id: int | None
    closing_denominations: list[DenominationResponse] | None

    @classmethod
    def from_record(cls, record: SessionRecord) -> "SessionResponse":
        return cls(
            id=record.id,
            status=record.status,
            admin_user_id=record.admin_user_id,
            opened_by_admin_user_id=record.opened_by_admin_user_id,
            cash_register=CashRegisterBindingResponse.from_binding(record.cash_register),
            opening_amount=record.opening_amount,
            opening_at=record.opening_at,
            opening_notes=record.opening_notes,
            opening_denominations=[
                DenominationResponse.model_validate(item, from_attributes=True)
                for item in record.opening_denominations
            ]
            if record.opening_denominations
            else None,
            closing_amount=record.closing_amount,
            closing_at=record.closing_at,
            closing_notes=record.closing_notes,
            closing_user_id=record.closing_user_id,
            closing_denominations=[
                DenominationResponse.model_validate(item, from_attributes=True)
                for item in record.closing_denominations
            ]
            if record.closing_denominations
            else None,
        )


class PaymentBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    method: str
    expected_amount: Decimal
    reported_amount: Decimal
    difference_amount: Decimal
    transaction_count: int


class ClosureSummary(BaseModel):
    """Closure totals; frozen into the session row when it is closed."""

    model_config = ConfigDict(frozen=True)

    session_id: int
    cash_register: CashRegisterBindingResponse
    opened_by_admin_id: int
    opening_amount: Decimal
    opening_at: datetime
    closing_by_admin_id: int
    closing_amount: Decimal
    closing_at: datetime
    closing_notes: str | None
    expected_total_amount: Decimal
    reported_total_amount: Decimal
    difference_total_amount: Decimal
    total_invoices: int
    payments: list[PaymentBreakdown]

    def to_snapshot(self) -> dict:
        return self.model_dump(mode="json")

    @classmethod
    def from_snapshot(cls, snapshot: dict) -> "ClosureSummary":
        return cls.model_validate(snapshot)


class OpenSessionResponse(BaseModel):
    session: SessionResponse
    report_url: str


class CloseSessionResponse(BaseModel):
    summary: ClosureSummary
    report_url: str
    already_closed: bool = False


class ActiveSessionResponse(BaseModel):
    active_session: SessionResponse | None
    cash_registers: list[CashRegisterBindingResponse]
    default_cash_register_id: int | None


class SessionListResponse(BaseModel):
    rows: list[SessionResponse]
    total: int


class ClosurePreviewResponse(BaseModel):
    status: str
    summary: ClosureSummary


class ClosureReportResponse(BaseModel):
    report_type: Literal["closure"] = "closure"
    status: str
    summary: ClosureSummary
    opening_denominations: list[DenominationResponse] | None
    closing_denominations: list[DenominationResponse] | None
    requested_by_admin_id: int
    generated_at: datetime


class OpeningReportResponse(BaseModel):
    report_type: Literal["opening"] = "opening"
    session: SessionResponse
    requested_by_admin_id: int
    generated_at: datetime


class AssignmentActionRequest(BaseModel):
    admin_user_id: int = Field(gt=0)
    cash_register_code: str = Field(min_length=2, max_length=30)
    action: Literal["assign", "unassign", "set_default"]
    make_default: bool | None = None


class AssignmentGroupResponse(BaseModel):
    admin_user_id: int
    assignments: list[CashRegisterBindingResponse]
    default_cash_register_id: int | None


class AssignmentListResponse(BaseModel):
    items: list[AssignmentGroupResponse]


class AssignmentActionResponse(BaseModel):
    success: bool = True
    admin_user_id: int
    action: str
