from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

Money = Numeric(14, 2, asdecimal=True)

SESSION_OPEN = "OPEN"
SESSION_CLOSED = "CLOSED"
SESSION_CANCELLED = "CANCELLED"


class Base(DeclarativeBase):
    pass


class Warehouse(Base):
    __tablename__ = "warehouses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(30), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class Customer(Base):
    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(30), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    payment_term_code: Mapped[str | None] = mapped_column(String(30), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class CashRegister(Base):
    __tablename__ = "cash_registers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(30), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    warehouse_id: Mapped[int] = mapped_column(Integer, ForeignKey("warehouses.id"), nullable=False)
    allow_manual_warehouse_override: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    default_customer_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("customers.id"), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    notes: Mapped[str | None] = mapped_column(String(250), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    warehouse = relationship("Warehouse")
    default_customer = relationship("Customer")


class CashRegisterAssignment(Base):
    __tablename__ = "cash_register_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    admin_user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    cash_register_id: Mapped[int] = mapped_column(Integer, ForeignKey("cash_registers.id"), nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    cash_register = relationship("CashRegister")

    __table_args__ = (
        UniqueConstraint("admin_user_id", "cash_register_id", name="uq_cash_register_users_admin_register"),
    )


class CashRegisterSession(Base):
    __tablename__ = "cash_register_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=SESSION_OPEN)
    admin_user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    opened_by_admin_user_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    cash_register_id: Mapped[int] = mapped_column(Integer, ForeignKey("cash_registers.id"), nullable=False, index=True)
    register_snapshot: Mapped[dict] = mapped_column(JSON, nullable=False)
    opening_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    opening_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    opening_notes: Mapped[str | None] = mapped_column(String(400), nullable=True)
    opening_denominations: Mapped[list | None] = mapped_column(JSON, nullable=True)
    closing_amount: Mapped[Decimal | None] = mapped_column(Money, nullable=True)
    closing_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    closing_notes: Mapped[str | None] = mapped_column(String(400), nullable=True)
    closing_user_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    closing_denominations: Mapped[list | None] = mapped_column(JSON, nullable=True)
    totals_snapshot: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    payments = relationship("CashRegisterSessionPayment", back_populates="session", order_by="CashRegisterSessionPayment.payment_method")

    __table_args__ = (
        CheckConstraint("status IN ('OPEN', 'CLOSED', 'CANCELLED')", name="ck_cash_register_sessions_status"),
        Index(
            "uq_cash_register_sessions_open_admin",
            "admin_user_id",
            unique=True,
            sqlite_where=text("status = 'OPEN'"),
            postgresql_where=text("status = 'OPEN'"),
        ),
        Index(
            "uq_cash_register_sessions_open_register",
            "cash_register_id",
            unique=True,
            sqlite_where=text("status = 'OPEN'"),
            postgresql_where=text("status = 'OPEN'"),
        ),
    )


class CashRegisterSessionPayment(Base):
    __tablename__ = "cash_register_session_payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[int] = mapped_column(Integer, ForeignKey("cash_register_sessions.id"), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(40), nullable=False)
    expected_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    reported_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    difference_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    transaction_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    session = relationship("CashRegisterSession", back_populates="payments")

    __table_args__ = (
        UniqueConstraint("session_id", "payment_method", name="uq_cash_register_session_payments_method"),
    )


class Invoice(Base):
    """Posted invoice; written by the invoicing pipeline, read here for expected totals."""

    __tablename__ = "invoices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invoice_number: Mapped[str] = mapped_column(String(40), nullable=False)
    cash_register_session_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("cash_register_sessions.id"), nullable=True, index=True
    )
    total_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="POSTED")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    payments = relationship("InvoicePayment", back_populates="invoice")


class InvoicePayment(Base):
    __tablename__ = "invoice_payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invoice_id: Mapped[int] = mapped_column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    payment_method: Mapped[str] = mapped_column(String(40), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)

    invoice = relationship("Invoice", back_populates="payments")
