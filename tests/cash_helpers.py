from __future__ import annotations

from decimal import Decimal

from app.till.core.security import create_identity_token
from app.till.db.models import Invoice, InvoicePayment
from app.till.db.seed import run_seed

CASHIER = ["FACTURADOR"]
ADMINISTRATOR = ["ADMINISTRADOR"]


def auth_headers(admin_user_id: int, *, roles=None, permissions=None) -> dict:
    token = create_identity_token(
        admin_user_id,
        username=f"user-{admin_user_id}",
        roles=CASHIER if roles is None else roles,
        permissions=permissions or [],
    )
    return {"Authorization": f"Bearer {token}"}


def seed_catalog(db_session, admin_user_ids=(1,)):
    run_seed(db_session, admin_user_ids=admin_user_ids)


def post_invoice(db_session, session_id: int, payments: list[tuple[str, str]], *, number: str = "F-0001") -> Invoice:
    total = sum((Decimal(amount) for _method, amount in payments), Decimal("0"))
    invoice = Invoice(invoice_number=number, cash_register_session_id=session_id, total_amount=total)
    db_session.add(invoice)
    db_session.flush()
    for method, amount in payments:
        db_session.add(InvoicePayment(invoice_id=invoice.id, payment_method=method, amount=Decimal(amount)))
    db_session.commit()
    return invoice


def open_session(client, admin_user_id: int, *, code: str = "CAJA-01", amount: str = "0", **extra) -> dict:
    response = client.post(
        "/till/cash-registers/sessions/open",
        headers=auth_headers(admin_user_id),
        json={"cash_register_code": code, "opening_amount": amount, **extra},
    )
    assert response.status_code == 201, response.text
    return response.json()
