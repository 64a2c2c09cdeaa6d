from app.till.core.error_catalog import ErrorCatalog
from tests.cash_helpers import ADMINISTRATOR, auth_headers, seed_catalog

URL = "/till/cash-registers/assignments"


def _action(client, payload, admin_user_id=9):
    return client.post(URL, headers=auth_headers(admin_user_id, roles=ADMINISTRATOR), json=payload)


def test_assign_set_default_and_unassign(client, db_session):
    seed_catalog(db_session, admin_user_ids=())

    assigned = _action(client, {"admin_user_id": 4, "cash_register_code": "caja-02", "action": "assign"})
    assert assigned.status_code == 200, assigned.text
    assert assigned.json() == {"success": True, "admin_user_id": 4, "action": "assign"}

    _action(
        client,
        {"admin_user_id": 4, "cash_register_code": "CAJA-01", "action": "assign", "make_default": True},
    )
    listing = client.get(URL, params={"admin_user_id": 4}, headers=auth_headers(9, roles=ADMINISTRATOR))
    assert listing.status_code == 200
    group = listing.json()["items"][0]
    codes = {item["cash_register_code"]: item for item in group["assignments"]}
    assert set(codes) == {"CAJA-01", "CAJA-02"}
    assert group["default_cash_register_id"] == codes["CAJA-01"]["cash_register_id"]

    switched = _action(client, {"admin_user_id": 4, "cash_register_code": "CAJA-02", "action": "set_default"})
    assert switched.status_code == 200
    active = client.get("/till/cash-registers/sessions/active", headers=auth_headers(4))
    defaults = [item for item in active.json()["cash_registers"] if item["is_default"]]
    assert [item["cash_register_code"] for item in defaults] == ["CAJA-02"]

    removed = _action(client, {"admin_user_id": 4, "cash_register_code": "CAJA-02", "action": "unassign"})
    assert removed.status_code == 200
    again = _action(client, {"admin_user_id": 4, "cash_register_code": "CAJA-02", "action": "unassign"})
    assert again.status_code == 403
    assert again.json()["code"] == ErrorCatalog.ASSIGNMENT_NOT_FOUND.code


def test_unknown_register_and_non_administrators(client, db_session):
    seed_catalog(db_session, admin_user_ids=(1,))

    unknown = _action(client, {"admin_user_id": 1, "cash_register_code": "CAJA-77", "action": "assign"})
    assert unknown.status_code == 404
    assert unknown.json()["code"] == ErrorCatalog.CASH_REGISTER_NOT_FOUND.code

    cashier = client.post(
        URL,
        headers=auth_headers(1),
        json={"admin_user_id": 1, "cash_register_code": "CAJA-02", "action": "set_default"},
    )
    assert cashier.status_code == 403
    assert cashier.json()["code"] == ErrorCatalog.PERMISSION_DENIED.code

    listing = client.get(URL, headers=auth_headers(1))
    assert listing.status_code == 403
