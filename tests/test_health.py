def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["trace_id"]


def test_trace_id_is_echoed(client):
    response = client.get("/health", headers={"X-Trace-ID": "till-trace-1"})
    assert response.headers["X-Trace-ID"] == "till-trace-1"
    assert response.json()["trace_id"] == "till-trace-1"


def test_malformed_trace_id_is_replaced(client):
    response = client.get("/health", headers={"X-Trace-ID": "bad trace id with spaces"})
    assert response.headers["X-Trace-ID"] != "bad trace id with spaces"
    assert response.json()["trace_id"] == response.headers["X-Trace-ID"]


def test_error_payload_carries_trace_id(client):
    response = client.get("/till/cash-registers/sessions/active", headers={"X-Trace-ID": "trace-401"})
    assert response.status_code == 401
    payload = response.json()
    assert payload["code"] == "AUTHENTICATION_REQUIRED"
    assert payload["trace_id"] == "trace-401"
