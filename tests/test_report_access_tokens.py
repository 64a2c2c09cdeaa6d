from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

from jose import jwt

from app.till.services.report_access import REPORT_TOKEN_TYPE, ClosureReportAccessController

SECRET = "report-secret"


def _controller(**kwargs):
    return ClosureReportAccessController(SECRET, algorithm="HS256", **kwargs)


def test_issue_and_verify_round_trip():
    controller = _controller()
    token = controller.issue("closure", 12, 4, "self")

    claims = controller.verify(token)

    assert claims is not None
    assert claims.report_type == "closure"
    assert claims.session_id == 12
    assert claims.requester_id == 4
    assert claims.scope == "self"
    assert claims.expires_at > datetime.now(timezone.utc)


def test_expired_token_verifies_to_none():
    controller = _controller(expires_minutes=5)
    token = controller.issue("opening", 1, 1, "self", now=datetime.now(timezone.utc) - timedelta(minutes=10))

    assert controller.verify(token) is None


def test_wrong_secret_and_tampered_tokens_verify_to_none():
    token = _controller().issue("closure", 3, 2, "admin")
    other = ClosureReportAccessController("another-secret", algorithm="HS256")

    assert other.verify(token) is None
    header, payload, signature = token.split(".")
    tampered = ".".join([header, payload, signature[::-1]])
    assert _controller().verify(tampered) is None
    assert _controller().verify("not-a-token") is None
    assert _controller().verify(None) is None


def test_identity_tokens_are_not_report_tokens():
    identity = jwt.encode({"sub": "1", "roles": ["ADMINISTRADOR"]}, SECRET, algorithm="HS256")
    assert _controller().verify(identity) is None

    forged = jwt.encode(
        {"typ": "other", "rpt": "closure", "sid": 1, "sub": "1", "scope": "admin", "exp": 4102444800},
        SECRET,
        algorithm="HS256",
    )
    assert _controller().verify(forged) is None


def test_token_type_marker_is_embedded():
    token = _controller().issue("closure", 9, 1, "self")
    payload = jwt.get_unverified_claims(token)

    assert payload["typ"] == REPORT_TOKEN_TYPE
    assert payload["sid"] == 9
    assert payload["rpt"] == "closure"


def test_scope_for_owner_and_other_users():
    assert ClosureReportAccessController.scope_for(5, 5) == "self"
    assert ClosureReportAccessController.scope_for(1, 5) == "admin"


def test_report_url_points_at_report_endpoint():
    url = ClosureReportAccessController.report_url("http://testserver/", "closure", 42, "a.b+c")
    parsed = urlparse(url)

    assert parsed.path == "/till/cash-registers/sessions/42/closure-report"
    query = parse_qs(parsed.query)
    assert query["format"] == ["json"]
    assert query["token"] == ["a.b+c"]
    assert "/opening-report" in ClosureReportAccessController.report_url("http://x", "opening", 1, "t")
