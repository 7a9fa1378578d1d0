import types

from app import auth_utils, security
from app.routes import admin, auth, professionals


def _dummy_req(**extra):
    return types.SimpleNamespace(
        client=types.SimpleNamespace(host="127.0.0.1"),
        cookies={security.CSRF_COOKIE_NAME: "cookie-token"},
        **extra,
    )


def test_csrf_validation_success_and_failure():
    class DummyReq:
        def __init__(self, cookies):
            self.cookies = cookies

    token = security.issue_csrf_token()
    req_ok = DummyReq({security.CSRF_COOKIE_NAME: token})
    assert security.validate_csrf(req_ok, token) is True

    req_bad = DummyReq({security.CSRF_COOKIE_NAME: token})
    assert security.validate_csrf(req_bad, "wrong") is False
    req_missing = DummyReq({})
    assert security.validate_csrf(req_missing, token) is False


def test_issue_csrf_token_reuses_cookie_value():
    assert security.issue_csrf_token("existing") == "existing"
    assert security.issue_csrf_token(None) != security.issue_csrf_token(None)


def test_rate_limit_sliding_window():
    key = "test:rl"
    allowed, remaining = security.allow_request_with_remaining(key, limit=2, window_seconds=60)
    assert allowed is True and remaining == 1
    allowed, remaining = security.allow_request_with_remaining(key, limit=2, window_seconds=60)
    assert allowed is True and remaining == 0
    allowed, remaining = security.allow_request_with_remaining(key, limit=2, window_seconds=60)
    assert allowed is False and remaining == 0


def test_rate_limit_keys_are_independent():
    assert security.allow_request("a:1", limit=1) is True
    assert security.allow_request("a:1", limit=1) is False
    assert security.allow_request("a:2", limit=1) is True


def test_admin_route_forbidden_for_non_admin(monkeypatch):
    monkeypatch.setattr(auth_utils, "get_current_user", lambda req: ({"id": 2, "user_type": "company"}, "tok"))
    monkeypatch.setattr(admin, "list_all_jobs", lambda *a, **k: [])

    resp = admin.jobs_page(types.SimpleNamespace())
    assert resp.status_code == 403


def test_admin_route_redirect_when_not_logged_in(monkeypatch):
    monkeypatch.setattr(auth_utils, "get_current_user", lambda req: (None, None))

    resp = admin.jobs_page(types.SimpleNamespace())
    assert resp.status_code in (302, 303)
    assert resp.headers["location"] == "/login"


def test_admin_subscriptions_forbidden_for_non_admin(monkeypatch):
    monkeypatch.setattr(auth_utils, "get_current_user", lambda req: ({"id": 3, "user_type": "jobseeker"}, "tok"))
    monkeypatch.setattr(admin, "list_user_subscriptions", lambda *a, **k: [])

    resp = admin.subscriptions_page(types.SimpleNamespace())
    assert resp.status_code == 403


def test_admin_ban_requires_csrf(monkeypatch):
    monkeypatch.setattr(auth_utils, "get_current_user", lambda req: ({"id": 1, "user_type": "admin"}, "tok"))

    def fail(*args, **kwargs):
        raise AssertionError("ban_user must not run without a valid token")

    monkeypatch.setattr(admin, "ban_user", fail)
    resp = admin.ban_user_route(_dummy_req(), user_id=5, csrf_token="wrong")
    assert resp.status_code == 403


def test_login_rejects_missing_csrf(monkeypatch):
    monkeypatch.setattr(auth, "allow_request_with_remaining", lambda *a, **k: (True, 9))
    resp = auth.login(_dummy_req(), email="user@example.com", password="bad", csrf_token="wrong")
    assert resp.status_code == 403


def test_password_reset_rejects_missing_csrf(monkeypatch):
    monkeypatch.setattr(auth, "allow_request_with_remaining", lambda *a, **k: (True, 5))
    resp = auth.password_reset_request(_dummy_req(), email="user@example.com", csrf_token="wrong")
    assert resp.status_code == 403


def test_signup_rejects_missing_csrf(monkeypatch):
    monkeypatch.setattr(auth, "allow_request", lambda *a, **k: True)
    resp = auth.signup(
        _dummy_req(),
        email="user@example.com",
        password="Passw0rd1",
        password2="Passw0rd1",
        user_type="jobseeker",
        full_name="",
        company_name="",
        csrf_token="wrong",
    )
    assert resp.status_code == 403


def test_report_user_rejects_missing_csrf(monkeypatch):
    monkeypatch.setattr(professionals, "require_user", lambda req: ({"id": 4, "user_type": "company"}, None))
    monkeypatch.setattr(professionals, "allow_request", lambda *a, **k: True)

    def fail(*args, **kwargs):
        raise AssertionError("report must not be stored without a valid token")

    monkeypatch.setattr(professionals, "report_user", fail)
    resp = professionals.report(_dummy_req(), user_id=9, reason="spam", details="", csrf_token="wrong")
    assert resp.status_code == 403
