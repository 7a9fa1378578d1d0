from fastapi.testclient import TestClient

import app.api as api_module
from app.routes import auth


def _stub_login(monkeypatch, user):
    monkeypatch.setattr(auth, "allow_request_with_remaining", lambda *a, **k: (True, 9))
    monkeypatch.setattr(auth, "validate_csrf", lambda req, tok: True)
    monkeypatch.setattr(auth, "get_user_by_email", lambda email: user)
    monkeypatch.setattr(auth, "verify_password", lambda pw, hash_: True)
    monkeypatch.setattr(auth, "create_session", lambda uid: "session-token")


def _login(client):
    return client.post(
        "/login",
        data={"email": "user@example.com", "password": "Passw0rd1", "csrf_token": "ok"},
        follow_redirects=False,
    )


def test_login_logout_flow_redirects_when_user_missing(monkeypatch):
    client = TestClient(api_module.app)
    _stub_login(
        monkeypatch,
        {"id": 1, "password_hash": "x", "email_verified_at": "2025-01-01T00:00:00", "active": True, "banned": False},
    )

    resp = _login(client)
    assert resp.status_code in (302, 303)
    assert resp.headers["location"] == "/dashboard"
    assert "session_id" in resp.cookies

    # Session cookie unknown to the store: protected pages bounce to login
    client.cookies.clear()
    resp2 = client.get("/dashboard", follow_redirects=False)
    assert resp2.status_code in (302, 303)
    assert "/login" in resp2.headers.get("location", "")


def test_deactivated_account_lands_on_account_page(monkeypatch):
    client = TestClient(api_module.app)
    _stub_login(
        monkeypatch,
        {"id": 1, "password_hash": "x", "email_verified_at": "2025-01-01T00:00:00", "active": False, "banned": False},
    )
    assert _login(client).headers["location"] == "/account"


def test_banned_account_cannot_log_in(monkeypatch):
    client = TestClient(api_module.app)
    _stub_login(
        monkeypatch,
        {"id": 1, "password_hash": "x", "email_verified_at": "2025-01-01T00:00:00", "active": True, "banned": True},
    )
    resp = _login(client)
    assert resp.status_code == 200
    assert "suspended" in resp.text
    assert "session_id" not in resp.cookies


def test_unverified_account_is_sent_a_new_link(monkeypatch):
    client = TestClient(api_module.app)
    sent = []
    _stub_login(monkeypatch, {"id": 1, "email": "user@example.com", "password_hash": "x", "email_verified_at": None})
    monkeypatch.setattr(auth, "_send_verification_email", lambda req, user: sent.append(user["id"]))

    resp = _login(client)
    assert resp.status_code == 200
    assert "not verified" in resp.text
    assert sent == [1]


def test_wrong_password_gives_generic_message(monkeypatch):
    client = TestClient(api_module.app)
    _stub_login(monkeypatch, {"id": 1, "password_hash": "x"})
    monkeypatch.setattr(auth, "verify_password", lambda pw, hash_: False)
    assert "Incorrect email or password." in _login(client).text


def test_signup_creates_company_with_profile(monkeypatch):
    client = TestClient(api_module.app)
    created, profiles = [], []
    monkeypatch.setattr(auth, "validate_csrf", lambda req, tok: True)
    monkeypatch.setattr(auth, "get_user_by_email", lambda email: None)

    def fake_create(email, password, user_type=None, full_name="", verified=False):
        created.append((email, user_type, verified))
        return 21

    monkeypatch.setattr(auth, "create_user", fake_create)
    monkeypatch.setattr(auth, "upsert_company_profile", lambda uid, data: profiles.append((uid, data)))
    monkeypatch.setattr(auth, "_send_verification_email", lambda req, user: None)

    resp = client.post(
        "/signup",
        data={
            "email": "Boss@Acme.com",
            "password": "Passw0rd1",
            "password2": "Passw0rd1",
            "user_type": "employer",
            "company_name": "Acme Ltd",
            "csrf_token": "ok",
        },
    )
    assert resp.status_code == 200
    assert created == [("boss@acme.com", "company", False)]
    assert profiles == [(21, {"company_name": "Acme Ltd"})]


def test_signup_company_needs_name(monkeypatch):
    client = TestClient(api_module.app)
    monkeypatch.setattr(auth, "validate_csrf", lambda req, tok: True)
    monkeypatch.setattr(auth, "get_user_by_email", lambda email: None)
    resp = client.post(
        "/signup",
        data={"email": "boss@acme.com", "password": "Passw0rd1", "password2": "Passw0rd1", "user_type": "company", "csrf_token": "ok"},
    )
    assert resp.status_code == 400
    assert "Company name is required" in resp.text


def test_signup_rate_limit_integration(monkeypatch):
    client = TestClient(api_module.app)
    monkeypatch.setattr(auth, "allow_request", lambda *a, **k: False)
    resp = client.post(
        "/signup",
        data={"email": "user@example.com", "password": "Passw0rd1", "password2": "Passw0rd1", "csrf_token": "ok"},
    )
    assert resp.status_code == 429
