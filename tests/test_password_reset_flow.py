import types

from starlette.responses import HTMLResponse

from app.routes import auth

DUMMY_REQ = types.SimpleNamespace(client=types.SimpleNamespace(host="127.0.0.1"), cookies={})


def _confirm(token="valid", password="Passw0rd1", password2="Passw0rd1"):
    return auth.password_reset_confirm(
        DUMMY_REQ,
        token=token,
        password=password,
        password2=password2,
        csrf_token="ok",
    )


def test_password_reset_confirm_invalid_token(monkeypatch):
    monkeypatch.setattr(auth, "allow_request", lambda *a, **k: True)
    monkeypatch.setattr(auth, "validate_csrf", lambda req, token: True)
    monkeypatch.setattr(auth, "get_password_reset_token", lambda token: None)

    resp = _confirm(token="invalid")
    assert isinstance(resp, HTMLResponse)
    assert resp.status_code == 200
    assert b"Reset link is invalid or expired." in resp.body


def test_password_reset_confirm_single_use(monkeypatch):
    token_data = {"user_id": 42}
    monkeypatch.setattr(auth, "allow_request", lambda *a, **k: True)
    monkeypatch.setattr(auth, "validate_csrf", lambda req, token: True)
    monkeypatch.setattr(auth, "get_password_reset_token", lambda token: token_data if token == "valid" else None)

    actions = {"updated": False, "used": False}
    monkeypatch.setattr(auth, "get_user_by_id", lambda uid: {"id": uid, "user_type": "professional"})
    monkeypatch.setattr(auth, "update_user_password", lambda uid, pw: actions.__setitem__("updated", True))
    monkeypatch.setattr(auth, "mark_reset_token_used", lambda tok: actions.__setitem__("used", True))

    resp = _confirm()
    assert resp.status_code == 200
    assert actions["updated"] is True
    assert actions["used"] is True

    # Second use should now fail because token lookup returns None
    monkeypatch.setattr(auth, "get_password_reset_token", lambda token: None)
    resp2 = _confirm()
    assert b"Reset link is invalid or expired." in resp2.body


def test_password_reset_confirm_mismatch(monkeypatch):
    monkeypatch.setattr(auth, "allow_request", lambda *a, **k: True)
    monkeypatch.setattr(auth, "validate_csrf", lambda req, token: True)
    monkeypatch.setattr(auth, "get_password_reset_token", lambda token: {"user_id": 1})
    monkeypatch.setattr(auth, "get_user_by_id", lambda uid: {"id": uid, "user_type": "company"})

    resp = _confirm(password2="Different1")
    assert resp.status_code == 400
    assert b"Passwords do not match." in resp.body


def test_admin_password_cannot_be_reset_by_link(monkeypatch):
    monkeypatch.setattr(auth, "allow_request", lambda *a, **k: True)
    monkeypatch.setattr(auth, "validate_csrf", lambda req, token: True)
    monkeypatch.setattr(auth, "get_password_reset_token", lambda token: {"user_id": 1})
    monkeypatch.setattr(auth, "get_user_by_id", lambda uid: {"id": uid, "user_type": "admin"})

    def fail(*args):
        raise AssertionError("admin password must not change")

    monkeypatch.setattr(auth, "update_user_password", fail)
    assert b"Reset link is invalid or expired." in _confirm().body


def test_reset_request_skips_admin(monkeypatch):
    monkeypatch.setattr(auth, "allow_request_with_remaining", lambda *a, **k: (True, 4))
    monkeypatch.setattr(auth, "validate_csrf", lambda req, token: True)
    monkeypatch.setattr(auth, "get_user_by_email", lambda email: {"id": 1, "email": email, "user_type": "admin"})

    def fail(*args):
        raise AssertionError("no token for admin")

    monkeypatch.setattr(auth, "create_password_reset_token", fail)
    resp = auth.password_reset_request(DUMMY_REQ, email="admin@example.com", csrf_token="ok")
    assert resp.status_code == 200
    assert b"If that email exists" in resp.body
    assert b"4 reset attempt(s)" in resp.body
