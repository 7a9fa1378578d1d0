from fastapi.testclient import TestClient

import app.api as api_module
from app.routes import auth


def test_verify_email_happy_path(monkeypatch):
    client = TestClient(api_module.app)
    steps = []

    monkeypatch.setattr(auth, "get_email_verification_token", lambda tok: {"user_id": 1} if tok == "t" else None)
    monkeypatch.setattr(auth, "get_user_by_id", lambda uid: {"id": uid, "email": "u@example.com", "user_type": "professional"})
    monkeypatch.setattr(auth, "mark_user_email_verified", lambda uid: steps.append(("verified", uid)))
    monkeypatch.setattr(auth, "mark_email_verification_token_used", lambda tok: steps.append(("used", tok)))
    monkeypatch.setattr(auth, "create_session", lambda uid: "session-token")

    resp = client.get("/verify-email?token=t", follow_redirects=False)
    assert resp.status_code in (302, 303)
    assert resp.headers.get("location") == "/dashboard"
    assert resp.cookies.get("session_id") == "session-token"
    assert steps == [("verified", 1), ("used", "t")]


def test_verify_email_invalid_token(monkeypatch):
    client = TestClient(api_module.app)
    monkeypatch.setattr(auth, "get_email_verification_token", lambda tok: None)
    resp = client.get("/verify-email?token=bad")
    assert resp.status_code == 200
    assert "invalid or expired" in resp.text.lower()


def test_resend_only_for_unverified(monkeypatch):
    sent = []
    monkeypatch.setattr(auth, "allow_request", lambda *a, **k: True)
    monkeypatch.setattr(auth, "validate_csrf", lambda req, tok: True)
    monkeypatch.setattr(auth, "_send_verification_email", lambda req, user: sent.append(user["id"]))

    client = TestClient(api_module.app)
    monkeypatch.setattr(auth, "get_user_by_email", lambda email: {"id": 5, "email": email, "email_verified_at": "2025-01-01"})
    client.post("/verify-email/resend", data={"email": "u@example.com", "csrf_token": "ok"})
    assert sent == []

    monkeypatch.setattr(auth, "get_user_by_email", lambda email: {"id": 5, "email": email, "email_verified_at": None})
    resp = client.post("/verify-email/resend", data={"email": "u@example.com", "csrf_token": "ok"})
    assert resp.status_code == 200
    assert sent == [5]
