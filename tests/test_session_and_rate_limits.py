import asyncio
import types

from app import security
from app.routes import auth, messages, reviews


def _dummy_req():
    return types.SimpleNamespace(
        client=types.SimpleNamespace(host="127.0.0.1"),
        cookies={security.CSRF_COOKIE_NAME: "cookie-token"},
    )


def test_login_rate_limit(monkeypatch):
    # Force rate limit to deny after 1 attempt
    calls = {"count": 0}

    def fake_allow_request_with_remaining(key, limit=5, window_seconds=60):
        calls["count"] += 1
        allowed = calls["count"] < 2
        return allowed, (1 if allowed else 0)

    monkeypatch.setattr(auth, "allow_request_with_remaining", fake_allow_request_with_remaining)

    # first call passes limit check but fails CSRF -> 403
    resp1 = auth.login(_dummy_req(), email="user@example.com", password="bad", csrf_token="wrong")
    # second call exceeds limit -> 429
    resp2 = auth.login(_dummy_req(), email="user@example.com", password="bad", csrf_token="wrong")
    assert resp1.status_code == 403
    assert resp2.status_code == 429


def test_login_rate_limit_is_per_client_ip():
    req = _dummy_req()
    for _ in range(10):
        assert auth.login(req, email="u@example.com", password="x", csrf_token="wrong").status_code == 403
    assert auth.login(req, email="u@example.com", password="x", csrf_token="wrong").status_code == 429

    other = _dummy_req()
    other.client.host = "10.0.0.9"
    assert auth.login(other, email="u@example.com", password="x", csrf_token="wrong").status_code == 403


def test_signup_rate_limit(monkeypatch):
    calls = {"count": 0}

    def fake_allow_request(key, limit=5, window_seconds=60):
        calls["count"] += 1
        return calls["count"] < 2

    monkeypatch.setattr(auth, "allow_request", fake_allow_request)
    form = dict(
        email="user@example.com",
        password="Passw0rd1",
        password2="Passw0rd1",
        user_type="jobseeker",
        full_name="",
        company_name="",
        csrf_token="wrong",
    )

    resp1 = auth.signup(_dummy_req(), **form)
    resp2 = auth.signup(_dummy_req(), **form)
    assert resp1.status_code == 403
    assert resp2.status_code == 429


def test_message_send_rate_limit(monkeypatch):
    monkeypatch.setattr(messages, "require_user", lambda req: ({"id": 1, "user_type": "professional"}, None))
    monkeypatch.setattr(messages, "allow_request", lambda *a, **k: False)

    resp = messages.send(
        _dummy_req(), recipient_id=2, subject="Hi", content="Hello", job_id="", csrf_token="cookie-token"
    )
    assert resp.status_code == 429


def test_review_api_rate_limit(monkeypatch):
    monkeypatch.setattr(reviews, "get_current_user", lambda req: ({"id": 1, "user_type": "company"}, "tok"))
    monkeypatch.setattr(reviews, "allow_request", lambda *a, **k: False)

    class DummyReq:
        client = types.SimpleNamespace(host="127.0.0.1")
        cookies = {}

        async def json(self):
            return {"revieweeId": 2, "rating": 5}

    resp = asyncio.run(reviews.create_review(DummyReq()))
    assert resp.status_code == 429


def test_session_cleared_for_missing_user(monkeypatch):
    monkeypatch.setattr(auth, "get_current_user", lambda req: (None, None))

    class DummyReq:
        cookies = {}
        client = types.SimpleNamespace(host="127.0.0.1")

    resp = auth.logout(DummyReq())
    assert resp.status_code in (302, 303)
    assert resp.headers["location"] == "/"


def test_logout_deletes_stale_session(monkeypatch):
    deleted = []
    monkeypatch.setattr(auth, "get_current_user", lambda req: (None, "stale-token"))
    monkeypatch.setattr(auth, "delete_session", deleted.append)

    resp = auth.logout(types.SimpleNamespace(cookies={}))
    assert deleted == ["stale-token"]
    assert "session_id" in resp.headers.get("set-cookie", "")
