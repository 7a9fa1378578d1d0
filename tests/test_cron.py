import pytest
from fastapi.testclient import TestClient

from app.api import app
from app.routes import cron

AUTH = {"Authorization": "Bearer s3cret"}


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setenv("CRON_SECRET_TOKEN", "s3cret")
    return TestClient(app)


def test_missing_token_is_rejected(client):
    resp = client.get("/api/cron/expire-jobs")
    assert resp.status_code == 401
    assert resp.json() == {"error": "Unauthorized"}


def test_wrong_token_is_rejected(client):
    resp = client.post("/api/cron/expire-subscriptions", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401


def test_unset_secret_rejects_everything(monkeypatch):
    monkeypatch.delenv("CRON_SECRET_TOKEN", raising=False)
    resp = TestClient(app).get("/api/notifications/process", headers={"Authorization": "Bearer "})
    assert resp.status_code == 401


def test_expire_jobs_reports_counts(client, monkeypatch):
    monkeypatch.setattr(
        cron,
        "process_job_expirations",
        lambda: {
            "expired_count": 3,
            "expiring_jobs": [{"id": 9, "title": "Roofer"}],
            "processed_at": "2026-01-01T00:00:00",
        },
    )
    for method in (client.get, client.post):
        body = method("/api/cron/expire-jobs", headers=AUTH).json()
        assert body["success"] is True
        assert body["expired_count"] == 3
        assert body["expiring_count"] == 1


def test_expire_jobs_failure_is_500(client, monkeypatch):
    def boom():
        raise RuntimeError("db down")

    monkeypatch.setattr(cron, "process_job_expirations", boom)
    assert client.post("/api/cron/expire-jobs", headers=AUTH).status_code == 500


def test_expire_subscriptions(client, monkeypatch):
    monkeypatch.setattr(cron, "expire_old_subscriptions", lambda: 4)
    resp = client.post("/api/cron/expire-subscriptions", headers=AUTH)
    assert resp.json() == {"success": True, "expired_count": 4}


def test_subscription_status_counts(client, monkeypatch):
    monkeypatch.setattr(
        cron,
        "list_user_subscriptions",
        lambda: [{"status": "active"}, {"status": "expired"}, {"status": "active"}],
    )
    resp = client.get("/api/cron/expire-subscriptions", headers=AUTH)
    assert resp.json()["counts"] == {"active": 2, "expired": 1}


def test_process_notifications(client, monkeypatch):
    monkeypatch.setattr(cron, "process_notification_queue", lambda: {"processed": 2, "failed": 1, "total": 3})
    resp = client.get("/api/notifications/process", headers=AUTH)
    assert resp.json() == {"success": True, "processed": 2, "failed": 1, "total": 3}


def test_queue_expiration_notifications_action(client, monkeypatch):
    monkeypatch.setattr(cron, "queue_job_expiration_notifications", lambda: 5)
    monkeypatch.setattr(cron, "count_pending_notifications", lambda: 7)
    resp = client.post("/api/notifications/process", headers=AUTH, json={"action": "queue_expiration_notifications"})
    assert resp.json() == {"success": True, "queued_notifications": 5, "pending": 7}


def test_unknown_action_is_400(client):
    resp = client.post("/api/notifications/process", headers=AUTH, json={"action": "reboot"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid action"}
