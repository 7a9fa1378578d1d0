import pytest

from app import email_utils, notifications


def _notification(**overrides):
    row = {
        "id": 1,
        "user_id": 5,
        "notification_type": "job_expiration",
        "recipient": "owner@example.com",
        "channel": "email",
        "subject": None,
        "payload": {
            "job_id": 3,
            "job_title": "Bricklayer",
            "company_name": "Acme",
            "expires_at": "2026-01-10T00:00:00",
            "days_until_expiration": 2,
        },
    }
    row.update(overrides)
    return row


def test_job_expiration_template(monkeypatch):
    monkeypatch.setenv("PUBLIC_BASE_URL", "https://jobs.example")
    subject, body = email_utils.render_notification("job_expiration", _notification()["payload"])
    assert subject == 'Your job "Bricklayer" expires in 2 days'
    assert "Hi Acme" in body
    assert "https://jobs.example/jobs/3" in body


def test_new_application_and_message_templates():
    subject, body = email_utils.render_notification(
        "new_applications", {"job_title": "Chef", "application_id": 12, "view_url": "/jobs/1/applications"}
    )
    assert subject == 'New application for "Chef"'
    assert "Application ID: 12" in body

    subject, _ = email_utils.render_notification("messages", {})
    assert subject == "New message"


def test_unknown_template_raises():
    with pytest.raises(ValueError):
        email_utils.render_notification("newsletter", {})


def test_process_queue_marks_sent_and_failed(monkeypatch, caplog):
    queue = [
        _notification(id=1),
        _notification(id=2, recipient="broken@example.com"),
        _notification(id=3, notification_type="messages", subject="Custom subject", payload={}),
    ]
    sent, marked_sent, marked_failed = [], [], []

    def fake_send(to_email, subject, body):
        if to_email == "broken@example.com":
            raise RuntimeError("SMTP down")
        sent.append((to_email, subject))

    monkeypatch.setattr(notifications, "get_due_notifications", lambda limit: queue[:limit])
    monkeypatch.setattr(notifications, "send_text_email", fake_send)
    monkeypatch.setattr(notifications, "mark_notification_sent", lambda n, subject=None: marked_sent.append((n["id"], subject)))
    monkeypatch.setattr(notifications, "mark_notification_failed", lambda nid, error: marked_failed.append((nid, error)))

    with caplog.at_level("WARNING"):
        result = notifications.process_notification_queue()

    assert result == {"processed": 2, "failed": 1, "total": 3}
    assert marked_failed == [(2, "SMTP down")]
    assert [nid for nid, _ in marked_sent] == [1, 3]
    assert sent[1] == ("owner@example.com", "Custom subject")
    assert any("Failed to send notification 2" in rec.message for rec in caplog.records)


def test_unknown_type_in_queue_is_marked_failed(monkeypatch):
    failed = []
    monkeypatch.setattr(notifications, "get_due_notifications", lambda limit: [_notification(notification_type="digest")])
    monkeypatch.setattr(notifications, "send_text_email", lambda *a: None)
    monkeypatch.setattr(notifications, "mark_notification_sent", lambda *a, **k: None)
    monkeypatch.setattr(notifications, "mark_notification_failed", lambda nid, error: failed.append(error))

    result = notifications.process_notification_queue()
    assert result["failed"] == 1
    assert "digest" in failed[0]


def test_push_channel_is_logged_not_emailed(monkeypatch):
    monkeypatch.setattr(notifications, "get_due_notifications", lambda limit: [_notification(channel="push")])

    def no_email(*args):
        raise AssertionError("push notifications are not emailed")

    monkeypatch.setattr(notifications, "send_text_email", no_email)
    monkeypatch.setattr(notifications, "mark_notification_sent", lambda *a, **k: None)
    monkeypatch.setattr(notifications, "mark_notification_failed", lambda *a: None)

    assert notifications.process_notification_queue()["processed"] == 1
