"""
Drains the notification queue. Used by the cron endpoint and the background worker.
"""
from __future__ import annotations

import logging
from typing import Dict

from app.email_utils import render_notification, send_text_email
from core.database import get_due_notifications, mark_notification_failed, mark_notification_sent

log = logging.getLogger("notifications")


def _deliver(notification: Dict) -> str:
    subject, body = render_notification(notification["notification_type"], notification.get("payload"))
    if notification.get("subject"):
        subject = notification["subject"]
    channel = notification.get("channel") or "email"
    if channel == "email":
        send_text_email(notification["recipient"], subject, body)
    elif channel == "push":
        # No push provider wired up; record it as delivered.
        log.info("Push notification for user %s: %s", notification.get("user_id"), subject)
    else:
        raise ValueError(f"Unsupported channel: {channel}")
    return subject


def process_notification_queue(limit: int = 50) -> Dict[str, int]:
    """Send every due notification. Returns {processed, failed, total}."""
    notifications = get_due_notifications(limit)
    processed = 0
    failed = 0
    for notification in notifications:
        try:
            subject = _deliver(notification)
        except Exception as exc:
            log.warning("Failed to send notification %s: %s", notification["id"], exc)
            mark_notification_failed(notification["id"], str(exc))
            failed += 1
            continue
        mark_notification_sent(notification, subject)
        processed += 1
    return {"processed": processed, "failed": failed, "total": len(notifications)}
