"""
Outgoing notification queue and its send history.
"""
from __future__ import annotations

import json
from typing import Dict, List, Optional

from core.db.base import get_conn, now_iso
from core.db.jobs.expiration import EXPIRING_SOON_DAYS, get_expiring_jobs

NOTIFICATION_TYPES = ("job_expiration", "new_applications", "messages")
DUE_BATCH_SIZE = 50


def queue_notification(
    user_id: Optional[int],
    notification_type: str,
    recipient: str,
    payload: Dict | None = None,
    subject: str | None = None,
    job_id: int | None = None,
    scheduled_for: str | None = None,
    channel: str = "email",
) -> int:
    if notification_type not in NOTIFICATION_TYPES:
        raise ValueError(f"Unknown notification type: {notification_type}")
    if not recipient:
        raise ValueError("recipient is required")

    now = now_iso()
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO notification_queue
            (user_id, notification_type, channel, recipient, subject, payload, job_id, status, scheduled_for, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, 'pending', ?, ?)
        RETURNING id
        """,
        (
            user_id,
            notification_type,
            channel,
            recipient,
            subject,
            json.dumps(payload or {}),
            job_id,
            scheduled_for or now,
            now,
        ),
    )
    notification_id = int(cur.fetchone()["id"])
    conn.commit()
    conn.close()
    return notification_id


def get_due_notifications(limit: int = DUE_BATCH_SIZE) -> List[Dict]:
    """Pending rows whose scheduled_for has passed, oldest first. payload is decoded."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT * FROM notification_queue
        WHERE status = 'pending' AND scheduled_for <= ?
        ORDER BY created_at ASC, id ASC
        LIMIT ?
        """,
        (now_iso(), int(limit)),
    )
    rows = [dict(r) for r in cur.fetchall()]
    conn.close()
    for row in rows:
        try:
            row["payload"] = json.loads(row.get("payload") or "{}")
        except json.JSONDecodeError:
            row["payload"] = {}
    return rows


def mark_notification_sent(notification: Dict, subject: str | None = None) -> None:
    now = now_iso()
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "UPDATE notification_queue SET status = 'sent', sent_at = ?, error_message = NULL WHERE id = ?",
        (now, notification["id"]),
    )
    cur.execute(
        """
        INSERT INTO notification_history (queue_id, user_id, notification_type, channel, recipient, subject, sent_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (
            notification["id"],
            notification.get("user_id"),
            notification["notification_type"],
            notification.get("channel") or "email",
            notification.get("recipient"),
            subject or notification.get("subject"),
            now,
        ),
    )
    conn.commit()
    conn.close()


def mark_notification_failed(notification_id: int, error: str) -> None:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "UPDATE notification_queue SET status = 'failed', error_message = ? WHERE id = ?",
        (f"{error}".strip()[:500], notification_id),
    )
    conn.commit()
    conn.close()


def queue_job_expiration_notifications(days_ahead: int = EXPIRING_SOON_DAYS) -> int:
    """
    Queue one job_expiration email per job expiring soon that has not been
    notified yet, then flag those jobs. Returns how many were queued.
    """
    queued = 0
    for job in get_expiring_jobs(days_ahead):
        if job.get("expiration_notified"):
            continue
        payload = {
            "job_id": job["job_id"],
            "job_title": job["title"],
            "company_name": job.get("company_name"),
            "expires_at": job["expires_at"],
            "days_until_expiration": job["days_until_expiration"],
        }
        queue_notification(
            job["owner_id"],
            "job_expiration",
            job["owner_email"],
            payload=payload,
            job_id=job["job_id"],
        )
        conn = get_conn()
        cur = conn.cursor()
        cur.execute("UPDATE jobs SET expiration_notified = 1 WHERE id = ?", (job["job_id"],))
        conn.commit()
        conn.close()
        queued += 1
    return queued


def count_pending_notifications() -> int:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("SELECT COUNT(*) AS count FROM notification_queue WHERE status = 'pending'")
    row = cur.fetchone()
    conn.close()
    return int(row["count"])


def list_notification_history(user_id: int, limit: int = 50) -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "SELECT * FROM notification_history WHERE user_id = ? ORDER BY sent_at DESC, id DESC LIMIT ?",
        (user_id, int(limit)),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


__all__ = [
    "NOTIFICATION_TYPES",
    "DUE_BATCH_SIZE",
    "queue_notification",
    "get_due_notifications",
    "mark_notification_sent",
    "mark_notification_failed",
    "queue_job_expiration_notifications",
    "count_pending_notifications",
    "list_notification_history",
]
