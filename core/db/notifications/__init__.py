"""
Notification queue re-exports.
"""
from core.db.notifications.queue_store import (
    DUE_BATCH_SIZE,
    NOTIFICATION_TYPES,
    count_pending_notifications,
    get_due_notifications,
    list_notification_history,
    mark_notification_failed,
    mark_notification_sent,
    queue_job_expiration_notifications,
    queue_notification,
)

__all__ = [
    "DUE_BATCH_SIZE",
    "NOTIFICATION_TYPES",
    "count_pending_notifications",
    "get_due_notifications",
    "list_notification_history",
    "mark_notification_failed",
    "mark_notification_sent",
    "queue_job_expiration_notifications",
    "queue_notification",
]
