"""
Messaging storage re-exports.
"""
from core.db.messages.messages_store import (
    MAX_MESSAGE_LENGTH,
    MESSAGE_TYPES,
    check_privacy_permission,
    count_messages,
    count_unread,
    get_conversation,
    get_user_messages,
    grant_privacy_permission,
    mark_conversation_read,
    send_message,
)

__all__ = [
    "MAX_MESSAGE_LENGTH",
    "MESSAGE_TYPES",
    "check_privacy_permission",
    "count_messages",
    "count_unread",
    "get_conversation",
    "get_user_messages",
    "grant_privacy_permission",
    "mark_conversation_read",
    "send_message",
]
