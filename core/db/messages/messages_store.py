"""
Conversations, messages and personal-info sharing permissions.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from core.db.base import get_conn, now_iso

MESSAGE_TYPES = ("direct", "reply", "job_inquiry")
MAX_MESSAGE_LENGTH = 5000
SEND_TIMEOUT_MS = 8000


def _find_conversation(cur, user_a: int, user_b: int, job_id: Optional[int]) -> Optional[int]:
    cur.execute(
        """
        SELECT id FROM conversations
        WHERE ((participant_1 = ? AND participant_2 = ?) OR (participant_1 = ? AND participant_2 = ?))
          AND job_id IS NOT DISTINCT FROM ?
        ORDER BY id LIMIT 1
        """,
        (user_a, user_b, user_b, user_a, job_id),
    )
    row = cur.fetchone()
    return int(row["id"]) if row else None


def send_message(
    sender_id: int,
    recipient_id: int,
    content: str,
    subject: str | None = None,
    job_id: int | None = None,
    message_type: str = "direct",
    share_personal_info: bool = False,
) -> Dict:
    """
    Store a message, reusing the conversation between the same two users for
    the same job (or creating one). The whole write is bounded by an 8s
    statement timeout. Returns the inserted message row.
    """
    content = (content or "").strip()
    if not content:
        raise ValueError("Message cannot be empty")
    if len(content) > MAX_MESSAGE_LENGTH:
        raise ValueError(f"Message cannot exceed {MAX_MESSAGE_LENGTH} characters")
    if message_type not in MESSAGE_TYPES:
        raise ValueError(f"Unknown message type: {message_type}")
    if sender_id == recipient_id:
        raise ValueError("Cannot message yourself")

    now = now_iso()
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(f"SET LOCAL statement_timeout = {SEND_TIMEOUT_MS}")

    conversation_id = _find_conversation(cur, sender_id, recipient_id, job_id)
    if conversation_id is None:
        cur.execute(
            """
            INSERT INTO conversations (participant_1, participant_2, job_id, created_at, last_message_at)
            VALUES (?, ?, ?, ?, ?)
            RETURNING id
            """,
            (sender_id, recipient_id, job_id, now, now),
        )
        conversation_id = int(cur.fetchone()["id"])
    else:
        cur.execute("UPDATE conversations SET last_message_at = ? WHERE id = ?", (now, conversation_id))

    cur.execute(
        """
        INSERT INTO messages
            (conversation_id, sender_id, recipient_id, job_id, subject, content, message_type,
             share_personal_info, is_read, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0, ?)
        RETURNING *
        """,
        (
            conversation_id,
            sender_id,
            recipient_id,
            job_id,
            (subject or "").strip() or None,
            content,
            message_type,
            1 if share_personal_info else 0,
            now,
        ),
    )
    message = dict(cur.fetchone())

    if share_personal_info:
        cur.execute(
            """
            INSERT INTO privacy_permissions (owner_id, viewer_id, granted_at)
            VALUES (?, ?, ?)
            ON CONFLICT (owner_id, viewer_id) DO NOTHING
            """,
            (sender_id, recipient_id, now),
        )

    conn.commit()
    conn.close()
    return message


def get_conversation(conversation_id: int, user_id: int) -> Optional[Dict]:
    """Conversation plus its messages (oldest first); None unless user_id takes part."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "SELECT * FROM conversations WHERE id = ? AND (participant_1 = ? OR participant_2 = ?)",
        (conversation_id, user_id, user_id),
    )
    row = cur.fetchone()
    if not row:
        conn.close()
        return None
    conversation = dict(row)
    cur.execute(
        """
        SELECT m.*, u.email AS sender_email
        FROM messages m JOIN users u ON u.id = m.sender_id
        WHERE m.conversation_id = ?
        ORDER BY m.created_at ASC, m.id ASC
        """,
        (conversation_id,),
    )
    conversation["messages"] = [dict(r) for r in cur.fetchall()]
    conn.close()
    return conversation


def mark_conversation_read(conversation_id: int, user_id: int) -> int:
    """Mark the messages addressed to user_id as read; returns how many changed."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "UPDATE messages SET is_read = 1 WHERE conversation_id = ? AND recipient_id = ? AND is_read = 0",
        (conversation_id, user_id),
    )
    count = cur.rowcount
    conn.commit()
    conn.close()
    return count


def get_user_messages(user_id: int, folder: str = "inbox", limit: int = 100) -> List[Dict]:
    """Inbox (received) or sent messages, newest first."""
    if folder == "sent":
        own_col, other_col = "sender_id", "recipient_id"
    else:
        own_col, other_col = "recipient_id", "sender_id"
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT m.*, u.email AS other_email
        FROM messages m JOIN users u ON u.id = m.{other_col}
        WHERE m.{own_col} = ?
        ORDER BY m.created_at DESC, m.id DESC
        LIMIT ?
        """,
        (user_id, int(limit)),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def count_unread(user_id: int) -> int:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("SELECT COUNT(*) AS count FROM messages WHERE recipient_id = ? AND is_read = 0", (user_id,))
    row = cur.fetchone()
    conn.close()
    return int(row["count"]) if row else 0


def grant_privacy_permission(owner_id: int, viewer_id: int) -> None:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "INSERT INTO privacy_permissions (owner_id, viewer_id, granted_at) VALUES (?, ?, ?) ON CONFLICT (owner_id, viewer_id) DO NOTHING",
        (owner_id, viewer_id, now_iso()),
    )
    conn.commit()
    conn.close()


def check_privacy_permission(owner_id: int, viewer_id: int) -> bool:
    """True when owner_id has shared personal details with viewer_id."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "SELECT 1 FROM privacy_permissions WHERE owner_id = ? AND viewer_id = ?",
        (owner_id, viewer_id),
    )
    row = cur.fetchone()
    conn.close()
    return row is not None


def count_messages() -> int:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("SELECT COUNT(*) AS count FROM messages")
    row = cur.fetchone()
    conn.close()
    return int(row["count"])


__all__ = [
    "MESSAGE_TYPES",
    "MAX_MESSAGE_LENGTH",
    "send_message",
    "get_conversation",
    "mark_conversation_read",
    "get_user_messages",
    "count_unread",
    "grant_privacy_permission",
    "check_privacy_permission",
    "count_messages",
]
