"""
Login sessions. Each request that finds a live session slides its expiry
forward and stamps users.last_seen_at, which drives the admin "online" count.
"""
from __future__ import annotations

import secrets
from datetime import datetime, timedelta
from typing import Dict, Optional

from core.db.base import get_conn, now_iso

SESSION_TIMEOUT_MINUTES = 30


def _window(start: datetime | None = None):
    start = start or datetime.utcnow()
    return (
        start.isoformat(timespec="seconds"),
        (start + timedelta(minutes=SESSION_TIMEOUT_MINUTES)).isoformat(timespec="seconds"),
    )


def create_session(user_id: int) -> str:
    token = secrets.token_urlsafe(32)
    seen, expires = _window()

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "INSERT INTO sessions (id, user_id, created_at, last_seen_at, expires_at) VALUES (?, ?, ?, ?, ?)",
        (token, user_id, seen, seen, expires),
    )
    cur.execute("UPDATE users SET last_seen_at = ? WHERE id = ?", (seen, user_id))
    conn.commit()
    conn.close()
    return token


def delete_session(session_id: str) -> None:
    if not session_id:
        return
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
    conn.commit()
    conn.close()


def get_session(session_id: str) -> Optional[Dict]:
    """The live session row, or None. A lapsed row is deleted on the way out."""
    if not session_id:
        return None

    conn = get_conn()
    cur = conn.cursor()
    cur.execute("SELECT * FROM sessions WHERE id = ?", (session_id,))
    row = cur.fetchone()
    if row and row["expires_at"] <= now_iso():
        cur.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
        conn.commit()
        row = None
    conn.close()
    return dict(row) if row else None


def touch_session(session_id: str) -> None:
    if not session_id:
        return
    seen, expires = _window()

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        WITH touched AS (
            UPDATE sessions SET last_seen_at = ?, expires_at = ? WHERE id = ? RETURNING user_id
        )
        UPDATE users SET last_seen_at = ? WHERE id IN (SELECT user_id FROM touched)
        """,
        (seen, expires, session_id, seen),
    )
    conn.commit()
    conn.close()


__all__ = [
    "SESSION_TIMEOUT_MINUTES",
    "create_session",
    "delete_session",
    "get_session",
    "touch_session",
]
