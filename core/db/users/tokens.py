"""
Single-use, expiring tokens emailed to users. Password reset and email
verification each keep their own table with the same columns.
"""
from __future__ import annotations

import secrets
from datetime import datetime, timedelta
from typing import Dict, Optional

from core.db.base import get_conn, now_iso

_TABLES = ("password_reset_tokens", "email_verification_tokens")


def _check(table: str) -> None:
    if table not in _TABLES:
        raise ValueError(f"Not a token table: {table}")


def issue_token(table: str, user_id: int, lifetime: timedelta, replace: bool = False) -> str:
    """Store a new token for user_id. replace=True drops the user's older tokens first."""
    _check(table)
    token = secrets.token_urlsafe(32)
    issued = datetime.utcnow()

    conn = get_conn()
    cur = conn.cursor()
    if replace:
        cur.execute(f"DELETE FROM {table} WHERE user_id = ?", (user_id,))
    cur.execute(
        f"INSERT INTO {table} (user_id, token, created_at, expires_at) VALUES (?, ?, ?, ?)",
        (
            user_id,
            token,
            issued.isoformat(timespec="seconds"),
            (issued + lifetime).isoformat(timespec="seconds"),
        ),
    )
    conn.commit()
    conn.close()
    return token


def find_live_token(table: str, token: str) -> Optional[Dict]:
    """The token row while unused and unexpired. Used or lapsed rows are purged."""
    _check(table)
    if not token:
        return None

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(f"SELECT * FROM {table} WHERE token = ?", (token,))
    row = cur.fetchone()
    if row and (row["used_at"] or row["expires_at"] <= now_iso()):
        cur.execute(f"DELETE FROM {table} WHERE token = ?", (token,))
        conn.commit()
        row = None
    conn.close()
    return dict(row) if row else None


def consume_token(table: str, token: str, revoke_siblings: bool = False) -> Optional[int]:
    """Mark a token used and return its user_id. revoke_siblings drops the user's other tokens."""
    _check(table)
    if not token:
        return None

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"UPDATE {table} SET used_at = ? WHERE token = ? AND used_at IS NULL RETURNING user_id",
        (now_iso(), token),
    )
    row = cur.fetchone()
    if row and revoke_siblings:
        cur.execute(f"DELETE FROM {table} WHERE user_id = ? AND token != ?", (row["user_id"], token))
    conn.commit()
    conn.close()
    return int(row["user_id"]) if row else None
