"""
User CRUD, moderation flags and admin listings.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, List, Optional

from core.db.base import get_conn, now_iso
from core.db.users.auth import hash_password

USER_TYPES = ("professional", "company", "contractor", "homeowner", "admin")
ONLINE_WINDOW_MINUTES = 15

_USER_COLUMNS = (
    "id, email, password_hash, user_type, full_name, active, banned, "
    "created_at, email_verified_at, last_seen_at"
)


def create_user(
    email: str,
    raw_password: str,
    user_type: str = "professional",
    full_name: str | None = None,
    verified: bool = True,
) -> int:
    if user_type not in USER_TYPES:
        raise ValueError(f"Unknown user_type: {user_type}")

    conn = get_conn()
    cur = conn.cursor()
    now = now_iso()

    cur.execute(
        """
        INSERT INTO users (email, password_hash, user_type, full_name, created_at, email_verified_at)
        VALUES (?, ?, ?, ?, ?, ?)
        RETURNING id
        """,
        (
            email.strip().lower(),
            hash_password(raw_password),
            user_type,
            (full_name or "").strip() or None,
            now,
            now if verified else None,
        ),
    )
    row = cur.fetchone()
    user_id = int(row["id"]) if row else 0

    conn.commit()
    conn.close()
    return user_id


def get_user_by_email(email: str) -> Dict | None:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE email = ?", (email.strip().lower(),))
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def get_user_by_id(user_id: int) -> Optional[Dict]:
    """Look up a user by numeric id. Returns dict or None."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?", (user_id,))
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def update_user_password(user_id: int, raw_password: str) -> None:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "UPDATE users SET password_hash=? WHERE id=?",
        (hash_password(raw_password), user_id),
    )
    conn.commit()
    conn.close()


def set_user_type(user_id: int, user_type: str) -> None:
    """Switch account type (e.g. contractor upgrading to company)."""
    if user_type not in USER_TYPES:
        raise ValueError(f"Unknown user_type: {user_type}")
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("UPDATE users SET user_type=? WHERE id=?", (user_type, user_id))
    conn.commit()
    conn.close()


def touch_last_seen(user_id: int) -> None:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("UPDATE users SET last_seen_at=? WHERE id=?", (now_iso(), user_id))
    conn.commit()
    conn.close()


def deactivate_user(user_id: int) -> None:
    """Deactivate a user and hide everything they have listed."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("UPDATE users SET active=0 WHERE id=?", (user_id,))
    cur.execute("UPDATE jobs SET is_active=0, updated_at=? WHERE owner_id=?", (now_iso(), user_id))
    cur.execute("UPDATE professional_profiles SET profile_visible=0 WHERE user_id=?", (user_id,))
    conn.commit()
    conn.close()


def reactivate_user(user_id: int) -> None:
    """Reactivate a user and make their profile visible again. Jobs stay closed."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("UPDATE users SET active=1 WHERE id=?", (user_id,))
    cur.execute("UPDATE professional_profiles SET profile_visible=1 WHERE user_id=?", (user_id,))
    conn.commit()
    conn.close()


def delete_user_data(user_id: int) -> None:
    """
    Remove a user and everything hanging off the user row.
    Most child tables cascade; sessions and tokens are cleared first so a
    half-finished delete never leaves a live login behind.
    """
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("DELETE FROM sessions WHERE user_id=?", (user_id,))
    cur.execute("DELETE FROM password_reset_tokens WHERE user_id=?", (user_id,))
    cur.execute("DELETE FROM email_verification_tokens WHERE user_id=?", (user_id,))
    cur.execute("DELETE FROM users WHERE id=?", (user_id,))
    conn.commit()
    conn.close()


def ban_user(user_id: int) -> None:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("UPDATE users SET banned=1, active=0 WHERE id=?", (user_id,))
    cur.execute("DELETE FROM sessions WHERE user_id=?", (user_id,))
    cur.execute("UPDATE jobs SET is_active=0, updated_at=? WHERE owner_id=?", (now_iso(), user_id))
    conn.commit()
    conn.close()


def unban_user(user_id: int) -> None:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("UPDATE users SET banned=0, active=1 WHERE id=?", (user_id,))
    conn.commit()
    conn.close()


def list_users(user_type: str | None = None, limit: int = 200) -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    if user_type:
        cur.execute(
            f"SELECT {_USER_COLUMNS} FROM users WHERE user_type=? ORDER BY created_at DESC, id DESC LIMIT ?",
            (user_type, int(limit)),
        )
    else:
        cur.execute(
            f"SELECT {_USER_COLUMNS} FROM users ORDER BY created_at DESC, id DESC LIMIT ?",
            (int(limit),),
        )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def count_users_by_type() -> Dict[str, int]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("SELECT user_type, COUNT(*) AS count FROM users GROUP BY user_type")
    rows = cur.fetchall()
    conn.close()
    counts = {t: 0 for t in USER_TYPES}
    for row in rows:
        counts[row["user_type"]] = int(row["count"])
    return counts


def count_online_users(minutes: int = ONLINE_WINDOW_MINUTES) -> int:
    cutoff = (datetime.utcnow() - timedelta(minutes=minutes)).isoformat(timespec="seconds")
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("SELECT COUNT(*) AS count FROM users WHERE last_seen_at >= ?", (cutoff,))
    row = cur.fetchone()
    conn.close()
    return int(row["count"]) if row else 0


__all__ = [
    "USER_TYPES",
    "ONLINE_WINDOW_MINUTES",
    "create_user",
    "get_user_by_email",
    "get_user_by_id",
    "update_user_password",
    "set_user_type",
    "touch_last_seen",
    "deactivate_user",
    "reactivate_user",
    "delete_user_data",
    "ban_user",
    "unban_user",
    "list_users",
    "count_users_by_type",
    "count_online_users",
]
