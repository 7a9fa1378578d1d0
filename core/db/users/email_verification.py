"""
Email verification links sent at signup and on resend.
"""
from __future__ import annotations

from datetime import timedelta
from typing import Dict, Optional

from core.db.base import get_conn, now_iso
from core.db.users.tokens import consume_token, find_live_token, issue_token

VERIFY_TOKEN_HOURS = 24
_TABLE = "email_verification_tokens"


def create_email_verification_token(user_id: int) -> str:
    # Resends keep earlier links working until they lapse.
    return issue_token(_TABLE, user_id, timedelta(hours=VERIFY_TOKEN_HOURS))


def get_email_verification_token(token: str) -> Optional[Dict]:
    return find_live_token(_TABLE, token)


def mark_email_verification_token_used(token: str) -> None:
    consume_token(_TABLE, token)


def mark_user_email_verified(user_id: int) -> None:
    """Stamp email_verified_at once; later calls keep the first timestamp."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "UPDATE users SET email_verified_at = COALESCE(NULLIF(email_verified_at, ''), ?) WHERE id = ?",
        (now_iso(), user_id),
    )
    conn.commit()
    conn.close()


__all__ = [
    "VERIFY_TOKEN_HOURS",
    "create_email_verification_token",
    "get_email_verification_token",
    "mark_email_verification_token_used",
    "mark_user_email_verified",
]
