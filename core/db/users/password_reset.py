"""
Password reset links: one live token per user, valid for an hour.
"""
from __future__ import annotations

from datetime import timedelta
from typing import Dict, Optional

from core.db.users.tokens import consume_token, find_live_token, issue_token

RESET_TOKEN_MINUTES = 60
_TABLE = "password_reset_tokens"


def create_password_reset_token(user_id: int) -> str:
    """Issuing a new link invalidates any earlier one."""
    return issue_token(_TABLE, user_id, timedelta(minutes=RESET_TOKEN_MINUTES), replace=True)


def get_password_reset_token(token: str) -> Optional[Dict]:
    return find_live_token(_TABLE, token)


def mark_reset_token_used(token: str) -> None:
    consume_token(_TABLE, token, revoke_siblings=True)


__all__ = [
    "RESET_TOKEN_MINUTES",
    "create_password_reset_token",
    "get_password_reset_token",
    "mark_reset_token_used",
]
