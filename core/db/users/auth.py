"""
Password hashing and credential checks.
"""
from __future__ import annotations

from typing import Dict, Optional

import bcrypt


def hash_password(raw_password: str) -> str:
    return bcrypt.hashpw(raw_password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(raw_password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(raw_password.encode("utf-8"), (password_hash or "").encode("utf-8"))
    except ValueError:
        # Malformed stored hash (e.g. seeded by hand).
        return False


def login_block_reason(user: Optional[Dict]) -> str | None:
    """Return why an account with valid credentials still may not log in, or None."""
    if not user:
        return "missing"
    if user.get("banned"):
        return "banned"
    if user.get("email_verified_at") in (None, ""):
        return "unverified"
    return None


__all__ = ["hash_password", "verify_password", "login_block_reason"]
