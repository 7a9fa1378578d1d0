"""
Session cookies, current-user lookup and role guards.
"""
from __future__ import annotations

import os

from fastapi import Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from core.database import delete_session, get_session, get_user_by_id, login_block_reason, touch_session

SESSION_COOKIE_NAME = "session_id"
SESSION_COOKIE_MAX_AGE = 1800  # 30 minutes
SECURE_COOKIES = (
    os.getenv("COOKIE_SECURE", "").lower() in ("1", "true", "yes")
    or os.getenv("PUBLIC_BASE_URL", "").lower().startswith("https://")
)


def get_current_user(request: Request):
    """
    Read the session cookie and return (user_dict, session_token) or (None, None).
    Sessions belonging to banned or unverified users are dropped on sight.
    """
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if not token:
        return None, None

    session = get_session(token)
    if not session:
        return None, token

    user = get_user_by_id(session["user_id"])
    if login_block_reason(user) is not None:
        delete_session(token)
        return None, token

    touch_session(token)
    return user, token


def is_admin(user: dict | None) -> bool:
    return bool(user) and user.get("user_type") == "admin"


def require_user(request: Request):
    """Return (user, None) when signed in, else (None, redirect-to-login)."""
    user, _ = get_current_user(request)
    if not user:
        return None, RedirectResponse(url="/login", status_code=303)
    return user, None


def require_admin(request: Request):
    """Return (admin_user, None), or (None, response) with a login redirect or a 403."""
    user, _ = get_current_user(request)
    if not user:
        return None, RedirectResponse(url="/login", status_code=303)
    if not is_admin(user):
        return None, HTMLResponse("Forbidden", status_code=403)
    return user, None


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        max_age=SESSION_COOKIE_MAX_AGE,
        samesite="lax",
        secure=SECURE_COOKIES,
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE_NAME)
