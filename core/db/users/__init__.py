"""
User-related storage helpers, split by responsibility.
"""
from core.db.users.auth import hash_password, login_block_reason, verify_password
from core.db.users.user_store import (
    ONLINE_WINDOW_MINUTES,
    USER_TYPES,
    ban_user,
    count_online_users,
    count_users_by_type,
    create_user,
    deactivate_user,
    delete_user_data,
    get_user_by_email,
    get_user_by_id,
    list_users,
    reactivate_user,
    set_user_type,
    touch_last_seen,
    unban_user,
    update_user_password,
)
from core.db.users.password_reset import (
    RESET_TOKEN_MINUTES,
    create_password_reset_token,
    get_password_reset_token,
    mark_reset_token_used,
)
from core.db.users.sessions import (
    SESSION_TIMEOUT_MINUTES,
    create_session,
    delete_session,
    get_session,
    touch_session,
)
from core.db.users.email_verification import (
    VERIFY_TOKEN_HOURS,
    create_email_verification_token,
    get_email_verification_token,
    mark_email_verification_token_used,
    mark_user_email_verified,
)

__all__ = [
    "hash_password",
    "verify_password",
    "login_block_reason",
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
    "RESET_TOKEN_MINUTES",
    "create_password_reset_token",
    "get_password_reset_token",
    "mark_reset_token_used",
    "SESSION_TIMEOUT_MINUTES",
    "create_session",
    "delete_session",
    "get_session",
    "touch_session",
    "VERIFY_TOKEN_HOURS",
    "create_email_verification_token",
    "get_email_verification_token",
    "mark_email_verification_token_used",
    "mark_user_email_verified",
]
