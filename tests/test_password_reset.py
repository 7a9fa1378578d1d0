from core.db.base import get_conn
from core.db.users import password_reset as pr
from core.db.users.user_store import create_user


def test_create_and_fetch_token(db):
    user_id = create_user("user1@example.com", "Passw0rd1")
    token = pr.create_password_reset_token(user_id=user_id)
    data = pr.get_password_reset_token(token)
    assert data is not None
    assert data["user_id"] == user_id
    assert data["token"] == token


def test_new_token_replaces_old_one(db):
    user_id = create_user("user1@example.com", "Passw0rd1")
    first = pr.create_password_reset_token(user_id=user_id)
    second = pr.create_password_reset_token(user_id=user_id)
    assert pr.get_password_reset_token(first) is None
    assert pr.get_password_reset_token(second) is not None


def test_token_single_use_and_expiry_cleanup(db):
    user_id = create_user("user2@example.com", "Passw0rd1")
    old_user_id = create_user("user3@example.com", "Passw0rd1")
    token = pr.create_password_reset_token(user_id=user_id)
    pr.mark_reset_token_used(token)
    assert pr.get_password_reset_token(token) is None

    conn = get_conn()
    try:
        cur = conn.cursor()
        cur.execute(
            """
            INSERT INTO password_reset_tokens (user_id, token, created_at, expires_at, used_at)
            VALUES (%s, %s, %s, %s, NULL)
            """,
            (old_user_id, "old", "2020-01-01T00:00:00", "2020-01-01T00:00:00"),
        )
        conn.commit()
    finally:
        conn.close()

    assert pr.get_password_reset_token("old") is None


def test_unknown_token_returns_none(db):
    assert pr.get_password_reset_token("does-not-exist") is None
