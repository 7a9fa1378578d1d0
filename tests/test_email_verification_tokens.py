from core.db.users import email_verification as ev
from core.db.users.user_store import create_user, get_user_by_id


def _seed_user():
    return create_user("u@example.com", "Passw0rd1", user_type="company", verified=False)


def test_create_and_fetch_verification_token(db):
    user_id = _seed_user()
    token = ev.create_email_verification_token(user_id=user_id)
    row = ev.get_email_verification_token(token)
    assert row is not None
    assert row["user_id"] == user_id


def test_token_single_use(db):
    user_id = _seed_user()
    token = ev.create_email_verification_token(user_id=user_id)
    ev.mark_email_verification_token_used(token)
    assert ev.get_email_verification_token(token) is None


def test_mark_user_verified(db):
    user_id = _seed_user()
    assert get_user_by_id(user_id)["email_verified_at"] is None
    ev.mark_user_email_verified(user_id)
    verified_at = get_user_by_id(user_id)["email_verified_at"]
    assert verified_at is not None and verified_at != ""
