"""
Subscription plans, user subscriptions and the usage checks built on them.

Subscriptions only gate business accounts (company / contractor) and only
while `subscriptions_enabled` is switched on in admin settings.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, List, Optional

from core.db.base import get_conn, now_iso

SUBSCRIBER_TYPES = ("company", "contractor")
USAGE_COLUMNS = {"contact": "contacts_used", "job": "jobs_used"}


def _subscriptions_enabled(cur) -> bool:
    cur.execute("SELECT subscriptions_enabled FROM admin_settings WHERE id = 1")
    row = cur.fetchone()
    return bool(row and row["subscriptions_enabled"])


def _active_subscription(cur, user_id: int) -> Optional[Dict]:
    cur.execute(
        """
        SELECT s.*, p.name AS plan_name, p.price, p.contact_limit, p.job_limit, p.duration_days
        FROM user_subscriptions s
        JOIN subscription_plans p ON p.id = s.plan_id
        WHERE s.user_id = ? AND s.status = 'active' AND s.end_date > ?
        ORDER BY s.end_date DESC, s.id DESC
        LIMIT 1
        """,
        (user_id, now_iso()),
    )
    row = cur.fetchone()
    return dict(row) if row else None


def _user_type(cur, user_id: int) -> Optional[str]:
    cur.execute("SELECT user_type FROM users WHERE id = ?", (user_id,))
    row = cur.fetchone()
    return row["user_type"] if row else None


def get_subscription_plans(user_type: str | None = None) -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    if user_type:
        cur.execute(
            "SELECT * FROM subscription_plans WHERE active = 1 AND user_type = ? ORDER BY price ASC, id ASC",
            (user_type,),
        )
    else:
        cur.execute("SELECT * FROM subscription_plans WHERE active = 1 ORDER BY user_type, price ASC, id ASC")
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def get_plan(plan_id: int) -> Optional[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("SELECT * FROM subscription_plans WHERE id = ?", (plan_id,))
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def create_user_subscription(user_id: int, plan_id: int) -> Dict:
    """
    Start a plan now, ending after its duration_days. Any current active
    subscription is cancelled so a user holds at most one.
    """
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("SELECT * FROM subscription_plans WHERE id = ? AND active = 1", (plan_id,))
    plan = cur.fetchone()
    if not plan:
        conn.close()
        raise ValueError("Plan not found")

    start = datetime.utcnow()
    end = start + timedelta(days=int(plan["duration_days"]))
    now = start.isoformat(timespec="seconds")
    cur.execute(
        "UPDATE user_subscriptions SET status = 'cancelled', updated_at = ? WHERE user_id = ? AND status = 'active'",
        (now, user_id),
    )
    cur.execute(
        """
        INSERT INTO user_subscriptions (user_id, plan_id, status, start_date, end_date, created_at, updated_at)
        VALUES (?, ?, 'active', ?, ?, ?, ?)
        RETURNING *
        """,
        (user_id, plan_id, now, end.isoformat(timespec="seconds"), now, now),
    )
    row = dict(cur.fetchone())
    conn.commit()
    conn.close()
    return row


def get_user_active_subscription(user_id: int) -> Optional[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    sub = _active_subscription(cur, user_id)
    conn.close()
    return sub


def can_user_contact_professional(user_id: int) -> Dict:
    """
    Verdict for the enquiry flow:
    {can_contact, reason, contacts_used, contacts_limit}.
    """
    conn = get_conn()
    cur = conn.cursor()
    try:
        user_type = _user_type(cur, user_id)
        if user_type is None:
            return {"can_contact": False, "reason": "user_not_found", "contacts_used": 0, "contacts_limit": 0}
        if not _subscriptions_enabled(cur):
            return {"can_contact": True, "reason": "subscriptions_disabled", "contacts_used": 0, "contacts_limit": 0}
        if user_type == "admin":
            return {"can_contact": True, "reason": "admin", "contacts_used": 0, "contacts_limit": 0}
        if user_type not in SUBSCRIBER_TYPES:
            return {"can_contact": False, "reason": "invalid_user_type", "contacts_used": 0, "contacts_limit": 0}

        sub = _active_subscription(cur, user_id)
        if not sub:
            return {"can_contact": False, "reason": "no_subscription", "contacts_used": 0, "contacts_limit": 0}

        used, limit = int(sub["contacts_used"]), int(sub["contact_limit"])
        if used >= limit:
            return {"can_contact": False, "reason": "contact_limit_exceeded", "contacts_used": used, "contacts_limit": limit}
        return {"can_contact": True, "reason": "subscription_valid", "contacts_used": used, "contacts_limit": limit}
    finally:
        conn.close()


def can_user_post_job(user_id: int) -> Dict:
    """{can_post, reason, jobs_used, job_limit}; homeowners always post free tasks."""
    conn = get_conn()
    cur = conn.cursor()
    try:
        user_type = _user_type(cur, user_id)
        if user_type is None:
            return {"can_post": False, "reason": "user_not_found", "jobs_used": 0, "job_limit": 0}
        if user_type in ("homeowner", "admin"):
            return {"can_post": True, "reason": user_type, "jobs_used": 0, "job_limit": 0}
        if user_type not in SUBSCRIBER_TYPES:
            return {"can_post": False, "reason": "invalid_user_type", "jobs_used": 0, "job_limit": 0}
        if not _subscriptions_enabled(cur):
            return {"can_post": True, "reason": "subscriptions_disabled", "jobs_used": 0, "job_limit": 0}

        sub = _active_subscription(cur, user_id)
        if not sub:
            return {"can_post": False, "reason": "no_subscription", "jobs_used": 0, "job_limit": 0}
        used, limit = int(sub["jobs_used"]), int(sub["job_limit"])
        if used >= limit:
            return {"can_post": False, "reason": "job_limit_exceeded", "jobs_used": used, "job_limit": limit}
        return {"can_post": True, "reason": "subscription_valid", "jobs_used": used, "job_limit": limit}
    finally:
        conn.close()


def increment_subscription_usage(user_id: int, usage_type: str = "contact") -> bool:
    """Bump the usage counter on the active subscription. False when there is none."""
    column = USAGE_COLUMNS.get(usage_type)
    if column is None:
        raise ValueError(f"Unknown usage type: {usage_type}")

    conn = get_conn()
    cur = conn.cursor()
    sub = _active_subscription(cur, user_id)
    if not sub:
        conn.close()
        return False
    cur.execute(
        f"UPDATE user_subscriptions SET {column} = {column} + 1, updated_at = ? WHERE id = ?",
        (now_iso(), sub["id"]),
    )
    conn.commit()
    conn.close()
    return True


def expire_old_subscriptions() -> int:
    conn = get_conn()
    cur = conn.cursor()
    now = now_iso()
    cur.execute(
        "UPDATE user_subscriptions SET status = 'expired', updated_at = ? WHERE status = 'active' AND end_date <= ?",
        (now, now),
    )
    count = cur.rowcount
    conn.commit()
    conn.close()
    return count


def list_user_subscriptions(limit: int = 200) -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT s.*, p.name AS plan_name, p.price, u.email
        FROM user_subscriptions s
        JOIN subscription_plans p ON p.id = s.plan_id
        JOIN users u ON u.id = s.user_id
        ORDER BY s.created_at DESC, s.id DESC
        LIMIT ?
        """,
        (int(limit),),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def is_premium(user: Optional[Dict], subscription: Optional[Dict]) -> bool:
    """Paid or 'premium'-named plan on a business account."""
    if not user or user.get("user_type") not in SUBSCRIBER_TYPES or not subscription:
        return False
    name = (subscription.get("plan_name") or "").lower()
    return "premium" in name or float(subscription.get("price") or 0) > 0


__all__ = [
    "SUBSCRIBER_TYPES",
    "get_subscription_plans",
    "get_plan",
    "create_user_subscription",
    "get_user_active_subscription",
    "can_user_contact_professional",
    "can_user_post_job",
    "increment_subscription_usage",
    "expire_old_subscriptions",
    "list_user_subscriptions",
    "is_premium",
]
