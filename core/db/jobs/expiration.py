"""
Job expiry sweep.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, List

from core.db.base import get_conn

EXPIRING_SOON_DAYS = 3


def _days_until(expires_at: str, now: datetime) -> int:
    delta = datetime.fromisoformat(expires_at) - now
    return max(0, delta.days + (1 if delta.seconds else 0))


def get_expiring_jobs(days_ahead: int = EXPIRING_SOON_DAYS, owner_id: int | None = None) -> List[Dict]:
    """Active jobs whose expires_at falls within the next `days_ahead` days."""
    now = datetime.utcnow()
    params: List = [now.isoformat(timespec="seconds"), (now + timedelta(days=days_ahead)).isoformat(timespec="seconds")]
    owner_clause = ""
    if owner_id is not None:
        owner_clause = "AND j.owner_id = ?"
        params.append(owner_id)

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT j.id AS job_id, j.title, j.owner_id, j.expires_at, j.expiration_notified,
               u.email AS owner_email, c.company_name
        FROM jobs j
        JOIN users u ON u.id = j.owner_id
        LEFT JOIN company_profiles c ON c.user_id = j.owner_id
        WHERE j.is_active = 1 AND j.expires_at > ? AND j.expires_at <= ? {owner_clause}
        ORDER BY j.expires_at ASC
        """,
        params,
    )
    rows = [dict(r) for r in cur.fetchall()]
    conn.close()
    for row in rows:
        row["days_until_expiration"] = _days_until(row["expires_at"], now)
    return rows


def process_job_expirations(days_ahead: int = EXPIRING_SOON_DAYS) -> Dict:
    """
    Close every active job past expires_at and report what is about to expire.
    Returns {expired_count, expiring_jobs, processed_at}.
    """
    processed_at = datetime.utcnow().isoformat(timespec="seconds")
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        UPDATE jobs SET is_active = 0, updated_at = ?
        WHERE is_active = 1 AND expires_at IS NOT NULL AND expires_at <= ?
        """,
        (processed_at, processed_at),
    )
    expired_count = cur.rowcount
    conn.commit()
    conn.close()

    return {
        "expired_count": expired_count,
        "expiring_jobs": get_expiring_jobs(days_ahead),
        "processed_at": processed_at,
    }


__all__ = [
    "EXPIRING_SOON_DAYS",
    "get_expiring_jobs",
    "process_job_expirations",
]
