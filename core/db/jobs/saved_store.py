"""
Bookmarked listings. Any signed-in user can save a job or task; the saved
list only shows listings that are still open.
"""
from __future__ import annotations

from typing import Dict, List

from core.db.base import get_conn, now_iso


def save_job(user_id: int, job_id: int) -> bool:
    """True when a new bookmark was stored, False if it already existed."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO saved_jobs (user_id, job_id, saved_at) VALUES (?, ?, ?)
        ON CONFLICT (user_id, job_id) DO NOTHING
        RETURNING id
        """,
        (user_id, job_id, now_iso()),
    )
    created = cur.fetchone() is not None
    conn.commit()
    conn.close()
    return created


def unsave_job(user_id: int, job_id: int) -> bool:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("DELETE FROM saved_jobs WHERE user_id = ? AND job_id = ?", (user_id, job_id))
    removed = cur.rowcount > 0
    conn.commit()
    conn.close()
    return removed


def is_job_saved(user_id: int, job_id: int) -> bool:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("SELECT 1 FROM saved_jobs WHERE user_id = ? AND job_id = ?", (user_id, job_id))
    row = cur.fetchone()
    conn.close()
    return row is not None


def list_saved_jobs(user_id: int) -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT j.*, s.saved_at, c.company_name
        FROM saved_jobs s
        JOIN jobs j ON j.id = s.job_id
        LEFT JOIN company_profiles c ON c.user_id = j.owner_id
        WHERE s.user_id = ?
          AND j.is_active = 1
          AND (j.expires_at IS NULL OR j.expires_at > ?)
        ORDER BY s.saved_at DESC, s.id DESC
        """,
        (user_id, now_iso()),
    )
    rows = [dict(r) for r in cur.fetchall()]
    conn.close()
    return rows


__all__ = [
    "save_job",
    "unsave_job",
    "is_job_saved",
    "list_saved_jobs",
]
