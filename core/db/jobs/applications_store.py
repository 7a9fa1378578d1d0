"""
Job applications.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from core.db.base import get_conn, now_iso

APPLICATION_STATUSES = ("pending", "reviewed", "interview", "accepted", "rejected")


def create_application(job_id: int, professional_id: int, cover_letter: str | None = None) -> Optional[int]:
    """
    Apply to a job once. Returns the new id, or None if this professional
    already applied (the UNIQUE(job_id, professional_id) constraint holds).
    """
    now = now_iso()
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO job_applications (job_id, professional_id, cover_letter, status, created_at, updated_at)
        VALUES (?, ?, ?, 'pending', ?, ?)
        ON CONFLICT (job_id, professional_id) DO NOTHING
        RETURNING id
        """,
        (job_id, professional_id, cover_letter, now, now),
    )
    row = cur.fetchone()
    if row:
        cur.execute("UPDATE jobs SET applications_count = applications_count + 1 WHERE id = ?", (job_id,))
    conn.commit()
    conn.close()
    return int(row["id"]) if row else None


def get_application(application_id: int) -> Optional[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT a.*, j.owner_id, j.title AS job_title
        FROM job_applications a JOIN jobs j ON j.id = a.job_id
        WHERE a.id = ?
        """,
        (application_id,),
    )
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def list_applications_for_job(job_id: int) -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT a.*, u.email AS professional_email,
               p.first_name, p.last_name, p.title AS professional_title
        FROM job_applications a
        JOIN users u ON u.id = a.professional_id
        LEFT JOIN professional_profiles p ON p.user_id = a.professional_id
        WHERE a.job_id = ?
        ORDER BY a.created_at DESC, a.id DESC
        """,
        (job_id,),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def list_applications_for_professional(professional_id: int) -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT a.*, j.title AS job_title, j.location AS job_location, j.is_active AS job_is_active
        FROM job_applications a JOIN jobs j ON j.id = a.job_id
        WHERE a.professional_id = ?
        ORDER BY a.created_at DESC, a.id DESC
        """,
        (professional_id,),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def update_application_status(application_id: int, owner_id: int, status: str) -> bool:
    """Only the owner of the job may move an application along."""
    if status not in APPLICATION_STATUSES:
        raise ValueError(f"Unknown application status: {status}")
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        UPDATE job_applications SET status = ?, updated_at = ?
        WHERE id = ? AND job_id IN (SELECT id FROM jobs WHERE owner_id = ?)
        """,
        (status, now_iso(), application_id, owner_id),
    )
    updated = cur.rowcount > 0
    conn.commit()
    conn.close()
    return updated


__all__ = [
    "APPLICATION_STATUSES",
    "create_application",
    "get_application",
    "list_applications_for_job",
    "list_applications_for_professional",
    "update_application_status",
]
