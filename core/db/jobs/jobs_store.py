"""
Job and task listings.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, List, Optional

from core.db.base import get_conn, now_iso
from core.geo import DEFAULT_RADIUS_MILES, bounding_box, location_prefix
from core.salary import salary_ranges_overlap

WORK_LOCATIONS = ("in-person", "hybrid", "remote")
RECRUITMENT_TIMELINES = {
    "3_days": 3,
    "7_days": 7,
    "2_weeks": 14,
    "3_weeks": 21,
    "4_weeks": 28,
}
DEFAULT_TIMELINE = "7_days"

_EDITABLE_FIELDS = (
    "title",
    "description",
    "requirements",
    "job_type",
    "experience_level",
    "work_location",
    "location",
    "latitude",
    "longitude",
    "salary_min",
    "salary_max",
    "salary_period",
    "skills_required",
)


def compute_expiry(timeline: str | None, start: datetime | None = None) -> str:
    days = RECRUITMENT_TIMELINES.get(timeline or DEFAULT_TIMELINE, RECRUITMENT_TIMELINES[DEFAULT_TIMELINE])
    start = start or datetime.utcnow()
    return (start + timedelta(days=days)).isoformat(timespec="seconds")


def create_job(owner_id: int, data: Dict, is_tradespeople_job: bool = False) -> int:
    timeline = data.get("recruitment_timeline") or DEFAULT_TIMELINE
    if timeline not in RECRUITMENT_TIMELINES:
        raise ValueError(f"Unknown recruitment timeline: {timeline}")
    fields = [f for f in _EDITABLE_FIELDS if f in data]
    now = now_iso()

    cols = ", ".join(["owner_id", *fields, "is_tradespeople_job", "recruitment_timeline", "expires_at", "created_at", "updated_at"])
    marks = ", ".join(["?"] * (len(fields) + 6))
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"INSERT INTO jobs ({cols}) VALUES ({marks}) RETURNING id",
        (
            owner_id,
            *[data[f] for f in fields],
            1 if is_tradespeople_job else 0,
            timeline,
            compute_expiry(timeline),
            now,
            now,
        ),
    )
    row = cur.fetchone()
    conn.commit()
    conn.close()
    return int(row["id"])


def update_job(job_id: int, owner_id: int, data: Dict) -> bool:
    """Update an owned job. Returns False when the job is missing or not owned."""
    fields = [f for f in _EDITABLE_FIELDS if f in data]
    if not fields:
        return False
    assignments = ", ".join(f"{f} = ?" for f in fields)
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"UPDATE jobs SET {assignments}, updated_at = ? WHERE id = ? AND owner_id = ?",
        (*[data[f] for f in fields], now_iso(), job_id, owner_id),
    )
    updated = cur.rowcount > 0
    conn.commit()
    conn.close()
    return updated


def get_job(job_id: int) -> Optional[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT j.*, u.email AS owner_email, u.user_type AS owner_type,
               c.company_name
        FROM jobs j
        JOIN users u ON u.id = j.owner_id
        LEFT JOIN company_profiles c ON c.user_id = j.owner_id
        WHERE j.id = ?
        """,
        (job_id,),
    )
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def is_job_open(job: Optional[Dict], now: str | None = None) -> bool:
    """Active and not past expires_at, whether or not the expiry pass has run yet."""
    if not job or not job.get("is_active"):
        return False
    expires_at = job.get("expires_at")
    return not expires_at or expires_at > (now or now_iso())


def list_jobs_for_owner(owner_id: int) -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "SELECT * FROM jobs WHERE owner_id = ? ORDER BY created_at DESC, id DESC",
        (owner_id,),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def list_all_jobs(limit: int = 200) -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT j.*, u.email AS owner_email
        FROM jobs j JOIN users u ON u.id = j.owner_id
        ORDER BY j.created_at DESC, j.id DESC
        LIMIT ?
        """,
        (int(limit),),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def search_jobs(
    search: str | None = None,
    lat: float | None = None,
    lng: float | None = None,
    radius_miles: float = DEFAULT_RADIUS_MILES,
    location: str | None = None,
    tradespeople: bool = False,
    work_location: str | None = None,
    posted_within_days: int | None = None,
    salary_min: float | None = None,
    salary_max: float | None = None,
    salary_period: str = "per_year",
    limit: int = 200,
) -> List[Dict]:
    """
    Open, unexpired listings. Location filters are pushed down to SQL as a
    bounding box (lat/lng given) or a `%first part%` match on the location text.
    Salary overlap is checked after the fetch since periods differ per row.
    """
    clauses = [
        "j.is_active = 1",
        "(j.expires_at IS NULL OR j.expires_at > ?)",
        "j.is_tradespeople_job = ?",
    ]
    params: List = [now_iso(), 1 if tradespeople else 0]

    term = (search or "").strip()
    if term:
        clauses.append("(j.title ILIKE ? OR j.description ILIKE ?)")
        params.extend([f"%{term}%", f"%{term}%"])

    if lat is not None and lng is not None:
        box = bounding_box(lat, lng, radius_miles)
        clauses.append("j.latitude BETWEEN ? AND ?")
        clauses.append("j.longitude BETWEEN ? AND ?")
        params.extend([box.min_lat, box.max_lat, box.min_lng, box.max_lng])
    elif location_prefix(location):
        clauses.append("j.location ILIKE ?")
        params.append(f"%{location_prefix(location)}%")

    if work_location:
        clauses.append("j.work_location = ?")
        params.append(work_location)

    if posted_within_days:
        cutoff = (datetime.utcnow() - timedelta(days=int(posted_within_days))).isoformat(timespec="seconds")
        clauses.append("j.created_at >= ?")
        params.append(cutoff)

    params.append(int(limit))
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT j.*, c.company_name
        FROM jobs j
        LEFT JOIN company_profiles c ON c.user_id = j.owner_id
        WHERE {" AND ".join(clauses)}
        ORDER BY j.created_at DESC, j.id DESC
        LIMIT ?
        """,
        params,
    )
    rows = [dict(r) for r in cur.fetchall()]
    conn.close()

    if salary_min is None and salary_max is None:
        return rows
    return filter_by_salary(rows, salary_min, salary_max, salary_period)


def filter_by_salary(jobs: List[Dict], salary_min, salary_max, salary_period: str) -> List[Dict]:
    search_min = salary_min if salary_min is not None else 0
    search_max = salary_max if salary_max is not None else float("inf")
    matched = []
    for job in jobs:
        if job.get("salary_min") is None and job.get("salary_max") is None:
            continue
        job_min = job.get("salary_min") if job.get("salary_min") is not None else job.get("salary_max")
        job_max = job.get("salary_max") if job.get("salary_max") is not None else job.get("salary_min")
        if salary_ranges_overlap(search_min, search_max, salary_period, job_min, job_max, job.get("salary_period") or "per_year"):
            matched.append(job)
    return matched


def extend_job(job_id: int, owner_id: int, timeline: str) -> bool:
    """
    Re-open an owned job for another recruitment period counted from now.
    Extensions are free; the timeline must be one of RECRUITMENT_TIMELINES.
    """
    if timeline not in RECRUITMENT_TIMELINES:
        return False
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        UPDATE jobs
        SET recruitment_timeline = ?, expires_at = ?, is_active = 1, expiration_notified = 0, updated_at = ?
        WHERE id = ? AND owner_id = ?
        """,
        (timeline, compute_expiry(timeline), now_iso(), job_id, owner_id),
    )
    updated = cur.rowcount > 0
    conn.commit()
    conn.close()
    return updated


def deactivate_job(job_id: int, owner_id: int | None = None) -> bool:
    """Close a job. owner_id=None is the admin path (no ownership check)."""
    conn = get_conn()
    cur = conn.cursor()
    if owner_id is None:
        cur.execute("UPDATE jobs SET is_active = 0, updated_at = ? WHERE id = ?", (now_iso(), job_id))
    else:
        cur.execute(
            "UPDATE jobs SET is_active = 0, updated_at = ? WHERE id = ? AND owner_id = ?",
            (now_iso(), job_id, owner_id),
        )
    updated = cur.rowcount > 0
    conn.commit()
    conn.close()
    return updated


def increment_job_views(job_id: int) -> None:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("UPDATE jobs SET views_count = views_count + 1 WHERE id = ?", (job_id,))
    conn.commit()
    conn.close()


def count_jobs() -> Dict[str, int]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT COUNT(*) AS total,
               COALESCE(SUM(CASE WHEN is_active = 1 THEN 1 ELSE 0 END), 0) AS active
        FROM jobs
        """
    )
    row = cur.fetchone()
    conn.close()
    return {"total": int(row["total"]), "active": int(row["active"])}


__all__ = [
    "WORK_LOCATIONS",
    "RECRUITMENT_TIMELINES",
    "DEFAULT_TIMELINE",
    "compute_expiry",
    "create_job",
    "update_job",
    "get_job",
    "list_jobs_for_owner",
    "list_all_jobs",
    "search_jobs",
    "filter_by_salary",
    "extend_job",
    "deactivate_job",
    "increment_job_views",
    "count_jobs",
]
