"""
Professional, company and homeowner profiles plus the directory queries.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, List, Optional

from core.db.base import get_conn, now_iso
from core.geo import bounding_box, location_prefix

ACTIVELY_LOOKING_DAYS = 30

_PROFESSIONAL_FIELDS = (
    "first_name",
    "last_name",
    "nickname",
    "title",
    "bio",
    "skills",
    "spoken_languages",
    "location",
    "latitude",
    "longitude",
    "is_self_employed",
    "profile_visible",
)
_COMPANY_FIELDS = (
    "company_name",
    "industry",
    "description",
    "services",
    "spoken_languages",
    "service_24_7",
    "website",
    "location",
    "latitude",
    "longitude",
)
_HOMEOWNER_FIELDS = ("first_name", "last_name", "location", "latitude", "longitude")


def _upsert(table: str, allowed: tuple, user_id: int, data: Dict) -> int:
    fields = [f for f in allowed if f in data]
    values = [data[f] for f in fields]
    now = now_iso()
    cols = ", ".join(["user_id", *fields, "created_at", "updated_at"])
    marks = ", ".join(["?"] * (len(fields) + 3))
    updates = ", ".join([f"{f} = EXCLUDED.{f}" for f in fields] + ["updated_at = EXCLUDED.updated_at"])

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"""
        INSERT INTO {table} ({cols}) VALUES ({marks})
        ON CONFLICT (user_id) DO UPDATE SET {updates}
        RETURNING id
        """,
        (user_id, *values, now, now),
    )
    row = cur.fetchone()
    conn.commit()
    conn.close()
    return int(row["id"])


def _get_by_user(table: str, user_id: int) -> Optional[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(f"SELECT * FROM {table} WHERE user_id = ?", (user_id,))
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def upsert_professional_profile(user_id: int, data: Dict) -> int:
    return _upsert("professional_profiles", _PROFESSIONAL_FIELDS, user_id, data)


def get_professional_profile(user_id: int) -> Optional[Dict]:
    return _get_by_user("professional_profiles", user_id)


def upsert_company_profile(user_id: int, data: Dict) -> int:
    return _upsert("company_profiles", _COMPANY_FIELDS, user_id, data)


def get_company_profile(user_id: int) -> Optional[Dict]:
    return _get_by_user("company_profiles", user_id)


def upsert_homeowner_profile(user_id: int, data: Dict) -> int:
    return _upsert("homeowner_profiles", _HOMEOWNER_FIELDS, user_id, data)


def get_homeowner_profile(user_id: int) -> Optional[Dict]:
    return _get_by_user("homeowner_profiles", user_id)


def set_actively_looking(user_id: int, enabled: bool, days: int = ACTIVELY_LOOKING_DAYS) -> None:
    until = (datetime.utcnow() + timedelta(days=days)).isoformat(timespec="seconds") if enabled else None
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "UPDATE professional_profiles SET actively_looking=?, actively_looking_until=?, updated_at=? WHERE user_id=?",
        (1 if enabled else 0, until, now_iso(), user_id),
    )
    conn.commit()
    conn.close()


def expire_actively_looking() -> int:
    """Clear the actively-looking badge once its paid/free period ends."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        UPDATE professional_profiles
        SET actively_looking=0, actively_looking_until=NULL
        WHERE actively_looking=1 AND actively_looking_until IS NOT NULL AND actively_looking_until < ?
        """,
        (now_iso(),),
    )
    count = cur.rowcount
    conn.commit()
    conn.close()
    return count


def _list_member(column: str) -> str:
    """One entry of a comma-separated column equals the parameter, ignoring case and padding."""
    return f"lower(btrim(CAST(? AS text))) IN (SELECT lower(btrim(item)) FROM unnest(string_to_array(COALESCE({column}, ''), ',')) AS item)"


def _location_clauses(lat, lng, radius_miles, location, table_alias: str):
    clauses: List[str] = []
    params: List = []
    if lat is not None and lng is not None:
        box = bounding_box(lat, lng, radius_miles)
        clauses.append(f"{table_alias}.latitude BETWEEN ? AND ?")
        clauses.append(f"{table_alias}.longitude BETWEEN ? AND ?")
        params.extend([box.min_lat, box.max_lat, box.min_lng, box.max_lng])
    elif location_prefix(location):
        clauses.append(f"{table_alias}.location ILIKE ?")
        params.append(f"%{location_prefix(location)}%")
    return clauses, params


def search_professionals(
    lat: float | None = None,
    lng: float | None = None,
    radius_miles: float = 10,
    location: str | None = None,
    self_employed: bool = False,
    language: str | None = None,
    skill: str | None = None,
    actively_looking: bool = False,
    limit: int = 200,
) -> List[Dict]:
    clauses = [
        "u.user_type IN ('professional', 'contractor')",
        "u.active = 1",
        "u.banned = 0",
        "p.profile_visible = 1",
    ]
    params: List = []
    loc_clauses, loc_params = _location_clauses(lat, lng, radius_miles, location, "p")
    clauses.extend(loc_clauses)
    params.extend(loc_params)
    if self_employed:
        clauses.append("p.is_self_employed = 1")
    if actively_looking:
        clauses.append("p.actively_looking = 1")
    if language:
        clauses.append(_list_member("p.spoken_languages"))
        params.append(language)
    if skill:
        clauses.append(_list_member("p.skills"))
        params.append(skill)
    params.append(int(limit))

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT p.*, u.email, u.user_type
        FROM professional_profiles p
        JOIN users u ON u.id = p.user_id
        WHERE {" AND ".join(clauses)}
        ORDER BY p.created_at DESC, p.id DESC
        LIMIT ?
        """,
        params,
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def search_companies(
    lat: float | None = None,
    lng: float | None = None,
    radius_miles: float = 10,
    location: str | None = None,
    language: str | None = None,
    service_24_7: bool = False,
    limit: int = 200,
) -> List[Dict]:
    clauses = ["u.active = 1", "u.banned = 0"]
    params: List = []
    loc_clauses, loc_params = _location_clauses(lat, lng, radius_miles, location, "c")
    clauses.extend(loc_clauses)
    params.extend(loc_params)
    if language:
        clauses.append(_list_member("c.spoken_languages"))
        params.append(language)
    if service_24_7:
        clauses.append("c.service_24_7 = 1")
    params.append(int(limit))

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT c.*, u.email, u.user_type
        FROM company_profiles c
        JOIN users u ON u.id = c.user_id
        WHERE {" AND ".join(clauses)}
        ORDER BY c.created_at DESC, c.id DESC
        LIMIT ?
        """,
        params,
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


__all__ = [
    "ACTIVELY_LOOKING_DAYS",
    "upsert_professional_profile",
    "get_professional_profile",
    "upsert_company_profile",
    "get_company_profile",
    "upsert_homeowner_profile",
    "get_homeowner_profile",
    "set_actively_looking",
    "expire_actively_looking",
    "search_professionals",
    "search_companies",
]
