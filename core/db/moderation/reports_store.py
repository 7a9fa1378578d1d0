"""
User reports and blocks.
"""
from __future__ import annotations

from typing import Dict, List

from core.db.base import get_conn, now_iso

REPORT_REASONS = ("spam", "harassment", "inappropriate", "fraud", "other")
REPORT_STATUSES = ("pending", "resolved", "dismissed")


def report_user(reporter_id: int, reported_user_id: int, reason: str, details: str | None = None) -> int:
    if reporter_id == reported_user_id:
        raise ValueError("You cannot report yourself")
    if reason not in REPORT_REASONS:
        raise ValueError(f"Unknown report reason: {reason}")
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO user_reports (reporter_id, reported_user_id, reason, details, status, created_at)
        VALUES (?, ?, ?, ?, 'pending', ?)
        RETURNING id
        """,
        (reporter_id, reported_user_id, reason, (details or "").strip() or None, now_iso()),
    )
    report_id = int(cur.fetchone()["id"])
    conn.commit()
    conn.close()
    return report_id


def list_reports(status: str | None = "pending", limit: int = 200) -> List[Dict]:
    sql = """
        SELECT r.*, rep.email AS reporter_email, tgt.email AS reported_email, tgt.banned AS reported_banned
        FROM user_reports r
        JOIN users rep ON rep.id = r.reporter_id
        JOIN users tgt ON tgt.id = r.reported_user_id
    """
    params: list = []
    if status:
        sql += " WHERE r.status = ?"
        params.append(status)
    sql += " ORDER BY r.created_at DESC, r.id DESC LIMIT ?"
    params.append(int(limit))

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(sql, params)
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def resolve_report(report_id: int, status: str = "resolved") -> bool:
    if status not in ("resolved", "dismissed"):
        raise ValueError(f"Cannot close a report as {status}")
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "UPDATE user_reports SET status = ?, resolved_at = ? WHERE id = ? AND status = 'pending'",
        (status, now_iso(), report_id),
    )
    updated = cur.rowcount > 0
    conn.commit()
    conn.close()
    return updated


def block_user(blocker_id: int, blocked_id: int) -> None:
    if blocker_id == blocked_id:
        raise ValueError("You cannot block yourself")
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO blocked_users (blocker_id, blocked_id, created_at) VALUES (?, ?, ?)
        ON CONFLICT (blocker_id, blocked_id) DO NOTHING
        """,
        (blocker_id, blocked_id, now_iso()),
    )
    conn.commit()
    conn.close()


def unblock_user(blocker_id: int, blocked_id: int) -> None:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("DELETE FROM blocked_users WHERE blocker_id = ? AND blocked_id = ?", (blocker_id, blocked_id))
    conn.commit()
    conn.close()


def is_blocked(user_a: int, user_b: int) -> bool:
    """True when either user has blocked the other."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT 1 FROM blocked_users
        WHERE (blocker_id = ? AND blocked_id = ?) OR (blocker_id = ? AND blocked_id = ?)
        LIMIT 1
        """,
        (user_a, user_b, user_b, user_a),
    )
    row = cur.fetchone()
    conn.close()
    return row is not None


__all__ = [
    "REPORT_REASONS",
    "REPORT_STATUSES",
    "report_user",
    "list_reports",
    "resolve_report",
    "block_user",
    "unblock_user",
    "is_blocked",
]
