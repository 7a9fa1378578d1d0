"""
One CV document per professional, kept as JSON.
"""
from __future__ import annotations

import json
from typing import Dict, Optional

from core.db.base import get_conn, now_iso


def save_cv(user_id: int, cv_data: Dict) -> int:
    now = now_iso()
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO professional_cvs (user_id, cv_data, created_at, updated_at) VALUES (?, ?, ?, ?)
        ON CONFLICT (user_id) DO UPDATE SET cv_data = EXCLUDED.cv_data, updated_at = EXCLUDED.updated_at
        RETURNING id
        """,
        (user_id, json.dumps(cv_data), now, now),
    )
    cv_id = int(cur.fetchone()["id"])
    conn.commit()
    conn.close()
    return cv_id


def get_cv(user_id: int) -> Optional[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("SELECT cv_data FROM professional_cvs WHERE user_id = ?", (user_id,))
    row = cur.fetchone()
    conn.close()
    return json.loads(row["cv_data"]) if row else None


__all__ = ["save_cv", "get_cv"]
