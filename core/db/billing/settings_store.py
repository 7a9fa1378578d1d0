"""
Admin settings: one row, read and written as a whole.
"""
from __future__ import annotations

import json
from typing import Dict

from core.db.base import get_conn, now_iso

DEFAULT_SETTINGS = {
    "professional_actively_looking_enabled": True,
    "job_posting_free": True,
    "job_posting_default_price": 0.0,
    "enquiry_fee": 5.0,
    "actively_looking_price": 0.0,
    "actively_looking_free": True,
    "subscriptions_enabled": False,
}
_BOOL_KEYS = {k for k, v in DEFAULT_SETTINGS.items() if isinstance(v, bool)}
_MONEY_KEYS = {k for k, v in DEFAULT_SETTINGS.items() if isinstance(v, float)}


def _coerce_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _from_row(row) -> Dict:
    settings = dict(DEFAULT_SETTINGS)
    if row:
        for key in _BOOL_KEYS:
            settings[key] = bool(row[key])
        for key in _MONEY_KEYS:
            settings[key] = float(row[key])
    return settings


def get_admin_settings() -> Dict:
    """Current settings, or the defaults when the row has not been seeded yet."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("SELECT * FROM admin_settings WHERE id = 1")
    row = cur.fetchone()
    conn.close()
    return _from_row(row)


def update_admin_settings(settings_json) -> Dict:
    """
    Apply a partial update given as a JSON string or dict and return the new
    settings. Unknown keys and negative prices raise ValueError.
    """
    updates = json.loads(settings_json) if isinstance(settings_json, str) else dict(settings_json)
    unknown = set(updates) - set(DEFAULT_SETTINGS)
    if unknown:
        raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")

    values = {}
    for key, value in updates.items():
        if key in _BOOL_KEYS:
            values[key] = 1 if _coerce_bool(value) else 0
        else:
            amount = float(value)
            if amount < 0:
                raise ValueError(f"{key} cannot be negative")
            values[key] = round(amount, 2)

    conn = get_conn()
    cur = conn.cursor()
    cur.execute("INSERT INTO admin_settings (id, updated_at) VALUES (1, ?) ON CONFLICT (id) DO NOTHING", (now_iso(),))
    if values:
        assignments = ", ".join(f"{k} = ?" for k in values)
        cur.execute(
            f"UPDATE admin_settings SET {assignments}, updated_at = ? WHERE id = 1",
            (*values.values(), now_iso()),
        )
    cur.execute("SELECT * FROM admin_settings WHERE id = 1")
    row = cur.fetchone()
    conn.commit()
    conn.close()
    return _from_row(row)


__all__ = ["DEFAULT_SETTINGS", "get_admin_settings", "update_admin_settings"]
