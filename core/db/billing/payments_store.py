"""
Enquiry payments: the record that unlocks messaging between a company and a professional.
"""
from __future__ import annotations

import json
from typing import Dict, List, Optional

from core.db.base import get_conn, now_iso


def _completed_payment_id(cur, company_id: int, professional_id: int) -> Optional[int]:
    cur.execute(
        """
        SELECT id FROM enquiry_payments
        WHERE company_id = ? AND professional_id = ? AND payment_status = 'completed'
        ORDER BY id LIMIT 1
        """,
        (company_id, professional_id),
    )
    row = cur.fetchone()
    return int(row["id"]) if row else None


def find_enquiry_payment(company_id: int, professional_id: int) -> Optional[int]:
    """Id of the completed enquiry that already unlocks this pair, or None."""
    conn = get_conn()
    cur = conn.cursor()
    payment_id = _completed_payment_id(cur, company_id, professional_id)
    conn.close()
    return payment_id


def process_enquiry_payment(
    company_id: int,
    professional_id: int,
    payment_amount: float,
    payment_method: str,
    transaction_id: Optional[str] = None,
    payment_data: Optional[Dict] = None,
) -> int:
    """
    Record a completed enquiry (free or paid) and return its id. A pair that
    already has a completed payment gets the existing id back, so retries
    never charge twice.
    """
    if company_id == professional_id:
        raise ValueError("Cannot enquire about your own profile")
    if payment_amount < 0:
        raise ValueError("payment_amount cannot be negative")

    conn = get_conn()
    cur = conn.cursor()
    existing = _completed_payment_id(cur, company_id, professional_id)
    if existing is not None:
        conn.close()
        return existing

    cur.execute(
        """
        INSERT INTO enquiry_payments
            (company_id, professional_id, amount, payment_status, payment_method, transaction_id, payment_data, created_at)
        VALUES (?, ?, ?, 'completed', ?, ?, ?, ?)
        RETURNING id
        """,
        (
            company_id,
            professional_id,
            round(float(payment_amount), 2),
            payment_method,
            transaction_id,
            json.dumps(payment_data or {}),
            now_iso(),
        ),
    )
    payment_id = int(cur.fetchone()["id"])
    conn.commit()
    conn.close()
    return payment_id


def has_contact_access(company_id: int, professional_id: int) -> bool:
    return find_enquiry_payment(company_id, professional_id) is not None


def list_payments(limit: int = 200) -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT p.*, c.email AS company_email, pr.email AS professional_email
        FROM enquiry_payments p
        JOIN users c ON c.id = p.company_id
        JOIN users pr ON pr.id = p.professional_id
        ORDER BY p.created_at DESC, p.id DESC
        LIMIT ?
        """,
        (int(limit),),
    )
    rows = [dict(r) for r in cur.fetchall()]
    conn.close()
    for row in rows:
        row["payment_data"] = json.loads(row["payment_data"]) if row.get("payment_data") else {}
    return rows


def total_payments() -> Dict:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT COUNT(*) AS count, COALESCE(SUM(amount), 0) AS total_amount
        FROM enquiry_payments WHERE payment_status = 'completed'
        """
    )
    row = cur.fetchone()
    conn.close()
    return {"count": int(row["count"]), "total_amount": float(row["total_amount"])}


__all__ = [
    "find_enquiry_payment",
    "process_enquiry_payment",
    "has_contact_access",
    "list_payments",
    "total_payments",
]
