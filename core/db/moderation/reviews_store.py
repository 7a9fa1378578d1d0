"""
Ratings and reviews between users.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from core.db.base import get_conn, now_iso


def can_user_review(reviewer_id: int, reviewee_id: int) -> bool:
    """Reviews need a verified interaction: at least one message between the two users."""
    if reviewer_id == reviewee_id:
        return False
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT 1 FROM messages
        WHERE (sender_id = ? AND recipient_id = ?) OR (sender_id = ? AND recipient_id = ?)
        LIMIT 1
        """,
        (reviewer_id, reviewee_id, reviewee_id, reviewer_id),
    )
    row = cur.fetchone()
    conn.close()
    return row is not None


def submit_review(
    reviewer_id: int,
    reviewee_id: int,
    rating: int,
    review_text: str | None = None,
    conversation_id: int | None = None,
) -> int:
    """
    Insert a review, or edit the existing one from the same reviewer (is_edited = 1).
    Returns the review id.
    """
    if reviewer_id == reviewee_id:
        raise ValueError("You cannot review yourself")
    if not 1 <= int(rating) <= 5:
        raise ValueError("Rating must be between 1 and 5 stars")

    now = now_iso()
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO reviews
            (reviewer_id, reviewee_id, rating, review_text, conversation_id, interaction_verified, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT (reviewer_id, reviewee_id) DO UPDATE SET
            rating = EXCLUDED.rating,
            review_text = EXCLUDED.review_text,
            is_edited = 1,
            updated_at = EXCLUDED.updated_at
        RETURNING id
        """,
        (
            reviewer_id,
            reviewee_id,
            int(rating),
            review_text or None,
            conversation_id,
            1 if conversation_id else 0,
            now,
            now,
        ),
    )
    review_id = int(cur.fetchone()["id"])
    conn.commit()
    conn.close()
    return review_id


def update_review(review_id: int, reviewer_id: int, rating: int, review_text: str | None = None) -> bool:
    if not 1 <= int(rating) <= 5:
        raise ValueError("Rating must be between 1 and 5 stars")
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        UPDATE reviews SET rating = ?, review_text = ?, is_edited = 1, updated_at = ?
        WHERE id = ? AND reviewer_id = ?
        """,
        (int(rating), review_text or None, now_iso(), review_id, reviewer_id),
    )
    updated = cur.rowcount > 0
    conn.commit()
    conn.close()
    return updated


def get_review(review_id: int) -> Optional[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("SELECT * FROM reviews WHERE id = ?", (review_id,))
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def get_reviews_for_user(reviewee_id: int) -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT r.id, r.rating, r.review_text, r.created_at, r.updated_at, r.is_edited, r.reviewer_id,
               COALESCE(c.company_name, NULLIF(TRIM(COALESCE(p.first_name, '') || ' ' || COALESCE(p.last_name, '')), ''),
                        'Anonymous User') AS reviewer_name
        FROM reviews r
        LEFT JOIN professional_profiles p ON p.user_id = r.reviewer_id
        LEFT JOIN company_profiles c ON c.user_id = r.reviewer_id
        WHERE r.reviewee_id = ? AND r.is_flagged = 0
        ORDER BY r.created_at DESC, r.id DESC
        """,
        (reviewee_id,),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def get_review_stats(reviewee_id: int) -> Dict:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT COUNT(*) AS total_reviews, AVG(rating) AS average_rating
        FROM reviews WHERE reviewee_id = ? AND is_flagged = 0
        """,
        (reviewee_id,),
    )
    row = cur.fetchone()
    conn.close()
    total = int(row["total_reviews"]) if row else 0
    average = round(float(row["average_rating"]), 2) if total else None
    return {"total_reviews": total, "average_rating": average}


def flag_review(review_id: int) -> bool:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("UPDATE reviews SET is_flagged = 1, updated_at = ? WHERE id = ?", (now_iso(), review_id))
    updated = cur.rowcount > 0
    conn.commit()
    conn.close()
    return updated


__all__ = [
    "can_user_review",
    "submit_review",
    "update_review",
    "get_review",
    "get_reviews_for_user",
    "get_review_stats",
    "flag_review",
]
