"""
Reviews, reports and blocks.
"""
from core.db.moderation.reviews_store import (
    can_user_review,
    flag_review,
    get_review,
    get_review_stats,
    get_reviews_for_user,
    submit_review,
    update_review,
)
from core.db.moderation.reports_store import (
    REPORT_REASONS,
    REPORT_STATUSES,
    block_user,
    is_blocked,
    list_reports,
    report_user,
    resolve_report,
    unblock_user,
)

__all__ = [
    "can_user_review",
    "flag_review",
    "get_review",
    "get_review_stats",
    "get_reviews_for_user",
    "submit_review",
    "update_review",
    "REPORT_REASONS",
    "REPORT_STATUSES",
    "block_user",
    "is_blocked",
    "list_reports",
    "report_user",
    "resolve_report",
    "unblock_user",
]
