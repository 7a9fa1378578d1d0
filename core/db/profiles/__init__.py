"""
Profile storage re-exports.
"""
from core.db.profiles.profile_store import (
    ACTIVELY_LOOKING_DAYS,
    expire_actively_looking,
    get_company_profile,
    get_homeowner_profile,
    get_professional_profile,
    search_companies,
    search_professionals,
    set_actively_looking,
    upsert_company_profile,
    upsert_homeowner_profile,
    upsert_professional_profile,
)
from core.db.profiles.cv_store import get_cv, save_cv

__all__ = [
    "ACTIVELY_LOOKING_DAYS",
    "expire_actively_looking",
    "get_company_profile",
    "get_cv",
    "get_homeowner_profile",
    "get_professional_profile",
    "save_cv",
    "search_companies",
    "search_professionals",
    "set_actively_looking",
    "upsert_company_profile",
    "upsert_homeowner_profile",
    "upsert_professional_profile",
]
