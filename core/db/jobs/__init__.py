"""
Jobs, applications and expiry storage re-exports.
"""
from core.db.jobs.jobs_store import (
    DEFAULT_TIMELINE,
    RECRUITMENT_TIMELINES,
    WORK_LOCATIONS,
    compute_expiry,
    count_jobs,
    create_job,
    deactivate_job,
    extend_job,
    filter_by_salary,
    get_job,
    increment_job_views,
    is_job_open,
    list_all_jobs,
    list_jobs_for_owner,
    search_jobs,
    update_job,
)
from core.db.jobs.applications_store import (
    APPLICATION_STATUSES,
    create_application,
    get_application,
    list_applications_for_job,
    list_applications_for_professional,
    update_application_status,
)
from core.db.jobs.expiration import (
    EXPIRING_SOON_DAYS,
    get_expiring_jobs,
    process_job_expirations,
)
from core.db.jobs.saved_store import is_job_saved, list_saved_jobs, save_job, unsave_job

__all__ = [
    "DEFAULT_TIMELINE",
    "RECRUITMENT_TIMELINES",
    "WORK_LOCATIONS",
    "compute_expiry",
    "count_jobs",
    "create_job",
    "deactivate_job",
    "extend_job",
    "filter_by_salary",
    "get_job",
    "increment_job_views",
    "is_job_open",
    "list_all_jobs",
    "list_jobs_for_owner",
    "search_jobs",
    "update_job",
    "APPLICATION_STATUSES",
    "create_application",
    "get_application",
    "list_applications_for_job",
    "list_applications_for_professional",
    "update_application_status",
    "EXPIRING_SOON_DAYS",
    "get_expiring_jobs",
    "process_job_expirations",
    "is_job_saved",
    "list_saved_jobs",
    "save_job",
    "unsave_job",
]
