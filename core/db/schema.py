"""
Schema and seed helpers for Postgres.
"""
from __future__ import annotations

import os

from core.db.base import get_conn, now_iso
from core.db.users import create_user, get_user_by_email, hash_password

# Plans offered when subscriptions are switched on in admin settings.
DEFAULT_PLANS = [
    {"name": "Company Basic", "description": "Contact up to 10 professionals a month.",
     "price": 0.0, "duration_days": 30, "contact_limit": 10, "job_limit": 3, "user_type": "company"},
    {"name": "Company Premium", "description": "Contact up to 100 professionals a month.",
     "price": 49.0, "duration_days": 30, "contact_limit": 100, "job_limit": 25, "user_type": "company"},
    {"name": "Contractor Basic", "description": "Contact up to 5 professionals a month.",
     "price": 0.0, "duration_days": 30, "contact_limit": 5, "job_limit": 2, "user_type": "contractor"},
    {"name": "Contractor Premium", "description": "Contact up to 50 professionals a month.",
     "price": 19.0, "duration_days": 30, "contact_limit": 50, "job_limit": 10, "user_type": "contractor"},
]

_TABLES = [
    """
    CREATE TABLE IF NOT EXISTS users(
        id SERIAL PRIMARY KEY,
        email TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        user_type TEXT NOT NULL DEFAULT 'professional',
        full_name TEXT,
        active INTEGER NOT NULL DEFAULT 1,
        banned INTEGER NOT NULL DEFAULT 0,
        created_at TEXT,
        email_verified_at TEXT,
        last_seen_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sessions(
        id TEXT PRIMARY KEY,
        user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        created_at TEXT NOT NULL,
        last_seen_at TEXT NOT NULL,
        expires_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS password_reset_tokens(
        id SERIAL PRIMARY KEY,
        user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        token TEXT NOT NULL UNIQUE,
        created_at TEXT NOT NULL,
        expires_at TEXT NOT NULL,
        used_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS email_verification_tokens(
        id SERIAL PRIMARY KEY,
        user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        token TEXT NOT NULL UNIQUE,
        created_at TEXT NOT NULL,
        expires_at TEXT NOT NULL,
        used_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS professional_profiles(
        id SERIAL PRIMARY KEY,
        user_id INTEGER NOT NULL UNIQUE REFERENCES users(id) ON DELETE CASCADE,
        first_name TEXT,
        last_name TEXT,
        nickname TEXT,
        title TEXT,
        bio TEXT,
        skills TEXT,
        spoken_languages TEXT,
        location TEXT,
        latitude DOUBLE PRECISION,
        longitude DOUBLE PRECISION,
        is_self_employed INTEGER NOT NULL DEFAULT 0,
        actively_looking INTEGER NOT NULL DEFAULT 0,
        actively_looking_until TEXT,
        profile_visible INTEGER NOT NULL DEFAULT 1,
        created_at TEXT,
        updated_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS company_profiles(
        id SERIAL PRIMARY KEY,
        user_id INTEGER NOT NULL UNIQUE REFERENCES users(id) ON DELETE CASCADE,
        company_name TEXT NOT NULL,
        industry TEXT,
        description TEXT,
        services TEXT,
        spoken_languages TEXT,
        service_24_7 INTEGER NOT NULL DEFAULT 0,
        website TEXT,
        location TEXT,
        latitude DOUBLE PRECISION,
        longitude DOUBLE PRECISION,
        created_at TEXT,
        updated_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS homeowner_profiles(
        id SERIAL PRIMARY KEY,
        user_id INTEGER NOT NULL UNIQUE REFERENCES users(id) ON DELETE CASCADE,
        first_name TEXT,
        last_name TEXT,
        location TEXT,
        latitude DOUBLE PRECISION,
        longitude DOUBLE PRECISION,
        created_at TEXT,
        updated_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS jobs(
        id SERIAL PRIMARY KEY,
        owner_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        title TEXT NOT NULL,
        description TEXT,
        requirements TEXT,
        job_type TEXT,
        experience_level TEXT,
        work_location TEXT NOT NULL,
        location TEXT,
        latitude DOUBLE PRECISION,
        longitude DOUBLE PRECISION,
        salary_min DOUBLE PRECISION,
        salary_max DOUBLE PRECISION,
        salary_period TEXT,
        skills_required TEXT,
        is_active INTEGER NOT NULL DEFAULT 1,
        is_tradespeople_job INTEGER NOT NULL DEFAULT 0,
        recruitment_timeline TEXT,
        expires_at TEXT,
        expiration_notified INTEGER NOT NULL DEFAULT 0,
        applications_count INTEGER NOT NULL DEFAULT 0,
        views_count INTEGER NOT NULL DEFAULT 0,
        created_at TEXT,
        updated_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS job_applications(
        id SERIAL PRIMARY KEY,
        job_id INTEGER NOT NULL REFERENCES jobs(id) ON DELETE CASCADE,
        professional_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        cover_letter TEXT,
        status TEXT NOT NULL DEFAULT 'pending',
        created_at TEXT,
        updated_at TEXT,
        UNIQUE(job_id, professional_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS conversations(
        id SERIAL PRIMARY KEY,
        participant_1 INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        participant_2 INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        job_id INTEGER REFERENCES jobs(id) ON DELETE SET NULL,
        created_at TEXT,
        last_message_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS messages(
        id SERIAL PRIMARY KEY,
        conversation_id INTEGER NOT NULL REFERENCES conversations(id) ON DELETE CASCADE,
        sender_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        recipient_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        job_id INTEGER REFERENCES jobs(id) ON DELETE SET NULL,
        subject TEXT,
        content TEXT NOT NULL,
        message_type TEXT NOT NULL DEFAULT 'direct',
        share_personal_info INTEGER NOT NULL DEFAULT 0,
        is_read INTEGER NOT NULL DEFAULT 0,
        created_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS privacy_permissions(
        id SERIAL PRIMARY KEY,
        owner_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        viewer_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        granted_at TEXT,
        UNIQUE(owner_id, viewer_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS admin_settings(
        id INTEGER PRIMARY KEY DEFAULT 1 CHECK (id = 1),
        professional_actively_looking_enabled INTEGER NOT NULL DEFAULT 1,
        job_posting_free INTEGER NOT NULL DEFAULT 1,
        job_posting_default_price DOUBLE PRECISION NOT NULL DEFAULT 0,
        enquiry_fee DOUBLE PRECISION NOT NULL DEFAULT 5.0,
        actively_looking_price DOUBLE PRECISION NOT NULL DEFAULT 0,
        actively_looking_free INTEGER NOT NULL DEFAULT 1,
        subscriptions_enabled INTEGER NOT NULL DEFAULT 0,
        updated_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS subscription_plans(
        id SERIAL PRIMARY KEY,
        name TEXT NOT NULL,
        description TEXT,
        price DOUBLE PRECISION NOT NULL DEFAULT 0,
        duration_days INTEGER NOT NULL DEFAULT 30,
        contact_limit INTEGER NOT NULL DEFAULT 0,
        job_limit INTEGER NOT NULL DEFAULT 0,
        user_type TEXT NOT NULL,
        active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT,
        UNIQUE(name, user_type)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_subscriptions(
        id SERIAL PRIMARY KEY,
        user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        plan_id INTEGER NOT NULL REFERENCES subscription_plans(id),
        status TEXT NOT NULL DEFAULT 'active',
        start_date TEXT NOT NULL,
        end_date TEXT NOT NULL,
        contacts_used INTEGER NOT NULL DEFAULT 0,
        jobs_used INTEGER NOT NULL DEFAULT 0,
        created_at TEXT,
        updated_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS enquiry_payments(
        id SERIAL PRIMARY KEY,
        company_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        professional_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        amount DOUBLE PRECISION NOT NULL DEFAULT 0,
        payment_status TEXT NOT NULL DEFAULT 'completed',
        payment_method TEXT NOT NULL,
        transaction_id TEXT,
        payment_data TEXT,
        created_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS reviews(
        id SERIAL PRIMARY KEY,
        reviewer_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        reviewee_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        rating INTEGER NOT NULL CHECK (rating BETWEEN 1 AND 5),
        review_text TEXT,
        conversation_id INTEGER REFERENCES conversations(id) ON DELETE SET NULL,
        interaction_verified INTEGER NOT NULL DEFAULT 0,
        is_edited INTEGER NOT NULL DEFAULT 0,
        is_flagged INTEGER NOT NULL DEFAULT 0,
        created_at TEXT,
        updated_at TEXT,
        UNIQUE(reviewer_id, reviewee_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_reports(
        id SERIAL PRIMARY KEY,
        reporter_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        reported_user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        reason TEXT NOT NULL,
        details TEXT,
        status TEXT NOT NULL DEFAULT 'pending',
        created_at TEXT,
        resolved_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS blocked_users(
        id SERIAL PRIMARY KEY,
        blocker_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        blocked_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        created_at TEXT,
        UNIQUE(blocker_id, blocked_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS notification_queue(
        id SERIAL PRIMARY KEY,
        user_id INTEGER REFERENCES users(id) ON DELETE CASCADE,
        notification_type TEXT NOT NULL,
        channel TEXT NOT NULL DEFAULT 'email',
        recipient TEXT NOT NULL,
        subject TEXT,
        payload TEXT,
        job_id INTEGER REFERENCES jobs(id) ON DELETE CASCADE,
        status TEXT NOT NULL DEFAULT 'pending',
        scheduled_for TEXT NOT NULL,
        sent_at TEXT,
        error_message TEXT,
        created_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS notification_history(
        id SERIAL PRIMARY KEY,
        queue_id INTEGER,
        user_id INTEGER REFERENCES users(id) ON DELETE CASCADE,
        notification_type TEXT NOT NULL,
        channel TEXT NOT NULL,
        recipient TEXT,
        subject TEXT,
        sent_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS saved_jobs(
        id SERIAL PRIMARY KEY,
        user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        job_id INTEGER NOT NULL REFERENCES jobs(id) ON DELETE CASCADE,
        saved_at TEXT NOT NULL,
        UNIQUE (user_id, job_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS professional_cvs(
        id SERIAL PRIMARY KEY,
        user_id INTEGER NOT NULL UNIQUE REFERENCES users(id) ON DELETE CASCADE,
        cv_data TEXT NOT NULL,
        created_at TEXT,
        updated_at TEXT
    )
    """,
]

ALL_TABLES = [
    "professional_cvs",
    "saved_jobs",
    "notification_history",
    "notification_queue",
    "blocked_users",
    "user_reports",
    "reviews",
    "enquiry_payments",
    "user_subscriptions",
    "subscription_plans",
    "admin_settings",
    "privacy_permissions",
    "messages",
    "conversations",
    "job_applications",
    "jobs",
    "homeowner_profiles",
    "company_profiles",
    "professional_profiles",
    "email_verification_tokens",
    "password_reset_tokens",
    "sessions",
    "users",
]


def init_db() -> None:
    """Create every table if missing, then seed settings, plans and the admin account."""
    conn = get_conn()
    cur = conn.cursor()
    for ddl in _TABLES:
        cur.execute(ddl)
    conn.commit()
    conn.close()

    seed_admin_settings()
    seed_subscription_plans()
    ensure_admin_from_env()


def seed_admin_settings() -> None:
    """Insert the single admin_settings row with defaults (idempotent)."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "INSERT INTO admin_settings (id, updated_at) VALUES (1, ?) ON CONFLICT (id) DO NOTHING",
        (now_iso(),),
    )
    conn.commit()
    conn.close()


def seed_subscription_plans() -> None:
    """Insert DEFAULT_PLANS into subscription_plans (idempotent)."""
    conn = get_conn()
    cur = conn.cursor()
    now = now_iso()
    for plan in DEFAULT_PLANS:
        cur.execute(
            """
            INSERT INTO subscription_plans
                (name, description, price, duration_days, contact_limit, job_limit, user_type, active, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, 1, ?)
            ON CONFLICT (name, user_type) DO NOTHING
            """,
            (
                plan["name"],
                plan["description"],
                plan["price"],
                plan["duration_days"],
                plan["contact_limit"],
                plan["job_limit"],
                plan["user_type"],
                now,
            ),
        )
    conn.commit()
    conn.close()


def ensure_admin_from_env() -> None:
    """
    Optionally seed/update an admin account from environment variables.
    Set ADMIN_EMAIL and ADMIN_PASSWORD before startup to use.
    """
    admin_email = os.getenv("ADMIN_EMAIL")
    admin_password = os.getenv("ADMIN_PASSWORD")

    if not admin_email or not admin_password:
        return

    existing = get_user_by_email(admin_email)
    if not existing:
        create_user(admin_email, admin_password, user_type="admin", verified=True)
        return

    email = admin_email.strip().lower()
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "UPDATE users SET user_type='admin', password_hash=? WHERE email=?",
        (hash_password(admin_password), email),
    )
    cur.execute(
        "UPDATE users SET email_verified_at = ? WHERE email = ? AND (email_verified_at IS NULL OR email_verified_at = '')",
        (now_iso(), email),
    )
    conn.commit()
    conn.close()


__all__ = [
    "ALL_TABLES",
    "DEFAULT_PLANS",
    "init_db",
    "seed_admin_settings",
    "seed_subscription_plans",
    "ensure_admin_from_env",
]
