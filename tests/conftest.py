import os

import pytest

from app import security


@pytest.fixture(autouse=True)
def _fresh_rate_limits():
    security.reset_rate_limits()
    yield
    security.reset_rate_limits()


def _truncate_all():
    from core.db.base import get_conn
    from core.db.schema import ALL_TABLES

    conn = get_conn()
    cur = conn.cursor()
    cur.execute("TRUNCATE " + ", ".join(ALL_TABLES) + " RESTART IDENTITY CASCADE")
    conn.commit()
    conn.close()


@pytest.fixture
def db():
    """Clean Postgres schema with default settings and plans. Skips without DATABASE_URL."""
    if not os.getenv("DATABASE_URL"):
        pytest.skip("DATABASE_URL must be set for Postgres-only tests.")

    from core.db.schema import init_db, seed_admin_settings, seed_subscription_plans

    init_db()
    _truncate_all()
    seed_admin_settings()
    seed_subscription_plans()
    yield
    _truncate_all()
