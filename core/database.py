"""
Single import surface for the storage layer. Routes and the worker import from here.
"""
from core.db.base import get_conn, now_iso
from core.db.schema import ALL_TABLES, DEFAULT_PLANS, init_db
from core.db.users import *  # noqa: F401,F403
from core.db.users import __all__ as _users_all
from core.db.profiles import *  # noqa: F401,F403
from core.db.profiles import __all__ as _profiles_all
from core.db.jobs import *  # noqa: F401,F403
from core.db.jobs import __all__ as _jobs_all
from core.db.messages import *  # noqa: F401,F403
from core.db.messages import __all__ as _messages_all
from core.db.billing import *  # noqa: F401,F403
from core.db.billing import __all__ as _billing_all
from core.db.moderation import *  # noqa: F401,F403
from core.db.moderation import __all__ as _moderation_all
from core.db.notifications import *  # noqa: F401,F403
from core.db.notifications import __all__ as _notifications_all

__all__ = (
    ["get_conn", "now_iso", "ALL_TABLES", "DEFAULT_PLANS", "init_db"]
    + list(_users_all)
    + list(_profiles_all)
    + list(_jobs_all)
    + list(_messages_all)
    + list(_billing_all)
    + list(_moderation_all)
    + list(_notifications_all)
)
