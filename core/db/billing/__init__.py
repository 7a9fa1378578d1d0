"""
Admin settings, subscriptions and enquiry payments.
"""
from core.db.billing.settings_store import (
    DEFAULT_SETTINGS,
    get_admin_settings,
    update_admin_settings,
)
from core.db.billing.subscription_store import (
    SUBSCRIBER_TYPES,
    can_user_contact_professional,
    can_user_post_job,
    create_user_subscription,
    expire_old_subscriptions,
    get_plan,
    get_subscription_plans,
    get_user_active_subscription,
    increment_subscription_usage,
    is_premium,
    list_user_subscriptions,
)
from core.db.billing.payments_store import (
    find_enquiry_payment,
    has_contact_access,
    list_payments,
    process_enquiry_payment,
    total_payments,
)

__all__ = [
    "DEFAULT_SETTINGS",
    "get_admin_settings",
    "update_admin_settings",
    "SUBSCRIBER_TYPES",
    "can_user_contact_professional",
    "can_user_post_job",
    "create_user_subscription",
    "expire_old_subscriptions",
    "get_plan",
    "get_subscription_plans",
    "get_user_active_subscription",
    "increment_subscription_usage",
    "is_premium",
    "list_user_subscriptions",
    "find_enquiry_payment",
    "has_contact_access",
    "list_payments",
    "process_enquiry_payment",
    "total_payments",
]
