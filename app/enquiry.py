"""
Contact gating: the steps a company (or contractor) goes through before it
may message a professional.

    1. check eligibility            (can_user_contact_professional)
    2. stop with a message, or record the enquiry (process_enquiry_payment)
    3. bump the contact counter     (increment_subscription_usage)
    4. call back so messaging unlocks

A pair that already has a completed enquiry skips straight to step 4 and is
not counted again.

The enquiry fee from admin settings picks the flow: 0 is the "free" flow,
anything above 0 is the "paid" flow with a simulated gateway.
"""
from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Callable, Dict, NamedTuple, Optional

from core.database import (
    can_user_contact_professional,
    find_enquiry_payment,
    get_admin_settings,
    increment_subscription_usage,
    process_enquiry_payment,
)

log = logging.getLogger("enquiry")

AUTH_REQUIRED = "Authentication required."
CHECK_FAILED = "Failed to verify contact permissions."
PAYMENT_FAILED = "Failed to process payment. Please try again."
UNEXPECTED_ERROR = "An unexpected error occurred. Please try again."
NOT_AUTHORIZED = "You are not authorized to contact professionals at this time."
NO_SUBSCRIPTION = (
    "You need an active subscription to contact professionals. "
    "Please visit the Subscription page to purchase a plan."
)


class EnquiryOutcome(NamedTuple):
    ok: bool
    error: Optional[str]
    payment_id: Optional[int]
    flow: Optional[str]


def enquiry_flow(fee) -> str:
    return "paid" if fee and float(fee) > 0 else "free"


def format_fee(fee) -> str:
    value = float(fee or 0)
    return f"{value:.0f}" if value.is_integer() else f"{value:.2f}"


def contact_button_label(fee) -> str:
    if enquiry_flow(fee) == "free":
        return "Send Message"
    return f"Pay £{format_fee(fee)} & Contact"


def denial_message(verdict: Dict) -> str:
    reason = verdict.get("reason")
    if reason == "no_subscription":
        return NO_SUBSCRIPTION
    if reason == "contact_limit_exceeded":
        return (
            f"You have reached your professional contact limit "
            f"({verdict.get('contacts_used', 0)}/{verdict.get('contacts_limit', 0)}). "
            "Please upgrade your subscription or wait for your current plan to renew."
        )
    return NOT_AUTHORIZED


def _payment_details(flow: str, fee: float):
    """(amount, method, transaction_id, payment_data) for the chosen flow."""
    timestamp = datetime.utcnow().isoformat(timespec="seconds") + "Z"
    if flow == "free":
        return 0, "free", None, {"type": "free_enquiry", "timestamp": timestamp}
    amount = round(float(fee), 2)
    data = {
        "type": "paid_enquiry",
        "amount": amount,
        "currency": "GBP",
        "timestamp": timestamp,
        "payment_gateway": "simulated",
    }
    return amount, "simulated_payment", f"txn_{int(time.time() * 1000)}", data


def contact_professional(
    user: Optional[Dict],
    professional_id: int,
    fee: float | None = None,
    on_complete: Callable[[int], None] | None = None,
) -> EnquiryOutcome:
    """
    Run the gating steps for `user` contacting `professional_id`. `fee`
    defaults to the admin enquiry fee. Errors never escape; they come back
    as the outcome's user-facing message.
    """
    if not user:
        return EnquiryOutcome(False, AUTH_REQUIRED, None, None)

    flow = None
    try:
        if fee is None:
            fee = get_admin_settings()["enquiry_fee"]
        flow = enquiry_flow(fee)

        existing = find_enquiry_payment(user["id"], professional_id)
        if existing is not None:
            log.info("Enquiry %s already unlocks %s -> %s", existing, user["id"], professional_id)
            if on_complete is not None:
                on_complete(existing)
            return EnquiryOutcome(True, None, existing, flow)

        try:
            verdict = can_user_contact_professional(user["id"])
        except Exception as exc:
            log.error("Error checking contact permission for user %s: %s", user["id"], exc)
            return EnquiryOutcome(False, CHECK_FAILED, None, flow)

        if not verdict or not verdict.get("can_contact"):
            return EnquiryOutcome(False, denial_message(verdict or {}), None, flow)

        amount, method, transaction_id, payment_data = _payment_details(flow, fee)
        try:
            payment_id = process_enquiry_payment(
                user["id"],
                professional_id,
                amount,
                method,
                transaction_id=transaction_id,
                payment_data=payment_data,
            )
        except Exception as exc:
            log.error("Error processing %s enquiry %s -> %s: %s", flow, user["id"], professional_id, exc)
            return EnquiryOutcome(False, PAYMENT_FAILED, None, flow)

        try:
            increment_subscription_usage(user["id"], "contact")
        except Exception as exc:
            # The enquiry is already recorded and stands.
            log.warning("Could not count contact for user %s: %s", user["id"], exc)
        log.info("Enquiry %s recorded (%s) for %s -> %s", payment_id, flow, user["id"], professional_id)

        if on_complete is not None:
            on_complete(payment_id)
        return EnquiryOutcome(True, None, payment_id, flow)
    except Exception:
        log.exception("Exception processing enquiry for user %s", user.get("id"))
        return EnquiryOutcome(False, UNEXPECTED_ERROR, None, flow)
