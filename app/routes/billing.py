import logging

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from app.auth_utils import require_user
from app.enquiry import format_fee
from app.layout import e, render_page
from app.security import attach_csrf_cookie, csrf_field, issue_csrf_token, validate_csrf
from core.database import (
    SUBSCRIBER_TYPES,
    create_user_subscription,
    get_admin_settings,
    get_plan,
    get_subscription_plans,
    get_user_active_subscription,
    is_premium,
)

router = APIRouter()
log = logging.getLogger("billing")


@router.get("/billing", response_class=HTMLResponse)
def billing_page(request: Request):
    user, redirect = require_user(request)
    if redirect:
        return redirect
    if user.get("user_type") not in SUBSCRIBER_TYPES:
        body = '<div class="card"><p>Plans are only needed by companies and contractors.</p></div>'
        return render_page("Billing", body, user=user)

    settings = get_admin_settings()
    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    current = get_user_active_subscription(user["id"])
    if current:
        badge = ' <span class="badge">Premium</span>' if is_premium(user, current) else ""
        current_html = f"""
        <p>Current plan: <strong>{e(current['plan_name'])}</strong>{badge} until {e(current['end_date'][:10])}</p>
        <p class="muted">Contacts {current['contacts_used']}/{current['contact_limit']} &middot;
          Jobs {current['jobs_used']}/{current['job_limit']}</p>
        """
    else:
        current_html = "<p>You have no active plan.</p>"

    if not settings["subscriptions_enabled"]:
        current_html += (
            f'<p class="muted">Plans are not required right now. '
            f"Each new contact costs £{format_fee(settings['enquiry_fee'])}.</p>"
        )

    cards = ""
    for plan in get_subscription_plans(user["user_type"]):
        price = "Free" if not plan["price"] else f"£{format_fee(plan['price'])} / {plan['duration_days']} days"
        is_current = bool(current) and current["plan_id"] == plan["id"]
        action = '<p class="ok">Your current plan</p>' if is_current else f"""
          <form method="post" action="/billing/subscribe">
            <input type="hidden" name="plan_id" value="{plan['id']}" />
            {csrf_field(csrf_token)}
            <button type="submit">Choose {e(plan['name'])}</button>
          </form>
        """
        cards += f"""
        <div class="card">
          <h3>{e(plan['name'])}</h3>
          <p>{e(plan.get('description'))}</p>
          <p><strong>{price}</strong></p>
          <p class="muted">{plan['contact_limit']} contacts &middot; {plan['job_limit']} job posts</p>
          {action}
        </div>
        """

    body = f'<div class="card"><h2>Subscription</h2>{current_html}</div>{cards}'
    resp = render_page("Billing", body, user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/billing/subscribe")
def subscribe(request: Request, plan_id: int = Form(...), csrf_token: str = Form("")):
    user, redirect = require_user(request)
    if redirect:
        return redirect
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Invalid or missing CSRF token.", status_code=403)

    plan = get_plan(plan_id)
    if not plan or plan["user_type"] != user.get("user_type"):
        return HTMLResponse("Plan not found", status_code=404)
    try:
        sub = create_user_subscription(user["id"], plan_id)
    except ValueError:
        return HTMLResponse("Plan not found", status_code=404)
    log.info("User %s subscribed to plan %s (subscription %s)", user["id"], plan["name"], sub["id"])
    return RedirectResponse(url="/billing", status_code=303)
