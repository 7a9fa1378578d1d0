from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from app.auth_utils import require_user
from app.layout import e, render_page
from app.security import attach_csrf_cookie, csrf_field, issue_csrf_token
from core.database import (
    count_unread,
    get_admin_settings,
    get_expiring_jobs,
    get_professional_profile,
    get_user_active_subscription,
    is_premium,
    list_applications_for_professional,
    list_jobs_for_owner,
)
from core.salary import format_salary

router = APIRouter()


def _stat(label: str, value) -> str:
    return f'<div class="stat"><div class="label">{e(label)}</div><div class="value">{e(value)}</div></div>'


def _owner_section(user: dict, noun: str) -> str:
    jobs = list_jobs_for_owner(user["id"])
    expiring = {j["job_id"]: j for j in get_expiring_jobs(owner_id=user["id"])}
    rows = ""
    for job in jobs:
        status = "Open" if job.get("is_active") else "Closed"
        warn = ""
        if job["id"] in expiring:
            days = expiring[job["id"]]["days_until_expiration"]
            warn = f' <span class="badge">expires in {days} day{"" if days == 1 else "s"}</span>'
        rows += f"""
        <tr>
          <td><a href="/jobs/{job['id']}">{e(job['title'])}</a>{warn}</td>
          <td>{status}</td>
          <td>{e(format_salary(job.get('salary_min'), job.get('salary_max'), job.get('salary_period')))}</td>
          <td><a href="/jobs/{job['id']}/applications">{job.get('applications_count') or 0}</a></td>
          <td>{e((job.get('expires_at') or '')[:10])}</td>
        </tr>
        """
    if not rows:
        rows = f'<tr><td colspan="5" class="muted">No {noun}s yet. <a href="/jobs/new">Post your first {noun}</a>.</td></tr>'
    return f"""
    <div class="card">
      <h3>Your {noun}s</h3>
      <p><a href="/jobs/new">Post a new {noun}</a></p>
      <table>
        <tr><th>Title</th><th>Status</th><th>Pay</th><th>Applications</th><th>Expires</th></tr>
        {rows}
      </table>
    </div>
    """


def _subscription_section(user: dict) -> str:
    settings = get_admin_settings()
    if not settings["subscriptions_enabled"]:
        return f"""
        <div class="card">
          <h3>Contacting professionals</h3>
          <p class="muted">Each new contact costs an enquiry fee of £{settings['enquiry_fee']:.2f}.</p>
        </div>
        """
    sub = get_user_active_subscription(user["id"])
    if not sub:
        return '<div class="card"><h3>Subscription</h3><p>No active plan. <a href="/billing">Choose a plan</a>.</p></div>'
    premium = '<span class="badge">Premium</span>' if is_premium(user, sub) else ""
    return f"""
    <div class="card">
      <h3>Subscription {premium}</h3>
      <p>{e(sub['plan_name'])} until {e(sub['end_date'][:10])}</p>
      <p class="muted">Contacts used: {sub['contacts_used']}/{sub['contact_limit']} &middot; Jobs posted: {sub['jobs_used']}/{sub['job_limit']}</p>
    </div>
    """


def _professional_section(user: dict, csrf_token: str) -> str:
    profile = get_professional_profile(user["id"])
    settings = get_admin_settings()
    if not profile:
        profile_html = '<p>You have not set up your profile yet. <a href="/profile">Create it now</a> so employers can find you.</p>'
    else:
        visible = "visible" if profile.get("profile_visible") else "hidden"
        profile_html = f'<p>{e(profile.get("title") or "No headline")} &middot; profile is {visible}. <a href="/profile">Edit</a></p>'

    looking_html = ""
    if profile and settings["professional_actively_looking_enabled"]:
        if profile.get("actively_looking"):
            until = (profile.get("actively_looking_until") or "")[:10]
            looking_html = f"""
            <form method="post" action="/profile/actively-looking">
              {csrf_field(csrf_token)}<input type="hidden" name="enabled" value="0" />
              <p class="ok">You are marked as actively looking until {e(until)}.</p>
              <button type="submit">Stop showing as actively looking</button>
            </form>
            """
        else:
            looking_html = f"""
            <form method="post" action="/profile/actively-looking">
              {csrf_field(csrf_token)}<input type="hidden" name="enabled" value="1" />
              <button type="submit">Show me as actively looking</button>
            </form>
            """

    apps = list_applications_for_professional(user["id"])
    rows = "".join(
        f"<tr><td><a href='/jobs/{a['job_id']}'>{e(a.get('job_title'))}</a></td><td>{e(a['status'])}</td><td>{e((a.get('created_at') or '')[:10])}</td></tr>"
        for a in apps
    ) or '<tr><td colspan="3" class="muted">No applications yet. <a href="/search">Find jobs</a>.</td></tr>'
    return f"""
    <div class="card"><h3>Your profile</h3>{profile_html}{looking_html}
      <p class="muted"><a href="/cv/builder">Build your CV</a> &middot; <a href="/jobs/saved">Saved listings</a></p>
    </div>
    <div class="card">
      <h3>Your applications</h3>
      <table><tr><th>Job</th><th>Status</th><th>Applied</th></tr>{rows}</table>
    </div>
    """


@router.get("/dashboard", response_class=HTMLResponse)
def dashboard(request: Request):
    user, redirect = require_user(request)
    if redirect:
        return redirect
    if user.get("user_type") == "admin":
        return RedirectResponse(url="/admin", status_code=303)
    if not user.get("active"):
        return RedirectResponse(url="/account", status_code=303)

    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    user_type = user.get("user_type")
    stats = _stat("Unread messages", count_unread(user["id"]))

    if user_type == "company":
        sections = _subscription_section(user) + _owner_section(user, "job")
    elif user_type == "homeowner":
        sections = _owner_section(user, "task")
    elif user_type == "contractor":
        sections = _subscription_section(user) + _professional_section(user, csrf_token)
    else:
        sections = _professional_section(user, csrf_token)

    body = f"""
    <div class="stats">{stats}</div>
    {sections}
    <p class="muted"><a href="/account">Account settings</a></p>
    """
    resp = render_page("Dashboard", body, user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp
