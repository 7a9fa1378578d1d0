from datetime import datetime, timezone

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from app.auth_utils import require_admin
from app.layout import e, render_page
from app.security import attach_csrf_cookie, csrf_field, issue_csrf_token, validate_csrf
from core.database import (
    DEFAULT_SETTINGS,
    USER_TYPES,
    ban_user,
    count_jobs,
    count_online_users,
    count_pending_notifications,
    count_users_by_type,
    deactivate_job,
    get_admin_settings,
    list_all_jobs,
    list_payments,
    list_reports,
    list_user_subscriptions,
    list_users,
    resolve_report,
    total_payments,
    unban_user,
    update_admin_settings,
)

router = APIRouter()


def _format_dt(dt_str: str | None) -> str:
    """Render ISO timestamp as local human-readable string."""
    if not dt_str:
        return ""
    try:
        dt = datetime.fromisoformat(dt_str)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone().strftime("%Y-%m-%d %H:%M")
    except ValueError:
        return dt_str


def _admin_nav() -> str:
    links = [
        ("/admin", "Overview"),
        ("/admin/settings", "Settings"),
        ("/admin/users", "Users"),
        ("/admin/jobs", "Jobs"),
        ("/admin/payments", "Payments"),
        ("/admin/reports", "Reports"),
        ("/admin/subscriptions", "Subscriptions"),
    ]
    return '<p class="muted">' + " &middot; ".join(f'<a href="{href}">{label}</a>' for href, label in links) + "</p>"


def _table(headers, rows_html: str, empty: str) -> str:
    head = "".join(f"<th>{h}</th>" for h in headers)
    if not rows_html:
        rows_html = f'<tr><td colspan="{len(headers)}">{empty}</td></tr>'
    return f"<table><thead><tr>{head}</tr></thead><tbody>{rows_html}</tbody></table>"


@router.get("/admin", response_class=HTMLResponse)
def admin_dashboard(request: Request):
    admin, denied = require_admin(request)
    if denied:
        return denied
    counts = count_users_by_type()
    jobs = count_jobs()
    payments = total_payments()
    stats = "".join(
        f'<div class="stat"><div class="label">{e(label)}</div><div class="value">{e(value)}</div></div>'
        for label, value in [
            *[(f"{t.title()}s", counts.get(t, 0)) for t in USER_TYPES if t != "admin"],
            ("Online now", count_online_users()),
            ("Active jobs", f"{jobs['active']} / {jobs['total']}"),
            ("Payments", f"{payments['count']} (£{payments['total_amount']:.2f})"),
            ("Pending notifications", count_pending_notifications()),
            ("Open reports", len(list_reports("pending"))),
        ]
    )
    body = f"""
    <div class="card">
      <h2>Admin</h2>
      {_admin_nav()}
      <div class="stats">{stats}</div>
    </div>
    """
    return render_page("Admin", body, user=admin)


def _settings_form(settings: dict, csrf_token: str, message: str = "") -> str:
    fields = ""
    for key, default in DEFAULT_SETTINGS.items():
        label = key.replace("_", " ").capitalize()
        if isinstance(default, bool):
            checked = " checked" if settings[key] else ""
            fields += f'<label><input type="checkbox" name="{key}" value="1"{checked} /> {label}</label>'
        else:
            fields += f'<label>{label}</label><input type="number" step="0.01" min="0" name="{key}" value="{settings[key]:.2f}" />'
    return f"""
    <div class="card form-card">
      <h2>Settings</h2>
      {_admin_nav()}
      {message}
      <form method="post" action="/admin/settings">
        {fields}
        {csrf_field(csrf_token)}
        <button type="submit">Save settings</button>
      </form>
    </div>
    """


@router.get("/admin/settings", response_class=HTMLResponse)
def settings_page(request: Request):
    admin, denied = require_admin(request)
    if denied:
        return denied
    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    resp = render_page("Settings", _settings_form(get_admin_settings(), csrf_token), user=admin)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/admin/settings", response_class=HTMLResponse)
async def settings_submit(request: Request):
    admin, denied = require_admin(request)
    if denied:
        return denied
    form = dict(await request.form())
    csrf_token = form.get("csrf_token") or ""
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Invalid or missing CSRF token.", status_code=403)

    updates = {}
    for key, default in DEFAULT_SETTINGS.items():
        if isinstance(default, bool):
            updates[key] = bool(form.get(key))
        elif form.get(key) not in (None, ""):
            updates[key] = form[key]
    try:
        settings = update_admin_settings(updates)
    except ValueError as exc:
        page = _settings_form(get_admin_settings(), csrf_token, f'<p class="error">{e(exc)}</p>')
        return render_page("Settings", page, user=admin, status_code=400)
    return render_page("Settings", _settings_form(settings, csrf_token, '<p class="ok">Settings saved.</p>'), user=admin)


@router.get("/admin/users", response_class=HTMLResponse)
def users_page(request: Request, user_type: str = ""):
    admin, denied = require_admin(request)
    if denied:
        return denied
    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    rows = ""
    for u in list_users(user_type if user_type in USER_TYPES else None):
        if u["user_type"] == "admin":
            action = ""
        else:
            verb = "unban" if u.get("banned") else "ban"
            action = f"""
            <form method="post" action="/admin/users/{u['id']}/{verb}">
              {csrf_field(csrf_token)}<button type="submit">{verb.title()}</button>
            </form>
            """
        status = "banned" if u.get("banned") else ("active" if u.get("active") else "deactivated")
        rows += f"""
        <tr>
          <td>{u['id']}</td>
          <td>{e(u['email'])}</td>
          <td>{e(u['user_type'])}</td>
          <td>{status}</td>
          <td>{_format_dt(u.get('last_seen_at'))}</td>
          <td>{action}</td>
        </tr>
        """
    filters = " &middot; ".join(f'<a href="/admin/users?user_type={t}">{t}</a>' for t in USER_TYPES)
    body = f"""
    <div class="card">
      <h2>Users</h2>
      {_admin_nav()}
      <p class="muted">Filter: <a href="/admin/users">all</a> &middot; {filters}</p>
      {_table(["ID", "Email", "Type", "Status", "Last seen", ""], rows, "No users.")}
    </div>
    """
    resp = render_page("Users", body, user=admin)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/admin/users/{user_id}/ban")
def ban_user_route(request: Request, user_id: int, csrf_token: str = Form("")):
    admin, denied = require_admin(request)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Invalid or missing CSRF token.", status_code=403)
    if user_id == admin["id"]:
        return HTMLResponse("You cannot ban yourself.", status_code=400)
    ban_user(user_id)
    return RedirectResponse(url="/admin/users", status_code=303)


@router.post("/admin/users/{user_id}/unban")
def unban_user_route(request: Request, user_id: int, csrf_token: str = Form("")):
    admin, denied = require_admin(request)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Invalid or missing CSRF token.", status_code=403)
    unban_user(user_id)
    return RedirectResponse(url="/admin/users", status_code=303)


@router.get("/admin/jobs", response_class=HTMLResponse)
def jobs_page(request: Request):
    admin, denied = require_admin(request)
    if denied:
        return denied
    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    rows = ""
    for j in list_all_jobs():
        action = ""
        if j.get("is_active"):
            action = f"""
            <form method="post" action="/admin/jobs/{j['id']}/deactivate">
              {csrf_field(csrf_token)}<button type="submit">Deactivate</button>
            </form>
            """
        rows += f"""
        <tr>
          <td>{j['id']}</td>
          <td><a href="/jobs/{j['id']}">{e(j['title'])}</a>{' <span class="badge">task</span>' if j.get('is_tradespeople_job') else ''}</td>
          <td>{e(j.get('owner_email'))}</td>
          <td>{'open' if j.get('is_active') else 'closed'}</td>
          <td>{_format_dt(j.get('expires_at'))}</td>
          <td>{action}</td>
        </tr>
        """
    body = f"""
    <div class="card">
      <h2>Jobs</h2>
      {_admin_nav()}
      {_table(["ID", "Title", "Owner", "Status", "Expires", ""], rows, "No jobs stored yet.")}
    </div>
    """
    resp = render_page("Jobs", body, user=admin)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/admin/jobs/{job_id}/deactivate")
def deactivate_job_route(request: Request, job_id: int, csrf_token: str = Form("")):
    admin, denied = require_admin(request)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Invalid or missing CSRF token.", status_code=403)
    deactivate_job(job_id)
    return RedirectResponse(url="/admin/jobs", status_code=303)


@router.get("/admin/payments", response_class=HTMLResponse)
def payments_page(request: Request):
    admin, denied = require_admin(request)
    if denied:
        return denied
    totals = total_payments()
    rows = "".join(
        f"""
        <tr>
          <td>{p['id']}</td>
          <td>{e(p.get('company_email'))}</td>
          <td>{e(p.get('professional_email'))}</td>
          <td>£{float(p['amount']):.2f}</td>
          <td>{e(p.get('payment_method'))}</td>
          <td>{e(p.get('payment_status'))}</td>
          <td>{_format_dt(p.get('created_at'))}</td>
        </tr>
        """
        for p in list_payments()
    )
    body = f"""
    <div class="card">
      <h2>Enquiry payments</h2>
      {_admin_nav()}
      <p>{totals['count']} completed, £{totals['total_amount']:.2f} in total.</p>
      {_table(["ID", "From", "To", "Amount", "Method", "Status", "Date"], rows, "No payments yet.")}
    </div>
    """
    return render_page("Payments", body, user=admin)


@router.get("/admin/reports", response_class=HTMLResponse)
def reports_page(request: Request, status: str = "pending"):
    admin, denied = require_admin(request)
    if denied:
        return denied
    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    rows = ""
    for r in list_reports(status or None):
        actions = ""
        if r["status"] == "pending":
            actions = f"""
            <form method="post" action="/admin/reports/{r['id']}/resolve">
              {csrf_field(csrf_token)}
              <label><input type="checkbox" name="ban" value="1" /> Ban user</label>
              <button type="submit" name="outcome" value="resolved">Resolve</button>
              <button type="submit" name="outcome" value="dismissed">Dismiss</button>
            </form>
            """
        rows += f"""
        <tr>
          <td>{r['id']}</td>
          <td>{e(r.get('reporter_email'))}</td>
          <td>{e(r.get('reported_email'))}{' <span class="badge">banned</span>' if r.get('reported_banned') else ''}</td>
          <td>{e(r['reason'])}</td>
          <td>{e(r.get('details'))}</td>
          <td>{_format_dt(r.get('created_at'))}</td>
          <td>{actions}</td>
        </tr>
        """
    body = f"""
    <div class="card">
      <h2>Reported users</h2>
      {_admin_nav()}
      <p class="muted"><a href="/admin/reports?status=pending">Pending</a> &middot;
        <a href="/admin/reports?status=resolved">Resolved</a> &middot;
        <a href="/admin/reports?status=dismissed">Dismissed</a></p>
      {_table(["ID", "Reporter", "Reported", "Reason", "Details", "Date", ""], rows, "No reports.")}
    </div>
    """
    resp = render_page("Reports", body, user=admin)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/admin/reports/{report_id}/resolve")
def resolve_report_route(
    request: Request,
    report_id: int,
    outcome: str = Form("resolved"),
    ban: str = Form(""),
    csrf_token: str = Form(""),
):
    admin, denied = require_admin(request)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Invalid or missing CSRF token.", status_code=403)

    reports = {r["id"]: r for r in list_reports(None)}
    report = reports.get(report_id)
    if not report:
        return HTMLResponse("Not found", status_code=404)
    try:
        resolve_report(report_id, outcome)
    except ValueError as exc:
        return HTMLResponse(str(exc), status_code=400)
    if ban and outcome == "resolved":
        ban_user(report["reported_user_id"])
    return RedirectResponse(url="/admin/reports", status_code=303)


@router.get("/admin/subscriptions", response_class=HTMLResponse)
def subscriptions_page(request: Request):
    admin, denied = require_admin(request)
    if denied:
        return denied
    rows = "".join(
        f"""
        <tr>
          <td>{s['id']}</td>
          <td>{e(s.get('email'))}</td>
          <td>{e(s.get('plan_name'))}</td>
          <td>{e(s['status'])}</td>
          <td>{s.get('contacts_used', 0)} / {s.get('jobs_used', 0)}</td>
          <td>{_format_dt(s.get('end_date'))}</td>
        </tr>
        """
        for s in list_user_subscriptions()
    )
    body = f"""
    <div class="card">
      <h2>Subscriptions</h2>
      {_admin_nav()}
      {_table(["ID", "Email", "Plan", "Status", "Contacts / Jobs used", "Ends"], rows, "No subscriptions.")}
    </div>
    """
    return render_page("Subscriptions", body, user=admin)
