import logging

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from app.auth_utils import get_current_user, require_user
from app.layout import e, render_errors, render_map, render_page
from app.security import attach_csrf_cookie, csrf_field, issue_csrf_token, validate_csrf
from app.validation import validate_job_basics
from core.database import (
    APPLICATION_STATUSES,
    DEFAULT_TIMELINE,
    RECRUITMENT_TIMELINES,
    can_user_post_job,
    create_application,
    create_job,
    deactivate_job,
    extend_job,
    get_application,
    get_job,
    increment_job_views,
    increment_subscription_usage,
    is_job_open,
    is_job_saved,
    list_applications_for_job,
    list_saved_jobs,
    queue_notification,
    save_job,
    unsave_job,
    update_application_status,
    update_job,
)
from core.geo import is_valid_location_for_mapping, parse_address
from core.salary import PERIODS, format_salary, is_reasonable_salary

router = APIRouter()
log = logging.getLogger("jobs")

POSTER_TYPES = ("company", "homeowner", "admin")
APPLICANT_TYPES = ("professional", "contractor")
TIMELINE_LABELS = {
    "3_days": "3 days",
    "7_days": "7 days",
    "2_weeks": "2 weeks",
    "3_weeks": "3 weeks",
    "4_weeks": "4 weeks",
}


def _number(value):
    value = (value or "").strip() if isinstance(value, str) else value
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def job_form_data(form: dict) -> dict:
    """Normalise submitted job fields into the column names the store expects."""
    data = {
        "title": (form.get("title") or "").strip(),
        "description": (form.get("description") or "").strip() or None,
        "requirements": (form.get("requirements") or "").strip() or None,
        "job_type": (form.get("job_type") or "").strip() or None,
        "experience_level": (form.get("experience_level") or "").strip() or None,
        "work_location": (form.get("work_location") or "").strip(),
        "location": (form.get("location") or "").strip() or None,
        "latitude": _number(form.get("latitude")),
        "longitude": _number(form.get("longitude")),
        "salary_min": _number(form.get("salary_min")),
        "salary_max": _number(form.get("salary_max")),
        "salary_period": form.get("salary_period") if form.get("salary_period") in PERIODS else "per_year",
        "skills_required": (form.get("skills_required") or "").strip() or None,
    }
    if data["work_location"] == "remote":
        data["latitude"] = data["longitude"] = None
    elif data["location"] and (data["latitude"] is None or data["longitude"] is None):
        parsed = parse_address(data["location"])
        if is_valid_location_for_mapping(parsed):
            data["latitude"], data["longitude"] = parsed["latitude"], parsed["longitude"]
    return data


def _extra_errors(data: dict) -> dict:
    errors = {}
    low, high = data.get("salary_min"), data.get("salary_max")
    if low is not None and high is not None and low > high:
        errors["salary"] = "Minimum pay cannot be more than maximum pay"
    for amount in (low, high):
        if amount is not None and not is_reasonable_salary(amount, data["salary_period"]):
            errors["salary"] = "Pay looks out of range for the chosen period"
            break
    return errors


def _job_form(action: str, csrf_token: str, values: dict, errors: dict, noun: str, show_timeline: bool) -> str:
    def opt(options, chosen):
        return "".join(f'<option value="{v}"{" selected" if v == chosen else ""}>{label}</option>' for v, label in options)

    location_opts = opt([("", "Choose..."), ("in-person", "In person"), ("hybrid", "Hybrid"), ("remote", "Remote")], values.get("work_location") or "")
    period_opts = opt([(p, p.replace("_", " ")) for p in PERIODS], values.get("salary_period") or "per_year")
    timeline_html = ""
    if show_timeline:
        timeline_opts = opt(TIMELINE_LABELS.items(), values.get("recruitment_timeline") or DEFAULT_TIMELINE)
        timeline_html = f"<label>Keep open for</label><select name='recruitment_timeline'>{timeline_opts}</select>"
    return f"""
    <div class="card form-card">
      {render_errors(errors)}
      <form method="post" action="{action}">
        <label>{noun.title()} title</label>
        <input type="text" name="title" maxlength="120" value="{e(values.get('title'))}" />
        <label>Location type</label>
        <select name="work_location">{location_opts}</select>
        <label>Location</label>
        <input type="text" name="location" maxlength="200" value="{e(values.get('location'))}" placeholder="Street, Town, Country" />
        <input type="hidden" name="latitude" value="{e(values.get('latitude'))}" />
        <input type="hidden" name="longitude" value="{e(values.get('longitude'))}" />
        <label>Description</label>
        <textarea name="description" rows="6">{e(values.get('description'))}</textarea>
        <label>Requirements</label>
        <textarea name="requirements" rows="3">{e(values.get('requirements'))}</textarea>
        <label>Skills (comma separated)</label>
        <input type="text" name="skills_required" value="{e(values.get('skills_required'))}" />
        <label>Pay from</label>
        <input type="number" step="0.01" min="0" name="salary_min" value="{e(values.get('salary_min'))}" />
        <label>Pay to</label>
        <input type="number" step="0.01" min="0" name="salary_max" value="{e(values.get('salary_max'))}" />
        <label>Pay period</label>
        <select name="salary_period">{period_opts}</select>
        {timeline_html}
        {csrf_field(csrf_token)}
        <button type="submit">Save {noun}</button>
      </form>
    </div>
    """


def _noun(user: dict) -> str:
    return "task" if user.get("user_type") == "homeowner" else "job"


@router.get("/jobs/new", response_class=HTMLResponse)
def new_job_form(request: Request):
    user, redirect = require_user(request)
    if redirect:
        return redirect
    if user.get("user_type") not in POSTER_TYPES:
        return HTMLResponse("Only companies and homeowners can post.", status_code=403)

    verdict = can_user_post_job(user["id"])
    if not verdict["can_post"]:
        body = f"""
        <div class="card form-card">
          <p class="error">You have used {verdict['jobs_used']} of {verdict['job_limit']} job posts on your plan.</p>
          <p><a href="/billing">Upgrade your subscription</a> to post more.</p>
        </div>
        """
        return render_page("Post a job", body, user=user)

    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    noun = _noun(user)
    resp = render_page(f"Post a {noun}", _job_form("/jobs/new", csrf_token, {}, {}, noun, True), user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/jobs/new", response_class=HTMLResponse)
async def create_job_submit(request: Request):
    user, redirect = require_user(request)
    if redirect:
        return redirect
    if user.get("user_type") not in POSTER_TYPES:
        return HTMLResponse("Only companies and homeowners can post.", status_code=403)

    form = dict(await request.form())
    csrf_token = form.get("csrf_token") or ""
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Invalid or missing CSRF token.", status_code=403)

    noun = _noun(user)
    errors = validate_job_basics(form)
    data = job_form_data(form)
    errors.update(_extra_errors(data))
    timeline = form.get("recruitment_timeline") or DEFAULT_TIMELINE
    if timeline not in RECRUITMENT_TIMELINES:
        errors["recruitment_timeline"] = "Choose how long to keep the listing open"
    if errors:
        return render_page(f"Post a {noun}", _job_form("/jobs/new", csrf_token, form, errors, noun, True), user=user, status_code=400)

    verdict = can_user_post_job(user["id"])
    if not verdict["can_post"]:
        return render_page(f"Post a {noun}", _job_form("/jobs/new", csrf_token, form, {"plan": "Your plan's job limit has been reached."}, noun, True), user=user, status_code=403)

    data["recruitment_timeline"] = timeline
    try:
        job_id = create_job(user["id"], data, is_tradespeople_job=user.get("user_type") == "homeowner")
    except Exception as exc:
        log.error("Failed to create job for user_id=%s: %s", user["id"], exc)
        errors = {"submit": "Failed to create job. Please try again."}
        return render_page(f"Post a {noun}", _job_form("/jobs/new", csrf_token, form, errors, noun, True), user=user, status_code=500)

    increment_subscription_usage(user["id"], "job")
    log.info("Created %s %s for user_id=%s", noun, job_id, user["id"])
    return RedirectResponse(url=f"/jobs/{job_id}", status_code=303)


@router.get("/jobs/saved", response_class=HTMLResponse)
def saved_jobs(request: Request):
    user, redirect = require_user(request)
    if redirect:
        return redirect

    rows = ""
    for job in list_saved_jobs(user["id"]):
        rows += f"""
        <tr>
          <td><a href="/jobs/{job['id']}">{e(job['title'])}</a><br><span class="muted">{e(job.get('company_name') or '')}</span></td>
          <td>{e(job.get('location') or 'Remote')}</td>
          <td>{e(format_salary(job.get('salary_min'), job.get('salary_max'), job.get('salary_period')))}</td>
          <td>{e((job.get('saved_at') or '')[:10])}</td>
        </tr>
        """
    if not rows:
        rows = '<tr><td colspan="4" class="muted">Nothing saved yet. Use "Save" on a listing to keep it here.</td></tr>'
    body = f"""
    <div class="card">
      <h2>Saved listings</h2>
      <table><tr><th>Listing</th><th>Location</th><th>Pay</th><th>Saved</th></tr>{rows}</table>
    </div>
    """
    return render_page("Saved listings", body, user=user)


@router.get("/jobs/{job_id}", response_class=HTMLResponse)
def job_detail(request: Request, job_id: int):
    user, _ = get_current_user(request)
    job = get_job(job_id)
    is_owner = bool(user) and job is not None and job["owner_id"] == user["id"]
    if not job or (not is_job_open(job) and not is_owner):
        return render_page("Not found", '<div class="card"><p>This listing is no longer available.</p></div>', user=user, status_code=404)

    if not is_owner:
        increment_job_views(job_id)

    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    salary = format_salary(job.get("salary_min"), job.get("salary_max"), job.get("salary_period"))
    actions = ""
    if is_owner:
        timeline_opts = "".join(f'<option value="{k}">{v}</option>' for k, v in TIMELINE_LABELS.items())
        actions = f"""
        <div class="card">
          <p class="muted">{job.get('views_count') or 0} views &middot; {job.get('applications_count') or 0} applications
            &middot; expires {e((job.get('expires_at') or '')[:10])}</p>
          <p><a href="/jobs/{job_id}/edit">Edit</a> &middot; <a href="/jobs/{job_id}/applications">Applications</a></p>
          <form method="post" action="/jobs/{job_id}/extend">
            {csrf_field(csrf_token)}
            <label>Extend for</label><select name="recruitment_timeline">{timeline_opts}</select>
            <button type="submit">Extend</button>
          </form>
          <form method="post" action="/jobs/{job_id}/close">
            {csrf_field(csrf_token)}<button type="submit" class="danger">Close listing</button>
          </form>
        </div>
        """
    elif user and user.get("user_type") in APPLICANT_TYPES:
        actions = f"""
        <div class="card">
          <form method="post" action="/jobs/{job_id}/apply">
            <label>Cover note</label>
            <textarea name="cover_letter" rows="5" maxlength="5000"></textarea>
            {csrf_field(csrf_token)}
            <button type="submit">Apply</button>
          </form>
          <p class="muted"><a href="/messages/new?to={job['owner_id']}&job_id={job_id}">Ask a question</a></p>
        </div>
        """
    elif not user:
        actions = '<div class="card"><p><a href="/login">Log in</a> to apply.</p></div>'

    if user and not is_owner:
        saved = is_job_saved(user["id"], job_id)
        actions += f"""
        <form method="post" action="/jobs/{job_id}/save">
          {csrf_field(csrf_token)}<input type="hidden" name="saved" value="{0 if saved else 1}" />
          <button type="submit">{"Remove from saved" if saved else "Save"}</button>
        </form>
        """

    map_html = ""
    if job.get("latitude") is not None and job.get("longitude") is not None:
        map_html = render_map((job["latitude"], job["longitude"]), [{**job, "url": ""}], zoom=13)

    body = f"""
    <div class="card">
      <h2>{e(job['title'])}</h2>
      <p class="muted">{e(job.get('company_name') or '')} &middot; {e(job.get('location') or 'Remote')}
        &middot; <span class="badge">{e(job.get('work_location'))}</span></p>
      {f'<p><strong>{e(salary)}</strong></p>' if salary else ''}
      <p>{e(job.get('description'))}</p>
      {f"<h4>Requirements</h4><p>{e(job['requirements'])}</p>" if job.get('requirements') else ''}
      {f"<p class='muted'>Skills: {e(job['skills_required'])}</p>" if job.get('skills_required') else ''}
    </div>
    {map_html}
    {actions}
    """
    resp = render_page(job["title"], body, user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp


def _owned_job(user: dict, job_id: int):
    job = get_job(job_id)
    if not job or job["owner_id"] != user["id"]:
        return None
    return job


@router.get("/jobs/{job_id}/edit", response_class=HTMLResponse)
def edit_job_form(request: Request, job_id: int):
    user, redirect = require_user(request)
    if redirect:
        return redirect
    job = _owned_job(user, job_id)
    if not job:
        return HTMLResponse("Not found", status_code=404)
    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    noun = "task" if job.get("is_tradespeople_job") else "job"
    resp = render_page(f"Edit {noun}", _job_form(f"/jobs/{job_id}/edit", csrf_token, job, {}, noun, False), user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/jobs/{job_id}/edit", response_class=HTMLResponse)
async def edit_job_submit(request: Request, job_id: int):
    user, redirect = require_user(request)
    if redirect:
        return redirect
    form = dict(await request.form())
    csrf_token = form.get("csrf_token") or ""
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Invalid or missing CSRF token.", status_code=403)
    job = _owned_job(user, job_id)
    if not job:
        return HTMLResponse("Not found", status_code=404)

    noun = "task" if job.get("is_tradespeople_job") else "job"
    errors = validate_job_basics(form)
    data = job_form_data(form)
    errors.update(_extra_errors(data))
    if errors:
        return render_page(f"Edit {noun}", _job_form(f"/jobs/{job_id}/edit", csrf_token, form, errors, noun, False), user=user, status_code=400)

    update_job(job_id, user["id"], data)
    return RedirectResponse(url=f"/jobs/{job_id}", status_code=303)


@router.post("/jobs/{job_id}/extend")
def extend_job_submit(request: Request, job_id: int, recruitment_timeline: str = Form(DEFAULT_TIMELINE), csrf_token: str = Form("")):
    user, redirect = require_user(request)
    if redirect:
        return redirect
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Invalid or missing CSRF token.", status_code=403)
    if not extend_job(job_id, user["id"], recruitment_timeline):
        return HTMLResponse("Not found", status_code=404)
    return RedirectResponse(url=f"/jobs/{job_id}", status_code=303)


@router.post("/jobs/{job_id}/close")
def close_job(request: Request, job_id: int, csrf_token: str = Form("")):
    user, redirect = require_user(request)
    if redirect:
        return redirect
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Invalid or missing CSRF token.", status_code=403)
    if not deactivate_job(job_id, owner_id=user["id"]):
        return HTMLResponse("Not found", status_code=404)
    return RedirectResponse(url="/dashboard", status_code=303)


@router.post("/jobs/{job_id}/save")
def toggle_saved_job(request: Request, job_id: int, saved: str = Form("1"), csrf_token: str = Form("")):
    user, redirect = require_user(request)
    if redirect:
        return redirect
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Invalid or missing CSRF token.", status_code=403)

    if saved == "1":
        if not is_job_open(get_job(job_id)):
            return HTMLResponse("Not found", status_code=404)
        save_job(user["id"], job_id)
    else:
        unsave_job(user["id"], job_id)
    return RedirectResponse(url=f"/jobs/{job_id}", status_code=303)


@router.post("/jobs/{job_id}/apply", response_class=HTMLResponse)
def apply_to_job(request: Request, job_id: int, cover_letter: str = Form("", max_length=5000), csrf_token: str = Form("")):
    user, redirect = require_user(request)
    if redirect:
        return redirect
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Invalid or missing CSRF token.", status_code=403)
    if user.get("user_type") not in APPLICANT_TYPES:
        return HTMLResponse("Only professionals can apply.", status_code=403)

    job = get_job(job_id)
    if not is_job_open(job):
        return render_page("Not found", '<div class="card"><p>This listing is no longer available.</p></div>', user=user, status_code=404)

    application_id = create_application(job_id, user["id"], cover_letter.strip() or None)
    if application_id is None:
        message = "You have already applied for this job."
    else:
        message = "Application sent."
        try:
            queue_notification(
                job["owner_id"],
                "new_applications",
                job["owner_email"],
                payload={
                    "job_id": job_id,
                    "job_title": job["title"],
                    "company_name": job.get("company_name"),
                    "application_id": application_id,
                    "view_url": f"/jobs/{job_id}/applications",
                },
                job_id=job_id,
            )
        except Exception as exc:
            log.warning("Could not queue application notice for job %s: %s", job_id, exc)

    body = f'<div class="card"><p>{e(message)}</p><p><a href="/jobs/{job_id}">Back to the listing</a></p></div>'
    return render_page("Apply", body, user=user)


@router.get("/jobs/{job_id}/applications", response_class=HTMLResponse)
def job_applications(request: Request, job_id: int):
    user, redirect = require_user(request)
    if redirect:
        return redirect
    job = _owned_job(user, job_id)
    if not job:
        return HTMLResponse("Not found", status_code=404)

    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    rows = ""
    for app_row in list_applications_for_job(job_id):
        name = f"{app_row.get('first_name') or ''} {app_row.get('last_name') or ''}".strip() or "Applicant"
        options = "".join(
            f'<option value="{s}"{" selected" if s == app_row["status"] else ""}>{s}</option>' for s in APPLICATION_STATUSES
        )
        rows += f"""
        <tr>
          <td><a href="/professionals/{app_row['professional_id']}">{e(name)}</a><br><span class="muted">{e(app_row.get('professional_title'))}</span></td>
          <td>{e(app_row.get('cover_letter'))}</td>
          <td>
            <form method="post" action="/applications/{app_row['id']}/status">
              {csrf_field(csrf_token)}
              <select name="status">{options}</select>
              <button type="submit">Update</button>
            </form>
          </td>
          <td><a href="/messages/new?to={app_row['professional_id']}&job_id={job_id}">Message</a></td>
        </tr>
        """
    if not rows:
        rows = '<tr><td colspan="4" class="muted">No applications yet.</td></tr>'
    body = f"""
    <div class="card">
      <h2>Applications for {e(job['title'])}</h2>
      <table><tr><th>Applicant</th><th>Note</th><th>Status</th><th></th></tr>{rows}</table>
    </div>
    """
    resp = render_page("Applications", body, user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/applications/{application_id}/status")
def change_application_status(request: Request, application_id: int, status: str = Form(...), csrf_token: str = Form("")):
    user, redirect = require_user(request)
    if redirect:
        return redirect
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Invalid or missing CSRF token.", status_code=403)
    if status not in APPLICATION_STATUSES:
        return HTMLResponse("Unknown status", status_code=400)

    application = get_application(application_id)
    if not application or not update_application_status(application_id, user["id"], status):
        return HTMLResponse("Not found", status_code=404)
    return RedirectResponse(url=f"/jobs/{application['job_id']}/applications", status_code=303)
