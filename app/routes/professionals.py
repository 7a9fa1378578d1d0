import logging

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from app.auth_utils import get_current_user, require_user
from app.enquiry import contact_button_label, contact_professional
from app.layout import e, render_errors, render_map, render_page
from app.security import allow_request, attach_csrf_cookie, client_ip, csrf_field, issue_csrf_token, validate_csrf
from core.database import (
    REPORT_REASONS,
    block_user,
    can_user_review,
    check_privacy_permission,
    get_admin_settings,
    get_company_profile,
    get_homeowner_profile,
    get_professional_profile,
    get_review_stats,
    get_reviews_for_user,
    get_user_by_id,
    has_contact_access,
    is_blocked,
    report_user,
    set_actively_looking,
    unblock_user,
    upsert_company_profile,
    upsert_homeowner_profile,
    upsert_professional_profile,
)
from core.geo import is_valid_location_for_mapping, parse_address
from core.search import split_list

router = APIRouter()
log = logging.getLogger("profiles")

CONTACTING_TYPES = ("company", "contractor", "admin")


def _coords(location, lat, lng):
    """Form lat/lng when present, otherwise the approximate point for the address."""
    try:
        if lat not in (None, "") and lng not in (None, ""):
            return float(lat), float(lng)
    except (TypeError, ValueError):
        pass
    parsed = parse_address(location or "")
    if is_valid_location_for_mapping(parsed):
        return parsed["latitude"], parsed["longitude"]
    return None, None


def _profile_url(user_id: int) -> str:
    if get_company_profile(user_id):
        return f"/companies/{user_id}"
    return f"/professionals/{user_id}"


def _checkbox(name: str, label: str, checked) -> str:
    return f'<label><input type="checkbox" name="{name}" value="1"{" checked" if checked else ""} /> {label}</label>'


def _text(name: str, label: str, value, textarea: bool = False) -> str:
    if textarea:
        return f'<label>{label}</label><textarea name="{name}" rows="4">{e(value)}</textarea>'
    return f'<label>{label}</label><input type="text" name="{name}" value="{e(value)}" />'


def _location_inputs(profile: dict) -> str:
    return (
        _text("location", "Location", profile.get("location"))
        + f'<input type="hidden" name="latitude" value="{e(profile.get("latitude"))}" />'
        + f'<input type="hidden" name="longitude" value="{e(profile.get("longitude"))}" />'
    )


def _profile_fields(user_type: str, profile: dict) -> str:
    if user_type == "company":
        return "".join(
            [
                _text("company_name", "Company name", profile.get("company_name")),
                _text("industry", "Industry", profile.get("industry")),
                _text("description", "About the company", profile.get("description"), textarea=True),
                _text("services", "Services (comma separated)", profile.get("services")),
                _text("spoken_languages", "Languages (comma separated)", profile.get("spoken_languages")),
                _text("website", "Website", profile.get("website")),
                _location_inputs(profile),
                _checkbox("service_24_7", "We offer a 24/7 service", profile.get("service_24_7")),
            ]
        )
    if user_type == "homeowner":
        return "".join(
            [
                _text("first_name", "First name", profile.get("first_name")),
                _text("last_name", "Last name", profile.get("last_name")),
                _location_inputs(profile),
            ]
        )
    self_employed = profile.get("is_self_employed") if profile else user_type == "contractor"
    visible = profile.get("profile_visible", 1) if profile else 1
    return "".join(
        [
            _text("first_name", "First name", profile.get("first_name")),
            _text("last_name", "Last name", profile.get("last_name")),
            _text("nickname", "Display name", profile.get("nickname")),
            _text("title", "Headline", profile.get("title")),
            _text("bio", "About you", profile.get("bio"), textarea=True),
            _text("skills", "Skills (comma separated)", profile.get("skills")),
            _text("spoken_languages", "Languages (comma separated)", profile.get("spoken_languages")),
            _location_inputs(profile),
            _checkbox("is_self_employed", "I am self-employed", self_employed),
            _checkbox("profile_visible", "Show my profile in search", visible),
        ]
    )


def _load_profile(user: dict) -> dict:
    user_type = user.get("user_type")
    if user_type == "company":
        return get_company_profile(user["id"]) or {}
    if user_type == "homeowner":
        return get_homeowner_profile(user["id"]) or {}
    return get_professional_profile(user["id"]) or {}


@router.get("/profile", response_class=HTMLResponse)
def profile_form(request: Request):
    user, redirect = require_user(request)
    if redirect:
        return redirect
    if user.get("user_type") == "admin":
        return RedirectResponse(url="/admin", status_code=303)

    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    saved = '<p class="ok">Profile saved.</p>' if request.query_params.get("saved") else ""
    body = f"""
    <div class="card form-card">
      <h2>Your profile</h2>
      {saved}
      <form method="post" action="/profile">
        {_profile_fields(user.get("user_type"), _load_profile(user))}
        {csrf_field(csrf_token)}
        <button type="submit">Save profile</button>
      </form>
    </div>
    """
    resp = render_page("Profile", body, user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/profile", response_class=HTMLResponse)
async def profile_submit(request: Request):
    user, redirect = require_user(request)
    if redirect:
        return redirect
    form = dict(await request.form())
    csrf_token = form.get("csrf_token") or ""
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Invalid or missing CSRF token.", status_code=403)

    user_type = user.get("user_type")
    if user_type == "admin":
        return RedirectResponse(url="/admin", status_code=303)

    def text(name):
        return (form.get(name) or "").strip() or None

    location = text("location")
    lat, lng = _coords(location, form.get("latitude"), form.get("longitude"))
    errors = {}
    try:
        if user_type == "company":
            if not text("company_name"):
                errors["company_name"] = "Company name is required"
            else:
                upsert_company_profile(
                    user["id"],
                    {
                        "company_name": text("company_name"),
                        "industry": text("industry"),
                        "description": text("description"),
                        "services": ", ".join(split_list(form.get("services"))) or None,
                        "spoken_languages": ", ".join(split_list(form.get("spoken_languages"))) or None,
                        "website": text("website"),
                        "service_24_7": 1 if form.get("service_24_7") else 0,
                        "location": location,
                        "latitude": lat,
                        "longitude": lng,
                    },
                )
        elif user_type == "homeowner":
            upsert_homeowner_profile(
                user["id"],
                {
                    "first_name": text("first_name"),
                    "last_name": text("last_name"),
                    "location": location,
                    "latitude": lat,
                    "longitude": lng,
                },
            )
        else:
            upsert_professional_profile(
                user["id"],
                {
                    "first_name": text("first_name"),
                    "last_name": text("last_name"),
                    "nickname": text("nickname"),
                    "title": text("title"),
                    "bio": text("bio"),
                    "skills": ", ".join(split_list(form.get("skills"))) or None,
                    "spoken_languages": ", ".join(split_list(form.get("spoken_languages"))) or None,
                    "is_self_employed": 1 if form.get("is_self_employed") else 0,
                    "profile_visible": 1 if form.get("profile_visible") else 0,
                    "location": location,
                    "latitude": lat,
                    "longitude": lng,
                },
            )
    except Exception as exc:
        log.error("Failed to save profile for user_id=%s: %s", user["id"], exc)
        errors["submit"] = "Could not save your profile. Please try again."

    if errors:
        body = f"""
        <div class="card form-card">
          <h2>Your profile</h2>
          {render_errors(errors)}
          <form method="post" action="/profile">
            {_profile_fields(user_type, form)}
            {csrf_field(csrf_token)}
            <button type="submit">Save profile</button>
          </form>
        </div>
        """
        return render_page("Profile", body, user=user, status_code=400 if "submit" not in errors else 500)
    return RedirectResponse(url="/profile?saved=1", status_code=303)


@router.post("/profile/actively-looking")
def toggle_actively_looking(request: Request, enabled: str = Form("0"), csrf_token: str = Form("")):
    user, redirect = require_user(request)
    if redirect:
        return redirect
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Invalid or missing CSRF token.", status_code=403)
    if user.get("user_type") not in ("professional", "contractor"):
        return HTMLResponse("Only professionals can use this.", status_code=403)

    turning_on = enabled == "1"
    if turning_on and not get_admin_settings()["professional_actively_looking_enabled"]:
        return HTMLResponse("This feature is currently switched off.", status_code=403)
    set_actively_looking(user["id"], turning_on)
    return RedirectResponse(url="/dashboard", status_code=303)


def _reviews_block(reviewee_id: int, viewer: dict | None, csrf_token: str) -> str:
    stats = get_review_stats(reviewee_id)
    average = stats["average_rating"]
    summary = f"{average} / 5 from {stats['total_reviews']} review(s)" if average is not None else "No reviews yet"
    items = "".join(
        f"""
        <div class="review">
          <strong>{'&#9733;' * int(r['rating'])}</strong> {e(r['reviewer_name'])}
          {'<span class="muted">(edited)</span>' if r.get('is_edited') else ''}
          <p>{e(r.get('review_text'))}</p>
        </div>
        """
        for r in get_reviews_for_user(reviewee_id)
    )
    form = ""
    if viewer and viewer["id"] != reviewee_id and can_user_review(viewer["id"], reviewee_id):
        options = "".join(f'<option value="{n}">{n}</option>' for n in range(5, 0, -1))
        form = f"""
        <form method="post" action="/reviews/{reviewee_id}">
          <label>Rating</label><select name="rating">{options}</select>
          <label>Review</label><textarea name="review_text" rows="3" maxlength="1000"></textarea>
          {csrf_field(csrf_token)}
          <button type="submit">Leave a review</button>
        </form>
        """
    return f'<div class="card"><h3>Reviews</h3><p class="muted">{summary}</p>{items}{form}</div>'


def _moderation_block(target_id: int, viewer: dict | None, csrf_token: str) -> str:
    if not viewer or viewer["id"] == target_id:
        return ""
    reasons = "".join(f'<option value="{r}">{r}</option>' for r in REPORT_REASONS)
    blocked = is_blocked(viewer["id"], target_id)
    block_action = "unblock" if blocked else "block"
    return f"""
    <div class="card">
      <form method="post" action="/users/{target_id}/{block_action}">
        {csrf_field(csrf_token)}<button type="submit">{block_action.title()} this user</button>
      </form>
      <form method="post" action="/users/{target_id}/report">
        <label>Report</label><select name="reason">{reasons}</select>
        <textarea name="details" rows="2" maxlength="1000"></textarea>
        {csrf_field(csrf_token)}<button type="submit" class="danger">Report</button>
      </form>
    </div>
    """


def _contact_block(viewer: dict | None, professional_id: int, csrf_token: str) -> str:
    if not viewer:
        return '<div class="card"><p><a href="/login">Log in</a> to get in touch.</p></div>'
    if viewer["id"] == professional_id:
        return ""
    if viewer.get("user_type") not in CONTACTING_TYPES or has_contact_access(viewer["id"], professional_id):
        return f'<div class="card"><a href="/messages/new?to={professional_id}">Send a message</a></div>'
    fee = get_admin_settings()["enquiry_fee"]
    return f"""
    <div class="card">
      <form method="post" action="/professionals/{professional_id}/contact">
        {csrf_field(csrf_token)}
        <button type="submit">{e(contact_button_label(fee))}</button>
      </form>
    </div>
    """


@router.get("/professionals/{user_id}", response_class=HTMLResponse)
def professional_detail(request: Request, user_id: int):
    viewer, _ = get_current_user(request)
    profile = get_professional_profile(user_id)
    owner = get_user_by_id(user_id)
    is_self = bool(viewer) and viewer["id"] == user_id
    if not profile or not owner or owner.get("banned") or (not profile.get("profile_visible") and not is_self):
        return render_page("Not found", '<div class="card"><p>Profile not found.</p></div>', user=viewer, status_code=404)

    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    name = profile.get("nickname") or f"{profile.get('first_name') or ''} {profile.get('last_name') or ''}".strip() or "Professional"
    contact_details = ""
    if viewer and (is_self or check_privacy_permission(user_id, viewer["id"])):
        contact_details = f'<p>Email: <a href="mailto:{e(owner["email"])}">{e(owner["email"])}</a></p>'
    badges = ""
    if profile.get("actively_looking"):
        badges += ' <span class="badge">Actively looking</span>'
    if profile.get("is_self_employed"):
        badges += ' <span class="badge">Self-employed</span>'
    skills = ", ".join(split_list(profile.get("skills")))
    languages = ", ".join(split_list(profile.get("spoken_languages")))
    map_html = ""
    if profile.get("latitude") is not None and profile.get("longitude") is not None:
        map_html = render_map((profile["latitude"], profile["longitude"]), [{**profile, "title": name, "url": ""}], zoom=12)

    body = f"""
    <div class="card">
      <h2>{e(name)}{badges}</h2>
      <p class="muted">{e(profile.get('title'))} &middot; {e(profile.get('location'))}</p>
      <p>{e(profile.get('bio'))}</p>
      {f'<p>Skills: {e(skills)}</p>' if skills else ''}
      {f'<p>Languages: {e(languages)}</p>' if languages else ''}
      {contact_details}
    </div>
    {map_html}
    {_contact_block(viewer, user_id, csrf_token)}
    {_reviews_block(user_id, viewer, csrf_token)}
    {_moderation_block(user_id, viewer, csrf_token)}
    """
    resp = render_page(name, body, user=viewer)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.get("/companies/{user_id}", response_class=HTMLResponse)
def company_detail(request: Request, user_id: int):
    viewer, _ = get_current_user(request)
    profile = get_company_profile(user_id)
    owner = get_user_by_id(user_id)
    if not profile or not owner or owner.get("banned") or not owner.get("active"):
        return render_page("Not found", '<div class="card"><p>Company not found.</p></div>', user=viewer, status_code=404)

    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    services = ", ".join(split_list(profile.get("services")))
    website = profile.get("website")
    contact = ""
    if viewer and viewer["id"] != user_id:
        contact = f'<div class="card"><a href="/messages/new?to={user_id}">Send a message</a></div>'
    body = f"""
    <div class="card">
      <h2>{e(profile.get('company_name'))}{' <span class="badge">24/7</span>' if profile.get('service_24_7') else ''}</h2>
      <p class="muted">{e(profile.get('industry'))} &middot; {e(profile.get('location'))}</p>
      <p>{e(profile.get('description'))}</p>
      {f'<p>Services: {e(services)}</p>' if services else ''}
      {f'<p><a href="{e(website)}" rel="nofollow noopener">{e(website)}</a></p>' if website else ''}
    </div>
    {contact}
    {_reviews_block(user_id, viewer, csrf_token)}
    {_moderation_block(user_id, viewer, csrf_token)}
    """
    resp = render_page(profile.get("company_name") or "Company", body, user=viewer)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/professionals/{user_id}/contact", response_class=HTMLResponse)
def contact(request: Request, user_id: int, csrf_token: str = Form("")):
    user, redirect = require_user(request)
    if redirect:
        return redirect
    if not allow_request(f"contact:{client_ip(request)}", limit=20, window_seconds=3600):
        return HTMLResponse("Too many contact attempts. Please try again later.", status_code=429)
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Invalid or missing CSRF token.", status_code=403)
    if user["id"] == user_id or not get_professional_profile(user_id):
        return HTMLResponse("Not found", status_code=404)

    outcome = contact_professional(user, user_id)
    if not outcome.ok:
        body = f"""
        <div class="card">
          <p class="error">{e(outcome.error)}</p>
          <p><a href="/professionals/{user_id}">Back to the profile</a> &middot; <a href="/billing">Plans</a></p>
        </div>
        """
        return render_page("Contact", body, user=user, status_code=403)
    return RedirectResponse(url=f"/messages/new?to={user_id}", status_code=303)


@router.post("/users/{user_id}/report", response_class=HTMLResponse)
def report(request: Request, user_id: int, reason: str = Form(...), details: str = Form("", max_length=1000), csrf_token: str = Form("")):
    user, redirect = require_user(request)
    if redirect:
        return redirect
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Invalid or missing CSRF token.", status_code=403)
    if not allow_request(f"report:{client_ip(request)}", limit=10, window_seconds=3600):
        return HTMLResponse("Too many reports. Please try again later.", status_code=429)
    try:
        report_user(user["id"], user_id, reason, details.strip() or None)
    except ValueError as exc:
        return render_page("Report", f'<div class="card"><p class="error">{e(exc)}</p></div>', user=user, status_code=400)
    log.info("User %s reported user %s (%s)", user["id"], user_id, reason)
    return render_page("Report", '<div class="card"><p>Thanks, our team will review this report.</p></div>', user=user)


@router.post("/users/{user_id}/block")
def block(request: Request, user_id: int, csrf_token: str = Form("")):
    user, redirect = require_user(request)
    if redirect:
        return redirect
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Invalid or missing CSRF token.", status_code=403)
    try:
        block_user(user["id"], user_id)
    except ValueError as exc:
        return HTMLResponse(str(exc), status_code=400)
    return RedirectResponse(url=_profile_url(user_id), status_code=303)


@router.post("/users/{user_id}/unblock")
def unblock(request: Request, user_id: int, csrf_token: str = Form("")):
    user, redirect = require_user(request)
    if redirect:
        return redirect
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Invalid or missing CSRF token.", status_code=403)
    unblock_user(user["id"], user_id)
    return RedirectResponse(url=_profile_url(user_id), status_code=303)
