import logging

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response

from app.auth_utils import get_current_user, require_user
from app.cv import (
    CV_STYLES,
    PERSONAL_FIELDS,
    cv_filename,
    cv_from_form,
    cv_from_profile,
    normalize_cv,
    render_cv_body,
    render_cv_document,
    section_text,
    validate_cv,
)
from app.layout import e, render_errors, render_page
from app.security import attach_csrf_cookie, csrf_field, issue_csrf_token, validate_csrf
from core.database import get_cv, get_professional_profile, save_cv

router = APIRouter()
log = logging.getLogger("cv")

CV_OWNER_TYPES = ("professional", "contractor")
MISSING_DATA = "Missing required data"

_PERSONAL_LABELS = {
    "first_name": "First name",
    "last_name": "Last name",
    "title": "Headline",
    "email": "Email",
    "phone": "Phone",
    "location": "Location",
    "portfolio_url": "Portfolio link",
    "linkedin_url": "LinkedIn link",
    "github_url": "GitHub link",
}
_SECTION_HELP = {
    "work_experience": ("Work experience", "Job title | Company | Start | End or present | Location. Start a line with - for a responsibility, + for an achievement."),
    "education": ("Education", "Degree | Institution | Field of study | Start | End or present | Grade. A - line adds notes."),
    "skills": ("Skills", "Skill | Level | Category"),
    "languages": ("Languages", "Language | Level | Certification"),
    "certifications": ("Certifications", "Name | Issued by | Issued | Expires | Credential ID"),
    "projects": ("Projects", "Name | Role | Start | End or present | Link | Tech, Tech. A - line adds a description."),
}


def _int_or_none(value):
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _builder_form(csrf_token: str, cv: dict, errors: dict) -> str:
    info = cv.get("personal_info") or {}
    personal = "".join(
        f'<label>{_PERSONAL_LABELS[name]}</label><input type="text" name="{name}" maxlength="200" value="{e(info.get(name))}" />'
        for name in PERSONAL_FIELDS
    )
    sections = "".join(
        f"""
        <h4>{label}</h4>
        <p class="muted">{e(hint)}</p>
        <textarea name="{name}" rows="5">{e(section_text(cv, name))}</textarea>
        """
        for name, (label, hint) in _SECTION_HELP.items()
    )
    return f"""
    <div class="card form-card">
      {render_errors(errors)}
      <form method="post" action="/cv/builder">
        {personal}
        <label>Professional summary</label>
        <textarea name="summary" rows="4" maxlength="2000">{e(cv.get('summary'))}</textarea>
        {sections}
        <p class="muted">Dates as YYYY-MM.</p>
        {csrf_field(csrf_token)}
        <button type="submit">Save CV</button>
      </form>
    </div>
    """


def _cv_owner(request: Request):
    """Return (user, None) for a signed-in professional or contractor, else (None, response)."""
    user, redirect = require_user(request)
    if redirect:
        return None, redirect
    if user.get("user_type") not in CV_OWNER_TYPES:
        return None, HTMLResponse("Only professionals can build a CV.", status_code=403)
    return user, None


@router.get("/cv/builder", response_class=HTMLResponse)
def cv_builder(request: Request):
    user, refused = _cv_owner(request)
    if refused:
        return refused
    cv = get_cv(user["id"]) or cv_from_profile(user, get_professional_profile(user["id"]))
    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    resp = render_page("CV builder", _builder_form(csrf_token, cv, {}), user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/cv/builder", response_class=HTMLResponse)
async def cv_builder_submit(request: Request):
    user, refused = _cv_owner(request)
    if refused:
        return refused
    form = dict(await request.form())
    csrf_token = form.get("csrf_token") or ""
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Invalid or missing CSRF token.", status_code=403)

    cv = cv_from_form(form)
    errors = validate_cv(cv)
    if errors:
        return render_page("CV builder", _builder_form(csrf_token, cv, errors), user=user, status_code=400)
    try:
        save_cv(user["id"], cv)
    except Exception as exc:
        log.error("Failed to save CV for user_id=%s: %s", user["id"], exc)
        errors = {"submit": "Failed to save your CV. Please try again."}
        return render_page("CV builder", _builder_form(csrf_token, cv, errors), user=user, status_code=500)
    log.info("Saved CV for user_id=%s", user["id"])
    return RedirectResponse(url="/cv/preview", status_code=303)


@router.get("/cv/preview", response_class=HTMLResponse)
def cv_preview(request: Request):
    user, refused = _cv_owner(request)
    if refused:
        return refused
    cv = get_cv(user["id"])
    if not cv:
        return RedirectResponse(url="/cv/builder", status_code=303)

    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    body = f"""
    <style>{CV_STYLES}</style>
    <div class="card">
      <p><a href="/cv/builder">Edit</a></p>
      <form method="post" action="/api/cv/generate-pdf">
        <input type="hidden" name="professional_id" value="{user['id']}" />
        {csrf_field(csrf_token)}
        <button type="submit">Download (print to PDF)</button>
      </form>
    </div>
    <div class="card">{render_cv_body(cv)}</div>
    """
    resp = render_page("Your CV", body, user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/api/cv/generate-pdf")
async def generate_cv(request: Request):
    """
    Return the CV as a printable HTML attachment.

    JSON callers send {"professionalId", "cvData"} (snake_case also accepted);
    the preview page posts a form with professional_id and the stored CV is used.
    """
    user, _ = get_current_user(request)
    if not user:
        return JSONResponse({"error": "Unauthorized"}, status_code=401)

    is_json = (request.headers.get("content-type") or "").startswith("application/json")
    if is_json:
        try:
            payload = await request.json()
        except ValueError:
            return JSONResponse({"error": "Invalid JSON body"}, status_code=400)
        if not isinstance(payload, dict):
            return JSONResponse({"error": "Invalid JSON body"}, status_code=400)
        professional_id = _int_or_none(payload.get("professional_id", payload.get("professionalId")))
        cv_data = payload.get("cv_data", payload.get("cvData"))
    else:
        form = dict(await request.form())
        if not validate_csrf(request, form.get("csrf_token")):
            return JSONResponse({"error": "Invalid or missing CSRF token."}, status_code=403)
        professional_id = _int_or_none(form.get("professional_id"))
        cv_data = None

    if professional_id is None:
        return JSONResponse({"error": MISSING_DATA}, status_code=400)
    if professional_id != user["id"] and user.get("user_type") != "admin":
        return JSONResponse({"error": "Forbidden"}, status_code=403)
    if not is_json:
        cv_data = get_cv(professional_id)
    if not isinstance(cv_data, dict) or not cv_data:
        return JSONResponse({"error": MISSING_DATA}, status_code=400)

    try:
        cv = normalize_cv(cv_data)
        html = render_cv_document(cv)
        filename = cv_filename(cv)
    except Exception as exc:
        log.error("Failed to render CV for professional_id=%s: %s", professional_id, exc)
        return JSONResponse({"error": "Failed to generate CV"}, status_code=500)

    log.info("Generated CV for professional_id=%s", professional_id)
    return Response(
        content=html,
        media_type="text/html",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
