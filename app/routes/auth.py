"""
Account entry points: signup with a user type, login/logout, email
verification and password reset.

Every POST runs the same gate: per-IP rate limit first, then the CSRF
double-submit check.
"""
import logging
import os
from html import escape

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from app.auth_utils import clear_session_cookie, get_current_user, set_session_cookie
from app.email_utils import send_text_email
from app.layout import render_page
from app.security import (
    allow_request,
    allow_request_with_remaining,
    attach_csrf_cookie,
    client_ip,
    csrf_field,
    issue_csrf_token,
    validate_csrf,
)
from app.validation import is_valid_email, is_valid_password, is_valid_reset_password
from core.database import (
    create_email_verification_token,
    create_password_reset_token,
    create_session,
    create_user,
    delete_session,
    get_email_verification_token,
    get_password_reset_token,
    get_user_by_email,
    get_user_by_id,
    mark_email_verification_token_used,
    mark_reset_token_used,
    mark_user_email_verified,
    update_user_password,
    upsert_company_profile,
    verify_password,
)

router = APIRouter()
log = logging.getLogger("auth")

# Signup form value -> stored user_type. "employer" and "jobseeker" are the
# labels used on the landing page.
SIGNUP_TYPES = {
    "employer": "company",
    "company": "company",
    "jobseeker": "professional",
    "professional": "professional",
    "contractor": "contractor",
    "homeowner": "homeowner",
}

SIGNUP_CHOICES = (
    ("jobseeker", "I'm looking for work"),
    ("employer", "I'm hiring (company)"),
    ("contractor", "I'm a tradesperson / contractor"),
    ("homeowner", "I'm a homeowner with a task"),
)

RESET_RULE = "at least 8 characters with a lowercase letter, an uppercase letter and a number"
TRY_LATER = "Too many attempts. Please try again later."


def _refuse(request: Request, csrf_token: str, allowed: bool, busy: str = TRY_LATER):
    """429 when the rate limit tripped, 403 on a CSRF mismatch, else None."""
    if not allowed:
        return HTMLResponse(busy, status_code=429)
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Invalid or missing CSRF token.", status_code=403)
    return None


def _form_page(request: Request, title: str, build, user=None, status_code: int = 200):
    """Render a form page; `build(csrf_token)` returns the body HTML."""
    token = issue_csrf_token(request.cookies.get("csrf_token"))
    resp = render_page(title, build(token), user=user, status_code=status_code)
    attach_csrf_cookie(resp, token)
    return resp


def _notice(*lines: str, heading: str = "") -> str:
    head = f"<h2>{escape(heading)}</h2>" if heading else ""
    return f'<div class="card form-card">{head}{"".join(lines)}</div>'


def _signed_in(request: Request, user_id: int, target: str = "/dashboard"):
    resp = RedirectResponse(url=target, status_code=303)
    set_session_cookie(resp, create_session(user_id))
    return resp


def _public_link(request: Request, path: str) -> str:
    origin = os.getenv("PUBLIC_BASE_URL") or str(request.base_url)
    return origin.rstrip("/") + path


def _send_verification_email(request: Request, user: dict) -> None:
    link = _public_link(request, f"/verify-email?token={create_email_verification_token(user['id'])}")
    send_text_email(
        to_email=user["email"],
        subject="Confirm your Open Job Market account",
        body=(
            "Welcome to Open Job Market.\n\n"
            f"Confirm your email address to finish setting up your account:\n{link}\n\n"
            "The link is valid for 24 hours."
        ),
    )


def send_reset_email(to_email: str, reset_link: str) -> None:
    send_text_email(
        to_email=to_email,
        subject="Open Job Market password reset",
        body=(
            f"Someone asked to reset the password for this account. Choose a new one here:\n{reset_link}\n\n"
            "The link works once and expires in an hour. No action is needed if this wasn't you."
        ),
    )


# -------- Signup --------


def _signup_form(csrf_token: str, values: dict | None = None, errors: list | None = None) -> str:
    values = values or {}
    chosen = values.get("user_type") or "jobseeker"
    options = "".join(
        f'<option value="{key}"{" selected" if key == chosen else ""}>{label}</option>' for key, label in SIGNUP_CHOICES
    )
    problems = "".join(f'<p class="error">{escape(msg)}</p>' for msg in errors or [])

    def prefill(name: str) -> str:
        return escape(values.get(name) or "", quote=True)

    return f"""
    <div class="card form-card">
      {problems}
      <form method="post" action="/signup">
        <label>I am</label>
        <select name="user_type">{options}</select>
        <label>Your name</label>
        <input type="text" name="full_name" maxlength="80" value="{prefill('full_name')}" />
        <label>Company name (companies only)</label>
        <input type="text" name="company_name" maxlength="120" value="{prefill('company_name')}" />
        <label>Email address</label>
        <input type="email" name="email" required maxlength="50" value="{prefill('email')}" />
        <label>Choose a password</label>
        <input type="password" name="password" required maxlength="25" />
        <label>Repeat password</label>
        <input type="password" name="password2" required maxlength="25" />
        {csrf_field(csrf_token)}
        <button type="submit">Create account</button>
      </form>
      <p class="muted">Passwords need 8-25 characters with a letter, an uppercase letter and a number.</p>
    </div>
    """


def _signup_errors(email: str, password: str, password2: str, stored_type, company_name: str) -> list:
    errors = []
    if stored_type is None:
        errors.append("Please choose an account type.")
    if not is_valid_email(email):
        errors.append("Please enter a valid email address.")
    if not is_valid_password(password):
        errors.append("Password must be 8-25 characters with a letter, an uppercase letter and a number, and no spaces.")
    elif password != password2:
        errors.append("Passwords do not match.")
    if stored_type == "company" and not company_name.strip():
        errors.append("Company name is required for company accounts.")
    if not errors and get_user_by_email(email):
        errors.append("An account with that email already exists.")
    return errors


@router.get("/signup", response_class=HTMLResponse)
def signup_form(request: Request):
    if get_current_user(request)[0]:
        return RedirectResponse(url="/dashboard", status_code=303)
    preset = {"user_type": request.query_params.get("type")}
    return _form_page(request, "Sign up", lambda tok: _signup_form(tok, preset))


@router.post("/signup", response_class=HTMLResponse)
def signup(
    request: Request,
    email: str = Form(..., max_length=50),
    password: str = Form(..., max_length=25),
    password2: str = Form(..., max_length=25),
    user_type: str = Form("jobseeker", max_length=20),
    full_name: str = Form("", max_length=80),
    company_name: str = Form("", max_length=120),
    csrf_token: str = Form(""),
):
    allowed = allow_request(f"signup:{client_ip(request)}", limit=5, window_seconds=3600)
    refused = _refuse(request, csrf_token, allowed, "Too many signups from this address. Please try again later.")
    if refused:
        return refused

    email = (email or "").strip().lower()
    stored_type = SIGNUP_TYPES.get((user_type or "").strip().lower())
    errors = _signup_errors(email, password, password2, stored_type, company_name)
    if errors:
        values = {"email": email, "user_type": user_type, "full_name": full_name, "company_name": company_name}
        resp = render_page("Sign up", _signup_form(csrf_token, values, errors), status_code=400)
        attach_csrf_cookie(resp, csrf_token)
        return resp

    user_id = create_user(email, password, user_type=stored_type, full_name=full_name, verified=False)
    if stored_type == "company":
        upsert_company_profile(user_id, {"company_name": company_name.strip()})
    log.info("Created %s account user_id=%s", stored_type, user_id)

    try:
        _send_verification_email(request, {"id": user_id, "email": email})
        outcome = "We've emailed you a confirmation link. Open it, then sign in."
    except Exception as exc:
        log.warning("Verification email to %s failed: %s", email, exc)
        outcome = "Your account exists but the confirmation email could not be sent. Request another one below."

    return render_page(
        "Verify your email",
        _notice(
            f"<p>{escape(outcome)}</p>",
            '<p class="muted"><a href="/verify-email/resend">Send the confirmation again</a></p>',
            heading="Almost there",
        ),
    )


# -------- Login / logout --------


def _login_form(csrf_token: str, email: str = "", message: str = "", remaining: int | None = None) -> str:
    banner = f'<p class="error">{escape(message)}</p>' if message else ""
    if remaining is not None:
        banner += f"<p class='muted'>Attempts left: {remaining}</p>"
    return f"""
    <div class="card form-card">
      {banner}
      <form method="post" action="/login">
        <label>Email address</label>
        <input type="email" name="email" required maxlength="50" value="{escape(email or '', quote=True)}" />
        <label>Your password</label>
        <input type="password" name="password" required maxlength="25" />
        {csrf_field(csrf_token)}
        <button type="submit">Sign in</button>
      </form>
      <p class="muted"><a href="/password-reset">Forgot password?</a> &middot; <a href="/signup">Create an account</a></p>
    </div>
    """


@router.get("/login", response_class=HTMLResponse)
def login_form(request: Request):
    if get_current_user(request)[0]:
        return RedirectResponse(url="/dashboard", status_code=303)
    return _form_page(request, "Login", _login_form)


@router.post("/login", response_class=HTMLResponse)
def login(
    request: Request,
    email: str = Form(..., max_length=50),
    password: str = Form(..., max_length=25),
    csrf_token: str = Form(""),
):
    allowed, remaining = allow_request_with_remaining(f"login:{client_ip(request)}", limit=10, window_seconds=300)
    refused = _refuse(request, csrf_token, allowed, "Too many login attempts. Please try again later.")
    if refused:
        return refused

    account = get_user_by_email(email)
    if not account or not verify_password(password, account["password_hash"]):
        # One message for both cases so addresses cannot be discovered.
        return render_page("Login", _login_form(csrf_token, email, "Incorrect email or password.", remaining))
    if account.get("banned"):
        return render_page("Login", _login_form(csrf_token, email, "This account has been suspended."))

    if not account.get("email_verified_at"):
        try:
            _send_verification_email(request, account)
        except Exception as exc:
            log.warning("Verification resend for user_id=%s failed: %s", account["id"], exc)
        return render_page(
            "Verify your email",
            _notice(
                '<p class="muted">This account is not verified yet. We sent a fresh confirmation link to your inbox.</p>',
                '<p class="muted"><a href="/verify-email/resend">Send it again</a></p>',
                heading="Confirm your email",
            ),
        )

    # Deactivated accounts land on /account where they can reactivate.
    return _signed_in(request, account["id"], "/dashboard" if account.get("active") else "/account")


@router.get("/logout")
def logout(request: Request):
    session_token = get_current_user(request)[1]
    if session_token:
        delete_session(session_token)
    resp = RedirectResponse(url="/", status_code=303)
    clear_session_cookie(resp)
    return resp


# -------- Password reset --------


def _reset_request_form(csrf_token: str) -> str:
    return f"""
    <div class="card form-card">
      <p class="muted">We'll email a link for choosing a new password.</p>
      <form method="post" action="/password-reset">
        <label>Account email</label>
        <input type="email" name="email" required maxlength="50" />
        {csrf_field(csrf_token)}
        <button type="submit">Email me a link</button>
      </form>
    </div>
    """


@router.get("/password-reset", response_class=HTMLResponse)
def password_reset_request_form(request: Request):
    return _form_page(request, "Reset password", _reset_request_form, user=get_current_user(request)[0])


@router.post("/password-reset", response_class=HTMLResponse)
def password_reset_request(request: Request, email: str = Form(..., max_length=50), csrf_token: str = Form("")):
    allowed, remaining = allow_request_with_remaining(f"pwdreset:{client_ip(request)}", limit=5, window_seconds=21600)
    refused = _refuse(request, csrf_token, allowed, "Password reset limit reached (5 every 6 hours). Try again later.")
    if refused:
        return refused

    outcome = "If that email exists, a reset link has been sent."
    account = get_user_by_email(email)
    if account and account.get("user_type") == "admin":
        # The admin password is managed through ADMIN_PASSWORD.
        log.info("Ignored password reset request for the admin account")
    elif account:
        link = f"{request.url_for('password_reset_confirm')}?token={create_password_reset_token(account['id'])}"
        try:
            send_reset_email(account["email"], link)
            log.info("Reset link sent to user_id=%s", account["id"])
        except Exception as exc:
            log.error("Reset email for user_id=%s failed: %s", account["id"], exc)
            outcome = "We couldn't send the reset email just now. Please try again later."

    return render_page(
        "Reset password",
        _notice(
            f"<p>{escape(outcome)}</p>",
            f"<p class='muted'>You have {remaining} reset attempt(s) left in this 6-hour window.</p>",
            '<p><a href="/login">Return to sign in</a></p>',
        ),
    )


def _new_password_form(token: str, csrf_token: str, error: str = "") -> str:
    banner = f'<p class="error">{escape(error)}</p>' if error else ""
    return f"""
    <div class="card form-card">
      {banner}
      <p class="muted">Pick a new password: {RESET_RULE}.</p>
      <form method="post" action="/password-reset/confirm?token={escape(token, quote=True)}">
        <label>New password</label>
        <input type="password" name="password" required maxlength="64" />
        <label>Repeat new password</label>
        <input type="password" name="password2" required maxlength="64" />
        {csrf_field(csrf_token)}
        <button type="submit">Save password</button>
      </form>
    </div>
    """


def _dead_reset_link():
    return render_page(
        "Reset password",
        _notice(
            "<p>Reset link is invalid or expired.</p>",
            '<p><a href="/password-reset">Ask for a new link</a></p>',
        ),
    )


@router.get("/password-reset/confirm", response_class=HTMLResponse, name="password_reset_confirm")
def password_reset_confirm_form(request: Request, token: str = ""):
    if not get_password_reset_token(token):
        return _dead_reset_link()
    return _form_page(request, "Reset password", lambda tok: _new_password_form(token, tok))


@router.post("/password-reset/confirm", response_class=HTMLResponse)
def password_reset_confirm(
    request: Request,
    token: str = "",
    password: str = Form(..., max_length=64),
    password2: str = Form(..., max_length=64),
    csrf_token: str = Form(""),
):
    allowed = allow_request(f"pwdreset_conf:{client_ip(request)}", limit=5, window_seconds=300)
    refused = _refuse(request, csrf_token, allowed)
    if refused:
        return refused

    reset = get_password_reset_token(token)
    account = get_user_by_id(reset["user_id"]) if reset else None
    if not account or account.get("user_type") == "admin":
        return _dead_reset_link()

    problem = None
    if password != password2:
        problem = "Passwords do not match."
    elif not is_valid_reset_password(password):
        problem = f"Password must be {RESET_RULE}."
    if problem:
        return render_page("Reset password", _new_password_form(token, csrf_token, problem), status_code=400)

    update_user_password(account["id"], password)
    mark_reset_token_used(token)
    return render_page(
        "Reset password",
        _notice('<p class="ok">Your password has been changed.</p>', '<p><a href="/login">Sign in</a></p>'),
    )


# -------- Email verification --------


@router.get("/verify-email", response_class=HTMLResponse)
def verify_email(request: Request, token: str = ""):
    pending = get_email_verification_token(token)
    account = get_user_by_id(pending["user_id"]) if pending else None
    if not account:
        return render_page(
            "Verify email",
            _notice(
                '<p class="muted">This confirmation link is invalid or expired.</p>',
                '<p class="muted"><a href="/verify-email/resend">Get a new link</a></p>',
                heading="Link not valid",
            ),
        )

    mark_user_email_verified(account["id"])
    mark_email_verification_token_used(token)
    return _signed_in(request, account["id"])


def _resend_form(csrf_token: str) -> str:
    return f"""
    <div class="card form-card">
      <h2>Send the confirmation email again</h2>
      <form method="post" action="/verify-email/resend">
        <label>Account email</label>
        <input type="email" name="email" required maxlength="50" />
        {csrf_field(csrf_token)}
        <button type="submit">Send link</button>
      </form>
    </div>
    """


@router.get("/verify-email/resend", response_class=HTMLResponse)
def verify_email_resend_form(request: Request):
    return _form_page(request, "Resend verification", _resend_form)


@router.post("/verify-email/resend", response_class=HTMLResponse)
def verify_email_resend(request: Request, email: str = Form(..., max_length=50), csrf_token: str = Form("")):
    allowed = allow_request(f"verify_resend:{client_ip(request)}", limit=3, window_seconds=3600)
    refused = _refuse(request, csrf_token, allowed)
    if refused:
        return refused

    account = get_user_by_email(email)
    if account and not account.get("email_verified_at"):
        try:
            _send_verification_email(request, account)
        except Exception as exc:
            log.warning("Verification resend for user_id=%s failed: %s", account["id"], exc)

    return render_page(
        "Resend verification",
        _notice(
            "<p>If the address belongs to an unconfirmed account, a new link is on its way.</p>",
            '<p class="muted"><a href="/login">Return to sign in</a></p>',
        ),
    )
