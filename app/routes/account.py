from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from app.auth_utils import clear_session_cookie, get_current_user, require_user
from app.layout import e, render_page
from app.security import attach_csrf_cookie, csrf_field, issue_csrf_token, validate_csrf
from core.database import (
    deactivate_user,
    delete_session,
    delete_user_data,
    list_notification_history,
    reactivate_user,
)

router = APIRouter()


@router.get("/account", response_class=HTMLResponse)
def account_page(request: Request):
    user, redirect = require_user(request)
    if redirect:
        return redirect

    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    if user.get("active"):
        status_html = '<p>Your account is <span class="ok">active</span>.</p>'
        toggle = f"""
        <form method="post" action="/account/deactivate">
          {csrf_field(csrf_token)}
          <p class="muted">Deactivating hides your profile and closes your job posts. You can come back any time.</p>
          <button type="submit">Deactivate account</button>
        </form>
        """
    else:
        status_html = "<p>Your account is <strong>deactivated</strong>.</p>"
        toggle = f"""
        <form method="post" action="/account/reactivate">
          {csrf_field(csrf_token)}
          <button type="submit">Reactivate account</button>
        </form>
        """

    history_rows = "".join(
        f"<tr><td>{e(n['sent_at'])}</td><td>{e(n['notification_type'])}</td><td>{e(n['subject'])}</td></tr>"
        for n in list_notification_history(user["id"], limit=20)
    ) or "<tr><td colspan='3' class='muted'>No notifications sent yet.</td></tr>"

    admin_note = '<p class="muted">Admin accounts are managed from the environment.</p>' if user.get("user_type") == "admin" else ""
    body = f"""
    <div class="card">
      <h2>Account</h2>
      <p>Email: <strong>{e(user['email'])}</strong> &middot; Type: <span class="badge">{e(user['user_type'])}</span></p>
      {status_html}
      {admin_note}
      {toggle if not admin_note else ""}
    </div>
    <div class="card">
      <h3>Recent notifications</h3>
      <table><tr><th>Sent</th><th>Type</th><th>Subject</th></tr>{history_rows}</table>
    </div>
    <div class="card">
      <h3>Delete account</h3>
      <p class="muted">This permanently removes your profile, jobs, applications and messages.</p>
      <form method="post" action="/account/delete" onsubmit="return confirm('Delete your account permanently?');">
        {csrf_field(csrf_token)}
        <button type="submit" class="danger">Delete account</button>
      </form>
    </div>
    """
    resp = render_page("Account", body, user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/account/deactivate")
def deactivate_account(request: Request, csrf_token: str = Form("")):
    user, token = get_current_user(request)
    if not user:
        return RedirectResponse(url="/login", status_code=303)
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Invalid or missing CSRF token.", status_code=403)
    if user.get("user_type") == "admin":
        return RedirectResponse(url="/dashboard", status_code=303)

    deactivate_user(user["id"])
    if token:
        delete_session(token)
    response = RedirectResponse(url="/", status_code=303)
    clear_session_cookie(response)
    return response


@router.post("/account/delete")
def delete_account(request: Request, csrf_token: str = Form("")):
    user, token = get_current_user(request)
    if not user:
        return RedirectResponse(url="/login", status_code=303)
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Invalid or missing CSRF token.", status_code=403)
    if user.get("user_type") == "admin":
        return RedirectResponse(url="/dashboard", status_code=303)

    delete_user_data(user["id"])
    if token:
        delete_session(token)
    response = RedirectResponse(url="/", status_code=303)
    clear_session_cookie(response)
    return response


@router.post("/account/reactivate")
def reactivate_account(request: Request, csrf_token: str = Form("")):
    user, token = get_current_user(request)
    if not user:
        return RedirectResponse(url="/login", status_code=303)
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Invalid or missing CSRF token.", status_code=403)
    if user.get("user_type") == "admin":
        return RedirectResponse(url="/dashboard", status_code=303)

    reactivate_user(user["id"])
    return RedirectResponse(url="/dashboard", status_code=303)
