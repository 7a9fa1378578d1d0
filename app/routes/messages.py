import logging

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from app.auth_utils import require_user
from app.enquiry import contact_professional
from app.layout import e, render_errors, render_page
from app.security import allow_request, attach_csrf_cookie, client_ip, csrf_field, issue_csrf_token, validate_csrf
from core.database import (
    MAX_MESSAGE_LENGTH,
    MESSAGE_TYPES,
    can_user_contact_professional,
    get_admin_settings,
    get_conversation,
    get_job,
    get_user_by_id,
    get_user_messages,
    has_contact_access,
    is_blocked,
    mark_conversation_read,
    queue_notification,
    send_message,
)

router = APIRouter()
log = logging.getLogger("messaging")

GATED_SENDERS = ("company", "contractor")
GATED_RECIPIENTS = ("professional", "contractor")


def needs_contact_access(sender: dict, recipient: dict) -> bool:
    """Whether a business sender has no unlocked contact with this recipient yet."""
    if sender.get("user_type") not in GATED_SENDERS or recipient.get("user_type") not in GATED_RECIPIENTS:
        return False
    return not has_contact_access(sender["id"], recipient["id"])


def free_contact_fee() -> bool:
    return get_admin_settings()["enquiry_fee"] <= 0


def may_open_compose(sender: dict, recipient: dict) -> bool:
    """Read-only check for the compose page; nothing is recorded until a send."""
    if not needs_contact_access(sender, recipient):
        return True
    return free_contact_fee() and bool(can_user_contact_professional(sender["id"]).get("can_contact"))


def unlock_for_send(sender: dict, recipient: dict) -> bool:
    """
    Gate a send. With a zero enquiry fee the first message to a professional
    runs the free enquiry, which records it and counts against the plan's
    contact limit. A paid fee has to go through the profile page instead.
    """
    if not needs_contact_access(sender, recipient):
        return True
    if not free_contact_fee():
        return False
    outcome = contact_professional(sender, recipient["id"], fee=0)
    if not outcome.ok:
        log.info("Free enquiry refused for %s -> %s: %s", sender["id"], recipient["id"], outcome.error)
    return outcome.ok


def _message_rows(messages: list, folder: str) -> str:
    rows = ""
    for m in messages:
        unread = folder == "inbox" and not m.get("is_read")
        subject = e(m.get("subject") or (m.get("content") or "")[:60])
        rows += f"""
        <tr{' class="unread"' if unread else ''}>
          <td>{e(m.get('other_email'))}</td>
          <td><a href="/messages/{m['conversation_id']}">{'<strong>' + subject + '</strong>' if unread else subject}</a></td>
          <td>{e((m.get('created_at') or '')[:16].replace('T', ' '))}</td>
        </tr>
        """
    return rows or '<tr><td colspan="3" class="muted">No messages.</td></tr>'


def _folder_page(request: Request, folder: str):
    user, redirect = require_user(request)
    if redirect:
        return redirect
    messages = get_user_messages(user["id"], folder=folder)
    other = "sent" if folder == "inbox" else "inbox"
    other_url = "/messages/sent" if folder == "inbox" else "/messages"
    body = f"""
    <div class="card">
      <h2>{'Inbox' if folder == 'inbox' else 'Sent'}</h2>
      <p><a href="{other_url}">{other.title()}</a></p>
      <table>
        <tr><th>{'From' if folder == 'inbox' else 'To'}</th><th>Subject</th><th>Date</th></tr>
        {_message_rows(messages, folder)}
      </table>
    </div>
    """
    return render_page("Messages", body, user=user)


@router.get("/messages", response_class=HTMLResponse)
def inbox(request: Request):
    return _folder_page(request, "inbox")


@router.get("/messages/sent", response_class=HTMLResponse)
def sent(request: Request):
    return _folder_page(request, "sent")


def _compose_form(csrf_token: str, to_id: int, job_id, values: dict, errors: dict) -> str:
    return f"""
    <div class="card form-card">
      {render_errors(errors)}
      <form method="post" action="/messages/send">
        <input type="hidden" name="recipient_id" value="{to_id}" />
        <input type="hidden" name="job_id" value="{e(job_id)}" />
        <label>Subject</label>
        <input type="text" name="subject" maxlength="200" value="{e(values.get('subject'))}" />
        <label>Message</label>
        <textarea name="content" rows="6" maxlength="{MAX_MESSAGE_LENGTH}">{e(values.get('content'))}</textarea>
        <label><input type="checkbox" name="share_personal_info" value="1" /> Share my contact details with this person</label>
        {csrf_field(csrf_token)}
        <button type="submit">Send</button>
      </form>
    </div>
    """


@router.get("/messages/new", response_class=HTMLResponse)
def compose(request: Request, to: int, job_id: int | None = None):
    user, redirect = require_user(request)
    if redirect:
        return redirect
    recipient = get_user_by_id(to)
    if not recipient or recipient["id"] == user["id"]:
        return HTMLResponse("Not found", status_code=404)
    if not may_open_compose(user, recipient):
        return RedirectResponse(url=f"/professionals/{to}", status_code=303)

    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    values = {}
    if job_id:
        job = get_job(job_id)
        if job:
            values["subject"] = f"Re: {job['title']}"
    resp = render_page("New message", _compose_form(csrf_token, to, job_id, values, {}), user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/messages/send", response_class=HTMLResponse)
def send(
    request: Request,
    recipient_id: int = Form(...),
    content: str = Form(""),
    subject: str = Form("", max_length=200),
    job_id: str = Form(""),
    message_type: str = Form(""),
    share_personal_info: str = Form(""),
    conversation_id: str = Form(""),
    csrf_token: str = Form(""),
):
    user, redirect = require_user(request)
    if redirect:
        return redirect
    if not allow_request(f"message:{client_ip(request)}", limit=30, window_seconds=300):
        return HTMLResponse("You are sending messages too quickly. Please wait a moment.", status_code=429)
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Invalid or missing CSRF token.", status_code=403)

    recipient = get_user_by_id(recipient_id)
    if not recipient or recipient.get("banned"):
        return HTMLResponse("Recipient not found", status_code=404)
    if is_blocked(user["id"], recipient_id):
        return HTMLResponse("You cannot message this user.", status_code=403)
    if not unlock_for_send(user, recipient):
        return RedirectResponse(url=f"/professionals/{recipient_id}", status_code=303)

    job_ref = int(job_id) if job_id.isdigit() else None
    if message_type not in MESSAGE_TYPES:
        message_type = "job_inquiry" if job_ref else ("reply" if conversation_id else "direct")

    values = {"subject": subject, "content": content}
    try:
        message = send_message(
            user["id"],
            recipient_id,
            content,
            subject=subject,
            job_id=job_ref,
            message_type=message_type,
            share_personal_info=bool(share_personal_info),
        )
    except ValueError as exc:
        csrf = issue_csrf_token(request.cookies.get("csrf_token"))
        page = render_page("New message", _compose_form(csrf, recipient_id, job_ref, values, {"content": str(exc)}), user=user, status_code=400)
        attach_csrf_cookie(page, csrf)
        return page
    except Exception as exc:
        log.error("Failed to send message %s -> %s: %s", user["id"], recipient_id, exc)
        return render_page("New message", '<div class="card"><p class="error">Failed to send message. Please try again.</p></div>', user=user, status_code=500)

    try:
        queue_notification(
            recipient_id,
            "messages",
            recipient["email"],
            payload={
                "sender_email": user["email"],
                "subject": message.get("subject"),
                "preview": message["content"][:200],
                "conversation_id": message["conversation_id"],
                "view_url": f"/messages/{message['conversation_id']}",
            },
            job_id=job_ref,
        )
    except Exception as exc:
        log.warning("Could not queue message notice for user %s: %s", recipient_id, exc)

    return RedirectResponse(url=f"/messages/{message['conversation_id']}", status_code=303)


@router.get("/messages/{conversation_id}", response_class=HTMLResponse)
def conversation(request: Request, conversation_id: int):
    user, redirect = require_user(request)
    if redirect:
        return redirect
    convo = get_conversation(conversation_id, user["id"])
    if not convo:
        return HTMLResponse("Not found", status_code=404)
    mark_conversation_read(conversation_id, user["id"])

    other_id = convo["participant_2"] if convo["participant_1"] == user["id"] else convo["participant_1"]
    items = "".join(
        f"""
        <div class="message{' mine' if m['sender_id'] == user['id'] else ''}">
          <p class="muted">{e(m['sender_email'])} &middot; {e((m.get('created_at') or '')[:16].replace('T', ' '))}</p>
          {f"<p><strong>{e(m['subject'])}</strong></p>" if m.get('subject') else ''}
          <p>{e(m['content'])}</p>
        </div>
        """
        for m in convo["messages"]
    )
    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    reply = f"""
    <form method="post" action="/messages/send">
      <input type="hidden" name="recipient_id" value="{other_id}" />
      <input type="hidden" name="job_id" value="{e(convo.get('job_id'))}" />
      <input type="hidden" name="conversation_id" value="{conversation_id}" />
      <input type="hidden" name="message_type" value="reply" />
      <textarea name="content" rows="4" maxlength="{MAX_MESSAGE_LENGTH}"></textarea>
      <label><input type="checkbox" name="share_personal_info" value="1" /> Share my contact details</label>
      {csrf_field(csrf_token)}
      <button type="submit">Reply</button>
    </form>
    """
    body = f'<div class="card"><h2>Conversation</h2>{items}{reply}</div><p><a href="/messages">Back to inbox</a></p>'
    resp = render_page("Conversation", body, user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp
