"""
SMTP sending plus the plain-text templates for queued notifications.
"""
from __future__ import annotations

import os
import smtplib
from email.mime.text import MIMEText
from typing import Dict, Tuple

DEFAULT_FROM = "noreply@openjobmarket.com"


def _effective_from(email_from: str | None, email_user: str | None, smtp_server: str) -> str:
    # Gmail rewrites the From header to the authenticated account anyway.
    if "gmail" in (smtp_server or "").lower() and email_user:
        return email_user
    return email_from or email_user or DEFAULT_FROM


def public_base_url() -> str:
    return (os.getenv("PUBLIC_BASE_URL") or "http://localhost:8000").rstrip("/")


def send_text_email(to_email: str, subject: str, body: str) -> None:
    email_user = os.getenv("EMAIL_USER")
    email_password = os.getenv("EMAIL_PASSWORD")
    email_from = os.getenv("EMAIL_FROM")
    smtp_server = os.getenv("SMTP_SERVER", "smtp.gmail.com")
    smtp_port = int(os.getenv("SMTP_PORT", "587"))

    if not (email_user and email_password):
        raise RuntimeError("Email credentials not configured. Set EMAIL_USER and EMAIL_PASSWORD.")

    msg = MIMEText(body)
    msg["Subject"] = subject
    msg["From"] = _effective_from(email_from, email_user, smtp_server)
    msg["To"] = to_email

    with smtplib.SMTP(smtp_server, smtp_port) as server:
        server.starttls()
        server.login(email_user, email_password)
        server.sendmail(msg["From"], [to_email], msg.as_string())


def _plural_days(days) -> str:
    return f"{days} day" if days == 1 else f"{days} days"


def _job_expiration(data: Dict) -> Tuple[str, str]:
    title = data.get("job_title") or "your job"
    days = data.get("days_until_expiration")
    subject = f'Your job "{title}" expires in {days} days'
    body = (
        f"Hi {data.get('company_name') or 'there'},\n\n"
        f'Your job posting "{title}" will expire in {_plural_days(days)}.\n'
        f"Expiration date: {data.get('expires_at')}\n\n"
        "Once expired, your job will no longer be visible on the job map or in search results.\n"
        "You can extend it at any time to keep it active.\n\n"
        f"Manage your job: {public_base_url()}/jobs/{data.get('job_id')}\n\n"
        "---\n"
        f"Update notification preferences: {public_base_url()}/account"
    )
    return subject, body


def _new_application(data: Dict) -> Tuple[str, str]:
    title = data.get("job_title") or "your job"
    subject = f'New application for "{title}"'
    body = (
        f"Great news, {data.get('company_name') or 'there'}!\n\n"
        f'You have received a new application for your job posting "{title}".\n'
        f"Application ID: {data.get('application_id')}\n\n"
        f"View application: {public_base_url()}{data.get('view_url') or '/dashboard'}\n\n"
        "---\n"
        f"Update notification preferences: {public_base_url()}/account"
    )
    return subject, body


def _new_message(data: Dict) -> Tuple[str, str]:
    subject = data.get("subject") or "New message"
    body = (
        "You have a new message.\n\n"
        f"Subject: {data.get('subject') or 'No subject'}\n\n"
        f"View message: {public_base_url()}{data.get('view_url') or '/messages'}\n\n"
        "---\n"
        f"Update notification preferences: {public_base_url()}/account"
    )
    return subject, body


_TEMPLATES = {
    "job_expiration": _job_expiration,
    "new_applications": _new_application,
    "messages": _new_message,
}


def render_notification(notification_type: str, payload: Dict | None) -> Tuple[str, str]:
    """Return (subject, body) for a queued notification. Unknown types raise ValueError."""
    template = _TEMPLATES.get(notification_type)
    if template is None:
        raise ValueError(f"No template found for notification type: {notification_type}")
    return template(payload or {})
