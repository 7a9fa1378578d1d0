"""
Bearer-token protected endpoints for an external scheduler. The background
worker runs the same jobs on its own loop.
"""
import hmac
import logging
import os

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from app.notifications import process_notification_queue
from core.database import (
    count_pending_notifications,
    expire_old_subscriptions,
    list_user_subscriptions,
    process_job_expirations,
    queue_job_expiration_notifications,
)

router = APIRouter()
log = logging.getLogger("cron")


def is_authorized(request: Request) -> bool:
    expected = os.getenv("CRON_SECRET_TOKEN")
    if not expected:
        return False
    header = request.headers.get("authorization") or ""
    return hmac.compare_digest(header, f"Bearer {expected}")


def _unauthorized():
    return JSONResponse({"error": "Unauthorized"}, status_code=401)


def _expire_jobs(request: Request):
    if not is_authorized(request):
        return _unauthorized()
    try:
        result = process_job_expirations()
    except Exception as exc:
        log.error("Job expiration cron failed: %s", exc)
        return JSONResponse({"error": "Failed to process job expirations"}, status_code=500)
    log.info("Expired %s jobs, %s expiring soon", result["expired_count"], len(result["expiring_jobs"]))
    return {
        "success": True,
        "expired_count": result["expired_count"],
        "expiring_count": len(result["expiring_jobs"]),
        "expiring_jobs": result["expiring_jobs"],
        "processed_at": result["processed_at"],
    }


@router.get("/api/cron/expire-jobs")
def expire_jobs_get(request: Request):
    return _expire_jobs(request)


@router.post("/api/cron/expire-jobs")
def expire_jobs_post(request: Request):
    return _expire_jobs(request)


@router.post("/api/cron/expire-subscriptions")
def expire_subscriptions(request: Request):
    if not is_authorized(request):
        return _unauthorized()
    try:
        expired = expire_old_subscriptions()
    except Exception as exc:
        log.error("Subscription expiration cron failed: %s", exc)
        return JSONResponse({"error": "Failed to expire subscriptions"}, status_code=500)
    log.info("Expired %s subscriptions", expired)
    return {"success": True, "expired_count": expired}


@router.get("/api/cron/expire-subscriptions")
def subscription_status(request: Request):
    if not is_authorized(request):
        return _unauthorized()
    subs = list_user_subscriptions()
    counts = {}
    for sub in subs:
        counts[sub["status"]] = counts.get(sub["status"], 0) + 1
    return {"success": True, "counts": counts}


@router.get("/api/notifications/process")
def process_notifications(request: Request):
    if not is_authorized(request):
        return _unauthorized()
    try:
        result = process_notification_queue()
    except Exception as exc:
        log.error("Notification processing failed: %s", exc)
        return JSONResponse({"error": "Failed to process notifications"}, status_code=500)
    return {"success": True, **result}


@router.post("/api/notifications/process")
async def notification_actions(request: Request):
    if not is_authorized(request):
        return _unauthorized()
    try:
        payload = await request.json()
    except ValueError:
        payload = {}
    action = payload.get("action") if isinstance(payload, dict) else None

    if action == "queue_expiration_notifications":
        try:
            queued = queue_job_expiration_notifications()
        except Exception as exc:
            log.error("Queueing expiration notifications failed: %s", exc)
            return JSONResponse({"error": "Failed to queue notifications"}, status_code=500)
        return {"success": True, "queued_notifications": queued, "pending": count_pending_notifications()}
    return JSONResponse({"error": "Invalid action"}, status_code=400)
