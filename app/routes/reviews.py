import logging

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from app.auth_utils import get_current_user, require_user
from app.layout import e, render_page
from app.security import allow_request, client_ip, validate_csrf
from app.validation import sanitize_review_text, validate_review
from core.database import (
    can_user_review,
    get_company_profile,
    get_review_stats,
    get_reviews_for_user,
    get_user_by_id,
    submit_review,
)

router = APIRouter()
log = logging.getLogger("reviews")

NO_INTERACTION = "You can only review users you have exchanged messages with"


def _int_or_none(value):
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def save_review(reviewer: dict, reviewee_id, rating, review_text, conversation_id=None):
    """
    Validate and store a review. Returns (status_code, body) so the JSON API
    and the profile form share one path.
    """
    if not reviewee_id:
        return 400, {"error": "revieweeId is required"}
    if reviewee_id == reviewer["id"]:
        return 400, {"error": "You cannot review yourself"}

    text = sanitize_review_text(review_text) or None
    errors = validate_review(rating, text)
    if errors:
        return 400, {"error": "Validation failed", "details": errors}
    if not get_user_by_id(reviewee_id):
        return 404, {"error": "User not found"}
    if not can_user_review(reviewer["id"], reviewee_id):
        return 403, {"error": NO_INTERACTION}

    try:
        review_id = submit_review(reviewer["id"], reviewee_id, rating, text, conversation_id=conversation_id)
    except ValueError as exc:
        return 400, {"error": str(exc)}
    except Exception as exc:
        log.error("Failed to save review %s -> %s: %s", reviewer["id"], reviewee_id, exc)
        return 500, {"error": "Failed to submit review"}
    return 200, {"success": True, "reviewId": review_id}


@router.get("/api/reviews")
def list_reviews(userId: str = ""):
    user_id = _int_or_none(userId)
    if user_id is None:
        return JSONResponse({"error": "userId is required"}, status_code=400)
    try:
        reviews = get_reviews_for_user(user_id)
    except Exception as exc:
        log.error("Failed to load reviews for %s: %s", user_id, exc)
        return JSONResponse({"error": "Failed to fetch reviews"}, status_code=500)
    return {"reviews": reviews}


@router.get("/api/reviews/stats")
def review_stats(userId: str = ""):
    user_id = _int_or_none(userId)
    if user_id is None:
        return JSONResponse({"error": "userId is required"}, status_code=400)
    try:
        return get_review_stats(user_id)
    except Exception as exc:
        log.error("Failed to load review stats for %s: %s", user_id, exc)
        return JSONResponse({"error": "Failed to fetch review stats"}, status_code=500)


@router.post("/api/reviews")
async def create_review(request: Request):
    user, _ = get_current_user(request)
    if not user:
        return JSONResponse({"error": "Unauthorized"}, status_code=401)
    if not allow_request(f"review:{client_ip(request)}", limit=10, window_seconds=3600):
        return JSONResponse({"error": "Too many requests"}, status_code=429)
    try:
        payload = await request.json()
    except ValueError:
        return JSONResponse({"error": "Invalid JSON body"}, status_code=400)
    if not isinstance(payload, dict):
        return JSONResponse({"error": "Invalid JSON body"}, status_code=400)

    status, body = save_review(
        user,
        _int_or_none(payload.get("revieweeId")),
        payload.get("rating"),
        payload.get("reviewText"),
        conversation_id=_int_or_none(payload.get("conversationId")),
    )
    return JSONResponse(body, status_code=status)


@router.post("/reviews/{reviewee_id}", response_class=HTMLResponse)
def review_form_submit(
    request: Request,
    reviewee_id: int,
    rating: str = Form(""),
    review_text: str = Form("", max_length=2000),
    csrf_token: str = Form(""),
):
    user, redirect = require_user(request)
    if redirect:
        return redirect
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Invalid or missing CSRF token.", status_code=403)

    status, body = save_review(user, reviewee_id, _int_or_none(rating), review_text)
    back = f"/companies/{reviewee_id}" if get_company_profile(reviewee_id) else f"/professionals/{reviewee_id}"
    if status != 200:
        problems = body.get("details") or [body["error"]]
        items = "".join(f"<li>{e(p)}</li>" for p in problems)
        html = f'<div class="card"><ul class="error">{items}</ul><p><a href="{back}">Back</a></p></div>'
        return render_page("Review", html, user=user, status_code=status)
    return RedirectResponse(url=back, status_code=303)
