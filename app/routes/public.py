import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response

from app.auth_utils import get_current_user
from app.layout import e, render_map, render_page
from core.database import (
    count_jobs,
    count_users_by_type,
    search_companies,
    search_jobs,
    search_professionals,
)
from core.geo import DEFAULT_RADIUS_MILES, lookup_postal_code
from core.salary import PERIODS, format_salary
from core.search import capitalize_filter, map_center, normalize_company, normalize_professional, rank_contractors

router = APIRouter()
log = logging.getLogger("search")

# "posted" filter value -> days back from now.
POSTED_WINDOWS = {"today": 1, "3days": 3, "5days": 5, "week": 7, "2weeks": 14}


def _float(value: Optional[str]) -> Optional[float]:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


def _location_fields(params: dict) -> str:
    """Location text plus the hidden lat/lng pair filled in by the postcode lookup."""
    return f"""
      <label>Location</label>
      <input type="text" name="location" id="location" value="{e(params.get('location'))}" placeholder="Town or postcode" />
      <input type="hidden" name="lat" id="lat" value="{e(params.get('lat'))}" />
      <input type="hidden" name="lng" id="lng" value="{e(params.get('lng'))}" />
      <label>Radius (miles)</label>
      <input type="number" name="radius" min="1" max="100" value="{e(params.get('radius') or DEFAULT_RADIUS_MILES)}" />
    """


def _job_card(job: dict) -> str:
    salary = format_salary(job.get("salary_min"), job.get("salary_max"), job.get("salary_period"))
    company = job.get("company_name") or ""
    return f"""
    <div class="card">
      <h3><a href="/jobs/{job['id']}">{e(job.get('title'))}</a></h3>
      <p class="muted">{e(company)}{' &middot; ' if company else ''}{e(job.get('location') or 'Remote')}
        &middot; <span class="badge">{e(job.get('work_location'))}</span></p>
      {f'<p>{e(salary)}</p>' if salary else ''}
      <p>{e((job.get('description') or '')[:240])}</p>
    </div>
    """


def _job_markers(jobs: list) -> list:
    return [
        {"latitude": j.get("latitude"), "longitude": j.get("longitude"), "title": j.get("title"), "url": f"/jobs/{j['id']}"}
        for j in jobs
    ]


@router.get("/", response_class=HTMLResponse)
def index(request: Request):
    user, _ = get_current_user(request)
    body = f"""
    <div class="card">
      <h2>Find work near you</h2>
      <p class="muted">Browse jobs on the map, post tasks for local tradespeople, or find contractors and companies in your area.</p>
      <form method="get" action="/search">
        <label>What</label>
        <input type="text" name="search" placeholder="Job title or keyword" />
        {_location_fields({})}
        <button type="submit">Search jobs</button>
      </form>
    </div>
    <div class="stats">
      <div class="stat"><div class="label">Looking for work?</div><div class="value"><a href="/signup?type=jobseeker">Join</a></div></div>
      <div class="stat"><div class="label">Hiring?</div><div class="value"><a href="/signup?type=employer">Post jobs</a></div></div>
      <div class="stat"><div class="label">Homeowner?</div><div class="value"><a href="/tasks">Tasks</a></div></div>
      <div class="stat"><div class="label">Need a pro?</div><div class="value"><a href="/contractors">Contractors</a></div></div>
    </div>
    """
    return render_page("Home", body, user=user)


def _run_job_search(params: dict, tradespeople: bool) -> list:
    posted = POSTED_WINDOWS.get(params.get("posted") or "")
    salary_period = params.get("salary_period") if params.get("salary_period") in PERIODS else "per_year"
    try:
        return search_jobs(
            search=params.get("search"),
            lat=_float(params.get("lat")),
            lng=_float(params.get("lng")),
            radius_miles=_float(params.get("radius")) or DEFAULT_RADIUS_MILES,
            location=params.get("location"),
            tradespeople=tradespeople,
            work_location=params.get("work_location") or None,
            posted_within_days=posted,
            salary_min=_float(params.get("salary_min")),
            salary_max=_float(params.get("salary_max")),
            salary_period=salary_period,
        )
    except Exception as exc:
        log.error("[%s] search failed: %s", "tasks" if tradespeople else "jobs", exc)
        return []


def _results_page(user, title: str, action: str, params: dict, jobs: list, searched: bool):
    period_options = "".join(
        f'<option value="{p}"{" selected" if params.get("salary_period") == p else ""}>{p.replace("_", " ")}</option>'
        for p in PERIODS
    )
    posted_options = '<option value="">Any time</option>' + "".join(
        f'<option value="{k}"{" selected" if params.get("posted") == k else ""}>{k}</option>' for k in POSTED_WINDOWS
    )
    center = map_center(_float(params.get("lat")), _float(params.get("lng")), jobs)
    if searched:
        listing = "".join(_job_card(j) for j in jobs) or '<p class="muted">No results found. Try a wider radius.</p>'
        summary = f'<p class="muted">{len(jobs)} result(s)</p>'
    else:
        listing = ""
        summary = '<p class="muted">Enter a location to start searching.</p>'
    body = f"""
    <div class="card">
      <form method="get" action="{action}">
        <label>Keyword</label>
        <input type="text" name="search" value="{e(params.get('search'))}" />
        {_location_fields(params)}
        <label>Salary from</label>
        <input type="number" name="salary_min" min="0" value="{e(params.get('salary_min'))}" />
        <label>Salary to</label>
        <input type="number" name="salary_max" min="0" value="{e(params.get('salary_max'))}" />
        <label>Period</label>
        <select name="salary_period">{period_options}</select>
        <label>Posted</label>
        <select name="posted">{posted_options}</select>
        <button type="submit">Search</button>
      </form>
    </div>
    {render_map(center, _job_markers(jobs))}
    {summary}
    {listing}
    """
    return render_page(title, body, user=user)


@router.get("/search", response_class=HTMLResponse)
def search(request: Request):
    user, _ = get_current_user(request)
    params = dict(request.query_params)
    searched = any(params.get(k) for k in ("search", "location", "lat", "lng", "salary_min", "salary_max", "posted", "work_location"))
    jobs = _run_job_search(params, tradespeople=False) if searched else []
    return _results_page(user, "Search jobs", "/search", params, jobs, searched)


@router.get("/tasks", response_class=HTMLResponse)
def tasks(request: Request):
    """Homeowner tasks. Nothing is queried until a location is given."""
    user, _ = get_current_user(request)
    params = dict(request.query_params)
    searched = bool((params.get("lat") and params.get("lng")) or params.get("location"))
    jobs = _run_job_search(params, tradespeople=True) if searched else []
    return _results_page(user, "Tasks", "/tasks", params, jobs, searched)


def find_contractors(params: dict) -> list:
    """Professionals and companies matching the contractor filters, ranked by relevance."""
    lat, lng = _float(params.get("lat")), _float(params.get("lng"))
    radius = _float(params.get("radius")) or DEFAULT_RADIUS_MILES
    self_employed = _flag(params.get("self_employed"))
    company_only = _flag(params.get("company"))
    language = capitalize_filter(params.get("language")) or None
    skill = capitalize_filter(params.get("skills")) or None

    results = []
    if self_employed or not company_only:
        for row in search_professionals(
            lat=lat, lng=lng, radius_miles=radius, location=params.get("location"),
            self_employed=self_employed, language=language, skill=skill,
        ):
            results.append(normalize_professional(row))
    if company_only or not self_employed:
        for row in search_companies(
            lat=lat, lng=lng, radius_miles=radius, location=params.get("location"),
            language=language, service_24_7=_flag(params.get("service_24_7")),
        ):
            results.append(normalize_company(row))
    return rank_contractors(results, params.get("search"))


@router.get("/contractors", response_class=HTMLResponse)
def contractors(request: Request):
    user, _ = get_current_user(request)
    params = dict(request.query_params)
    filter_keys = ("search", "location", "lat", "lng", "self_employed", "company", "language", "service_24_7", "skills")
    searched = any(params.get(k) for k in filter_keys)

    results = []
    if searched:
        try:
            results = find_contractors(params)
        except Exception as exc:
            log.error("[contractors] search failed: %s", exc)
            results = []

    cards = []
    for item in results:
        href = f"/professionals/{item['user_id']}" if item["type"] == "professional" else f"/companies/{item['user_id']}"
        detail = item.get("title") if item["type"] == "professional" else item.get("industry")
        cards.append(
            f"""
            <div class="card">
              <h3><a href="{href}">{e(item.get('name') or 'Unnamed')}</a> <span class="badge">{e(item['type'])}</span></h3>
              <p class="muted">{e(detail)} &middot; {e(item.get('location'))}</p>
              <p>{e((item.get('description') or '')[:200])}</p>
            </div>
            """
        )
    markers = [
        {
            "latitude": r.get("latitude"),
            "longitude": r.get("longitude"),
            "title": r.get("name"),
            "url": f"/professionals/{r['user_id']}" if r["type"] == "professional" else f"/companies/{r['user_id']}",
        }
        for r in results
    ]
    def checked(key):
        return " checked" if _flag(params.get(key)) else ""

    body = f"""
    <div class="card">
      <form method="get" action="/contractors">
        <label>Keyword</label>
        <input type="text" name="search" value="{e(params.get('search'))}" placeholder="Trade, skill or company" />
        {_location_fields(params)}
        <label>Language</label>
        <input type="text" name="language" value="{e(params.get('language'))}" />
        <label>Skill</label>
        <input type="text" name="skills" value="{e(params.get('skills'))}" />
        <label><input type="checkbox" name="self_employed" value="true"{checked('self_employed')} /> Self-employed only</label>
        <label><input type="checkbox" name="company" value="true"{checked('company')} /> Companies only</label>
        <label><input type="checkbox" name="service_24_7" value="true"{checked('service_24_7')} /> 24/7 service</label>
        <button type="submit">Find contractors</button>
      </form>
    </div>
    {render_map(map_center(_float(params.get('lat')), _float(params.get('lng')), results), markers)}
    {f'<p class="muted">{len(results)} result(s)</p>' if searched else '<p class="muted">Use the filters to find contractors.</p>'}
    {''.join(cards)}
    """
    return render_page("Contractors", body, user=user)


@router.get("/api/geonames")
async def geonames(zip: str = "", country: str = ""):
    if not zip:
        return JSONResponse({"error": "ZIP code is required"}, status_code=400)
    try:
        suggestions = await lookup_postal_code(zip, country or None)
    except (httpx.HTTPError, ValueError) as exc:
        log.error("GeoNames API error: %s", exc)
        return JSONResponse({"error": "Failed to fetch location data"}, status_code=500)
    return {"suggestions": suggestions}


@router.get("/privacy", response_class=HTMLResponse)
def privacy(request: Request):
    user, _ = get_current_user(request)
    body = """
    <div class="card form-card">
      <h2>Privacy Policy</h2>
      <p class="muted">
        We store the details you put in your profile so employers, homeowners and contractors can find you.
        Your email address and phone number are only shown to someone after you choose to share them in a message.
      </p>
      <p class="muted">
        You can hide your profile, deactivate or delete your account at any time from the account page.
      </p>
    </div>
    """
    return render_page("Privacy", body, user=user)


@router.get("/terms", response_class=HTMLResponse)
def terms(request: Request):
    user, _ = get_current_user(request)
    body = """
    <div class="card form-card">
      <h2>Terms of use</h2>
      <p class="muted">Listings must describe real work. Enquiry fees are non-refundable once a conversation has started.</p>
      <p class="muted">Accounts that harass other users or post misleading jobs may be suspended.</p>
    </div>
    """
    return render_page("Terms", body, user=user)


@router.get("/health")
def health():
    try:
        return {"status": "ok", "stats": {"users": count_users_by_type(), "jobs": count_jobs()}}
    except Exception as exc:
        log.error("Health check failed: %s", exc)
        return {"status": "error", "detail": str(exc)}


@router.get("/favicon.ico")
def favicon():
    return Response(status_code=204)
