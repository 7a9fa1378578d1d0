import pytest
from fastapi.testclient import TestClient

from app.api import app
from app.routes import jobs

COMPANY = {"id": 1, "email": "hr@acme.test", "user_type": "company"}
HOMEOWNER = {"id": 2, "email": "home@owner.test", "user_type": "homeowner"}
PRO = {"id": 3, "email": "pro@trade.test", "user_type": "professional"}

VALID_JOB = {
    "title": "Kitchen fitter",
    "work_location": "in-person",
    "location": "1 High Street, London, UK",
    "recruitment_timeline": "2_weeks",
    "csrf_token": "tok",
}


@pytest.fixture
def client():
    return TestClient(app, cookies={"csrf_token": "tok"}, follow_redirects=False)


@pytest.fixture
def poster(monkeypatch):
    """Sign in as a company with room on its plan; record created jobs."""
    state = {"user": COMPANY, "created": [], "usage": []}
    monkeypatch.setattr(jobs, "require_user", lambda req: (state["user"], None))
    monkeypatch.setattr(jobs, "can_user_post_job", lambda uid: {"can_post": True, "jobs_used": 0, "job_limit": 5})

    def fake_create(owner_id, data, is_tradespeople_job=False):
        state["created"].append((owner_id, data, is_tradespeople_job))
        return 55

    monkeypatch.setattr(jobs, "create_job", fake_create)
    monkeypatch.setattr(jobs, "increment_subscription_usage", lambda uid, kind: state["usage"].append((uid, kind)))
    return state


def test_job_form_data_geocodes_known_city():
    data = jobs.job_form_data({"title": " Chef ", "work_location": "hybrid", "location": "5 Deansgate, Manchester, UK"})
    assert data["title"] == "Chef"
    assert data["latitude"] is not None
    assert data["salary_period"] == "per_year"


def test_job_form_data_remote_drops_coordinates():
    data = jobs.job_form_data({"title": "Dev", "work_location": "remote", "latitude": "51.5", "longitude": "-0.1"})
    assert data["latitude"] is None and data["longitude"] is None


def test_empty_title_is_rejected_without_creating(client, poster):
    resp = client.post("/jobs/new", data={**VALID_JOB, "title": "   "})
    assert resp.status_code == 400
    assert "Job title is required" in resp.text
    assert poster["created"] == []


def test_in_person_job_needs_location(client, poster):
    resp = client.post("/jobs/new", data={**VALID_JOB, "location": ""})
    assert resp.status_code == 400
    assert poster["created"] == []


def test_salary_min_above_max_is_rejected(client, poster):
    resp = client.post("/jobs/new", data={**VALID_JOB, "salary_min": "50000", "salary_max": "30000"})
    assert resp.status_code == 400
    assert poster["created"] == []


def test_bad_csrf_is_forbidden(client, poster):
    resp = client.post("/jobs/new", data={**VALID_JOB, "csrf_token": "other"})
    assert resp.status_code == 403


def test_jobseekers_cannot_post(client, poster):
    poster["user"] = PRO
    assert client.post("/jobs/new", data=VALID_JOB).status_code == 403


def test_company_job_is_created_and_counted(client, poster):
    resp = client.post("/jobs/new", data=VALID_JOB)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/jobs/55"
    owner_id, data, tradespeople = poster["created"][0]
    assert owner_id == 1
    assert tradespeople is False
    assert data["recruitment_timeline"] == "2_weeks"
    assert poster["usage"] == [(1, "job")]


def test_homeowner_posts_tradespeople_task(client, poster):
    poster["user"] = HOMEOWNER
    resp = client.post("/jobs/new", data=VALID_JOB)
    assert resp.status_code == 303
    assert poster["created"][0][2] is True


def test_plan_limit_blocks_posting(client, poster, monkeypatch):
    monkeypatch.setattr(jobs, "can_user_post_job", lambda uid: {"can_post": False, "jobs_used": 5, "job_limit": 5})
    resp = client.post("/jobs/new", data=VALID_JOB)
    assert resp.status_code == 403
    assert poster["created"] == []


def test_store_failure_shows_retry_message(client, poster, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("db down")

    monkeypatch.setattr(jobs, "create_job", boom)
    resp = client.post("/jobs/new", data=VALID_JOB)
    assert resp.status_code == 500
    assert "Failed to create job" in resp.text
    assert poster["usage"] == []


@pytest.fixture
def applicant(monkeypatch):
    state = {"queued": []}
    monkeypatch.setattr(jobs, "require_user", lambda req: (PRO, None))
    monkeypatch.setattr(
        jobs,
        "get_job",
        lambda job_id: {"id": job_id, "is_active": True, "owner_id": 1, "owner_email": "hr@acme.test", "title": "Chef", "company_name": "Acme"},
    )
    monkeypatch.setattr(jobs, "queue_notification", lambda *a, **k: state["queued"].append((a, k)))
    return state


def test_apply_queues_owner_notification(client, applicant, monkeypatch):
    monkeypatch.setattr(jobs, "create_application", lambda job_id, user_id, cover: 8)
    resp = client.post("/jobs/4/apply", data={"cover_letter": "Hire me", "csrf_token": "tok"})
    assert resp.status_code == 200
    assert "Application sent." in resp.text
    args, kwargs = applicant["queued"][0]
    assert args[:3] == (1, "new_applications", "hr@acme.test")
    assert kwargs["payload"]["application_id"] == 8


def test_duplicate_application_is_reported(client, applicant, monkeypatch):
    monkeypatch.setattr(jobs, "create_application", lambda job_id, user_id, cover: None)
    resp = client.post("/jobs/4/apply", data={"csrf_token": "tok"})
    assert "You have already applied for this job." in resp.text
    assert applicant["queued"] == []


def test_companies_cannot_apply(client, applicant, monkeypatch):
    monkeypatch.setattr(jobs, "require_user", lambda req: (COMPANY, None))
    assert client.post("/jobs/4/apply", data={"csrf_token": "tok"}).status_code == 403


def _lapsed_job(job_id):
    return {
        "id": job_id,
        "is_active": True,
        "expires_at": "2001-01-01T00:00:00",
        "owner_id": 1,
        "owner_email": "hr@acme.test",
        "title": "Chef",
    }


def test_lapsed_job_refuses_applications_before_expiry_pass(client, applicant, monkeypatch):
    created = []
    monkeypatch.setattr(jobs, "get_job", _lapsed_job)
    monkeypatch.setattr(jobs, "create_application", lambda *a: created.append(a) or 8)

    resp = client.post("/jobs/4/apply", data={"csrf_token": "tok"})
    assert resp.status_code == 404
    assert created == []
    assert applicant["queued"] == []


def test_lapsed_job_page_is_hidden_from_visitors(client, monkeypatch):
    monkeypatch.setattr(jobs, "get_current_user", lambda req: (None, None))
    monkeypatch.setattr(jobs, "get_job", _lapsed_job)
    assert client.get("/jobs/4").status_code == 404


def test_is_job_open():
    assert jobs.is_job_open({"is_active": True, "expires_at": None})
    assert jobs.is_job_open({"is_active": True, "expires_at": "2999-01-01T00:00:00"})
    assert not jobs.is_job_open({"is_active": True, "expires_at": "2001-01-01T00:00:00"})
    assert not jobs.is_job_open({"is_active": False, "expires_at": None})
    assert not jobs.is_job_open(None)


@pytest.fixture
def bookmarks(applicant, monkeypatch):
    state = {"saved": [], "removed": []}
    monkeypatch.setattr(jobs, "save_job", lambda uid, job_id: state["saved"].append((uid, job_id)) or True)
    monkeypatch.setattr(jobs, "unsave_job", lambda uid, job_id: state["removed"].append((uid, job_id)) or True)
    return state


def test_save_and_unsave_listing(client, bookmarks):
    resp = client.post("/jobs/4/save", data={"saved": "1", "csrf_token": "tok"})
    assert resp.status_code == 303
    assert resp.headers["location"] == "/jobs/4"
    assert bookmarks["saved"] == [(3, 4)]

    client.post("/jobs/4/save", data={"saved": "0", "csrf_token": "tok"})
    assert bookmarks["removed"] == [(3, 4)]


def test_save_needs_csrf(client, bookmarks):
    resp = client.post("/jobs/4/save", data={"saved": "1", "csrf_token": "wrong"})
    assert resp.status_code == 403
    assert bookmarks["saved"] == []


def test_lapsed_listing_cannot_be_saved(client, bookmarks, monkeypatch):
    monkeypatch.setattr(jobs, "get_job", _lapsed_job)
    resp = client.post("/jobs/4/save", data={"saved": "1", "csrf_token": "tok"})
    assert resp.status_code == 404
    assert bookmarks["saved"] == []


def test_saved_list_page(client, applicant, monkeypatch):
    monkeypatch.setattr(
        jobs,
        "list_saved_jobs",
        lambda uid: [{"id": 9, "title": "<b>Chef</b>", "company_name": "Acme", "location": "Leeds", "saved_at": "2026-01-02T10:00:00"}],
    )
    resp = client.get("/jobs/saved")
    assert resp.status_code == 200
    assert '<a href="/jobs/9">&lt;b&gt;Chef&lt;/b&gt;</a>' in resp.text
    assert "2026-01-02" in resp.text


def test_job_page_offers_unsave_for_saved_listing(client, monkeypatch):
    monkeypatch.setattr(jobs, "get_current_user", lambda req: (PRO, None))
    monkeypatch.setattr(jobs, "get_job", lambda job_id: {"id": job_id, "is_active": True, "owner_id": 1, "title": "Chef"})
    monkeypatch.setattr(jobs, "increment_job_views", lambda job_id: None)
    monkeypatch.setattr(jobs, "is_job_saved", lambda uid, job_id: True)
    resp = client.get("/jobs/4")
    assert resp.status_code == 200
    assert 'action="/jobs/4/save"' in resp.text
    assert "Remove from saved" in resp.text
