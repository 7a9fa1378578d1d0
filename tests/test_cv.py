import pytest
from fastapi.testclient import TestClient

from app import cv
from app.api import app
from app.routes import cv as cv_routes

PRO = {"id": 3, "email": "ada@pro.test", "user_type": "professional"}
COMPANY = {"id": 1, "email": "hr@acme.test", "user_type": "company"}

WORK_TEXT = """Head chef | The Ritz | 2020-01 | present | London
- Ran the pass
+ Won a star
Commis chef | Savoy | 2018-03 | 2019-12
"""

ADA = {"personalInfo": {"firstName": "Ada", "lastName": "Lovelace"}, "summary": "Analyst"}


@pytest.fixture
def client():
    return TestClient(app, cookies={"csrf_token": "tok"}, follow_redirects=False)


@pytest.fixture
def signed_in(monkeypatch):
    state = {"user": PRO, "saved": [], "stored": None}
    monkeypatch.setattr(cv_routes, "get_current_user", lambda req: (state["user"], "sess"))
    monkeypatch.setattr(cv_routes, "require_user", lambda req: (state["user"], None))
    monkeypatch.setattr(cv_routes, "get_cv", lambda uid: state["stored"])
    monkeypatch.setattr(cv_routes, "save_cv", lambda uid, data: state["saved"].append((uid, data)) or 1)
    monkeypatch.setattr(cv_routes, "get_professional_profile", lambda uid: {"first_name": "Ada", "skills": "Maths, Logic"})
    return state


def test_work_lines_become_entries_with_bullets():
    entries = cv.parse_entries(WORK_TEXT, "work_experience")
    assert len(entries) == 2
    head = entries[0]
    assert head["job_title"] == "Head chef"
    assert head["is_current"] is True and head["end_date"] == ""
    assert head["responsibilities"] == ["Ran the pass"]
    assert head["achievements"] == ["Won a star"]
    assert entries[1]["end_date"] == "2019-12"
    assert entries[1]["location"] == ""


def test_project_description_and_technologies():
    entries = cv.parse_entries("Site | Lead | 2023-01 | ongoing | https://x.test | Python, SQL\n- Built it\n- Shipped it", "projects")
    assert entries[0]["technologies_used"] == ["Python", "SQL"]
    assert entries[0]["is_ongoing"] is True
    assert entries[0]["description"] == "Built it Shipped it"


def test_section_text_refills_builder():
    data = {"work_experience": cv.parse_entries(WORK_TEXT, "work_experience")}
    assert cv.section_text(data, "work_experience").splitlines() == [
        "Head chef | The Ritz | 2020-01 | present | London",
        "- Ran the pass",
        "+ Won a star",
        "Commis chef | Savoy | 2018-03 | 2019-12",
    ]


def test_camel_case_payload_is_normalised():
    data = cv.normalize_cv({"personalInfo": {"firstName": "Ada"}, "workExperience": [{"jobTitle": "Analyst", "isCurrent": True}]})
    assert data == {"personal_info": {"first_name": "Ada"}, "work_experience": [{"job_title": "Analyst", "is_current": True}]}


def test_names_are_required_and_links_checked():
    errors = cv.validate_cv({"personal_info": {"first_name": "Ada", "github_url": "javascript:alert(1)"}})
    assert set(errors) == {"last_name", "github_url"}


def test_format_month():
    assert cv.format_month("2024-03") == "March 2024"
    assert cv.format_month("2024-03-15") == "March 2024"
    assert cv.format_month("Spring 2020") == "Spring 2020"
    assert cv.format_month(None) == ""


def test_filename_keeps_only_safe_characters():
    assert cv.cv_filename({"personal_info": {"first_name": "Jo Ann", "last_name": 'O"Neil'}}) == "JoAnn_ONeil_CV.html"
    assert cv.cv_filename({}) == "CV_CV_CV.html"


def test_document_escapes_user_text_and_drops_unsafe_links():
    html = cv.render_cv_document(
        {
            "personal_info": {"first_name": "<script>alert(1)</script>", "last_name": "X", "portfolio_url": "javascript:alert(2)"},
            "work_experience": [{"job_title": "Chef & owner", "company_name": "Bistro", "start_date": "2020-01", "is_current": True}],
        }
    )
    assert "<script>alert(1)" not in html
    assert "&lt;script&gt;" in html
    assert "javascript:" not in html
    assert "Chef &amp; owner" in html
    assert "January 2020 - Present" in html
    assert "window.print()" in html


def test_generate_requires_login(client, monkeypatch):
    monkeypatch.setattr(cv_routes, "get_current_user", lambda req: (None, None))
    resp = client.post("/api/cv/generate-pdf", json={"professionalId": 3, "cvData": ADA})
    assert resp.status_code == 401
    assert resp.json() == {"error": "Unauthorized"}


def test_generate_returns_html_attachment(client, signed_in):
    resp = client.post("/api/cv/generate-pdf", json={"professionalId": 3, "cvData": ADA})
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/html")
    assert resp.headers["content-disposition"] == 'attachment; filename="Ada_Lovelace_CV.html"'
    assert "Ada Lovelace" in resp.text
    assert "Analyst" in resp.text


@pytest.mark.parametrize("payload", [{"professionalId": 3}, {"cvData": ADA}, {"professional_id": 3, "cv_data": {}}])
def test_generate_rejects_missing_data(client, signed_in, payload):
    resp = client.post("/api/cv/generate-pdf", json=payload)
    assert resp.status_code == 400
    assert resp.json() == {"error": "Missing required data"}


def test_generate_refuses_someone_elses_cv(client, signed_in):
    resp = client.post("/api/cv/generate-pdf", json={"professionalId": 99, "cvData": ADA})
    assert resp.status_code == 403


def test_generate_reports_render_failure(client, signed_in, monkeypatch):
    def broken(data):
        raise RuntimeError("boom")

    monkeypatch.setattr(cv_routes, "render_cv_document", broken)
    resp = client.post("/api/cv/generate-pdf", json={"professionalId": 3, "cvData": ADA})
    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to generate CV"}


def test_download_form_uses_stored_cv(client, signed_in):
    resp = client.post("/api/cv/generate-pdf", data={"professional_id": "3", "csrf_token": "tok"})
    assert resp.status_code == 400

    signed_in["stored"] = {"personal_info": {"first_name": "Ada", "last_name": "King"}}
    resp = client.post("/api/cv/generate-pdf", data={"professional_id": "3", "csrf_token": "tok"})
    assert resp.status_code == 200
    assert 'filename="Ada_King_CV.html"' in resp.headers["content-disposition"]

    assert client.post("/api/cv/generate-pdf", data={"professional_id": "3", "csrf_token": "bad"}).status_code == 403


def test_builder_prefills_from_profile(client, signed_in):
    resp = client.get("/cv/builder")
    assert resp.status_code == 200
    assert 'name="first_name" maxlength="200" value="Ada"' in resp.text
    assert "Maths |" not in resp.text
    assert "Maths\nLogic" in resp.text


def test_builder_saves_and_redirects_to_preview(client, signed_in):
    resp = client.post(
        "/cv/builder",
        data={"first_name": "Ada", "last_name": "Lovelace", "work_experience": WORK_TEXT, "skills": "Maths | Expert | Science", "csrf_token": "tok"},
    )
    assert resp.status_code == 303
    assert resp.headers["location"] == "/cv/preview"
    uid, saved = signed_in["saved"][0]
    assert uid == 3
    assert saved["personal_info"]["last_name"] == "Lovelace"
    assert saved["work_experience"][0]["responsibilities"] == ["Ran the pass"]
    assert saved["skills"] == [{"skill_name": "Maths", "proficiency_level": "Expert", "category": "Science"}]


def test_builder_needs_both_names(client, signed_in):
    resp = client.post("/cv/builder", data={"first_name": "Ada", "csrf_token": "tok"})
    assert resp.status_code == 400
    assert "Last name is required." in resp.text
    assert signed_in["saved"] == []


def test_builder_is_for_professionals(client, signed_in):
    signed_in["user"] = COMPANY
    assert client.get("/cv/builder").status_code == 403


def test_preview_offers_download(client, signed_in):
    assert client.get("/cv/preview").headers["location"] == "/cv/builder"
    signed_in["stored"] = {"personal_info": {"first_name": "Ada", "last_name": "King"}, "summary": "Analyst"}
    resp = client.get("/cv/preview")
    assert resp.status_code == 200
    assert 'action="/api/cv/generate-pdf"' in resp.text
    assert "Ada King" in resp.text
