"""
CV builder: turn the builder form into a CV document and render it as a
standalone HTML file that prints cleanly to PDF.

The builder edits list sections as plain text, one entry per line with
fields separated by "|":

    Work experience   Job title | Company | Start | End or "present" | Location
                      "- " lines add responsibilities, "+ " lines achievements
    Education         Degree | Institution | Field of study | Start | End or "present" | Grade
    Skills            Skill | Level | Category
    Languages         Language | Level | Certification
    Certifications    Name | Issuing organisation | Issued | Expires | Credential ID
    Projects          Name | Role | Start | End or "present" | URL | Tech, Tech
                      "- " lines make up the description

Dates are YYYY-MM or YYYY-MM-DD.
"""
from __future__ import annotations

import re
from datetime import datetime
from html import escape
from typing import Dict, List

PERSONAL_FIELDS = (
    "first_name",
    "last_name",
    "title",
    "email",
    "phone",
    "location",
    "portfolio_url",
    "linkedin_url",
    "github_url",
)

# section -> (fields in line order, key the "- " lines go to, key the "+ " lines go to)
SECTIONS = {
    "work_experience": (("job_title", "company_name", "start_date", "end_date", "location"), "responsibilities", "achievements"),
    "education": (("degree_title", "institution_name", "field_of_study", "start_date", "end_date", "grade"), "notes", None),
    "skills": (("skill_name", "proficiency_level", "category"), None, None),
    "languages": (("language_name", "proficiency_level", "certification"), None, None),
    "certifications": (("certification_name", "issuing_organization", "issue_date", "expiry_date", "credential_id"), None, None),
    "projects": (("project_name", "role", "start_date", "end_date", "project_url", "technologies_used"), "notes", None),
}

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def _snake(key: str) -> str:
    return _CAMEL_RE.sub("_", key).lower()


def normalize_cv(data):
    """Accept camelCase payloads (personalInfo, workExperience, ...) as well as snake_case."""
    if isinstance(data, dict):
        return {_snake(str(k)): normalize_cv(v) for k, v in data.items()}
    if isinstance(data, list):
        return [normalize_cv(v) for v in data]
    return data


def _is_present(value: str) -> bool:
    return (value or "").strip().lower() in ("present", "current", "now", "ongoing")


def parse_entries(text: str | None, section: str) -> List[Dict]:
    fields, dash_key, plus_key = SECTIONS[section]
    entries: List[Dict] = []
    for raw in (text or "").splitlines():
        line = raw.strip()
        if not line:
            continue
        marker = line[:2]
        if marker in ("- ", "+ ") and entries:
            key = dash_key if marker == "- " else plus_key
            if key:
                entries[-1].setdefault(key, []).append(line[2:].strip())
            continue

        parts = [p.strip() for p in line.split("|")]
        entry = {name: (parts[i] if i < len(parts) else "") for i, name in enumerate(fields)}
        if "end_date" in entry and _is_present(entry["end_date"]):
            entry["end_date"] = ""
            entry["is_current" if section == "work_experience" else "is_ongoing"] = True
        if section == "projects":
            entry["technologies_used"] = [t.strip() for t in entry["technologies_used"].split(",") if t.strip()]
        entries.append(entry)

    for entry in entries:
        notes = entry.pop("notes", None)
        if notes:
            entry["description"] = " ".join(notes)
    return entries


def _entry_line(entry: Dict, section: str) -> str:
    fields, dash_key, plus_key = SECTIONS[section]
    values = []
    for name in fields:
        value = entry.get(name) or ""
        if name == "end_date" and (entry.get("is_current") or entry.get("is_ongoing")):
            value = "present"
        if isinstance(value, list):
            value = ", ".join(value)
        values.append(str(value))
    while values and not values[-1]:
        values.pop()
    lines = [" | ".join(values)]
    if dash_key == "notes" and entry.get("description"):
        lines.append(f"- {entry['description']}")
    elif dash_key:
        lines.extend(f"- {item}" for item in entry.get(dash_key) or [])
    if plus_key:
        lines.extend(f"+ {item}" for item in entry.get(plus_key) or [])
    return "\n".join(lines)


def section_text(cv: Dict, section: str) -> str:
    """Inverse of parse_entries, for refilling the builder form."""
    return "\n".join(_entry_line(entry, section) for entry in cv.get(section) or [])


def cv_from_form(form: Dict) -> Dict:
    return {
        "personal_info": {name: (form.get(name) or "").strip() for name in PERSONAL_FIELDS},
        "summary": (form.get("summary") or "").strip(),
        **{section: parse_entries(form.get(section), section) for section in SECTIONS},
    }


def cv_from_profile(user: Dict, profile: Dict | None) -> Dict:
    """Starting point for a first CV: name, headline, location and skills from the profile."""
    profile = profile or {}
    skills = [s.strip() for s in (profile.get("skills") or "").split(",") if s.strip()]
    languages = [s.strip() for s in (profile.get("spoken_languages") or "").split(",") if s.strip()]
    return {
        "personal_info": {
            "first_name": profile.get("first_name") or "",
            "last_name": profile.get("last_name") or "",
            "title": profile.get("title") or "",
            "email": user.get("email") or "",
            "location": profile.get("location") or "",
        },
        "summary": profile.get("bio") or "",
        "skills": [{"skill_name": s, "proficiency_level": "", "category": ""} for s in skills],
        "languages": [{"language_name": lang, "proficiency_level": "", "certification": ""} for lang in languages],
    }


def validate_cv(cv: Dict) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    info = cv.get("personal_info") or {}
    if not (info.get("first_name") or "").strip():
        errors["first_name"] = "First name is required."
    if not (info.get("last_name") or "").strip():
        errors["last_name"] = "Last name is required."
    for url_field in ("portfolio_url", "linkedin_url", "github_url"):
        url = (info.get(url_field) or "").strip()
        if url and not url.lower().startswith(("http://", "https://")):
            errors[url_field] = "Links must start with http:// or https://."
    return errors


def format_month(value: str | None) -> str:
    """'2024-03' or '2024-03-15' -> 'March 2024'. Anything else is shown as typed."""
    if not value:
        return ""
    for fmt in ("%Y-%m-%d", "%Y-%m"):
        try:
            return datetime.strptime(value.strip(), fmt).strftime("%B %Y")
        except ValueError:
            continue
    return value


def _span(start, end, ongoing) -> str:
    start_text = format_month(start)
    end_text = "Present" if ongoing else format_month(end)
    if start_text and end_text:
        return f"{start_text} - {end_text}"
    return start_text or end_text


def cv_filename(cv: Dict) -> str:
    info = cv.get("personal_info") or {}

    def part(value) -> str:
        return "".join(ch for ch in str(value or "") if ch.isalnum() or ch in "-_") or "CV"

    return f"{part(info.get('first_name'))}_{part(info.get('last_name'))}_CV.html"


def _safe_url(url) -> str:
    url = str(url or "").strip()
    return escape(url, quote=True) if url.lower().startswith(("http://", "https://")) else ""


def _item(title, subtitle, when, extra: str = "") -> str:
    return f"""
    <div class="item">
      <div class="item-header">
        <div><div class="item-title">{escape(str(title or ''))}</div><div class="item-sub">{escape(str(subtitle or ''))}</div></div>
        <div class="item-date">{when}</div>
      </div>
      {extra}
    </div>
    """


def _bullets(label: str, items) -> str:
    if not items:
        return ""
    lis = "".join(f"<li>{escape(str(i))}</li>" for i in items)
    return f'<div class="item-body"><strong>{label}</strong><ul>{lis}</ul></div>'


def _section(title: str, inner: str) -> str:
    return f'<div class="section"><div class="section-title">{title}</div>{inner}</div>' if inner else ""


def render_cv_body(cv: Dict) -> str:
    """The CV markup without the document shell, so pages can embed it."""
    info = cv.get("personal_info") or {}
    contact = [escape(str(info[k])) for k in ("location", "email", "phone") if info.get(k)]
    for key, label in (("portfolio_url", "Portfolio"), ("linkedin_url", "LinkedIn"), ("github_url", "GitHub")):
        href = _safe_url(info.get(key))
        if href:
            contact.append(f'<a href="{href}">{label}</a>')

    work = "".join(
        _item(
            job.get("job_title"),
            job.get("company_name"),
            escape(_span(job.get("start_date"), job.get("end_date"), job.get("is_current")))
            + (f"<br>{escape(job['location'])}" if job.get("location") else ""),
            _bullets("Key responsibilities", job.get("responsibilities")) + _bullets("Key achievements", job.get("achievements")),
        )
        for job in cv.get("work_experience") or []
    )
    education = "".join(
        _item(
            edu.get("degree_title"),
            " · ".join(str(v) for v in (edu.get("institution_name"), edu.get("field_of_study")) if v),
            escape(_span(edu.get("start_date"), edu.get("end_date"), edu.get("is_ongoing"))),
            (f'<div class="item-body">Grade: {escape(str(edu["grade"]))}</div>' if edu.get("grade") else "")
            + (f'<div class="item-body">{escape(str(edu["description"]))}</div>' if edu.get("description") else ""),
        )
        for edu in cv.get("education") or []
    )

    grouped: Dict[str, List[Dict]] = {}
    for skill in cv.get("skills") or []:
        grouped.setdefault(skill.get("category") or "Other", []).append(skill)
    skills = "".join(
        f'<div class="skill-group"><div class="item-title">{escape(category)}</div>'
        + "".join(
            f'<div class="skill"><span>{escape(str(s.get("skill_name") or ""))}</span>'
            f'<span class="muted">{escape(str(s.get("proficiency_level") or ""))}</span></div>'
            for s in items
        )
        + "</div>"
        for category, items in grouped.items()
    )
    skills = f'<div class="grid">{skills}</div>' if skills else ""

    languages = "".join(
        f'<div><strong>{escape(str(lang.get("language_name") or ""))}</strong>'
        + (f' ({escape(str(lang["proficiency_level"]))})' if lang.get("proficiency_level") else "")
        + (f'<br><span class="muted">{escape(str(lang["certification"]))}</span>' if lang.get("certification") else "")
        + "</div>"
        for lang in cv.get("languages") or []
    )
    languages = f'<div class="grid">{languages}</div>' if languages else ""

    certifications = "".join(
        _item(
            cert.get("certification_name"),
            cert.get("issuing_organization"),
            (f"Issued: {escape(format_month(cert.get('issue_date')))}" if cert.get("issue_date") else "")
            + (f"<br>Expires: {escape(format_month(cert.get('expiry_date')))}" if cert.get("expiry_date") else ""),
            (f'<div class="item-body muted">ID: {escape(str(cert["credential_id"]))}</div>' if cert.get("credential_id") else "")
            + (f'<div class="item-body">{escape(str(cert["description"]))}</div>' if cert.get("description") else ""),
        )
        for cert in cv.get("certifications") or []
    )
    projects = "".join(
        _item(
            project.get("project_name"),
            f"Role: {project['role']}" if project.get("role") else "",
            escape(_span(project.get("start_date"), project.get("end_date"), project.get("is_ongoing"))),
            (f'<div class="item-body">{escape(str(project["description"]))}</div>' if project.get("description") else "")
            + (
                f'<div class="item-body"><strong>Technologies:</strong> {escape(", ".join(project["technologies_used"]))}</div>'
                if project.get("technologies_used")
                else ""
            )
            + (f'<div class="item-body"><a href="{_safe_url(project.get("project_url"))}">View project</a></div>' if _safe_url(project.get("project_url")) else ""),
        )
        for project in cv.get("projects") or []
    )

    name = escape(f"{info.get('first_name') or ''} {info.get('last_name') or ''}".strip())
    return f"""
    <div class="cv">
      <div class="header">
        <div class="name">{name}</div>
        {f'<div class="headline">{escape(info["title"])}</div>' if info.get("title") else ""}
        <div class="contact">{" &middot; ".join(contact)}</div>
      </div>
      {_section("Professional Summary", f"<p>{escape(cv['summary'])}</p>" if cv.get("summary") else "")}
      {_section("Work Experience", work)}
      {_section("Education", education)}
      {_section("Skills", skills)}
      {_section("Languages", languages)}
      {_section("Certifications", certifications)}
      {_section("Projects", projects)}
    </div>
    """


CV_STYLES = """
  .cv { font-family: Arial, sans-serif; color: #333; background: #fff; padding: 24px; }
  .cv .header { margin-bottom: 30px; }
  .cv .name { font-size: 28px; font-weight: bold; margin-bottom: 8px; }
  .cv .headline { font-size: 18px; color: #666; margin-bottom: 15px; }
  .cv .contact, .cv .muted, .cv .item-sub, .cv .item-date { font-size: 14px; color: #666; }
  .cv .section { margin-bottom: 25px; page-break-inside: avoid; }
  .cv .section-title { font-size: 18px; font-weight: bold; border-bottom: 2px solid #333; padding-bottom: 5px; margin-bottom: 15px; }
  .cv .item { margin-bottom: 20px; }
  .cv .item-header { display: flex; justify-content: space-between; gap: 1rem; margin-bottom: 8px; }
  .cv .item-title { font-weight: bold; }
  .cv .item-body { margin-top: 8px; }
  .cv .grid { display: grid; grid-template-columns: repeat(auto-fit, minmax(200px, 1fr)); gap: 15px; }
  .cv .skill { display: flex; justify-content: space-between; font-size: 14px; }
  .cv a { color: #0066cc; }
"""


def render_cv_document(cv: Dict) -> str:
    """Standalone HTML file; it opens the print dialog so it can be saved as PDF."""
    info = cv.get("personal_info") or {}
    title = escape(f"{info.get('first_name') or ''} {info.get('last_name') or ''}".strip() or "CV")
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <title>{title} - CV</title>
  <style>
    body {{ margin: 40px; }}
    @media print {{ body {{ margin: 20px; }} }}
    {CV_STYLES}
  </style>
</head>
<body>
  {render_cv_body(cv)}
  <script>window.onload = function () {{ setTimeout(function () {{ window.print(); }}, 1000); }};</script>
</body>
</html>
"""
