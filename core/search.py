"""
Relevance scoring for the contractor directory and map-centre selection.

Scoring is a fixed ladder of string comparisons; the first matching rung wins.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

from core.geo import DEFAULT_CENTER


def split_list(value) -> List[str]:
    """Skills/services/languages are stored comma-separated; accept lists too."""
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        items = value
    else:
        items = str(value).split(",")
    return [str(v).strip() for v in items if str(v).strip()]


def capitalize_filter(value: str | None) -> str:
    """'ENGLISH' -> 'English', matching how languages and skills are stored."""
    value = (value or "").strip()
    if not value:
        return ""
    return value[0].upper() + value[1:].lower()


def score_professional(profile: Dict, term: str) -> float:
    term = term.strip().lower()
    title = (profile.get("title") or "").lower()
    skills = [s.lower() for s in split_list(profile.get("skills"))]
    if title == term:
        return 4
    if term in title:
        return 3
    if term in skills:
        return 2
    if any(term in s for s in skills):
        return 1
    for field in ("first_name", "last_name", "nickname", "bio"):
        if term in (profile.get(field) or "").lower():
            return 0.5
    return 0


def score_company(profile: Dict, term: str) -> float:
    term = term.strip().lower()
    name = (profile.get("company_name") or "").lower()
    services = [s.lower() for s in split_list(profile.get("services"))]
    if name == term:
        return 5
    if term in name:
        return 4
    if term in services:
        return 3
    if any(term in s for s in services):
        return 2
    if term in (profile.get("industry") or "").lower():
        return 1
    if term in (profile.get("description") or "").lower():
        return 0.5
    return 0


def normalize_professional(profile: Dict) -> Dict:
    name = profile.get("nickname") or f"{profile.get('first_name') or ''} {profile.get('last_name') or ''}".strip()
    return {**profile, "type": "professional", "name": name, "description": profile.get("bio")}


def normalize_company(profile: Dict) -> Dict:
    return {**profile, "type": "company", "name": profile.get("company_name")}


def rank_contractors(contractors: Iterable[Dict], search: str | None) -> List[Dict]:
    """
    Attach `relevance` to each result, drop non-matches and order by score then
    newest first. Without a search term the input order is kept.
    """
    items = list(contractors)
    term = (search or "").strip().lower()
    if not term:
        return items

    scored = []
    for item in items:
        if item.get("type") == "company":
            score = score_company(item, term)
        else:
            score = score_professional(item, term)
        if score > 0:
            scored.append({**item, "relevance": score})

    # Two stable sorts: newest first, then by score.
    scored.sort(key=lambda c: c.get("created_at") or "", reverse=True)
    scored.sort(key=lambda c: c["relevance"], reverse=True)
    return scored


def map_center(lat: Optional[float], lng: Optional[float], results: Iterable[Dict]) -> Tuple[float, float]:
    if lat is not None and lng is not None:
        return float(lat), float(lng)
    for item in results:
        if item.get("latitude") and item.get("longitude"):
            return float(item["latitude"]), float(item["longitude"])
    return DEFAULT_CENTER


__all__ = [
    "split_list",
    "capitalize_filter",
    "score_professional",
    "score_company",
    "normalize_professional",
    "normalize_company",
    "rank_contractors",
    "map_center",
]
