from core.geo import DEFAULT_CENTER
from core.search import (
    capitalize_filter,
    map_center,
    rank_contractors,
    score_company,
    score_professional,
    split_list,
)
from app.routes import public


def test_split_list_accepts_text_and_lists():
    assert split_list("Plumbing, Tiling ,, Gas") == ["Plumbing", "Tiling", "Gas"]
    assert split_list(["a", " b "]) == ["a", "b"]
    assert split_list(None) == []


def test_capitalize_filter():
    assert capitalize_filter("ENGLISH") == "English"
    assert capitalize_filter("") == ""


def test_professional_scores():
    pro = {"title": "Electrician", "skills": "Wiring, Solar panels", "bio": "Friendly sparky"}
    assert score_professional(pro, "electrician") == 4
    assert score_professional(pro, "electric") == 3
    assert score_professional(pro, "wiring") == 2
    assert score_professional(pro, "solar") == 1
    assert score_professional(pro, "sparky") == 0.5
    assert score_professional(pro, "roofing") == 0


def test_company_scores():
    company = {
        "company_name": "Acme Roofing",
        "services": "Roof repair, Guttering",
        "industry": "Construction",
        "description": "Family firm since 1990",
    }
    assert score_company(company, "acme roofing") == 5
    assert score_company(company, "acme") == 4
    assert score_company(company, "guttering") == 3
    assert score_company(company, "repair") == 2
    assert score_company(company, "construction") == 1
    assert score_company(company, "family") == 0.5


def test_rank_contractors_drops_misses_and_sorts_by_score_then_newest():
    items = [
        {"type": "professional", "title": "Plumber", "created_at": "2025-01-01"},
        {"type": "company", "company_name": "Plumb Pros", "created_at": "2025-02-01"},
        {"type": "professional", "title": "Senior Plumber", "created_at": "2025-03-01"},
        {"type": "professional", "title": "Plumber", "created_at": "2025-04-01"},
        {"type": "professional", "title": "Painter", "created_at": "2025-05-01"},
    ]
    ranked = rank_contractors(items, "plumber")
    assert [(r["relevance"], r["created_at"]) for r in ranked] == [
        (4, "2025-04-01"),
        (4, "2025-01-01"),
        (3, "2025-03-01"),
    ]


def test_rank_contractors_without_term_keeps_everything():
    items = [{"type": "company", "company_name": "X"}]
    assert rank_contractors(items, "  ") == items


def test_map_center_fallbacks():
    assert map_center(53.0, -1.0, []) == (53.0, -1.0)
    assert map_center(None, None, [{"latitude": None}, {"latitude": 52.1, "longitude": 0.5}]) == (52.1, 0.5)
    assert map_center(None, None, []) == DEFAULT_CENTER


def test_find_contractors_merges_and_filters(monkeypatch):
    calls = {}

    def fake_professionals(**kwargs):
        calls["professionals"] = kwargs
        return [{"user_id": 1, "title": "Tiler", "first_name": "Sam", "created_at": "2025-01-01"}]

    def fake_companies(**kwargs):
        calls["companies"] = kwargs
        return [{"user_id": 2, "company_name": "Tile World", "created_at": "2025-02-01"}]

    monkeypatch.setattr(public, "search_professionals", fake_professionals)
    monkeypatch.setattr(public, "search_companies", fake_companies)

    results = public.find_contractors({"search": "tile", "language": "POLISH", "lat": "51.5", "lng": "-0.1"})

    assert [r["type"] for r in results] == ["company", "professional"]
    assert calls["professionals"]["language"] == "Polish"
    assert calls["companies"]["lat"] == 51.5


def test_find_contractors_self_employed_skips_companies(monkeypatch):
    monkeypatch.setattr(public, "search_professionals", lambda **kw: [{"user_id": 1, "title": "Roofer"}])

    def fail(**kwargs):
        raise AssertionError("companies should not be searched")

    monkeypatch.setattr(public, "search_companies", fail)
    results = public.find_contractors({"self_employed": "true"})
    assert [r["user_id"] for r in results] == [1]
