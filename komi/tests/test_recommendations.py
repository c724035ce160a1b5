from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from komi.app import app
from komi.llm.config import LLMConfig, get_llm_config
from komi.nlp.intent import fallback_intent, normalize_intent, renormalize
from komi.nlp.models import FoodIntent
from komi.recommendations.data_store import InMemoryMenuRepository
from komi.recommendations.models import PreferenceConstraints, RecommendationRequest
from komi.recommendations.retrieval import (
    filter_candidates,
    get_recommendations,
    nearby_items,
    popular_items,
    recommend,
    required_restrictions,
)
from komi.recommendations.scoring import limit_for_urgency, rank_candidates, score_candidate

NO_CONSTRAINTS = PreferenceConstraints()


def _intent(**raw):
    return normalize_intent(raw, "test")


def _ids(items):
    return [item.id for item in items]


@pytest.fixture
def client():
    app.dependency_overrides[get_llm_config] = lambda: LLMConfig(enabled=False)
    yield TestClient(app)
    app.dependency_overrides.clear()


# ── Filtering ────────────────────────────────────────────────────────────


class TestFiltering:
    def test_every_restriction_must_match(self, make_item):
        corpus = [
            make_item("1", dietary=("vegan", "gluten-free")),
            make_item("2", dietary=("vegan",)),
            make_item("3", dietary=("gluten-free", "vegetarian")),
        ]
        intent = _intent(dietaryRestrictions=["vegan", "gluten-free"])

        assert _ids(filter_candidates(corpus, intent, NO_CONSTRAINTS)) == ["1"]

    def test_vegetarian_tag_does_not_satisfy_vegan(self, make_item):
        corpus = [make_item("1", dietary=("vegetarian",))]
        assert filter_candidates(corpus, _intent(dietaryRestrictions=["vegan"]), NO_CONSTRAINTS) == []

    def test_caller_restrictions_are_added_to_intent(self, make_item):
        corpus = [
            make_item("1", dietary=("vegan", "gluten-free")),
            make_item("2", dietary=("vegan",)),
        ]
        intent = _intent(dietaryRestrictions=["vegan"])
        constraints = PreferenceConstraints(dietary_restrictions=["sin gluten"])

        assert required_restrictions(intent, constraints) == ["vegan", "gluten-free"]
        assert _ids(filter_candidates(corpus, intent, constraints)) == ["1"]

    def test_no_restrictions_keeps_everything(self, make_item):
        corpus = [make_item("1"), make_item("2", dietary=("halal",))]
        assert len(filter_candidates(corpus, _intent(), NO_CONSTRAINTS)) == 2

    def test_price_and_rating_limits(self, make_item):
        corpus = [
            make_item("1", price=8.0, rating=4.5),
            make_item("2", price=20.0, rating=4.9),
            make_item("3", price=9.0, rating=3.0),
        ]
        constraints = PreferenceConstraints(max_price=10.0, min_rating=4.0)

        assert _ids(filter_candidates(corpus, _intent(), constraints)) == ["1"]

    def test_preferred_cuisines_need_one_match(self, make_item):
        corpus = [
            make_item("1", cuisine=("italian", "pizza")),
            make_item("2", cuisine=("japanese",)),
            make_item("3", cuisine=("mexican",)),
        ]
        constraints = PreferenceConstraints(preferred_cuisines=["Italiana", "japanese"])

        assert _ids(filter_candidates(corpus, _intent(), constraints)) == ["1", "2"]


# ── Scoring ──────────────────────────────────────────────────────────────


class TestScoring:
    def test_cuisine_and_rating_without_constraints(self, make_item):
        item = make_item("1", cuisine=("italian",), rating=5.0)
        score = score_candidate(item, _intent(cuisineTypes=["italian"]), NO_CONSTRAINTS)
        assert score == pytest.approx(30 + 10 + 5 + 2)

    def test_constraints_met(self, make_item):
        item = make_item("1", cuisine=("italian",), rating=5.0, price=10.0, preparation_time=20)
        constraints = PreferenceConstraints(max_price=15.0, max_delivery_time=30)
        score = score_candidate(item, _intent(cuisineTypes=["italian"]), constraints)
        assert score == pytest.approx(30 + 10 + 10 + 5)

    def test_constraints_missed_add_nothing(self, make_item):
        item = make_item("1", rating=0.0, price=30.0, preparation_time=60)
        constraints = PreferenceConstraints(max_price=15.0, max_delivery_time=30)
        assert score_candidate(item, _intent(), constraints) == 0.0

    def test_preference_matches_description(self, make_item):
        item = make_item("1", rating=0.0, description="Curry aromático con garbanzos")
        score = score_candidate(item, _intent(preferences=["curry"]), NO_CONSTRAINTS)
        assert score == pytest.approx(20 + 5 + 2)

    def test_score_never_exceeds_100(self, make_item):
        item = make_item(
            "1",
            name="Vegan curry",
            cuisine=("indian",),
            dietary=("vegan",),
            rating=5.0,
            price=5.0,
            preparation_time=10,
        )
        intent = _intent(cuisineTypes=["indian"], dietaryRestrictions=["vegan"], preferences=["curry"])
        constraints = PreferenceConstraints(max_price=10.0, max_delivery_time=30)

        score = score_candidate(item, intent, constraints)
        assert 0.0 <= score <= 100.0
        assert score == pytest.approx(100.0)


# ── Ranking ──────────────────────────────────────────────────────────────


class TestRanking:
    def test_orders_by_score_then_rating_then_distance(self, make_item):
        scored = [
            make_item("a", rating=4.0, distance=1.0).model_copy(update={"match_score": 50.0}),
            make_item("b", rating=4.5, distance=5.0).model_copy(update={"match_score": 50.0}),
            make_item("c", rating=4.5, distance=2.0).model_copy(update={"match_score": 50.0}),
            make_item("d", rating=3.0, distance=9.0).model_copy(update={"match_score": 80.0}),
        ]
        assert _ids(rank_candidates(scored)) == ["d", "c", "b", "a"]

    def test_missing_distance_sorts_last(self, make_item):
        scored = [
            make_item("a", distance=None).model_copy(update={"match_score": 50.0}),
            make_item("b", distance=7.0).model_copy(update={"match_score": 50.0}),
        ]
        assert _ids(rank_candidates(scored)) == ["b", "a"]

    def test_full_tie_breaks_on_id(self, make_item):
        scored = [make_item(i).model_copy(update={"match_score": 10.0}) for i in ("z", "m", "a")]
        assert _ids(rank_candidates(scored)) == ["a", "m", "z"]

    @pytest.mark.parametrize("urgency,expected", [("high", 3), ("medium", 6), ("low", 10)])
    def test_urgency_limits(self, urgency, expected):
        assert limit_for_urgency(urgency) == expected


# ── Pipeline ─────────────────────────────────────────────────────────────


class TestRecommend:
    def test_vegan_gluten_free_curry(self, make_item):
        curry = make_item(
            "curry",
            name="Curry de Garbanzos Sin Gluten",
            cuisine=("indian", "curry"),
            dietary=("vegan", "vegetarian", "gluten-free"),
            rating=4.8,
        )
        pizza = make_item(
            "pizza",
            name="Pizza Margherita Vegana",
            cuisine=("italian", "pizza"),
            dietary=("vegan", "vegetarian"),
            rating=4.6,
        )
        intent = fallback_intent("quiero algo vegano con curry pero sin gluten")

        results, total = recommend([pizza, curry], intent, NO_CONSTRAINTS)

        assert total == 1
        assert _ids(results) == ["curry"]
        assert results[0].match_score == pytest.approx(30 + 25 + 20 + 9.6 + 5 + 2)

    def test_high_urgency_returns_top_three(self, make_item):
        corpus = [make_item(str(i), rating=i / 2) for i in range(10)]
        intent = _intent(urgency="high")

        results, total = recommend(corpus, intent, NO_CONSTRAINTS)

        assert total == 10
        assert _ids(results) == ["9", "8", "7"]
        scores = [r.match_score for r in results]
        assert scores == sorted(scores, reverse=True)
        assert len(set(scores)) == 3

    def test_corpus_items_are_not_mutated(self, make_item):
        item = make_item("1")
        recommend([item], _intent(), NO_CONSTRAINTS)
        assert item.match_score is None

    def test_get_recommendations_uses_supplied_analysis(self, make_item):
        repository = InMemoryMenuRepository([make_item("1", cuisine=("thai",)), make_item("2")])
        analysis = _intent(cuisineTypes=["thai"])
        request = RecommendationRequest(text="pad thai", analysis=analysis)

        response = get_recommendations(request, repository=repository, config=LLMConfig(enabled=False))

        assert response.analysis == analysis
        assert _ids(response.recommendations) == ["1", "2"]
        assert response.metadata.total_found == 2
        assert response.metadata.applied_filters.cuisine == ["thai"]

    def test_popular_items_are_deterministic(self, make_item):
        repository = InMemoryMenuRepository([
            make_item("b", rating=4.5),
            make_item("a", rating=4.5),
            make_item("c", rating=4.9, cuisine=("thai",)),
        ])

        items, total = popular_items(repository, limit=2)
        assert total == 3
        assert _ids(items) == ["c", "a"]

        items, total = popular_items(repository, cuisine="thai")
        assert (_ids(items), total) == (["c"], 1)


# ── Endpoints (CSV corpus) ───────────────────────────────────────────────


class TestRecommendationEndpoints:
    def test_recommendations_endpoint(self, client):
        resp = client.post(
            "/recommendations",
            json={"text": "quiero algo vegano con curry pero sin gluten"},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert [r["id"] for r in data["recommendations"]] == ["2", "3", "6", "12"]
        assert data["recommendations"][0]["matchScore"] == pytest.approx(91.6)
        assert data["analysis"]["degraded"] is True
        assert data["metadata"]["totalFound"] == 4
        assert data["metadata"]["appliedFilters"]["dietary"] == ["vegan", "gluten-free"]

    def test_recommendations_with_constraints(self, client):
        resp = client.post(
            "/recommendations",
            json={
                "text": "algo vegano",
                "preferences": {"maxPrice": 12.0, "preferredCuisines": ["mediterranean"]},
            },
        )
        assert resp.status_code == 200
        assert [r["id"] for r in resp.json()["recommendations"]] == ["3", "15"]

    def test_popular(self, client):
        resp = client.get("/recommendations/popular", params={"limit": 3})
        assert resp.status_code == 200
        data = resp.json()
        assert [i["id"] for i in data["items"]] == ["2", "5", "1"]
        assert data["total"] == 16
        assert data["showing"] == 3

    def test_popular_by_dietary(self, client):
        resp = client.get("/recommendations/popular", params={"dietary": "halal"})
        assert [i["id"] for i in resp.json()["items"]] == ["16", "15"]

    def test_popular_limit_validated(self, client):
        assert client.get("/recommendations/popular", params={"limit": 0}).status_code == 400

    def test_item_by_id(self, client):
        resp = client.get("/recommendations/2")
        assert resp.status_code == 200
        assert resp.json()["name"] == "Curry de Garbanzos Sin Gluten"
        assert resp.json()["restaurant"]["name"] == "Curry Palace"

    def test_item_without_distance(self, client):
        resp = client.get("/recommendations/10")
        assert resp.status_code == 200
        assert resp.json()["restaurant"]["distance"] is None

    def test_item_not_found(self, client):
        resp = client.get("/recommendations/999")
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Menu item not found"

    def test_supplied_analysis_is_normalized(self, client):
        resp = client.post(
            "/recommendations",
            json={
                "text": "algo sano",
                "analysis": {
                    "dietaryRestrictions": ["Vegano", "Sin Gluten"],
                    "processedAt": "2026-01-01T00:00:00Z",
                },
            },
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["analysis"]["dietaryRestrictions"] == ["vegan", "gluten-free"]
        assert data["analysis"]["filters"]["vegan"] is True
        assert data["analysis"]["processedAt"].startswith("2026-01-01")
        assert [r["id"] for r in data["recommendations"]] == ["2", "3", "6", "12"]

    def test_location(self, client):
        resp = client.get("/recommendations/location", params={"lat": 40.41, "lng": -3.70, "radius": 2, "limit": 4})
        assert resp.status_code == 200
        data = resp.json()
        assert [i["id"] for i in data["items"]] == ["4", "6", "7", "1"]
        assert data["location"] == {"lat": 40.41, "lng": -3.70, "radius": 2.0}
        assert data["total"] == 9
        assert data["showing"] == 4

    def test_location_defaults(self, client):
        data = client.get("/recommendations/location", params={"lat": 40.41, "lng": -3.70}).json()
        assert data["location"]["radius"] == 5.0
        assert data["total"] == 16
        assert [i["id"] for i in data["items"]][-2:] == ["10", "11"]

    def test_location_requires_coordinates(self, client):
        resp = client.get("/recommendations/location", params={"lat": 40.41})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Validation Error"


class TestNearby:
    def test_closest_first_unknown_distance_last(self, make_item):
        repository = InMemoryMenuRepository([
            make_item("c", distance=None),
            make_item("b", distance=3.0),
            make_item("a", distance=3.0),
            make_item("d", distance=0.5),
            make_item("e", distance=9.0),
        ])

        items, total = nearby_items(repository, radius=5.0)

        assert total == 4
        assert _ids(items) == ["d", "a", "b", "c"]

    def test_limit(self, make_item):
        repository = InMemoryMenuRepository([make_item(str(i), distance=i / 10) for i in range(5)])
        items, total = nearby_items(repository, limit=2)
        assert (_ids(items), total) == (["0", "1"], 5)


def test_renormalize_keeps_timestamps():
    supplied = FoodIntent(
        dietary_restrictions=("Vegana",),
        cuisine_types=("Japonesa",),
        processed_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        cached=True,
    )

    intent = renormalize(supplied, "sushi vegano")

    assert intent.dietary_restrictions == ("vegan",)
    assert intent.cuisine_types == ("japanese",)
    assert intent.filters.vegan is True
    assert intent.original_text == "sushi vegano"
    assert intent.processed_at == supplied.processed_at
    assert intent.cached is True
