from __future__ import annotations

import logging
import math
import time
from typing import Iterable

from ..llm.config import DEFAULT_LLM_CONFIG, LLMConfig
from ..nlp.intent import analyze, canonical_cuisines, canonical_restrictions, describe, renormalize
from ..nlp.models import FoodIntent
from .data_store import MenuRepository, get_repository
from .models import (
    AppliedFilters,
    MenuCandidate,
    PreferenceConstraints,
    RecommendationMetadata,
    RecommendationRequest,
    RecommendationResponse,
)
from .scoring import limit_for_urgency, matches_any, rank_candidates, satisfies_all, score_candidate

logger = logging.getLogger(__name__)


def required_restrictions(intent: FoodIntent, constraints: PreferenceConstraints) -> list[str]:
    """Union of intent and caller dietary restrictions, in first-seen order."""
    required: list[str] = []
    for r in (*intent.dietary_restrictions, *canonical_restrictions(constraints.dietary_restrictions)):
        if r not in required:
            required.append(r)
    return required


def filter_candidates(
    corpus: Iterable[MenuCandidate],
    intent: FoodIntent,
    constraints: PreferenceConstraints,
) -> list[MenuCandidate]:
    """
    Keep the candidates that pass every hard filter.

    Dietary restrictions are a safety rule: each one must match a dietary
    tag. Preferred cuisines are soft: one match is enough.
    """
    restrictions = required_restrictions(intent, constraints)
    preferred = canonical_cuisines(constraints.preferred_cuisines)

    eligible: list[MenuCandidate] = []
    for item in corpus:
        if restrictions and not satisfies_all(restrictions, item.dietary):
            continue
        if constraints.max_price is not None and item.price > constraints.max_price:
            continue
        if constraints.min_rating is not None and item.rating < constraints.min_rating:
            continue
        if preferred and not any(matches_any(c, item.cuisine) for c in preferred):
            continue
        eligible.append(item)
    return eligible


def recommend(
    corpus: Iterable[MenuCandidate],
    intent: FoodIntent,
    constraints: PreferenceConstraints,
) -> tuple[list[MenuCandidate], int]:
    """Filter, score, rank and truncate. Returns (recommendations, total eligible)."""
    eligible = filter_candidates(corpus, intent, constraints)
    scored = [
        item.model_copy(update={"match_score": score_candidate(item, intent, constraints)})
        for item in eligible
    ]
    ranked = rank_candidates(scored)
    return ranked[: limit_for_urgency(intent.urgency)], len(eligible)


def get_recommendations(
    request: RecommendationRequest,
    repository: MenuRepository | None = None,
    config: LLMConfig = DEFAULT_LLM_CONFIG,
) -> RecommendationResponse:
    start_time = time.time()
    repository = repository or get_repository()

    if request.analysis is not None:
        intent = renormalize(request.analysis, request.text)
    else:
        intent = analyze(request.text, config=config)
    constraints = request.preferences or PreferenceConstraints()
    logger.info("Processing recommendation request (user=%s): %s", request.user_id, describe(intent))

    recommendations, total_found = recommend(repository.list_items(), intent, constraints)

    elapsed_ms = round((time.time() - start_time) * 1000, 1)
    logger.info(
        "Recommendations generated: %d of %d eligible, top score %.1f",
        len(recommendations),
        total_found,
        recommendations[0].match_score if recommendations else 0.0,
    )

    return RecommendationResponse(
        recommendations=recommendations,
        analysis=intent,
        metadata=RecommendationMetadata(
            total_found=total_found,
            showing=len(recommendations),
            search_term=request.text,
            location=request.location,
            applied_filters=AppliedFilters(
                dietary=required_restrictions(intent, constraints),
                cuisine=list(intent.cuisine_types),
                preferences=list(intent.preferences),
                max_price=constraints.max_price,
                min_rating=constraints.min_rating,
                max_delivery_time=constraints.max_delivery_time,
                preferred_cuisines=list(constraints.preferred_cuisines),
            ),
            processing_time=elapsed_ms,
        ),
    )


def popular_items(
    repository: MenuRepository,
    limit: int = 10,
    cuisine: str | None = None,
    dietary: str | None = None,
) -> tuple[list[MenuCandidate], int]:
    """Highest-rated items, optionally narrowed by one cuisine and one dietary tag."""
    items = repository.list_items()
    if cuisine:
        items = [i for i in items if matches_any(cuisine, i.cuisine)]
    if dietary:
        items = [i for i in items if matches_any(dietary, i.dietary)]
    items.sort(key=lambda i: (-i.rating, i.id))
    return items[:limit], len(items)


def nearby_items(
    repository: MenuRepository,
    radius: float = 5.0,
    limit: int = 15,
) -> tuple[list[MenuCandidate], int]:
    """
    Items whose restaurant lies within ``radius`` km, closest first.

    Distances come precomputed on the corpus. An item with no known
    distance is kept and listed after every measured one; ties break on id.
    """
    items = [
        i for i in repository.list_items()
        if i.restaurant.distance is None or i.restaurant.distance <= radius
    ]
    items.sort(key=lambda i: (
        i.restaurant.distance if i.restaurant.distance is not None else math.inf,
        i.id,
    ))
    return items[:limit], len(items)
