from __future__ import annotations

import math
from typing import Iterable

from ..nlp.intent import fold
from ..nlp.models import FoodIntent
from .models import MenuCandidate, PreferenceConstraints

MAX_SCORE = 100.0

CUISINE_POINTS = 30.0
DIETARY_POINTS = 25.0
PREFERENCE_POINTS = 20.0
RATING_POINTS = 10.0
PRICE_FIT_POINTS = 10.0
PRICE_NEUTRAL_POINTS = 5.0
TIME_FIT_POINTS = 5.0
TIME_NEUTRAL_POINTS = 2.0

URGENCY_LIMITS: dict[str, int] = {"high": 3, "medium": 6}
DEFAULT_LIMIT = 10


def matches_any(term: str, tags: Iterable[str]) -> bool:
    """Case- and accent-insensitive substring match of ``term`` in any tag."""
    needle = fold(term)
    return any(needle in fold(tag) for tag in tags)


def satisfies_all(restrictions: Iterable[str], tags: Iterable[str]) -> bool:
    tags = list(tags)
    return all(matches_any(r, tags) for r in restrictions)


def score_candidate(
    candidate: MenuCandidate,
    intent: FoodIntent,
    constraints: PreferenceConstraints,
) -> float:
    """
    Linear match score in [0, 100].

    +30 cuisine match, +25 all intent dietary restrictions met, +20 a
    preference term in name/description/cuisine, up to +10 from rating,
    +10/+5 price fit, +5/+2 time fit. The neutral price and time points
    apply only when the caller set no such constraint.
    """
    score = 0.0

    if any(matches_any(c, candidate.cuisine) for c in intent.cuisine_types):
        score += CUISINE_POINTS

    if intent.dietary_restrictions and satisfies_all(intent.dietary_restrictions, candidate.dietary):
        score += DIETARY_POINTS

    searchable = [candidate.name, candidate.description, *candidate.cuisine]
    if any(matches_any(p, searchable) for p in intent.preferences):
        score += PREFERENCE_POINTS

    score += (candidate.rating / 5.0) * RATING_POINTS

    if constraints.max_price is None:
        score += PRICE_NEUTRAL_POINTS
    elif candidate.price <= constraints.max_price:
        score += PRICE_FIT_POINTS

    if constraints.max_delivery_time is None:
        score += TIME_NEUTRAL_POINTS
    elif candidate.preparation_time <= constraints.max_delivery_time:
        score += TIME_FIT_POINTS

    return min(score, MAX_SCORE)


def _sort_key(candidate: MenuCandidate) -> tuple[float, float, float, str]:
    distance = candidate.restaurant.distance
    return (
        -(candidate.match_score or 0.0),
        -candidate.rating,
        distance if distance is not None else math.inf,
        candidate.id,
    )


def rank_candidates(scored: Iterable[MenuCandidate]) -> list[MenuCandidate]:
    """Order by score desc, rating desc, distance asc (missing last), then id."""
    return sorted(scored, key=_sort_key)


def limit_for_urgency(urgency: str) -> int:
    return URGENCY_LIMITS.get(urgency, DEFAULT_LIMIT)
