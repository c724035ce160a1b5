from __future__ import annotations

from pydantic import Field

from ..models import CamelModel
from ..nlp.models import FoodIntent
from ..recommendations.models import Location, MenuCandidate, PreferenceConstraints


class SearchRequest(CamelModel):
    query: str = Field(..., description="Free-text craving")
    location: Location | None = None
    filters: PreferenceConstraints | None = None


class SearchMetadata(CamelModel):
    total: int
    processing_time: float


class SearchResponse(CamelModel):
    query: str
    analysis: FoodIntent
    recommendations: list[MenuCandidate]
    metadata: SearchMetadata
