from __future__ import annotations

from pydantic import Field

from ..models import CamelModel, FrozenCamelModel
from ..nlp.models import FoodIntent


class RestaurantRef(FrozenCamelModel):
    id: str
    name: str
    distance: float | None = Field(default=None, ge=0.0, description="Kilometres from the caller")
    delivery_fee: float = Field(default=0.0, ge=0.0)


class MenuCandidate(FrozenCamelModel):
    id: str
    name: str
    description: str = ""
    price: float = Field(..., ge=0.0)
    cuisine: tuple[str, ...] = ()
    dietary: tuple[str, ...] = ()
    spice_level: str | None = None
    rating: float = Field(default=0.0, ge=0.0, le=5.0)
    preparation_time: int = Field(default=0, ge=0, description="Minutes")
    restaurant: RestaurantRef
    match_score: float | None = Field(
        default=None, description="Attached per request during scoring"
    )


class Location(CamelModel):
    lat: float = Field(..., ge=-90.0, le=90.0)
    lng: float = Field(..., ge=-180.0, le=180.0)


class PreferenceConstraints(CamelModel):
    max_price: float | None = Field(default=None, ge=0.0)
    max_delivery_time: int | None = Field(default=None, ge=0)
    min_rating: float | None = Field(default=None, ge=0.0, le=5.0)
    preferred_cuisines: list[str] = Field(default_factory=list)
    dietary_restrictions: list[str] = Field(default_factory=list)


class RecommendationRequest(CamelModel):
    text: str = Field(..., min_length=1, max_length=500)
    location: Location | None = None
    preferences: PreferenceConstraints | None = None
    user_id: str | None = None
    analysis: FoodIntent | None = Field(
        default=None,
        description="Precomputed intent; the text is analyzed in-process when absent",
    )


class AppliedFilters(CamelModel):
    dietary: list[str]
    cuisine: list[str]
    preferences: list[str]
    max_price: float | None = None
    min_rating: float | None = None
    max_delivery_time: int | None = None
    preferred_cuisines: list[str] = Field(default_factory=list)


class RecommendationMetadata(CamelModel):
    total_found: int
    showing: int
    search_term: str
    location: Location | None = None
    applied_filters: AppliedFilters
    processing_time: float = 0.0


class RecommendationResponse(CamelModel):
    recommendations: list[MenuCandidate]
    analysis: FoodIntent
    metadata: RecommendationMetadata


class PopularResponse(CamelModel):
    items: list[MenuCandidate]
    total: int
    showing: int


class SearchArea(CamelModel):
    lat: float
    lng: float
    radius: float


class NearbyResponse(CamelModel):
    items: list[MenuCandidate]
    location: SearchArea
    total: int
    showing: int
