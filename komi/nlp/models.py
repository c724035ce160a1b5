from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from ..models import CamelModel, FrozenCamelModel

Language = Literal["es", "en", "auto"]
Urgency = Literal["low", "medium", "high"]
MealType = Literal["breakfast", "lunch", "dinner", "snack", "any"]
PriceRange = Literal["budget", "moderate", "premium", "any"]
PortionSize = Literal["small", "medium", "large", "any"]
Temperature = Literal["hot", "cold", "room_temperature", "any"]


class DietaryFilters(FrozenCamelModel):
    vegetarian: bool = False
    vegan: bool = False
    gluten_free: bool = False
    dairy_free: bool = False
    nut_free: bool = False
    kosher: bool = False
    halal: bool = False
    organic: bool = False
    spicy: bool = False
    sweet: bool = False


class NutritionalInfo(FrozenCamelModel):
    is_healthy: bool = False
    estimated_calories: str = ""
    macronutrients: tuple[str, ...] = ()


class FoodIntent(FrozenCamelModel):
    """
    Normalized descriptor of a food request.

    Instances are only built through ``normalize_intent`` so that every field
    carries a value; downstream code never checks for presence.
    """

    intent: str = "search"
    confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    cuisine_types: tuple[str, ...] = ()
    dietary_restrictions: tuple[str, ...] = ()
    preferences: tuple[str, ...] = ()
    ingredients: tuple[str, ...] = ()
    preparation_methods: tuple[str, ...] = ()
    meal_type: MealType = "any"
    urgency: Urgency = "medium"
    mood: str = "neutral"
    price_range: PriceRange = "any"
    portion_size: PortionSize = "any"
    temperature: Temperature = "any"
    nutritional_info: NutritionalInfo | None = None
    filters: DietaryFilters = Field(default_factory=DietaryFilters)
    original_text: str = ""
    processed_at: datetime
    degraded: bool = False
    cached: bool = False


class AnalyzeRequest(CamelModel):
    text: str = Field(..., min_length=1, max_length=500)
    language: Language = "es"
    include_nutrition: bool = False


class AnalyzeResponse(FoodIntent):
    processing_time: float = 0.0


class TextRequest(CamelModel):
    text: str = Field(..., min_length=1, max_length=500)


class ExtractedEntities(CamelModel):
    ingredients: list[str] = Field(default_factory=list)
    cuisines: list[str] = Field(default_factory=list)
    restrictions: list[str] = Field(default_factory=list)
    methods: list[str] = Field(default_factory=list)
    locations: list[str] = Field(default_factory=list)


class EntitiesResponse(CamelModel):
    text: str
    entities: ExtractedEntities
    processing_time: float


class IntentClassification(CamelModel):
    intent: str = "search"
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    sub_intent: str = "general"


class ClassificationResponse(CamelModel):
    text: str
    intent: IntentClassification
    processing_time: float


class VocabularyResponse(CamelModel):
    items: list[str]
    total: int
