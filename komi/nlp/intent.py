from __future__ import annotations

import json
import logging
import re
import unicodedata
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from pydantic.alias_generators import to_camel

from ..errors import MalformedUpstreamResponse, UpstreamUnavailable
from ..llm.config import DEFAULT_LLM_CONFIG, LLMConfig
from ..llm.groq_client import complete_json
from .cache import cache_get, cache_set, make_fingerprint
from .models import DietaryFilters, FoodIntent, NutritionalInfo

logger = logging.getLogger(__name__)

FALLBACK_CONFIDENCE = 0.7

# ---------------------------------------------------------------------------
# LLM Prompts
# ---------------------------------------------------------------------------

INTENT_EXTRACTION_PROMPT = """\
You are an expert in food-related text and dietary preferences. Analyze the \
user's craving and extract structured information as JSON.

Return ONLY valid JSON, without markdown or explanations, with exactly these fields:
{
  "intent": "search|order|recommend|info|other",
  "confidence": 0.0-1.0,
  "ingredients": ["chicken", "rice"],
  "cuisineTypes": ["italian", "indian"],
  "dietaryRestrictions": ["vegan", "gluten-free"],
  "preferences": ["curry", "pizza"],
  "preparationMethods": ["fried", "baked"],
  "mealType": "breakfast|lunch|dinner|snack|any",
  "urgency": "low|medium|high",
  "mood": "short description of the mood",
  "priceRange": "budget|moderate|premium|any",
  "portionSize": "small|medium|large|any",
  "temperature": "hot|cold|room_temperature|any",
  "filters": {
    "vegetarian": false, "vegan": false, "glutenFree": false, "dairyFree": false,
    "nutFree": false, "kosher": false, "halal": false, "organic": false,
    "spicy": false, "sweet": false
  }
}

Use lowercase English tags for cuisineTypes and dietaryRestrictions \
(e.g. "vegan", "vegetarian", "gluten-free", "dairy-free", "nut-free"). \
"preferences" lists dishes or food words the user asked for. \
Urgency is "high" when the user is in a hurry."""

_NUTRITION_SCHEMA = """
Also include:
"nutritionalInfo": {
  "isHealthy": true,
  "estimatedCalories": "estimated calorie range",
  "macronutrients": ["protein", "carbohydrates"]
}"""

_LANGUAGE_NAMES = {"es": "Spanish", "en": "English"}


def _build_user_message(text: str, language: str, include_nutrition: bool) -> str:
    lines = [f'Analyze this text about food preferences: "{text}"']
    if language in _LANGUAGE_NAMES:
        lines.append(f"The text is written in {_LANGUAGE_NAMES[language]}.")
    else:
        lines.append("Detect the language of the text before analyzing it.")
    if include_nutrition:
        lines.append(_NUTRITION_SCHEMA)
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------
# Keys are accent-folded and lowercase.

_CUISINE_SYNONYMS: dict[str, str] = {
    "italian": "italian", "italiana": "italian",
    "asian": "asian", "asiatica": "asian",
    "mexican": "mexican", "mexicana": "mexican",
    "indian": "indian", "india": "indian",
    "mediterranean": "mediterranean", "mediterranea": "mediterranean",
    "japanese": "japanese", "japonesa": "japanese",
    "chinese": "chinese", "china": "chinese",
    "thai": "thai", "tailandesa": "thai",
    "french": "french", "francesa": "french",
    "spanish": "spanish", "espanola": "spanish",
    "arabic": "arabic", "arabe": "arabic",
    "peruvian": "peruvian", "peruana": "peruvian",
    "argentinian": "argentinian", "argentina": "argentinian",
    "brazilian": "brazilian", "brasilena": "brazilian",
    "korean": "korean", "coreana": "korean",
    "vietnamese": "vietnamese", "vietnamita": "vietnamese",
    "greek": "greek", "griega": "greek",
    "turkish": "turkish", "turca": "turkish",
}

# Dish words that imply a cuisine when the cuisine itself is not named.
_DISH_CUISINES: dict[str, str] = {
    "curry": "indian",
    "tikka": "indian",
    "masala": "indian",
    "pizza": "italian",
    "pasta": "italian",
    "risotto": "italian",
    "sushi": "japanese",
    "ramen": "japanese",
    "taco": "mexican",
    "burrito": "mexican",
}

_DIETARY_SYNONYMS: dict[str, str] = {
    "vegan": "vegan", "vegano": "vegan", "vegana": "vegan",
    "vegetarian": "vegetarian", "vegetariano": "vegetarian", "vegetariana": "vegetarian",
    "gluten-free": "gluten-free", "gluten free": "gluten-free", "sin gluten": "gluten-free",
    "celiaco": "gluten-free", "celiac": "gluten-free",
    "dairy-free": "dairy-free", "dairy free": "dairy-free", "sin lacteos": "dairy-free",
    "sin lactosa": "dairy-free", "lactose free": "dairy-free",
    "nut-free": "nut-free", "nut free": "nut-free", "sin frutos secos": "nut-free",
    "kosher": "kosher",
    "halal": "halal",
    "diabetic": "diabetic", "diabetico": "diabetic",
    "low-sodium": "low-sodium", "bajo en sodio": "low-sodium",
    "low-fat": "low-fat", "bajo en grasa": "low-fat",
    "keto": "keto",
    "paleo": "paleo",
    "sugar-free": "sugar-free", "sin azucar": "sugar-free",
}

# Substring keywords used by the fallback path.
_DIETARY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "vegan": ("vegan",),
    "vegetarian": ("vegetarian",),
    "gluten-free": ("sin gluten", "gluten free", "gluten-free", "celiac"),
    "dairy-free": ("sin lacteos", "sin lactosa", "dairy free", "dairy-free"),
    "nut-free": ("sin frutos secos", "nut free", "nut-free"),
    "kosher": ("kosher",),
    "halal": ("halal",),
}

_FLAG_KEYWORDS: dict[str, tuple[str, ...]] = {
    "vegetarian": _DIETARY_KEYWORDS["vegetarian"],
    "vegan": _DIETARY_KEYWORDS["vegan"],
    "gluten_free": _DIETARY_KEYWORDS["gluten-free"],
    "dairy_free": _DIETARY_KEYWORDS["dairy-free"],
    "nut_free": _DIETARY_KEYWORDS["nut-free"],
    "kosher": ("kosher",),
    "halal": ("halal",),
    "organic": ("organic", "organico"),
    "spicy": ("spicy", "picante"),
    "sweet": ("sweet", "dulce"),
}

# Flags implied by a canonical dietary restriction.
_RESTRICTION_FLAGS: dict[str, str] = {
    "vegan": "vegan",
    "vegetarian": "vegetarian",
    "gluten-free": "gluten_free",
    "dairy-free": "dairy_free",
    "nut-free": "nut_free",
    "kosher": "kosher",
    "halal": "halal",
}

_MEAL_KEYWORDS: list[tuple[str, str]] = [
    ("desayuno", "breakfast"),
    ("breakfast", "breakfast"),
    ("almuerzo", "lunch"),
    ("lunch", "lunch"),
    ("comida", "lunch"),
    ("cena", "dinner"),
    ("dinner", "dinner"),
    ("merienda", "snack"),
    ("snack", "snack"),
]

_INGREDIENT_KEYWORDS: dict[str, str] = {
    "pollo": "chicken", "chicken": "chicken",
    "pescado": "fish", "fish": "fish",
    "carne": "meat", "beef": "meat",
    "pasta": "pasta",
    "arroz": "rice", "rice": "rice",
    "verduras": "vegetables", "vegetables": "vegetables",
    "queso": "cheese", "cheese": "cheese",
    "tomate": "tomato", "tomato": "tomato",
    "cebolla": "onion", "onion": "onion",
    "garbanzo": "chickpeas", "chickpea": "chickpeas",
}

_PREFERENCE_TERMS: frozenset[str] = frozenset({
    "curry", "pizza", "pasta", "ensalada", "salad", "sopa", "soup", "sushi",
    "burger", "hamburguesa", "taco", "tacos", "burrito", "risotto", "bowl",
    "ramen", "poke", "sandwich",
})

_INTENTS = frozenset({"search", "order", "recommend", "info", "complaint", "other"})

_URGENCY_SYNONYMS = {
    "low": "low", "baja": "low",
    "medium": "medium", "media": "medium", "normal": "medium",
    "high": "high", "alta": "high", "urgente": "high", "urgent": "high",
}
_MEAL_SYNONYMS = {
    "breakfast": "breakfast", "desayuno": "breakfast",
    "lunch": "lunch", "almuerzo": "lunch", "comida": "lunch",
    "dinner": "dinner", "cena": "dinner",
    "snack": "snack", "merienda": "snack", "aperitivo": "snack",
    "any": "any",
}
_PRICE_SYNONYMS = {
    "budget": "budget", "cheap": "budget", "barato": "budget", "economico": "budget",
    "moderate": "moderate", "moderado": "moderate",
    "premium": "premium", "expensive": "premium", "caro": "premium",
    "any": "any",
}
_PORTION_SYNONYMS = {
    "small": "small", "pequena": "small",
    "medium": "medium", "mediana": "medium",
    "large": "large", "grande": "large",
    "any": "any",
}
_TEMPERATURE_SYNONYMS = {
    "hot": "hot", "caliente": "hot",
    "cold": "cold", "frio": "cold",
    "room_temperature": "room_temperature", "room temperature": "room_temperature",
    "ambiente": "room_temperature",
    "any": "any",
}

SUPPORTED_CUISINES: list[str] = sorted(set(_CUISINE_SYNONYMS.values()))
DIETARY_RESTRICTIONS: list[str] = sorted(set(_DIETARY_SYNONYMS.values()))


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def fold(text: str) -> str:
    """Lowercase and strip accents so "Asiática" matches "asiatica"."""
    decomposed = unicodedata.normalize("NFKD", text.lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def _pick(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None


def _as_terms(value: Any) -> list[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple, set)):
        return []
    terms: list[str] = []
    for item in value:
        if not isinstance(item, str):
            continue
        term = item.strip().lower()
        if term and term not in terms:
            terms.append(term)
    return terms


def _canonical_terms(value: Any, synonyms: Mapping[str, str]) -> tuple[str, ...]:
    out: list[str] = []
    for term in _as_terms(value):
        canonical = synonyms.get(fold(term), term)
        if canonical not in out:
            out.append(canonical)
    return tuple(out)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return value is True


def _choice(value: Any, synonyms: Mapping[str, str], default: str) -> str:
    if not isinstance(value, str):
        return default
    return synonyms.get(fold(value.strip()), default)


def _confidence(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return FALLBACK_CONFIDENCE
    return max(0.0, min(1.0, float(value)))


def _filters(raw: Any, restrictions: Iterable[str]) -> DietaryFilters:
    raw = raw if isinstance(raw, Mapping) else {}
    flags = {
        name: _as_bool(_pick(raw, name, to_camel(name)))
        for name in DietaryFilters.model_fields
    }
    for restriction in restrictions:
        flag = _RESTRICTION_FLAGS.get(restriction)
        if flag:
            flags[flag] = True
    return DietaryFilters(**flags)


def _nutrition(raw: Any) -> NutritionalInfo | None:
    if not isinstance(raw, Mapping):
        return None
    calories = _pick(raw, "estimatedCalories", "estimated_calories")
    return NutritionalInfo(
        is_healthy=_as_bool(_pick(raw, "isHealthy", "is_healthy")),
        estimated_calories=str(calories) if calories is not None else "",
        macronutrients=tuple(_as_terms(raw.get("macronutrients"))),
    )


def normalize_intent(
    raw: Mapping[str, Any],
    text: str,
    include_nutrition: bool = False,
    degraded: bool = False,
) -> FoodIntent:
    """
    Build a FoodIntent with every field defined.

    ``raw`` may be any mapping (an LLM reply or the fallback's keyword
    matches). Missing, mistyped or out-of-vocabulary values collapse to the
    field defaults: empty tuples, ``search``, ``medium``, ``neutral``,
    ``any`` and false flags. Spanish and English synonyms are mapped to the
    canonical lowercase English tags used by the menu corpus.
    """
    intent = _pick(raw, "intent")
    mood = _pick(raw, "mood")
    restrictions = _canonical_terms(
        _pick(raw, "dietaryRestrictions", "dietary_restrictions", "dietary"),
        _DIETARY_SYNONYMS,
    )

    return FoodIntent(
        intent=intent.strip().lower() if isinstance(intent, str) and intent.strip().lower() in _INTENTS else "search",
        confidence=_confidence(_pick(raw, "confidence")),
        cuisine_types=_canonical_terms(
            _pick(raw, "cuisineTypes", "cuisine_types", "cuisine", "cuisines"),
            _CUISINE_SYNONYMS,
        ),
        dietary_restrictions=restrictions,
        preferences=tuple(_as_terms(_pick(raw, "preferences"))),
        ingredients=tuple(_as_terms(_pick(raw, "ingredients"))),
        preparation_methods=tuple(_as_terms(_pick(raw, "preparationMethods", "preparation_methods"))),
        meal_type=_choice(_pick(raw, "mealType", "meal_type"), _MEAL_SYNONYMS, "any"),
        urgency=_choice(_pick(raw, "urgency"), _URGENCY_SYNONYMS, "medium"),
        mood=mood.strip() if isinstance(mood, str) and mood.strip() else "neutral",
        price_range=_choice(_pick(raw, "priceRange", "price_range"), _PRICE_SYNONYMS, "any"),
        portion_size=_choice(_pick(raw, "portionSize", "portion_size"), _PORTION_SYNONYMS, "any"),
        temperature=_choice(_pick(raw, "temperature"), _TEMPERATURE_SYNONYMS, "any"),
        nutritional_info=_nutrition(_pick(raw, "nutritionalInfo", "nutritional_info")) if include_nutrition else None,
        filters=_filters(_pick(raw, "filters"), restrictions),
        original_text=text,
        processed_at=datetime.now(timezone.utc),
        degraded=degraded,
    )


# ---------------------------------------------------------------------------
# Fallback
# ---------------------------------------------------------------------------


def _contains_any(text: str, keywords: Iterable[str]) -> bool:
    return any(k in text for k in keywords)


def _ordered_unique(values: Iterable[str]) -> list[str]:
    out: list[str] = []
    for value in values:
        if value not in out:
            out.append(value)
    return out


def fallback_analysis(text: str) -> dict[str, Any]:
    """Keyword-containment analysis of ``text``, shaped like an LLM reply."""
    lower = fold(text)
    words = re.findall(r"\w+", lower)

    cuisines = _ordered_unique(
        [c for k, c in _CUISINE_SYNONYMS.items() if k in lower]
        + [c for k, c in _DISH_CUISINES.items() if k in lower]
    )
    meal_type = next((meal for k, meal in _MEAL_KEYWORDS if k in lower), "any")

    return {
        "intent": "search",
        "confidence": FALLBACK_CONFIDENCE,
        "ingredients": _ordered_unique(v for k, v in _INGREDIENT_KEYWORDS.items() if k in lower),
        "cuisineTypes": cuisines,
        "dietaryRestrictions": [r for r, keys in _DIETARY_KEYWORDS.items() if _contains_any(lower, keys)],
        "preferences": _ordered_unique(w for w in words if w in _PREFERENCE_TERMS),
        "mealType": meal_type,
        "urgency": "medium",
        "filters": {flag: _contains_any(lower, keys) for flag, keys in _FLAG_KEYWORDS.items()},
    }


def fallback_intent(text: str) -> FoodIntent:
    return normalize_intent(fallback_analysis(text), text, degraded=True)


def renormalize(intent: FoodIntent, text: str = "") -> FoodIntent:
    """
    Normalize an intent supplied by a caller rather than built here.

    Synonyms are mapped and flags derived again; ``processed_at`` and
    ``cached`` are carried over unchanged.
    """
    normalized = normalize_intent(
        intent.model_dump(by_alias=True),
        intent.original_text or text,
        include_nutrition=intent.nutritional_info is not None,
        degraded=intent.degraded,
    )
    return normalized.model_copy(update={"processed_at": intent.processed_at, "cached": intent.cached})


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------


def _analyze_uncached(
    text: str,
    language: str,
    include_nutrition: bool,
    config: LLMConfig,
) -> FoodIntent:
    if not config.available:
        return fallback_intent(text)

    try:
        logger.info("Sending analysis request to model %s", config.model)
        raw = complete_json(
            INTENT_EXTRACTION_PROMPT,
            _build_user_message(text, language, include_nutrition),
            config=config,
        )
        return normalize_intent(raw, text, include_nutrition=include_nutrition)
    except (UpstreamUnavailable, MalformedUpstreamResponse) as exc:
        logger.warning("Intent analysis failed (%s), using fallback", exc)
    except Exception:
        logger.warning("Intent analysis failed, using fallback", exc_info=True)
    return fallback_intent(text)


def analyze(
    text: str,
    language: str = "es",
    include_nutrition: bool = False,
    config: LLMConfig = DEFAULT_LLM_CONFIG,
) -> FoodIntent:
    """
    Analyze a food craving. Never raises.

    Results are cached for an hour per (text, language, include_nutrition);
    a cache hit returns the stored intent marked ``cached=True``. When the
    LLM is disabled, unreachable or replies with unusable content, the
    keyword fallback answers instead and the intent is marked ``degraded``.
    """
    fingerprint = make_fingerprint(text, language, include_nutrition)
    hit = cache_get(fingerprint)
    if hit is not None:
        logger.info("Cache hit for analysis: %r", text[:50])
        return hit.model_copy(update={"cached": True})

    intent = _analyze_uncached(text, language, include_nutrition, config)
    cache_set(fingerprint, intent)
    logger.info(
        "Analysis completed for %r (degraded=%s, confidence=%.2f)",
        text[:50], intent.degraded, intent.confidence,
    )
    return intent


def describe(intent: FoodIntent) -> str:
    """Compact one-line summary of an intent for log lines."""
    return json.dumps(
        {
            "cuisines": list(intent.cuisine_types),
            "dietary": list(intent.dietary_restrictions),
            "preferences": list(intent.preferences),
            "urgency": intent.urgency,
            "degraded": intent.degraded,
        },
        ensure_ascii=False,
    )


def canonical_restrictions(values: Iterable[str]) -> tuple[str, ...]:
    """Map caller-supplied dietary terms onto the corpus tags."""
    return _canonical_terms(list(values), _DIETARY_SYNONYMS)


def canonical_cuisines(values: Iterable[str]) -> tuple[str, ...]:
    return _canonical_terms(list(values), _CUISINE_SYNONYMS)
