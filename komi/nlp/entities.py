from __future__ import annotations

import logging

from pydantic import ValidationError as SchemaError

from ..errors import MalformedUpstreamResponse, UpstreamUnavailable
from ..llm.config import DEFAULT_LLM_CONFIG, LLMConfig
from ..llm.groq_client import complete_json
from .models import ExtractedEntities, IntentClassification

logger = logging.getLogger(__name__)

ENTITY_EXTRACTION_PROMPT = """\
Extract entities from food-related text. Return ONLY valid JSON with:
{
  "ingredients": ["mentioned ingredients"],
  "cuisines": ["cuisine types"],
  "restrictions": ["dietary restrictions"],
  "methods": ["preparation methods"],
  "locations": ["mentioned locations"]
}"""

INTENT_CLASSIFICATION_PROMPT = """\
Classify the intent of food-related text. Possible intents:
- search: looking for food
- order: placing an order
- recommend: asking for recommendations
- info: asking for information
- complaint: a complaint or problem
- other: anything else

Return ONLY valid JSON with:
{"intent": "<intent>", "confidence": 0.0-1.0, "subIntent": "<specific sub-intent or general>"}"""


def extract_entities(text: str, config: LLMConfig = DEFAULT_LLM_CONFIG) -> ExtractedEntities:
    """Return entities found in ``text``; empty lists when the LLM cannot answer."""
    if not config.available:
        return ExtractedEntities()

    try:
        raw = complete_json(ENTITY_EXTRACTION_PROMPT, text, config=config, max_tokens=300, temperature=0.1)
        return ExtractedEntities.model_validate(raw)
    except (UpstreamUnavailable, MalformedUpstreamResponse, SchemaError) as exc:
        logger.warning("Entity extraction failed (%s), returning empty entities", exc)
    except Exception:
        logger.warning("Entity extraction failed, returning empty entities", exc_info=True)
    return ExtractedEntities()


def classify_intent(text: str, config: LLMConfig = DEFAULT_LLM_CONFIG) -> IntentClassification:
    if not config.available:
        return IntentClassification()

    try:
        raw = complete_json(INTENT_CLASSIFICATION_PROMPT, text, config=config, max_tokens=150, temperature=0.1)
        return IntentClassification.model_validate(raw)
    except (UpstreamUnavailable, MalformedUpstreamResponse, SchemaError) as exc:
        logger.warning("Intent classification failed (%s), using default", exc)
    except Exception:
        logger.warning("Intent classification failed, using default", exc_info=True)
    return IntentClassification()
