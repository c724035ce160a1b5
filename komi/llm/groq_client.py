from __future__ import annotations

import json
import logging
import re
from typing import Any

from groq import APIConnectionError, APIStatusError, Groq

from ..errors import MalformedUpstreamResponse, UpstreamUnavailable
from .config import DEFAULT_LLM_CONFIG, LLMConfig

logger = logging.getLogger(__name__)

DEPENDENCY = "llm"

_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*|\s*```\s*$", re.IGNORECASE)


def strip_fences(content: str) -> str:
    """Remove a surrounding ```json ... ``` block, if any."""
    return _FENCE_RE.sub("", content).strip()


def parse_json_object(content: str) -> dict[str, Any]:
    cleaned = strip_fences(content)
    if not cleaned:
        raise MalformedUpstreamResponse(DEPENDENCY, "empty completion")
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise MalformedUpstreamResponse(DEPENDENCY, f"completion is not JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise MalformedUpstreamResponse(DEPENDENCY, "completion is not a JSON object")
    return parsed


def complete_json(
    system_prompt: str,
    user_message: str,
    config: LLMConfig = DEFAULT_LLM_CONFIG,
    max_tokens: int | None = None,
    temperature: float | None = None,
) -> dict[str, Any]:
    """
    Send a system + user message pair to Groq and parse the reply as JSON.

    Raises ``UpstreamUnavailable`` when the backend is disabled, unreachable,
    times out or answers with an error status, and
    ``MalformedUpstreamResponse`` when the content is not a JSON object.
    """
    if not config.available:
        raise UpstreamUnavailable(DEPENDENCY, "LLM backend disabled or not configured")

    try:
        client = Groq(api_key=config.api_key, timeout=config.timeout, max_retries=config.max_retries)
        response = client.chat.completions.create(
            model=config.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
            max_tokens=max_tokens or config.max_tokens,
            temperature=config.temperature if temperature is None else temperature,
            response_format={"type": "json_object"},
        )
    except APIConnectionError as exc:
        # Covers APITimeoutError as well.
        raise UpstreamUnavailable(DEPENDENCY, str(exc)) from exc
    except APIStatusError as exc:
        raise UpstreamUnavailable(DEPENDENCY, f"status {exc.status_code}") from exc

    if not response.choices:
        raise MalformedUpstreamResponse(DEPENDENCY, "completion has no choices")
    content = response.choices[0].message.content or ""
    return parse_json_object(content)
