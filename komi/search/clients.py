from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx
from pydantic import ValidationError as SchemaError

from ..errors import MalformedUpstreamResponse, UpstreamUnavailable
from ..llm.config import DEFAULT_LLM_CONFIG, LLMConfig
from ..nlp.intent import analyze
from ..nlp.models import FoodIntent
from ..recommendations.data_store import MenuRepository
from ..recommendations.models import RecommendationRequest, RecommendationResponse
from ..recommendations.retrieval import get_recommendations
from .config import DEFAULT_SERVICE_CONFIG, ServiceConfig

logger = logging.getLogger(__name__)

ANALYZER = "analyzer"
RECOMMENDER = "recommender"


class AnalyzerClient(Protocol):
    def analyze(self, text: str, language: str = "es", include_nutrition: bool = False) -> FoodIntent: ...


class RecommenderClient(Protocol):
    def recommend(self, request: RecommendationRequest) -> RecommendationResponse: ...


# ---------------------------------------------------------------------------
# In-process transports
# ---------------------------------------------------------------------------


class LocalAnalyzerClient:
    def __init__(self, config: LLMConfig = DEFAULT_LLM_CONFIG) -> None:
        self.config = config

    def analyze(self, text: str, language: str = "es", include_nutrition: bool = False) -> FoodIntent:
        return analyze(text, language, include_nutrition, config=self.config)


class LocalRecommenderClient:
    def __init__(self, repository: MenuRepository | None = None) -> None:
        self.repository = repository

    def recommend(self, request: RecommendationRequest) -> RecommendationResponse:
        return get_recommendations(request, repository=self.repository)


# ---------------------------------------------------------------------------
# HTTP transports
# ---------------------------------------------------------------------------


def _post_json(
    dependency: str,
    base_url: str,
    path: str,
    payload: dict[str, Any],
    timeout: float,
    transport: httpx.BaseTransport | None = None,
) -> dict[str, Any]:
    try:
        with httpx.Client(base_url=base_url, timeout=timeout, transport=transport) as client:
            response = client.post(path, json=payload)
            response.raise_for_status()
    except httpx.TimeoutException as exc:
        raise UpstreamUnavailable(dependency, f"timed out after {timeout}s") from exc
    except httpx.HTTPStatusError as exc:
        raise UpstreamUnavailable(dependency, f"status {exc.response.status_code}") from exc
    except httpx.HTTPError as exc:
        raise UpstreamUnavailable(dependency, str(exc)) from exc

    try:
        data = response.json()
    except ValueError as exc:
        raise MalformedUpstreamResponse(dependency, "response body is not JSON") from exc
    if not isinstance(data, dict):
        raise MalformedUpstreamResponse(dependency, "response body is not a JSON object")
    return data


class HttpAnalyzerClient:
    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_SERVICE_CONFIG.analyzer_timeout,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self.transport = transport

    def analyze(self, text: str, language: str = "es", include_nutrition: bool = False) -> FoodIntent:
        data = _post_json(
            ANALYZER,
            self.base_url,
            "/analyze",
            {"text": text, "language": language, "includeNutrition": include_nutrition},
            self.timeout,
            self.transport,
        )
        try:
            return FoodIntent.model_validate(data)
        except SchemaError as exc:
            raise MalformedUpstreamResponse(ANALYZER, str(exc)) from exc


class HttpRecommenderClient:
    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_SERVICE_CONFIG.recommender_timeout,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self.transport = transport

    def recommend(self, request: RecommendationRequest) -> RecommendationResponse:
        data = _post_json(
            RECOMMENDER,
            self.base_url,
            "/recommendations",
            request.model_dump(mode="json", by_alias=True, exclude_none=True),
            self.timeout,
            self.transport,
        )
        try:
            return RecommendationResponse.model_validate(data)
        except SchemaError as exc:
            raise MalformedUpstreamResponse(RECOMMENDER, str(exc)) from exc


# ---------------------------------------------------------------------------
# FastAPI dependency providers
# ---------------------------------------------------------------------------


def build_analyzer_client(config: ServiceConfig = DEFAULT_SERVICE_CONFIG) -> AnalyzerClient:
    if config.analyzer_url:
        return HttpAnalyzerClient(config.analyzer_url, config.analyzer_timeout)
    return LocalAnalyzerClient()


def build_recommender_client(config: ServiceConfig = DEFAULT_SERVICE_CONFIG) -> RecommenderClient:
    if config.recommender_url:
        return HttpRecommenderClient(config.recommender_url, config.recommender_timeout)
    return LocalRecommenderClient()


def get_analyzer_client() -> AnalyzerClient:
    return build_analyzer_client()


def get_recommender_client() -> RecommenderClient:
    return build_recommender_client()
