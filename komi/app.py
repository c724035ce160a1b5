from __future__ import annotations

import logging
import os
import time

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .errors import MalformedUpstreamResponse, UpstreamUnavailable, ValidationError
from .llm.config import LLMConfig, get_llm_config
from .nlp.cache import clear_cache, get_cache_stats
from .nlp.entities import classify_intent, extract_entities
from .nlp.intent import DIETARY_RESTRICTIONS, SUPPORTED_CUISINES, analyze
from .nlp.models import (
    AnalyzeRequest,
    AnalyzeResponse,
    ClassificationResponse,
    EntitiesResponse,
    TextRequest,
    VocabularyResponse,
)
from .recommendations.data_store import MenuRepository, get_repository
from .recommendations.models import (
    MenuCandidate,
    NearbyResponse,
    PopularResponse,
    RecommendationRequest,
    RecommendationResponse,
    SearchArea,
)
from .recommendations.retrieval import get_recommendations, nearby_items, popular_items
from .search.clients import (
    AnalyzerClient,
    RecommenderClient,
    get_analyzer_client,
    get_recommender_client,
)
from .search.config import DEFAULT_SERVICE_CONFIG
from .search.models import SearchRequest, SearchResponse
from .search.orchestrator import handle_search

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Komi Craving Search API", version="1.0.0")


def _elapsed_ms(start_time: float) -> float:
    return round((time.time() - start_time) * 1000, 1)


# ── Error handlers ──────────────────────────────────────────────────────


@app.exception_handler(RequestValidationError)
async def request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": "Validation Error", "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(ValidationError)
async def validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": "Validation Error", "details": [{"field": exc.field, "message": exc.message}]},
    )


@app.exception_handler(UpstreamUnavailable)
async def upstream_unavailable(request: Request, exc: UpstreamUnavailable) -> JSONResponse:
    logger.error("%s %s failed: %s unavailable", request.method, request.url.path, exc.dependency)
    return JSONResponse(
        status_code=503,
        content={"error": "Service temporarily unavailable", "service": exc.dependency},
    )


@app.exception_handler(MalformedUpstreamResponse)
async def malformed_upstream(request: Request, exc: MalformedUpstreamResponse) -> JSONResponse:
    logger.error("%s %s failed: bad reply from %s", request.method, request.url.path, exc.dependency)
    return JSONResponse(
        status_code=502,
        content={"error": "Bad Gateway", "service": exc.dependency},
    )


# ── Public endpoints ─────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/search", response_model=SearchResponse)
def search(
    body: SearchRequest,
    analyzer: AnalyzerClient = Depends(get_analyzer_client),
    recommender: RecommenderClient = Depends(get_recommender_client),
) -> SearchResponse:
    return handle_search(body, analyzer, recommender)


# ── Intent analysis ──────────────────────────────────────────────────────


@app.post("/analyze", response_model=AnalyzeResponse)
def analyze_text(
    body: AnalyzeRequest,
    config: LLMConfig = Depends(get_llm_config),
) -> AnalyzeResponse:
    start_time = time.time()
    intent = analyze(body.text, body.language, body.include_nutrition, config=config)
    return AnalyzeResponse.model_validate(
        {**intent.model_dump(), "processing_time": _elapsed_ms(start_time)}
    )


@app.post("/extract-entities", response_model=EntitiesResponse)
def entities(body: TextRequest, config: LLMConfig = Depends(get_llm_config)) -> EntitiesResponse:
    start_time = time.time()
    return EntitiesResponse(
        text=body.text,
        entities=extract_entities(body.text, config=config),
        processing_time=_elapsed_ms(start_time),
    )


@app.post("/classify-intent", response_model=ClassificationResponse)
def classify(body: TextRequest, config: LLMConfig = Depends(get_llm_config)) -> ClassificationResponse:
    start_time = time.time()
    return ClassificationResponse(
        text=body.text,
        intent=classify_intent(body.text, config=config),
        processing_time=_elapsed_ms(start_time),
    )


@app.get("/supported-cuisines", response_model=VocabularyResponse)
def supported_cuisines() -> VocabularyResponse:
    return VocabularyResponse(items=SUPPORTED_CUISINES, total=len(SUPPORTED_CUISINES))


@app.get("/dietary-restrictions", response_model=VocabularyResponse)
def dietary_restrictions() -> VocabularyResponse:
    return VocabularyResponse(items=DIETARY_RESTRICTIONS, total=len(DIETARY_RESTRICTIONS))


@app.get("/stats")
def stats() -> dict:
    return {"service": "komi", "cache": get_cache_stats()}


@app.delete("/cache")
def flush_cache() -> dict[str, str]:
    if not DEFAULT_SERVICE_CONFIG.is_development:
        raise HTTPException(status_code=403, detail="Cache clearing only available in development")
    clear_cache()
    logger.info("Intent cache cleared")
    return {"status": "cleared"}


# ── Recommendations ──────────────────────────────────────────────────────


@app.post("/recommendations", response_model=RecommendationResponse)
def recommendations(
    body: RecommendationRequest,
    repository: MenuRepository = Depends(get_repository),
    config: LLMConfig = Depends(get_llm_config),
) -> RecommendationResponse:
    return get_recommendations(body, repository=repository, config=config)


@app.get("/recommendations/popular", response_model=PopularResponse)
def popular(
    limit: int = Query(default=10, ge=1, le=50),
    cuisine: str | None = None,
    dietary: str | None = None,
    repository: MenuRepository = Depends(get_repository),
) -> PopularResponse:
    items, total = popular_items(repository, limit=limit, cuisine=cuisine, dietary=dietary)
    return PopularResponse(items=items, total=total, showing=len(items))


@app.get("/recommendations/location", response_model=NearbyResponse)
def recommendations_near(
    lat: float = Query(..., ge=-90.0, le=90.0),
    lng: float = Query(..., ge=-180.0, le=180.0),
    radius: float = Query(default=5.0, gt=0),
    limit: int = Query(default=15, ge=1, le=50),
    repository: MenuRepository = Depends(get_repository),
) -> NearbyResponse:
    items, total = nearby_items(repository, radius=radius, limit=limit)
    logger.info(
        "Location recommendations for (%.4f, %.4f) within %.1f km: %d found",
        lat, lng, radius, total,
    )
    return NearbyResponse(
        items=items,
        location=SearchArea(lat=lat, lng=lng, radius=radius),
        total=total,
        showing=len(items),
    )


@app.get("/recommendations/{item_id}", response_model=MenuCandidate)
def recommendation_by_id(
    item_id: str,
    repository: MenuRepository = Depends(get_repository),
) -> MenuCandidate:
    item = repository.get_item(item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Menu item not found")
    return item
