from __future__ import annotations

import logging
import time

from ..errors import MalformedUpstreamResponse, UpstreamUnavailable, ValidationError
from ..nlp.intent import describe
from ..recommendations.models import RecommendationRequest
from .clients import ANALYZER, RECOMMENDER, AnalyzerClient, RecommenderClient
from .models import SearchMetadata, SearchRequest, SearchResponse

logger = logging.getLogger(__name__)

MAX_QUERY_LENGTH = 500


def validate_query(query: str | None) -> str:
    text = (query or "").strip()
    if not text:
        raise ValidationError("Query is required", field="query")
    if len(text) > MAX_QUERY_LENGTH:
        raise ValidationError(
            f"Query must be at most {MAX_QUERY_LENGTH} characters", field="query"
        )
    return text


def handle_search(
    request: SearchRequest,
    analyzer: AnalyzerClient,
    recommender: RecommenderClient,
) -> SearchResponse:
    """
    Analyze the query, then fetch recommendations for the resulting intent.

    Each collaborator is called exactly once. A transport failure is raised
    as ``UpstreamUnavailable`` naming the collaborator; no retries and no
    fallback happen at this layer.
    """
    start_time = time.time()
    query = validate_query(request.query)
    logger.info("Search request: %r", query[:100])

    try:
        intent = analyzer.analyze(query)
    except UpstreamUnavailable as exc:
        logger.error("Analyzer unavailable: %s", exc)
        raise UpstreamUnavailable(ANALYZER, str(exc)) from exc
    except MalformedUpstreamResponse as exc:
        logger.error("Analyzer returned a malformed response: %s", exc)
        raise MalformedUpstreamResponse(ANALYZER, str(exc)) from exc
    logger.info("NLP analysis result: %s", describe(intent))

    try:
        result = recommender.recommend(
            RecommendationRequest(
                text=query,
                location=request.location,
                preferences=request.filters,
                analysis=intent,
            )
        )
    except UpstreamUnavailable as exc:
        logger.error("Recommender unavailable: %s", exc)
        raise UpstreamUnavailable(RECOMMENDER, str(exc)) from exc
    except MalformedUpstreamResponse as exc:
        logger.error("Recommender returned a malformed response: %s", exc)
        raise MalformedUpstreamResponse(RECOMMENDER, str(exc)) from exc

    return SearchResponse(
        query=query,
        analysis=intent,
        recommendations=result.recommendations,
        metadata=SearchMetadata(
            total=result.metadata.total_found,
            processing_time=round((time.time() - start_time) * 1000, 1),
        ),
    )
