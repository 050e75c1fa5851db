import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, server_error
from app.schemas.requests import SearchClick, SearchRequest
from app.schemas.responses import SearchHit
from app.services.vector_service import SegmentHit, VectorService, search_segments
from app.utils.cache import CacheKeys, CacheTTL, cache
from database.database import get_db
from database.models import SearchQuery, SearchResult, User, utcnow

logger = logging.getLogger(__name__)

router = APIRouter(tags=["search"])


def format_hit(hit: SegmentHit) -> dict:
    return SearchHit(
        id=hit.segment_id,
        fileId=hit.file_id,
        startTime=hit.start_time_seconds,
        endTime=hit.end_time_seconds,
        duration=hit.duration_seconds,
        content=hit.content_text,
        contentType=hit.content_type,
        confidence=hit.confidence_score,
        similarity=hit.similarity_score,
        thumbnailUrl=hit.thumbnail_s3_key,
        videoUrl=hit.proxy_s3_key,
    ).model_dump()


@router.post("/search-semantic")
def search_semantic(payload: SearchRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Natural-language search over a project's embedded segments.

    Every uncached query is logged to search_queries, and each returned hit
    to search_results with its 1-based rank. Results are cached per
    (project, query text) for five minutes.
    """
    if not payload.query or not payload.projectId:
        raise HTTPException(status_code=400, detail="Query and project ID are required")

    cache_key = CacheKeys.search_results(payload.query, payload.projectId)
    cached = cache.get(cache_key)
    if cached is not None:
        logger.info(f"Search cache hit for '{payload.query}' in project {payload.projectId}")
        return {"results": cached}

    try:
        started = time.monotonic()
        embedded = VectorService().generate_embedding(payload.query)

        search_query = SearchQuery(
            project_id=payload.projectId,
            user_id=user.id,
            query_text=payload.query,
            query_embedding_data=embedded.embedding,
        )
        db.add(search_query)
        db.flush()

        hits = search_segments(
            db,
            embedded.embedding,
            payload.projectId,
            similarity_threshold=payload.similarityThreshold,
            max_results=payload.limit,
        )

        execution_time_ms = int((time.monotonic() - started) * 1000)
        search_query.execution_time_ms = execution_time_ms
        search_query.results_count = len(hits)

        for rank, hit in enumerate(hits, start=1):
            db.add(SearchResult(
                search_query_id=search_query.id,
                video_segment_id=hit.segment_id,
                rank_position=rank,
                relevance_score=hit.similarity_score,
            ))
        db.commit()

        results = [format_hit(hit) for hit in hits]
    except Exception as e:
        db.rollback()
        raise server_error("Search failed", e)

    cache.set(cache_key, results, CacheTTL.MEDIUM)
    logger.info(f"Search '{payload.query}' in project {payload.projectId}: {len(results)} hits in {execution_time_ms}ms")

    return {
        "results": results,
        "totalResults": len(results),
        "executionTimeMs": execution_time_ms,
        "searchQueryId": search_query.id,
    }


@router.get("/search-semantic")
def search_history(projectId: Optional[str] = None, limit: int = 10,
                   user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not projectId:
        raise HTTPException(status_code=400, detail="Project ID is required")

    try:
        queries = (
            db.query(SearchQuery)
            .filter(SearchQuery.project_id == projectId)
            .order_by(SearchQuery.created_at.desc())
            .limit(limit)
            .all()
        )
    except Exception as e:
        raise server_error("Failed to get search history", e)

    return {
        "recentQueries": [
            {"query_text": q.query_text, "results_count": q.results_count, "created_at": q.created_at}
            for q in queries
        ]
    }


@router.post("/search-click")
def search_click(payload: SearchClick, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not payload.searchQueryId or not payload.videoSegmentId:
        raise HTTPException(status_code=400, detail="Search query ID and video segment ID are required")

    try:
        (
            db.query(SearchResult)
            .filter(SearchResult.search_query_id == payload.searchQueryId)
            .filter(SearchResult.video_segment_id == payload.videoSegmentId)
            .update({"clicked": True, "clicked_at": utcnow()}, synchronize_session=False)
        )
        db.commit()
    except Exception as e:
        db.rollback()
        raise server_error("Failed to track click", e)

    return {"success": True, "message": "Click tracked successfully"}
