"""
Discovery endpoint:
  GET /discover/similar-users?user_id=&category=&limit=&cursor=
      — users with the most similar taste, best score first, cursor-paged
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from opentelemetry import trace

from taste_api.config import settings
from taste_api.dependencies import get_similarity_store
from taste_api.matching.categories import parse_category
from taste_api.matching.store import SimilarityStore
from taste_api.schemas import CategorySimilarity, Envelope, Page, UserSuggestion
from taste_api.social.discovery import discover_similar_users

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


@router.get("/similar-users", response_model=Envelope[Page[UserSuggestion]])
async def similar_users(
    user_id: str = Query(..., description="ID of the requesting user"),
    category: Optional[str] = Query(None, description="RESTAURANT | WINE | SPIRIT"),
    limit: int = Query(settings.discover_page_size),
    cursor: Optional[str] = Query(None),
    store: SimilarityStore = Depends(get_similarity_store),
):
    limit = min(max(limit, 1), settings.discover_max_page_size)
    parsed = parse_category(category) if category else None

    with tracer.start_as_current_span("discover_similar_users") as span:
        span.set_attribute("user.id", user_id)
        page = await discover_similar_users(store, user_id, parsed, limit, cursor)
        span.set_attribute("discover.results", len(page.items))

    items = [
        UserSuggestion(
            user_id=s.user_id,
            best_category=s.best_category,
            best_score=s.best_score,
            shared_item_count=s.shared_item_count,
            similarities=[
                CategorySimilarity(
                    category=c.category, score=c.score, overlap_count=c.overlap_count
                )
                for c in s.similarities
            ],
        )
        for s in page.items
    ]
    return Envelope(data=Page(items=items, next_cursor=page.next_cursor, has_more=page.has_more))
