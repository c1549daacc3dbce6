"""
Taste matching service — ties the note store, the extractor, the scorer and
the pair score cache together.

  compare(A, B, C)
    1. Redis lookup by canonical (A, B, C) + current generations
    2. miss → fetch A's and B's notes concurrently, extract, score
    3. write the result back with the cache TTL

Redis problems never fail a request: lookups and writes degrade to an
uncached computation. Note store problems raise DataUnavailable.
"""
import asyncio
import logging
from typing import Optional, Protocol

import redis.exceptions
from opentelemetry import trace

from taste_api.clients import redis_client
from taste_api.config import settings
from taste_api.matching.categories import ALL_CATEGORIES, TasteCategory, parse_category
from taste_api.matching.extractor import RatedItem, extract_rated_items
from taste_api.matching.notes import NoteRecord
from taste_api.matching.scorer import SimilarityResult, score_pair
from taste_api.telemetry import TSS_CACHE_LOOKUPS_TOTAL, TSS_COMPUTATIONS_TOTAL

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class NoteStore(Protocol):
    async def list_rated_notes(
        self, user_id: str, category: TasteCategory
    ) -> list[NoteRecord]: ...

    async def list_authors(self, category: TasteCategory) -> list[str]: ...


class TasteMatchingService:
    def __init__(
        self,
        note_store: NoteStore,
        use_cache: bool = True,
        half_life_days: Optional[float] = None,
    ) -> None:
        self.note_store = note_store
        self.use_cache = use_cache
        self.half_life_days = (
            half_life_days if half_life_days is not None
            else settings.tss_recency_half_life_days
        )

    async def rated_items(
        self,
        user_id: str,
        category: TasteCategory | str,
    ) -> dict[str, RatedItem]:
        category = parse_category(category)
        notes = await self.note_store.list_rated_notes(user_id, category)
        return extract_rated_items(notes, category)

    def score(
        self,
        category: TasteCategory,
        user_a: str,
        user_b: str,
        items_a: dict[str, RatedItem],
        items_b: dict[str, RatedItem],
    ) -> SimilarityResult:
        TSS_COMPUTATIONS_TOTAL.labels(category=category.value).inc()
        return score_pair(
            category, user_a, user_b, items_a, items_b,
            half_life_days=self.half_life_days,
        )

    async def compare(
        self,
        user_a: str,
        user_b: str,
        category: TasteCategory | str,
    ) -> SimilarityResult:
        category = parse_category(category)

        with tracer.start_as_current_span("tss.compare") as span:
            span.set_attribute("tss.category", category.value)

            key, cached = await self._cache_get(user_a, user_b, category)
            if cached is not None:
                span.set_attribute("tss.cache", "hit")
                return SimilarityResult.from_cache(category, user_a, user_b, cached)
            span.set_attribute("tss.cache", "miss")

            items_a, items_b = await asyncio.gather(
                self.rated_items(user_a, category),
                self.rated_items(user_b, category),
            )
            result = self.score(category, user_a, user_b, items_a, items_b)
            span.set_attribute("tss.overlap_count", result.overlap_count)

            if key is not None:
                await self._cache_set(key, result)
            return result

    async def compare_all(self, user_a: str, user_b: str) -> list[SimilarityResult]:
        return list(
            await asyncio.gather(
                *[self.compare(user_a, user_b, category) for category in ALL_CATEGORIES]
            )
        )

    async def invalidate(self, user_id: str, category: TasteCategory | str) -> None:
        category = parse_category(category)
        try:
            await redis_client.invalidate_user_category(user_id, category.value)
        except redis.exceptions.RedisError as exc:
            logger.warning(
                "Could not invalidate TSS cache for %s/%s: %s", user_id, category, exc
            )

    # ── cache helpers ─────────────────────────────────────────────────────

    async def _cache_get(
        self, user_a: str, user_b: str, category: TasteCategory
    ) -> tuple[Optional[str], Optional[dict]]:
        """Return (key, payload); key is None when the cache is unusable."""
        if not self.use_cache:
            return None, None
        try:
            key = await redis_client.pair_key(user_a, user_b, category.value)
            cached = await redis_client.get_pair_score(key)
        except redis.exceptions.RedisError as exc:
            TSS_CACHE_LOOKUPS_TOTAL.labels(result="error").inc()
            logger.warning("TSS cache read failed: %s — computing uncached", exc)
            return None, None
        TSS_CACHE_LOOKUPS_TOTAL.labels(result="hit" if cached else "miss").inc()
        return key, cached

    async def _cache_set(self, key: str, result: SimilarityResult) -> None:
        try:
            await redis_client.set_pair_score(key, result.to_cache())
        except redis.exceptions.RedisError as exc:
            logger.warning("TSS cache write failed: %s", exc)
