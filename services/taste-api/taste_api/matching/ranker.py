"""
Social Feed/Search Ranker.

Given a viewer and a candidate list of public notes, attach a tier to every
note and present them either as one flat list (tier asc, newest first) or as
four tier buckets. Both views come from the same classification pass.

One pass = one snapshot: pins are read once by the caller, and each
(author, category) similarity is computed at most once and shared by all of
that author's notes in the category. Tiers are never cached across requests.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Protocol

from opentelemetry import trace

from taste_api.config import settings
from taste_api.errors import DataUnavailable
from taste_api.matching.categories import TasteCategory, note_type_to_category
from taste_api.matching.classifier import DEFAULT_POLICY, Tier, TierPolicy, assign_tier
from taste_api.matching.scorer import SimilarityResult
from taste_api.telemetry import SOCIAL_RANK_LATENCY, TIER_ASSIGNMENTS_TOTAL

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class PairScorer(Protocol):
    async def compare(
        self, user_a: str, user_b: str, category: TasteCategory
    ) -> SimilarityResult: ...


@dataclass(frozen=True)
class RankedNote:
    note: Any
    tier: Tier


class SocialRanker:
    def __init__(
        self,
        matching: PairScorer,
        policy: TierPolicy = DEFAULT_POLICY,
        max_concurrency: Optional[int] = None,
    ) -> None:
        self.matching = matching
        self.policy = policy
        self.max_concurrency = max_concurrency or settings.tss_max_concurrent_fetches

    async def classify(
        self,
        viewer_id: str,
        notes: Iterable[Any],
        pinned: Mapping[str, frozenset],
    ) -> list[RankedNote]:
        """
        Tier every note not written by the viewer.

        Notes only need `id`, `author_id`, `type` and `created_at`.
        `pinned` maps author id → categories the viewer pinned them in.
        """
        start = time.perf_counter()
        with tracer.start_as_current_span("social_rank.classify") as span:
            span.set_attribute("viewer.id", viewer_id)

            seen: set[str] = set()
            candidates: list[tuple[Any, Optional[TasteCategory]]] = []
            for note in notes:
                if note.id in seen or note.author_id == viewer_id:
                    continue
                seen.add(note.id)
                candidates.append((note, note_type_to_category(note.type)))

            to_score = {
                (note.author_id, category)
                for note, category in candidates
                if category is not None
                and category not in pinned.get(note.author_id, frozenset())
            }
            similarities = await self._similarities(viewer_id, to_score)

            ranked: list[RankedNote] = []
            for note, category in candidates:
                if category is None:
                    tier = Tier.GENERAL
                else:
                    is_pinned = category in pinned.get(note.author_id, frozenset())
                    tier = assign_tier(
                        similarities.get((note.author_id, category)),
                        is_pinned,
                        self.policy,
                    )
                TIER_ASSIGNMENTS_TOTAL.labels(tier=str(int(tier))).inc()
                ranked.append(RankedNote(note=note, tier=tier))

            span.set_attribute("social_rank.notes", len(ranked))
            span.set_attribute("social_rank.pairs_scored", len(to_score))

        SOCIAL_RANK_LATENCY.observe(time.perf_counter() - start)
        return ranked

    async def _similarities(
        self,
        viewer_id: str,
        pairs: set[tuple[str, TasteCategory]],
    ) -> dict[tuple[str, TasteCategory], Optional[SimilarityResult]]:
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _one(author_id: str, category: TasteCategory):
            async with semaphore:
                try:
                    return await self.matching.compare(viewer_id, author_id, category)
                except DataUnavailable as exc:
                    # Degrade to general visibility rather than failing the feed
                    logger.warning(
                        "Similarity unavailable for %s/%s/%s: %s",
                        viewer_id, author_id, category, exc.message,
                    )
                    return None

        ordered = sorted(pairs)
        results = await asyncio.gather(*[_one(a, c) for a, c in ordered])
        return dict(zip(ordered, results))


def order_flat(ranked: Iterable[RankedNote]) -> list[RankedNote]:
    """Tier ascending, then newest first; note id keeps ties deterministic."""
    by_recency = sorted(ranked, key=lambda r: (r.note.created_at, r.note.id), reverse=True)
    return sorted(by_recency, key=lambda r: r.tier)


def bucket(ranked: Iterable[RankedNote]) -> dict[Tier, list[RankedNote]]:
    buckets: dict[Tier, list[RankedNote]] = {tier: [] for tier in Tier}
    for item in order_flat(ranked):
        buckets[item.tier].append(item)
    return buckets
