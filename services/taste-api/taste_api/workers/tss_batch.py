"""
Nightly TSS batch job — persists pair scores for discovery.

For each taste category:
  1. List every author with public notes in the category (note store).
  2. Fetch each author's rated items (bounded concurrency).
  3. Build an inverted index identity_key → authors and count, for every
     canonical pair, how many items they share.
  4. Score pairs sharing >= tss_min_overlap items and upsert them.
  5. Delete rows of the category whose pair no longer qualifies.

Runs are serialised through a Redis lock (SET NX EX); a run that finds the
lock taken exits immediately. Schedule with cron / a k8s CronJob:
  python -m taste_api.workers.tss_batch
"""
import asyncio
import logging
import time
from collections import Counter, defaultdict
from datetime import datetime, timezone
from itertools import combinations
from typing import Callable, Optional

from opentelemetry import trace
from sqlalchemy.ext.asyncio import AsyncSession

from taste_api.clients import redis_client
from taste_api.clients.note_store_client import note_store_client
from taste_api.config import settings
from taste_api.database import AsyncSessionLocal, init_db
from taste_api.errors import DataUnavailable
from taste_api.matching.categories import ALL_CATEGORIES, TasteCategory
from taste_api.matching.classifier import TierPolicy
from taste_api.matching.extractor import RatedItem
from taste_api.matching.service import TasteMatchingService
from taste_api.matching.store import SimilarityStore
from taste_api.telemetry import setup_tracing

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def overlapping_pairs(
    items_by_user: dict[str, dict[str, RatedItem]],
    min_overlap: int,
) -> dict[tuple[str, str], int]:
    """Canonical (a < b) pairs sharing at least `min_overlap` identity keys."""
    owners: dict[str, list[str]] = defaultdict(list)
    for user_id, items in items_by_user.items():
        for key in items:
            owners[key].append(user_id)

    counts: Counter = Counter()
    for users in owners.values():
        for a, b in combinations(sorted(users), 2):
            counts[(a, b)] += 1

    return {pair: n for pair, n in counts.items() if n >= min_overlap}


class TssBatchJob:
    def __init__(
        self,
        matching: TasteMatchingService,
        session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
        policy: Optional[TierPolicy] = None,
        max_concurrency: Optional[int] = None,
    ) -> None:
        self.matching = matching
        self.session_factory = session_factory
        self.policy = policy or TierPolicy.from_settings()
        self.max_concurrency = max_concurrency or settings.tss_max_concurrent_fetches

    async def run(self) -> bool:
        """Returns False when another run holds the lock."""
        if not await redis_client.acquire_batch_lock():
            logger.info("TSS batch already running, skipping.")
            return False

        logger.info("Starting TSS batch computation...")
        start = time.time()
        try:
            for category in ALL_CATEGORIES:
                await self.compute_category(category)
            logger.info("TSS batch completed in %.1fs", time.time() - start)
        finally:
            await redis_client.release_batch_lock()
        return True

    async def compute_category(self, category: TasteCategory) -> int:
        with tracer.start_as_current_span("tss_batch.category") as span:
            span.set_attribute("tss.category", category.value)

            authors = await self.matching.note_store.list_authors(category)
            items_by_user = await self._fetch_all(authors, category)
            pairs = overlapping_pairs(items_by_user, self.policy.min_overlap)
            logger.info(
                "Category %s: %d authors, found %d pairs to compute",
                category, len(items_by_user), len(pairs),
            )

            computed_at = datetime.now(timezone.utc)
            kept: set[tuple[str, str]] = set()
            async with self.session_factory() as db:
                store = SimilarityStore(db)
                for (a, b) in sorted(pairs):
                    try:
                        result = self.matching.score(
                            category, a, b, items_by_user[a], items_by_user[b]
                        )
                    except (ValueError, TypeError) as exc:
                        logger.error("Failed to compute TSS for %s/%s/%s: %s", a, b, category, exc)
                        continue
                    await store.upsert(result, computed_at=computed_at)
                    kept.add((a, b))
                # Authors whose notes could not be fetched keep their old rows
                skipped = set(authors) - set(items_by_user)
                kept |= {
                    (r.user_a_id, r.user_b_id)
                    for user_id in skipped
                    for r in await store.list_for_user(user_id, category)
                }
                await store.prune_category(category, kept)
                await db.commit()

            span.set_attribute("tss.pairs", len(kept))
            return len(pairs)

    async def _fetch_all(
        self,
        authors: list[str],
        category: TasteCategory,
    ) -> dict[str, dict[str, RatedItem]]:
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _one(user_id: str):
            async with semaphore:
                try:
                    return user_id, await self.matching.rated_items(user_id, category)
                except DataUnavailable as exc:
                    logger.warning("Skipping %s in %s batch: %s", user_id, category, exc.message)
                    return user_id, None

        fetched = await asyncio.gather(*[_one(u) for u in dict.fromkeys(authors)])
        return {user_id: items for user_id, items in fetched if items is not None}


async def main() -> None:
    setup_tracing()
    await init_db()
    await redis_client.init_redis()
    await note_store_client.start()
    try:
        job = TssBatchJob(TasteMatchingService(note_store_client, use_cache=False))
        await job.run()
    finally:
        await note_store_client.stop()
        await redis_client.close_redis()


if __name__ == "__main__":
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
    )
    asyncio.run(main())
