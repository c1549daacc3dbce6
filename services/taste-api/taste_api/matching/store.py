"""Persisted pair scores (`taste_similarities`) used by discovery."""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from taste_api.clients.redis_client import canonical_pair
from taste_api.matching.categories import TasteCategory
from taste_api.matching.scorer import SimilarityResult
from taste_api.models import TasteSimilarity

logger = logging.getLogger(__name__)


class SimilarityStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def upsert(
        self,
        result: SimilarityResult,
        computed_at: Optional[datetime] = None,
    ) -> TasteSimilarity:
        a, b = canonical_pair(result.user_a, result.user_b)
        computed_at = computed_at or datetime.now(timezone.utc)
        row = await self.db.get(TasteSimilarity, (a, b, result.category.value))
        if row is None:
            row = TasteSimilarity(
                user_a_id=a,
                user_b_id=b,
                category=result.category.value,
                score=result.score or 0.0,
                overlap_count=result.overlap_count,
                last_computed_at=computed_at,
            )
            self.db.add(row)
        else:
            row.score = result.score or 0.0
            row.overlap_count = result.overlap_count
            row.last_computed_at = computed_at
        await self.db.flush()
        return row

    async def delete(self, user_a: str, user_b: str, category: TasteCategory) -> None:
        a, b = canonical_pair(user_a, user_b)
        await self.db.execute(
            delete(TasteSimilarity).where(
                TasteSimilarity.user_a_id == a,
                TasteSimilarity.user_b_id == b,
                TasteSimilarity.category == category.value,
            )
        )

    async def list_for_user(
        self,
        user_id: str,
        category: Optional[TasteCategory] = None,
    ) -> list[TasteSimilarity]:
        stmt = select(TasteSimilarity).where(
            or_(TasteSimilarity.user_a_id == user_id, TasteSimilarity.user_b_id == user_id)
        )
        if category is not None:
            stmt = stmt.where(TasteSimilarity.category == category.value)
        rows = await self.db.execute(stmt.order_by(TasteSimilarity.score.desc()))
        return list(rows.scalars().all())

    async def partner_ids(self, user_id: str, category: TasteCategory) -> list[str]:
        rows = await self.list_for_user(user_id, category)
        return [r.user_b_id if r.user_a_id == user_id else r.user_a_id for r in rows]

    async def prune_category(
        self,
        category: TasteCategory,
        keep: set[tuple[str, str]],
    ) -> int:
        """Delete rows of `category` whose canonical pair is not in `keep`."""
        rows = await self.db.execute(
            select(TasteSimilarity.user_a_id, TasteSimilarity.user_b_id).where(
                TasteSimilarity.category == category.value
            )
        )
        stale = [(a, b) for a, b in rows.all() if (a, b) not in keep]
        if not stale:
            return 0
        for a, b in stale:
            await self.delete(a, b, category)
        logger.info("Pruned %d stale %s similarities", len(stale), category)
        return len(stale)
