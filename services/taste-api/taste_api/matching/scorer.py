"""
Pairwise Similarity Scorer.

For two users' rated items in one category:

  overlap_count = |keys(A) ∩ keys(B)|
  score         = 1 - sum(|rating_A - rating_B|) / (9 * overlap_count)
                  clamped to [0, 1], rounded to 3 decimals
                  None when nothing is shared

Optionally each shared item is weighted by the recency of the more recent
of the two experiences (exponential decay with a configurable half-life),
turning the mean into a weighted mean.

Rounding keeps scores that sit exactly on a threshold (e.g. 0.70) from
landing a float ulp below it. Shared keys are visited in sorted order so
swapping A and B yields the exact same float.
"""
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping, Optional

import numpy as np

from taste_api.matching.categories import TasteCategory
from taste_api.matching.extractor import RatedItem

MAX_RATING_DIFF = 9          # ratings are 1–10
SCORE_DECIMALS = 3
SECONDS_PER_DAY = 86400.0


@dataclass(frozen=True)
class SimilarityResult:
    category: TasteCategory
    user_a: str
    user_b: str
    overlap_count: int
    score: Optional[float]

    def insufficient_data(self, min_overlap: int) -> bool:
        return self.score is None or self.overlap_count < min_overlap

    def to_cache(self) -> dict:
        return {"score": self.score, "overlapCount": self.overlap_count}

    @classmethod
    def from_cache(
        cls,
        category: TasteCategory,
        user_a: str,
        user_b: str,
        payload: Mapping,
    ) -> "SimilarityResult":
        return cls(
            category=category,
            user_a=user_a,
            user_b=user_b,
            overlap_count=int(payload["overlapCount"]),
            score=payload["score"],
        )


def recency_weight(
    experienced_at: datetime,
    now: datetime,
    half_life_days: float,
) -> float:
    days_since = max(0.0, (now - experienced_at).total_seconds() / SECONDS_PER_DAY)
    return math.exp(-(math.log(2) / half_life_days) * days_since)


def score_pair(
    category: TasteCategory,
    user_a: str,
    user_b: str,
    items_a: Mapping[str, RatedItem],
    items_b: Mapping[str, RatedItem],
    *,
    half_life_days: Optional[float] = None,
    now: Optional[datetime] = None,
) -> SimilarityResult:
    shared = sorted(items_a.keys() & items_b.keys())
    if not shared:
        return SimilarityResult(category, user_a, user_b, 0, None)

    ratings_a = np.array([items_a[k].rating for k in shared], dtype=np.int64)
    ratings_b = np.array([items_b[k].rating for k in shared], dtype=np.int64)
    diffs = np.abs(ratings_a - ratings_b)

    if half_life_days:
        now = now or datetime.now(timezone.utc)
        weights = np.array(
            [
                recency_weight(
                    max(items_a[k].experienced_at, items_b[k].experienced_at),
                    now,
                    half_life_days,
                )
                for k in shared
            ],
            dtype=np.float64,
        )
        agreement = 1.0 - diffs / MAX_RATING_DIFF
        if weights.sum() > 0:
            raw = float(np.average(agreement, weights=weights))
        else:
            raw = float(agreement.mean())
    else:
        # Integer sum keeps exact means (e.g. 27 / 90) exact
        raw = 1.0 - int(diffs.sum()) / (MAX_RATING_DIFF * len(shared))

    score = round(min(1.0, max(0.0, raw)), SCORE_DECIMALS)
    return SimilarityResult(category, user_a, user_b, len(shared), score)
