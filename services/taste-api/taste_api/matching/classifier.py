"""
Eligibility & Tier Classifier.

Pin eligibility:   score >= PIN_MIN_SCORE and overlap >= MIN_OVERLAP

Tiers for a (viewer, note author) pair, first match wins:
  1  author pinned as a Gourmet Friend in the note's category
  2  pin-eligible (high match)
  3  enough overlap and score >= MODERATE_MIN_SCORE (moderate match)
  4  everything else, including zero overlap and unavailable data
"""
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from taste_api.config import settings
from taste_api.matching.categories import TasteCategory
from taste_api.matching.scorer import SimilarityResult

PIN_MIN_SCORE = 0.70
MIN_OVERLAP = 5
MODERATE_MIN_SCORE = 0.50


class Tier(IntEnum):
    PINNED_FRIEND = 1
    HIGH_MATCH = 2
    MODERATE_MATCH = 3
    GENERAL = 4


@dataclass(frozen=True)
class TierPolicy:
    pin_min_score: float = PIN_MIN_SCORE
    min_overlap: int = MIN_OVERLAP
    moderate_min_score: float = MODERATE_MIN_SCORE

    @classmethod
    def from_settings(cls) -> "TierPolicy":
        return cls(
            pin_min_score=settings.tss_pin_min_score,
            min_overlap=settings.tss_min_overlap,
            moderate_min_score=settings.tss_moderate_min_score,
        )


DEFAULT_POLICY = TierPolicy()


@dataclass(frozen=True)
class EligibilityResult:
    category: TasteCategory
    score: Optional[float]
    overlap_count: int
    eligible: bool


def is_eligible(
    score: Optional[float],
    overlap_count: int,
    policy: TierPolicy = DEFAULT_POLICY,
) -> bool:
    return (
        score is not None
        and score >= policy.pin_min_score
        and overlap_count >= policy.min_overlap
    )


def evaluate(
    result: SimilarityResult,
    policy: TierPolicy = DEFAULT_POLICY,
) -> EligibilityResult:
    return EligibilityResult(
        category=result.category,
        score=result.score,
        overlap_count=result.overlap_count,
        eligible=is_eligible(result.score, result.overlap_count, policy),
    )


def assign_tier(
    result: Optional[SimilarityResult],
    pinned: bool,
    policy: TierPolicy = DEFAULT_POLICY,
) -> Tier:
    # A pin stays tier 1 even if the live score has since dropped.
    if pinned:
        return Tier.PINNED_FRIEND
    if result is None or result.score is None:
        return Tier.GENERAL
    if is_eligible(result.score, result.overlap_count, policy):
        return Tier.HIGH_MATCH
    if (
        result.overlap_count >= policy.min_overlap
        and result.score >= policy.moderate_min_score
    ):
        return Tier.MODERATE_MATCH
    return Tier.GENERAL
