"""
Pydantic request / response schemas for the API layer.
Kept separate from ORM models to avoid coupling transport to storage.

Python attributes are snake_case; the wire format is camelCase to match the
rest of the backend (`overlapCount`, `nextCursor`, `statusCode`, ...).
"""
from datetime import datetime, timezone
from typing import Annotated, Generic, Literal, Optional, TypeVar

from pydantic import AfterValidator, BaseModel, Field
from pydantic.alias_generators import to_camel

from taste_api.matching.categories import TasteCategory

T = TypeVar("T")


def _as_utc(value: datetime) -> datetime:
    # Backends without an offset send UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# ──────────────────────────── Envelopes ───────────────────────────────────

class Envelope(CamelModel, Generic[T]):
    """Generic `{ data, statusCode, timestamp }` wrapper used backend-wide."""
    data: T
    status_code: int = 200
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Page(CamelModel, Generic[T]):
    items: list[T]
    next_cursor: Optional[str] = None
    has_more: bool = False


# ──────────────────────────── Similarity ──────────────────────────────────

class TasteSimilarityOut(CamelModel):
    category: TasteCategory
    score: Optional[float]
    overlap_count: int
    # True when overlap is below the minimum; rendered as "Insufficient data"
    insufficient_data: bool


class EligibilityOut(CamelModel):
    category: TasteCategory
    score: Optional[float]
    overlap_count: int
    eligible: bool


class ProfileTasteResponse(CamelModel):
    user_id: str
    taste_similarity: list[TasteSimilarityOut]
    is_pinned: bool
    pinned_categories: list[TasteCategory] = []


# ──────────────────────────── Gourmet Friends ─────────────────────────────

class CanPinResponse(CamelModel):
    can_pin: bool
    eligible_categories: list[TasteCategory]
    compatibility: list[EligibilityOut]


class PinRequest(CamelModel):
    user_id: str
    pinned_id: str
    categories: list[TasteCategory] = Field(..., min_length=1)


class UpdatePinRequest(CamelModel):
    categories: list[TasteCategory] = Field(..., min_length=1)


class GourmetFriendOut(CamelModel):
    pinner_id: str
    pinned_id: str
    categories: list[TasteCategory]
    created_at: UtcDatetime
    similarities: list[TasteSimilarityOut] = []


# ──────────────────────────── Discovery ───────────────────────────────────

class CategorySimilarity(CamelModel):
    category: TasteCategory
    score: float
    overlap_count: int


class UserSuggestion(CamelModel):
    user_id: str
    best_category: TasteCategory
    best_score: float
    shared_item_count: int
    similarities: list[CategorySimilarity]


# ──────────────────────────── Tiered feed / search ────────────────────────

class SocialNote(CamelModel):
    """
    A public note as handed over by the feed/search backend.
    Any extra fields are passed through untouched.
    """
    id: str
    author_id: str
    type: str
    created_at: UtcDatetime

    class Config:
        extra = "allow"


class TieredNote(SocialNote):
    tier: int


class RankRequest(CamelModel):
    viewer_id: str
    notes: list[SocialNote]


class TieredFeedResponse(CamelModel):
    viewer_id: str
    notes: list[TieredNote]


class TieredSearchResponse(CamelModel):
    tier1: list[TieredNote] = []
    tier2: list[TieredNote] = []
    tier3: list[TieredNote] = []
    tier4: list[TieredNote] = []


# ──────────────────────────── Note-write hook ─────────────────────────────

class NoteEvent(CamelModel):
    user_id: str
    note_type: str
    action: Literal["created", "updated", "deleted"]
    note_id: Optional[str] = None


# ──────────────────────────── Builders ────────────────────────────────────

def similarity_out(result, min_overlap: int) -> TasteSimilarityOut:
    return TasteSimilarityOut(
        category=result.category,
        score=result.score,
        overlap_count=result.overlap_count,
        insufficient_data=result.insufficient_data(min_overlap),
    )


def eligibility_out(result) -> EligibilityOut:
    return EligibilityOut(
        category=result.category,
        score=result.score,
        overlap_count=result.overlap_count,
        eligible=result.eligible,
    )


def tiered_note(note: SocialNote, tier: int) -> TieredNote:
    return TieredNote(**{**note.model_dump(), "tier": int(tier)})
