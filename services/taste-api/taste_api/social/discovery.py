"""
Similar-user discovery.

Reads the persisted pair scores, groups them by the other user and keeps the
best category per user. Results are sorted by best score (desc) and paged with
an opaque cursor (the offset of the next page).
"""
from dataclasses import dataclass, field
from typing import Optional

from taste_api.matching.categories import TasteCategory
from taste_api.matching.store import SimilarityStore


@dataclass
class CategoryScore:
    category: TasteCategory
    score: float
    overlap_count: int


@dataclass
class Suggestion:
    user_id: str
    best_category: TasteCategory
    best_score: float
    similarities: list[CategoryScore] = field(default_factory=list)

    @property
    def shared_item_count(self) -> int:
        return sum(s.overlap_count for s in self.similarities)


@dataclass
class SuggestionPage:
    items: list[Suggestion]
    next_cursor: Optional[str]
    has_more: bool


def decode_cursor(cursor: Optional[str]) -> int:
    if not cursor:
        return 0
    try:
        return max(int(cursor), 0)
    except ValueError:
        return 0


async def discover_similar_users(
    store: SimilarityStore,
    user_id: str,
    category: Optional[TasteCategory] = None,
    limit: int = 20,
    cursor: Optional[str] = None,
) -> SuggestionPage:
    rows = await store.list_for_user(user_id, category)

    by_user: dict[str, Suggestion] = {}
    for row in rows:
        other = row.user_b_id if row.user_a_id == user_id else row.user_a_id
        entry = CategoryScore(TasteCategory(row.category), row.score, row.overlap_count)
        suggestion = by_user.get(other)
        if suggestion is None:
            by_user[other] = Suggestion(other, entry.category, entry.score, [entry])
            continue
        suggestion.similarities.append(entry)
        if entry.score > suggestion.best_score:
            suggestion.best_score = entry.score
            suggestion.best_category = entry.category

    ranked = sorted(by_user.values(), key=lambda s: (-s.best_score, s.user_id))
    for suggestion in ranked:
        suggestion.similarities.sort(key=lambda s: (-s.score, s.category.value))

    offset = decode_cursor(cursor)
    page = ranked[offset:offset + limit]
    has_more = offset + limit < len(ranked)
    return SuggestionPage(
        items=page,
        next_cursor=str(offset + limit) if has_more else None,
        has_more=has_more,
    )
