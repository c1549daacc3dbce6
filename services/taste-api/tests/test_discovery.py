"""Similar-user discovery over persisted pair scores."""
import pytest

from taste_api.matching.categories import TasteCategory
from taste_api.matching.scorer import SimilarityResult
from taste_api.matching.store import SimilarityStore
from taste_api.social.discovery import decode_cursor, discover_similar_users

R = TasteCategory.RESTAURANT
W = TasteCategory.WINE
S = TasteCategory.SPIRIT


@pytest.fixture
async def store(db):
    store = SimilarityStore(db)
    rows = [
        ("me", "bob", R, 0.80, 6),
        ("bob", "me", W, 0.95, 7),
        ("carol", "me", S, 0.90, 5),
        ("me", "dave", R, 0.60, 9),
        ("erin", "me", W, 0.90, 8),
        ("bob", "carol", R, 0.99, 12),
    ]
    for a, b, category, score, overlap in rows:
        await store.upsert(SimilarityResult(category, a, b, overlap, score))
    await db.commit()
    return store


@pytest.mark.asyncio
async def test_rows_are_stored_canonically(store) -> None:
    rows = await store.list_for_user("bob", W)
    assert [(r.user_a_id, r.user_b_id) for r in rows] == [("bob", "me")]
    assert sorted(await store.partner_ids("bob", R)) == ["carol", "me"]


@pytest.mark.asyncio
async def test_suggestions_grouped_and_sorted(store) -> None:
    page = await discover_similar_users(store, "me")

    assert [s.user_id for s in page.items] == ["bob", "carol", "erin", "dave"]
    bob = page.items[0]
    assert bob.best_category is W
    assert bob.best_score == pytest.approx(0.95)
    assert bob.shared_item_count == 13
    assert [s.category for s in bob.similarities] == [W, R]
    assert not page.has_more
    assert page.next_cursor is None


@pytest.mark.asyncio
async def test_category_filter(store) -> None:
    page = await discover_similar_users(store, "me", category=R)
    assert [s.user_id for s in page.items] == ["bob", "dave"]
    assert page.items[0].best_score == pytest.approx(0.80)


@pytest.mark.asyncio
async def test_cursor_pagination(store) -> None:
    first = await discover_similar_users(store, "me", limit=3)
    assert [s.user_id for s in first.items] == ["bob", "carol", "erin"]
    assert first.has_more
    assert first.next_cursor == "3"

    second = await discover_similar_users(store, "me", limit=3, cursor=first.next_cursor)
    assert [s.user_id for s in second.items] == ["dave"]
    assert not second.has_more


@pytest.mark.asyncio
async def test_upsert_overwrites_and_delete_removes(store, db) -> None:
    await store.upsert(SimilarityResult(R, "dave", "me", 10, 0.7))
    rows = await store.list_for_user("dave")
    assert len(rows) == 1
    assert rows[0].overlap_count == 10

    await store.delete("me", "dave", R)
    assert await store.list_for_user("dave") == []


def test_decode_cursor_tolerates_garbage() -> None:
    assert decode_cursor(None) == 0
    assert decode_cursor("20") == 20
    assert decode_cursor("-4") == 0
    assert decode_cursor("abc") == 0
