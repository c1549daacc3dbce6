"""HTTP surface: envelopes, status codes and error bodies."""
import pytest

from factories import dishes, wines
from taste_api.matching.categories import TasteCategory
from taste_api.matching.scorer import SimilarityResult
from taste_api.matching.store import SimilarityStore


def _seed(note_store) -> None:
    # RESTAURANT: eligible (≈0.78, 6 shared); WINE: moderate (≈0.64, 5 shared)
    note_store.add(
        *dishes("alice", [8] * 6),
        *dishes("bob", [6] * 6),
        *wines("alice", [9, 9, 9, 9, 9]),
        *wines("bob", [6, 6, 6, 6, 5]),
    )


@pytest.mark.asyncio
async def test_health(client) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "taste-api"}


@pytest.mark.asyncio
async def test_profile_taste(client, note_store) -> None:
    _seed(note_store)
    response = await client.get("/profiles/bob/taste", params={"viewer_id": "alice"})

    assert response.status_code == 200
    body = response.json()
    assert body["statusCode"] == 200
    data = body["data"]
    assert data["userId"] == "bob"
    assert data["isPinned"] is False
    similarity = {s["category"]: s for s in data["tasteSimilarity"]}
    assert similarity["RESTAURANT"]["overlapCount"] == 6
    assert similarity["RESTAURANT"]["insufficientData"] is False
    assert similarity["SPIRIT"]["score"] is None
    assert similarity["SPIRIT"]["insufficientData"] is True


@pytest.mark.asyncio
async def test_profile_taste_of_self_is_empty(client) -> None:
    response = await client.get("/profiles/alice/taste", params={"viewer_id": "alice"})
    assert response.json()["data"]["tasteSimilarity"] == []


@pytest.mark.asyncio
async def test_pin_flow(client, note_store) -> None:
    _seed(note_store)

    preview = await client.get("/friends/bob/can-pin", params={"user_id": "alice"})
    assert preview.status_code == 200
    assert preview.json()["data"]["canPin"] is True
    assert preview.json()["data"]["eligibleCategories"] == ["RESTAURANT"]

    pinned = await client.post(
        "/friends/pin",
        json={"userId": "alice", "pinnedId": "bob", "categories": ["RESTAURANT"]},
    )
    assert pinned.status_code == 201
    assert pinned.json()["data"]["categories"] == ["RESTAURANT"]

    friends = await client.get("/friends", params={"user_id": "alice"})
    assert friends.status_code == 200
    [friend] = friends.json()["data"]
    assert friend["pinnedId"] == "bob"
    assert len(friend["similarities"]) == 3

    profile = await client.get("/profiles/bob/taste", params={"viewer_id": "alice"})
    assert profile.json()["data"]["isPinned"] is True
    assert profile.json()["data"]["pinnedCategories"] == ["RESTAURANT"]

    removed = await client.delete("/friends/bob/categories/restaurant", params={"user_id": "alice"})
    assert removed.status_code == 204
    friends = await client.get("/friends", params={"user_id": "alice"})
    assert friends.json()["data"] == []


@pytest.mark.asyncio
async def test_ineligible_pin_is_422(client, note_store) -> None:
    _seed(note_store)
    response = await client.post(
        "/friends/pin",
        json={"userId": "alice", "pinnedId": "bob", "categories": ["RESTAURANT", "WINE"]},
    )
    assert response.status_code == 422
    body = response.json()
    assert body["statusCode"] == 422
    assert body["error"] == "IneligibleCategory"
    assert body["message"] == (
        "Insufficient taste overlap for WINE. Need TSS >= 0.7 and at least 5 shared items."
    )

    friends = await client.get("/friends", params={"user_id": "alice"})
    assert friends.json()["data"] == []


@pytest.mark.asyncio
async def test_pin_errors(client) -> None:
    self_pin = await client.post(
        "/friends/pin",
        json={"userId": "alice", "pinnedId": "alice", "categories": ["WINE"]},
    )
    assert self_pin.status_code == 400

    missing = await client.put(
        "/friends/bob/categories",
        params={"user_id": "alice"},
        json={"categories": ["WINE"]},
    )
    assert missing.status_code == 404
    assert missing.json()["error"] == "PinNotFound"

    bad_category = await client.delete("/friends/bob/categories/BEER", params={"user_id": "alice"})
    assert bad_category.status_code == 400

    unpin = await client.delete("/friends/bob", params={"user_id": "alice"})
    assert unpin.status_code == 204


@pytest.mark.asyncio
async def test_note_store_outage_is_503(client, note_store) -> None:
    note_store.unavailable.add("bob")
    response = await client.get("/friends/bob/can-pin", params={"user_id": "alice"})
    assert response.status_code == 503
    assert response.json()["error"] == "DataUnavailable"


@pytest.mark.asyncio
async def test_discover_similar_users(client, db) -> None:
    store = SimilarityStore(db)
    await store.upsert(SimilarityResult(TasteCategory.WINE, "alice", "bob", 7, 0.9))
    await store.upsert(SimilarityResult(TasteCategory.RESTAURANT, "alice", "carol", 5, 0.8))
    await db.commit()

    response = await client.get(
        "/discover/similar-users", params={"user_id": "alice", "limit": 1}
    )
    assert response.status_code == 200
    page = response.json()["data"]
    assert [s["userId"] for s in page["items"]] == ["bob"]
    assert page["items"][0]["bestCategory"] == "WINE"
    assert page["items"][0]["sharedItemCount"] == 7
    assert page["hasMore"] is True

    following = await client.get(
        "/discover/similar-users",
        params={"user_id": "alice", "limit": 1, "cursor": page["nextCursor"]},
    )
    assert [s["userId"] for s in following.json()["data"]["items"]] == ["carol"]
    assert following.json()["data"]["nextCursor"] is None


def _candidates() -> list[dict]:
    return [
        {"id": "n1", "authorId": "bob", "type": "RESTAURANT", "createdAt": "2024-05-01T10:00:00Z", "title": "Ramen"},
        {"id": "n2", "authorId": "bob", "type": "WINE", "createdAt": "2024-05-02T10:00:00Z"},
        {"id": "n3", "authorId": "zoe", "type": "SPIRIT", "createdAt": "2024-05-03T10:00:00Z"},
        {"id": "n4", "authorId": "alice", "type": "WINE", "createdAt": "2024-05-04T10:00:00Z"},
    ]


@pytest.mark.asyncio
async def test_tiered_feed(client, note_store) -> None:
    _seed(note_store)
    response = await client.post(
        "/feed/tiered", json={"viewerId": "alice", "notes": _candidates()}
    )
    assert response.status_code == 200
    notes = response.json()["data"]["notes"]
    assert [(n["id"], n["tier"]) for n in notes] == [("n1", 2), ("n2", 3), ("n3", 4)]
    # Unknown fields pass through untouched
    assert notes[0]["title"] == "Ramen"


@pytest.mark.asyncio
async def test_tiered_search(client, note_store) -> None:
    _seed(note_store)
    await client.post(
        "/friends/pin",
        json={"userId": "alice", "pinnedId": "bob", "categories": ["RESTAURANT"]},
    )
    response = await client.post(
        "/search/tiered", json={"viewerId": "alice", "notes": _candidates()}
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert [n["id"] for n in data["tier1"]] == ["n1"]
    assert data["tier2"] == []
    assert [n["id"] for n in data["tier3"]] == ["n2"]
    assert [n["id"] for n in data["tier4"]] == ["n3"]


@pytest.mark.asyncio
async def test_note_event_hook(client, note_store, db, redis) -> None:
    _seed(note_store)
    store = SimilarityStore(db)
    await store.upsert(SimilarityResult(TasteCategory.RESTAURANT, "alice", "bob", 6, 0.5))
    await db.commit()

    response = await client.post(
        "/internal/note-events",
        json={"userId": "bob", "noteType": "RESTAURANT", "action": "updated"},
    )
    assert response.status_code == 202
    assert response.json()["data"] == {"recomputed": 1}
    assert await redis.get("tss:gen:bob:RESTAURANT") == "1"


@pytest.mark.asyncio
async def test_metrics_endpoint(client) -> None:
    response = await client.get("/metrics/")
    assert response.status_code == 200
    assert "tss_computations_total" in response.text


@pytest.mark.asyncio
async def test_tiered_feed_accepts_mixed_timestamps(client) -> None:
    notes = [
        {"id": "n1", "authorId": "bob", "type": "WINE", "createdAt": "2024-01-01T00:00:00Z"},
        {"id": "n2", "authorId": "zoe", "type": "WINE", "createdAt": "2024-01-02T00:00:00"},
    ]
    response = await client.post("/feed/tiered", json={"viewerId": "alice", "notes": notes})
    assert response.status_code == 200
    assert [n["id"] for n in response.json()["data"]["notes"]] == ["n2", "n1"]
