"""Note store HTTP client against a mocked CRUD backend."""
import httpx
import pytest

from taste_api.clients.note_store_client import NoteStoreClient
from taste_api.errors import DataUnavailable
from taste_api.matching.categories import TasteCategory
from taste_api.matching.notes import WineNote


def _wine_payload(note_id: str, rating: int) -> dict:
    return {
        "id": note_id,
        "authorId": "u1",
        "type": "WINE",
        "rating": rating,
        "experiencedAt": "2024-03-01T19:00:00Z",
        "visibility": "PUBLIC",
        "extension": {"wineName": "Barolo", "vintage": 2016, "grape": "Nebbiolo"},
    }


def _envelope(items, next_cursor=None, has_more=False) -> dict:
    return {
        "data": {"items": items, "nextCursor": next_cursor, "hasMore": has_more},
        "statusCode": 200,
        "timestamp": "2024-03-01T19:00:00Z",
    }


async def _client(handler) -> NoteStoreClient:
    client = NoteStoreClient(base_url="http://notes", transport=httpx.MockTransport(handler))
    await client.start()
    return client


@pytest.mark.asyncio
async def test_list_rated_notes_follows_pages() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(dict(request.url.params))
        assert request.url.path == "/internal/users/u1/notes"
        if request.url.params.get("cursor") == "p2":
            return httpx.Response(200, json=_envelope([_wine_payload("n2", 6)]))
        return httpx.Response(200, json=_envelope([_wine_payload("n1", 8)], "p2", True))

    client = await _client(handler)
    try:
        notes = await client.list_rated_notes("u1", TasteCategory.WINE)
    finally:
        await client.stop()

    assert [n.id for n in notes] == ["n1", "n2"]
    assert isinstance(notes[0], WineNote)
    assert notes[0].extension.wine_name == "Barolo"
    assert seen[0]["type"] == "WINE"
    assert seen[0]["visibility"] == "PUBLIC"
    assert "cursor" not in seen[0]
    assert seen[1]["cursor"] == "p2"


@pytest.mark.asyncio
async def test_server_error_raises_data_unavailable() -> None:
    client = await _client(lambda request: httpx.Response(500, json={"message": "boom"}))
    try:
        with pytest.raises(DataUnavailable) as exc_info:
            await client.list_rated_notes("u1", TasteCategory.WINE)
    finally:
        await client.stop()
    assert exc_info.value.user_id == "u1"


@pytest.mark.asyncio
async def test_invalid_payload_raises_data_unavailable() -> None:
    bad = _wine_payload("n1", 14)

    client = await _client(lambda request: httpx.Response(200, json=_envelope([bad])))
    try:
        with pytest.raises(DataUnavailable):
            await client.list_rated_notes("u1", TasteCategory.WINE)
    finally:
        await client.stop()


@pytest.mark.asyncio
async def test_malformed_envelope_raises_data_unavailable() -> None:
    client = await _client(lambda request: httpx.Response(200, json={"items": []}))
    try:
        with pytest.raises(DataUnavailable):
            await client.list_authors(TasteCategory.SPIRIT)
    finally:
        await client.stop()


@pytest.mark.asyncio
async def test_list_authors_accepts_ids_or_objects() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/internal/authors"
        assert request.url.params["type"] == "SPIRIT"
        return httpx.Response(200, json=_envelope(["u1", {"id": "u2"}]))

    client = await _client(handler)
    try:
        assert await client.list_authors(TasteCategory.SPIRIT) == ["u1", "u2"]
    finally:
        await client.stop()
