"""
Note store client — reads rated notes from the CRUD backend.

Endpoints used (internal, service-to-service):
  GET /internal/users/{user_id}/notes?type=WINE&visibility=PUBLIC&cursor=&limit=
  GET /internal/authors?type=WINE&cursor=&limit=

Both answer the backend-wide envelope:
  { "data": { "items": [...], "nextCursor": "...", "hasMore": true },
    "statusCode": 200, "timestamp": "..." }

Pages are followed until `hasMore` is false. Any transport error, non-2xx
answer or payload that fails validation raises DataUnavailable — scoring
callers decide whether to propagate it or degrade.
"""
import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from taste_api.config import settings
from taste_api.errors import DataUnavailable
from taste_api.matching.categories import TasteCategory
from taste_api.matching.notes import NoteRecord, note_list_adapter
from taste_api.telemetry import NOTE_STORE_ERRORS_TOTAL

logger = logging.getLogger(__name__)

MAX_PAGES = 1000


class NoteStoreClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url or settings.note_store_url
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    async def start(self) -> None:
        headers = {}
        if settings.note_store_token:
            headers["Authorization"] = f"Bearer {settings.note_store_token}"
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=settings.note_store_timeout,
            headers=headers,
            transport=self._transport,
        )

    async def stop(self) -> None:
        if self._http:
            await self._http.aclose()
            self._http = None

    async def list_rated_notes(
        self,
        user_id: str,
        category: TasteCategory,
    ) -> list[NoteRecord]:
        """All PUBLIC notes of `user_id` whose note type is `category`."""
        raw = await self._paginate(
            f"/internal/users/{user_id}/notes",
            {"type": category.value, "visibility": "PUBLIC"},
            subject=user_id,
        )
        try:
            return note_list_adapter.validate_python(raw)
        except ValidationError as exc:
            NOTE_STORE_ERRORS_TOTAL.inc()
            raise DataUnavailable(user_id, f"invalid note payload ({exc.error_count()} errors)") from exc

    async def list_authors(self, category: TasteCategory) -> list[str]:
        """User ids with at least one PUBLIC note in `category`."""
        raw = await self._paginate(
            "/internal/authors",
            {"type": category.value},
            subject=f"authors:{category.value}",
        )
        return [str(item["id"]) if isinstance(item, dict) else str(item) for item in raw]

    async def _paginate(self, path: str, params: dict, subject: str) -> list[Any]:
        if self._http is None:
            raise RuntimeError("NoteStoreClient not started — call start() at startup")

        items: list[Any] = []
        cursor: Optional[str] = None
        for _ in range(MAX_PAGES):
            page_params = {**params, "limit": settings.note_store_page_size}
            if cursor:
                page_params["cursor"] = cursor
            try:
                resp = await self._http.get(path, params=page_params)
                resp.raise_for_status()
                page = resp.json()["data"]
                items.extend(page["items"])
            except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
                NOTE_STORE_ERRORS_TOTAL.inc()
                logger.warning("Note store fetch failed (%s %s): %s", path, params, exc)
                raise DataUnavailable(subject, str(exc) or type(exc).__name__) from exc

            cursor = page.get("nextCursor")
            if not page.get("hasMore") or not cursor:
                return items

        logger.warning("Note store pagination for %s stopped after %d pages", path, MAX_PAGES)
        return items


# Singleton
note_store_client = NoteStoreClient()
