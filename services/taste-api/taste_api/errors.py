"""
Domain errors raised by the matching engine and the pin registry, plus the
FastAPI handlers that render them as `{statusCode, error, message, timestamp}`.
"""
import logging
from datetime import datetime, timezone
from typing import Iterable

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class TasteMatchingError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class DataUnavailable(TasteMatchingError):
    """The note store could not return a user's notes."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, user_id: str, reason: str) -> None:
        super().__init__(f"Notes for user {user_id} are unavailable: {reason}")
        self.user_id = user_id


class IneligibleCategory(TasteMatchingError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(
        self,
        categories: Iterable[str],
        min_score: float,
        min_overlap: int,
    ) -> None:
        self.categories = [str(c) for c in categories]
        super().__init__(
            f"Insufficient taste overlap for {', '.join(self.categories)}. "
            f"Need TSS >= {min_score:g} and at least {min_overlap} shared items."
        )


class InvalidCategory(TasteMatchingError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, value: object) -> None:
        super().__init__(f"Unsupported taste category: {value!r}")
        self.value = value


class InvalidPinRequest(TasteMatchingError):
    status_code = status.HTTP_400_BAD_REQUEST


class PinNotFound(TasteMatchingError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, pinner_id: str, pinned_id: str) -> None:
        super().__init__(f"No gourmet friend pin from {pinner_id} to {pinned_id}")


async def _handle_taste_error(request: Request, exc: TasteMatchingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "statusCode": exc.status_code,
            "error": type(exc).__name__,
            "message": exc.message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TasteMatchingError, _handle_taste_error)
