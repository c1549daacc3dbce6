"""
Internal hooks for the CRUD backend:
  POST /internal/note-events — synchronous variant of the 'note-events'
                               Kafka topic; invalidates and recomputes scores
"""
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from taste_api.database import get_db
from taste_api.dependencies import get_matching_service, get_policy
from taste_api.matching.classifier import TierPolicy
from taste_api.matching.service import TasteMatchingService
from taste_api.schemas import Envelope, NoteEvent
from taste_api.workers.note_events import handle_note_event

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "/note-events",
    response_model=Envelope[dict],
    status_code=status.HTTP_202_ACCEPTED,
)
async def note_event(
    event: NoteEvent,
    db: AsyncSession = Depends(get_db),
    matching: TasteMatchingService = Depends(get_matching_service),
    policy: TierPolicy = Depends(get_policy),
):
    recomputed = await handle_note_event(event, matching, db, policy)
    return Envelope(
        data={"recomputed": recomputed},
        status_code=status.HTTP_202_ACCEPTED,
    )
