"""
Profile taste endpoint:
  GET /profiles/{user_id}/taste?viewer_id=<id> — per-category TSS between the
                                                 viewer and the profile owner,
                                                 plus the viewer's pin state

The profile API owns GET /profiles/{userId} (name, avatar, counts). It merges
this payload into its response: `tasteSimilarity` and `isPinned` come from
here, together with `pinnedCategories` for the pin controls.
"""
import asyncio
import logging

from fastapi import APIRouter, Depends, Query
from opentelemetry import trace

from taste_api.dependencies import get_pin_registry, get_policy
from taste_api.matching.classifier import TierPolicy
from taste_api.schemas import Envelope, ProfileTasteResponse, similarity_out
from taste_api.social.pins import FriendPinRegistry, pin_categories

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


@router.get("/{user_id}/taste", response_model=Envelope[ProfileTasteResponse])
async def get_profile_taste(
    user_id: str,
    viewer_id: str = Query(..., description="ID of the viewing user"),
    registry: FriendPinRegistry = Depends(get_pin_registry),
    policy: TierPolicy = Depends(get_policy),
):
    with tracer.start_as_current_span("get_profile_taste") as span:
        span.set_attribute("user.id", user_id)
        span.set_attribute("viewer.id", viewer_id)

        if viewer_id == user_id:
            return Envelope(
                data=ProfileTasteResponse(user_id=user_id, taste_similarity=[], is_pinned=False)
            )

        results, pin = await asyncio.gather(
            registry.matching.compare_all(viewer_id, user_id),
            registry.get_pin(viewer_id, user_id),
        )
        pinned = sorted(pin_categories(pin)) if pin is not None else []
        return Envelope(
            data=ProfileTasteResponse(
                user_id=user_id,
                taste_similarity=[similarity_out(r, policy.min_overlap) for r in results],
                is_pinned=pin is not None,
                pinned_categories=pinned,
            )
        )
