"""
Gourmet Friend endpoints:
  GET    /friends?user_id=                          — list pinned friends
  GET    /friends/{target_id}/can-pin?user_id=      — eligibility preview
  POST   /friends/pin                               — pin (or add categories)
  PUT    /friends/{target_id}/categories?user_id=   — replace categories
  DELETE /friends/{target_id}?user_id=              — unpin entirely
  DELETE /friends/{target_id}/categories/{category}?user_id= — drop one category
"""
import logging

from fastapi import APIRouter, Depends, Query, Response, status
from opentelemetry import trace

from taste_api.dependencies import get_pin_registry
from taste_api.matching.categories import parse_category
from taste_api.models import GourmetFriendPin
from taste_api.schemas import (
    CanPinResponse,
    Envelope,
    GourmetFriendOut,
    PinRequest,
    UpdatePinRequest,
    eligibility_out,
    similarity_out,
)
from taste_api.social.pins import FriendPinRegistry

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


def _build_friend_response(pin: GourmetFriendPin, similarities=(), min_overlap: int = 0) -> GourmetFriendOut:
    return GourmetFriendOut(
        pinner_id=pin.pinner_id,
        pinned_id=pin.pinned_id,
        categories=pin.categories,
        created_at=pin.created_at,
        similarities=[similarity_out(s, min_overlap) for s in similarities],
    )


@router.get("", response_model=Envelope[list[GourmetFriendOut]])
async def list_friends(
    user_id: str = Query(..., description="ID of the pinning user"),
    registry: FriendPinRegistry = Depends(get_pin_registry),
):
    with tracer.start_as_current_span("list_friends"):
        friends = await registry.list_friends(user_id)
        return Envelope(
            data=[
                _build_friend_response(f.pin, f.similarities, registry.policy.min_overlap)
                for f in friends
            ]
        )


@router.get("/{target_id}/can-pin", response_model=Envelope[CanPinResponse])
async def can_pin(
    target_id: str,
    user_id: str = Query(..., description="ID of the pinning user"),
    registry: FriendPinRegistry = Depends(get_pin_registry),
):
    with tracer.start_as_current_span("can_pin"):
        result = await registry.can_pin(user_id, target_id)
        return Envelope(
            data=CanPinResponse(
                can_pin=result.can_pin,
                eligible_categories=result.eligible_categories,
                compatibility=[eligibility_out(c) for c in result.compatibility],
            )
        )


@router.post(
    "/pin",
    response_model=Envelope[GourmetFriendOut],
    status_code=status.HTTP_201_CREATED,
)
async def pin_friend(
    body: PinRequest,
    registry: FriendPinRegistry = Depends(get_pin_registry),
):
    """
    Pin a Gourmet Friend in one or more categories.

    Every requested category must clear the TSS gate right now; if any fails
    the whole request is rejected and nothing is written. Pinning an existing
    friend again adds the new categories to the existing pin.
    """
    with tracer.start_as_current_span("pin_friend"):
        pin = await registry.pin(body.user_id, body.pinned_id, body.categories)
        return Envelope(data=_build_friend_response(pin), status_code=status.HTTP_201_CREATED)


@router.put("/{target_id}/categories", response_model=Envelope[GourmetFriendOut])
async def update_pin_categories(
    target_id: str,
    body: UpdatePinRequest,
    user_id: str = Query(..., description="ID of the pinning user"),
    registry: FriendPinRegistry = Depends(get_pin_registry),
):
    with tracer.start_as_current_span("update_pin_categories"):
        pin = await registry.set_categories(user_id, target_id, body.categories)
        return Envelope(data=_build_friend_response(pin))


@router.delete("/{target_id}", status_code=status.HTTP_204_NO_CONTENT)
async def unpin_friend(
    target_id: str,
    user_id: str = Query(..., description="ID of the pinning user"),
    registry: FriendPinRegistry = Depends(get_pin_registry),
):
    with tracer.start_as_current_span("unpin_friend"):
        await registry.unpin(user_id, target_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{target_id}/categories/{category}", status_code=status.HTTP_204_NO_CONTENT)
async def unpin_category(
    target_id: str,
    category: str,
    user_id: str = Query(..., description="ID of the pinning user"),
    registry: FriendPinRegistry = Depends(get_pin_registry),
):
    with tracer.start_as_current_span("unpin_category"):
        await registry.unpin_category(user_id, target_id, parse_category(category))
        return Response(status_code=status.HTTP_204_NO_CONTENT)
