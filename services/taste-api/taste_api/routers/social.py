"""
Tiered feed / search endpoints:
  POST /feed/tiered    { viewerId, notes[] } — flat list, tier asc then newest
  POST /search/tiered  { viewerId, notes[] } — { tier1, tier2, tier3, tier4 }

Candidate notes come from the feed/search backend; this service only assigns
tiers. Pins are read once per request and every (author, category) similarity
is computed at most once.
"""
import logging

from fastapi import APIRouter, Depends
from opentelemetry import trace

from taste_api.dependencies import get_pin_registry, get_ranker
from taste_api.matching.classifier import Tier
from taste_api.matching.ranker import RankedNote, SocialRanker, bucket, order_flat
from taste_api.schemas import (
    Envelope,
    RankRequest,
    TieredFeedResponse,
    TieredSearchResponse,
    tiered_note,
)
from taste_api.social.pins import FriendPinRegistry

logger = logging.getLogger(__name__)
feed_router = APIRouter()
search_router = APIRouter()
tracer = trace.get_tracer(__name__)


async def _classify(
    body: RankRequest,
    registry: FriendPinRegistry,
    ranker: SocialRanker,
) -> list[RankedNote]:
    pinned = await registry.pinned_categories(body.viewer_id)
    return await ranker.classify(body.viewer_id, body.notes, pinned)


@feed_router.post("/tiered", response_model=Envelope[TieredFeedResponse])
async def tiered_feed(
    body: RankRequest,
    registry: FriendPinRegistry = Depends(get_pin_registry),
    ranker: SocialRanker = Depends(get_ranker),
):
    with tracer.start_as_current_span("tiered_feed") as span:
        span.set_attribute("viewer.id", body.viewer_id)
        ranked = order_flat(await _classify(body, registry, ranker))
        return Envelope(
            data=TieredFeedResponse(
                viewer_id=body.viewer_id,
                notes=[tiered_note(r.note, r.tier) for r in ranked],
            )
        )


@search_router.post("/tiered", response_model=Envelope[TieredSearchResponse])
async def tiered_search(
    body: RankRequest,
    registry: FriendPinRegistry = Depends(get_pin_registry),
    ranker: SocialRanker = Depends(get_ranker),
):
    with tracer.start_as_current_span("tiered_search") as span:
        span.set_attribute("viewer.id", body.viewer_id)
        buckets = bucket(await _classify(body, registry, ranker))
        return Envelope(
            data=TieredSearchResponse(
                tier1=[tiered_note(r.note, r.tier) for r in buckets[Tier.PINNED_FRIEND]],
                tier2=[tiered_note(r.note, r.tier) for r in buckets[Tier.HIGH_MATCH]],
                tier3=[tiered_note(r.note, r.tier) for r in buckets[Tier.MODERATE_MATCH]],
                tier4=[tiered_note(r.note, r.tier) for r in buckets[Tier.GENERAL]],
            )
        )
