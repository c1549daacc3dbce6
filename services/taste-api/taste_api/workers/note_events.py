"""
Note-event worker — Kafka consumer.

The CRUD backend emits one event per note write on the 'note-events' topic:
  { "userId": "...", "noteType": "WINE", "action": "created|updated|deleted",
    "noteId": "..." }

For every event with a taste category:
  1. Bump the user's cache generation for that category, so every cached
     pair score involving them is recomputed on next read.
  2. Recompute the user's persisted pair scores in that category (the pairs
     discovery already knows about). New pairs are picked up by the nightly
     batch job.

The same handler backs POST /internal/note-events for backends that call a
hook instead of publishing to Kafka.
"""
import asyncio
import json
import logging

from aiokafka import AIOKafkaConsumer
from opentelemetry import trace
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from taste_api.clients import redis_client
from taste_api.clients.note_store_client import note_store_client
from taste_api.config import settings
from taste_api.database import AsyncSessionLocal
from taste_api.errors import DataUnavailable
from taste_api.matching.categories import note_type_to_category
from taste_api.matching.classifier import TierPolicy
from taste_api.matching.service import TasteMatchingService
from taste_api.matching.store import SimilarityStore
from taste_api.schemas import NoteEvent
from taste_api.telemetry import setup_tracing

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


async def handle_note_event(
    event: NoteEvent,
    matching: TasteMatchingService,
    db: AsyncSession,
    policy: TierPolicy | None = None,
) -> int:
    """Invalidate and refresh one user's scores. Returns pairs recomputed."""
    policy = policy or TierPolicy.from_settings()
    category = note_type_to_category(event.note_type)
    if category is None:
        logger.debug("Ignoring %s event for non-taste note type %s", event.action, event.note_type)
        return 0

    with tracer.start_as_current_span("note_event") as span:
        span.set_attribute("user.id", event.user_id)
        span.set_attribute("tss.category", category.value)

        await matching.invalidate(event.user_id, category)

        store = SimilarityStore(db)
        partners = await store.partner_ids(event.user_id, category)
        recomputed = 0
        for partner_id in partners:
            try:
                result = await matching.compare(event.user_id, partner_id, category)
            except DataUnavailable as exc:
                logger.warning(
                    "Skipping recompute %s/%s/%s: %s",
                    event.user_id, partner_id, category, exc.message,
                )
                continue
            if result.score is not None and result.overlap_count >= policy.min_overlap:
                await store.upsert(result)
            else:
                await store.delete(event.user_id, partner_id, category)
            recomputed += 1

        span.set_attribute("tss.pairs_recomputed", recomputed)
        logger.info(
            "Note %s by %s (%s): recomputed %d stored pairs",
            event.action, event.user_id, category, recomputed,
        )
        return recomputed


async def process_message(msg: dict, matching: TasteMatchingService) -> None:
    try:
        event = NoteEvent.model_validate(msg)
    except ValidationError:
        logger.warning("Malformed note event: %s", msg)
        return

    async with AsyncSessionLocal() as db:
        await handle_note_event(event, matching, db)
        await db.commit()


# ─────────────────────────── Main Loop ───────────────────────────────────

async def main() -> None:
    setup_tracing()

    await redis_client.init_redis()
    await note_store_client.start()
    matching = TasteMatchingService(note_store_client)

    consumer = AIOKafkaConsumer(
        settings.kafka_topic_note_events,
        bootstrap_servers=settings.kafka_bootstrap_servers,
        group_id=settings.kafka_consumer_group,
        auto_offset_reset="earliest",
        value_deserializer=lambda v: json.loads(v.decode("utf-8")),
    )
    await consumer.start()
    logger.info(
        "Note-event worker listening on topic '%s'", settings.kafka_topic_note_events
    )

    try:
        async for msg in consumer:
            try:
                await process_message(msg.value, matching)
            except Exception as exc:
                logger.error("Note-event error for %s: %s", msg.value, exc)
    finally:
        await consumer.stop()
        await note_store_client.stop()
        await redis_client.close_redis()


if __name__ == "__main__":
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
    )
    asyncio.run(main())
