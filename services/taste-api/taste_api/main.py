"""
Taste Matching API — entry point.

Startup sequence:
  1. Configure OTel tracing (→ Jaeger via OTLP)
  2. Initialise DB connection pool (TiDB) and create tables if not present
  3. Connect to Redis (pair score cache)
  4. Start the note store HTTP client
  5. Expose Prometheus /metrics endpoint

The nightly batch job (taste_api.workers.tss_batch) and the note-event
consumer (taste_api.workers.note_events) run as separate processes.
"""
import logging

from contextlib import asynccontextmanager
from fastapi import FastAPI
from prometheus_client import make_asgi_app

from taste_api.config import settings
from taste_api.database import init_db
from taste_api.errors import register_error_handlers
from taste_api.telemetry import setup_tracing, instrument_app
from taste_api.clients.redis_client import init_redis, close_redis
from taste_api.clients.note_store_client import note_store_client
from taste_api.routers import discover, friends, internal, profiles, social

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)

# Set up tracing before the app is created so all imports are instrumented
setup_tracing()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup and shutdown of all external connections."""
    logger.info("Starting Taste Matching API (env=%s)", settings.environment)

    await init_db()
    await init_redis()
    await note_store_client.start()

    logger.info("All services connected. API ready.")
    yield

    logger.info("Shutting down...")
    await note_store_client.stop()
    await close_redis()


app = FastAPI(
    title="Taste Matching API",
    description=(
        "Taste Similarity Scores between users, Gourmet Friend pins and "
        "tiered ranking of social feed and search results."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

register_error_handlers(app)

# ── Routers ────────────────────────────────────────────────────────────────
app.include_router(profiles.router, prefix="/profiles", tags=["Profiles"])
app.include_router(friends.router, prefix="/friends", tags=["Gourmet Friends"])
app.include_router(discover.router, prefix="/discover", tags=["Discovery"])
app.include_router(social.feed_router, prefix="/feed", tags=["Feed"])
app.include_router(social.search_router, prefix="/search", tags=["Search"])
app.include_router(internal.router, prefix="/internal", tags=["Internal"])

# ── Prometheus metrics endpoint ────────────────────────────────────────────
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── OTel FastAPI instrumentation ──────────────────────────────────────────
instrument_app(app)


@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok", "service": settings.service_name}
