"""
Observability setup:
  - OpenTelemetry distributed tracing → Jaeger (via OTLP gRPC)
  - Prometheus metrics for scoring, caching, tiering and pinning

Both are initialised once at startup and injected into FastAPI via middleware.
"""
import logging

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from prometheus_client import Counter, Histogram

from taste_api.config import settings

logger = logging.getLogger(__name__)

# ─────────────────────────── Prometheus Metrics ───────────────────────────
TSS_COMPUTATIONS_TOTAL = Counter(
    "tss_computations_total",
    "Pairwise taste similarity computations (cache misses included)",
    ["category"],
)

TSS_CACHE_LOOKUPS_TOTAL = Counter(
    "tss_cache_lookups_total",
    "Pair score cache lookups",
    ["result"],  # 'hit' | 'miss' | 'error'
)

NOTE_STORE_ERRORS_TOTAL = Counter(
    "note_store_errors_total",
    "Failed note store fetches (surfaced as DataUnavailable)",
)

TIER_ASSIGNMENTS_TOTAL = Counter(
    "tier_assignments_total",
    "Notes classified per social tier",
    ["tier"],
)

SOCIAL_RANK_LATENCY = Histogram(
    "social_rank_latency_seconds",
    "Time spent classifying one feed/search candidate list",
    buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0],
)

PIN_REJECTIONS_TOTAL = Counter(
    "pin_rejections_total",
    "Gourmet Friend pin attempts rejected for insufficient taste overlap",
    ["category"],
)


# ─────────────────────────── OpenTelemetry Setup ──────────────────────────
def setup_tracing() -> None:
    """Configure the global OTel TracerProvider with OTLP/Jaeger export."""
    if not settings.otel_enabled:
        logger.info("OTel tracing disabled")
        return

    resource = Resource.create(
        {
            "service.name": settings.service_name,
            "deployment.environment": settings.environment,
        }
    )

    provider = TracerProvider(resource=resource)

    try:
        otlp_exporter = OTLPSpanExporter(
            endpoint=settings.otel_exporter_otlp_endpoint,
            insecure=True,
        )
        provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
        logger.info(
            "OTel tracing configured → %s", settings.otel_exporter_otlp_endpoint
        )
    except Exception as exc:
        logger.warning("Could not connect to OTLP exporter: %s — traces disabled", exc)

    trace.set_tracer_provider(provider)

    # Auto-instrument popular libraries so their spans appear in traces
    HTTPXClientInstrumentor().instrument()
    RedisInstrumentor().instrument()
    SQLAlchemyInstrumentor().instrument()


def instrument_app(app) -> None:  # noqa: ANN001
    """Call after app is created to add FastAPI request spans."""
    if settings.otel_enabled:
        FastAPIInstrumentor.instrument_app(app)
