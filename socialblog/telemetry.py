"""
Observability setup:
  - OpenTelemetry distributed tracing → Jaeger (via OTLP gRPC)
  - Prometheus metrics for writes, graph changes and the view cache

Both are initialised once at startup and injected into FastAPI via middleware.
"""
import logging

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import Counter

from socialblog.config import settings

logger = logging.getLogger(__name__)

# ─────────────────────────── Prometheus Metrics ───────────────────────────
POSTS_CREATED_TOTAL = Counter(
    "posts_created_total",
    "Total number of posts created",
)

POSTS_DELETED_TOTAL = Counter(
    "posts_deleted_total",
    "Total number of posts deleted by their author",
)

FOLLOW_EVENTS_TOTAL = Counter(
    "follow_events_total",
    "Follow graph changes",
    ["action"],  # 'follow' or 'unfollow'
)

LIKE_EVENTS_TOTAL = Counter(
    "like_events_total",
    "Like / unlike requests (including no-op repeats)",
    ["action"],  # 'like' or 'unlike'
)

COMMENTS_CREATED_TOTAL = Counter(
    "comments_created_total",
    "Total number of comments added",
)

REPOSITORY_ERRORS_TOTAL = Counter(
    "repository_errors_total",
    "Storage failures surfaced by the repositories",
    ["code"],
)

INVALIDATION_FAILURES_TOTAL = Counter(
    "view_invalidation_failures_total",
    "View invalidations that could not reach the cache",
)

VIEW_CACHE_REQUESTS_TOTAL = Counter(
    "view_cache_requests_total",
    "Rendered-view cache lookups",
    ["result"],  # 'hit' or 'miss'
)


# ─────────────────────────── OpenTelemetry Setup ──────────────────────────
def setup_tracing() -> None:
    """Configure the global OTel TracerProvider with OTLP/Jaeger export."""
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
        logger.warning("Could not connect to OTLP exporter: %s; traces disabled", exc)

    trace.set_tracer_provider(provider)

    # Auto-instrument the storage clients so their spans appear in traces
    RedisInstrumentor().instrument()
    SQLAlchemyInstrumentor().instrument()


def instrument_app(app) -> None:  # noqa: ANN001
    """Call after app is created to add FastAPI request spans."""
    FastAPIInstrumentor.instrument_app(app)
