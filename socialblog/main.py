"""
Social Blog API entry point.

Startup sequence:
  1. Configure OTel tracing (→ Jaeger via OTLP)
  2. Connect to the database (lazily shared engine) and create tables
  3. Connect to Redis (rendered-view cache)
  4. Expose Prometheus /metrics endpoint
"""
import logging

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from socialblog.clients.redis_client import close_redis, init_redis
from socialblog.config import settings
from socialblog.database import dispose_engine, init_db
from socialblog.exceptions import BlogError
from socialblog.routers import follow_status, posts, users
from socialblog.telemetry import instrument_app, setup_tracing

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)

if settings.tracing_enabled:
    # Set up tracing before the app is created so all imports are instrumented
    setup_tracing()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup and shutdown of all external connections."""
    logger.info("Starting Social Blog API (env=%s)", settings.environment)

    await init_db()
    try:
        await init_redis()
    except Exception as exc:
        # Views are then simply never cached
        logger.warning("Redis unavailable (%s); view cache disabled", exc)
        await close_redis()

    logger.info("All services connected. API ready.")
    yield

    logger.info("Shutting down...")
    await close_redis()
    await dispose_engine()


app = FastAPI(
    title="Social Blog API",
    description="Posts, comments, likes and a follow graph for a social blog.",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(BlogError)
async def blog_error_handler(request: Request, exc: BlogError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


# ── Routers ────────────────────────────────────────────────────────────────
app.include_router(users.router, prefix="/users", tags=["Users"])
app.include_router(posts.router, prefix="/posts", tags=["Posts"])
app.include_router(follow_status.router, prefix="/api", tags=["Follow status"])

# ── Prometheus metrics endpoint ────────────────────────────────────────────
# Mounted at /metrics, scraped by Prometheus
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── OTel FastAPI instrumentation ──────────────────────────────────────────
if settings.tracing_enabled:
    instrument_app(app)


@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok", "service": settings.service_name}
