"""
Bulletin Feed API — entry point.

Startup sequence:
  1. Configure OTel tracing (→ Jaeger via OTLP)
  2. Initialise DB connection pool (TiDB)
  3. Create tables if not present
  4. Connect to Redis (interest profiles)
  5. Start Kafka producer (interaction events), when enabled
  6. Expose Prometheus /metrics endpoint
"""
import logging

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError

from bulletin_feed.config import settings
from bulletin_feed.database import init_db
from bulletin_feed.telemetry import setup_tracing, instrument_app
from bulletin_feed.clients.kafka_producer import init_kafka, stop_kafka
from bulletin_feed.clients.redis_client import close_redis, init_redis
from bulletin_feed.routers import feed, interactions

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)

# Set up tracing before the app is created so all imports are instrumented
setup_tracing()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup and shutdown of all external connections."""
    logger.info("Starting Bulletin Feed API (env=%s)", settings.environment)

    await init_db()
    await init_redis()
    if settings.kafka_enabled:
        await init_kafka()

    logger.info("All services connected. API ready.")
    yield

    logger.info("Shutting down...")
    await stop_kafka()
    await close_redis()


app = FastAPI(
    title="Bulletin Feed API",
    description=(
        "Feed ranking for bulletins: interest, friend and trending candidate "
        "sources blended into a personalized For You feed."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

# ── Routers ────────────────────────────────────────────────────────────────
app.include_router(feed.router, prefix="/feed", tags=["Feed"])
app.include_router(interactions.router, prefix="/interactions", tags=["Interactions"])


# ── Store failures ─────────────────────────────────────────────────────────
# A failed read aborts the whole request: no partial feeds, no retries.
@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Content store unavailable"})


@app.exception_handler(RedisError)
async def redis_error_handler(request: Request, exc: RedisError):
    logger.error("Redis error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Interest profile store unavailable"})


# ── Prometheus metrics endpoint ────────────────────────────────────────────
# Mounted at /metrics — scraped by Prometheus
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── OTel FastAPI instrumentation ──────────────────────────────────────────
instrument_app(app)


@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok", "service": settings.service_name}
