"""FastAPI application entry point"""
import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from mailflow.core import otel
from mailflow.core.config import settings
from mailflow.core.logging import setup_logging
from mailflow.db import redis as cache
from mailflow.db import session

# Import routers
from mailflow.api import email, monitoring

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    # Startup
    otel_initialized = otel.initialize_otel()
    if otel_initialized:
        if otel.setup_otel_logging():
            logger.info(f"OpenTelemetry fully initialized, exporting to {settings.OTEL_EXPORTER_OTLP_ENDPOINT}")
        else:
            logger.warning("OpenTelemetry metrics/traces initialized but logging setup failed")
    else:
        logger.info("OpenTelemetry not configured - running without distributed tracing")

    logger.info("Initializing database...")
    try:
        session.init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    if otel_initialized:
        otel.instrument_engine(session.get_engine())

    logger.info("Testing Redis connection...")
    if cache.ping():
        logger.info("Redis connection successful")
    else:
        # Dedup and rate limiting fail open; keep serving
        logger.warning("Redis cache unreachable - dedup and rate limiting are disabled until it recovers")

    worker = None
    if settings.START_QUEUE_WORKER:
        from mailflow.tasks.queue_worker import queue_worker_task
        worker = asyncio.create_task(queue_worker_task())
        logger.info("Email queue worker started")

    yield

    # Shutdown
    logger.info("Shutting down...")
    if worker is not None:
        worker.cancel()
        try:
            await worker
        except asyncio.CancelledError:
            pass


# Create FastAPI app
app = FastAPI(
    title="Mailflow",
    description="Event-driven transactional email pipeline",
    version="1.0.0",
    lifespan=lifespan
)

# Instrument FastAPI with OpenTelemetry
if settings.OTEL_EXPORTER_OTLP_ENDPOINT:
    otel.instrument_app(app)

# Include routers
app.include_router(email.router)
app.include_router(monitoring.router)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal server error"}
    )
