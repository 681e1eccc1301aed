"""FastAPI application entry point"""
import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from sfgs_mailer.core.config import settings
from sfgs_mailer.core.logging import setup_logging
from sfgs_mailer.core.otel import (
    initialize_otel, setup_otel_logging, instrument_fastapi, instrument_httpx, instrument_sqlalchemy
)
from sfgs_mailer.db.session import engine, init_db
from sfgs_mailer.db import redis as redis_module

# Import routers
from sfgs_mailer.api import scheduled, queue, email
from sfgs_mailer.api import settings as settings_router

# Configure logging
setup_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown"""
    if initialize_otel():
        if setup_otel_logging():
            logger.info(f"OpenTelemetry fully initialized, exporting to {settings.OTEL_EXPORTER_OTLP_ENDPOINT}")
        else:
            logger.warning("OpenTelemetry traces initialized but logging setup failed")
    else:
        logger.info("OpenTelemetry not configured - running without distributed tracing")

    logger.info("Initializing database...")
    try:
        init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    # Redis only guards against overlapping runs; the queue works without it
    logger.info("Testing Redis connection...")
    if redis_module.ping():
        logger.info("Redis connection successful")
    else:
        logger.warning("Redis unavailable - scheduler runs will proceed without the distributed lock")

    instrument_sqlalchemy(engine)

    background_tasks = []
    if settings.BACKGROUND_SCHEDULER_ENABLED:
        logger.info("Starting scheduler tasks...")
        from sfgs_mailer.tasks.scheduler import email_queue_task, birthday_scheduler_task

        background_tasks.append(asyncio.create_task(email_queue_task()))
        background_tasks.append(asyncio.create_task(birthday_scheduler_task()))
        logger.info("Scheduler tasks started")
    else:
        logger.info("Background scheduler disabled - waiting for external cron triggers")

    yield

    # Shutdown
    logger.info("Shutting down...")
    for task in background_tasks:
        task.cancel()
    if background_tasks:
        await asyncio.gather(*background_tasks, return_exceptions=True)


# Create FastAPI app
app = FastAPI(
    title="SFGS Mailer",
    description="Rate-limited email dispatch for Sure Foundation Group of School",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
allowed_origins = [settings.FRONTEND_URL]
if settings.ENVIRONMENT == "development":
    allowed_origins.extend([
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173"
    ])

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(scheduled.router)
app.include_router(queue.router)
app.include_router(queue.logs_router)  # Separate router for /api/logs
app.include_router(settings_router.router)
app.include_router(email.router)

# Instrument FastAPI and outgoing attachment fetches
instrument_fastapi(app)
instrument_httpx()


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"}
    )


# Prometheus metrics endpoint
@app.get("/metrics")
def metrics_endpoint():
    """Prometheus metrics endpoint"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


# Health check endpoint
@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}
