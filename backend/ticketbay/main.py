"""
Ticketbay API - Main Application Entry Point

A multi-vertical booking backend (movies, buses, trains, flights, events,
tours) demonstrating:
- Time-boxed seat holds granted by conditional UPDATEs (no double booking)
- Capacity counters that can never go negative
- A wallet ledger whose balance can never go negative
- Bookings that are all-or-nothing across inventory, wallet and booking rows
- Post-commit notifications, Redis-cached catalog listings, structured logs
"""

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ticketbay.api.errors import register_exception_handlers
from ticketbay.api.middleware import RequestLoggingMiddleware
from ticketbay.api.router import api_router
from ticketbay.core.config import get_settings
from ticketbay.core.logging import get_logger, setup_logging
from ticketbay.core.metrics import metrics_endpoint
from ticketbay.db.session import async_session_factory
from ticketbay.services.cache_service import close_redis, get_cache_stats, get_redis
from ticketbay.services.inventory_service import sweep_expired_holds
from ticketbay.services.notification_service import dispatcher
from ticketbay.services.strategy_factory import get_strategy

settings = get_settings()
logger = get_logger(__name__)


async def hold_sweeper(interval_seconds: int) -> None:
    """Periodically return expired seat holds to available."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            async with async_session_factory() as session:
                await sweep_expired_holds(session)
                await session.commit()
        except Exception as e:
            logger.error("hold_sweep_failed", error=str(e))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        consistency_strategy=get_strategy().name,
    )

    if settings.ENVIRONMENT == "production" and not settings.PAYMENT_GATEWAY_SECRET:
        logger.warning("payment_gateway_unconfigured", message="All gateway payments will be rejected")

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    dispatcher.start(async_session_factory)

    sweeper = None
    if settings.HOLD_SWEEP_INTERVAL_SECONDS > 0:
        sweeper = asyncio.create_task(hold_sweeper(settings.HOLD_SWEEP_INTERVAL_SECONDS))

    yield

    if sweeper is not None:
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass
    await dispatcher.stop(async_session_factory)
    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Multi-vertical booking API with hold-based seat reservation and a wallet ledger",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)
register_exception_handlers(app)

app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
    }


@app.get("/metrics", include_in_schema=False)
def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
