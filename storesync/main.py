"""FastAPI application entry point."""
import logging
import logging.config
from contextlib import asynccontextmanager

from fastapi import FastAPI

from storesync.api.routes import router
from storesync.config import settings
from storesync.database import init_db
from storesync.middleware.rate_limit import RateLimitMiddleware
from storesync.pipeline.scheduler import build_fleet_scheduler

# Configure structured logging at startup
logging.config.dictConfig({
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            "datefmt": "%Y-%m-%dT%H:%M:%S",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
        },
    },
    "loggers": {
        # APScheduler logs every job execution at INFO
        "apscheduler": {"level": "WARNING"},
    },
    "root": {
        "level": "INFO",
        "handlers": ["console"],
    },
})

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("storesync starting up — initializing database tables")
    try:
        init_db()
        logger.info("Database ready")
    except Exception as e:
        # Don't block startup: server must bind so /health passes
        logger.warning("Database init failed (server will start anyway): %s", e)

    scheduler = None
    if settings.scheduler_enabled:
        scheduler = build_fleet_scheduler()
        scheduler.start()
    app.state.scheduler = scheduler
    yield
    if scheduler is not None:
        scheduler.stop()
    logger.info("storesync shutting down")


app = FastAPI(
    title="storesync",
    description="Multi-tenant Shopify sync engine — customers, orders and products per tenant, hourly and on demand.",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting: IP-based and user-based (X-API-Key)
app.add_middleware(
    RateLimitMiddleware,
    requests_per_minute_ip=settings.rate_limit_requests_per_minute_ip,
    requests_per_minute_user=settings.rate_limit_requests_per_minute_user,
    syncs_per_minute=settings.rate_limit_syncs_per_minute,
    exempt_paths=["/health"],
)

app.include_router(router, prefix="/api", tags=["api"])


@app.get("/health")
def health():
    scheduler = getattr(app.state, "scheduler", None)
    return {"status": "ok", "scheduler_running": bool(scheduler and scheduler.running)}
