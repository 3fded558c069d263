"""Main FastAPI application"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api import sync, webhook
from app.config import settings
from app.models.base import SessionLocal, init_db
from app.scheduler import scheduler
from app.security import WebhookSignatureMiddleware
from app.services.container import build_services

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info("Starting GitHub to Jira Issue Sync Service")
    init_db()
    services = build_services(settings, SessionLocal)
    app.state.services = services

    # Blocks until done: the first pass completes before any webhook is accepted.
    if settings.do_presync:
        try:
            scheduler.run_presync(services.sync_service)
        except Exception as e:
            logger.error(f"presync failed: {e}")
    else:
        logger.info("bypass presync")

    scheduler.start(services.sync_service, settings.reconcile_interval_minutes)
    logger.info(f"Listening for GitHub webhooks on {settings.host}:{settings.port}")
    yield
    # Shutdown
    logger.info("Stopping GitHub to Jira Issue Sync Service")
    scheduler.stop()


app = FastAPI(
    title="GitHub to Jira Issue Sync Service",
    description="Mirror GitHub issues and comments into Jira",
    version="1.0.0",
    lifespan=lifespan,
)

# Optional webhook signature check (recommended if exposed beyond private networks)
if settings.webhook_secret:
    app.add_middleware(
        WebhookSignatureMiddleware,
        secret=settings.webhook_secret,
        protect_paths={"/", "/webhook"},
    )

# Include API routers
app.include_router(sync.router)
app.include_router(webhook.router)


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "GitHub Jira Issue Sync"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level=settings.log_level.lower(),
    )
