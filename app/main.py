"""
Main FastAPI application.

Entity resolution and news intelligence service for the private markets CRM.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import get_settings
from app.core.database import create_tables
from app.api.v1 import entities, news
from app.news.pipeline import get_pipeline

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Runs on startup and shutdown.
    """
    # Startup
    logger.info("Starting CRM News Intelligence Service")
    logger.info(f"Log level: {settings.log_level}")

    try:
        create_tables()
        logger.info("Database tables ready")
    except Exception as e:
        logger.error(f"Failed to create tables: {e}")
        raise

    pipeline = get_pipeline()
    scheduler_started = False
    if not settings.news_scheduler_enabled:
        logger.info("News scheduler disabled by configuration")
    elif not pipeline.ai_enabled:
        logger.warning("News scheduler not started: no LLM API key configured")
    else:
        await pipeline.scheduler.start()
        scheduler_started = True

    yield

    # Shutdown
    logger.info("Shutting down")
    if scheduler_started:
        await pipeline.scheduler.shutdown()


# Create FastAPI app
app = FastAPI(
    title="CRM News Intelligence Service",
    description="Entity resolution, search and AI news processing for private markets CRM data",
    version="0.1.0",
    lifespan=lifespan
)

# CORS middleware (configure as needed)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(entities.router, prefix="/api/v1")
app.include_router(news.router, prefix="/api/v1")


@app.get("/")
def root():
    """Root endpoint with service info."""
    return {
        "service": "CRM News Intelligence Service",
        "version": "0.1.0",
        "entity_kinds": ["gp", "lp", "fund", "portfolio_company", "contact", "service_provider"],
        "docs": "/docs"
    }


@app.get("/health")
def health_check():
    """
    Health check endpoint.

    Returns status of the service, database connectivity and scheduler.
    """
    from app.core.database import get_engine
    from sqlalchemy import text

    health_status = {
        "status": "healthy",
        "service": "running",
        "database": "unknown",
        "news_scheduler": "running" if get_pipeline().scheduler.running else "stopped",
    }

    # Check database connectivity
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        health_status["database"] = "connected"
    except Exception as e:
        health_status["status"] = "degraded"
        health_status["database"] = f"error: {str(e)}"
        logger.warning(f"Database health check failed: {e}")

    return health_status
