"""
E-Manager AI - Main Application Entry Point

FastAPI application serving the AI assistant endpoints.
"""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from .database import init_database, close_database, get_database
from .integrations.meet import get_meet_integration
from .utils.background_tasks import drain_background_tasks
from .utils.datetime_utils import utc_now
from .web.routes import router as api_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown."""
    logger.info("Starting E-Manager AI...")

    try:
        if await init_database():
            logger.info("PostgreSQL database initialized")
        else:
            logger.warning("PostgreSQL not configured or failed to initialize")
    except Exception as e:
        logger.warning(f"PostgreSQL init failed: {e}")

    # Meet links are optional; meetings fall back to a placeholder link
    meet = get_meet_integration()
    if meet.is_configured:
        try:
            await meet.initialize()
            logger.info("Google Meet initialized")
        except Exception as e:
            logger.warning(f"Google Meet init failed: {e}")

    yield

    logger.info("Shutting down...")

    # Let pending audit and insight writes finish before the pool goes away
    try:
        await drain_background_tasks()
    except Exception as e:
        logger.warning(f"Failed to drain background tasks: {e}")

    try:
        await close_database()
    except Exception as e:
        logger.warning(f"Failed to close database during shutdown: {e}")

    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.app_name,
    description="AI assistant for team leaders: chat actions, insights, reports",
    version=settings.app_version,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/")
async def root():
    """Root endpoint - health check."""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version
    }


@app.get("/health")
async def health_check():
    """Database reachability plus which optional integrations are configured."""
    database = await get_database().health_check()

    return {
        "status": "healthy" if database["status"] != "unhealthy" else "degraded",
        "service": settings.app_name,
        "version": settings.app_version,
        "timestamp": utc_now().isoformat(),
        "database": database,
        "integrations": {
            "deepseek": bool(settings.deepseek_api_key),
            "google_meet": get_meet_integration().is_configured,
        },
    }


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"message": "Error processing your request"}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
