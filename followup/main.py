# followup/main.py
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from followup.api.auth import require_cron_secret
from followup.core.config import settings
from followup.core.dependencies import cleanup_resources
from followup.core.exceptions import FollowUpException, NotFoundError
from followup.core.logging import get_logger

logger = get_logger(__name__)

# ===================
# Lifespan Management
# ===================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown."""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Store backend: {settings.STORE_BACKEND}")
    yield
    cleanup_resources()
    logger.info("Shutting down...")

# ===================
# Application Setup
# ===================

app = FastAPI(
    title=settings.APP_NAME,
    description="Expert and client reminder engine for body-shop claim files",
    version=settings.APP_VERSION,
    lifespan=lifespan
)

# ===================
# CORS Middleware
# ===================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ===================
# Error Handlers
# ===================

@app.exception_handler(FollowUpException)
async def follow_up_exception_handler(request: Request, exc: FollowUpException):
    status_code = 404 if isinstance(exc, NotFoundError) else 500
    logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=status_code, content={"success": False, **exc.to_dict()})

# ===================
# Include Routers
# ===================

from followup.api.v1.cron import router as cron_router
from followup.api.v1.reminders import router as reminders_router
from followup.api.v1.sites import router as sites_router

protected = [Depends(require_cron_secret)]

app.include_router(cron_router, prefix="/api/cron", tags=["cron"])
app.include_router(reminders_router, prefix="/api/v1/reminders", tags=["reminders"], dependencies=protected)
app.include_router(sites_router, prefix="/api/v1/sites", tags=["sites"], dependencies=protected)

# ===================
# Root Endpoints
# ===================

@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
        "endpoints": {
            "cron": "/api/cron/reminders",
            "reminders": "/api/v1/reminders",
            "sites": "/api/v1/sites"
        }
    }

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.APP_VERSION}
