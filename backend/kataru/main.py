"""Kataru: FastAPI application entry point.

Mounts the API routes, configures CORS, and serves the media volume
(uploaded images and materialized videos) as static files.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from kataru import __version__
from kataru.api.router import api_router
from kataru.config import get_settings
from kataru.database import close_db, init_db

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: optional table creation on startup, pool disposal on shutdown."""
    logger.info("Kataru starting up...")
    logger.info("D-ID: %s | xAI: %s", settings.D_ID_API_URL, settings.XAI_API_URL)

    os.makedirs(settings.MEDIA_VOLUME, exist_ok=True)

    if settings.AUTO_CREATE_TABLES:
        await init_db()
    else:
        logger.info("Skipping init_db (schema managed by Alembic)")

    yield

    await close_db()
    logger.info("Kataru shut down")


app = FastAPI(
    title="Kataru API",
    description="Talking-avatar and promo-scene video generation jobs",
    version=__version__,
    lifespan=lifespan,
    redirect_slashes=False,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount API routes
app.include_router(api_router)

# Mount media static files (buckets are sub-directories)
os.makedirs(settings.MEDIA_VOLUME, exist_ok=True)
app.mount("/media", StaticFiles(directory=settings.MEDIA_VOLUME), name="media")


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"service": settings.APP_NAME, "status": "running"}


@app.get("/health")
async def health():
    """Detailed health check."""
    return {
        "status": "healthy",
        "lipsync_configured": bool(settings.D_ID_API_KEY),
        "scene_generation_configured": bool(settings.XAI_API_KEY),
    }
