"""Master API router: mounts all sub-routers."""

from __future__ import annotations

from fastapi import APIRouter

from kataru.api.jobs import router as jobs_router
from kataru.api.maintenance import router as maintenance_router
from kataru.api.uploads import router as uploads_router
from kataru.api.voices import router as voices_router

api_router = APIRouter(prefix="/api", redirect_slashes=False)

api_router.include_router(jobs_router, prefix="/jobs", tags=["Jobs"])
api_router.include_router(voices_router, prefix="/voices", tags=["Voices"])
api_router.include_router(uploads_router, prefix="/uploads", tags=["Uploads"])
api_router.include_router(maintenance_router, prefix="/maintenance", tags=["Maintenance"])
