"""FastAPI dependencies: process-wide storage and orchestrator singletons.

Tests swap these out through ``app.dependency_overrides``.
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import HTTPException

from kataru.config import get_settings
from kataru.database import get_session_factory
from kataru.services.errors import KataruError
from kataru.services.factory import build_orchestrator, build_storage
from kataru.services.orchestrator import JobOrchestrator
from kataru.services.storage import LocalObjectStorage


@lru_cache
def get_storage() -> LocalObjectStorage:
    return build_storage(get_settings())


@lru_cache
def get_orchestrator() -> JobOrchestrator:
    return build_orchestrator(
        get_settings(), get_session_factory(), storage=get_storage()
    )


def http_error(exc: KataruError) -> HTTPException:
    """Translate a domain error into the API's ``{"detail": {code, message}}`` body."""
    return HTTPException(status_code=exc.status_code, detail=exc.to_dict())
