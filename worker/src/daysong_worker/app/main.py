from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from loguru import logger

from ..services.storage import LocalArtifactStore
from .routes import backend_status, router
from .settings import Settings, get_settings


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure FastAPI instance."""
    settings = settings or get_settings()
    settings.ensure_directories()

    @asynccontextmanager
    async def _lifespan(_: FastAPI) -> AsyncIterator[None]:
        status = backend_status(settings)
        if status.ready:
            logger.info("Worker ready with backend {}", status.name)
        else:
            logger.warning("Backend {} not ready: {}", status.name, status.error)
        yield

    app = FastAPI(title="Daysong Worker", version="0.1.0", lifespan=_lifespan)
    app.state.settings = settings
    app.state.artifact_store = LocalArtifactStore(
        settings.artifact_root,
        base_url=settings.public_base_url,
    )
    app.state.orchestrator = None
    app.include_router(router)
    return app
