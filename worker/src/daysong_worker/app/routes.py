from __future__ import annotations

from typing import Any, Dict, Optional, cast

from fastapi import APIRouter, Body, Request

from ..services.exceptions import ConfigurationError
from ..services.orchestrator import SongOrchestrator, create_backend
from ..services.storage import ArtifactStore
from ..services.types import BackendStatus
from .settings import Settings
from .tool import generate_song

router = APIRouter()


def get_settings_state(request: Request) -> Settings:
    return cast(Settings, request.app.state.settings)


def get_orchestrator(request: Request) -> Optional[SongOrchestrator]:
    return cast(Optional[SongOrchestrator], getattr(request.app.state, "orchestrator", None))


def backend_status(settings: Settings) -> BackendStatus:
    try:
        backend = create_backend(settings)
    except ConfigurationError as exc:
        return BackendStatus(name=settings.backend, ready=False, error=str(exc))
    return backend.status()


@router.get("/health")
async def health(request: Request) -> dict[str, object]:
    settings = get_settings_state(request)
    status = backend_status(settings)
    return {
        "status": "ok",
        "backend": settings.backend,
        "artifact_root": str(settings.artifact_root),
        "backend_status": status.as_dict(),
        "ready": status.ready,
    }


@router.post("/songs")
async def create_song(request: Request, payload: Any = Body(...)) -> Dict[str, Any]:
    settings = get_settings_state(request)
    store = cast(Optional[ArtifactStore], getattr(request.app.state, "artifact_store", None))
    if not isinstance(payload, dict):
        payload = {}
    return await generate_song(
        payload,
        settings=settings,
        orchestrator=get_orchestrator(request),
        store=store,
    )
