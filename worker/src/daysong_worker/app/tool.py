"""Inbound boundary used by the conversational agent to request a song."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from loguru import logger
from pydantic import ValidationError

from ..services.exceptions import GenerationFailure
from ..services.orchestrator import SongOrchestrator, create_orchestrator
from ..services.storage import ArtifactStore
from .models import SongToolFailure, SongToolInput, SongToolSuccess
from .settings import Settings, get_settings

SUCCESS_MESSAGE = "Your song is ready!"
MODIFIED_PROMPT_MESSAGE = (
    "Your song is ready! (Note: Some style references were generalized to ensure originality)"
)
INVALID_REQUEST_MESSAGE = "The song details were incomplete or invalid."
UNEXPECTED_ERROR_MESSAGE = "Failed to generate your song. Please try again."


def _failure(error: str, message: str) -> Dict[str, Any]:
    return SongToolFailure(error=error, message=message).model_dump(by_alias=True)


async def generate_song(
    payload: Mapping[str, Any],
    *,
    settings: Optional[Settings] = None,
    orchestrator: Optional[SongOrchestrator] = None,
    store: Optional[ArtifactStore] = None,
) -> Dict[str, Any]:
    """Generate a song and return the tagged success/failure payload.

    Every failure is mapped onto ``{"success": False, "error", "message"}``;
    only task cancellation escapes.
    """
    try:
        data = dict(payload) if isinstance(payload, Mapping) else payload
        spec = SongToolInput.model_validate(data).to_spec()
    except ValidationError as exc:
        logger.warning("Rejected song tool input: {}", exc)
        return _failure(f"invalid song request: {exc}", INVALID_REQUEST_MESSAGE)

    try:
        if orchestrator is None:
            orchestrator = create_orchestrator(settings or get_settings(), store=store)
        result = await orchestrator.generate(spec)
    except GenerationFailure as exc:
        logger.error("song '{title}' failed ({kind}): {exc}", title=spec.title, kind=exc.kind, exc=exc)
        return _failure(str(exc), exc.user_message)
    except Exception as exc:  # noqa: BLE001
        logger.exception("unexpected error generating song '{}'", spec.title)
        return _failure(str(exc) or type(exc).__name__, UNEXPECTED_ERROR_MESSAGE)

    message = MODIFIED_PROMPT_MESSAGE if result.was_prompt_modified else SUCCESS_MESSAGE
    return SongToolSuccess.from_result(result, message).model_dump(by_alias=True)
