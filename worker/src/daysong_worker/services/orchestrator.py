"""High-level song orchestrator coordinating guard, backend, poller and storage."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Union

import httpx
from loguru import logger

from ..app.models import SongResult, SongSpec
from ..app.settings import Settings
from .elevenlabs import ElevenLabsBackend
from .exceptions import ConfigurationError, GenerationFailure
from .guards import Guard, create_guard
from .http_utils import download_audio
from .poller import JobPoller
from .retry import submit_with_recovery
from .storage import ArtifactStore, LocalArtifactStore, song_filename
from .suno import SunoBackend
from .types import AudioPayload, ImmediateResult, JobHandle

CONTENT_TYPE_EXTENSIONS: Dict[str, str] = {
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/ogg": "ogg",
    "audio/opus": "opus",
}


class MusicBackend(Protocol):
    name: str

    def build_prompt(self, spec: SongSpec) -> str: ...

    async def submit(self, prompt: str, spec: SongSpec) -> Any: ...


PollerFactory = Callable[[Callable[[str], Awaitable[Any]]], JobPoller]


class SongOrchestrator:
    """Runs one song request from guard check to stored audio."""

    def __init__(
        self,
        settings: Settings,
        backend: MusicBackend,
        guard: Guard,
        store: ArtifactStore,
        *,
        client: Optional[httpx.AsyncClient] = None,
        poller_factory: Optional[PollerFactory] = None,
    ) -> None:
        self._settings = settings
        self._backend = backend
        self._guard = guard
        self._store = store
        self._client = client
        self._poller_factory = poller_factory or self._default_poller

    @property
    def backend(self) -> MusicBackend:
        return self._backend

    def _default_poller(self, fetch_status: Callable[[str], Awaitable[Any]]) -> JobPoller:
        return JobPoller(
            fetch_status,
            interval_seconds=self._settings.poll_interval_seconds,
            max_attempts=self._settings.poll_max_attempts,
        )

    async def generate(self, spec: SongSpec) -> SongResult:
        await self._guard.check(spec)

        prompt = self._backend.build_prompt(spec)
        submission = await submit_with_recovery(
            self._backend,
            prompt,
            spec,
            max_attempts=self._settings.max_submit_attempts,
        )

        outcome = submission.outcome
        if isinstance(outcome, AudioPayload):
            audio_url = await self._persist(outcome.data, spec, outcome.content_type)
        elif isinstance(outcome, JobHandle):
            audio_url = await self._resolve_remote(await self._poll(outcome), spec)
        elif isinstance(outcome, ImmediateResult):
            audio_url = await self._resolve_remote(outcome.url, spec)
        else:
            raise GenerationFailure(f"unsupported submission outcome: {outcome!r}")

        logger.info(
            "Song '{}' ready via {} (prompt modified: {})",
            spec.title,
            self._backend.name,
            submission.was_prompt_modified,
        )
        return SongResult(
            audio_url=audio_url,
            title=spec.title,
            prompt_used=submission.prompt_used,
            duration_ms=spec.length_ms,
            mood=spec.mood,
            genre=spec.genre,
            was_prompt_modified=submission.was_prompt_modified,
        )

    async def _poll(self, handle: JobHandle) -> str:
        fetch_status = getattr(self._backend, "fetch_job_status", None)
        if fetch_status is None:
            raise GenerationFailure(f"backend {self._backend.name} returned a job but cannot poll it")
        poller = self._poller_factory(fetch_status)
        return await poller.poll(handle)

    async def _persist(self, data: bytes, spec: SongSpec, content_type: str) -> str:
        media_type = content_type.split(";", 1)[0].strip().lower()
        extension = CONTENT_TYPE_EXTENSIONS.get(media_type, "mp3")
        return await self._store.store(data, song_filename(spec.title, extension=extension))

    async def _resolve_remote(self, url: str, spec: SongSpec) -> str:
        if not self._settings.mirror_remote_audio:
            return url
        data = await download_audio(
            url,
            client=self._client,
            timeout=self._settings.request_timeout_seconds,
        )
        return await self._persist(data, spec, "audio/mpeg")


def create_backend(
    settings: Settings,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> Union[ElevenLabsBackend, SunoBackend]:
    if settings.backend == "elevenlabs":
        return ElevenLabsBackend(settings, client=client, streaming=True)
    if settings.backend == "elevenlabs-compose":
        return ElevenLabsBackend(settings, client=client, streaming=False)
    if settings.backend == "suno":
        return SunoBackend(settings, client=client)
    raise ConfigurationError(f"unknown backend '{settings.backend}'")


def create_orchestrator(
    settings: Settings,
    *,
    store: Optional[ArtifactStore] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> SongOrchestrator:
    backend = create_backend(settings, client=client)
    guard = create_guard(backend.name, settings, backend)
    if store is None:
        store = LocalArtifactStore(settings.artifact_root, base_url=settings.public_base_url)
    return SongOrchestrator(settings, backend, guard, store, client=client)
