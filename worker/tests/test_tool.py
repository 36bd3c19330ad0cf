from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Dict, List

import httpx
import pytest

from daysong_worker.app.models import SongSpec
from daysong_worker.app.settings import Settings
from daysong_worker.app.tool import (
    INVALID_REQUEST_MESSAGE,
    MODIFIED_PROMPT_MESSAGE,
    SUCCESS_MESSAGE,
    generate_song,
)
from daysong_worker.services.elevenlabs import ElevenLabsBackend
from daysong_worker.services.exceptions import PollTimeout
from daysong_worker.services.guards import AccountCreditGuard, DurationCeilingGuard
from daysong_worker.services.orchestrator import SongOrchestrator
from daysong_worker.services.poller import JobPoller
from daysong_worker.services.storage import LocalArtifactStore
from daysong_worker.services.suno import SunoBackend


def tool_payload(**overrides: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "title": "Small Wins",
        "mood": "hopeful",
        "genre": "indie folk",
        "bpmMin": 90,
        "bpmMax": 105,
        "chorusLine": "one step more",
        "lengthMs": 60_000,
        "forceInstrumental": False,
        "dayDescription": "Finally finished the garden fence.",
    }
    payload.update(overrides)
    return payload


def instant_poller(fetch_status) -> JobPoller:
    async def _no_sleep(seconds: float) -> None:
        return None

    return JobPoller(fetch_status, interval_seconds=0.0, max_attempts=3, sleep=_no_sleep)


class StaticGuard:
    async def check(self, spec: SongSpec) -> None:
        return None


@pytest.mark.asyncio
async def test_scenario_a_synchronous_buffer_backend(tmp_path: Path) -> None:
    requests: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, content=b"ID3-full-song", headers={"content-type": "audio/mpeg"})

    settings = Settings(
        backend="elevenlabs-compose",
        elevenlabs_api_key="xi-key",
        artifact_root=tmp_path,
    )
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    backend = ElevenLabsBackend(settings, client=client, streaming=False)
    orchestrator = SongOrchestrator(
        settings,
        backend,
        DurationCeilingGuard(settings.cost_per_second, settings.max_cost),
        LocalArtifactStore(tmp_path),
        client=client,
    )

    result = await generate_song(tool_payload(), orchestrator=orchestrator)

    assert result["success"] is True
    assert result["wasPromptModified"] is False
    assert result["message"] == SUCCESS_MESSAGE
    assert result["title"] == "Small Wins"
    assert result["durationMs"] == 60_000
    assert result["mood"] == "hopeful"
    assert result["genre"] == "indie folk"
    assert result["promptUsed"].startswith("Finally finished the garden fence.")
    assert result["audioUrl"].startswith("file://")
    stored = list((tmp_path / "audio").iterdir())
    assert len(stored) == 1
    assert stored[0].read_bytes() == b"ID3-full-song"
    assert len(requests) == 1


@pytest.mark.asyncio
async def test_scenario_b_async_job_backend(tmp_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/v1/generate":
            return httpx.Response(200, json={"code": 200, "msg": "success", "data": {"taskId": "t-1"}})
        if request.url.path == "/api/v1/generate/record-info":
            return httpx.Response(
                200,
                json={"status": "complete", "response": {"sunoData": [{"audioUrl": "https://x/a.mp3"}]}},
            )
        return httpx.Response(404)

    settings = Settings(backend="suno", suno_api_key="suno-key", artifact_root=tmp_path)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    orchestrator = SongOrchestrator(
        settings,
        SunoBackend(settings, client=client),
        StaticGuard(),
        LocalArtifactStore(tmp_path),
        poller_factory=instant_poller,
    )

    result = await generate_song(tool_payload(), orchestrator=orchestrator)

    assert result["success"] is True
    assert result["audioUrl"] == "https://x/a.mp3"
    assert result["wasPromptModified"] is False


@pytest.mark.asyncio
async def test_scenario_c_cost_ceiling(tmp_path: Path) -> None:
    submitted: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - must not be reached
        submitted.append(request)
        return httpx.Response(200, content=b"ID3")

    settings = Settings(elevenlabs_api_key="xi-key", artifact_root=tmp_path)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    orchestrator = SongOrchestrator(
        settings,
        ElevenLabsBackend(settings, client=client),
        DurationCeilingGuard(cost_per_second=10, max_allowed=800),
        LocalArtifactStore(tmp_path),
    )

    result = await generate_song(tool_payload(lengthMs=180_000), orchestrator=orchestrator)

    assert result["success"] is False
    assert "1800" in result["error"]
    assert "80 seconds" in result["error"]
    assert result["message"] != result["error"]
    assert set(result) == {"success", "error", "message"}
    assert submitted == []


@pytest.mark.asyncio
async def test_policy_substitution_message(tmp_path: Path) -> None:
    responses = [
        httpx.Response(
            400,
            json={
                "detail": {
                    "status": "bad_prompt",
                    "message": "artist reference",
                    "data": {"prompt_suggestion": "bright folk about small victories"},
                }
            },
        ),
        httpx.Response(200, content=b"ID3"),
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        return responses.pop(0)

    settings = Settings(elevenlabs_api_key="xi-key", artifact_root=tmp_path)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    orchestrator = SongOrchestrator(
        settings,
        ElevenLabsBackend(settings, client=client, streaming=False),
        StaticGuard(),
        LocalArtifactStore(tmp_path),
    )

    result = await generate_song(tool_payload(), orchestrator=orchestrator)

    assert result["success"] is True
    assert result["wasPromptModified"] is True
    assert result["promptUsed"] == "bright folk about small victories"
    assert result["message"] == MODIFIED_PROMPT_MESSAGE


@pytest.mark.asyncio
async def test_credit_guard_fails_open_end_to_end(tmp_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/v1/generate/credit":
            return httpx.Response(500, text="down")
        if request.url.path == "/api/v1/generate":
            return httpx.Response(200, json={"code": 200, "data": {"audioUrl": "https://x/now.mp3"}})
        return httpx.Response(404)

    settings = Settings(backend="suno", suno_api_key="suno-key", artifact_root=tmp_path)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    backend = SunoBackend(settings, client=client)
    orchestrator = SongOrchestrator(
        settings,
        backend,
        AccountCreditGuard(backend.fetch_remaining_credits, required_minimum=12),
        LocalArtifactStore(tmp_path),
    )

    result = await generate_song(tool_payload(), orchestrator=orchestrator)

    assert result["success"] is True
    assert result["audioUrl"] == "https://x/now.mp3"


@pytest.mark.asyncio
async def test_invalid_input_returns_failure_payload() -> None:
    result = await generate_song(tool_payload(bpmMin=150, bpmMax=100))

    assert result["success"] is False
    assert result["message"] == INVALID_REQUEST_MESSAGE
    assert "bpm" in result["error"]


@pytest.mark.asyncio
async def test_length_outside_tool_bounds_rejected() -> None:
    result = await generate_song(tool_payload(lengthMs=10_000))
    assert result["success"] is False
    assert result["message"] == INVALID_REQUEST_MESSAGE


@pytest.mark.asyncio
async def test_missing_credential_returns_failure_payload(tmp_path: Path) -> None:
    settings = Settings(backend="suno", suno_api_key=None, artifact_root=tmp_path)

    result = await generate_song(tool_payload(), settings=settings)

    assert result["success"] is False
    assert "SUNO_API_KEY" in result["error"]


class ExplodingOrchestrator:
    def __init__(self, exc: BaseException) -> None:
        self._exc = exc

    async def generate(self, spec: SongSpec) -> Any:
        raise self._exc


@pytest.mark.asyncio
async def test_poll_timeout_is_distinguishable() -> None:
    result = await generate_song(
        tool_payload(),
        orchestrator=ExplodingOrchestrator(PollTimeout("t-9", 60)),  # type: ignore[arg-type]
    )
    assert result["success"] is False
    assert "timed out" in result["error"]
    assert result["message"] == PollTimeout.user_message


@pytest.mark.asyncio
async def test_unexpected_errors_never_escape() -> None:
    result = await generate_song(
        tool_payload(),
        orchestrator=ExplodingOrchestrator(RuntimeError("disk full")),  # type: ignore[arg-type]
    )
    assert result == {
        "success": False,
        "error": "disk full",
        "message": "Failed to generate your song. Please try again.",
    }


@pytest.mark.asyncio
async def test_cancellation_is_not_mapped() -> None:
    result_task = asyncio.ensure_future(
        generate_song(
            tool_payload(),
            orchestrator=ExplodingOrchestrator(asyncio.CancelledError()),  # type: ignore[arg-type]
        )
    )
    with pytest.raises(asyncio.CancelledError):
        await result_task
