from pathlib import Path

from fastapi.testclient import TestClient

from daysong_worker.app.main import create_app
from daysong_worker.app.models import SongResult, SongSpec
from daysong_worker.app.settings import Settings


def test_create_app(tmp_path: Path) -> None:
    app = create_app(Settings(artifact_root=tmp_path))
    assert app.title == "Daysong Worker"


def test_health_endpoint_reports_missing_credential(tmp_path: Path) -> None:
    settings = Settings(artifact_root=tmp_path, backend="suno", suno_api_key=None)
    app = create_app(settings)
    with TestClient(app) as client:
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["backend"] == "suno"
        assert body["ready"] is False
        assert "SUNO_API_KEY" in body["backend_status"]["error"]


def test_health_endpoint_ready_with_credential(tmp_path: Path) -> None:
    settings = Settings(artifact_root=tmp_path, elevenlabs_api_key="xi-key")
    with TestClient(create_app(settings)) as client:
        body = client.get("/health").json()
        assert body["ready"] is True
        assert body["backend_status"]["name"] == "elevenlabs"


def test_songs_endpoint_returns_failure_payload(tmp_path: Path) -> None:
    settings = Settings(artifact_root=tmp_path, elevenlabs_api_key=None)
    with TestClient(create_app(settings)) as client:
        response = client.post("/songs", json={"title": "Only a title"})
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert set(body) == {"success", "error", "message"}


class StubOrchestrator:
    async def generate(self, spec: SongSpec) -> SongResult:
        return SongResult(
            audio_url="https://cdn.test/song.mp3",
            title=spec.title,
            prompt_used="prompt",
            duration_ms=spec.length_ms,
            mood=spec.mood,
            genre=spec.genre,
        )


def test_songs_endpoint_success(tmp_path: Path) -> None:
    app = create_app(Settings(artifact_root=tmp_path))
    app.state.orchestrator = StubOrchestrator()
    payload = {
        "title": "Quiet Sunday",
        "mood": "peaceful",
        "genre": "acoustic",
        "bpmMin": 70,
        "bpmMax": 80,
        "dayDescription": "Read a book in the park.",
    }
    with TestClient(app) as client:
        body = client.post("/songs", json=payload).json()
    assert body["success"] is True
    assert body["audioUrl"] == "https://cdn.test/song.mp3"
    assert body["durationMs"] == 60_000
    assert body["message"] == "Your song is ready!"
