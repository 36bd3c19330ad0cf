from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BackendName = Literal["elevenlabs", "elevenlabs-compose", "suno"]
GuardPolicy = Literal["duration", "credits"]


def _default_artifact_root() -> Path:
    return Path.home() / "Music" / "Daysong"


class Settings(BaseSettings):
    """Runtime configuration for the Daysong worker process."""

    model_config = SettingsConfigDict(
        env_prefix="DAYSONG_",
        env_nested_delimiter="__",
        extra="ignore",
        populate_by_name=True,
    )

    artifact_root: Path = Field(default_factory=_default_artifact_root)
    public_base_url: Optional[str] = Field(
        default=None,
        description="Base URL the stored artifacts are served from (file URIs when unset).",
    )
    backend: BackendName = Field(
        default="elevenlabs",
        description="Music generation backend used for new songs.",
    )
    elevenlabs_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("DAYSONG_ELEVENLABS_API_KEY", "ELEVENLABS_API_KEY"),
    )
    suno_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("DAYSONG_SUNO_API_KEY", "SUNO_API_KEY"),
    )
    elevenlabs_base_url: str = Field(default="https://api.elevenlabs.io", max_length=256)
    suno_base_url: str = Field(default="https://api.sunoapi.org", max_length=256)
    elevenlabs_output_format: str = Field(
        default="mp3_44100_128",
        max_length=32,
        description="Audio container/codec requested from ElevenLabs.",
    )
    suno_model: str = Field(default="V4_5ALL", max_length=32)
    suno_callback_url: str = Field(
        default="https://localhost:3000/api/callback",
        description="Callback URL Suno requires on submission; results are polled instead.",
    )
    request_timeout_seconds: float = Field(default=300.0, gt=0.0, le=900.0)
    poll_interval_seconds: float = Field(default=5.0, ge=0.0, le=60.0)
    poll_max_attempts: int = Field(default=60, ge=1, le=720)
    max_submit_attempts: int = Field(
        default=2,
        ge=1,
        le=2,
        description="Total submissions allowed when a prompt is rejected with a suggestion.",
    )
    elevenlabs_guard: GuardPolicy = Field(default="duration")
    suno_guard: GuardPolicy = Field(default="credits")
    cost_per_second: float = Field(
        default=10.0,
        gt=0.0,
        description="Credits consumed per second of generated audio.",
    )
    max_cost: int = Field(
        default=1800,
        ge=1,
        description="Largest estimated cost accepted for a single song.",
    )
    elevenlabs_min_credits: int = Field(default=1800, ge=0)
    suno_min_credits: int = Field(default=12, ge=0)
    mirror_remote_audio: bool = Field(
        default=False,
        description="Download provider-hosted audio into the artifact store.",
    )

    @model_validator(mode="after")
    def _strip_base_urls(self) -> "Settings":
        self.elevenlabs_base_url = self.elevenlabs_base_url.rstrip("/")
        self.suno_base_url = self.suno_base_url.rstrip("/")
        if self.public_base_url is not None:
            self.public_base_url = self.public_base_url.rstrip("/") or None
        return self

    def ensure_directories(self) -> None:
        self.artifact_root.mkdir(parents=True, exist_ok=True)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings = Settings()
    settings.ensure_directories()
    return settings
