from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class BpmRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: int = Field(..., ge=60, le=200)
    max: int = Field(..., ge=60, le=200)

    @model_validator(mode="after")
    def _check_order(self) -> "BpmRange":
        if self.min > self.max:
            raise ValueError(f"bpm min {self.min} is greater than bpm max {self.max}")
        return self


class SongSpec(BaseModel):
    """Structured description of the song to generate."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(..., min_length=1, max_length=200)
    mood: str = Field(..., min_length=1, max_length=128)
    genre: str = Field(..., min_length=1, max_length=128)
    bpm_range: BpmRange
    chorus_line: Optional[str] = Field(default=None, max_length=512)
    length_ms: int = Field(..., gt=0)
    force_instrumental: bool = False
    day_description: str = Field(..., min_length=1, max_length=4000)


class SongResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    audio_url: str
    title: str
    prompt_used: str
    duration_ms: int
    mood: str
    genre: str
    was_prompt_modified: bool = False


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SongToolInput(_CamelModel):
    """Arguments the conversational agent passes to the song tool."""

    title: str = Field(..., min_length=1, max_length=200)
    mood: str = Field(..., min_length=1, max_length=128)
    genre: str = Field(..., min_length=1, max_length=128)
    bpm_min: int = Field(..., ge=60, le=200)
    bpm_max: int = Field(..., ge=60, le=200)
    chorus_line: Optional[str] = Field(default=None, max_length=512)
    length_ms: int = Field(default=60_000, ge=30_000, le=180_000)
    force_instrumental: bool = False
    day_description: str = Field(..., min_length=1, max_length=4000)

    def to_spec(self) -> SongSpec:
        return SongSpec(
            title=self.title,
            mood=self.mood,
            genre=self.genre,
            bpm_range=BpmRange(min=self.bpm_min, max=self.bpm_max),
            chorus_line=self.chorus_line,
            length_ms=self.length_ms,
            force_instrumental=self.force_instrumental,
            day_description=self.day_description,
        )


class SongToolSuccess(_CamelModel):
    success: bool = True
    audio_url: str
    title: str
    prompt_used: str
    duration_ms: int
    mood: str
    genre: str
    was_prompt_modified: bool
    message: str

    @classmethod
    def from_result(cls, result: SongResult, message: str) -> "SongToolSuccess":
        return cls(message=message, **result.model_dump())


class SongToolFailure(_CamelModel):
    success: bool = False
    error: str
    message: str
