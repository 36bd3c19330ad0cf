"""Shared service data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

from ..app.models import SongSpec


@dataclass(frozen=True)
class ImmediateResult:
    url: str


@dataclass(frozen=True)
class AudioPayload:
    data: bytes
    content_type: str = "audio/mpeg"
    streamed: bool = False


@dataclass(frozen=True)
class JobHandle:
    job_id: str
    spec: SongSpec


@dataclass(frozen=True)
class PolicyRejection:
    message: str
    suggested_prompt: Optional[str] = None


SubmitOutcome = Union[ImmediateResult, AudioPayload, JobHandle, PolicyRejection]


@dataclass(frozen=True)
class SubmissionResult:
    outcome: Union[ImmediateResult, AudioPayload, JobHandle]
    prompt_used: str
    was_prompt_modified: bool
    attempts: int


class PollStatus(str, Enum):
    PENDING = "pending"
    COMPLETE = "complete"
    FAILED = "failed"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class PollAttempt:
    index: int
    payload: Any
    status: PollStatus
    audio_url: Optional[str] = None


@dataclass(frozen=True)
class CreditStatus:
    remaining: int
    required: int

    @property
    def sufficient(self) -> bool:
        return self.remaining >= self.required


@dataclass
class BackendStatus:
    name: str
    ready: bool
    error: Optional[str]
    details: Dict[str, Any] = field(default_factory=dict)
    updated_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "name": self.name,
            "ready": self.ready,
            "updated_at": self.updated_at.isoformat(),
        }
        if self.error is not None:
            payload["error"] = self.error
        if self.details:
            payload["details"] = self.details
        return payload
