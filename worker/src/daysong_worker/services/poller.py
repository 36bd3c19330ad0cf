"""Job status polling and audio URL extraction for asynchronous backends.

Provider payloads drift between API versions, so URLs are located by an
ordered table of extraction strategies rather than a fixed schema. The first
strategy returning a usable URL wins:

1. ``nested_tracks``: a track list nested under ``response``
   (``sunoData`` and friends); every candidate is scanned in order.
2. ``direct_url``: a URL field on the top-level payload.
3. ``track_array``: a bare top-level list of track objects.

A URL is only usable when it is a non-empty string starting with ``http``;
payloads such as ``{"approved": true}`` never count as a result. When the
payload reports a status, the first two strategies only run once that status
is a success status; in-progress jobs can already carry a streaming preview.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Iterable, Optional, Tuple

from loguru import logger

from .exceptions import GenerationFailed, PollTimeout, TransportError
from .types import JobHandle, PollAttempt, PollStatus

URL_FIELDS: Tuple[str, ...] = ("audioUrl", "audio_url", "sourceAudioUrl", "streamAudioUrl")
TRACK_LIST_FIELDS: Tuple[str, ...] = ("sunoData", "suno_data", "tracks", "clips")
FAILED_STATUSES = frozenset(
    {
        "failed",
        "error",
        "create_task_failed",
        "generate_audio_failed",
        "callback_exception",
        "sensitive_word_error",
    }
)
SUCCESS_STATUSES = frozenset({"complete", "success"})
FAILURE_MESSAGE_FIELDS: Tuple[str, ...] = ("error", "message", "errorMessage", "msg")

DEFAULT_POLL_INTERVAL_SECONDS = 5.0
DEFAULT_POLL_MAX_ATTEMPTS = 60


def track_audio_url(track: Any) -> Optional[str]:
    if not isinstance(track, dict):
        return None
    for field in URL_FIELDS:
        value = track.get(field)
        if isinstance(value, str) and value.startswith("http"):
            return value
    return None


def _first_track_url(tracks: Iterable[Any]) -> Optional[str]:
    for track in tracks:
        url = track_audio_url(track)
        if url is not None:
            return url
    return None


def _nested_tracks(data: Any) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    response = data.get("response")
    if not isinstance(response, dict):
        return None
    for field in TRACK_LIST_FIELDS:
        tracks = response.get(field)
        if isinstance(tracks, list) and tracks:
            url = _first_track_url(tracks)
            if url is not None:
                return url
    return None


def _direct_url(data: Any) -> Optional[str]:
    return track_audio_url(data)


def _track_array(data: Any) -> Optional[str]:
    if isinstance(data, list):
        return _first_track_url(data)
    return None


URL_EXTRACTORS: Tuple[Tuple[str, Callable[[Any], Optional[str]]], ...] = (
    ("nested_tracks", _nested_tracks),
    ("direct_url", _direct_url),
    ("track_array", _track_array),
)
STATUS_GATED_EXTRACTORS = frozenset({"nested_tracks", "direct_url"})


def unwrap_payload(payload: Any) -> Any:
    if isinstance(payload, dict):
        inner = payload.get("data")
        if isinstance(inner, (dict, list)):
            return inner
    return payload


def extract_audio_url(payload: Any) -> Optional[Tuple[str, str]]:
    """Return ``(strategy, url)`` for the first strategy that matches."""
    data = unwrap_payload(payload)
    status = payload_status(data)
    settled = status is None or status.lower() in SUCCESS_STATUSES
    for name, extractor in URL_EXTRACTORS:
        if not settled and name in STATUS_GATED_EXTRACTORS:
            continue
        url = extractor(data)
        if url is not None:
            return name, url
    return None


def payload_status(data: Any) -> Optional[str]:
    if isinstance(data, dict):
        status = data.get("status")
        if isinstance(status, str):
            return status
    return None


def failure_message(data: Any) -> str:
    if isinstance(data, dict):
        for field in FAILURE_MESSAGE_FIELDS:
            value = data.get(field)
            if isinstance(value, str) and value:
                return value
    return "Unknown error"


def inspect_payload(index: int, payload: Any) -> PollAttempt:
    data = unwrap_payload(payload)
    found = extract_audio_url(payload)
    if found is not None:
        return PollAttempt(index=index, payload=payload, status=PollStatus.COMPLETE, audio_url=found[1])
    status = payload_status(data)
    if status is not None and status.lower() in FAILED_STATUSES:
        return PollAttempt(index=index, payload=payload, status=PollStatus.FAILED)
    if status is None:
        return PollAttempt(index=index, payload=payload, status=PollStatus.UNKNOWN)
    return PollAttempt(index=index, payload=payload, status=PollStatus.PENDING)


class JobPoller:
    """Polls a job until it yields an audio URL, fails, or runs out of attempts."""

    def __init__(
        self,
        fetch_status: Callable[[str], Awaitable[Any]],
        *,
        interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_attempts: int = DEFAULT_POLL_MAX_ATTEMPTS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._fetch_status = fetch_status
        self._interval_seconds = interval_seconds
        self._max_attempts = max_attempts
        self._sleep = sleep

    async def poll(self, handle: JobHandle) -> str:
        job_id = handle.job_id
        for index in range(1, self._max_attempts + 1):
            logger.debug("Polling job {} attempt {}/{}", job_id, index, self._max_attempts)
            try:
                payload = await self._fetch_status(job_id)
            except TransportError as exc:
                logger.warning("Poll attempt {} for job {} failed: {}", index, job_id, exc)
            else:
                attempt = inspect_payload(index, payload)
                if attempt.status == PollStatus.COMPLETE and attempt.audio_url is not None:
                    logger.info("Job {} complete after {} attempts: {}", job_id, index, attempt.audio_url)
                    return attempt.audio_url
                if attempt.status == PollStatus.FAILED:
                    message = failure_message(unwrap_payload(payload))
                    logger.error("Job {} failed: {}", job_id, message)
                    raise GenerationFailed(f"Generation failed: {message}")
                logger.debug(
                    "Job {} status {} ({})",
                    job_id,
                    attempt.status.value,
                    payload_status(unwrap_payload(payload)),
                )
            if index < self._max_attempts:
                await self._sleep(self._interval_seconds)
        raise PollTimeout(job_id, self._max_attempts)
