"""Suno music backend: submits a generation task that is completed by polling."""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple, Union

import httpx
from loguru import logger

from ..app.models import SongSpec
from ..app.settings import Settings
from .exceptions import ConfigurationError, GenerationFailed, TransportError
from .http_utils import client_session, decode_json
from .poller import extract_audio_url, unwrap_payload
from .prompts import build_prompt
from .types import BackendStatus, ImmediateResult, JobHandle

JOB_ID_FIELDS: Tuple[str, ...] = ("taskId", "task_id", "id")
SUCCESS_CODES = (0, 200)


def extract_job_id(body: Any) -> Optional[str]:
    """Probe the known task id fields, dedicated ones before generic ``id``."""
    data = unwrap_payload(body)
    candidates = []
    if isinstance(data, dict):
        candidates.extend(data.get(field) for field in JOB_ID_FIELDS)
    if isinstance(body, dict):
        candidates.append(body.get("taskId"))
    for value in candidates:
        if isinstance(value, (str, int)) and not isinstance(value, bool) and str(value):
            return str(value)
    return None


def _envelope_error(body: Any) -> Optional[str]:
    if not isinstance(body, dict):
        return None
    code = body.get("code")
    if code is None or code in SUCCESS_CODES:
        return None
    return str(body.get("msg") or body.get("message") or f"code {code}")


class SunoBackend:
    """Submit-and-poll backend talking to the Suno API."""

    name = "suno"

    def __init__(
        self,
        settings: Settings,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not settings.suno_api_key:
            raise ConfigurationError("SUNO_API_KEY is not configured")
        self._api_key = settings.suno_api_key
        self._api_base = f"{settings.suno_base_url}/api/v1"
        self._model = settings.suno_model
        self._callback_url = settings.suno_callback_url
        self._timeout = settings.request_timeout_seconds
        self._client = client

    def status(self) -> BackendStatus:
        return BackendStatus(name=self.name, ready=True, error=None, details={"model": self._model})

    def build_prompt(self, spec: SongSpec) -> str:
        # style and instrumental travel as request fields
        return build_prompt(spec, include_tempo=False, include_instrumental=False)

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        async with client_session(self._client, self._timeout) as client:
            try:
                return await client.request(method, url, headers=self._headers(), **kwargs)
            except httpx.HTTPError as exc:
                raise TransportError(f"Suno request failed: {exc}") from exc

    async def submit(self, prompt: str, spec: SongSpec) -> Union[ImmediateResult, JobHandle]:
        body = {
            "prompt": prompt,
            "style": spec.genre,
            "title": spec.title,
            "customMode": True,
            "instrumental": spec.force_instrumental,
            "model": self._model,
            "callBackUrl": self._callback_url,
        }
        logger.info("Starting Suno generation for '{}'", spec.title)
        response = await self._request("POST", f"{self._api_base}/generate", json=body)
        if response.status_code >= 400:
            logger.error("Suno API error {}: {}", response.status_code, response.text)
            raise TransportError(f"Suno API error: {response.status_code} - {response.text}")
        result = decode_json(response, "Suno")

        error = _envelope_error(result)
        if error is not None:
            raise GenerationFailed(f"Suno API error: {error}")

        found = extract_audio_url(result)
        if found is not None:
            logger.info("Suno returned audio immediately via {}", found[0])
            return ImmediateResult(url=found[1])

        job_id = extract_job_id(result)
        if job_id is None:
            logger.error("Suno response had no task id: {}", result)
            raise TransportError("No task ID or audio URL in Suno response. Please check your API key.")
        logger.info("Suno task {} accepted, polling for completion", job_id)
        return JobHandle(job_id=job_id, spec=spec)

    async def fetch_job_status(self, job_id: str) -> Any:
        response = await self._request(
            "GET",
            f"{self._api_base}/generate/record-info",
            params={"taskId": job_id},
        )
        if response.status_code >= 400:
            raise TransportError(f"Suno status query failed: HTTP {response.status_code}")
        return decode_json(response, "Suno")

    async def fetch_remaining_credits(self) -> int:
        response = await self._request("GET", f"{self._api_base}/generate/credit")
        if response.status_code >= 400:
            raise TransportError(f"Suno credit lookup failed: HTTP {response.status_code}")
        body = decode_json(response, "Suno")
        error = _envelope_error(body)
        if error is not None:
            raise TransportError(f"Suno credit lookup failed: {error}")
        value = body.get("data") if isinstance(body, dict) else body
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise TransportError(f"Unexpected credit payload: {body}") from exc
