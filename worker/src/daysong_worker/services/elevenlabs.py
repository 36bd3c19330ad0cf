"""ElevenLabs music backend (buffered compose and streamed compose)."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

import httpx
from loguru import logger

from ..app.models import SongSpec
from ..app.settings import Settings
from .exceptions import ConfigurationError, InsufficientCredits, TransportError
from .http_utils import client_session, decode_json, error_body
from .prompts import build_prompt
from .types import AudioPayload, BackendStatus, PolicyRejection

POLICY_REJECTION_STATUSES = frozenset({"bad_prompt", "bad_composition_plan"})
QUOTA_STATUSES = frozenset({"quota_exceeded", "insufficient_credits"})


class ElevenLabsBackend:
    """Submits prompts to the ElevenLabs music endpoint and returns raw audio."""

    def __init__(
        self,
        settings: Settings,
        *,
        client: Optional[httpx.AsyncClient] = None,
        streaming: bool = True,
    ) -> None:
        if not settings.elevenlabs_api_key:
            raise ConfigurationError("ELEVENLABS_API_KEY is not configured")
        self._api_key = settings.elevenlabs_api_key
        self._base_url = settings.elevenlabs_base_url
        self._output_format = settings.elevenlabs_output_format
        self._timeout = settings.request_timeout_seconds
        self._client = client
        self._streaming = streaming
        self.name = "elevenlabs" if streaming else "elevenlabs-compose"

    @property
    def streaming(self) -> bool:
        return self._streaming

    def status(self) -> BackendStatus:
        return BackendStatus(
            name=self.name,
            ready=True,
            error=None,
            details={"streaming": self._streaming, "output_format": self._output_format},
        )

    def build_prompt(self, spec: SongSpec) -> str:
        return build_prompt(spec)

    def _headers(self) -> Dict[str, str]:
        return {"xi-api-key": self._api_key, "Content-Type": "application/json"}

    def _request_body(self, prompt: str, spec: SongSpec) -> Dict[str, Any]:
        return {
            "prompt": prompt,
            "music_length_ms": spec.length_ms,
            "force_instrumental": spec.force_instrumental,
        }

    async def submit(self, prompt: str, spec: SongSpec) -> Union[AudioPayload, PolicyRejection]:
        path = "/v1/music/stream" if self._streaming else "/v1/music"
        url = f"{self._base_url}{path}"
        params = {"output_format": self._output_format}
        logger.info(
            "Submitting '{}' to ElevenLabs ({} ms, streaming={})",
            spec.title,
            spec.length_ms,
            self._streaming,
        )
        async with client_session(self._client, self._timeout) as client:
            try:
                if self._streaming:
                    return await self._submit_streaming(client, url, params, prompt, spec)
                response = await client.post(
                    url,
                    params=params,
                    headers=self._headers(),
                    json=self._request_body(prompt, spec),
                )
            except httpx.HTTPError as exc:
                raise TransportError(f"ElevenLabs request failed: {exc}") from exc

        if response.status_code >= 400:
            return self._handle_error(response)
        if not response.content:
            raise TransportError("ElevenLabs returned an empty audio response")
        content_type = response.headers.get("content-type", "audio/mpeg")
        return AudioPayload(data=response.content, content_type=content_type, streamed=False)

    async def _submit_streaming(
        self,
        client: httpx.AsyncClient,
        url: str,
        params: Dict[str, str],
        prompt: str,
        spec: SongSpec,
    ) -> Union[AudioPayload, PolicyRejection]:
        async with client.stream(
            "POST",
            url,
            params=params,
            headers=self._headers(),
            json=self._request_body(prompt, spec),
        ) as response:
            if response.status_code >= 400:
                await response.aread()
                return self._handle_error(response)
            content_type = response.headers.get("content-type", "audio/mpeg")
            chunks: List[bytes] = []
            async for chunk in response.aiter_bytes():
                if chunk:
                    chunks.append(chunk)
        data = b"".join(chunks)
        if not data:
            raise TransportError("ElevenLabs returned an empty audio stream")
        logger.debug("Drained {} bytes from ElevenLabs stream", len(data))
        return AudioPayload(data=data, content_type=content_type, streamed=True)

    def _handle_error(self, response: httpx.Response) -> PolicyRejection:
        body = error_body(response)
        detail = body.get("detail") if isinstance(body, dict) else None
        if isinstance(detail, dict):
            status = str(detail.get("status") or "").lower()
            message = str(detail.get("message") or status or "prompt rejected")
            if status in POLICY_REJECTION_STATUSES:
                data = detail.get("data")
                suggestion = None
                if isinstance(data, dict):
                    suggestion = data.get("prompt_suggestion") or data.get("composition_plan_suggestion")
                if not isinstance(suggestion, str):
                    suggestion = None
                logger.warning("ElevenLabs rejected prompt: {}", message)
                return PolicyRejection(message=message, suggested_prompt=suggestion)
            if status in QUOTA_STATUSES:
                raise InsufficientCredits(None, None, detail=f"ElevenLabs quota exceeded: {message}")
        logger.error("ElevenLabs API error {}: {}", response.status_code, body)
        raise TransportError(f"ElevenLabs API error: {response.status_code} - {body}")

    async def fetch_remaining_credits(self) -> int:
        url = f"{self._base_url}/v1/user/subscription"
        async with client_session(self._client, self._timeout) as client:
            try:
                response = await client.get(url, headers={"xi-api-key": self._api_key})
            except httpx.HTTPError as exc:
                raise TransportError(f"ElevenLabs subscription lookup failed: {exc}") from exc
        if response.status_code >= 400:
            raise TransportError(f"ElevenLabs subscription lookup failed: HTTP {response.status_code}")
        body = decode_json(response, "ElevenLabs")
        try:
            return int(body["character_limit"]) - int(body["character_count"])
        except (KeyError, TypeError, ValueError) as exc:
            raise TransportError(f"Unexpected subscription payload: {body}") from exc
